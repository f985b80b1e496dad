# backend/slotengine/services/base.py
"""
Shared plumbing for slot engine services: a session, a class-named logger,
commit/rollback around write blocks, and timing of public operations.
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


def _observe(owner: Any, operation: str, elapsed: float, error_type: Optional[str]) -> None:
    service_name = owner.__class__.__name__
    if elapsed > SLOW_OPERATION_SECONDS:
        getattr(owner, "logger", logger).warning(
            f"{service_name}.{operation} took {elapsed:.2f}s",
            extra={"operation": operation, "elapsed": elapsed},
        )
    prometheus_metrics.record_service_operation(
        service=service_name,
        operation=operation,
        duration=elapsed,
        error_type=error_type,
    )


class BaseService:
    """Parent of the schedule, slot and availability services."""

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit the session when the block exits cleanly, roll back otherwise.

        Driver errors are re-raised as RepositoryException; domain errors
        raised inside the block propagate unchanged after the rollback.
        """
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger.error(f"Schedule write rolled back: {e}")
            raise RepositoryException(f"Database operation failed: {e}") from e
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Time a method and report it under ``operation_name``.

        Works on any object with a ``logger`` attribute, which is how the
        reservation gate uses it without inheriting from BaseService.
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
                started = time.perf_counter()
                try:
                    result = func(self, *args, **kwargs)
                except Exception as e:
                    _observe(self, operation_name, time.perf_counter() - started, type(e).__name__)
                    raise
                _observe(self, operation_name, time.perf_counter() - started, None)
                return result

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        self.logger.info(operation, extra={"operation": operation, **context})
