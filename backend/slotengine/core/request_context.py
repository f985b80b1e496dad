"""
Request id propagation for log records.

The HTTP middleware binds an id per request; ``RequestIdFilter`` stamps it on
every record so the log format can print ``%(request_id)s``. Records logged
outside a request (startup, worker threads) get ``no-request``.
"""

from __future__ import annotations

from contextvars import ContextVar, Token
import logging
from typing import Optional

NO_REQUEST = "no-request"

_request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def set_request_id(request_id: Optional[str]) -> Token[str]:
    return _request_id_var.set(request_id or "")


def reset_request_id(token: Token[str]) -> None:
    _request_id_var.reset(token)


def current_request_id() -> str:
    return _request_id_var.get() or NO_REQUEST


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = current_request_id()
        return True


def attach_request_id_filter(logger: Optional[logging.Logger] = None) -> None:
    """Add the filter to every handler of ``logger`` (root by default) once."""
    target = logger or logging.getLogger()
    for handler in target.handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())
