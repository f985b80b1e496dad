# backend/slotengine/repositories/__init__.py
"""
Repository layer for the slot engine.

Repositories encapsulate queries; services own transactions.
"""

from .base_repository import BaseRepository
from .factory import RepositoryFactory

__all__ = ["BaseRepository", "RepositoryFactory"]
