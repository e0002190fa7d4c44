"""Persistenz: SQLAlchemy Engine, Schema und Services."""

from .manager import DatabaseError, DatabaseManager

__all__ = ["DatabaseError", "DatabaseManager"]
