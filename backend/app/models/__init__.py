"""Expose SQLAlchemy models for convenient imports."""

from .local_state import LocalStateEntry

__all__ = [
    "LocalStateEntry",
]
