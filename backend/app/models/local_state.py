"""SQLAlchemy model for locally persisted application state."""

from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, String, func
from sqlalchemy.dialects.sqlite import JSON as SQLiteJSON

from ..database import Base


class LocalStateEntry(Base):
    """A named JSON value (invoices, products, templates, branding, ...)."""

    __tablename__ = "local_state"

    key = Column(String(100), primary_key=True)
    value = Column(JSON().with_variant(SQLiteJSON(), "sqlite"), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
