"""
SQLAlchemy Base class and common model mixins.

All models should inherit from Base to be included in ``create_all``.
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on Postgres (Supabase), plain JSON elsewhere (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    type_annotation_map = {
        str: String,
    }


class TimestampMixin:
    """
    Mixin that adds an ``updated_at`` timestamp.

    Upserts built with :func:`dflexsync.db.upsert.upsert` refresh it
    explicitly, since ``onupdate`` does not fire for ``ON CONFLICT``.
    """

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
        nullable=False,
    )
