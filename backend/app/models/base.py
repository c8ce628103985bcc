"""Declarative base and timestamp mixins for the onboarding tables.

Timestamps are assigned by PostgreSQL, never by the application. Cooldowns
compare ``created_at`` against the current time, so every issuance row
shares one clock: the database's.
"""

from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models.

    Bare ``Mapped[datetime]`` annotations map to TIMESTAMPTZ.
    """

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class CreatedAtMixin:
    """Server-assigned creation time.

    Used by the issuance tables (tokens, OTPs, staged registrations), whose
    rows are replaced rather than updated.
    """

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )


class TimestampMixin(CreatedAtMixin):
    """Creation time plus an ``updated_at`` refreshed on every UPDATE."""

    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
