"""
SQLAlchemy declarative base and common model utilities.

All teamguard models inherit from Base and take ULID string ids.
"""
from datetime import datetime
from typing import Any
from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


def _db_clock(**kwargs: Any) -> Mapped[datetime]:
    return mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False, **kwargs)


class Base(DeclarativeBase):
    """Base class for all teamguard models."""
    pass


class TimestampMixin:
    """
    created_at/updated_at stamped by the database clock.

    Association tables (role_capability, group_user) are plain Tables and
    carry no timestamps.

    Usage:
        class Group(Base, TimestampMixin):
            __tablename__ = "groups"
            code: Mapped[str] = mapped_column(String(100))
    """
    created_at: Mapped[datetime] = _db_clock()
    updated_at: Mapped[datetime] = _db_clock(onupdate=func.now())
