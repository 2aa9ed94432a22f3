"""Declarative base for lmsmobile SQLAlchemy models."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, MetaData
from sqlalchemy.orm import DeclarativeBase

NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "pk": "pk_%(table_name)s",
}


class BaseEntity(DeclarativeBase):
    """Base class for all lmsmobile database entities.

    Timestamps are always timezone-aware and free-form detail mappings are
    stored as JSON, which works on both PostgreSQL and SQLite.
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)
    type_annotation_map = {
        datetime: DateTime(timezone=True),
        dict[str, Any]: JSON,
    }
