"""SQLAlchemy model for the verification audit log."""

from datetime import datetime
from typing import Any

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from lmsmobile.db.base import BaseEntity


class VerificationLogEntity(BaseEntity):
    """One receipt, identity or push verification attempt."""

    __tablename__ = "verification_logs"

    id: Mapped[str] = mapped_column(String(48), primary_key=True)
    timestamp: Mapped[datetime] = mapped_column(index=True)
    provider: Mapped[str] = mapped_column(String(20), index=True)
    subject: Mapped[str] = mapped_column(String(255), default="")
    success: Mapped[bool]
    error: Mapped[str | None] = mapped_column(String(64))
    details: Mapped[dict[str, Any]] = mapped_column(default=dict)
