"""Audit trail of verification attempts.

Recording is fire-and-forget: a failing sink is logged and otherwise
ignored, so auditing can never turn a verification into an error.
"""

import logging
from datetime import UTC, datetime
from typing import Any, Protocol

import uuid_utils
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lmsmobile.db.repo_audit import add_record
from lmsmobile.verify.types import VerificationRecord

logger = logging.getLogger(__name__)


class Outcome(Protocol):
    """Anything with a success flag and an optional error code."""

    success: bool
    error: str | None


class AuditSink(Protocol):
    """Destination for audit records besides the log."""

    async def store(self, record: VerificationRecord) -> None: ...


class DatabaseAuditSink:
    """Writes audit records to the verification_logs table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def store(self, record: VerificationRecord) -> None:
        async with self._session_factory() as session:
            await add_record(session, record)
            await session.commit()


class VerificationAuditor:
    """Emits one structured record per verification attempt."""

    def __init__(self, sink: AuditSink | None = None) -> None:
        self._sink = sink

    async def record(
        self,
        provider: str,
        subject: str | int | None,
        result: Outcome,
        details: dict[str, Any] | None = None,
    ) -> VerificationRecord:
        record = VerificationRecord(
            id=str(uuid_utils.uuid7()),
            timestamp=datetime.now(UTC),
            provider=provider,
            subject="" if subject is None else str(subject),
            success=result.success,
            error=result.error,
            details=details or {},
        )
        level = logging.INFO if record.success else logging.WARNING
        logger.log(
            level,
            "Verification %s provider=%s subject=%s error=%s",
            "succeeded" if record.success else "failed",
            record.provider,
            record.subject,
            record.error,
            extra={"verification": record.model_dump(mode="json")},
        )
        if self._sink is not None:
            try:
                await self._sink.store(record)
            except Exception:
                logger.exception("Failed to persist verification record %s", record.id)
        return record
