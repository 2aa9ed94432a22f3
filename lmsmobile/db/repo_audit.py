"""Database operations for the verification audit log."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lmsmobile.db.models_audit import VerificationLogEntity
from lmsmobile.verify.types import VerificationRecord

LIST_LIMIT_DEFAULT = 100


async def add_record(
    session: AsyncSession, record: VerificationRecord
) -> VerificationLogEntity:
    """Persist one audit record."""
    entity = VerificationLogEntity(
        id=record.id,
        timestamp=record.timestamp,
        provider=record.provider,
        subject=record.subject,
        success=record.success,
        error=record.error,
        details=record.details,
    )
    session.add(entity)
    await session.flush()
    return entity


async def list_records(
    session: AsyncSession,
    *,
    provider: str | None = None,
    limit: int = LIST_LIMIT_DEFAULT,
) -> list[VerificationLogEntity]:
    """Return the most recent records, newest first."""
    stmt = select(VerificationLogEntity)
    if provider is not None:
        stmt = stmt.where(VerificationLogEntity.provider == provider)
    stmt = stmt.order_by(VerificationLogEntity.timestamp.desc()).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())
