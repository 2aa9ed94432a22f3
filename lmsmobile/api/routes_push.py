"""Admin endpoints: push notifications and the verification audit log."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import JSONResponse

from lmsmobile.api.deps import AdminToken, AuditStore, Services
from lmsmobile.api.schemas import (
    HTTP_BAD_GATEWAY,
    HTTP_SERVER_ERROR,
    PushPayload,
    error_response,
)
from lmsmobile.db.engine import get_session
from lmsmobile.db.repo_audit import LIST_LIMIT_DEFAULT, list_records
from lmsmobile.push.fcm import PushResult
from lmsmobile.verify.types import VerificationRecord

router = APIRouter(prefix="/mobile-app", tags=["admin"])

DbSession = Annotated[AsyncSession, Depends(get_session)]

LIST_LIMIT_MAX = 1000


@router.post("/push/send", response_model=None)
async def send_push(
    payload: PushPayload,
    services: Services,
    _token: AdminToken,
) -> PushResult | JSONResponse:
    """POST /mobile-app/push/send -- deliver one notification."""
    result = await services.messenger.send(
        payload.device_token,
        payload.title,
        payload.body,
        data=payload.data,
        platform=payload.platform,
    )
    if not result.success:
        status_code = HTTP_SERVER_ERROR if result.config_fault else HTTP_BAD_GATEWAY
        return error_response(result.error, result.error_description, status_code)
    return result


@router.get("/verification-logs")
async def verification_logs(
    _token: AdminToken,
    _store: AuditStore,
    db: DbSession,
    provider: Annotated[str | None, Query()] = None,
    limit: Annotated[int, Query(ge=1, le=LIST_LIMIT_MAX)] = LIST_LIMIT_DEFAULT,
) -> list[VerificationRecord]:
    """GET /mobile-app/verification-logs -- newest audit records first."""
    entities = await list_records(db, provider=provider, limit=limit)
    return [VerificationRecord.model_validate(e) for e in entities]
