"""FastAPI dependency injection for services and admin authentication."""

import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from lmsmobile.api.host import HostLMS
from lmsmobile.core.settings import VerificationSettings
from lmsmobile.verify.services import VerificationServices

_security = HTTPBearer()


def get_settings(request: Request) -> VerificationSettings:
    return request.app.state.settings


def get_services(request: Request) -> VerificationServices:
    return request.app.state.services


def get_host(request: Request) -> HostLMS | None:
    return request.app.state.host


async def require_admin_token(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_security)],
    settings: Annotated[VerificationSettings, Depends(get_settings)],
) -> str:
    """Verify the admin Bearer token used for push sends and audit reads."""
    expected = settings.admin_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    if not secrets.compare_digest(credentials.credentials, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    return credentials.credentials


def require_audit_store(
    settings: Annotated[VerificationSettings, Depends(get_settings)],
) -> None:
    """Refuse audit reads before a session is opened when nothing is persisted."""
    if not settings.audit_persist:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Audit persistence is disabled",
        )


Settings = Annotated[VerificationSettings, Depends(get_settings)]
Services = Annotated[VerificationServices, Depends(get_services)]
Host = Annotated[HostLMS | None, Depends(get_host)]
AdminToken = Annotated[str, Depends(require_admin_token)]
AuditStore = Annotated[None, Depends(require_audit_store)]
