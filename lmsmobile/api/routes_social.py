"""Social login endpoints for the mobile app."""

from typing import Any

from fastapi import APIRouter
from starlette.responses import JSONResponse

from lmsmobile.api.deps import Host, Services, Settings
from lmsmobile.api.schemas import (
    HTTP_UNAUTHORIZED,
    IdentityResponse,
    SocialLoginPayload,
    SocialStatusResponse,
    error_response,
    failed_verification_response,
)
from lmsmobile.verify.types import Provider

router = APIRouter(prefix="/mobile-app", tags=["social"])

HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404


@router.get("/enable-social")
async def social_status(settings: Settings) -> SocialStatusResponse:
    """GET /mobile-app/enable-social -- which login buttons to show."""
    return SocialStatusResponse(
        enabled=settings.social_enabled,
        providers=settings.enabled_social_providers(),
    )


@router.post("/verify-{provider}", response_model=None)
async def verify_social_token(
    provider: str,
    payload: SocialLoginPayload,
    services: Services,
    host: Host,
) -> IdentityResponse | dict[str, Any] | JSONResponse:
    """POST /mobile-app/verify-{provider} -- verify a provider token and log in."""
    try:
        chosen = Provider(provider)
    except ValueError:
        return error_response(
            "unknown_provider", f"Unsupported provider: {provider}", HTTP_NOT_FOUND
        )

    token = payload.presented_token()
    if not token:
        return error_response(
            "invalid_request", "No token was provided", HTTP_BAD_REQUEST
        )

    result = await services.identity.verify(chosen, token)
    if not result.success or result.identity is None:
        return failed_verification_response(result, HTTP_UNAUTHORIZED)

    if host is None:
        return IdentityResponse(identity=result.identity)
    return await host.login_or_register(result.identity)
