"""Request and response bodies for the mobile-app endpoints."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from starlette.responses import JSONResponse

from lmsmobile.verify.types import (
    IdentityClaims,
    Platform,
    PurchaseClaims,
    VerificationResult,
)

HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_SERVER_ERROR = 500
HTTP_BAD_GATEWAY = 502


class SocialLoginPayload(BaseModel):
    """Token field names differ per provider in the mobile client."""

    model_config = ConfigDict(populate_by_name=True)

    token: str | None = None
    id_token: str | None = Field(default=None, alias="idToken")
    identity_token: str | None = Field(default=None, alias="identityToken")

    def presented_token(self) -> str | None:
        return self.identity_token or self.id_token or self.token


class SocialStatusResponse(BaseModel):
    """Response for GET /mobile-app/enable-social."""

    enabled: bool
    providers: list[str]


class IdentityResponse(BaseModel):
    """Verified identity when no host LMS handles the login."""

    identity: IdentityClaims


class PurchasePayload(BaseModel):
    """Request body for POST /mobile-app/iap/verify."""

    platform: Platform
    receipt: str | dict[str, Any]
    course_id: str | int


class PurchaseResponse(BaseModel):
    success: bool = True
    course_id: str
    purchase: PurchaseClaims


class PushPayload(BaseModel):
    """Request body for POST /mobile-app/push/send."""

    device_token: str = Field(min_length=1)
    title: str
    body: str
    data: dict[str, str] = Field(default_factory=dict)
    platform: Literal["ios", "android"] = "android"


def error_response(
    error: str | None,
    description: str | None,
    status_code: int,
) -> JSONResponse:
    """OAuth-style JSON error body."""
    return JSONResponse(
        {"error": error or "error", "error_description": description or ""},
        status_code=status_code,
    )


def failed_verification_response(
    result: VerificationResult, denied_status: int
) -> JSONResponse:
    """Configuration faults are server errors; everything else is a denial."""
    status_code = HTTP_SERVER_ERROR if result.config_fault else denied_status
    return error_response(result.error, result.error_description, status_code)
