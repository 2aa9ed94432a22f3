"""Type definitions for verification outcomes and audit records."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from lmsmobile.core.errors import ConfigurationError, LMSMobileError


class Provider(StrEnum):
    """Identity providers accepted for social login."""

    APPLE = "apple"
    GOOGLE = "google"
    FACEBOOK = "facebook"


class Platform(StrEnum):
    """Store platforms for in-app purchases."""

    APPLE = "apple"
    GOOGLE = "google"


class IdentityClaims(BaseModel):
    """Identity extracted from a verified social-login token."""

    provider: Provider
    subject: str = ""
    email: str
    name: str = ""


class PurchaseClaims(BaseModel):
    """Purchase facts extracted from a verified store receipt."""

    platform: Platform
    product_id: str
    purchase_state: int | None = None
    acknowledgement_state: int | None = None
    transaction_id: str | None = None
    environment: str | None = None


class VerificationResult(BaseModel):
    """Uniform output of every orchestrator."""

    success: bool
    provider: str
    identity: IdentityClaims | None = None
    purchase: PurchaseClaims | None = None
    error: str | None = None
    error_description: str | None = None
    config_fault: bool = False

    @classmethod
    def failed(cls, provider: str, exc: LMSMobileError) -> "VerificationResult":
        return cls(
            success=False,
            provider=provider,
            error=exc.code,
            error_description=exc.message,
            config_fault=isinstance(exc, ConfigurationError),
        )


class VerificationRecord(BaseModel):
    """One audit entry per verification attempt."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    timestamp: datetime
    provider: str
    subject: str = ""
    success: bool
    error: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class AppleReceiptResponse(BaseModel):
    """verifyReceipt response; only the fields the decision needs."""

    model_config = ConfigDict(extra="allow")

    status: int
    environment: str | None = None
    receipt: dict[str, Any] = Field(default_factory=dict)

    def in_app_purchases(self) -> list[dict[str, Any]]:
        purchases = self.receipt.get("in_app") or []
        return [p for p in purchases if isinstance(p, dict)]


class GooglePurchaseResponse(BaseModel):
    """Play Developer API products.get response."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    purchase_state: int | None = Field(default=None, alias="purchaseState")
    acknowledgement_state: int | None = Field(
        default=None, alias="acknowledgementState"
    )
    order_id: str | None = Field(default=None, alias="orderId")
