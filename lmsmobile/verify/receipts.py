"""In-app purchase receipt verification against Apple and Google Play."""

import json
import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from lmsmobile.core.errors import (
    ConfigurationError,
    LMSMobileError,
    MalformedReceipt,
    ProductMismatch,
    PurchaseNotCompleted,
    ReceiptStatusNonZero,
    TokenRejected,
    TransportError,
)
from lmsmobile.core.http import is_success, request_json
from lmsmobile.core.settings import VerificationSettings
from lmsmobile.crypto.jwt_signer import ANDROID_PUBLISHER_SCOPE
from lmsmobile.crypto.keys import load_service_account
from lmsmobile.oauth.service_account import ServiceAccountTokenProvider
from lmsmobile.verify.audit import VerificationAuditor
from lmsmobile.verify.types import (
    AppleReceiptResponse,
    GooglePurchaseResponse,
    Platform,
    PurchaseClaims,
    VerificationResult,
)

logger = logging.getLogger(__name__)

APPLE_PRODUCTION_URL = "https://buy.itunes.apple.com/verifyReceipt"
APPLE_SANDBOX_URL = "https://sandbox.itunes.apple.com/verifyReceipt"
APPLE_STATUS_OK = 0
APPLE_STATUS_SANDBOX_RECEIPT = 21007

GOOGLE_PLAY_API_URL = (
    "https://androidpublisher.googleapis.com/androidpublisher/v3/applications"
)
GOOGLE_PURCHASE_STATE_PURCHASED = 0


class AppleReceiptVerifier:
    """Validates App Store receipts with the verifyReceipt endpoint."""

    def __init__(
        self,
        settings: VerificationSettings,
        http: httpx.AsyncClient,
        auditor: VerificationAuditor,
        *,
        production_url: str = APPLE_PRODUCTION_URL,
        sandbox_url: str = APPLE_SANDBOX_URL,
    ) -> None:
        self._settings = settings
        self._http = http
        self._auditor = auditor
        self._production_url = production_url
        self._sandbox_url = sandbox_url

    async def verify(
        self,
        receipt_data: str,
        expected_product_id: str | int,
        *,
        user_id: str | int | None = None,
    ) -> VerificationResult:
        try:
            purchase = await self._verify(receipt_data, str(expected_product_id))
            result = VerificationResult(
                success=True, provider=Platform.APPLE, purchase=purchase
            )
        except LMSMobileError as exc:
            result = VerificationResult.failed(Platform.APPLE, exc)
        await self._auditor.record(
            Platform.APPLE,
            str(expected_product_id),
            result,
            {"user_id": user_id} if user_id is not None else None,
        )
        return result

    async def _verify(self, receipt_data: str, expected_product_id: str) -> PurchaseClaims:
        secret = self._settings.apple_shared_secret
        if not secret:
            raise ConfigurationError("Apple shared secret is not configured")
        payload = {"receipt-data": receipt_data, "password": secret}

        if self._settings.apple_sandbox:
            response = await self._post(self._sandbox_url, payload)
        else:
            response = await self._post(self._production_url, payload)
            if response.status == APPLE_STATUS_SANDBOX_RECEIPT:
                logger.info("Sandbox receipt sent to production, retrying on sandbox")
                response = await self._post(self._sandbox_url, payload)

        if response.status != APPLE_STATUS_OK:
            raise ReceiptStatusNonZero(response.status)

        for purchase in response.in_app_purchases():
            if str(purchase.get("product_id")) == expected_product_id:
                transaction_id = purchase.get("transaction_id")
                return PurchaseClaims(
                    platform=Platform.APPLE,
                    product_id=expected_product_id,
                    transaction_id=(
                        str(transaction_id) if transaction_id is not None else None
                    ),
                    environment=response.environment,
                )
        raise ProductMismatch(
            "Receipt does not contain the expected product",
            {"product_id": expected_product_id},
        )

    async def _post(self, url: str, payload: dict[str, str]) -> AppleReceiptResponse:
        status, body = await request_json(self._http, "POST", url, json=payload)
        if not is_success(status):
            raise TransportError("verifyReceipt request failed", {"status": status})
        try:
            return AppleReceiptResponse.model_validate(body)
        except ValidationError as exc:
            raise TransportError("verifyReceipt response has no status") from exc


class GooglePlayReceiptVerifier:
    """Validates Play purchases with the Android Publisher API."""

    def __init__(
        self,
        settings: VerificationSettings,
        http: httpx.AsyncClient,
        tokens: ServiceAccountTokenProvider,
        auditor: VerificationAuditor,
        *,
        api_url: str = GOOGLE_PLAY_API_URL,
    ) -> None:
        self._settings = settings
        self._http = http
        self._tokens = tokens
        self._auditor = auditor
        self._api_url = api_url.rstrip("/")

    async def verify(
        self,
        receipt: str | Mapping[str, Any],
        expected_product_id: str | int,
        *,
        user_id: str | int | None = None,
    ) -> VerificationResult:
        try:
            purchase = await self._verify(receipt, str(expected_product_id))
            result = VerificationResult(
                success=True, provider=Platform.GOOGLE, purchase=purchase
            )
        except LMSMobileError as exc:
            result = VerificationResult.failed(Platform.GOOGLE, exc)
        await self._auditor.record(
            Platform.GOOGLE,
            str(expected_product_id),
            result,
            {"user_id": user_id} if user_id is not None else None,
        )
        return result

    async def _verify(
        self, receipt: str | Mapping[str, Any], expected_product_id: str
    ) -> PurchaseClaims:
        account = load_service_account(
            self._settings.google_service_account,
            self._settings.secrets_encryption_key,
        )
        package_name, product_id, purchase_token = _parse_google_receipt(receipt)

        access_token = await self._tokens.get_token(
            account, ANDROID_PUBLISHER_SCOPE, include_subject=True
        )
        url = (
            f"{self._api_url}/{quote(package_name, safe='')}"
            f"/purchases/products/{quote(product_id, safe='')}"
            f"/tokens/{quote(purchase_token, safe='')}"
        )
        status, body = await request_json(
            self._http,
            "GET",
            url,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if not is_success(status):
            raise TokenRejected(_google_error_message(body), {"status": status})

        try:
            purchase = GooglePurchaseResponse.model_validate(body)
        except ValidationError as exc:
            raise TransportError("Purchase response is malformed") from exc
        if purchase.purchase_state != GOOGLE_PURCHASE_STATE_PURCHASED:
            raise PurchaseNotCompleted(
                "Purchase is not in the purchased state",
                {"purchase_state": purchase.purchase_state},
            )
        if product_id != expected_product_id:
            raise ProductMismatch(
                "Receipt is for a different product",
                {"product_id": product_id, "expected": expected_product_id},
            )
        return PurchaseClaims(
            platform=Platform.GOOGLE,
            product_id=product_id,
            purchase_state=purchase.purchase_state,
            acknowledgement_state=purchase.acknowledgement_state,
            transaction_id=purchase.order_id,
        )


def _parse_google_receipt(receipt: str | Mapping[str, Any]) -> tuple[str, str, str]:
    """Extract packageName, productId and purchaseToken from a Play receipt."""
    if isinstance(receipt, str):
        try:
            data = json.loads(receipt)
        except json.JSONDecodeError as exc:
            raise MalformedReceipt("Google receipt is not valid JSON") from exc
    else:
        data = receipt
    if not isinstance(data, Mapping):
        raise MalformedReceipt("Google receipt is not a JSON object")

    fields = []
    for name in ("packageName", "productId", "purchaseToken"):
        value = data.get(name)
        if not isinstance(value, str) or not value:
            raise MalformedReceipt(f"Google receipt is missing {name}")
        fields.append(value)
    return fields[0], fields[1], fields[2]


def _google_error_message(body: dict[str, Any]) -> str:
    error = body.get("error")
    if isinstance(error, dict):
        return str(error.get("message") or "Purchase lookup failed")
    if isinstance(error, str):
        return str(body.get("error_description") or error)
    return "Purchase lookup failed"
