"""Push notifications through Firebase Cloud Messaging HTTP v1."""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

import httpx
from pydantic import BaseModel

from lmsmobile.core.errors import ConfigurationError, LMSMobileError, TokenRejected
from lmsmobile.core.http import is_success, request_json
from lmsmobile.core.settings import VerificationSettings
from lmsmobile.crypto.jwt_signer import FIREBASE_MESSAGING_SCOPE
from lmsmobile.crypto.keys import load_service_account
from lmsmobile.oauth.service_account import ServiceAccountTokenProvider
from lmsmobile.verify.audit import VerificationAuditor

logger = logging.getLogger(__name__)

FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
AUDIT_PROVIDER = "firebase"
DEVICE_TOKEN_LOG_PREFIX = 20


class Device(BaseModel):
    """A registered push target."""

    token: str
    platform: str = "android"


class PushResult(BaseModel):
    """Outcome of sending one message to one device."""

    success: bool
    device_token: str
    message_name: str | None = None
    error: str | None = None
    error_description: str | None = None
    config_fault: bool = False


def build_message(
    device: Device,
    title: str,
    body: str,
    data: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """FCM v1 message with the platform block the mobile app expects."""
    message: dict[str, Any] = {
        "token": device.token,
        "notification": {"title": title, "body": body},
    }
    if data:
        message["data"] = {str(k): str(v) for k, v in data.items()}
    if device.platform == "ios":
        message["apns"] = {"payload": {"aps": {"sound": "default", "badge": 1}}}
    else:
        message["android"] = {"priority": "high", "notification": {"sound": "default"}}
    return {"message": message}


class FirebaseMessenger:
    """Sends notifications with a service-account bearer token."""

    def __init__(
        self,
        settings: VerificationSettings,
        http: httpx.AsyncClient,
        tokens: ServiceAccountTokenProvider,
        auditor: VerificationAuditor,
        *,
        send_url: str = FCM_SEND_URL,
    ) -> None:
        self._settings = settings
        self._http = http
        self._tokens = tokens
        self._auditor = auditor
        self._send_url = send_url

    async def send(
        self,
        device_token: str,
        title: str,
        body: str,
        *,
        data: Mapping[str, Any] | None = None,
        platform: str = "android",
    ) -> PushResult:
        device = Device(token=device_token, platform=platform)
        return (await self.send_many([device], title, body, data=data))[0]

    async def send_many(
        self,
        devices: Iterable[Device],
        title: str,
        body: str,
        *,
        data: Mapping[str, Any] | None = None,
    ) -> list[PushResult]:
        """Send to each device in turn with one access token for the batch."""
        targets = list(devices)
        try:
            url, access_token = await self._prepare()
        except LMSMobileError as exc:
            results = [_failed(d, exc) for d in targets]
        else:
            results = []
            for device in targets:
                try:
                    name = await self._deliver(url, access_token, device, title, body, data)
                    results.append(
                        PushResult(success=True, device_token=device.token, message_name=name)
                    )
                except LMSMobileError as exc:
                    results.append(_failed(device, exc))

        for result in results:
            await self._auditor.record(
                AUDIT_PROVIDER,
                result.device_token[:DEVICE_TOKEN_LOG_PREFIX] + "...",
                result,
                {"title": title},
            )
        logger.info(
            "Delivered %d of %d notifications",
            sum(1 for r in results if r.success),
            len(results),
        )
        return results

    async def _prepare(self) -> tuple[str, str]:
        project_id = self._settings.firebase_project_id
        if not project_id:
            raise ConfigurationError("Firebase project id is not configured")
        account = load_service_account(
            self._settings.firebase_service_account,
            self._settings.secrets_encryption_key,
        )
        access_token = await self._tokens.get_token(account, FIREBASE_MESSAGING_SCOPE)
        return self._send_url.format(project_id=project_id), access_token

    async def _deliver(
        self,
        url: str,
        access_token: str,
        device: Device,
        title: str,
        body: str,
        data: Mapping[str, Any] | None,
    ) -> str:
        status, response = await request_json(
            self._http,
            "POST",
            url,
            json=build_message(device, title, body, data),
            headers={"Authorization": f"Bearer {access_token}"},
        )
        name = response.get("name")
        if not is_success(status) or not isinstance(name, str):
            error = response.get("error")
            message = error.get("message") if isinstance(error, dict) else None
            raise TokenRejected(message or "FCM did not accept the message", {"status": status})
        return name


def _failed(device: Device, exc: LMSMobileError) -> PushResult:
    return PushResult(
        success=False,
        device_token=device.token,
        error=exc.code,
        error_description=exc.message,
        config_fault=isinstance(exc, ConfigurationError),
    )
