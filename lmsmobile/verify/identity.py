"""Social-login identity verification for Apple, Google and Facebook."""

import time
from collections.abc import Callable, Iterable
from typing import Any, Protocol

import httpx

from lmsmobile.core.errors import (
    ConfigurationError,
    ExpiredToken,
    InvalidAudience,
    InvalidIssuer,
    LMSMobileError,
    MalformedToken,
    MissingEmail,
    TokenExchangeError,
    TokenRejected,
)
from lmsmobile.core.http import is_success, request_json
from lmsmobile.core.settings import VerificationSettings
from lmsmobile.crypto.jwt_verifier import peek_header, verify
from lmsmobile.verify.apple_keys import AppleKeyResolver
from lmsmobile.verify.audit import VerificationAuditor
from lmsmobile.verify.types import IdentityClaims, Provider, VerificationResult

APPLE_ISSUER = "https://appleid.apple.com"
GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"
FACEBOOK_GRAPH_URL = "https://graph.facebook.com"
FACEBOOK_PROFILE_FIELDS = "email,name,first_name,last_name"


class IdentityVerifier(Protocol):
    """Common interface for all social-login providers."""

    provider: Provider

    async def verify(self, token: str) -> VerificationResult: ...


class _AuditedVerifier:
    """Turns provider errors into results and records every attempt."""

    provider: Provider

    def __init__(self, auditor: VerificationAuditor) -> None:
        self._auditor = auditor

    async def verify(self, token: str) -> VerificationResult:
        try:
            identity = await self._verify(token)
            result = VerificationResult(
                success=True, provider=self.provider, identity=identity
            )
        except LMSMobileError as exc:
            result = VerificationResult.failed(self.provider, exc)
        subject = ""
        if result.identity is not None:
            subject = result.identity.subject or result.identity.email
        await self._auditor.record(self.provider, subject, result)
        return result

    async def _verify(self, token: str) -> IdentityClaims:
        raise NotImplementedError


class AppleIdentityVerifier(_AuditedVerifier):
    """Verifies Sign in with Apple identity tokens (RS256 only)."""

    provider = Provider.APPLE

    def __init__(
        self,
        settings: VerificationSettings,
        resolver: AppleKeyResolver,
        auditor: VerificationAuditor,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(auditor)
        self._settings = settings
        self._resolver = resolver
        self._clock = clock

    async def _verify(self, token: str) -> IdentityClaims:
        kid = peek_header(token).get("kid")
        if not isinstance(kid, str) or not kid:
            raise MalformedToken("Identity token header has no kid")

        public_key = await self._resolver.resolve(kid)
        payload = verify(token, public_key, {"RS256"})

        if payload.get("iss") != APPLE_ISSUER:
            raise InvalidIssuer("Identity token was not issued by Apple")

        exp = payload.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, int | float):
            raise MalformedToken("Identity token has no numeric exp")
        if exp < self._clock():
            raise ExpiredToken("Identity token has expired")

        client_id = self._settings.apple_client_id
        if client_id and client_id not in _audiences(payload.get("aud")):
            raise InvalidAudience("Identity token is for another client")

        email = payload.get("email")
        if not isinstance(email, str) or not email:
            raise MissingEmail("Identity token carries no email")

        return IdentityClaims(
            provider=Provider.APPLE,
            subject=str(payload.get("sub") or ""),
            email=email,
        )


class GoogleIdentityVerifier(_AuditedVerifier):
    """Verifies Google ID tokens with the tokeninfo endpoint."""

    provider = Provider.GOOGLE

    def __init__(
        self,
        settings: VerificationSettings,
        http: httpx.AsyncClient,
        auditor: VerificationAuditor,
        *,
        tokeninfo_url: str = GOOGLE_TOKENINFO_URL,
    ) -> None:
        super().__init__(auditor)
        self._settings = settings
        self._http = http
        self._tokeninfo_url = tokeninfo_url

    async def _verify(self, token: str) -> IdentityClaims:
        client_id = self._settings.google_client_id
        if not client_id:
            raise ConfigurationError("Google client id is not configured")

        status, body = await request_json(
            self._http, "GET", self._tokeninfo_url, params={"id_token": token}
        )
        if "error" in body:
            raise TokenRejected(
                str(body.get("error_description") or body["error"]),
                {"status": status},
            )
        if not is_success(status):
            raise TokenRejected("Google rejected the ID token", {"status": status})

        if not body.get("aud") or body.get("aud") != client_id:
            raise InvalidAudience("ID token is for another client")

        email = body.get("email")
        if not isinstance(email, str) or not email:
            raise MissingEmail("ID token carries no email")

        return IdentityClaims(
            provider=Provider.GOOGLE,
            subject=str(body.get("sub") or ""),
            email=email,
            name=str(body.get("name") or ""),
        )


class FacebookIdentityVerifier(_AuditedVerifier):
    """Verifies Facebook user access tokens through the Graph API.

    The user token is inspected with debug_token (authenticated by an app
    token) before it is used to read the profile.
    """

    provider = Provider.FACEBOOK

    def __init__(
        self,
        settings: VerificationSettings,
        http: httpx.AsyncClient,
        auditor: VerificationAuditor,
        *,
        graph_url: str = FACEBOOK_GRAPH_URL,
    ) -> None:
        super().__init__(auditor)
        self._settings = settings
        self._http = http
        self._graph_url = graph_url.rstrip("/")

    async def _verify(self, token: str) -> IdentityClaims:
        app_id = self._settings.facebook_app_id
        app_secret = self._settings.facebook_app_secret
        if not app_id or not app_secret:
            raise ConfigurationError("Facebook app id or secret is not configured")

        app_token = await self._app_access_token(app_id, app_secret)
        await self._debug_token(token, app_token, app_id)

        status, profile = await request_json(
            self._http,
            "GET",
            f"{self._graph_url}/me",
            params={"fields": FACEBOOK_PROFILE_FIELDS, "access_token": token},
        )
        if not is_success(status) or "error" in profile:
            raise TokenRejected(_graph_error_message(profile), {"status": status})

        email = profile.get("email")
        if not isinstance(email, str) or not email:
            raise MissingEmail("Facebook profile has no email")

        name = profile.get("name") or " ".join(
            part for part in (profile.get("first_name"), profile.get("last_name")) if part
        )
        return IdentityClaims(
            provider=Provider.FACEBOOK,
            subject=str(profile.get("id") or ""),
            email=email,
            name=str(name or ""),
        )

    async def _app_access_token(self, app_id: str, app_secret: str) -> str:
        status, body = await request_json(
            self._http,
            "GET",
            f"{self._graph_url}/oauth/access_token",
            params={
                "client_id": app_id,
                "client_secret": app_secret,
                "grant_type": "client_credentials",
            },
        )
        app_token = body.get("access_token")
        if not is_success(status) or not isinstance(app_token, str) or not app_token:
            raise TokenExchangeError(
                _graph_error_message(body, "Facebook app credentials were rejected"),
                {"status": status},
            )
        return app_token

    async def _debug_token(self, token: str, app_token: str, app_id: str) -> None:
        status, body = await request_json(
            self._http,
            "GET",
            f"{self._graph_url}/debug_token",
            params={"input_token": token, "access_token": app_token},
        )
        data = body.get("data")
        if not is_success(status) or not isinstance(data, dict):
            raise TokenRejected(_graph_error_message(body), {"status": status})
        if str(data.get("app_id", "")) != app_id:
            raise InvalidAudience("Facebook token was issued to another app")
        if data.get("is_valid") is not True:
            raise TokenRejected("Facebook reports the token as invalid")


class IdentityVerifierRegistry:
    """Dispatches verification to the verifier registered for a provider."""

    def __init__(self, verifiers: Iterable[IdentityVerifier]) -> None:
        self._verifiers = {v.provider: v for v in verifiers}

    def get(self, provider: Provider | str) -> IdentityVerifier:
        return self._verifiers[Provider(provider)]

    async def verify(self, provider: Provider | str, token: str) -> VerificationResult:
        return await self.get(provider).verify(token)


def _audiences(aud: Any) -> list[str]:
    if isinstance(aud, list):
        return [str(a) for a in aud]
    if aud is None:
        return []
    return [str(aud)]


def _graph_error_message(body: dict[str, Any], default: str = "Facebook rejected the token") -> str:
    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    data = body.get("data")
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        return str(data["error"].get("message") or default)
    return default
