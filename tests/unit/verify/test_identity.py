"""Tests for Apple, Google and Facebook identity verification."""

from collections.abc import Callable
from typing import Any

import httpx
import jwt
import pytest

from lmsmobile.core.settings import VerificationSettings
from lmsmobile.crypto import base64url
from lmsmobile.crypto.jwk import public_key_to_jwk
from lmsmobile.verify.apple_keys import AppleKeyResolver
from lmsmobile.verify.audit import VerificationAuditor
from lmsmobile.verify.identity import (
    APPLE_ISSUER,
    FACEBOOK_PROFILE_FIELDS,
    AppleIdentityVerifier,
    FacebookIdentityVerifier,
    GoogleIdentityVerifier,
    IdentityVerifierRegistry,
)
from lmsmobile.verify.types import Provider

MakeHttp = Callable[..., httpx.AsyncClient]

NOW = 1_700_000_000
APPLE_KID = "apple-kid-1"


def _apple_claims(**overrides: Any) -> dict[str, Any]:
    claims = {
        "iss": APPLE_ISSUER,
        "aud": "com.example.lms",
        "sub": "001234.abcd",
        "email": "student@privaterelay.appleid.com",
        "iat": NOW - 60,
        "exp": NOW + 600,
    }
    claims.update(overrides)
    return {k: v for k, v in claims.items() if v is not None}


@pytest.fixture
def apple_token(rsa_keypair: tuple[str, str]) -> Callable[..., str]:
    private_pem, _ = rsa_keypair

    def _sign(kid: str | None = APPLE_KID, key: str = private_pem, **overrides: Any) -> str:
        headers = {"kid": kid} if kid else {}
        return jwt.encode(_apple_claims(**overrides), key, algorithm="RS256", headers=headers)

    return _sign


@pytest.fixture
def apple_verifier(
    settings: VerificationSettings,
    make_http: MakeHttp,
    auditor: VerificationAuditor,
    rsa_keypair: tuple[str, str],
) -> AppleIdentityVerifier:
    jwks = {"keys": [public_key_to_jwk(rsa_keypair[1], APPLE_KID).model_dump()]}
    http = make_http(lambda _r: httpx.Response(200, json=jwks))
    return AppleIdentityVerifier(
        settings, AppleKeyResolver(http), auditor, clock=lambda: NOW
    )


class TestAppleIdentityVerifier:
    """Tests for Sign in with Apple identity tokens."""

    async def test_valid_token(
        self, apple_verifier: AppleIdentityVerifier, apple_token: Callable[..., str]
    ) -> None:
        result = await apple_verifier.verify(apple_token())
        assert result.success
        assert result.identity is not None
        assert result.identity.provider == Provider.APPLE
        assert result.identity.email == "student@privaterelay.appleid.com"
        assert result.identity.subject == "001234.abcd"

    async def test_wrong_issuer(
        self, apple_verifier: AppleIdentityVerifier, apple_token: Callable[..., str]
    ) -> None:
        result = await apple_verifier.verify(apple_token(iss="https://evil.example"))
        assert result.error == "invalid_issuer"

    async def test_expired(
        self, apple_verifier: AppleIdentityVerifier, apple_token: Callable[..., str]
    ) -> None:
        result = await apple_verifier.verify(apple_token(exp=NOW - 1))
        assert result.error == "expired_token"

    async def test_missing_exp(
        self, apple_verifier: AppleIdentityVerifier, rsa_keypair: tuple[str, str]
    ) -> None:
        claims = _apple_claims()
        del claims["exp"]
        token = jwt.encode(claims, rsa_keypair[0], algorithm="RS256", headers={"kid": APPLE_KID})
        result = await apple_verifier.verify(token)
        assert result.error == "malformed_token"

    async def test_missing_email(
        self, apple_verifier: AppleIdentityVerifier, apple_token: Callable[..., str]
    ) -> None:
        result = await apple_verifier.verify(apple_token(email=None))
        assert result.error == "missing_email"

    async def test_audience_checked_when_configured(
        self, apple_verifier: AppleIdentityVerifier, apple_token: Callable[..., str]
    ) -> None:
        result = await apple_verifier.verify(apple_token(aud="com.other.app"))
        assert result.error == "invalid_audience"

    async def test_audience_ignored_when_unconfigured(
        self,
        settings: VerificationSettings,
        make_http: MakeHttp,
        auditor: VerificationAuditor,
        rsa_keypair: tuple[str, str],
        apple_token: Callable[..., str],
    ) -> None:
        jwks = {"keys": [public_key_to_jwk(rsa_keypair[1], APPLE_KID).model_dump()]}
        verifier = AppleIdentityVerifier(
            settings.model_copy(update={"apple_client_id": ""}),
            AppleKeyResolver(make_http(lambda _r: httpx.Response(200, json=jwks))),
            auditor,
            clock=lambda: NOW,
        )
        result = await verifier.verify(apple_token(aud="com.other.app"))
        assert result.success

    async def test_unknown_kid(
        self, apple_verifier: AppleIdentityVerifier, apple_token: Callable[..., str]
    ) -> None:
        result = await apple_verifier.verify(apple_token(kid="rotated-away"))
        assert result.error == "key_not_found"

    async def test_header_without_kid(
        self, apple_verifier: AppleIdentityVerifier, apple_token: Callable[..., str]
    ) -> None:
        result = await apple_verifier.verify(apple_token(kid=None))
        assert result.error == "malformed_token"

    async def test_signed_by_other_key(
        self,
        apple_verifier: AppleIdentityVerifier,
        apple_token: Callable[..., str],
        other_keypair: tuple[str, str],
    ) -> None:
        result = await apple_verifier.verify(apple_token(key=other_keypair[0]))
        assert result.error == "signature_invalid"

    async def test_symmetric_algorithm_rejected(
        self, apple_verifier: AppleIdentityVerifier, apple_token: Callable[..., str]
    ) -> None:
        _, payload, signature = apple_token().split(".")
        header = base64url.encode_json({"alg": "HS256", "kid": APPLE_KID})
        result = await apple_verifier.verify(f"{header}.{payload}.{signature}")
        assert result.error == "unsupported_algorithm"

    async def test_garbage_token(self, apple_verifier: AppleIdentityVerifier) -> None:
        result = await apple_verifier.verify("garbage")
        assert not result.success
        assert result.error == "malformed_token"

    async def test_audit_uses_subject(
        self,
        apple_verifier: AppleIdentityVerifier,
        apple_token: Callable[..., str],
        audit_sink,
    ) -> None:
        await apple_verifier.verify(apple_token())
        [record] = audit_sink.records
        assert record.provider == "apple"
        assert record.subject == "001234.abcd"
        assert record.success


GOOGLE_CLIENT_ID = "google-client.apps.googleusercontent.com"


class TestGoogleIdentityVerifier:
    """Tests for Google ID tokens checked through tokeninfo."""

    async def test_valid_token(
        self, settings: VerificationSettings, make_http: MakeHttp, auditor: VerificationAuditor
    ) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "aud": GOOGLE_CLIENT_ID,
                    "sub": "1098",
                    "email": "student@gmail.com",
                    "name": "Student Name",
                },
            )

        verifier = GoogleIdentityVerifier(settings, make_http(handler), auditor)
        result = await verifier.verify("google.id.token")

        assert result.success
        assert result.identity is not None
        assert result.identity.email == "student@gmail.com"
        assert result.identity.name == "Student Name"
        assert result.identity.subject == "1098"
        assert seen[0].url.params["id_token"] == "google.id.token"

    async def test_audience_mismatch(
        self, settings: VerificationSettings, make_http: MakeHttp, auditor: VerificationAuditor
    ) -> None:
        http = make_http(
            lambda _r: httpx.Response(200, json={"aud": "other", "email": "a@b.com"})
        )
        result = await GoogleIdentityVerifier(settings, http, auditor).verify("t")
        assert result.error == "invalid_audience"

    async def test_rejected_token(
        self, settings: VerificationSettings, make_http: MakeHttp, auditor: VerificationAuditor
    ) -> None:
        http = make_http(
            lambda _r: httpx.Response(
                400,
                json={"error": "invalid_token", "error_description": "Invalid Value"},
            )
        )
        result = await GoogleIdentityVerifier(settings, http, auditor).verify("t")
        assert result.error == "token_rejected"
        assert result.error_description == "Invalid Value"

    async def test_missing_email(
        self, settings: VerificationSettings, make_http: MakeHttp, auditor: VerificationAuditor
    ) -> None:
        http = make_http(lambda _r: httpx.Response(200, json={"aud": GOOGLE_CLIENT_ID}))
        result = await GoogleIdentityVerifier(settings, http, auditor).verify("t")
        assert result.error == "missing_email"

    async def test_unconfigured_client(
        self, settings: VerificationSettings, make_http: MakeHttp, auditor: VerificationAuditor
    ) -> None:
        calls: list[int] = []

        def handler(_request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(200, json={})

        verifier = GoogleIdentityVerifier(
            settings.model_copy(update={"google_client_id": ""}), make_http(handler), auditor
        )
        result = await verifier.verify("t")
        assert result.config_fault
        assert calls == []


class _Graph:
    """Scripted Graph API keyed by path."""

    def __init__(self, **responses: dict[str, Any]) -> None:
        self.responses = {
            "/oauth/access_token": {"access_token": "app|token"},
            "/debug_token": {"data": {"app_id": "1234567890", "is_valid": True}},
            "/me": {
                "id": "fb-42",
                "email": "student@example.com",
                "first_name": "Ada",
                "last_name": "Lovelace",
            },
        }
        self.responses.update({f"/{k}": v for k, v in responses.items()})
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = self.responses[request.url.path]
        status = 400 if "error" in body else 200
        return httpx.Response(status, json=body)

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


class TestFacebookIdentityVerifier:
    """Tests for Facebook access tokens checked through the Graph API."""

    async def test_valid_token_call_order(
        self, settings: VerificationSettings, make_http: MakeHttp, auditor: VerificationAuditor
    ) -> None:
        graph = _Graph()
        verifier = FacebookIdentityVerifier(settings, make_http(graph), auditor)

        result = await verifier.verify("user-token")

        assert result.success
        assert result.identity is not None
        assert result.identity.email == "student@example.com"
        assert result.identity.name == "Ada Lovelace"
        assert result.identity.subject == "fb-42"
        assert graph.paths == ["/oauth/access_token", "/debug_token", "/me"]

        app_request, debug_request, me_request = graph.requests
        assert app_request.url.params["client_id"] == "1234567890"
        assert app_request.url.params["client_secret"] == "fb-secret"
        assert app_request.url.params["grant_type"] == "client_credentials"
        assert debug_request.url.params["input_token"] == "user-token"
        assert debug_request.url.params["access_token"] == "app|token"
        assert me_request.url.params["access_token"] == "user-token"
        assert me_request.url.params["fields"] == FACEBOOK_PROFILE_FIELDS

    async def test_prefers_full_name(
        self, settings: VerificationSettings, make_http: MakeHttp, auditor: VerificationAuditor
    ) -> None:
        graph = _Graph(me={"id": "1", "email": "a@b.com", "name": "Full Name"})
        result = await FacebookIdentityVerifier(settings, make_http(graph), auditor).verify("t")
        assert result.identity is not None
        assert result.identity.name == "Full Name"

    async def test_token_for_other_app(
        self, settings: VerificationSettings, make_http: MakeHttp, auditor: VerificationAuditor
    ) -> None:
        graph = _Graph(debug_token={"data": {"app_id": "999", "is_valid": True}})
        result = await FacebookIdentityVerifier(settings, make_http(graph), auditor).verify("t")
        assert result.error == "invalid_audience"
        assert "/me" not in graph.paths

    async def test_invalid_token(
        self, settings: VerificationSettings, make_http: MakeHttp, auditor: VerificationAuditor
    ) -> None:
        graph = _Graph(debug_token={"data": {"app_id": "1234567890", "is_valid": False}})
        result = await FacebookIdentityVerifier(settings, make_http(graph), auditor).verify("t")
        assert result.error == "token_rejected"
        assert "/me" not in graph.paths

    async def test_app_credentials_rejected(
        self, settings: VerificationSettings, make_http: MakeHttp, auditor: VerificationAuditor
    ) -> None:
        graph = _Graph(
            **{"oauth/access_token": {"error": {"message": "Invalid client_secret"}}}
        )
        result = await FacebookIdentityVerifier(settings, make_http(graph), auditor).verify("t")
        assert result.error == "token_exchange_error"
        assert result.error_description == "Invalid client_secret"
        assert graph.paths == ["/oauth/access_token"]

    async def test_profile_without_email(
        self, settings: VerificationSettings, make_http: MakeHttp, auditor: VerificationAuditor
    ) -> None:
        graph = _Graph(me={"id": "1", "name": "No Email"})
        result = await FacebookIdentityVerifier(settings, make_http(graph), auditor).verify("t")
        assert result.error == "missing_email"

    async def test_unconfigured_app(
        self, settings: VerificationSettings, make_http: MakeHttp, auditor: VerificationAuditor
    ) -> None:
        graph = _Graph()
        verifier = FacebookIdentityVerifier(
            settings.model_copy(update={"facebook_app_secret": ""}), make_http(graph), auditor
        )
        result = await verifier.verify("t")
        assert result.config_fault
        assert graph.requests == []


class TestIdentityVerifierRegistry:
    """Tests for provider dispatch."""

    async def test_dispatches_by_provider(
        self, settings: VerificationSettings, make_http: MakeHttp, auditor: VerificationAuditor
    ) -> None:
        graph = _Graph()
        registry = IdentityVerifierRegistry(
            [FacebookIdentityVerifier(settings, make_http(graph), auditor)]
        )
        result = await registry.verify("facebook", "t")
        assert result.success
        assert result.provider == "facebook"

    def test_unknown_provider(self) -> None:
        registry = IdentityVerifierRegistry([])
        with pytest.raises(ValueError):
            registry.get("myspace")

    def test_unregistered_provider(self) -> None:
        registry = IdentityVerifierRegistry([])
        with pytest.raises(KeyError):
            registry.get(Provider.GOOGLE)
