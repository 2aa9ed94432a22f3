"""RS256 signing of service-account assertions (RFC 7523 JWT bearer grant)."""

import json
import time
from typing import Any

import jwt

from lmsmobile.core.errors import SigningFailed, UnsupportedAlgorithm
from lmsmobile.crypto.keys import load_private_key
from lmsmobile.crypto.types import GOOGLE_TOKEN_URI, ServiceAccountKey

ASSERTION_TTL = 3600
SUPPORTED_SIGNING_ALGS = frozenset({"RS256", "RS384", "RS512"})

FIREBASE_MESSAGING_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
ANDROID_PUBLISHER_SCOPE = "https://www.googleapis.com/auth/androidpublisher"


def sign(claims: dict[str, Any], private_key_pem: str, alg: str = "RS256") -> str:
    """Sign a claim set and return the compact token."""
    if alg not in SUPPORTED_SIGNING_ALGS:
        raise UnsupportedAlgorithm(f"Cannot sign with {alg!r}")
    key = load_private_key(private_key_pem)
    try:
        # Claims are signed as given, with no registered-claim checks.
        payload = json.dumps(claims, separators=(",", ":")).encode()
        token = jwt.PyJWS().encode(payload, key, algorithm=alg, headers={"typ": "JWT"})
    except (jwt.PyJWTError, ValueError, TypeError) as exc:
        raise SigningFailed(f"Signing with {alg} failed") from exc
    if not token or token.endswith("."):
        raise SigningFailed("Signing produced an empty signature")
    return token


def build_service_account_claims(
    account: ServiceAccountKey,
    scope: str,
    *,
    include_subject: bool = False,
    now: int | None = None,
    ttl_seconds: int = ASSERTION_TTL,
) -> dict[str, Any]:
    """Claim set for exchanging a service account for an access token."""
    issued_at = int(time.time()) if now is None else now
    claims: dict[str, Any] = {"iss": account.client_email}
    if include_subject:
        claims["sub"] = account.client_email
    claims.update(
        {
            "scope": scope,
            "aud": GOOGLE_TOKEN_URI,
            "exp": issued_at + ttl_seconds,
            "iat": issued_at,
        }
    )
    return claims


def sign_service_account_assertion(
    account: ServiceAccountKey,
    scope: str,
    *,
    include_subject: bool = False,
    now: int | None = None,
) -> str:
    """Build and sign a fresh assertion; assertions are never reused."""
    claims = build_service_account_claims(
        account, scope, include_subject=include_subject, now=now
    )
    return sign(claims, account.private_key)
