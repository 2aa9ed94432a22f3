"""Explicit construction of every verification service for one app."""

import httpx
from pydantic import BaseModel, ConfigDict

from lmsmobile.core.cache import TTLCache
from lmsmobile.core.settings import VerificationSettings
from lmsmobile.oauth.service_account import ServiceAccountTokenProvider
from lmsmobile.oauth.token_exchange import TokenExchangeClient
from lmsmobile.push.fcm import FirebaseMessenger
from lmsmobile.verify.apple_keys import AppleKeyResolver
from lmsmobile.verify.audit import VerificationAuditor
from lmsmobile.verify.identity import (
    AppleIdentityVerifier,
    FacebookIdentityVerifier,
    GoogleIdentityVerifier,
    IdentityVerifierRegistry,
)
from lmsmobile.verify.receipts import AppleReceiptVerifier, GooglePlayReceiptVerifier


class VerificationServices(BaseModel):
    """Bundle of service objects sharing one HTTP client and auditor."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    settings: VerificationSettings
    auditor: VerificationAuditor
    apple_receipts: AppleReceiptVerifier
    google_receipts: GooglePlayReceiptVerifier
    identity: IdentityVerifierRegistry
    messenger: FirebaseMessenger

    @classmethod
    def from_settings(
        cls,
        settings: VerificationSettings,
        http: httpx.AsyncClient,
        auditor: VerificationAuditor | None = None,
    ) -> "VerificationServices":
        auditor = auditor or VerificationAuditor()

        token_cache: TTLCache[str] | None = (
            TTLCache() if settings.access_token_cache else None
        )
        tokens = ServiceAccountTokenProvider(TokenExchangeClient(http), cache=token_cache)

        jwks_cache: TTLCache | None = TTLCache() if settings.jwks_cache_ttl > 0 else None
        resolver = AppleKeyResolver(
            http, cache=jwks_cache, cache_ttl=settings.jwks_cache_ttl
        )

        identity = IdentityVerifierRegistry(
            [
                AppleIdentityVerifier(settings, resolver, auditor),
                GoogleIdentityVerifier(settings, http, auditor),
                FacebookIdentityVerifier(settings, http, auditor),
            ]
        )
        return cls(
            settings=settings,
            auditor=auditor,
            apple_receipts=AppleReceiptVerifier(settings, http, auditor),
            google_receipts=GooglePlayReceiptVerifier(settings, http, tokens, auditor),
            identity=identity,
            messenger=FirebaseMessenger(settings, http, tokens, auditor),
        )
