"""Access tokens for Google APIs minted from a service account."""

import logging

from lmsmobile.core.cache import TTLCache
from lmsmobile.crypto.jwt_signer import sign_service_account_assertion
from lmsmobile.crypto.types import ServiceAccountKey
from lmsmobile.oauth.token_exchange import TokenExchangeClient

logger = logging.getLogger(__name__)

EXPIRY_MARGIN_SECONDS = 60


class ServiceAccountTokenProvider:
    """Signs a fresh assertion and exchanges it for a bearer token.

    With caching enabled, tokens are reused per (account, scope) until
    EXPIRY_MARGIN_SECONDS before they expire. Assertions are never cached.
    """

    def __init__(
        self,
        exchange: TokenExchangeClient,
        *,
        cache: TTLCache[str] | None = None,
    ) -> None:
        self._exchange = exchange
        self._cache = cache

    async def get_token(
        self,
        account: ServiceAccountKey,
        scope: str,
        *,
        include_subject: bool = False,
    ) -> str:
        cache_key = f"{account.client_email}|{scope}|{int(include_subject)}"
        if self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                return cached

        assertion = sign_service_account_assertion(
            account, scope, include_subject=include_subject
        )
        token = await self._exchange.exchange_for_token(assertion)
        logger.debug("Minted access token for %s (%s)", account.client_email, scope)

        if self._cache is not None:
            self._cache.set(
                cache_key,
                token.access_token,
                token.expires_in - EXPIRY_MARGIN_SECONDS,
            )
        return token.access_token
