"""Apple Sign-In public key lookup."""

import logging

import httpx
from pydantic import ValidationError

from lmsmobile.core.cache import TTLCache
from lmsmobile.core.errors import KeyNotFound, TransportError
from lmsmobile.core.http import is_success, request_json
from lmsmobile.crypto.jwk import jwk_to_pem
from lmsmobile.crypto.types import JWK, JWKSet

logger = logging.getLogger(__name__)

APPLE_KEYS_URL = "https://appleid.apple.com/auth/keys"


class AppleKeyResolver:
    """Fetches Apple's JWKS and returns the PEM for a given key id.

    Without a cache every resolve performs a fresh fetch.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        keys_url: str = APPLE_KEYS_URL,
        cache: TTLCache[list[JWK]] | None = None,
        cache_ttl: int = 0,
    ) -> None:
        self._http = http
        self._keys_url = keys_url
        self._cache = cache
        self._cache_ttl = cache_ttl

    async def _fetch_keys(self) -> list[JWK]:
        if self._cache is not None:
            cached = self._cache.get(self._keys_url)
            if cached is not None:
                return cached

        status, body = await request_json(self._http, "GET", self._keys_url)
        if not is_success(status):
            raise TransportError("Apple key set request failed", {"status": status})
        try:
            keys = JWKSet.model_validate(body).keys
        except ValidationError as exc:
            raise KeyNotFound("Apple key set response has no usable keys") from exc

        if self._cache is not None:
            self._cache.set(self._keys_url, keys, self._cache_ttl)
        return keys

    async def resolve(self, kid: str) -> str:
        """Return the PEM public key whose kid matches."""
        for key in await self._fetch_keys():
            if key.kid == kid:
                return jwk_to_pem(key)
        logger.warning("Apple key %s not found in published key set", kid)
        raise KeyNotFound(f"No Apple key with kid {kid!r}")
