"""OAuth2 JWT-bearer grant: trade a signed assertion for an access token."""

import logging

import httpx
from pydantic import BaseModel, ValidationError

from lmsmobile.core.errors import TokenExchangeError, TransportError
from lmsmobile.core.http import is_success, request_json
from lmsmobile.crypto.types import GOOGLE_TOKEN_URI

logger = logging.getLogger(__name__)

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ACCESS_TOKEN_DEFAULT_TTL = 3600


class AccessToken(BaseModel):
    """Token endpoint response."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int = ACCESS_TOKEN_DEFAULT_TTL


class TokenExchangeClient:
    """Posts assertions to a token endpoint. No retries, no caching."""

    def __init__(self, http: httpx.AsyncClient, token_url: str = GOOGLE_TOKEN_URI) -> None:
        self._http = http
        self._token_url = token_url

    async def exchange_for_token(self, assertion: str) -> AccessToken:
        """Exchange an assertion and return the full token response."""
        try:
            status, body = await request_json(
                self._http,
                "POST",
                self._token_url,
                data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
            )
        except TransportError as exc:
            raise TokenExchangeError(f"Token endpoint unreachable: {exc.message}") from exc
        if not is_success(status) or not body.get("access_token"):
            description = body.get("error_description") or body.get("error") or ""
            logger.warning("Token exchange failed (%s): %s", status, description)
            raise TokenExchangeError(
                description or "Token endpoint returned no access token",
                {"status": status},
            )
        try:
            return AccessToken.model_validate(body)
        except ValidationError as exc:
            raise TokenExchangeError("Token endpoint response is malformed") from exc

    async def exchange(self, assertion: str) -> str:
        """Exchange an assertion for a bearer access token string."""
        token = await self.exchange_for_token(assertion)
        return token.access_token
