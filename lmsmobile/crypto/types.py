"""Type definitions for keys, key sets and service accounts."""

import json

from pydantic import BaseModel, ConfigDict, ValidationError

from lmsmobile.core.errors import ConfigurationError

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


class JWK(BaseModel):
    """Single JSON Web Key as published by an identity provider."""

    model_config = ConfigDict(extra="allow")

    kty: str
    kid: str = ""
    n: str = ""
    e: str = ""
    alg: str | None = None
    use: str | None = None


class JWKSet(BaseModel):
    """JSON Web Key Set response."""

    keys: list[JWK]


class ServiceAccountKey(BaseModel):
    """The parts of a Google service-account JSON file used for signing."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    client_email: str
    private_key: str
    project_id: str | None = None

    @classmethod
    def from_json(cls, raw: str) -> "ServiceAccountKey":
        """Parse service-account JSON, raising ConfigurationError if unusable."""
        if not raw.strip():
            raise ConfigurationError("Service account is not configured")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigurationError("Service account is not valid JSON") from exc
        if not isinstance(data, dict):
            raise ConfigurationError("Service account is not a JSON object")
        try:
            account = cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(
                "Service account is missing client_email or private_key"
            ) from exc
        if not account.client_email or not account.private_key:
            raise ConfigurationError(
                "Service account is missing client_email or private_key"
            )
        return account
