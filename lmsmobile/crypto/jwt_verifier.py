"""Signature verification of compact JWS tokens against a known public key.

Only the signature is checked here. Issuer, expiry and audience belong to
the caller, which knows what the provider promises about those claims.
"""

from collections.abc import Iterable
from typing import Any

from jwt.algorithms import get_default_algorithms
from jwt.exceptions import InvalidKeyError

from lmsmobile.core.errors import (
    DecodeError,
    MalformedToken,
    SignatureInvalid,
    UnsupportedAlgorithm,
)
from lmsmobile.crypto import base64url

DEFAULT_ALLOWED_ALGS = frozenset({"RS256"})


def _split(token: str) -> tuple[str, str, str]:
    parts = token.split(".")
    if len(parts) != 3:
        raise MalformedToken("Token must have exactly three segments")
    header_b64, payload_b64, signature_b64 = parts
    return header_b64, payload_b64, signature_b64


def peek_header(token: str) -> dict[str, Any]:
    """Decode the header without verifying anything (for kid lookup)."""
    header_b64, _, _ = _split(token)
    try:
        return base64url.decode_json(header_b64)
    except DecodeError as exc:
        raise MalformedToken("Token header is not valid base64url JSON") from exc


def verify(
    token: str,
    public_key_pem: str,
    allowed_algs: Iterable[str] = DEFAULT_ALLOWED_ALGS,
) -> dict[str, Any]:
    """Verify a token's signature and return its decoded payload."""
    header_b64, payload_b64, signature_b64 = _split(token)
    try:
        header = base64url.decode_json(header_b64)
        payload = base64url.decode_json(payload_b64)
    except DecodeError as exc:
        raise MalformedToken("Token header or payload is not valid JSON") from exc

    alg = header.get("alg")
    allowed = set(allowed_algs)
    if not isinstance(alg, str) or alg not in allowed:
        raise UnsupportedAlgorithm(f"Algorithm {alg!r} is not allowed")
    algorithm = get_default_algorithms().get(alg)
    if algorithm is None:
        raise UnsupportedAlgorithm(f"Algorithm {alg!r} is not implemented")

    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
    try:
        signature = base64url.decode(signature_b64)
    except DecodeError as exc:
        raise MalformedToken("Token signature is not valid base64url") from exc

    try:
        key = algorithm.prepare_key(public_key_pem)
    except (InvalidKeyError, ValueError, TypeError) as exc:
        raise SignatureInvalid(f"Public key is not usable for {alg}") from exc
    if not algorithm.verify(signing_input, key, signature):
        raise SignatureInvalid("Token signature does not match")
    return payload
