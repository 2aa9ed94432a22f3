"""JWT-safe base64 (RFC 4648 section 5, no padding)."""

import base64
import binascii
import json
import re
from typing import Any

from lmsmobile.core.errors import DecodeError

_ALPHABET = re.compile(r"^[A-Za-z0-9_-]*$")


def encode(data: bytes) -> str:
    """Encode bytes as unpadded base64url."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def decode(data: str) -> bytes:
    """Decode base64url, with or without padding."""
    stripped = data.rstrip("=")
    if not _ALPHABET.match(stripped):
        raise DecodeError("Invalid base64url characters")
    if len(stripped) % 4 == 1:
        raise DecodeError("Invalid base64url length")
    padded = stripped + "=" * (-len(stripped) % 4)
    try:
        return base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError("Invalid base64url data") from exc


def encode_json(obj: dict[str, Any]) -> str:
    """Compact-JSON then base64url a JWT header or claim set."""
    return encode(json.dumps(obj, separators=(",", ":")).encode())


def decode_json(segment: str) -> dict[str, Any]:
    """Decode a JWT segment into a JSON object."""
    raw = decode(segment)
    try:
        value = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise DecodeError("Segment is not valid JSON") from exc
    if not isinstance(value, dict):
        raise DecodeError("Segment is not a JSON object")
    return value
