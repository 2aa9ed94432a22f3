"""Conversion between RSA JSON Web Keys and PEM SubjectPublicKeyInfo."""

import base64
from collections.abc import Mapping
from typing import Any

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey

from lmsmobile.core.errors import DecodeError, UnsupportedKeyType
from lmsmobile.crypto import base64url
from lmsmobile.crypto.types import JWK

_TAG_INTEGER = 0x02
_TAG_BIT_STRING = 0x03
_TAG_SEQUENCE = 0x30

# SEQUENCE { OID 1.2.840.113549.1.1.1 rsaEncryption, NULL }
_RSA_ALGORITHM_IDENTIFIER = bytes.fromhex("300d06092a864886f70d0101010500")

_PEM_LINE_LENGTH = 64


def _der_length(length: int) -> bytes:
    """DER definite length, short form up to 127 and long form above."""
    if length <= 0x7F:
        return bytes([length])
    encoded = length.to_bytes((length.bit_length() + 7) // 8, "big")
    return bytes([0x80 | len(encoded)]) + encoded


def _der(tag: int, content: bytes) -> bytes:
    return bytes([tag]) + _der_length(len(content)) + content


def _der_unsigned_integer(raw: bytes) -> bytes:
    """Encode big-endian magnitude bytes as a non-negative INTEGER."""
    value = raw.lstrip(b"\x00") or b"\x00"
    if value[0] & 0x80:
        value = b"\x00" + value
    return _der(_TAG_INTEGER, value)


def jwk_to_der(jwk: JWK | Mapping[str, Any]) -> bytes:
    """Build the DER SubjectPublicKeyInfo for an RSA JWK."""
    key = jwk if isinstance(jwk, JWK) else JWK.model_validate(dict(jwk))
    if key.kty != "RSA":
        raise UnsupportedKeyType(f"Unsupported key type {key.kty!r}")
    if not key.n or not key.e:
        raise DecodeError("JWK is missing modulus or exponent")

    modulus = base64url.decode(key.n)
    exponent = base64url.decode(key.e)

    rsa_public_key = _der(
        _TAG_SEQUENCE,
        _der_unsigned_integer(modulus) + _der_unsigned_integer(exponent),
    )
    bit_string = _der(_TAG_BIT_STRING, b"\x00" + rsa_public_key)
    return _der(_TAG_SEQUENCE, _RSA_ALGORITHM_IDENTIFIER + bit_string)


def jwk_to_pem(jwk: JWK | Mapping[str, Any]) -> str:
    """Convert an RSA JWK into a PEM public key."""
    body = base64.b64encode(jwk_to_der(jwk)).decode("ascii")
    lines = [
        body[i : i + _PEM_LINE_LENGTH] for i in range(0, len(body), _PEM_LINE_LENGTH)
    ]
    return "-----BEGIN PUBLIC KEY-----\n" + "\n".join(lines) + "\n-----END PUBLIC KEY-----\n"


def _int_to_base64url(value: int) -> str:
    """Encode an integer as base64url without padding."""
    byte_length = (value.bit_length() + 7) // 8
    return base64url.encode(value.to_bytes(byte_length, byteorder="big"))


def public_key_to_jwk(public_key_pem: str, kid: str) -> JWK:
    """Convert a PEM public key to JWK format."""
    loaded = serialization.load_pem_public_key(public_key_pem.encode())
    if not isinstance(loaded, RSAPublicKey):
        raise UnsupportedKeyType("Only RSA public keys can be published as JWK")
    numbers = loaded.public_numbers()
    return JWK(
        kty="RSA",
        kid=kid,
        alg="RS256",
        use="sig",
        n=_int_to_base64url(numbers.n),
        e=_int_to_base64url(numbers.e),
    )
