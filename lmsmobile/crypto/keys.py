"""RSA key loading and encryption of stored service-account secrets."""

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from lmsmobile.core.errors import ConfigurationError, SigningFailed
from lmsmobile.crypto.types import ServiceAccountKey


def load_private_key(private_key_pem: str) -> RSAPrivateKey:
    """Load an unencrypted PEM RSA private key for signing."""
    try:
        key = serialization.load_pem_private_key(
            private_key_pem.encode(), password=None
        )
    except (ValueError, TypeError) as exc:
        raise SigningFailed("Private key is not a readable PEM key") from exc
    if not isinstance(key, RSAPrivateKey):
        raise SigningFailed("Private key is not an RSA key")
    return key


def encrypt_secret(plaintext: str, fernet_key: str) -> str:
    """Encrypt a stored secret (service-account JSON) with Fernet."""
    cipher = Fernet(fernet_key.encode())
    return cipher.encrypt(plaintext.encode()).decode()


def decrypt_secret(encrypted: str, fernet_key: str) -> str:
    """Decrypt a Fernet-encrypted stored secret."""
    try:
        cipher = Fernet(fernet_key.encode())
        return cipher.decrypt(encrypted.encode()).decode()
    except (InvalidToken, ValueError) as exc:
        raise ConfigurationError("Stored secret cannot be decrypted") from exc


def load_service_account(raw: str, fernet_key: str = "") -> ServiceAccountKey:
    """Parse a configured service account, decrypting it first if needed."""
    if raw.strip() and fernet_key:
        raw = decrypt_secret(raw.strip(), fernet_key)
    return ServiceAccountKey.from_json(raw)
