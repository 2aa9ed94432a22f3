"""Exception hierarchy for verification, signing and token exchange."""

from typing import Any


class LMSMobileError(Exception):
    """Base exception for the verification service."""

    code = "error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(LMSMobileError):
    """A required secret, key or identifier is missing or unusable."""

    code = "configuration_error"


class VerificationError(LMSMobileError):
    """A token, receipt or upstream response failed verification."""

    code = "verification_failed"


class DecodeError(VerificationError):
    """Input is not valid base64url or JSON."""

    code = "decode_error"


class MalformedToken(VerificationError):
    code = "malformed_token"


class UnsupportedAlgorithm(VerificationError):
    code = "unsupported_algorithm"


class SignatureInvalid(VerificationError):
    code = "signature_invalid"


class KeyNotFound(VerificationError):
    code = "key_not_found"


class UnsupportedKeyType(VerificationError):
    code = "unsupported_key_type"


class SigningFailed(VerificationError):
    code = "signing_failed"


class TransportError(VerificationError):
    """Network failure, timeout or undecodable upstream body."""

    code = "transport_error"


class TokenExchangeError(VerificationError):
    """The authorization server did not hand out an access token."""

    code = "token_exchange_error"


class TokenRejected(VerificationError):
    """The provider reported the presented token or purchase as invalid."""

    code = "token_rejected"


class InvalidIssuer(VerificationError):
    code = "invalid_issuer"


class ExpiredToken(VerificationError):
    code = "expired_token"


class MissingEmail(VerificationError):
    code = "missing_email"


class InvalidAudience(VerificationError):
    code = "invalid_audience"


class MalformedReceipt(VerificationError):
    code = "malformed_receipt"


class ReceiptStatusNonZero(VerificationError):
    """Apple answered with a non-zero receipt status."""

    code = "receipt_status_nonzero"

    def __init__(self, status: int):
        super().__init__("Receipt rejected by Apple", {"status": status})
        self.status = status


class PurchaseNotCompleted(VerificationError):
    """Google Play reports a purchase state other than purchased."""

    code = "purchase_not_completed"


class ProductMismatch(VerificationError):
    code = "product_mismatch"
