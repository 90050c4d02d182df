"""Error taxonomy shared by the authenticator, the engine and the adapters.

Every error carries a machine-readable ``code``, a human-readable message and
the HTTP status it corresponds to, so callers can decide whether to retry,
re-authenticate or show a terminal failure.
"""

from typing import Any


class AnchorError(Exception):
    """Base error for anchor operations."""

    default_code = "UNKNOWN_ERROR"
    default_status = 500

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.status_code = status_code if status_code is not None else self.default_status
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "statusCode": self.status_code,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"status_code={self.status_code}, message={self.message!r})"
        )


class ValidationError(AnchorError):
    """Input or protocol data failed a client-side check. Never retried."""

    default_code = "VALIDATION_ERROR"
    default_status = 400


class ChallengeValidationError(ValidationError):
    default_code = "INVALID_CHALLENGE"

    def __init__(self, message: str, reason: str | None = None):
        super().__init__(message)
        self.reason = reason


class TokenFormatError(ValidationError):
    default_code = "INVALID_TOKEN"


class QuoteExpiredError(ValidationError):
    default_code = "QUOTE_EXPIRED"

    def __init__(self, quote_id: str, expires_at: Any):
        super().__init__(f"Quote {quote_id} expired at {expires_at}")
        self.quote_id = quote_id
        self.expires_at = expires_at


class MissingResourceError(ValidationError):
    """A prerequisite (bank account, wallet, signable payload) is unavailable."""

    default_code = "MISSING_RESOURCE"


class TransportError(AnchorError):
    """HTTP or network failure talking to a provider."""

    default_code = "TRANSPORT_ERROR"
    default_status = 503


class NotFoundError(TransportError):
    default_code = "NOT_FOUND"
    default_status = 404


class CapabilityError(AnchorError):
    """The provider does not support the requested operation."""

    default_code = "NOT_SUPPORTED"
    default_status = 501


class AuthenticationRequiredError(AnchorError):
    default_code = "AUTH_REQUIRED"
    default_status = 401


class PollingTimeoutError(AnchorError):
    default_code = "POLL_TIMEOUT"
    default_status = 504

    def __init__(self, transaction_id: str, timeout: float):
        super().__init__(
            f"Polling transaction {transaction_id} timed out after {timeout:g}s"
        )
        self.transaction_id = transaction_id
        self.timeout = timeout
