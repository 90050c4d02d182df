"""Types for SEP-10 web authentication."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Sep10Config:
    """Where and how to authenticate with an anchor.

    ``server_signing_key`` is the anchor's ``SIGNING_KEY``. Leaving it unset
    disables challenge validation, which should be avoided in production.
    ``require_server_signature`` additionally rejects challenges the server
    has not signed.
    """

    auth_endpoint: str
    network_passphrase: str
    home_domain: str
    server_signing_key: str | None = None
    require_server_signature: bool = False


@dataclass
class ChallengeResponse:
    transaction: str
    network_passphrase: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChallengeResponse":
        if not isinstance(data, dict) or "transaction" not in data:
            raise ValueError("Challenge response is missing 'transaction'")
        return cls(
            transaction=data["transaction"],
            network_passphrase=data.get("network_passphrase"),
        )


@dataclass
class ChallengeValidation:
    """Outcome of validating a challenge transaction."""

    valid: bool
    reason: str | None = None
    error: str | None = None


@dataclass
class TokenPayload:
    """Claims decoded from a SEP-10 JWT. The signature is not verified."""

    sub: str
    exp: int
    iss: str | None = None
    iat: int | None = None
    jti: str | None = None
    client_domain: str | None = None
    home_domain: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    _KNOWN = ("sub", "exp", "iss", "iat", "jti", "client_domain", "home_domain")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TokenPayload":
        if not isinstance(data, dict):
            raise ValueError(f"Cannot parse token payload from {type(data)}")
        if "exp" not in data:
            raise ValueError("Token payload is missing 'exp'")
        return cls(
            sub=str(data.get("sub", "")),
            exp=int(data["exp"]),
            iss=data.get("iss"),
            iat=int(data["iat"]) if data.get("iat") is not None else None,
            jti=data.get("jti"),
            client_domain=data.get("client_domain"),
            home_domain=data.get("home_domain"),
            extra={k: v for k, v in data.items() if k not in cls._KNOWN},
        )
