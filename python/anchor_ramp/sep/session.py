"""Explicit authentication session returned by the SEP-10 flow."""

from dataclasses import dataclass

from ..constants import DEFAULT_TOKEN_EXPIRY_BUFFER_SECONDS
from ..errors import AuthenticationRequiredError
from .token import create_auth_headers, decode_token, is_token_expired
from .types import TokenPayload


@dataclass
class AuthSession:
    """Bearer token for one account. Callers own its lifetime."""

    token: str | None = None
    account: str | None = None

    @classmethod
    def create(cls, token: str, account: str) -> "AuthSession":
        return cls(token=token, account=account)

    def is_authenticated(
        self, buffer_seconds: int = DEFAULT_TOKEN_EXPIRY_BUFFER_SECONDS
    ) -> bool:
        return bool(self.token) and not is_token_expired(self.token, buffer_seconds)

    def require_token(self) -> str:
        if not self.is_authenticated():
            raise AuthenticationRequiredError("Not authenticated or token expired")
        return self.token

    def headers(self) -> dict[str, str]:
        return create_auth_headers(self.require_token())

    def payload(self) -> TokenPayload:
        return decode_token(self.require_token())

    def clear(self) -> None:
        self.token = None
        self.account = None
