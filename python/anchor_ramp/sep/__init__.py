"""SEP-10 web authentication and bearer token handling."""

from .sep10 import Sep10Authenticator, validate_challenge
from .session import AuthSession
from .token import create_auth_headers, decode_token, is_token_expired
from .types import ChallengeResponse, ChallengeValidation, Sep10Config, TokenPayload

__all__ = [
    "Sep10Authenticator",
    "validate_challenge",
    "AuthSession",
    "create_auth_headers",
    "decode_token",
    "is_token_expired",
    "ChallengeResponse",
    "ChallengeValidation",
    "Sep10Config",
    "TokenPayload",
]
