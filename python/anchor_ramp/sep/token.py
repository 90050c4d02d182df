"""Bearer token guard: decode SEP-10 JWT claims and check expiry.

Signatures are not verified here; that is the anchor's job.
"""

import base64
import binascii
import json
import time

from ..constants import DEFAULT_TOKEN_EXPIRY_BUFFER_SECONDS
from ..errors import TokenFormatError
from .types import TokenPayload


def _b64url_decode(segment: str) -> bytes:
    padding = "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(segment + padding)


def decode_token(token: str) -> TokenPayload:
    """Decode the payload segment of a JWT.

    Raises:
        TokenFormatError: The token is not three dot-separated segments or
            its payload is not base64url-encoded JSON.
    """
    parts = token.split(".") if isinstance(token, str) else []
    if len(parts) != 3:
        raise TokenFormatError("Invalid JWT token format")

    try:
        payload = json.loads(_b64url_decode(parts[1]))
        return TokenPayload.from_dict(payload)
    except (binascii.Error, UnicodeDecodeError, ValueError, TypeError) as e:
        raise TokenFormatError(f"Invalid JWT token payload: {e}") from e


def is_token_expired(
    token: str,
    buffer_seconds: int = DEFAULT_TOKEN_EXPIRY_BUFFER_SECONDS,
    now: float | None = None,
) -> bool:
    """Return True if the token expires within ``buffer_seconds``.

    Fails closed: a token that cannot be decoded counts as expired.
    """
    try:
        payload = decode_token(token)
    except TokenFormatError:
        return True
    current = int(now if now is not None else time.time())
    return payload.exp < current + buffer_seconds


def create_auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
