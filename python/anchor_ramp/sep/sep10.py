"""SEP-10 web authentication.

Requests a challenge transaction from the anchor, validates it, has an
external signer sign it, and exchanges the signed challenge for a JWT.
https://github.com/stellar/stellar-protocol/blob/master/ecosystem/sep-0010.md
"""

import logging
import time
from typing import Any

import httpx
from stellar_sdk import Keypair, ManageData, TransactionEnvelope
from stellar_sdk.exceptions import BadSignatureError

from ..constants import DEFAULT_HTTP_TIMEOUT_SECONDS
from ..errors import ChallengeValidationError, TransportError, ValidationError
from ..signer import TransactionSigner
from ..utils import validate_stellar_account_address
from .session import AuthSession
from .types import ChallengeResponse, ChallengeValidation, Sep10Config

logger = logging.getLogger(__name__)


def _invalid(reason: str, error: str) -> ChallengeValidation:
    return ChallengeValidation(valid=False, reason=reason, error=error)


def _valid() -> ChallengeValidation:
    return ChallengeValidation(valid=True)


def _is_signed_by(envelope: TransactionEnvelope, public_key: str) -> bool:
    keypair = Keypair.from_public_key(public_key)
    tx_hash = envelope.hash()
    hint = keypair.signature_hint()
    for decorated in envelope.signatures:
        if decorated.signature_hint != hint:
            continue
        try:
            keypair.verify(tx_hash, decorated.signature)
            return True
        except BadSignatureError:
            continue
    return False


def validate_challenge(
    challenge_xdr: str,
    server_signing_key: str,
    network_passphrase: str,
    home_domain: str,
    user_account: str,
    now: float | None = None,
    require_server_signature: bool = False,
) -> ChallengeValidation:
    """Validate a challenge transaction received from the anchor.

    Checks run in order and the first failure is reported. Parse failures
    are reported as invalid, never raised. Challenges are accepted unsigned
    unless ``require_server_signature`` is set.
    """
    try:
        envelope = TransactionEnvelope.from_xdr(challenge_xdr, network_passphrase)
        tx = envelope.transaction

        # 1. Source is the server signing key
        tx_source = tx.source.account_id
        if tx_source != server_signing_key:
            return _invalid(
                "invalid_source",
                f"Transaction source {tx_source} does not match server signing key "
                f"{server_signing_key}",
            )

        # 2. Sequence number is 0
        if tx.sequence != 0:
            return _invalid(
                "invalid_sequence", "Challenge transaction sequence number must be 0"
            )

        # 3. First operation is manage_data
        if not tx.operations:
            return _invalid(
                "missing_operation",
                "Challenge transaction must have at least one operation",
            )
        first_op = tx.operations[0]
        if not isinstance(first_op, ManageData):
            return _invalid("wrong_operation", "First operation must be manage_data")

        # 4. Key binds the home domain
        expected_name = f"{home_domain} auth"
        if first_op.data_name != expected_name:
            return _invalid(
                "wrong_home_domain",
                f"Manage data operation name {first_op.data_name} does not match "
                f"expected {expected_name}",
            )

        # 5. Effective operation source is the user
        op_source = first_op.source.account_id if first_op.source else tx_source
        if op_source != user_account:
            return _invalid(
                "wrong_operation_source",
                f"Operation source {op_source} does not match user account {user_account}",
            )

        # 6. Not expired
        current = int(now if now is not None else time.time())
        time_bounds = tx.preconditions.time_bounds if tx.preconditions else None
        if time_bounds is not None and time_bounds.max_time and time_bounds.max_time < current:
            return _invalid("expired", "Challenge transaction has expired")

        # 7. Signed by the server, when asked for
        if require_server_signature and not _is_signed_by(envelope, server_signing_key):
            return _invalid(
                "missing_server_signature",
                "Challenge transaction is not signed by the server signing key",
            )

        return _valid()

    except Exception as e:
        return _invalid("malformed", f"Failed to parse challenge transaction: {e}")


def _error_message(response: httpx.Response, fallback: str) -> tuple[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return response.text or fallback, None
    if isinstance(body, dict) and isinstance(body.get("error"), str) and body["error"]:
        return body["error"], body
    return fallback, body


class Sep10Authenticator:
    """Runs the SEP-10 flow against a single anchor auth endpoint.

    Flow: request challenge -> validate -> sign (external) -> submit -> token.
    A challenge that fails validation is never handed to the signer.
    """

    def __init__(
        self,
        config: Sep10Config,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    ):
        self._config = config
        self._client = client
        self._timeout = timeout

    @property
    def config(self) -> Sep10Config:
        return self._config

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            if self._client is not None:
                return await self._client.request(method, url, **kwargs)
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"SEP-10 request failed: {e}", code="NETWORK_ERROR") from e

    async def get_challenge(
        self,
        account: str,
        memo: str | None = None,
        client_domain: str | None = None,
    ) -> ChallengeResponse:
        """Request a challenge transaction for ``account``."""
        if not validate_stellar_account_address(account):
            raise ValidationError(
                f"Invalid Stellar account address: {account!r}", code="INVALID_ADDRESS"
            )
        params = {"account": account}
        if memo:
            params["memo"] = memo
        if self._config.home_domain:
            params["home_domain"] = self._config.home_domain
        if client_domain:
            params["client_domain"] = client_domain

        logger.debug("[SEP-10] GET %s account=%s", self._config.auth_endpoint, account)
        response = await self._send("GET", self._config.auth_endpoint, params=params)

        if response.is_error:
            message, body = _error_message(
                response, f"Failed to get challenge: {response.status_code}"
            )
            raise TransportError(
                message, code="SEP10_CHALLENGE_FAILED", status_code=response.status_code,
                details=body,
            )

        return ChallengeResponse.from_dict(response.json())

    def validate(self, challenge: ChallengeResponse, account: str) -> ChallengeValidation:
        if not self._config.server_signing_key:
            raise ValidationError("No server signing key configured", code="MISSING_SERVER_KEY")
        return validate_challenge(
            challenge.transaction,
            self._config.server_signing_key,
            challenge.network_passphrase or self._config.network_passphrase,
            self._config.home_domain,
            account,
            require_server_signature=self._config.require_server_signature,
        )

    async def submit_challenge(self, signed_xdr: str) -> str:
        """Exchange a signed challenge for a JWT."""
        logger.debug("[SEP-10] POST %s", self._config.auth_endpoint)
        response = await self._send(
            "POST", self._config.auth_endpoint, json={"transaction": signed_xdr}
        )

        if response.is_error:
            message, body = _error_message(
                response, f"Failed to submit challenge: {response.status_code}"
            )
            raise TransportError(
                message, code="SEP10_SUBMIT_FAILED", status_code=response.status_code,
                details=body,
            )

        body = response.json()
        token = body.get("token") if isinstance(body, dict) else None
        if not token:
            raise TransportError(
                "Token response is missing 'token'",
                code="SEP10_NO_TOKEN",
                status_code=response.status_code,
                details=body,
            )
        return token

    async def authenticate(
        self,
        account: str,
        signer: TransactionSigner,
        memo: str | None = None,
        client_domain: str | None = None,
    ) -> AuthSession:
        """Run the full flow and return a session holding the token."""
        challenge = await self.get_challenge(account, memo=memo, client_domain=client_domain)
        network_passphrase = challenge.network_passphrase or self._config.network_passphrase

        if self._config.server_signing_key:
            validation = self.validate(challenge, account)
            if not validation.valid:
                logger.warning("[SEP-10] Rejected challenge: %s", validation.error)
                raise ChallengeValidationError(
                    f"Invalid challenge: {validation.error}", reason=validation.reason
                )
        else:
            logger.warning(
                "[SEP-10] No server signing key configured for %s; challenge not validated",
                self._config.home_domain,
            )

        signed_xdr = await signer.sign_transaction(
            challenge.transaction, network_passphrase=network_passphrase
        )
        token = await self.submit_challenge(signed_xdr)
        logger.info("[SEP-10] Authenticated %s with %s", account, self._config.home_domain)
        return AuthSession.create(token=token, account=account)
