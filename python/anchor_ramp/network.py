"""Horizon helpers: submit signed envelopes and build payment transactions."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from stellar_sdk import Asset, Server, TransactionBuilder, TransactionEnvelope
from stellar_sdk.exceptions import BaseHorizonError
from stellar_sdk.exceptions import ConnectionError as HorizonConnectionError
from stellar_sdk.exceptions import NotFoundError as HorizonNotFoundError

from .errors import TransportError
from .utils import get_horizon_url

logger = logging.getLogger(__name__)

# 0.01 XLM; anchors expect payments to land quickly.
DEFAULT_BASE_FEE = 100_000
DEFAULT_PAYMENT_TIMEOUT_SECONDS = 300


class NetworkSubmitter(Protocol):
    """Submits a signed envelope to the Stellar network."""

    async def submit(self, signed_xdr: str, network_passphrase: str) -> str:
        """Submit the envelope and return the transaction hash."""
        ...


def parse_asset(asset: str) -> Asset:
    """Parse ``"native"``, ``"XLM"`` or ``"CODE:ISSUER"`` into an Asset."""
    if asset in ("native", "XLM"):
        return Asset.native()
    code, sep, issuer = asset.partition(":")
    if not sep or not issuer:
        raise ValueError(f"Asset must be 'CODE:ISSUER': {asset}")
    return Asset(code, issuer)


@dataclass
class TrustlineStatus:
    exists: bool
    has_trustline: bool
    balance: str = "0"


class HorizonSubmitter:
    """NetworkSubmitter backed by a Horizon server.

    The stellar-sdk ``Server`` is synchronous; calls run in a worker thread.
    """

    def __init__(self, network: str, horizon_url: str | None = None, server: Server | None = None):
        self._network = network
        self._server = server or Server(get_horizon_url(network, horizon_url))

    @property
    def server(self) -> Server:
        return self._server

    async def submit(self, signed_xdr: str, network_passphrase: str) -> str:
        envelope = TransactionEnvelope.from_xdr(signed_xdr, network_passphrase)
        try:
            response = await asyncio.to_thread(self._server.submit_transaction, envelope)
        except BaseHorizonError as e:
            logger.warning("Horizon rejected transaction: %s", e.extras or e.message)
            raise TransportError(
                f"Transaction submission failed: {e.title or e.message}",
                code="SUBMIT_FAILED",
                status_code=e.status,
                details=e.extras,
            ) from e
        except HorizonConnectionError as e:
            raise TransportError(f"Horizon unreachable: {e}", code="NETWORK_ERROR") from e

        tx_hash = response["hash"]
        logger.info("Submitted transaction %s", tx_hash)
        return tx_hash

    async def build_payment_transaction(
        self,
        source: str,
        destination: str,
        asset: str,
        amount: str,
        network_passphrase: str,
        memo: str | None = None,
        timeout: int = DEFAULT_PAYMENT_TIMEOUT_SECONDS,
    ) -> str:
        """Build an unsigned payment envelope, e.g. to an anchor's deposit address."""
        source_account = await asyncio.to_thread(self._server.load_account, source)
        builder = TransactionBuilder(
            source_account=source_account,
            network_passphrase=network_passphrase,
            base_fee=DEFAULT_BASE_FEE,
        )
        builder.append_payment_op(destination=destination, asset=parse_asset(asset), amount=amount)
        builder.set_timeout(timeout)
        if memo:
            builder.add_text_memo(memo)
        return builder.build().to_xdr()

    async def check_trustline(self, account: str, asset: str) -> TrustlineStatus:
        """Report whether ``account`` exists and can hold ``asset``."""
        target = parse_asset(asset)
        try:
            record = await asyncio.to_thread(
                self._server.accounts().account_id(account).call
            )
        except HorizonNotFoundError:
            return TrustlineStatus(exists=False, has_trustline=False)

        for balance in record.get("balances", []):
            if balance.get("asset_type") == "native":
                if target.is_native():
                    return TrustlineStatus(True, True, balance.get("balance", "0"))
                continue
            if (
                balance.get("asset_code") == target.code
                and balance.get("asset_issuer") == target.issuer
            ):
                return TrustlineStatus(True, True, balance.get("balance", "0"))
        return TrustlineStatus(exists=True, has_trustline=False)
