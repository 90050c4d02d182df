"""Ramp engine: drives an on-ramp or off-ramp from quote to terminal status.

Every provider-specific branch is a capability lookup, so the same engine
runs AlfredPay, BlindPay and Etherfuse flows:

    Idle -> QuoteRequested -> Quoted -> Created -> [AwaitingSignable]
         -> [Signing -> Submitted] -> Polling -> terminal
"""

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any

from ..capabilities import AnchorCapabilities, quote_customer_id
from ..constants import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_POLL_TIMEOUT_SECONDS,
    DEFAULT_SIGNABLE_TIMEOUT_SECONDS,
    MAX_QUOTE_ATTEMPTS,
    STELLAR_TESTNET_CAIP2,
)
from ..errors import CapabilityError, MissingResourceError, QuoteExpiredError, ValidationError
from ..network import NetworkSubmitter
from ..providers.base import Anchor
from ..quotes import ensure_quote_fresh, is_quote_expired
from ..signer import TransactionSigner
from ..types import (
    CreateCustomerInput,
    CreateOffRampInput,
    CreateOnRampInput,
    Customer,
    FiatAccountInput,
    GetQuoteInput,
    KycStatus,
    OffRampTransaction,
    OnRampTransaction,
    Quote,
    RampTransaction,
    RegisteredFiatAccount,
    RegisterFiatAccountInput,
    SavedFiatAccount,
)
from ..utils import get_network_passphrase, validate_stellar_account_address
from .polling import PollScheduler, poll_until
from .states import TERMINAL_STATES, RampDirection, RampFlow, RampState

logger = logging.getLogger(__name__)

StatusCallback = Callable[[RampFlow], Awaitable[None] | None]


class RampEngine:
    """Provider-agnostic ramp lifecycle driver for one anchor.

    Args:
        anchor: Provider adapter.
        signer: Signs provider-built envelopes. Required only for flows that sign.
        submitter: Sends signed envelopes to the network when the anchor does
            not take them back itself.
        network: CAIP-2 Stellar network the envelopes belong to.
        poll_interval: Seconds between status polls.
        poll_timeout: Ceiling for status polling.
        signable_timeout: Ceiling for waiting on a deferred envelope; ``None``
            waits indefinitely.
        on_status_change: Called with the flow on every state change and on
            every canonical status change while polling.
    """

    def __init__(
        self,
        anchor: Anchor,
        *,
        signer: TransactionSigner | None = None,
        submitter: NetworkSubmitter | None = None,
        network: str = STELLAR_TESTNET_CAIP2,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        poll_timeout: float = DEFAULT_POLL_TIMEOUT_SECONDS,
        signable_timeout: float | None = DEFAULT_SIGNABLE_TIMEOUT_SECONDS,
        on_status_change: StatusCallback | None = None,
        scheduler: PollScheduler | None = None,
        **poll_options: Any,
    ):
        self.anchor = anchor
        self.signer = signer
        self.submitter = submitter
        self.network_passphrase = get_network_passphrase(network)
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self.signable_timeout = signable_timeout
        self.on_status_change = on_status_change
        self.scheduler = scheduler or PollScheduler()
        # sleep / clock overrides for poll_until
        self._poll_options = poll_options
        self._quotes: dict[str, Quote] = {}

    @property
    def capabilities(self) -> AnchorCapabilities:
        return self.anchor.capabilities

    # Customers and KYC

    async def create_customer(self, input: CreateCustomerInput) -> Customer:
        return await self.anchor.create_customer(input)

    async def get_customer(self, customer_id: str) -> Customer | None:
        return await self.anchor.get_customer(customer_id)

    async def get_customer_by_email(self, email: str, country: str | None = None) -> Customer | None:
        if not self.capabilities.email_lookup:
            raise CapabilityError(
                f"{self.capabilities.display_name} does not support customer lookup by email"
            )
        return await self.anchor.get_customer_by_email(email, country)

    async def get_or_create_customer(self, input: CreateCustomerInput) -> Customer:
        """Find the customer by email where supported, otherwise create one."""
        if self.capabilities.email_lookup:
            existing = await self.anchor.get_customer_by_email(input.email, input.country)
            if existing is not None:
                return existing
        return await self.anchor.create_customer(input)

    async def get_kyc_url(
        self,
        customer_id: str,
        public_key: str | None = None,
        bank_account_id: str | None = None,
    ) -> str:
        if not self.capabilities.kyc_url:
            raise CapabilityError(f"{self.capabilities.display_name} has no hosted KYC")
        return await self.anchor.get_kyc_url(customer_id, public_key, bank_account_id)

    async def get_tos_url(self, redirect_url: str | None = None) -> str:
        if not self.capabilities.requires_tos:
            raise CapabilityError(
                f"{self.capabilities.display_name} does not require terms of service acceptance"
            )
        return await self.anchor.generate_tos_url(redirect_url)

    async def get_kyc_status(self, customer_id: str, public_key: str | None = None) -> KycStatus:
        return await self.anchor.get_kyc_status(customer_id, public_key)

    async def register_fiat_account(self, input: RegisterFiatAccountInput) -> RegisteredFiatAccount:
        return await self.anchor.register_fiat_account(input)

    async def get_fiat_accounts(self, customer_id: str) -> list[SavedFiatAccount]:
        return await self.anchor.get_fiat_accounts(customer_id)

    # Prerequisites

    async def resolve_blockchain_wallet(self, customer_id: str, address: str) -> str:
        """Return the id of ``address``'s registered wallet, registering it if needed."""
        for wallet in await self.anchor.get_blockchain_wallets(customer_id):
            if wallet.address == address:
                return wallet.id
        logger.info("Registering blockchain wallet %s for %s", address, customer_id)
        wallet = await self.anchor.register_blockchain_wallet(customer_id, address)
        return wallet.id

    async def resolve_bank_account(
        self,
        customer_id: str,
        bank_account_id: str | None = None,
        bank_account: FiatAccountInput | None = None,
    ) -> str | None:
        """Pick the bank account an off-ramp pays out to.

        Uses ``bank_account_id`` if given, then the first saved account, then
        registers ``bank_account``. Returns ``None`` when none is available.
        """
        if bank_account_id:
            return bank_account_id
        saved = await self.anchor.get_fiat_accounts(customer_id)
        if saved:
            return saved[0].id
        if bank_account is not None:
            registered = await self.anchor.register_fiat_account(
                RegisterFiatAccountInput(customer_id=customer_id, bank_account=bank_account)
            )
            return registered.id
        return None

    # Quotes and transactions

    async def get_quote(self, input: GetQuoteInput) -> Quote:
        quote = await self.anchor.get_quote(input)
        self._quotes[quote.id] = quote
        return quote

    def _check_quote(self, quote_id: str, quote: Quote | None) -> None:
        quote = quote or self._quotes.get(quote_id)
        if quote is None:
            return
        try:
            ensure_quote_fresh(quote)
        except QuoteExpiredError:
            self._quotes.pop(quote_id, None)
            raise

    async def create_on_ramp(self, input: CreateOnRampInput) -> OnRampTransaction:
        """Create an on-ramp. Raises QuoteExpiredError before any request if the quote is stale."""
        self._check_quote(input.quote_id, input.quote)
        transaction = await self.anchor.create_on_ramp(input)
        self._quotes.pop(input.quote_id, None)
        return transaction

    async def create_off_ramp(self, input: CreateOffRampInput) -> OffRampTransaction:
        """Create an off-ramp. Raises QuoteExpiredError before any request if the quote is stale."""
        self._check_quote(input.quote_id, input.quote)
        transaction = await self.anchor.create_off_ramp(input)
        self._quotes.pop(input.quote_id, None)
        return transaction

    async def get_on_ramp_transaction(self, transaction_id: str) -> OnRampTransaction | None:
        return await self.anchor.get_on_ramp_transaction(transaction_id)

    async def get_off_ramp_transaction(self, transaction_id: str) -> OffRampTransaction | None:
        return await self.anchor.get_off_ramp_transaction(transaction_id)

    # Waiting

    async def wait_for_signable(
        self,
        transaction_id: str,
        timeout: float | None = None,
    ) -> OffRampTransaction:
        """Poll an off-ramp until the provider attaches the envelope to sign.

        Stops early if the order reaches a terminal status first. ``timeout``
        defaults to the engine's ``signable_timeout``.
        """

        def ready(tx: OffRampTransaction | None) -> bool:
            return tx is not None and (bool(tx.signable_transaction) or tx.status.is_terminal)

        return await self.scheduler.run(
            transaction_id,
            poll_until(
                lambda: self.anchor.get_off_ramp_transaction(transaction_id),
                ready,
                transaction_id=transaction_id,
                interval=self.poll_interval,
                timeout=timeout if timeout is not None else self.signable_timeout,
                **self._poll_options,
            ),
        )

    async def wait_for_completion(
        self,
        transaction_id: str,
        direction: RampDirection,
        flow: RampFlow | None = None,
    ) -> RampTransaction:
        """Poll until the transaction reaches a terminal status.

        Raises PollingTimeoutError after ``poll_timeout`` seconds.
        """
        if direction is RampDirection.ON_RAMP:
            fetch = self.anchor.get_on_ramp_transaction
        else:
            fetch = self.anchor.get_off_ramp_transaction

        async def on_tick(tx: RampTransaction | None) -> None:
            if tx is None or flow is None:
                return
            changed = flow.status != tx.status
            flow.transaction = tx
            if changed:
                await self._notify(flow)

        return await self.scheduler.run(
            transaction_id,
            poll_until(
                lambda: fetch(transaction_id),
                lambda tx: tx is not None and tx.status.is_terminal,
                transaction_id=transaction_id,
                interval=self.poll_interval,
                timeout=self.poll_timeout,
                on_tick=on_tick,
                **self._poll_options,
            ),
        )

    # Signing

    async def sign_and_submit(self, transaction: OffRampTransaction) -> OffRampTransaction:
        """Sign the off-ramp's envelope and route it where the provider expects.

        Anchors flagged ``requires_anchor_payout_submission`` take the signed
        envelope back (and return the payout to track); everyone else gets it
        submitted to the network.
        """
        if not transaction.signable_transaction:
            raise MissingResourceError(f"Off-ramp {transaction.id} has nothing to sign")
        if self.signer is None:
            raise MissingResourceError("No signer configured", code="MISSING_SIGNER")

        signed_xdr = await self.signer.sign_transaction(
            transaction.signable_transaction, network_passphrase=self.network_passphrase
        )

        if self.capabilities.requires_anchor_payout_submission:
            logger.info("Submitting signed payout for quote %s to anchor", transaction.quote_id)
            return await self.anchor.submit_signed_payout(
                transaction.quote_id, signed_xdr, transaction.stellar_address
            )

        if self.submitter is None:
            raise MissingResourceError("No network submitter configured", code="MISSING_SUBMITTER")
        tx_hash = await self.submitter.submit(signed_xdr, self.network_passphrase)
        return replace(transaction, stellar_tx_hash=tx_hash)

    # Drivers

    async def run_on_ramp(
        self,
        customer_id: str,
        from_currency: str,
        to_currency: str,
        amount: str,
        stellar_address: str,
        memo: str | None = None,
    ) -> RampFlow:
        """Quote, create and poll an on-ramp to a terminal status.

        Payment instructions are on ``flow.transaction`` from the ``CREATED``
        notification onwards.
        """
        self._require_address(stellar_address)
        flow = RampFlow(direction=RampDirection.ON_RAMP, customer_id=customer_id)

        resource_id = None
        if self.capabilities.requires_blockchain_wallet_registration:
            resource_id = await self.resolve_blockchain_wallet(customer_id, stellar_address)

        quote_input = GetQuoteInput(
            from_currency=from_currency,
            to_currency=to_currency,
            from_amount=amount,
            customer_id=quote_customer_id(customer_id, self.capabilities, resource_id),
            stellar_address=stellar_address,
        )
        quote = await self._quote(flow, quote_input)

        transaction = await self.create_on_ramp(
            CreateOnRampInput(
                customer_id=customer_id,
                quote_id=quote.id,
                stellar_address=stellar_address,
                from_currency=from_currency,
                to_currency=to_currency,
                amount=amount,
                memo=memo,
                quote=quote,
            )
        )
        flow.transaction = transaction
        await self._transition(flow, RampState.CREATED)

        # Funded over the fiat rail; nothing to sign.
        return await self._poll_to_terminal(flow)

    async def run_off_ramp(
        self,
        customer_id: str,
        from_currency: str,
        to_currency: str,
        amount: str,
        stellar_address: str,
        fiat_account_id: str | None = None,
        bank_account: FiatAccountInput | None = None,
        memo: str | None = None,
        payment_asset: str | None = None,
    ) -> RampFlow:
        """Quote, create, sign, submit and poll an off-ramp to a terminal status.

        ``payment_asset`` (``CODE:ISSUER``) lets the engine build the payment
        itself for anchors that only return a deposit address and memo.
        Without it such flows go straight to polling while the user pays.
        """
        self._require_address(stellar_address)
        flow = RampFlow(direction=RampDirection.OFF_RAMP, customer_id=customer_id)

        bank_account_id = await self.resolve_bank_account(customer_id, fiat_account_id, bank_account)
        if bank_account_id is None and self.capabilities.requires_bank_before_quote:
            raise MissingResourceError(
                f"{self.capabilities.display_name} needs a bank account before quoting",
                code="MISSING_BANK_ACCOUNT",
            )

        quote_input = GetQuoteInput(
            from_currency=from_currency,
            to_currency=to_currency,
            from_amount=amount,
            customer_id=quote_customer_id(customer_id, self.capabilities, bank_account_id),
            stellar_address=stellar_address,
        )
        quote = await self._quote(flow, quote_input)

        transaction = await self.create_off_ramp(
            CreateOffRampInput(
                customer_id=customer_id,
                quote_id=quote.id,
                stellar_address=stellar_address,
                from_currency=from_currency,
                to_currency=to_currency,
                amount=amount,
                fiat_account_id=bank_account_id or "",
                memo=memo,
                bank_account_info=bank_account,
                quote=quote,
            )
        )
        flow.transaction = transaction
        await self._transition(flow, RampState.CREATED)

        if not transaction.signable_transaction and self.capabilities.deferred_off_ramp_signing:
            await self._transition(flow, RampState.AWAITING_SIGNABLE)
            ready = await self.wait_for_signable(transaction.id)
            transaction = self._carry_over(transaction, ready)
            flow.transaction = transaction
            if transaction.status.is_terminal:
                await self._transition(flow, TERMINAL_STATES[transaction.status])
                return flow

        if not transaction.signable_transaction:
            transaction = await self._attach_payment(transaction, payment_asset)
            flow.transaction = transaction

        if transaction.signable_transaction:
            await self._transition(flow, RampState.SIGNING)
            transaction = await self.sign_and_submit(transaction)
            flow.transaction = transaction
            await self._transition(flow, RampState.SUBMITTED)
        elif self.capabilities.requires_off_ramp_signing:
            raise MissingResourceError(
                f"{self.capabilities.display_name} returned no transaction to sign",
                code="MISSING_SIGNABLE",
            )

        return await self._poll_to_terminal(flow)

    # Internals

    async def _quote(self, flow: RampFlow, quote_input: GetQuoteInput) -> Quote:
        """Return a quote that is still fresh once the QUOTED callback returns.

        The status callback may hold the flow at QUOTED (e.g. while the user
        confirms), so freshness is checked again afterwards and an expired
        quote is replaced rather than submitted.
        """
        quote = None
        for _ in range(MAX_QUOTE_ATTEMPTS):
            await self._transition(flow, RampState.QUOTE_REQUESTED)
            quote = await self.get_quote(quote_input)
            flow.quote = quote
            if is_quote_expired(quote):
                logger.info("Quote %s already expired, requesting a new one", quote.id)
                self._quotes.pop(quote.id, None)
                continue
            await self._transition(flow, RampState.QUOTED)
            if not is_quote_expired(quote):
                return quote
            logger.info("Quote %s expired before creation, requesting a new one", quote.id)
            self._quotes.pop(quote.id, None)
        raise QuoteExpiredError(quote.id, quote.expires_at)

    @staticmethod
    def _require_address(address: str) -> None:
        if not validate_stellar_account_address(address):
            raise ValidationError(
                f"Invalid Stellar account address: {address!r}", code="INVALID_ADDRESS"
            )

    async def _attach_payment(
        self, transaction: OffRampTransaction, payment_asset: str | None
    ) -> OffRampTransaction:
        build = getattr(self.submitter, "build_payment_transaction", None)
        if not payment_asset or build is None or self.signer is None or not transaction.stellar_address:
            return transaction
        envelope = await build(
            source=self.signer.address,
            destination=transaction.stellar_address,
            asset=payment_asset,
            amount=transaction.from_amount,
            network_passphrase=self.network_passphrase,
            memo=transaction.memo,
        )
        return replace(transaction, signable_transaction=envelope)

    @staticmethod
    def _carry_over(created: OffRampTransaction, polled: OffRampTransaction) -> OffRampTransaction:
        # Order lookups omit what the create call already knew.
        return replace(
            polled,
            customer_id=polled.customer_id or created.customer_id,
            quote_id=polled.quote_id or created.quote_id,
            stellar_address=polled.stellar_address or created.stellar_address,
            from_amount=polled.from_amount or created.from_amount,
            from_currency=polled.from_currency or created.from_currency,
            to_currency=polled.to_currency or created.to_currency,
        )

    async def _poll_to_terminal(self, flow: RampFlow) -> RampFlow:
        await self._transition(flow, RampState.POLLING)
        final = await self.wait_for_completion(flow.transaction_id, flow.direction, flow)
        flow.transaction = final
        await self._transition(flow, TERMINAL_STATES[final.status])
        return flow

    async def _transition(self, flow: RampFlow, state: RampState) -> None:
        logger.debug("Ramp %s: %s -> %s", flow.transaction_id or "new", flow.state.value, state.value)
        flow.state = state
        flow.history.append(state)
        await self._notify(flow)

    async def _notify(self, flow: RampFlow) -> None:
        if self.on_status_change is None:
            return
        result = self.on_status_change(flow)
        if inspect.isawaitable(result):
            await result
