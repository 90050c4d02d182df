"""Tests for the ramp engine against an in-memory anchor."""

import asyncio
from dataclasses import replace
from datetime import timedelta

import pytest

from anchor_ramp.capabilities import get_capabilities
from anchor_ramp.constants import STELLAR_NETWORK_TO_PASSPHRASE, STELLAR_TESTNET_CAIP2
from anchor_ramp.engine import RampEngine, RampState
from anchor_ramp.errors import (
    CapabilityError,
    MissingResourceError,
    PollingTimeoutError,
    QuoteExpiredError,
    ValidationError,
)
from anchor_ramp.providers.base import BaseAnchor
from anchor_ramp.types import (
    BlockchainWallet,
    CreateCustomerInput,
    CreateOffRampInput,
    CreateOnRampInput,
    Customer,
    GetQuoteInput,
    OffRampTransaction,
    OnRampTransaction,
    PaymentInstructions,
    Quote,
    SavedFiatAccount,
    TransactionStatus,
)
from anchor_ramp.utils import utcnow

USER = "GBZXN7PIRZGNMHGA7MUUUF4GWPY5AYPV6LY4UV2GL6VJGIQRXFDNMADI"
DEPOSIT = "GDEPOSITXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX"
TESTNET = STELLAR_NETWORK_TO_PASSPHRASE[STELLAR_TESTNET_CAIP2]


def make_quote(quote_id="q-1", expires_in=300, from_currency="USDC", to_currency="MXN") -> Quote:
    now = utcnow()
    return Quote(
        id=quote_id,
        from_currency=from_currency,
        to_currency=to_currency,
        from_amount="10.0000000",
        to_amount="171.30",
        exchange_rate="17.1300000",
        fee="0.70",
        expires_at=now + timedelta(seconds=expires_in),
        created_at=now,
    )


def off_tx(tx_id="ord-1", status=TransactionStatus.PENDING, **fields) -> OffRampTransaction:
    defaults = dict(
        customer_id="cust-1",
        quote_id="q-1",
        from_amount="10",
        from_currency="USDC",
        to_amount="171.30",
        to_currency="MXN",
    )
    defaults.update(fields)
    return OffRampTransaction(id=tx_id, status=status, **defaults)


def on_tx(tx_id="on-1", status=TransactionStatus.PENDING) -> OnRampTransaction:
    return OnRampTransaction(
        id=tx_id,
        customer_id="cust-1",
        quote_id="q-1",
        status=status,
        from_amount="1000.00",
        from_currency="MXN",
        to_amount="57.12",
        to_currency="USDC",
        payment_instructions=PaymentInstructions(
            clabe="646180000000000000", amount="1000.00", currency="MXN"
        ),
    )


class FakeAnchor(BaseAnchor):
    """Scripted anchor. Lookups replay their script and then repeat the last entry."""

    def __init__(self, provider: str):
        self.name = provider
        super().__init__(http=None, capabilities=get_capabilities(provider))
        self.calls: list[tuple] = []
        self.quotes: list[Quote] = [make_quote()]
        self.customer: Customer | None = None
        self.fiat_accounts: list[SavedFiatAccount] = []
        self.wallets: list[BlockchainWallet] = []
        self.created_on_ramp = on_tx()
        self.created_off_ramp = off_tx()
        self.on_ramp_script: list[OnRampTransaction] = [on_tx(status=TransactionStatus.COMPLETED)]
        self.off_ramp_script: list[OffRampTransaction] = []
        self.payout: OffRampTransaction | None = None

    @staticmethod
    def _next(script):
        return script.pop(0) if len(script) > 1 else script[0]

    async def create_customer(self, input):
        self.calls.append(("create_customer", input.email))
        return Customer(id="cust-new", email=input.email)

    async def get_customer(self, customer_id):
        self.calls.append(("get_customer", customer_id))
        return self.customer

    async def get_customer_by_email(self, email, country=None):
        self.calls.append(("get_customer_by_email", email))
        return self.customer

    async def get_quote(self, input):
        self.calls.append(("get_quote", input.customer_id))
        return self._next(self.quotes)

    async def create_on_ramp(self, input):
        self.calls.append(("create_on_ramp", input.quote_id))
        return self.created_on_ramp

    async def get_on_ramp_transaction(self, transaction_id):
        self.calls.append(("get_on_ramp_transaction", transaction_id))
        return self._next(self.on_ramp_script)

    async def create_off_ramp(self, input):
        self.calls.append(("create_off_ramp", input.quote_id, input.fiat_account_id))
        return self.created_off_ramp

    async def get_off_ramp_transaction(self, transaction_id):
        self.calls.append(("get_off_ramp_transaction", transaction_id))
        return self._next(self.off_ramp_script)

    async def register_fiat_account(self, input):
        raise AssertionError("not expected")

    async def get_fiat_accounts(self, customer_id):
        self.calls.append(("get_fiat_accounts", customer_id))
        return self.fiat_accounts

    async def get_kyc_url(self, customer_id, public_key=None, bank_account_id=None):
        self.calls.append(("get_kyc_url", customer_id))
        return "https://kyc.example.com"

    async def get_kyc_status(self, customer_id, public_key=None):
        raise AssertionError("not expected")

    async def get_blockchain_wallets(self, customer_id):
        if not self.capabilities.requires_blockchain_wallet_registration:
            return await super().get_blockchain_wallets(customer_id)
        self.calls.append(("get_blockchain_wallets", customer_id))
        return self.wallets

    async def register_blockchain_wallet(self, customer_id, address, name=None):
        self.calls.append(("register_blockchain_wallet", address))
        return BlockchainWallet(id="bw_1", address=address, network="stellar_testnet")

    async def submit_signed_payout(self, quote_id, signed_transaction, sender_address):
        if not self.capabilities.requires_anchor_payout_submission:
            return await super().submit_signed_payout(quote_id, signed_transaction, sender_address)
        self.calls.append(("submit_signed_payout", quote_id, signed_transaction, sender_address))
        return self.payout

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeSigner:
    address = USER

    def __init__(self):
        self.signed: list[tuple[str, str]] = []

    async def sign_transaction(self, tx_xdr, *, network_passphrase):
        self.signed.append((tx_xdr, network_passphrase))
        return f"signed:{tx_xdr}"


class FakeSubmitter:
    def __init__(self):
        self.submitted: list[str] = []
        self.built: list[dict] = []

    async def submit(self, signed_xdr, network_passphrase):
        self.submitted.append(signed_xdr)
        return "txhash-1"


class BuildingSubmitter(FakeSubmitter):
    async def build_payment_transaction(self, **kwargs):
        self.built.append(kwargs)
        return "payment-envelope"


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.now += seconds


def make_engine(anchor, **kwargs) -> RampEngine:
    clock = FakeClock()
    kwargs.setdefault("signer", FakeSigner())
    kwargs.setdefault("submitter", FakeSubmitter())
    return RampEngine(anchor, sleep=clock.sleep, clock=clock, poll_interval=5, **kwargs)


# --- Quote freshness ---


class TestQuoteFreshness:
    def test_stale_quote_fails_before_any_request(self):
        anchor = FakeAnchor("etherfuse")
        engine = make_engine(anchor)
        stale = make_quote(expires_in=-1)

        with pytest.raises(QuoteExpiredError):
            asyncio.run(engine.create_on_ramp(CreateOnRampInput(
                customer_id="cust-1",
                quote_id=stale.id,
                stellar_address=USER,
                from_currency="MXN",
                to_currency="USDC",
                amount="1000",
                quote=stale,
            )))

        assert anchor.calls == []

    def test_cached_stale_quote_blocks_off_ramp(self):
        anchor = FakeAnchor("alfredpay")
        anchor.quotes = [make_quote("q-old", expires_in=-5)]
        engine = make_engine(anchor)

        quote = asyncio.run(engine.get_quote(GetQuoteInput("USDC", "MXN", from_amount="10")))
        with pytest.raises(QuoteExpiredError):
            asyncio.run(engine.create_off_ramp(CreateOffRampInput(
                customer_id="cust-1",
                quote_id=quote.id,
                stellar_address=USER,
                from_currency="USDC",
                to_currency="MXN",
                amount="10",
                fiat_account_id="fa-1",
            )))

        assert "create_off_ramp" not in anchor.names()
        assert quote.id not in engine._quotes

    def test_expired_quote_is_requested_again(self):
        anchor = FakeAnchor("alfredpay")
        anchor.quotes = [make_quote("q-old", expires_in=-1), make_quote("q-new")]
        anchor.off_ramp_script = [off_tx(status=TransactionStatus.COMPLETED)]
        engine = make_engine(anchor)

        flow = asyncio.run(engine.run_off_ramp(
            "cust-1", "USDC", "MXN", "10", USER, fiat_account_id="fa-1"
        ))

        assert anchor.names().count("get_quote") == 2
        assert flow.quote.id == "q-new"
        assert ("create_off_ramp", "q-new", "fa-1") in anchor.calls

    def test_quote_expiring_while_held_at_quoted_is_replaced(self):
        anchor = FakeAnchor("alfredpay")
        anchor.quotes = [make_quote("q-old", expires_in=0.05), make_quote("q-new")]
        held = []

        async def on_change(flow):
            # First QUOTED: the user takes longer than the quote lives.
            if flow.state is RampState.QUOTED and not held:
                held.append(flow.quote.id)
                await asyncio.sleep(0.1)

        engine = make_engine(anchor, on_status_change=on_change)
        flow = asyncio.run(engine.run_on_ramp("cust-1", "MXN", "USDC", "1000", USER))

        assert held == ["q-old"]
        assert anchor.names().count("get_quote") == 2
        assert ("create_on_ramp", "q-new") in anchor.calls
        assert ("create_on_ramp", "q-old") not in anchor.calls
        assert flow.history[:5] == [
            RampState.IDLE,
            RampState.QUOTE_REQUESTED,
            RampState.QUOTED,
            RampState.QUOTE_REQUESTED,
            RampState.QUOTED,
        ]
        assert flow.state is RampState.COMPLETED

    def test_gives_up_after_repeated_expired_quotes(self):
        anchor = FakeAnchor("alfredpay")
        anchor.quotes = [make_quote("q-old", expires_in=-1)]
        engine = make_engine(anchor)

        with pytest.raises(QuoteExpiredError):
            asyncio.run(engine.run_on_ramp("cust-1", "MXN", "USDC", "1000", USER))

        assert anchor.names() == ["get_quote"] * 3

    def test_redeemed_quote_is_forgotten(self):
        anchor = FakeAnchor("alfredpay")
        engine = make_engine(anchor)

        quote = asyncio.run(engine.get_quote(GetQuoteInput("USDC", "MXN", from_amount="10")))
        assert quote.id in engine._quotes

        asyncio.run(engine.create_off_ramp(CreateOffRampInput(
            customer_id="cust-1",
            quote_id=quote.id,
            stellar_address=USER,
            from_currency="USDC",
            to_currency="MXN",
            amount="10",
            fiat_account_id="fa-1",
        )))

        assert engine._quotes == {}


class TestAddressValidation:
    def test_malformed_address_fails_before_any_request(self):
        anchor = FakeAnchor("alfredpay")
        engine = make_engine(anchor)

        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(engine.run_on_ramp("cust-1", "MXN", "USDC", "1000", "not-an-address"))

        assert exc_info.value.code == "INVALID_ADDRESS"
        assert anchor.calls == []

    def test_off_ramp_rejects_secret_key(self):
        anchor = FakeAnchor("etherfuse")
        engine = make_engine(anchor)
        secret = "S" + USER[1:]

        with pytest.raises(ValidationError):
            asyncio.run(engine.run_off_ramp("cust-1", "USDC", "MXN", "10", secret))
        assert anchor.calls == []


# --- Capability gates ---


class TestCapabilityGates:
    def test_email_lookup_unsupported_raises_before_request(self):
        anchor = FakeAnchor("etherfuse")
        engine = make_engine(anchor)

        with pytest.raises(CapabilityError):
            asyncio.run(engine.get_customer_by_email("u@example.com"))
        assert anchor.calls == []

    def test_get_or_create_uses_email_lookup_when_supported(self):
        anchor = FakeAnchor("alfredpay")
        anchor.customer = Customer(id="cust-1", email="u@example.com")
        engine = make_engine(anchor)

        customer = asyncio.run(engine.get_or_create_customer(CreateCustomerInput("u@example.com")))

        assert customer.id == "cust-1"
        assert "create_customer" not in anchor.names()

    def test_get_or_create_creates_without_email_lookup(self):
        anchor = FakeAnchor("etherfuse")
        engine = make_engine(anchor)

        customer = asyncio.run(engine.get_or_create_customer(
            CreateCustomerInput("u@example.com", public_key=USER)
        ))

        assert customer.id == "cust-new"
        assert anchor.names() == ["create_customer"]

    def test_tos_url_only_for_providers_requiring_it(self):
        engine = make_engine(FakeAnchor("alfredpay"))
        with pytest.raises(CapabilityError):
            asyncio.run(engine.get_tos_url())


# --- Off-ramp flows ---


class TestDeferredSigning:
    def test_waits_for_signable_then_submits_to_network(self):
        anchor = FakeAnchor("etherfuse")
        anchor.fiat_accounts = [SavedFiatAccount(id="bank-1", type="SPEI")]
        anchor.created_off_ramp = off_tx(stellar_address=USER)
        anchor.off_ramp_script = [
            off_tx(quote_id=""),
            off_tx(quote_id="", signable_transaction="AAAAburn"),
            off_tx(status=TransactionStatus.PROCESSING),
            off_tx(status=TransactionStatus.COMPLETED),
        ]
        signer, submitter = FakeSigner(), FakeSubmitter()
        seen = []
        engine = make_engine(
            anchor,
            signer=signer,
            submitter=submitter,
            on_status_change=lambda flow: seen.append((flow.state, flow.status)),
        )

        flow = asyncio.run(engine.run_off_ramp("cust-1", "USDC", "MXN", "10", USER))

        assert flow.history == [
            RampState.IDLE,
            RampState.QUOTE_REQUESTED,
            RampState.QUOTED,
            RampState.CREATED,
            RampState.AWAITING_SIGNABLE,
            RampState.SIGNING,
            RampState.SUBMITTED,
            RampState.POLLING,
            RampState.COMPLETED,
        ]
        assert signer.signed == [("AAAAburn", TESTNET)]
        assert submitter.submitted == ["signed:AAAAburn"]
        assert ("create_off_ramp", "q-1", "bank-1") in anchor.calls
        assert flow.transaction.status is TransactionStatus.COMPLETED
        assert (RampState.POLLING, TransactionStatus.PROCESSING) in seen

    def test_order_cancelled_while_waiting_is_not_signed(self):
        anchor = FakeAnchor("etherfuse")
        anchor.fiat_accounts = [SavedFiatAccount(id="bank-1", type="SPEI")]
        anchor.off_ramp_script = [off_tx(status=TransactionStatus.CANCELLED)]
        signer = FakeSigner()
        engine = make_engine(anchor, signer=signer)

        flow = asyncio.run(engine.run_off_ramp("cust-1", "USDC", "MXN", "10", USER))

        assert flow.state is RampState.CANCELLED
        assert signer.signed == []

    def test_signable_wait_times_out(self):
        anchor = FakeAnchor("etherfuse")
        anchor.fiat_accounts = [SavedFiatAccount(id="bank-1", type="SPEI")]
        anchor.off_ramp_script = [off_tx()]
        engine = make_engine(anchor, signable_timeout=30)

        with pytest.raises(PollingTimeoutError):
            asyncio.run(engine.run_off_ramp("cust-1", "USDC", "MXN", "10", USER))


class TestAnchorPayoutSubmission:
    def test_signed_payout_goes_to_anchor_and_payout_is_tracked(self):
        anchor = FakeAnchor("blindpay")
        anchor.quotes = [make_quote("qu_1", from_currency="USDB")]
        anchor.created_off_ramp = off_tx(
            "qu_1", quote_id="qu_1", stellar_address=USER, signable_transaction="AAAAauth"
        )
        anchor.payout = off_tx("po_1", status=TransactionStatus.PROCESSING, quote_id="qu_1")
        anchor.off_ramp_script = [off_tx("po_1", status=TransactionStatus.COMPLETED)]
        submitter = FakeSubmitter()
        engine = make_engine(anchor, submitter=submitter)

        flow = asyncio.run(engine.run_off_ramp(
            "re_1", "USDB", "MXN", "10", USER, fiat_account_id="ba_1"
        ))

        assert ("get_quote", "re_1:ba_1") in anchor.calls
        assert ("submit_signed_payout", "qu_1", "signed:AAAAauth", USER) in anchor.calls
        assert ("get_off_ramp_transaction", "po_1") in anchor.calls
        assert ("get_off_ramp_transaction", "qu_1") not in anchor.calls
        assert submitter.submitted == []
        assert flow.transaction_id == "po_1"
        assert flow.state is RampState.COMPLETED

    def test_bank_account_required_before_quote(self):
        anchor = FakeAnchor("blindpay")
        engine = make_engine(anchor)

        with pytest.raises(MissingResourceError) as exc_info:
            asyncio.run(engine.run_off_ramp("re_1", "USDB", "MXN", "10", USER))

        assert exc_info.value.code == "MISSING_BANK_ACCOUNT"
        assert "get_quote" not in anchor.names()

    def test_missing_signer(self):
        anchor = FakeAnchor("blindpay")
        anchor.created_off_ramp = off_tx("qu_1", signable_transaction="AAAAauth")
        engine = RampEngine(anchor, signer=None)

        with pytest.raises(MissingResourceError) as exc_info:
            asyncio.run(engine.sign_and_submit(anchor.created_off_ramp))
        assert exc_info.value.code == "MISSING_SIGNER"


class TestDepositAddressOffRamp:
    def test_without_payment_asset_goes_straight_to_polling(self):
        anchor = FakeAnchor("alfredpay")
        anchor.created_off_ramp = off_tx("off-1", stellar_address=DEPOSIT, memo="123")
        anchor.off_ramp_script = [off_tx("off-1", status=TransactionStatus.COMPLETED)]
        signer = FakeSigner()
        engine = make_engine(anchor, signer=signer)

        flow = asyncio.run(engine.run_off_ramp(
            "cust-1", "USDC", "MXN", "10", USER, fiat_account_id="fa-1"
        ))

        assert RampState.SIGNING not in flow.history
        assert signer.signed == []
        assert flow.state is RampState.COMPLETED

    def test_payment_asset_builds_and_submits_payment(self):
        anchor = FakeAnchor("alfredpay")
        anchor.created_off_ramp = off_tx("off-1", stellar_address=DEPOSIT, memo="123")
        anchor.off_ramp_script = [off_tx("off-1", status=TransactionStatus.COMPLETED)]
        submitter = BuildingSubmitter()
        engine = make_engine(anchor, submitter=submitter)

        flow = asyncio.run(engine.run_off_ramp(
            "cust-1", "USDC", "MXN", "10", USER,
            fiat_account_id="fa-1", payment_asset="USDC:GISSUER",
        ))

        assert submitter.built == [{
            "source": USER,
            "destination": DEPOSIT,
            "asset": "USDC:GISSUER",
            "amount": "10",
            "network_passphrase": TESTNET,
            "memo": "123",
        }]
        assert submitter.submitted == ["signed:payment-envelope"]
        assert RampState.SUBMITTED in flow.history


# --- On-ramp flows ---


class TestOnRamp:
    def test_registers_wallet_and_uses_composite_quote_id(self):
        anchor = FakeAnchor("blindpay")
        anchor.quotes = [make_quote("pq_1", from_currency="MXN", to_currency="USDB")]
        engine = make_engine(anchor)

        flow = asyncio.run(engine.run_on_ramp("re_1", "MXN", "USDB", "1000", USER))

        assert ("register_blockchain_wallet", USER) in anchor.calls
        assert ("get_quote", "re_1:bw_1") in anchor.calls
        assert flow.state is RampState.COMPLETED

    def test_existing_wallet_is_reused(self):
        anchor = FakeAnchor("blindpay")
        anchor.wallets = [BlockchainWallet(id="bw_9", address=USER, network="stellar_testnet")]
        engine = make_engine(anchor)

        asyncio.run(engine.run_on_ramp("re_1", "MXN", "USDB", "1000", USER))

        assert "register_blockchain_wallet" not in anchor.names()
        assert ("get_quote", "re_1:bw_9") in anchor.calls

    def test_payment_instructions_available_at_created(self):
        anchor = FakeAnchor("alfredpay")
        anchor.on_ramp_script = [
            on_tx(status=TransactionStatus.PROCESSING),
            on_tx(status=TransactionStatus.FAILED),
        ]
        created = []

        def on_change(flow):
            if flow.state is RampState.CREATED:
                created.append(flow.transaction.payment_instructions.clabe)

        engine = make_engine(anchor, on_status_change=on_change)
        flow = asyncio.run(engine.run_on_ramp("cust-1", "MXN", "USDC", "1000", USER))

        assert created == ["646180000000000000"]
        assert flow.state is RampState.FAILED
        assert "register_blockchain_wallet" not in anchor.names()
        assert ("get_quote", "cust-1") in anchor.calls

    def test_async_status_callback(self):
        anchor = FakeAnchor("alfredpay")
        states = []

        async def on_change(flow):
            await asyncio.sleep(0)
            states.append(flow.state)

        engine = make_engine(anchor, on_status_change=on_change)
        asyncio.run(engine.run_on_ramp("cust-1", "MXN", "USDC", "1000", USER))

        assert states[0] is RampState.QUOTE_REQUESTED
        assert states[-1] is RampState.COMPLETED

    def test_poll_timeout(self):
        anchor = FakeAnchor("alfredpay")
        anchor.on_ramp_script = [on_tx(status=TransactionStatus.PENDING)]
        engine = make_engine(anchor, poll_timeout=20)

        with pytest.raises(PollingTimeoutError):
            asyncio.run(engine.run_on_ramp("cust-1", "MXN", "USDC", "1000", USER))


def test_passthrough_lookups():
    anchor = FakeAnchor("alfredpay")
    anchor.off_ramp_script = [replace(off_tx("off-9"), status=TransactionStatus.REFUNDED)]
    engine = make_engine(anchor)

    tx = asyncio.run(engine.get_off_ramp_transaction("off-9"))
    url = asyncio.run(engine.get_kyc_url("cust-1"))

    assert tx.status is TransactionStatus.REFUNDED
    assert url == "https://kyc.example.com"
