"""Contract every anchor provider adapter implements."""

import logging
from collections.abc import Awaitable
from typing import Protocol, TypeVar

from ..capabilities import AnchorCapabilities, get_capabilities
from ..errors import CapabilityError, NotFoundError
from ..transport import AnchorHttpClient
from ..types import (
    BlockchainWallet,
    CreateCustomerInput,
    CreateOffRampInput,
    CreateOnRampInput,
    Customer,
    GetQuoteInput,
    KycStatus,
    OffRampTransaction,
    OnRampTransaction,
    Quote,
    RegisteredFiatAccount,
    RegisterFiatAccountInput,
    SavedFiatAccount,
    StatusTable,
    TransactionStatus,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Anchor(Protocol):
    """Polymorphic anchor contract consumed by the ramp engine.

    Single-resource lookups return ``None`` when the provider answers 404;
    every other failure raises.
    """

    name: str
    capabilities: AnchorCapabilities

    async def create_customer(self, input: CreateCustomerInput) -> Customer: ...

    async def get_customer(self, customer_id: str) -> Customer | None: ...

    async def get_customer_by_email(
        self, email: str, country: str | None = None
    ) -> Customer | None: ...

    async def get_quote(self, input: GetQuoteInput) -> Quote: ...

    async def create_on_ramp(self, input: CreateOnRampInput) -> OnRampTransaction: ...

    async def get_on_ramp_transaction(self, transaction_id: str) -> OnRampTransaction | None: ...

    async def register_fiat_account(
        self, input: RegisterFiatAccountInput
    ) -> RegisteredFiatAccount: ...

    async def get_fiat_accounts(self, customer_id: str) -> list[SavedFiatAccount]: ...

    async def create_off_ramp(self, input: CreateOffRampInput) -> OffRampTransaction: ...

    async def get_off_ramp_transaction(self, transaction_id: str) -> OffRampTransaction | None: ...

    async def get_kyc_url(
        self,
        customer_id: str,
        public_key: str | None = None,
        bank_account_id: str | None = None,
    ) -> str: ...

    async def get_kyc_status(
        self, customer_id: str, public_key: str | None = None
    ) -> KycStatus: ...

    async def get_blockchain_wallets(self, customer_id: str) -> list[BlockchainWallet]: ...

    async def register_blockchain_wallet(
        self, customer_id: str, address: str, name: str | None = None
    ) -> BlockchainWallet: ...

    async def submit_signed_payout(
        self, quote_id: str, signed_transaction: str, sender_address: str
    ) -> OffRampTransaction: ...

    async def generate_tos_url(self, redirect_url: str | None = None) -> str: ...


class BaseAnchor:
    """Shared plumbing for provider adapters.

    Subclasses set ``name`` and implement the provider endpoints. Operations
    a provider lacks fall through to the ``CapabilityError`` defaults here.
    """

    name: str = ""

    def __init__(
        self,
        http: AnchorHttpClient,
        capabilities: AnchorCapabilities | None = None,
    ):
        self._http = http
        self.capabilities = capabilities or get_capabilities(self.name)

    def _unsupported(self, operation: str) -> CapabilityError:
        return CapabilityError(
            f"{self.capabilities.display_name} does not support {operation}"
        )

    async def _or_none(self, call: Awaitable[T]) -> T | None:
        try:
            return await call
        except NotFoundError:
            return None

    def _map_status(self, table: StatusTable, raw: str | None) -> TransactionStatus:
        if raw is None or not table.covers(raw):
            logger.warning(
                "[%s] Unmapped status %r, using %s", table.provider, raw, table.fallback.value
            )
        return table.map(raw)

    async def get_customer_by_email(
        self, email: str, country: str | None = None
    ) -> Customer | None:
        raise self._unsupported("customer lookup by email")

    async def get_blockchain_wallets(self, customer_id: str) -> list[BlockchainWallet]:
        raise self._unsupported("blockchain wallet registration")

    async def register_blockchain_wallet(
        self, customer_id: str, address: str, name: str | None = None
    ) -> BlockchainWallet:
        raise self._unsupported("blockchain wallet registration")

    async def submit_signed_payout(
        self, quote_id: str, signed_transaction: str, sender_address: str
    ) -> OffRampTransaction:
        raise self._unsupported("anchor payout submission")

    async def generate_tos_url(self, redirect_url: str | None = None) -> str:
        raise self._unsupported("terms of service acceptance")
