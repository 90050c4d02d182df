"""Canonical types shared by every anchor provider."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .utils import isoformat


class TransactionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    @property
    def is_terminal(self) -> bool:
        return self not in (TransactionStatus.PENDING, TransactionStatus.PROCESSING)


class KycStatus(str, Enum):
    NOT_STARTED = "not_started"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    UPDATE_REQUIRED = "update_required"


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class Customer:
    id: str
    email: str
    kyc_status: KycStatus = KycStatus.NOT_STARTED
    # Generated at registration time by providers that need one up front.
    bank_account_id: str | None = None
    blockchain_wallet_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "email": self.email,
            "kycStatus": self.kyc_status.value,
            "bankAccountId": self.bank_account_id,
            "blockchainWalletId": self.blockchain_wallet_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        })


@dataclass
class Quote:
    """A firm conversion quote.

    ``exchange_rate`` is always destination units per one source unit and
    ``fee`` the sum of every fee line item the provider reported.
    """

    id: str
    from_currency: str
    to_currency: str
    from_amount: str
    to_amount: str
    exchange_rate: str
    fee: str
    expires_at: datetime
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fromCurrency": self.from_currency,
            "toCurrency": self.to_currency,
            "fromAmount": self.from_amount,
            "toAmount": self.to_amount,
            "exchangeRate": self.exchange_rate,
            "fee": self.fee,
            "expiresAt": isoformat(self.expires_at),
            "createdAt": isoformat(self.created_at),
        }


@dataclass
class PaymentInstructions:
    """SPEI transfer details the user follows to fund an on-ramp."""

    clabe: str
    amount: str
    currency: str
    type: str = "spei"
    bank_name: str = ""
    account_number: str = ""
    beneficiary: str = ""
    reference: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "bankName": self.bank_name,
            "accountNumber": self.account_number,
            "clabe": self.clabe,
            "beneficiary": self.beneficiary,
            "reference": self.reference,
            "amount": self.amount,
            "currency": self.currency,
        }


@dataclass
class BankAccount:
    id: str = ""
    bank_name: str = ""
    account_number: str = ""
    clabe: str = ""
    beneficiary: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "bankName": self.bank_name,
            "accountNumber": self.account_number,
            "clabe": self.clabe,
            "beneficiary": self.beneficiary,
        }


@dataclass
class FiatAccountRef:
    id: str
    type: str = "spei"
    label: str = "SPEI Account"

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.type, "label": self.label}


@dataclass
class OnRampTransaction:
    id: str
    customer_id: str
    quote_id: str
    status: TransactionStatus
    from_amount: str
    from_currency: str
    to_amount: str
    to_currency: str
    stellar_address: str = ""
    payment_instructions: PaymentInstructions | None = None
    fee_bps: int | None = None
    fee_amount: str | None = None
    stellar_tx_hash: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def signable_transaction(self) -> None:
        # On-ramps are funded over the fiat rail; there is never anything to sign.
        return None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "customerId": self.customer_id,
            "quoteId": self.quote_id,
            "status": self.status.value,
            "fromAmount": self.from_amount,
            "fromCurrency": self.from_currency,
            "toAmount": self.to_amount,
            "toCurrency": self.to_currency,
            "stellarAddress": self.stellar_address,
            "paymentInstructions": (
                self.payment_instructions.to_dict() if self.payment_instructions else None
            ),
            "feeBps": self.fee_bps,
            "feeAmount": self.fee_amount,
            "stellarTxHash": self.stellar_tx_hash,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        })


@dataclass
class OffRampTransaction:
    id: str
    customer_id: str
    quote_id: str
    status: TransactionStatus
    from_amount: str
    from_currency: str
    to_amount: str
    to_currency: str
    stellar_address: str = ""
    bank_account: BankAccount | None = None
    fiat_account: FiatAccountRef | None = None
    fee_bps: int | None = None
    fee_amount: str | None = None
    memo: str | None = None
    stellar_tx_hash: str | None = None
    # Base64 XDR envelope the user must sign, when the provider supplies one.
    signable_transaction: str | None = None
    status_page: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "customerId": self.customer_id,
            "quoteId": self.quote_id,
            "status": self.status.value,
            "fromAmount": self.from_amount,
            "fromCurrency": self.from_currency,
            "toAmount": self.to_amount,
            "toCurrency": self.to_currency,
            "stellarAddress": self.stellar_address,
            "bankAccount": self.bank_account.to_dict() if self.bank_account else None,
            "fiatAccount": self.fiat_account.to_dict() if self.fiat_account else None,
            "feeBps": self.fee_bps,
            "feeAmount": self.fee_amount,
            "memo": self.memo,
            "stellarTxHash": self.stellar_tx_hash,
            "signableTransaction": self.signable_transaction,
            "statusPage": self.status_page,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        })


RampTransaction = OnRampTransaction | OffRampTransaction


@dataclass
class CreateCustomerInput:
    email: str
    country: str | None = None
    public_key: str | None = None


@dataclass
class GetQuoteInput:
    from_currency: str
    to_currency: str
    from_amount: str | None = None
    to_amount: str | None = None
    # Some providers require the customer; composite ids are built by the engine.
    customer_id: str | None = None
    stellar_address: str | None = None

    @property
    def amount(self) -> str:
        return self.from_amount or self.to_amount or "0"


@dataclass
class CreateOnRampInput:
    customer_id: str
    quote_id: str
    stellar_address: str
    from_currency: str
    to_currency: str
    amount: str
    memo: str | None = None
    bank_account_id: str | None = None
    # The quote being redeemed, when the caller holds it. Used for expiry checks.
    quote: Quote | None = None


@dataclass
class FiatAccountInput:
    bank_name: str
    clabe: str
    beneficiary: str
    account_number: str = ""


@dataclass
class CreateOffRampInput:
    customer_id: str
    quote_id: str
    stellar_address: str
    from_currency: str
    to_currency: str
    amount: str
    fiat_account_id: str
    memo: str | None = None
    # Echoed into the response mapping; never sent to the provider.
    bank_account_info: FiatAccountInput | None = None
    quote: Quote | None = None


@dataclass
class RegisterFiatAccountInput:
    customer_id: str
    bank_account: FiatAccountInput


@dataclass
class RegisteredFiatAccount:
    id: str
    customer_id: str
    type: str
    status: str
    created_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "customerId": self.customer_id,
            "type": self.type,
            "status": self.status,
            "createdAt": self.created_at,
        })


@dataclass
class SavedFiatAccount:
    id: str
    type: str
    account_number: str = ""
    bank_name: str = ""
    account_holder_name: str = ""
    created_at: str | None = None


@dataclass
class BlockchainWallet:
    id: str
    address: str
    network: str
    name: str = ""
    created_at: str | None = None


@dataclass
class StatusTable:
    """Provider-native status vocabulary mapped to canonical statuses."""

    provider: str
    mapping: dict[str, TransactionStatus] = field(default_factory=dict)
    fallback: TransactionStatus = TransactionStatus.PENDING

    def map(self, raw: str | None) -> TransactionStatus:
        if raw is not None and raw in self.mapping:
            return self.mapping[raw]
        return self.fallback

    def covers(self, raw: str) -> bool:
        return raw in self.mapping
