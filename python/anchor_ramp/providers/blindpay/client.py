"""BlindPay adapter: redirect KYC, ToS acceptance and two-step Stellar payouts.

Key differences from the other anchors:

- Amounts are integer cents on the wire.
- Paths are scoped to an instance: ``/v1/instances/{instance_id}/...``.
- Quotes need the receiver's bank account (payout) or blockchain wallet
  (payin), passed as a ``"receiverId:resourceId"`` customer id.
- Stellar payouts authorize first (returns an envelope to sign), then the
  signed envelope goes back to BlindPay rather than to the network.
"""

import logging
import uuid
from urllib.parse import quote as urlquote

import httpx

from ...capabilities import AnchorCapabilities
from ...quotes import RateConvention, fiat_currency, normalize_quote
from ...transport import AnchorHttpClient
from ...types import (
    BankAccount,
    BlockchainWallet,
    CreateCustomerInput,
    CreateOffRampInput,
    CreateOnRampInput,
    Customer,
    GetQuoteInput,
    KycStatus,
    OffRampTransaction,
    OnRampTransaction,
    PaymentInstructions,
    Quote,
    RegisteredFiatAccount,
    RegisterFiatAccountInput,
    SavedFiatAccount,
    StatusTable,
    TransactionStatus,
)
from ...utils import from_cents, isoformat, to_cents, utcnow
from ..base import BaseAnchor
from .types import (
    BlindPayBankAccountResponse,
    BlindPayBlockchainWalletResponse,
    BlindPayPayinResponse,
    BlindPayPayoutAuthorizeResponse,
    BlindPayPayoutResponse,
    BlindPayQuoteResponse,
    BlindPayReceiverResponse,
    BlindPayTosResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_NETWORK = "stellar_testnet"

# Quotes from these currencies are payins (on-ramp); anything else is a payout.
BLINDPAY_FIAT_CURRENCIES = ("MXN", "USD", "BRL", "ARS", "COP")

BLINDPAY_PAYOUT_STATUSES = ("pending", "processing", "completed", "failed", "refunded")
BLINDPAY_PAYIN_STATUSES = BLINDPAY_PAYOUT_STATUSES + ("waiting_for_payment",)

PAYOUT_STATUS = StatusTable(
    "blindpay.payout",
    {
        "pending": TransactionStatus.PENDING,
        "processing": TransactionStatus.PROCESSING,
        "completed": TransactionStatus.COMPLETED,
        "failed": TransactionStatus.FAILED,
        "refunded": TransactionStatus.CANCELLED,
    },
)

PAYIN_STATUS = StatusTable(
    "blindpay.payin",
    {
        **PAYOUT_STATUS.mapping,
        "waiting_for_payment": TransactionStatus.PENDING,
    },
)

RECEIVER_KYC_STATUS = {
    "verifying": KycStatus.PENDING,
    "approved": KycStatus.APPROVED,
    "rejected": KycStatus.REJECTED,
}

# Quotations are fiat units per token, so only payouts read them as-is.
PAYIN_RATE_CONVENTION = RateConvention.SOURCE_PER_DESTINATION
PAYOUT_RATE_CONVENTION = RateConvention.DESTINATION_PER_SOURCE


def _token(currency: str) -> str:
    return "USDC" if currency == "USDC" else "USDB"


def _split_customer_id(customer_id: str | None) -> tuple[str, str]:
    receiver_id, _, resource_id = (customer_id or "").partition(":")
    return receiver_id, resource_id


class BlindPayClient(BaseAnchor):
    """Client for the BlindPay fiat on/off ramp API (Stellar, SPEI)."""

    name = "blindpay"

    def __init__(
        self,
        api_key: str,
        instance_id: str,
        base_url: str,
        network: str = DEFAULT_NETWORK,
        client: httpx.AsyncClient | None = None,
        capabilities: AnchorCapabilities | None = None,
    ):
        http = AnchorHttpClient(
            "BlindPay", base_url, {"Authorization": f"Bearer {api_key}"}, client=client
        )
        super().__init__(http, capabilities)
        self._instance_id = instance_id
        self.network = network

    def _instance_path(self, path: str) -> str:
        return f"/v1/instances/{self._instance_id}{path}"

    def _external_path(self, path: str) -> str:
        return f"/v1/e/instances/{self._instance_id}{path}"

    # Mapping

    def _receiver_kyc_status(self, raw: str) -> KycStatus:
        status = RECEIVER_KYC_STATUS.get(raw)
        if status is None:
            logger.warning("[blindpay] Unmapped receiver KYC status %r, using pending", raw)
            return KycStatus.PENDING
        return status

    def _map_payin(self, response: BlindPayPayinResponse, receiver_id: str = "") -> OnRampTransaction:
        currency = response.currency or "MXN"
        instructions = None
        if response.clabe:
            instructions = PaymentInstructions(
                clabe=response.clabe,
                amount=from_cents(response.sender_amount),
                currency=currency,
                reference=response.memo_code or "",
            )
        tracking = response.tracking_complete
        return OnRampTransaction(
            id=response.id,
            customer_id=receiver_id or response.receiver_id or "",
            quote_id=response.payin_quote_id,
            status=self._map_status(PAYIN_STATUS, response.status),
            from_amount=from_cents(response.sender_amount),
            from_currency=currency,
            to_amount=from_cents(response.receiver_amount),
            to_currency=response.token or "USDB",
            payment_instructions=instructions,
            stellar_tx_hash=(tracking.transaction_hash if tracking else None) or None,
            created_at=response.created_at,
            updated_at=response.updated_at,
        )

    def _map_payout(self, response: BlindPayPayoutResponse, receiver_id: str = "") -> OffRampTransaction:
        return OffRampTransaction(
            id=response.id,
            customer_id=receiver_id,
            quote_id=response.quote_id,
            status=self._map_status(PAYOUT_STATUS, response.status),
            from_amount=from_cents(response.sender_amount),
            from_currency=response.sender_currency,
            to_amount=from_cents(response.receiver_amount),
            to_currency=response.receiver_currency,
            stellar_address=response.sender_wallet_address,
            bank_account=BankAccount(),
            stellar_tx_hash=response.blockchain_tx_hash,
            created_at=response.created_at,
            updated_at=response.updated_at,
        )

    def _map_quote(
        self, response: BlindPayQuoteResponse, input: GetQuoteInput, convention: RateConvention
    ) -> Quote:
        quotation = response.blindpay_quotation
        if quotation is None:
            quotation = response.commercial_quotation
        total_fee = (
            (response.flat_fee or 0)
            + (response.partner_fee_amount or 0)
            + (response.billing_fee_amount or 0)
        )
        return normalize_quote(
            quote_id=response.id,
            from_currency=input.from_currency,
            to_currency=input.to_currency,
            from_amount=from_cents(response.sender_amount),
            to_amount=from_cents(response.receiver_amount),
            rate=quotation if quotation is not None else 0,
            fee_items=[from_cents(total_fee)],
            expires_at=response.expires_at,
            convention=convention,
            fee_currency=fiat_currency(input.from_currency, input.to_currency),
        )

    # Customers

    async def create_customer(self, input: CreateCustomerInput) -> Customer:
        """Create a local customer stub.

        A real receiver needs a ToS id and full KYC data; see :meth:`create_receiver`.
        """
        now = isoformat(utcnow())
        return Customer(
            id=str(uuid.uuid4()),
            email=input.email,
            kyc_status=KycStatus.NOT_STARTED,
            created_at=now,
            updated_at=now,
        )

    async def create_receiver(self, data: dict) -> Customer:
        """Create a receiver with its KYC data in one step. Needs a prior ``tos_id``."""
        raw = await self._http.post(self._instance_path("/receivers"), data)
        response = BlindPayReceiverResponse.model_validate(raw)
        return Customer(
            id=response.id,
            email=response.email,
            kyc_status=self._receiver_kyc_status(response.kyc_status),
            created_at=response.created_at,
            updated_at=response.updated_at,
        )

    async def get_customer(self, customer_id: str) -> Customer | None:
        raw = await self._or_none(self._http.get(self._instance_path(f"/receivers/{customer_id}")))
        if raw is None:
            return None
        response = BlindPayReceiverResponse.model_validate(raw)
        return Customer(
            id=response.id,
            email=response.email,
            kyc_status=self._receiver_kyc_status(response.kyc_status),
            created_at=response.created_at,
            updated_at=response.updated_at,
        )

    # Quotes and transactions

    async def get_quote(self, input: GetQuoteInput) -> Quote:
        """Create a payin quote for fiat sources, a payout quote otherwise.

        ``input.customer_id`` must be ``"receiverId:resourceId"`` where the
        resource is the blockchain wallet (payin) or bank account (payout).
        """
        _, resource_id = _split_customer_id(input.customer_id)
        request_amount = to_cents(input.amount)

        if input.from_currency.upper() in BLINDPAY_FIAT_CURRENCIES:
            raw = await self._http.post(
                self._instance_path("/payin-quotes"),
                {
                    "blockchain_wallet_id": resource_id,
                    "currency_type": "sender",
                    "cover_fees": False,
                    "request_amount": request_amount,
                    "payment_method": "spei",
                    "token": _token(input.to_currency),
                },
            )
            convention = PAYIN_RATE_CONVENTION
        else:
            raw = await self._http.post(
                self._instance_path("/quotes"),
                {
                    "bank_account_id": resource_id,
                    "currency_type": "sender",
                    "cover_fees": False,
                    "request_amount": request_amount,
                    "network": self.network,
                    "token": _token(input.from_currency),
                },
            )
            convention = PAYOUT_RATE_CONVENTION

        return self._map_quote(BlindPayQuoteResponse.model_validate(raw), input, convention)

    async def create_on_ramp(self, input: CreateOnRampInput) -> OnRampTransaction:
        raw = await self._http.post(
            self._instance_path("/payins/evm"), {"payin_quote_id": input.quote_id}
        )
        return self._map_payin(BlindPayPayinResponse.model_validate(raw), input.customer_id)

    async def get_on_ramp_transaction(self, transaction_id: str) -> OnRampTransaction | None:
        raw = await self._or_none(self._http.get(self._instance_path(f"/payins/{transaction_id}")))
        if raw is None:
            return None
        return self._map_payin(BlindPayPayinResponse.model_validate(raw))

    async def create_off_ramp(self, input: CreateOffRampInput) -> OffRampTransaction:
        """Authorize a Stellar payout; step one of two.

        The returned transaction is keyed by the quote id and carries the
        envelope to sign. Hand the signed envelope to :meth:`submit_signed_payout`.
        """
        raw = await self._http.post(
            self._instance_path("/payouts/stellar/authorize"),
            {"quote_id": input.quote_id, "sender_wallet_address": input.stellar_address},
        )
        response = BlindPayPayoutAuthorizeResponse.model_validate(raw)
        info = input.bank_account_info
        now = isoformat(utcnow())
        return OffRampTransaction(
            id=input.quote_id,
            customer_id=input.customer_id,
            quote_id=input.quote_id,
            status=TransactionStatus.PENDING,
            from_amount=input.amount,
            from_currency=input.from_currency,
            to_amount="",
            to_currency=input.to_currency,
            stellar_address=input.stellar_address,
            bank_account=BankAccount(
                id=input.fiat_account_id,
                bank_name=info.bank_name if info else "",
                account_number=info.account_number if info else "",
                clabe=info.clabe if info else "",
                beneficiary=info.beneficiary if info else "",
            ),
            signable_transaction=response.transaction_hash,
            created_at=now,
            updated_at=now,
        )

    async def submit_signed_payout(
        self, quote_id: str, signed_transaction: str, sender_address: str
    ) -> OffRampTransaction:
        raw = await self._http.post(
            self._instance_path("/payouts/stellar"),
            {
                "quote_id": quote_id,
                "signed_transaction": signed_transaction,
                "sender_wallet_address": sender_address,
            },
        )
        return self._map_payout(BlindPayPayoutResponse.model_validate(raw))

    async def get_off_ramp_transaction(self, transaction_id: str) -> OffRampTransaction | None:
        raw = await self._or_none(self._http.get(self._instance_path(f"/payouts/{transaction_id}")))
        if raw is None:
            return None
        return self._map_payout(BlindPayPayoutResponse.model_validate(raw))

    # Bank accounts and wallets

    async def register_fiat_account(self, input: RegisterFiatAccountInput) -> RegisteredFiatAccount:
        account = input.bank_account
        raw = await self._http.post(
            self._instance_path(f"/receivers/{input.customer_id}/bank-accounts"),
            {
                "type": "spei_bitso",
                "name": account.beneficiary,
                "beneficiary_name": account.beneficiary,
                "spei_protocol": "clabe",
                "spei_institution_code": f"40{account.clabe[:3]}",
                "spei_clabe": account.clabe,
            },
        )
        response = BlindPayBankAccountResponse.model_validate(raw)
        return RegisteredFiatAccount(
            id=response.id,
            customer_id=input.customer_id,
            type=response.type,
            status="active",
            created_at=response.created_at,
        )

    async def get_fiat_accounts(self, customer_id: str) -> list[SavedFiatAccount]:
        raw = await self._or_none(
            self._http.get(self._instance_path(f"/receivers/{customer_id}/bank-accounts"))
        )
        accounts = []
        for item in raw or []:
            account = BlindPayBankAccountResponse.model_validate(item)
            accounts.append(
                SavedFiatAccount(
                    id=account.id,
                    type=account.type,
                    account_number=account.spei_clabe or "",
                    account_holder_name=account.beneficiary_name or account.name,
                    created_at=account.created_at,
                )
            )
        return accounts

    async def register_blockchain_wallet(
        self, customer_id: str, address: str, name: str | None = None
    ) -> BlockchainWallet:
        # Direct registration: BlindPay's signed-message flow is EVM only.
        raw = await self._http.post(
            self._instance_path(f"/receivers/{customer_id}/blockchain-wallets"),
            {
                "name": name or "Stellar Wallet",
                "network": self.network,
                "is_account_abstraction": True,
                "address": address,
            },
        )
        return self._map_wallet(BlindPayBlockchainWalletResponse.model_validate(raw))

    async def get_blockchain_wallets(self, customer_id: str) -> list[BlockchainWallet]:
        raw = await self._or_none(
            self._http.get(self._instance_path(f"/receivers/{customer_id}/blockchain-wallets"))
        )
        return [
            self._map_wallet(BlindPayBlockchainWalletResponse.model_validate(item))
            for item in raw or []
        ]

    def _map_wallet(self, response: BlindPayBlockchainWalletResponse) -> BlockchainWallet:
        return BlockchainWallet(
            id=response.id,
            address=response.address,
            network=response.network,
            name=response.name,
            created_at=response.created_at,
        )

    # KYC

    async def generate_tos_url(self, redirect_url: str | None = None) -> str:
        """Get a ToS acceptance URL. It must be opened in the user's browser."""
        raw = await self._http.post(
            self._external_path("/tos"), {"idempotency_key": str(uuid.uuid4())}
        )
        url = BlindPayTosResponse.model_validate(raw).url
        if redirect_url:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}redirect_url={urlquote(redirect_url, safe='')}"
        return url

    async def get_kyc_url(
        self,
        customer_id: str,
        public_key: str | None = None,
        bank_account_id: str | None = None,
    ) -> str:
        # KYC starts with ToS acceptance; receiver creation carries the KYC data.
        return await self.generate_tos_url()

    async def get_kyc_status(self, customer_id: str, public_key: str | None = None) -> KycStatus:
        customer = await self.get_customer(customer_id)
        if customer is None:
            return KycStatus.NOT_STARTED
        return customer.kyc_status
