"""Etherfuse adapter: iframe KYC and deferred off-ramp signing.

The raw API key is sent as the ``Authorization`` header. Off-ramp orders are
created without an envelope; Etherfuse prepares the burn transaction
out-of-band and exposes it on the order once ready.
"""

import logging
import re
import uuid
from typing import Any

import httpx

from ...capabilities import AnchorCapabilities
from ...errors import MissingResourceError, TransportError
from ...quotes import RateConvention, fiat_currency, normalize_quote
from ...transport import AnchorHttpClient
from ...types import (
    BankAccount,
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
from ...utils import isoformat, utcnow
from ..base import BaseAnchor
from .types import (
    EtherfuseAsset,
    EtherfuseAssetsResponse,
    EtherfuseBankAccountListResponse,
    EtherfuseBankAccountResponse,
    EtherfuseCreateOffRampResponse,
    EtherfuseCreateOnRampResponse,
    EtherfuseCustomerResponse,
    EtherfuseKycDocument,
    EtherfuseKycIdentity,
    EtherfuseKycStatusResponse,
    EtherfuseOnboardingResponse,
    EtherfuseOrderResponse,
    EtherfuseQuoteResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_BLOCKCHAIN = "stellar"

ETHERFUSE_ORDER_STATUSES = ("created", "funded", "completed", "failed", "refunded", "canceled")

ORDER_STATUS = StatusTable(
    "etherfuse.order",
    {
        "created": TransactionStatus.PENDING,
        "funded": TransactionStatus.PROCESSING,
        "completed": TransactionStatus.COMPLETED,
        "failed": TransactionStatus.FAILED,
        "refunded": TransactionStatus.REFUNDED,
        "canceled": TransactionStatus.CANCELLED,
    },
)

KYC_STATUS = {
    "not_started": KycStatus.NOT_STARTED,
    "proposed": KycStatus.PENDING,
    "approved": KycStatus.APPROVED,
    "rejected": KycStatus.REJECTED,
}

RATE_CONVENTION = RateConvention.DESTINATION_PER_SOURCE

# 409 on onboarding: "... see org: <customer uuid>"
_EXISTING_CUSTOMER_RE = re.compile(r"see org:\s*([0-9a-f-]+)", re.IGNORECASE)


def _missing_public_key(operation: str) -> MissingResourceError:
    return MissingResourceError(
        f"publicKey is required {operation}", code="MISSING_PUBLIC_KEY"
    )


class EtherfuseClient(BaseAnchor):
    """Client for the Etherfuse ramp API (Stellar, SPEI)."""

    name = "etherfuse"

    def __init__(
        self,
        api_key: str,
        base_url: str,
        blockchain: str = DEFAULT_BLOCKCHAIN,
        client: httpx.AsyncClient | None = None,
        capabilities: AnchorCapabilities | None = None,
    ):
        http = AnchorHttpClient("Etherfuse", base_url, {"Authorization": api_key}, client=client)
        super().__init__(http, capabilities)
        self.blockchain = blockchain

    # Mapping

    def _kyc_status(self, raw: str) -> KycStatus:
        status = KYC_STATUS.get(raw)
        if status is None:
            logger.warning("[etherfuse] Unmapped KYC status %r, using not_started", raw)
            return KycStatus.NOT_STARTED
        return status

    def _map_on_ramp(self, order: EtherfuseOrderResponse) -> OnRampTransaction:
        instructions = None
        if order.deposit_clabe:
            instructions = PaymentInstructions(
                clabe=order.deposit_clabe, amount=order.amount_in_fiat or "", currency=""
            )
        return OnRampTransaction(
            id=order.order_id,
            customer_id=order.customer_id,
            quote_id="",
            status=self._map_status(ORDER_STATUS, order.status),
            from_amount=order.amount_in_fiat or "",
            from_currency="",
            to_amount=order.amount_in_tokens or "",
            to_currency="",
            fee_bps=order.fee_bps,
            fee_amount=order.fee_amount_in_fiat,
            payment_instructions=instructions,
            stellar_tx_hash=order.confirmed_tx_signature,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )

    def _map_off_ramp(self, order: EtherfuseOrderResponse) -> OffRampTransaction:
        return OffRampTransaction(
            id=order.order_id,
            customer_id=order.customer_id,
            quote_id="",
            status=self._map_status(ORDER_STATUS, order.status),
            from_amount=order.amount_in_tokens or "",
            from_currency="",
            to_amount=order.amount_in_fiat or "",
            to_currency="",
            fee_bps=order.fee_bps,
            fee_amount=order.fee_amount_in_fiat,
            bank_account=BankAccount(id=order.bank_account_id or ""),
            memo=order.memo,
            stellar_tx_hash=order.confirmed_tx_signature,
            signable_transaction=order.burn_transaction or None,
            status_page=order.status_page,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )

    # Assets

    async def get_assets(
        self,
        blockchain: str | None = None,
        currency: str | None = None,
        wallet: str | None = None,
    ) -> list[EtherfuseAsset]:
        params = {"blockchain": blockchain, "currency": currency, "wallet": wallet}
        raw = await self._http.get(
            "/ramp/assets", params={k: v for k, v in params.items() if v}
        )
        return EtherfuseAssetsResponse.model_validate(raw).assets

    async def resolve_asset_pair(
        self, from_currency: str, to_currency: str, wallet: str = ""
    ) -> tuple[str, str]:
        """Turn symbols like ``CETES`` into ``CODE:ISSUER`` identifiers."""
        if ":" in from_currency and ":" in to_currency:
            return from_currency, to_currency
        assets = await self.get_assets(self.blockchain, "mxn", wallet)
        identifiers = {asset.symbol: asset.identifier for asset in assets}
        return (
            identifiers.get(from_currency, from_currency),
            identifiers.get(to_currency, to_currency),
        )

    # Customers

    async def create_customer(self, input: CreateCustomerInput) -> Customer:
        """Register a customer through the onboarding endpoint.

        The customer and bank account ids are generated here. If the public
        key is already registered, the existing customer is recovered from
        the 409 response instead.
        """
        if not input.public_key:
            raise _missing_public_key("to create an Etherfuse customer")

        customer_id = str(uuid.uuid4())
        bank_account_id = str(uuid.uuid4())
        try:
            await self._http.post(
                "/ramp/onboarding-url",
                {
                    "customerId": customer_id,
                    "bankAccountId": bank_account_id,
                    "email": input.email,
                    "publicKey": input.public_key,
                    "blockchain": self.blockchain,
                },
            )
        except TransportError as e:
            match = _EXISTING_CUSTOMER_RE.search(e.message) if e.status_code == 409 else None
            if match is None:
                raise
            return await self._recover_customer(match.group(1), input.email)

        now = isoformat(utcnow())
        return Customer(
            id=customer_id,
            email=input.email,
            kyc_status=KycStatus.NOT_STARTED,
            bank_account_id=bank_account_id,
            created_at=now,
            updated_at=now,
        )

    async def _recover_customer(self, customer_id: str, email: str) -> Customer:
        logger.info("[etherfuse] Public key already registered to customer %s", customer_id)
        bank_account_id = None
        try:
            accounts = await self.get_fiat_accounts(customer_id)
            if accounts:
                bank_account_id = accounts[0].id
        except TransportError as e:
            logger.warning(
                "[etherfuse] Could not fetch bank accounts for customer %s: %s", customer_id, e
            )
        now = isoformat(utcnow())
        return Customer(
            id=customer_id,
            email=email,
            kyc_status=KycStatus.NOT_STARTED,
            bank_account_id=bank_account_id,
            created_at=now,
            updated_at=now,
        )

    async def get_customer(self, customer_id: str) -> Customer | None:
        raw = await self._or_none(self._http.get(f"/ramp/customer/{customer_id}"))
        if raw is None:
            return None
        response = EtherfuseCustomerResponse.model_validate(raw)
        # KYC status needs the public key; see get_kyc_status.
        return Customer(
            id=response.customer_id,
            email=response.email,
            kyc_status=KycStatus.NOT_STARTED,
            created_at=response.created_at,
            updated_at=response.updated_at,
        )

    # Quotes and orders

    async def get_quote(self, input: GetQuoteInput) -> Quote:
        source_asset, target_asset = await self.resolve_asset_pair(
            input.from_currency, input.to_currency, input.stellar_address or ""
        )
        # A CODE:ISSUER source means tokens are being sold.
        ramp_type = "offramp" if ":" in source_asset else "onramp"

        raw = await self._http.post(
            "/ramp/quote",
            {
                "quoteId": str(uuid.uuid4()),
                "customerId": input.customer_id or "",
                "blockchain": self.blockchain,
                "quoteAssets": {
                    "type": ramp_type,
                    "sourceAsset": source_asset,
                    "targetAsset": target_asset,
                },
                "sourceAmount": str(input.from_amount or input.to_amount or ""),
            },
        )
        response = EtherfuseQuoteResponse.model_validate(raw)
        assets = response.quote_assets
        return normalize_quote(
            quote_id=response.quote_id,
            from_currency=assets.source_asset,
            to_currency=assets.target_asset,
            from_amount=response.source_amount,
            to_amount=response.destination_amount_after_fee or response.destination_amount,
            rate=response.exchange_rate,
            fee_items=[response.fee_amount],
            expires_at=response.expires_at,
            created_at=response.created_at,
            convention=RATE_CONVENTION,
            fee_currency=fiat_currency(assets.source_asset, assets.target_asset),
        )

    async def _default_bank_account(self, customer_id: str) -> str | None:
        accounts = await self.get_fiat_accounts(customer_id)
        return accounts[0].id if accounts else None

    async def _create_order(
        self, bank_account_id: str | None, public_key: str, quote_id: str, memo: str | None
    ) -> dict:
        body = {
            "orderId": str(uuid.uuid4()),
            "bankAccountId": bank_account_id,
            "publicKey": public_key,
            "quoteId": quote_id,
        }
        if memo:
            body["memo"] = memo
        return await self._http.post("/ramp/order", body)

    async def create_on_ramp(self, input: CreateOnRampInput) -> OnRampTransaction:
        bank_account_id = input.bank_account_id
        if not bank_account_id and input.customer_id:
            bank_account_id = await self._default_bank_account(input.customer_id)

        raw = await self._create_order(
            bank_account_id, input.stellar_address, input.quote_id, input.memo
        )
        order = EtherfuseCreateOnRampResponse.model_validate(raw).onramp
        now = isoformat(utcnow())
        return OnRampTransaction(
            id=order.order_id,
            customer_id=input.customer_id,
            quote_id=input.quote_id,
            status=TransactionStatus.PENDING,
            from_amount=input.amount,
            from_currency=input.from_currency,
            to_amount="",
            to_currency=input.to_currency,
            stellar_address=input.stellar_address,
            payment_instructions=PaymentInstructions(
                clabe=order.deposit_clabe,
                amount=order.deposit_amount,
                currency=input.from_currency,
            ),
            created_at=now,
            updated_at=now,
        )

    async def get_on_ramp_transaction(self, transaction_id: str) -> OnRampTransaction | None:
        raw = await self._or_none(self._http.get(f"/ramp/order/{transaction_id}"))
        if raw is None:
            return None
        return self._map_on_ramp(EtherfuseOrderResponse.model_validate(raw))

    async def create_off_ramp(self, input: CreateOffRampInput) -> OffRampTransaction:
        """Create an off-ramp order.

        The burn transaction to sign is not ready yet; poll
        :meth:`get_off_ramp_transaction` until ``signable_transaction`` is set.
        """
        bank_account_id = input.fiat_account_id
        if not bank_account_id and input.customer_id:
            bank_account_id = await self._default_bank_account(input.customer_id)

        raw = await self._create_order(
            bank_account_id, input.stellar_address, input.quote_id, input.memo
        )
        order = EtherfuseCreateOffRampResponse.model_validate(raw).offramp
        info = input.bank_account_info
        now = isoformat(utcnow())
        return OffRampTransaction(
            id=order.order_id,
            customer_id=input.customer_id,
            quote_id=input.quote_id,
            status=TransactionStatus.PENDING,
            from_amount=input.amount,
            from_currency=input.from_currency,
            to_amount="",
            to_currency=input.to_currency,
            stellar_address=input.stellar_address,
            bank_account=BankAccount(
                id=bank_account_id or "",
                bank_name=info.bank_name if info else "",
                clabe=info.clabe if info else "",
                beneficiary=info.beneficiary if info else "",
            ),
            signable_transaction=None,
            created_at=now,
            updated_at=now,
        )

    async def get_off_ramp_transaction(self, transaction_id: str) -> OffRampTransaction | None:
        raw = await self._or_none(self._http.get(f"/ramp/order/{transaction_id}"))
        if raw is None:
            return None
        return self._map_off_ramp(EtherfuseOrderResponse.model_validate(raw))

    # Bank accounts

    async def register_fiat_account(self, input: RegisterFiatAccountInput) -> RegisteredFiatAccount:
        account = input.bank_account
        raw = await self._http.post(
            "/ramp/bank-account",
            {
                "bankAccountId": str(uuid.uuid4()),
                "customerId": input.customer_id,
                "bankName": account.bank_name,
                "clabe": account.clabe,
                "beneficiary": account.beneficiary,
            },
        )
        response = EtherfuseBankAccountResponse.model_validate(raw)
        return RegisteredFiatAccount(
            id=response.bank_account_id,
            customer_id=response.customer_id,
            type="SPEI",
            status=response.status,
            created_at=response.created_at,
        )

    async def get_fiat_accounts(self, customer_id: str) -> list[SavedFiatAccount]:
        raw = await self._or_none(self._http.post(f"/ramp/customer/{customer_id}/bank-accounts", {}))
        if raw is None:
            return []
        response = EtherfuseBankAccountListResponse.model_validate(raw)
        return [
            SavedFiatAccount(
                id=item.bank_account_id,
                type="SPEI",
                account_number=item.abbr_clabe,
                created_at=item.created_at,
            )
            for item in response.items
        ]

    # KYC

    async def get_kyc_url(
        self,
        customer_id: str,
        public_key: str | None = None,
        bank_account_id: str | None = None,
    ) -> str:
        """Presigned onboarding URL, meant to be embedded in an iframe."""
        if not public_key:
            raise _missing_public_key("for KYC onboarding")
        raw = await self._http.post(
            "/ramp/onboarding-url",
            {
                "customerId": customer_id,
                "bankAccountId": bank_account_id or str(uuid.uuid4()),
                "publicKey": public_key,
                "blockchain": self.blockchain,
            },
        )
        return EtherfuseOnboardingResponse.model_validate(raw).presigned_url

    async def get_kyc_status(self, customer_id: str, public_key: str | None = None) -> KycStatus:
        if not public_key:
            raise _missing_public_key("for KYC status checks")
        raw = await self._http.get(f"/ramp/customer/{customer_id}/kyc/{public_key}")
        return self._kyc_status(EtherfuseKycStatusResponse.model_validate(raw).status)

    async def submit_kyc_identity(
        self, customer_id: str, public_key: str, identity: EtherfuseKycIdentity
    ) -> Any:
        """Submit identity data instead of going through the hosted onboarding."""
        return await self._http.post(
            f"/ramp/customer/{customer_id}/kyc/{public_key}/identity",
            identity.model_dump(by_alias=True),
        )

    async def submit_kyc_documents(
        self, customer_id: str, public_key: str, documents: list[EtherfuseKycDocument]
    ) -> Any:
        return await self._http.post(
            f"/ramp/customer/{customer_id}/kyc/{public_key}/documents",
            {"documents": [document.model_dump(by_alias=True) for document in documents]},
        )

    async def accept_agreements(self, presigned_url: str) -> Any:
        """Accept every legal agreement behind an onboarding URL from :meth:`get_kyc_url`."""
        return await self._http.post(presigned_url, {"acceptAll": True})
