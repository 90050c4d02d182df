"""AlfredPay adapter: SPEI on/off ramp with form-based KYC.

Authenticates with ``api-key`` / ``api-secret`` headers. On-ramps return
SPEI payment instructions; off-ramps return a deposit address and memo the
user pays to from their own wallet, so there is no provider-built envelope.
"""

import logging
from urllib.parse import quote

import httpx

from ...capabilities import AnchorCapabilities
from ...constants import DEFAULT_COUNTRY
from ...errors import NotFoundError, ValidationError
from ...quotes import RateConvention, fiat_currency, normalize_quote
from ...transport import AnchorHttpClient
from ...types import (
    CreateCustomerInput,
    CreateOffRampInput,
    CreateOnRampInput,
    Customer,
    FiatAccountRef,
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
    AlfredPayCreateCustomerResponse,
    AlfredPayCustomerResponse,
    AlfredPayFiatAccountListItem,
    AlfredPayFiatAccountResponse,
    AlfredPayFiatPaymentInstructions,
    AlfredPayFindCustomerResponse,
    AlfredPayKycFileResponse,
    AlfredPayKycRequirementsResponse,
    AlfredPayKycSubmission,
    AlfredPayKycSubmissionResponse,
    AlfredPayKycSubmissionStatusResponse,
    AlfredPayKycUrlResponse,
    AlfredPayOffRampResponse,
    AlfredPayOnRampFlatResponse,
    AlfredPayOnRampResponse,
    AlfredPayOnRampTransaction,
    AlfredPayQuoteResponse,
)

logger = logging.getLogger(__name__)

ALFREDPAY_TRANSACTION_STATUSES = (
    "CREATED",
    "PENDING",
    "PROCESSING",
    "COMPLETED",
    "FAILED",
    "EXPIRED",
    "CANCELLED",
)

_TRANSACTION_MAPPING = {
    "CREATED": TransactionStatus.PENDING,
    "PENDING": TransactionStatus.PENDING,
    "PROCESSING": TransactionStatus.PROCESSING,
    "COMPLETED": TransactionStatus.COMPLETED,
    "FAILED": TransactionStatus.FAILED,
    "EXPIRED": TransactionStatus.EXPIRED,
    "CANCELLED": TransactionStatus.CANCELLED,
}

ONRAMP_STATUS = StatusTable("alfredpay.onramp", dict(_TRANSACTION_MAPPING))
OFFRAMP_STATUS = StatusTable("alfredpay.offramp", dict(_TRANSACTION_MAPPING))

# Customer records carry the canonical vocabulary already; form submissions do not.
_KYC_SUBMISSION_MAPPING = {
    "CREATED": KycStatus.PENDING,
    "IN_REVIEW": KycStatus.PENDING,
    "UPDATE_REQUIRED": KycStatus.UPDATE_REQUIRED,
    "COMPLETED": KycStatus.APPROVED,
    "FAILED": KycStatus.REJECTED,
}

ALFREDPAY_KYC_FILE_TYPES = (
    "National ID Front",
    "National ID Back",
    "Driver Licence Front",
    "Driver Licence Back",
    "Selfie",
)

RATE_CONVENTION = RateConvention.DESTINATION_PER_SOURCE


def _kyc_status(raw: str | None) -> KycStatus:
    try:
        return KycStatus(raw)
    except ValueError:
        logger.warning("[alfredpay] Unmapped KYC status %r, using pending", raw)
        return KycStatus.PENDING


class AlfredPayClient(BaseAnchor):
    """Client for the AlfredPay fiat on/off ramp API (Stellar, SPEI)."""

    name = "alfredpay"

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        capabilities: AnchorCapabilities | None = None,
    ):
        http = AnchorHttpClient(
            "AlfredPay",
            base_url,
            {"api-key": api_key, "api-secret": api_secret},
            client=client,
        )
        super().__init__(http, capabilities)

    # Mapping

    def _map_payment_instructions(
        self,
        instructions: AlfredPayFiatPaymentInstructions | None,
        amount: str,
        currency: str,
    ) -> PaymentInstructions | None:
        if instructions is None:
            return None
        return PaymentInstructions(
            clabe=instructions.clabe,
            amount=amount,
            currency=currency,
            bank_name=instructions.bank_name,
            beneficiary=instructions.account_holder_name,
            reference=instructions.reference,
        )

    def _map_on_ramp(
        self,
        tx: AlfredPayOnRampTransaction,
        instructions: AlfredPayFiatPaymentInstructions | None,
    ) -> OnRampTransaction:
        return OnRampTransaction(
            id=tx.transaction_id,
            customer_id=tx.customer_id,
            quote_id=tx.quote_id,
            status=self._map_status(ONRAMP_STATUS, tx.status),
            from_amount=tx.from_amount,
            from_currency=tx.from_currency,
            to_amount=tx.to_amount,
            to_currency=tx.to_currency,
            stellar_address=tx.deposit_address,
            payment_instructions=self._map_payment_instructions(
                instructions, tx.from_amount, tx.from_currency
            ),
            stellar_tx_hash=tx.tx_hash or None,
            created_at=tx.created_at,
            updated_at=tx.updated_at,
        )

    def _map_off_ramp(self, response: AlfredPayOffRampResponse) -> OffRampTransaction:
        return OffRampTransaction(
            id=response.transaction_id,
            customer_id=response.customer_id,
            quote_id=response.quote.quote_id if response.quote else "",
            status=self._map_status(OFFRAMP_STATUS, response.status),
            from_amount=response.from_amount,
            from_currency=response.from_currency,
            to_amount=response.to_amount,
            to_currency=response.to_currency,
            stellar_address=response.deposit_address,
            fiat_account=(
                FiatAccountRef(id=response.fiat_account_id) if response.fiat_account_id else None
            ),
            memo=response.memo,
            stellar_tx_hash=response.tx_hash or None,
            created_at=response.created_at,
            updated_at=response.updated_at,
        )

    def _map_quote(self, response: AlfredPayQuoteResponse) -> Quote:
        return normalize_quote(
            quote_id=response.quote_id,
            from_currency=response.from_currency,
            to_currency=response.to_currency,
            from_amount=response.from_amount,
            to_amount=response.to_amount,
            rate=response.rate,
            fee_items=[fee.amount for fee in response.fees],
            expires_at=response.expiration,
            convention=RATE_CONVENTION,
            fee_currency=fiat_currency(response.from_currency, response.to_currency),
        )

    # Customers

    async def create_customer(self, input: CreateCustomerInput) -> Customer:
        data = await self._http.post(
            "/customers/create",
            {
                "email": input.email,
                "type": "INDIVIDUAL",
                "country": input.country or DEFAULT_COUNTRY,
            },
        )
        response = AlfredPayCreateCustomerResponse.model_validate(data)
        return Customer(
            id=response.customer_id,
            email=input.email,
            kyc_status=KycStatus.NOT_STARTED,
            created_at=response.created_at,
            updated_at=response.created_at,
        )

    async def get_customer(self, customer_id: str) -> Customer | None:
        data = await self._or_none(self._http.get(f"/customers/{customer_id}"))
        if data is None:
            return None
        response = AlfredPayCustomerResponse.model_validate(data)
        return Customer(
            id=response.id,
            email=response.email,
            kyc_status=_kyc_status(response.kyc_status),
            created_at=response.created_at,
            updated_at=response.updated_at,
        )

    async def get_customer_by_email(
        self, email: str, country: str | None = None
    ) -> Customer | None:
        """Find a customer id by email.

        The endpoint only returns the id, so the KYC status is a placeholder;
        call :meth:`get_customer` for the full record.
        """
        path = f"/customers/find/{quote(email, safe='')}/{country or DEFAULT_COUNTRY}"
        data = await self._or_none(self._http.get(path))
        if data is None:
            return None
        response = AlfredPayFindCustomerResponse.model_validate(data)
        now = isoformat(utcnow())
        return Customer(
            id=response.customer_id,
            email=email,
            kyc_status=KycStatus.NOT_STARTED,
            created_at=now,
            updated_at=now,
        )

    # Quotes and transactions

    async def get_quote(self, input: GetQuoteInput) -> Quote:
        body = {
            "fromCurrency": input.from_currency,
            "toCurrency": input.to_currency,
            "chain": "XLM",
            "paymentMethodType": "SPEI",
        }
        if input.from_amount:
            body["fromAmount"] = str(input.from_amount)
        if input.to_amount:
            body["toAmount"] = str(input.to_amount)

        data = await self._http.post("/quotes", body)
        return self._map_quote(AlfredPayQuoteResponse.model_validate(data))

    async def create_on_ramp(self, input: CreateOnRampInput) -> OnRampTransaction:
        data = await self._http.post(
            "/onramp",
            {
                "customerId": input.customer_id,
                "quoteId": input.quote_id,
                "fromCurrency": input.from_currency,
                "toCurrency": input.to_currency,
                "amount": input.amount,
                "chain": "XLM",
                "paymentMethodType": "SPEI",
                "depositAddress": input.stellar_address,
                "memo": input.memo or "",
                "onrampTransactionRequiredFieldsJson": {},
            },
        )
        response = AlfredPayOnRampResponse.model_validate(data)
        return self._map_on_ramp(response.transaction, response.fiat_payment_instructions)

    async def get_on_ramp_transaction(self, transaction_id: str) -> OnRampTransaction | None:
        data = await self._or_none(self._http.get(f"/onramp/{transaction_id}"))
        if data is None:
            return None
        response = AlfredPayOnRampFlatResponse.model_validate(data)
        return self._map_on_ramp(response, response.fiat_payment_instructions)

    async def create_off_ramp(self, input: CreateOffRampInput) -> OffRampTransaction:
        data = await self._http.post(
            "/offramp",
            {
                "customerId": input.customer_id,
                "quoteId": input.quote_id,
                "fiatAccountId": input.fiat_account_id,
                "fromCurrency": input.from_currency,
                "toCurrency": input.to_currency,
                "amount": input.amount,
                "chain": "XLM",
                "memo": input.memo or "",
                "originAddress": input.stellar_address,
            },
        )
        transaction = self._map_off_ramp(AlfredPayOffRampResponse.model_validate(data))
        if not transaction.quote_id:
            transaction.quote_id = input.quote_id
        return transaction

    async def get_off_ramp_transaction(self, transaction_id: str) -> OffRampTransaction | None:
        data = await self._or_none(self._http.get(f"/offramp/{transaction_id}"))
        if data is None:
            return None
        return self._map_off_ramp(AlfredPayOffRampResponse.model_validate(data))

    # Fiat accounts

    async def register_fiat_account(self, input: RegisterFiatAccountInput) -> RegisteredFiatAccount:
        account = input.bank_account
        data = await self._http.post(
            "/fiatAccounts",
            {
                "customerId": input.customer_id,
                "type": "SPEI",
                "fiatAccountFields": {
                    "accountNumber": account.clabe,
                    "accountType": "CHECKING",
                    "accountName": account.beneficiary,
                    "accountBankCode": account.bank_name or "",
                    "accountAlias": account.beneficiary,
                    "networkIdentifier": account.clabe,
                    "metadata": {"accountHolderName": account.beneficiary},
                },
                "isExternal": True,
            },
        )
        response = AlfredPayFiatAccountResponse.model_validate(data)
        return RegisteredFiatAccount(
            id=response.fiat_account_id,
            customer_id=response.customer_id,
            type=response.type,
            status=response.status,
            created_at=response.created_at,
        )

    async def get_fiat_accounts(self, customer_id: str) -> list[SavedFiatAccount]:
        data = await self._or_none(
            self._http.get("/fiatAccounts", params={"customerId": customer_id})
        )
        accounts = []
        for raw in data or []:
            item = AlfredPayFiatAccountListItem.model_validate(raw)
            holder = item.metadata.account_holder_name if item.metadata else None
            accounts.append(
                SavedFiatAccount(
                    id=item.fiat_account_id,
                    type=item.type,
                    account_number=item.account_number,
                    bank_name=item.bank_name,
                    account_holder_name=holder or item.account_alias or item.account_name,
                    created_at=item.created_at,
                )
            )
        return accounts

    # KYC

    async def get_kyc_url(
        self,
        customer_id: str,
        public_key: str | None = None,
        bank_account_id: str | None = None,
        country: str = DEFAULT_COUNTRY,
    ) -> str:
        data = await self._http.get(f"/customers/{customer_id}/kyc/{country}/url")
        return AlfredPayKycUrlResponse.model_validate(data).verification_url

    async def get_kyc_status(self, customer_id: str, public_key: str | None = None) -> KycStatus:
        customer = await self.get_customer(customer_id)
        if customer is None:
            raise NotFoundError("Customer not found", code="CUSTOMER_NOT_FOUND")
        return customer.kyc_status

    # Form KYC: requirements -> data -> files -> finalize -> review status

    async def get_kyc_requirements(
        self, country: str = DEFAULT_COUNTRY
    ) -> AlfredPayKycRequirementsResponse:
        data = await self._http.get("/kycRequirements", params={"country": country})
        return AlfredPayKycRequirementsResponse.model_validate(data)

    async def submit_kyc_data(
        self, customer_id: str, submission: AlfredPayKycSubmission
    ) -> AlfredPayKycSubmissionResponse:
        """Open a KYC submission with the customer's personal data.

        Upload documents against the returned ``submission_id`` with
        :meth:`submit_kyc_file`, then send it for review with
        :meth:`finalize_kyc_submission`.
        """
        data = await self._http.post(
            f"/customers/{customer_id}/kyc",
            {"kycSubmission": submission.model_dump(by_alias=True)},
        )
        return AlfredPayKycSubmissionResponse.model_validate(data)

    async def submit_kyc_file(
        self,
        customer_id: str,
        submission_id: str,
        file_type: str,
        content: bytes,
        filename: str,
        content_type: str = "application/octet-stream",
    ) -> AlfredPayKycFileResponse:
        if file_type not in ALFREDPAY_KYC_FILE_TYPES:
            raise ValidationError(
                f"Unsupported KYC file type {file_type!r}", code="INVALID_FILE_TYPE"
            )
        logger.debug("[alfredpay] Uploading %s for submission %s", file_type, submission_id)
        data = await self._http.upload(
            f"/customers/{customer_id}/kyc/{submission_id}/files",
            files={"fileBody": (filename, content, content_type)},
            data={"fileType": file_type},
        )
        return AlfredPayKycFileResponse.model_validate(data)

    async def finalize_kyc_submission(self, customer_id: str, submission_id: str) -> None:
        await self._http.post(f"/customers/{customer_id}/kyc/{submission_id}/submit")

    async def get_kyc_submission(self, customer_id: str) -> AlfredPayKycSubmissionResponse | None:
        data = await self._or_none(self._http.get(f"/customers/kyc/{customer_id}"))
        if data is None:
            return None
        return AlfredPayKycSubmissionResponse.model_validate(data)

    async def get_kyc_submission_status(self, customer_id: str, submission_id: str) -> KycStatus:
        data = await self._http.get(f"/customers/{customer_id}/kyc/{submission_id}/status")
        raw = AlfredPayKycSubmissionStatusResponse.model_validate(data).status
        status = _KYC_SUBMISSION_MAPPING.get(raw)
        if status is None:
            logger.warning("[alfredpay] Unmapped KYC submission status %r, using pending", raw)
            return KycStatus.PENDING
        return status
