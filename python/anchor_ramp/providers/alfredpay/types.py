"""AlfredPay REST wire models.

Responses are validated with pydantic and mapped to the canonical types by
:class:`~anchor_ramp.providers.alfredpay.client.AlfredPayClient`.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True
    )


class AlfredPayCreateCustomerResponse(_CamelModel):
    customer_id: str
    created_at: str | None = None


class AlfredPayFindCustomerResponse(_CamelModel):
    customer_id: str


class AlfredPayCustomerResponse(BaseModel):
    """``GET /customers/{id}``; this endpoint answers in snake_case."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    email: str = ""
    kyc_status: str = "not_started"
    created_at: str | None = None
    updated_at: str | None = None


class AlfredPayQuoteFee(_CamelModel):
    type: str = ""
    amount: str = "0"
    currency: str = ""


class AlfredPayQuoteResponse(_CamelModel):
    quote_id: str
    from_currency: str
    to_currency: str
    from_amount: str
    to_amount: str
    rate: str
    expiration: str
    fees: list[AlfredPayQuoteFee] = Field(default_factory=list)
    chain: str | None = None
    payment_method_type: str | None = None


class AlfredPayFiatPaymentInstructions(_CamelModel):
    payment_type: str = ""
    clabe: str = ""
    reference: str = ""
    expiration_date: str | None = None
    payment_description: str = ""
    bank_name: str = ""
    account_holder_name: str = ""


class AlfredPayOnRampTransaction(_CamelModel):
    transaction_id: str
    customer_id: str
    quote_id: str = ""
    status: str
    from_amount: str
    from_currency: str
    to_amount: str
    to_currency: str
    deposit_address: str = ""
    chain: str | None = None
    payment_method_type: str | None = None
    tx_hash: str | None = None
    memo: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class AlfredPayOnRampResponse(_CamelModel):
    """``POST /onramp``: the transaction nested beside its payment instructions."""

    transaction: AlfredPayOnRampTransaction
    fiat_payment_instructions: AlfredPayFiatPaymentInstructions


class AlfredPayOnRampFlatResponse(AlfredPayOnRampTransaction):
    """``GET /onramp/{id}``: the same fields flattened to the top level."""

    fiat_payment_instructions: AlfredPayFiatPaymentInstructions | None = None


class AlfredPayOffRampResponse(_CamelModel):
    transaction_id: str
    customer_id: str
    status: str
    from_currency: str
    to_currency: str
    from_amount: str
    to_amount: str
    fiat_account_id: str | None = None
    deposit_address: str = ""
    memo: str | None = None
    expiration: str | None = None
    tx_hash: str | None = None
    quote: AlfredPayQuoteResponse | None = None
    created_at: str | None = None
    updated_at: str | None = None


class AlfredPayFiatAccountResponse(_CamelModel):
    fiat_account_id: str
    customer_id: str
    type: str
    status: str
    created_at: str | None = None


class AlfredPayFiatAccountMetadata(_CamelModel):
    account_holder_name: str | None = None


class AlfredPayFiatAccountListItem(_CamelModel):
    fiat_account_id: str
    type: str = "SPEI"
    account_number: str = ""
    account_type: str = ""
    account_name: str = ""
    account_alias: str = ""
    bank_name: str = ""
    is_external: bool = True
    metadata: AlfredPayFiatAccountMetadata | None = None
    created_at: str | None = None


class AlfredPayKycUrlResponse(BaseModel):
    verification_url: str
    submission_id: str | None = Field(default=None, alias="submissionId")


# Form KYC


class AlfredPayKycRequirement(_CamelModel):
    name: str
    required: bool = False
    type: str = "string"
    description: str | None = None


class AlfredPayKycRequirementGroups(_CamelModel):
    personal: list[AlfredPayKycRequirement] = Field(default_factory=list)
    documents: list[AlfredPayKycRequirement] = Field(default_factory=list)


class AlfredPayKycRequirementsResponse(_CamelModel):
    country: str
    requirements: AlfredPayKycRequirementGroups = Field(
        default_factory=AlfredPayKycRequirementGroups
    )


class AlfredPayKycSubmission(_CamelModel):
    """Personal data for ``POST /customers/{id}/kyc``.

    ``date_of_birth`` is ``YYYY-MM-DD``; ``dni`` is the national id (CURP in
    Mexico).
    """

    first_name: str
    last_name: str
    date_of_birth: str
    country: str
    city: str
    state: str
    address: str
    zip_code: str
    nationalities: list[str]
    email: str
    dni: str


class AlfredPayKycSubmissionResponse(_CamelModel):
    submission_id: str
    status: str = ""
    created_at: str | None = None


class AlfredPayKycSubmissionStatusResponse(_CamelModel):
    submission_id: str | None = None
    status: str
    created_at: str | None = None
    updated_at: str | None = None


class AlfredPayKycFileResponse(_CamelModel):
    file_id: str
    file_type: str
    status: str = ""
