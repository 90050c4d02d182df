"""Etherfuse REST wire models (camelCase on the wire)."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True
    )


class EtherfuseOnboardingResponse(BaseModel):
    presigned_url: str


class EtherfuseCustomerResponse(_CamelModel):
    customer_id: str
    email: str = ""
    public_key: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class EtherfuseQuoteAssets(_CamelModel):
    type: str
    source_asset: str
    target_asset: str


class EtherfuseQuoteResponse(_CamelModel):
    quote_id: str
    customer_id: str | None = None
    blockchain: str | None = None
    quote_assets: EtherfuseQuoteAssets
    source_amount: str
    destination_amount: str
    destination_amount_after_fee: str | None = None
    exchange_rate: str
    fee_bps: str | None = None
    fee_amount: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    expires_at: str


class EtherfuseOnRampOrder(_CamelModel):
    order_id: str
    deposit_clabe: str = ""
    deposit_amount: str = ""


class EtherfuseCreateOnRampResponse(BaseModel):
    onramp: EtherfuseOnRampOrder


class EtherfuseOffRampOrder(_CamelModel):
    order_id: str


class EtherfuseCreateOffRampResponse(BaseModel):
    offramp: EtherfuseOffRampOrder


class EtherfuseOrderResponse(_CamelModel):
    order_id: str
    customer_id: str = ""
    status: str
    order_type: str | None = None
    amount_in_fiat: str | None = None
    amount_in_tokens: str | None = None
    confirmed_tx_signature: str | None = None
    wallet_id: str | None = None
    bank_account_id: str | None = None
    # Base64 XDR the user signs to release tokens on an off-ramp.
    burn_transaction: str | None = None
    memo: str | None = None
    deposit_clabe: str | None = None
    status_page: str | None = None
    fee_bps: int | None = None
    fee_amount_in_fiat: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    completed_at: str | None = None


class EtherfuseKycStatusResponse(_CamelModel):
    customer_id: str = ""
    public_key: str = ""
    status: str
    updated_at: str | None = None


class EtherfuseBankAccountResponse(_CamelModel):
    bank_account_id: str
    customer_id: str
    status: str
    created_at: str | None = None


class EtherfuseBankAccountListItem(_CamelModel):
    bank_account_id: str
    abbr_clabe: str = ""
    bank_name: str = ""
    beneficiary: str = ""
    created_at: str | None = None


class EtherfuseBankAccountListResponse(_CamelModel):
    items: list[EtherfuseBankAccountListItem] = Field(default_factory=list)
    total_items: int | None = None


class EtherfuseAsset(_CamelModel):
    symbol: str
    identifier: str
    name: str = ""
    currency: str | None = None
    balance: str | None = None


class EtherfuseAssetsResponse(_CamelModel):
    assets: list[EtherfuseAsset] = Field(default_factory=list)


# Programmatic KYC


class EtherfuseKycIdentity(_CamelModel):
    """Identity data for programmatic KYC. ``date_of_birth`` is ``YYYY-MM-DD``."""

    first_name: str
    last_name: str
    date_of_birth: str
    country: str
    city: str
    state: str
    address: str
    zip_code: str
    phone_number: str
    national_id: str


class EtherfuseKycDocument(_CamelModel):
    # national_id_front, national_id_back, selfie or proof_of_address
    document_type: str
    document_data: str  # base64
    content_type: str = "image/jpeg"
