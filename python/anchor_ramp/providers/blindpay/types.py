"""BlindPay REST wire models. Amounts are integer cents; ``expires_at`` is epoch ms."""

from pydantic import BaseModel, ConfigDict


class _BlindPayModel(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)


class BlindPayTosResponse(_BlindPayModel):
    url: str


class BlindPayReceiverResponse(_BlindPayModel):
    id: str
    type: str = "individual"
    kyc_status: str = "verifying"
    email: str = ""
    country: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    kyc_warnings: list[str] | None = None
    created_at: str | None = None
    updated_at: str | None = None


class BlindPayBankAccountResponse(_BlindPayModel):
    id: str
    type: str
    name: str = ""
    beneficiary_name: str | None = None
    spei_clabe: str | None = None
    created_at: str | None = None


class BlindPayBlockchainWalletResponse(_BlindPayModel):
    id: str
    name: str = ""
    network: str
    address: str
    created_at: str | None = None


class BlindPayQuoteResponse(_BlindPayModel):
    """Payout (``/quotes``) and payin (``/payin-quotes``) quotes share this shape."""

    id: str
    sender_amount: int
    receiver_amount: int
    commercial_quotation: float | None = None
    blindpay_quotation: float | None = None
    flat_fee: int | None = None
    partner_fee_amount: int | None = None
    billing_fee_amount: int | None = None
    expires_at: int


class BlindPayPayoutAuthorizeResponse(_BlindPayModel):
    # Despite the name this is the base64 XDR envelope to sign.
    transaction_hash: str


class BlindPayPayoutResponse(_BlindPayModel):
    id: str
    quote_id: str = ""
    status: str
    sender_wallet_address: str = ""
    sender_amount: int = 0
    sender_currency: str = ""
    receiver_amount: int = 0
    receiver_currency: str = ""
    exchange_rate: str | None = None
    blockchain_tx_hash: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class BlindPayTrackingStep(_BlindPayModel):
    step: str = ""
    transaction_hash: str | None = None
    completed_at: str | None = None


class BlindPayPayinResponse(_BlindPayModel):
    id: str
    payin_quote_id: str = ""
    status: str
    sender_amount: int = 0
    receiver_amount: int = 0
    currency: str | None = None
    token: str | None = None
    clabe: str | None = None
    memo_code: str | None = None
    receiver_id: str | None = None
    tracking_complete: BlindPayTrackingStep | None = None
    created_at: str | None = None
    updated_at: str | None = None
