"""Static capability descriptors for each anchor provider.

Every provider-specific branch in the ramp flow is expressed as a flag
lookup here rather than as a comparison against the provider name.
"""

from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType

from .errors import CapabilityError


class KycFlow(str, Enum):
    IFRAME = "iframe"
    REDIRECT = "redirect"
    FORM = "form"


@dataclass(frozen=True)
class AnchorCapabilities:
    """Which steps of the ramp flow a provider requires."""

    display_name: str
    kyc_flow: KycFlow
    # Customers can be looked up by email.
    email_lookup: bool = False
    # Provider exposes a hosted KYC URL (iframe, redirect or form bootstrap).
    kyc_url: bool = False
    requires_tos: bool = False
    # Off-ramp quotes need a registered bank account id.
    requires_bank_before_quote: bool = False
    # On-ramp quotes need a registered blockchain wallet id.
    requires_blockchain_wallet_registration: bool = False
    # Signed off-ramp envelopes go back to the anchor, not to the network.
    requires_anchor_payout_submission: bool = False
    # Off-ramps carry a provider-built envelope for the user to sign.
    requires_off_ramp_signing: bool = False
    # The signable envelope appears asynchronously after creation.
    deferred_off_ramp_signing: bool = False
    # Quote requests take "customerId:resourceId" instead of a bare customer id.
    composite_quote_customer_id: bool = False
    sandbox: bool = False

    def with_overrides(self, **flags) -> "AnchorCapabilities":
        return replace(self, **flags)


CAPABILITIES = MappingProxyType({
    "etherfuse": AnchorCapabilities(
        display_name="Etherfuse",
        kyc_flow=KycFlow.IFRAME,
        kyc_url=True,
        requires_off_ramp_signing=True,
        deferred_off_ramp_signing=True,
        sandbox=True,
    ),
    "alfredpay": AnchorCapabilities(
        display_name="Alfred Pay",
        kyc_flow=KycFlow.FORM,
        email_lookup=True,
        kyc_url=True,
        sandbox=True,
    ),
    "blindpay": AnchorCapabilities(
        display_name="BlindPay",
        kyc_flow=KycFlow.REDIRECT,
        kyc_url=True,
        requires_tos=True,
        requires_bank_before_quote=True,
        requires_blockchain_wallet_registration=True,
        requires_anchor_payout_submission=True,
        requires_off_ramp_signing=True,
        composite_quote_customer_id=True,
        sandbox=True,
    ),
})


def get_capabilities(provider: str) -> AnchorCapabilities:
    """Look up the capability descriptor registered for a provider."""
    capabilities = CAPABILITIES.get(provider)
    if capabilities is None:
        raise CapabilityError(
            f"Unknown anchor provider: {provider}", code="UNKNOWN_PROVIDER", status_code=400
        )
    return capabilities


def quote_customer_id(
    customer_id: str,
    capabilities: AnchorCapabilities | None,
    resource_id: str | None = None,
) -> str:
    """Build the customer id sent with a quote request.

    ``resource_id`` is the blockchain wallet id for on-ramps and the bank
    account id for off-ramps.
    """
    if capabilities is not None and capabilities.composite_quote_customer_id and resource_id:
        return f"{customer_id}:{resource_id}"
    return customer_id
