"""Tests for provider capability descriptors."""

import pytest

from anchor_ramp.capabilities import CAPABILITIES, KycFlow, get_capabilities, quote_customer_id
from anchor_ramp.errors import CapabilityError
from anchor_ramp.providers import PROVIDERS, is_valid_provider


class TestCapabilities:
    def test_every_provider_has_capabilities(self):
        assert set(PROVIDERS) == set(CAPABILITIES)

    def test_etherfuse(self):
        caps = get_capabilities("etherfuse")

        assert caps.kyc_flow is KycFlow.IFRAME
        assert caps.deferred_off_ramp_signing
        assert caps.requires_off_ramp_signing
        assert not caps.requires_anchor_payout_submission
        assert not caps.email_lookup

    def test_alfredpay(self):
        caps = get_capabilities("alfredpay")

        assert caps.kyc_flow is KycFlow.FORM
        assert caps.email_lookup
        assert not caps.requires_off_ramp_signing

    def test_blindpay(self):
        caps = get_capabilities("blindpay")

        assert caps.kyc_flow is KycFlow.REDIRECT
        assert caps.requires_tos
        assert caps.requires_bank_before_quote
        assert caps.requires_blockchain_wallet_registration
        assert caps.requires_anchor_payout_submission
        assert caps.composite_quote_customer_id

    def test_unknown_provider(self):
        with pytest.raises(CapabilityError) as exc_info:
            get_capabilities("moneygram")
        assert exc_info.value.code == "UNKNOWN_PROVIDER"
        assert not is_valid_provider("moneygram")

    def test_overrides_do_not_mutate_registry(self):
        caps = get_capabilities("alfredpay").with_overrides(email_lookup=False)

        assert not caps.email_lookup
        assert get_capabilities("alfredpay").email_lookup


class TestQuoteCustomerId:
    def test_composite_for_blindpay(self):
        caps = get_capabilities("blindpay")
        assert quote_customer_id("re_1", caps, "bw_2") == "re_1:bw_2"

    def test_plain_without_resource(self):
        assert quote_customer_id("re_1", get_capabilities("blindpay")) == "re_1"

    def test_plain_for_other_providers(self):
        assert quote_customer_id("c_1", get_capabilities("etherfuse"), "bank") == "c_1"
