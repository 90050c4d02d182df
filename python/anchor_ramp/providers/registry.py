"""Build provider adapters by name from settings."""

import httpx

from ..config import RampSettings
from ..errors import CapabilityError, ValidationError
from .alfredpay import AlfredPayClient
from .base import Anchor
from .blindpay import BlindPayClient
from .etherfuse import EtherfuseClient

PROVIDERS = ("etherfuse", "alfredpay", "blindpay")


def is_valid_provider(provider: str) -> bool:
    return provider in PROVIDERS


def create_anchor(
    provider: str,
    settings: RampSettings | None = None,
    client: httpx.AsyncClient | None = None,
) -> Anchor:
    """Instantiate the adapter for ``provider``.

    Settings default to :meth:`RampSettings.from_env`. Raises
    :class:`CapabilityError` for unknown providers and
    :class:`ValidationError` when the provider's credentials are missing.
    """
    if not is_valid_provider(provider):
        raise CapabilityError(
            f"Unknown anchor provider: {provider}", code="UNKNOWN_PROVIDER", status_code=400
        )

    settings = settings or RampSettings.from_env()

    if provider == "alfredpay":
        cfg = settings.alfredpay
        if not cfg.configured:
            raise ValidationError("ALFREDPAY_API_KEY and ALFREDPAY_API_SECRET are required")
        return AlfredPayClient(cfg.api_key, cfg.api_secret, cfg.base_url, client=client)

    if provider == "blindpay":
        cfg = settings.blindpay
        if not cfg.configured:
            raise ValidationError("BLINDPAY_API_KEY and BLINDPAY_INSTANCE_ID are required")
        return BlindPayClient(
            cfg.api_key, cfg.instance_id, cfg.base_url, network=cfg.network, client=client
        )

    cfg = settings.etherfuse
    if not cfg.configured:
        raise ValidationError("ETHERFUSE_API_KEY is required")
    return EtherfuseClient(cfg.api_key, cfg.base_url, blockchain=cfg.blockchain, client=client)
