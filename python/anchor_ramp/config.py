"""Environment-driven settings for the anchor adapters and the ramp engine."""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .constants import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_POLL_TIMEOUT_SECONDS,
    STELLAR_TESTNET_CAIP2,
)

DEFAULT_ALFREDPAY_BASE_URL = "https://penny-api-restricted-dev.alfredpay.io/api/v1/third-party-service/penny"
DEFAULT_BLINDPAY_BASE_URL = "https://api.blindpay.com"
DEFAULT_BLINDPAY_NETWORK = "stellar_testnet"
DEFAULT_ETHERFUSE_BASE_URL = "https://api.sand.etherfuse.com"


@dataclass
class AlfredPaySettings:
    api_key: str = ""
    api_secret: str = ""
    base_url: str = DEFAULT_ALFREDPAY_BASE_URL

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.api_secret)


@dataclass
class BlindPaySettings:
    api_key: str = ""
    instance_id: str = ""
    base_url: str = DEFAULT_BLINDPAY_BASE_URL
    network: str = DEFAULT_BLINDPAY_NETWORK

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.instance_id)


@dataclass
class EtherfuseSettings:
    api_key: str = ""
    base_url: str = DEFAULT_ETHERFUSE_BASE_URL
    blockchain: str = "stellar"

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


@dataclass
class RampSettings:
    """Provider credentials plus network and polling settings."""

    alfredpay: AlfredPaySettings = field(default_factory=AlfredPaySettings)
    blindpay: BlindPaySettings = field(default_factory=BlindPaySettings)
    etherfuse: EtherfuseSettings = field(default_factory=EtherfuseSettings)
    stellar_network: str = STELLAR_TESTNET_CAIP2
    horizon_url: str | None = None
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    poll_timeout: float = DEFAULT_POLL_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> "RampSettings":
        """Read settings from the environment, loading a ``.env`` file first."""
        load_dotenv(dotenv_path)

        return cls(
            alfredpay=AlfredPaySettings(
                api_key=os.getenv("ALFREDPAY_API_KEY", ""),
                api_secret=os.getenv("ALFREDPAY_API_SECRET", ""),
                base_url=os.getenv("ALFREDPAY_BASE_URL") or DEFAULT_ALFREDPAY_BASE_URL,
            ),
            blindpay=BlindPaySettings(
                api_key=os.getenv("BLINDPAY_API_KEY", ""),
                instance_id=os.getenv("BLINDPAY_INSTANCE_ID", ""),
                base_url=os.getenv("BLINDPAY_BASE_URL") or DEFAULT_BLINDPAY_BASE_URL,
                network=os.getenv("BLINDPAY_NETWORK") or DEFAULT_BLINDPAY_NETWORK,
            ),
            etherfuse=EtherfuseSettings(
                api_key=os.getenv("ETHERFUSE_API_KEY", ""),
                base_url=os.getenv("ETHERFUSE_BASE_URL") or DEFAULT_ETHERFUSE_BASE_URL,
            ),
            stellar_network=os.getenv("STELLAR_NETWORK") or STELLAR_TESTNET_CAIP2,
            horizon_url=os.getenv("HORIZON_URL") or None,
            poll_interval=_float_env("RAMP_POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS),
            poll_timeout=_float_env("RAMP_POLL_TIMEOUT_SECONDS", DEFAULT_POLL_TIMEOUT_SECONDS),
        )
