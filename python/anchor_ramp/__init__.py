"""Stellar anchor ramps: SEP-10 authentication, fiat on/off-ramp providers
and a shared ramp engine.

Usage:
    from anchor_ramp import RampEngine, RampSettings, create_anchor

    settings = RampSettings.from_env()
    engine = RampEngine(create_anchor("etherfuse", settings), signer=signer)
"""

from .capabilities import CAPABILITIES, AnchorCapabilities, KycFlow, get_capabilities
from .config import RampSettings
from .engine import RampDirection, RampEngine, RampFlow, RampState
from .errors import (
    AnchorError,
    AuthenticationRequiredError,
    CapabilityError,
    ChallengeValidationError,
    MissingResourceError,
    NotFoundError,
    PollingTimeoutError,
    QuoteExpiredError,
    TokenFormatError,
    TransportError,
    ValidationError,
)
from .network import HorizonSubmitter, NetworkSubmitter
from .providers import PROVIDERS, Anchor, create_anchor, is_valid_provider
from .sep import AuthSession, Sep10Authenticator, validate_challenge
from .signer import KeypairSigner, TransactionSigner
from .types import (
    Customer,
    KycStatus,
    OffRampTransaction,
    OnRampTransaction,
    Quote,
    TransactionStatus,
)

__all__ = [
    # Capabilities
    "CAPABILITIES",
    "AnchorCapabilities",
    "KycFlow",
    "get_capabilities",
    # Config
    "RampSettings",
    # Engine
    "RampDirection",
    "RampEngine",
    "RampFlow",
    "RampState",
    # Errors
    "AnchorError",
    "AuthenticationRequiredError",
    "CapabilityError",
    "ChallengeValidationError",
    "MissingResourceError",
    "NotFoundError",
    "PollingTimeoutError",
    "QuoteExpiredError",
    "TokenFormatError",
    "TransportError",
    "ValidationError",
    # Network and signing
    "HorizonSubmitter",
    "NetworkSubmitter",
    "KeypairSigner",
    "TransactionSigner",
    # Providers
    "PROVIDERS",
    "Anchor",
    "create_anchor",
    "is_valid_provider",
    # SEP-10
    "AuthSession",
    "Sep10Authenticator",
    "validate_challenge",
    # Types
    "Customer",
    "KycStatus",
    "OffRampTransaction",
    "OnRampTransaction",
    "Quote",
    "TransactionStatus",
]
