"""Anchor provider adapters."""

from .alfredpay import AlfredPayClient
from .base import Anchor, BaseAnchor
from .blindpay import BlindPayClient
from .etherfuse import EtherfuseClient
from .registry import PROVIDERS, create_anchor, is_valid_provider

__all__ = [
    "Anchor",
    "BaseAnchor",
    "AlfredPayClient",
    "BlindPayClient",
    "EtherfuseClient",
    "PROVIDERS",
    "create_anchor",
    "is_valid_provider",
]
