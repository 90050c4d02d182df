"""Etherfuse anchor adapter."""

from .client import EtherfuseClient, ORDER_STATUS
from .types import EtherfuseKycDocument, EtherfuseKycIdentity

__all__ = ["EtherfuseClient", "EtherfuseKycDocument", "EtherfuseKycIdentity", "ORDER_STATUS"]
