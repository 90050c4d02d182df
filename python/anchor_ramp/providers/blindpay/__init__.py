"""BlindPay anchor adapter."""

from .client import BlindPayClient, PAYIN_STATUS, PAYOUT_STATUS

__all__ = ["BlindPayClient", "PAYIN_STATUS", "PAYOUT_STATUS"]
