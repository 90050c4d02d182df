"""AlfredPay anchor adapter."""

from .client import AlfredPayClient, OFFRAMP_STATUS, ONRAMP_STATUS
from .types import AlfredPayKycSubmission

__all__ = ["AlfredPayClient", "AlfredPayKycSubmission", "ONRAMP_STATUS", "OFFRAMP_STATUS"]
