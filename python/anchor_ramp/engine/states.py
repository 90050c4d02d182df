"""Ramp lifecycle states and the per-transaction flow record."""

from dataclasses import dataclass, field
from enum import Enum

from ..types import Quote, RampTransaction, TransactionStatus


class RampDirection(str, Enum):
    ON_RAMP = "on_ramp"
    OFF_RAMP = "off_ramp"


class RampState(str, Enum):
    IDLE = "idle"
    QUOTE_REQUESTED = "quote_requested"
    QUOTED = "quoted"
    CREATED = "created"
    AWAITING_SIGNABLE = "awaiting_signable"
    SIGNING = "signing"
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES.values()


TERMINAL_STATES = {
    TransactionStatus.COMPLETED: RampState.COMPLETED,
    TransactionStatus.FAILED: RampState.FAILED,
    TransactionStatus.EXPIRED: RampState.EXPIRED,
    TransactionStatus.CANCELLED: RampState.CANCELLED,
    TransactionStatus.REFUNDED: RampState.REFUNDED,
}


@dataclass
class RampFlow:
    """What the engine knows about one ramp transaction.

    Passed to ``on_status_change`` on every state change and on every change
    of the canonical transaction status while polling.
    """

    direction: RampDirection
    customer_id: str
    state: RampState = RampState.IDLE
    quote: Quote | None = None
    transaction: RampTransaction | None = None
    history: list[RampState] = field(default_factory=lambda: [RampState.IDLE])

    @property
    def transaction_id(self) -> str | None:
        return self.transaction.id if self.transaction else None

    @property
    def status(self) -> TransactionStatus | None:
        return self.transaction.status if self.transaction else None
