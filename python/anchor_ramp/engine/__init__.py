"""Provider-agnostic ramp state machine.

Usage:
    from anchor_ramp.engine import RampEngine
    engine = RampEngine(anchor, signer=signer, submitter=submitter)
    flow = await engine.run_off_ramp(customer_id, "USDC", "MXN", "100", address)
"""

from .engine import RampEngine
from .polling import PollScheduler, poll_until
from .states import TERMINAL_STATES, RampDirection, RampFlow, RampState

__all__ = [
    "RampEngine",
    "RampDirection",
    "RampFlow",
    "RampState",
    "TERMINAL_STATES",
    "PollScheduler",
    "poll_until",
]
