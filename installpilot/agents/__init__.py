"""Decision-making agents and the desktop control loop."""

from .control_loop import CANCELLED_REASON, ControlLoop, build_control_loop
from .decision_engine import VisionDecisionEngine, parse_decision

__all__ = [
    "CANCELLED_REASON",
    "ControlLoop",
    "VisionDecisionEngine",
    "build_control_loop",
    "parse_decision",
]
