"""
Core module exports.
"""

from installpilot.core.interfaces import (
    AcquisitionSource,
    AppPlatform,
    DecisionEngine,
    InputDriver,
    ScreenCapturer,
)
from installpilot.core.types import (
    AppDescriptor,
    Coordinate,
    Decision,
    DecisionAction,
    InstallationSession,
    LoopSession,
    LoopState,
    ScreenGeometry,
    Screenshot,
    SessionResult,
)

__all__ = [
    "AcquisitionSource",
    "AppPlatform",
    "DecisionEngine",
    "InputDriver",
    "ScreenCapturer",
    "AppDescriptor",
    "Coordinate",
    "Decision",
    "DecisionAction",
    "InstallationSession",
    "LoopSession",
    "LoopState",
    "ScreenGeometry",
    "Screenshot",
    "SessionResult",
]
