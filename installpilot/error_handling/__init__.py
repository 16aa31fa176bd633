"""
Error handling for installpilot.

Transient faults are retried by the control loop one attempt at a time;
lifecycle faults abort a session after its resources are released.
"""

from .exceptions import (
    InstallPilotError,
    RetryableError,
    NonRetryableError,
    OutOfBoundsError,
    CaptureIOError,
    DecisionParseError,
    OperationTimeoutError,
    AcquisitionError,
    MountError,
    PlatformError,
    SessionError,
)

__all__ = [
    "InstallPilotError",
    "RetryableError",
    "NonRetryableError",
    "OutOfBoundsError",
    "CaptureIOError",
    "DecisionParseError",
    "OperationTimeoutError",
    "AcquisitionError",
    "MountError",
    "PlatformError",
    "SessionError",
]
