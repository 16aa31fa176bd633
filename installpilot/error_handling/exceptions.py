"""
Custom exception hierarchy for installpilot error handling.

Errors are split into transient faults, which the control loop absorbs by
consuming an attempt, and non-retryable faults, which end a driver call or an
installation session.
"""

from typing import Optional, Dict, Any, Tuple
from datetime import datetime, timezone


class InstallPilotError(Exception):
    """Base exception for all installpilot errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None
        }


class RetryableError(InstallPilotError):
    """Transient fault; the control loop retries it on the next iteration."""


class NonRetryableError(InstallPilotError):
    """Base class for errors that should not be retried."""
    pass


class OutOfBoundsError(NonRetryableError):
    """Coordinate lies outside the cached screen geometry."""

    def __init__(
        self,
        message: str,
        coordinate: Tuple[int, int],
        geometry: Tuple[int, int],
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.coordinate = coordinate
        self.geometry = geometry
        self.details.update({
            "coordinate": list(coordinate),
            "geometry": list(geometry)
        })


class CaptureIOError(RetryableError):
    """Screen capture could not be produced or persisted."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.path = path
        self.details.update({"path": path})


class DecisionParseError(RetryableError):
    """The vision engine reply did not satisfy the decision contract."""

    def __init__(
        self,
        message: str,
        raw_response: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.raw_response = raw_response
        # Raw replies can be large; keep a prefix for diagnostics.
        self.details.update({
            "raw_response": raw_response[:500] if raw_response else None
        })


class OperationTimeoutError(RetryableError):
    """An external call exceeded its per-call timeout."""

    def __init__(
        self,
        message: str,
        operation: str,
        timeout_seconds: float,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        self.details.update({
            "operation": operation,
            "timeout_seconds": timeout_seconds
        })


class AcquisitionError(NonRetryableError):
    """The installable artifact could not be obtained."""

    def __init__(
        self,
        message: str,
        bundle_id: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.bundle_id = bundle_id
        self.details.update({"bundle_id": bundle_id})


class PlatformError(NonRetryableError):
    """An operating-system command used by the lifecycle manager failed."""

    def __init__(
        self,
        message: str,
        command: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.command = command
        self.details.update({"command": command})


class MountError(NonRetryableError):
    """Mounting or unmounting an artifact failed."""

    def __init__(
        self,
        message: str,
        target: Optional[str] = None,
        operation: str = "mount",
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.target = target
        self.operation = operation
        self.details.update({
            "target": target,
            "operation": operation
        })


class SessionError(NonRetryableError):
    """An installation session ended in a non-completed terminal state."""

    def __init__(
        self,
        message: str,
        outcome: str,
        attempts: int,
        reasoning: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.outcome = outcome
        self.attempts = attempts
        self.reasoning = reasoning
        self.details.update({
            "outcome": outcome,
            "attempts": attempts,
            "reasoning": reasoning
        })
