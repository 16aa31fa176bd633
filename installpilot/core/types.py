"""
Core data models and types for installpilot.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

DEFAULT_MAX_ATTEMPTS = 60


class Coordinate(BaseModel):
    """Absolute pixel position on the desktop."""

    x: int = Field(..., ge=0, description="Horizontal pixel offset from the left edge")
    y: int = Field(..., ge=0, description="Vertical pixel offset from the top edge")

    def as_tuple(self) -> tuple[int, int]:
        return self.x, self.y


class ScreenGeometry(NamedTuple):
    """Desktop size in pixels, captured once when the driver starts."""

    width: int
    height: int

    def contains(self, coordinate: Coordinate) -> bool:
        return 0 <= coordinate.x < self.width and 0 <= coordinate.y < self.height


class DecisionAction(str, Enum):
    """Closed set of actions the vision engine may emit."""

    CLICK = "click"
    TYPE = "type"
    WAIT = "wait"
    COMPLETE = "complete"
    ERROR = "error"


class Decision(BaseModel):
    """One structured instruction from the vision engine."""

    action: DecisionAction
    coordinate: Optional[Coordinate] = None
    text: Optional[str] = None
    reasoning: str = Field(..., description="Free-form diagnostics; never used for control flow")

    @model_validator(mode="after")
    def check_action_payload(self) -> "Decision":
        """Require the payload each action needs."""
        if self.action == DecisionAction.CLICK and self.coordinate is None:
            raise ValueError("click decision requires a coordinate")
        if self.action == DecisionAction.TYPE and not self.text:
            raise ValueError("type decision requires non-empty text")
        return self


class LoopState(str, Enum):
    """Control loop states."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    EXHAUSTED = "exhausted"

    @property
    def is_terminal(self) -> bool:
        return self is not LoopState.RUNNING


class AppDescriptor(BaseModel):
    """Stable platform identifier for an installable application."""

    bundle_id: str = Field(..., min_length=1, description="Bundle or desktop-entry identifier")
    name: Optional[str] = Field(None, description="Human-readable application name")

    @property
    def display_name(self) -> str:
        return self.name or self.bundle_id


@dataclass
class Screenshot:
    """Handle for one captured frame."""

    data: bytes
    width: int
    height: int
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    path: Optional[Path] = None


@dataclass
class LoopSession:
    """Mutable bookkeeping owned by exactly one control loop invocation."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    attempts: int = 0
    state: LoopState = LoopState.RUNNING
    completed: bool = False
    last_reasoning: Optional[str] = None
    last_error: Optional[str] = None
    terminal_reason: Optional[str] = None
    session_id: str = field(default_factory=lambda: uuid4().hex[:12])

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def begin_attempt(self) -> bool:
        """Consume one attempt; returns False once the ceiling is reached."""
        if self.attempts >= self.max_attempts:
            return False
        self.attempts += 1
        return True


@dataclass
class InstallationSession(LoopSession):
    """Loop session bracketed by an artifact mount."""

    descriptor: Optional[AppDescriptor] = None
    mount_point: Optional[str] = None

    @property
    def bundle_id(self) -> Optional[str]:
        return self.descriptor.bundle_id if self.descriptor else None

    def take_mount_point(self) -> Optional[str]:
        """Hand the mount point to the releaser exactly once."""
        mount_point, self.mount_point = self.mount_point, None
        return mount_point


class SessionResult(BaseModel):
    """Terminal report of one control loop run."""

    outcome: LoopState
    detail: Optional[str] = None
    attempts: int = 0
    session_id: Optional[str] = None

    @classmethod
    def from_session(cls, session: LoopSession) -> "SessionResult":
        detail = None
        if session.state != LoopState.COMPLETED:
            detail = session.terminal_reason or session.last_reasoning or session.last_error
        return cls(
            outcome=session.state,
            detail=detail,
            attempts=session.attempts,
            session_id=session.session_id,
        )

    @property
    def succeeded(self) -> bool:
        return self.outcome == LoopState.COMPLETED

    def to_response(self) -> Dict[str, Any]:
        """Render the orchestrator response shape."""
        response: Dict[str, Any] = {"outcome": self.outcome.value}
        if self.detail:
            response["detail"] = self.detail
        return response
