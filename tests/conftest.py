"""Shared fakes for control loop and lifecycle tests."""

from pathlib import Path
from typing import List, Optional, Sequence, Union
from unittest.mock import AsyncMock

import pytest

from installpilot.agents.control_loop import ControlLoop
from installpilot.core.interfaces import DecisionEngine, InputDriver, ScreenCapturer
from installpilot.core.types import (
    Coordinate,
    Decision,
    DecisionAction,
    ScreenGeometry,
    Screenshot,
)
from installpilot.error_handling import OutOfBoundsError


class ScriptedEngine(DecisionEngine):
    """Replays a fixed list of decisions; the last entry repeats forever."""

    def __init__(self, script: Sequence[Union[Decision, Exception]]):
        self.script = list(script)
        self.calls = 0
        self.instructions: List[str] = []

    async def decide(self, instruction: str, screenshot: Screenshot) -> Decision:
        self.instructions.append(instruction)
        item = self.script[min(self.calls, len(self.script) - 1)]
        self.calls += 1
        if isinstance(item, Exception):
            raise item
        return item


class FakeCapture(ScreenCapturer):
    """Returns a fresh in-memory frame per call."""

    def __init__(self, width: int = 1920, height: int = 1080):
        self.width = width
        self.height = height
        self.captures = 0
        self.saved: List[Screenshot] = []

    async def capture(self) -> Screenshot:
        self.captures += 1
        return Screenshot(data=b"\x89PNG fake", width=self.width, height=self.height)

    def save_to(self, screenshot: Screenshot, path: Optional[Path] = None) -> Path:
        self.saved.append(screenshot)
        screenshot.path = path or Path(f"frame_{len(self.saved)}.png")
        return screenshot.path


class RecordingDriver(InputDriver):
    """Records input calls and enforces screen bounds."""

    def __init__(self, width: int = 1920, height: int = 1080):
        self.geometry = ScreenGeometry(width, height)
        self.calls: List[tuple] = []

    def _check(self, coordinate: Coordinate) -> None:
        if not self.geometry.contains(coordinate):
            raise OutOfBoundsError(
                "out of bounds",
                coordinate=coordinate.as_tuple(),
                geometry=tuple(self.geometry),
            )

    async def move_to(self, coordinate: Coordinate) -> None:
        self._check(coordinate)
        self.calls.append(("move_to", coordinate.as_tuple()))

    async def click(self, coordinate: Coordinate, button: str = "left") -> None:
        self._check(coordinate)
        self.calls.append(("click", coordinate.as_tuple()))

    async def double_click(self, coordinate: Coordinate) -> None:
        self._check(coordinate)
        self.calls.append(("double_click", coordinate.as_tuple()))

    async def drag(self, start: Coordinate, end: Coordinate) -> None:
        self._check(start)
        self._check(end)
        self.calls.append(("drag", start.as_tuple(), end.as_tuple()))

    async def type_text(self, text: str) -> None:
        self.calls.append(("type_text", text))

    def screen_geometry(self) -> ScreenGeometry:
        return self.geometry


def click(x: int, y: int, reasoning: str = "Pressing the button") -> Decision:
    return Decision(
        action=DecisionAction.CLICK,
        coordinate=Coordinate(x=x, y=y),
        reasoning=reasoning,
    )


def wait(reasoning: str = "Installer is still working") -> Decision:
    return Decision(action=DecisionAction.WAIT, reasoning=reasoning)


def complete(reasoning: str = "Application installed") -> Decision:
    return Decision(action=DecisionAction.COMPLETE, reasoning=reasoning)


def error(reasoning: str) -> Decision:
    return Decision(action=DecisionAction.ERROR, reasoning=reasoning)


class LoopHarness:
    """Bundle of a control loop and the fakes behind it."""

    def __init__(self, script, max_attempts: int = 60, **kwargs):
        self.engine = ScriptedEngine(script)
        self.capture = FakeCapture()
        self.driver = RecordingDriver()
        self.sleep = AsyncMock()
        self.loop = ControlLoop(
            driver=self.driver,
            capture=self.capture,
            engine=self.engine,
            max_attempts=max_attempts,
            wait_backoff_seconds=5.0,
            sleep=self.sleep,
            **kwargs,
        )


@pytest.fixture
def make_harness():
    """Factory for control loop harnesses driven by a decision script."""
    return LoopHarness
