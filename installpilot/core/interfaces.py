"""
Core interfaces and abstract base classes for installpilot.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from installpilot.core.types import (
    AppDescriptor,
    Coordinate,
    Decision,
    ScreenGeometry,
    Screenshot,
)


class InputDriver(ABC):
    """Pointer and keyboard primitives against absolute screen coordinates."""

    @abstractmethod
    async def move_to(self, coordinate: Coordinate) -> None:
        """Move the pointer."""
        pass

    @abstractmethod
    async def click(self, coordinate: Coordinate, button: str = "left") -> None:
        """Move to the coordinate, then press and release."""
        pass

    @abstractmethod
    async def double_click(self, coordinate: Coordinate) -> None:
        """Move to the coordinate, then click twice."""
        pass

    @abstractmethod
    async def drag(self, start: Coordinate, end: Coordinate) -> None:
        """Press at start, move to end, release."""
        pass

    @abstractmethod
    async def type_text(self, text: str) -> None:
        """Type text at current focus."""
        pass

    @abstractmethod
    def screen_geometry(self) -> ScreenGeometry:
        """Return the cached screen geometry."""
        pass


class ScreenCapturer(ABC):
    """Produces snapshots of the current display state."""

    @abstractmethod
    async def capture(self) -> Screenshot:
        """Capture a fresh frame."""
        pass

    @abstractmethod
    def save_to(self, screenshot: Screenshot, path: Optional[Path] = None) -> Path:
        """Persist a frame and return where it was written."""
        pass


class DecisionEngine(ABC):
    """Turns an instruction plus a screenshot into a typed decision."""

    @abstractmethod
    async def decide(self, instruction: str, screenshot: Screenshot) -> Decision:
        """
        Ask the vision model what to do next.

        Args:
            instruction: Natural-language goal
            screenshot: Current display state

        Returns:
            Validated decision
        """
        pass


class AcquisitionSource(ABC):
    """Provides an installable artifact for an application."""

    @abstractmethod
    async def acquire(self, descriptor: AppDescriptor) -> Path:
        """Return the path to an installable artifact."""
        pass


class AppPlatform(ABC):
    """Operating-system calls used by the lifecycle manager."""

    @abstractmethod
    async def is_installed(self, descriptor: AppDescriptor) -> bool:
        """Report whether the application is already present."""
        pass

    @abstractmethod
    async def launch(self, descriptor: AppDescriptor) -> None:
        """Launch the application."""
        pass

    @abstractmethod
    async def mount(self, artifact: Path) -> str:
        """Attach an artifact and return its mount point."""
        pass

    @abstractmethod
    async def unmount(self, mount_point: str) -> None:
        """Detach a mount point; already-unmounted points are a no-op."""
        pass
