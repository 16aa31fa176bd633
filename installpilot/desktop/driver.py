"""Desktop input driver backed by a uinput virtual device."""

from __future__ import annotations

import logging
from typing import Any, Optional

from installpilot.core.interfaces import InputDriver
from installpilot.core.types import Coordinate, ScreenGeometry
from installpilot.desktop.resolution_manager import ResolutionManager
from installpilot.error_handling import OutOfBoundsError

logger = logging.getLogger(__name__)


class DesktopDriver(InputDriver):
    """OS-level driver that controls an existing desktop session.

    Geometry is read once on start. Calls are not serialized; callers must not
    issue input concurrently against the same display.
    """

    def __init__(
        self,
        resolution_manager: Optional[ResolutionManager] = None,
        virtual_input: Optional[Any] = None,
    ) -> None:
        self.resolution_manager = resolution_manager or ResolutionManager()
        self.virtual_input = virtual_input
        self._geometry: Optional[ScreenGeometry] = None

    async def start(self) -> None:
        """Cache screen geometry and create the virtual input device."""
        self._geometry = self.resolution_manager.geometry()
        if self.virtual_input is None:
            # evdev is Linux-only.
            from installpilot.desktop.virtual_input import VirtualInput

            self.virtual_input = VirtualInput(viewport=(self._geometry.width, self._geometry.height))

    async def stop(self) -> None:
        close = getattr(self.virtual_input, "close", None)
        if callable(close):
            close()
        self.virtual_input = None

    def screen_geometry(self) -> ScreenGeometry:
        if self._geometry is None:
            self._geometry = self.resolution_manager.geometry()
        return self._geometry

    async def move_to(self, coordinate: Coordinate) -> None:
        self._validate(coordinate)
        device = await self._ensure_ready()
        await device.move(coordinate.x, coordinate.y)

    async def click(self, coordinate: Coordinate, button: str = "left") -> None:
        self._validate(coordinate)
        device = await self._ensure_ready()
        logger.debug("Clicking", extra={"x": coordinate.x, "y": coordinate.y, "button": button})
        await device.click(coordinate.x, coordinate.y, button=button, click_count=1)

    async def double_click(self, coordinate: Coordinate) -> None:
        self._validate(coordinate)
        device = await self._ensure_ready()
        await device.click(coordinate.x, coordinate.y, button="left", click_count=2)

    async def drag(self, start: Coordinate, end: Coordinate) -> None:
        self._validate(start)
        self._validate(end)
        device = await self._ensure_ready()
        await device.drag(start.as_tuple(), end.as_tuple())

    async def type_text(self, text: str) -> None:
        device = await self._ensure_ready()
        await device.type_text(text)

    def _validate(self, coordinate: Coordinate) -> None:
        geometry = self.screen_geometry()
        if not geometry.contains(coordinate):
            raise OutOfBoundsError(
                f"Coordinate ({coordinate.x}, {coordinate.y}) outside screen "
                f"{geometry.width}x{geometry.height}",
                coordinate=coordinate.as_tuple(),
                geometry=(geometry.width, geometry.height),
            )

    async def _ensure_ready(self) -> Any:
        if self.virtual_input is None:
            await self.start()
        return self.virtual_input
