"""Screen geometry detection for desktop automation."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass
from typing import Optional

from installpilot.core.types import ScreenGeometry

logger = logging.getLogger(__name__)


@dataclass
class DisplayMode:
    """Represents a display mode."""

    width: int
    height: int
    refresh: Optional[float] = None
    raw: Optional[str] = None


class ResolutionManager:
    """Detect the X screen size once and cache it.

    The geometry covers the whole X screen, not just the primary output, so
    monitor offsets fall inside the same coordinate space that ffmpeg
    captures from +0,0 and that the absolute pointer axes span.
    """

    def __init__(self, display: Optional[str] = None) -> None:
        self.display = display
        self._current_mode: Optional[DisplayMode] = None

    def detect_current_mode(self) -> DisplayMode:
        """Detect the current screen size using xrandr."""
        output = self._run(["xrandr", "--query"])
        screen_line = next((line for line in output.splitlines() if line.startswith("Screen ")), "")
        mode_match = re.search(r"current (\d+) x (\d+)", screen_line)
        raw = screen_line

        if not mode_match:
            # Older servers omit the Screen line; fall back to the primary output.
            primary_line = next((line for line in output.splitlines() if " primary " in line), None)
            if not primary_line:
                primary_line = next((line for line in output.splitlines() if " connected" in line), "")
            mode_match = re.search(r"(\d+)x(\d+)\+", primary_line) or re.search(r"(\d+)x(\d+)", primary_line)
            raw = primary_line

        if not mode_match:
            raise RuntimeError(f"Unable to parse display mode from xrandr output: {raw!r}")

        refresh_match = re.search(r"(\d+\.\d+)\*", output)
        refresh = float(refresh_match.group(1)) if refresh_match else None

        mode = DisplayMode(
            width=int(mode_match.group(1)),
            height=int(mode_match.group(2)),
            refresh=refresh,
            raw=raw,
        )
        self._current_mode = mode
        logger.info(
            "Detected display mode",
            extra={"resolution": f"{mode.width}x{mode.height}", "display": self.display},
        )
        return mode

    def geometry(self) -> ScreenGeometry:
        """Return the cached geometry, detecting it on first use.

        The value is not refreshed afterwards; a display reconfiguration
        mid-session leaves it stale.
        """
        mode = self._current_mode or self.detect_current_mode()
        return ScreenGeometry(mode.width, mode.height)

    def _run(self, command: list[str]) -> str:
        env = dict(os.environ)
        if self.display:
            env["DISPLAY"] = self.display
        result = subprocess.run(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            check=False,
            env=env,
        )
        if result.returncode != 0:
            raise RuntimeError(f"Command failed: {' '.join(command)} :: {result.stderr.strip()}")
        return result.stdout
