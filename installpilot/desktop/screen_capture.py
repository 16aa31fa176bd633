"""Screen capture helper that shells out to ffmpeg."""

from __future__ import annotations

import asyncio
import io
import logging
import os
import subprocess
from datetime import timezone
from pathlib import Path
from typing import Optional
from uuid import uuid4

from PIL import Image, UnidentifiedImageError

from installpilot.core.interfaces import ScreenCapturer
from installpilot.core.types import Screenshot
from installpilot.desktop.resolution_manager import ResolutionManager
from installpilot.error_handling import CaptureIOError

logger = logging.getLogger(__name__)


class ScreenCapture(ScreenCapturer):
    """Capture full-screen images using ffmpeg."""

    def __init__(
        self,
        resolution_manager: ResolutionManager,
        screenshot_dir: Path,
        display: Optional[str] = None,
        timeout_seconds: float = 15.0,
    ) -> None:
        self.resolution_manager = resolution_manager
        self.screenshot_dir = Path(screenshot_dir)
        self.display = display or os.environ.get("DISPLAY", ":0")
        self.timeout_seconds = timeout_seconds

    async def capture(self) -> Screenshot:
        """Capture a fresh frame; nothing is cached between calls."""
        return await asyncio.to_thread(self._capture_sync)

    def save_to(self, screenshot: Screenshot, path: Optional[Path] = None) -> Path:
        """Write the frame to disk and record the path on the handle."""
        target = Path(path) if path else self._default_path(screenshot)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(screenshot.data)
        except OSError as exc:
            raise CaptureIOError(
                f"Failed to write screenshot: {exc}", path=str(target), cause=exc
            ) from exc
        screenshot.path = target
        logger.debug("Saved desktop screenshot", extra={"path": str(target)})
        return target

    def _capture_sync(self) -> Screenshot:
        width, height = self.resolution_manager.geometry()
        cmd = [
            "ffmpeg",
            "-v",
            "error",
            "-f",
            "x11grab",
            "-video_size",
            f"{width}x{height}",
            "-i",
            f"{self.display}+0,0",
            "-frames:v",
            "1",
            "-f",
            "image2pipe",
            "-vcodec",
            "png",
            "pipe:1",
        ]

        logger.debug("Capturing desktop screenshot", extra={"width": width, "height": height})
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=False,
                timeout=self.timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            raise CaptureIOError(
                f"ffmpeg capture timed out after {self.timeout_seconds}s", cause=exc
            ) from exc
        except OSError as exc:
            raise CaptureIOError(f"ffmpeg could not be started: {exc}", cause=exc) from exc

        if result.returncode != 0 or not result.stdout:
            raise CaptureIOError(
                f"ffmpeg capture failed: {result.stderr.decode('utf-8', errors='ignore').strip()}"
            )

        return self.from_png(result.stdout)

    @staticmethod
    def from_png(data: bytes) -> Screenshot:
        """Build a handle from PNG bytes, rejecting anything Pillow cannot decode."""
        try:
            with Image.open(io.BytesIO(data)) as image:
                image.verify()
                image_width, image_height = image.size
        except (UnidentifiedImageError, OSError, SyntaxError) as exc:
            raise CaptureIOError(f"Captured frame is not a valid image: {exc}", cause=exc) from exc
        return Screenshot(data=data, width=image_width, height=image_height)

    def _default_path(self, screenshot: Screenshot) -> Path:
        timestamp = screenshot.captured_at.astimezone(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
        return self.screenshot_dir / f"desktop_{timestamp}_{uuid4().hex[:8]}.png"
