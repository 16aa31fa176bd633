"""Desktop automation primitives for OS-level computer use."""

from installpilot.desktop.driver import DesktopDriver  # noqa: F401
from installpilot.desktop.resolution_manager import ResolutionManager  # noqa: F401
from installpilot.desktop.screen_capture import ScreenCapture  # noqa: F401
