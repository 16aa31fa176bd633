"""Orchestrator-facing tools."""

from .desktop_control import DesktopControlTool, TOOL_NAME

__all__ = ["DesktopControlTool", "TOOL_NAME"]
