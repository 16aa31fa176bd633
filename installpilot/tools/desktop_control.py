"""Function-tool adapter exposing the control loop to an orchestrating agent."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from installpilot.agents.control_loop import ControlLoop

logger = logging.getLogger(__name__)

TOOL_NAME = "desktop_control"


class DesktopControlTool:
    """Stateless bridge between tool calls and fresh control loop sessions."""

    name = TOOL_NAME

    def __init__(self, control_loop: ControlLoop) -> None:
        self.control_loop = control_loop

    def definition(self) -> Dict[str, Any]:
        """Return the function-tool schema advertised to the orchestrator."""
        return {
            "type": "function",
            "name": self.name,
            "description": (
                "Operate the desktop by looking at the screen and clicking or typing "
                "until the instruction is satisfied. Set captureOnly to inspect the "
                "screen and get the next suggested action without acting."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "instruction": {
                        "type": "string",
                        "description": "Natural-language goal to accomplish on screen",
                    },
                    "captureOnly": {
                        "type": "boolean",
                        "description": "Capture and decide once without performing the action",
                    },
                },
                "required": ["instruction"],
            },
        }

    async def run(self, instruction: str, capture_only: bool = False) -> Dict[str, Any]:
        """
        Execute one tool call.

        Args:
            instruction: Natural-language goal
            capture_only: Return the next decision instead of acting on it

        Returns:
            The decision as a mapping, or ``{"outcome", "detail"?}``
        """
        if capture_only:
            decision = await self.control_loop.decide_once(instruction)
            return decision.model_dump(mode="json", exclude_none=True)

        result = await self.control_loop.run(instruction)
        logger.info(
            "Desktop control tool finished",
            extra={"session_id": result.session_id, "state": result.outcome.value},
        )
        return result.to_response()

    async def invoke(self, arguments: Mapping[str, Any]) -> Dict[str, Any]:
        """Run the tool from the orchestrator's raw argument mapping."""
        instruction = arguments.get("instruction")
        if not isinstance(instruction, str) or not instruction.strip():
            raise ValueError("desktop_control requires a non-empty 'instruction' string")
        capture_only = arguments.get("captureOnly", False)
        if not isinstance(capture_only, bool):
            raise ValueError("desktop_control 'captureOnly' must be a boolean")
        return await self.run(instruction, capture_only=capture_only)
