"""Vision decision engine: screenshot plus instruction in, typed decision out."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

import openai
from pydantic import ValidationError

from installpilot.config.agent_prompts import (
    DECISION_ENGINE_SYSTEM_PROMPT,
    DECISION_REQUEST_TEMPLATE,
    DECISION_RESPONSE_FORMAT,
)
from installpilot.core.interfaces import DecisionEngine
from installpilot.core.types import Decision, Screenshot
from installpilot.error_handling import DecisionParseError
from installpilot.models.openai_client import OpenAIClient

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def parse_decision(raw: Any) -> Decision:
    """
    Validate an untrusted model reply into a Decision.

    Args:
        raw: Reply text (or an already-decoded mapping)

    Returns:
        Validated decision

    Raises:
        DecisionParseError: on malformed JSON, unknown actions, or missing payloads
    """
    if isinstance(raw, dict):
        payload = raw
        raw_text = json.dumps(raw)
    else:
        raw_text = raw if isinstance(raw, str) else ""
        text = raw_text.strip()
        if not text:
            raise DecisionParseError("Empty reply from vision engine", raw_response=raw_text)
        fenced = _CODE_FENCE.match(text)
        if fenced:
            text = fenced.group(1)
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise DecisionParseError(
                f"Reply is not valid JSON: {exc.msg}", raw_response=raw_text, cause=exc
            ) from exc

    if not isinstance(payload, dict):
        raise DecisionParseError(
            f"Reply must be a JSON object, got {type(payload).__name__}",
            raw_response=raw_text,
        )

    try:
        return Decision.model_validate(payload)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'decision'}: {error['msg']}"
            for error in exc.errors()
        )
        raise DecisionParseError(
            f"Reply violates decision contract: {problems}", raw_response=raw_text, cause=exc
        ) from exc


class VisionDecisionEngine(DecisionEngine):
    """Ask a vision model for the next step and validate its answer."""

    def __init__(
        self,
        client: OpenAIClient,
        temperature: float = 0.2,
        detail: str = "high",
        system_prompt: Optional[str] = None,
    ) -> None:
        self.client = client
        self.temperature = temperature
        self.detail = detail
        self.system_prompt = system_prompt or DECISION_ENGINE_SYSTEM_PROMPT

    def build_prompt(self, instruction: str, screenshot: Screenshot) -> str:
        return DECISION_REQUEST_TEMPLATE.format(
            instruction=instruction.strip(),
            width=screenshot.width,
            height=screenshot.height,
            response_format=DECISION_RESPONSE_FORMAT,
        )

    async def decide(self, instruction: str, screenshot: Screenshot) -> Decision:
        prompt = self.build_prompt(instruction, screenshot)
        try:
            response = await self.client.analyze_image(
                image_data=screenshot.data,
                prompt=prompt,
                system_prompt=self.system_prompt,
                temperature=self.temperature,
                detail=self.detail,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as exc:
            # Provider faults are transient from the loop's point of view.
            raise DecisionParseError(
                f"Vision engine request failed: {exc}", cause=exc
            ) from exc

        decision = parse_decision(response.get("content"))
        logger.debug(
            "Vision engine decision",
            extra={
                "action": decision.action.value,
                "reasoning": decision.reasoning,
                "usage": response.get("usage"),
            },
        )
        return decision
