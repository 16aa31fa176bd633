"""
Tests for decision parsing and the vision decision engine.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import openai
import pytest

from installpilot.agents.decision_engine import VisionDecisionEngine, parse_decision
from installpilot.core.types import DecisionAction, Screenshot
from installpilot.error_handling import DecisionParseError


class TestParseDecision:
    """Validation of untrusted model replies."""

    def test_click_with_coordinate(self):
        decision = parse_decision(
            '{"action": "click", "coordinate": {"x": 100, "y": 200}, "reasoning": "Next button"}'
        )

        assert decision.action == DecisionAction.CLICK
        assert decision.coordinate.as_tuple() == (100, 200)
        assert decision.reasoning == "Next button"

    def test_type_with_text(self):
        decision = parse_decision({"action": "type", "text": "admin", "reasoning": "Username"})

        assert decision.action == DecisionAction.TYPE
        assert decision.text == "admin"

    def test_strips_json_code_fence(self):
        reply = '```json\n{"action": "wait", "reasoning": "Progress bar visible"}\n```'

        assert parse_decision(reply).action == DecisionAction.WAIT

    def test_click_without_coordinate_is_rejected(self):
        with pytest.raises(DecisionParseError, match="coordinate"):
            parse_decision('{"action": "click", "reasoning": "Somewhere"}')

    def test_type_without_text_is_rejected(self):
        with pytest.raises(DecisionParseError, match="text"):
            parse_decision('{"action": "type", "text": "", "reasoning": "Field"}')

    def test_unknown_action_is_rejected(self):
        with pytest.raises(DecisionParseError):
            parse_decision('{"action": "scroll", "reasoning": "Down"}')

    def test_missing_reasoning_is_rejected(self):
        with pytest.raises(DecisionParseError, match="reasoning"):
            parse_decision('{"action": "complete"}')

    def test_negative_coordinate_is_rejected(self):
        with pytest.raises(DecisionParseError):
            parse_decision('{"action": "click", "coordinate": {"x": -1, "y": 5}, "reasoning": "r"}')

    def test_malformed_json_keeps_raw_reply(self):
        with pytest.raises(DecisionParseError) as exc_info:
            parse_decision("I think you should click the button")

        assert exc_info.value.raw_response == "I think you should click the button"

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_empty_reply_is_rejected(self, raw):
        with pytest.raises(DecisionParseError, match="Empty"):
            parse_decision(raw)

    def test_non_object_payload_is_rejected(self):
        with pytest.raises(DecisionParseError, match="JSON object"):
            parse_decision('["click", 1, 2]')


@pytest.fixture
def screenshot():
    return Screenshot(data=b"\x89PNG frame", width=1440, height=900)


@pytest.fixture
def client():
    mock = MagicMock()
    mock.analyze_image = AsyncMock()
    return mock


@pytest.mark.asyncio
async def test_decide_sends_screenshot_and_prompt(client, screenshot):
    client.analyze_image.return_value = {
        "content": json.dumps({"action": "complete", "reasoning": "Installed"}),
        "usage": {"total_tokens": 10},
    }
    engine = VisionDecisionEngine(client, temperature=0.1)

    decision = await engine.decide("Install Example", screenshot)

    assert decision.action == DecisionAction.COMPLETE
    kwargs = client.analyze_image.await_args.kwargs
    assert kwargs["image_data"] == screenshot.data
    assert "Install Example" in kwargs["prompt"]
    assert "1440x900" in kwargs["prompt"]
    assert kwargs["temperature"] == 0.1
    assert kwargs["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
async def test_decide_rejects_invalid_reply(client, screenshot):
    client.analyze_image.return_value = {"content": '{"action": "click", "reasoning": "x"}'}
    engine = VisionDecisionEngine(client)

    with pytest.raises(DecisionParseError):
        await engine.decide("Install Example", screenshot)


@pytest.mark.asyncio
async def test_provider_errors_become_transient(client, screenshot):
    client.analyze_image.side_effect = openai.OpenAIError("connection reset")
    engine = VisionDecisionEngine(client)

    with pytest.raises(DecisionParseError, match="request failed"):
        await engine.decide("Install Example", screenshot)
