"""
Unit tests for core data types.
"""

import pytest
from pydantic import ValidationError

from installpilot.core.types import (
    DEFAULT_MAX_ATTEMPTS,
    AppDescriptor,
    Coordinate,
    Decision,
    DecisionAction,
    InstallationSession,
    LoopSession,
    LoopState,
    ScreenGeometry,
    SessionResult,
)


class TestCoordinateAndGeometry:
    def test_contains_is_half_open(self):
        geometry = ScreenGeometry(1920, 1080)

        assert geometry.contains(Coordinate(x=0, y=0))
        assert geometry.contains(Coordinate(x=1919, y=1079))
        assert not geometry.contains(Coordinate(x=1920, y=0))
        assert not geometry.contains(Coordinate(x=0, y=1080))

    def test_negative_coordinates_rejected(self):
        with pytest.raises(ValidationError):
            Coordinate(x=-5, y=10)


class TestDecision:
    def test_click_requires_coordinate(self):
        with pytest.raises(ValidationError):
            Decision(action=DecisionAction.CLICK, reasoning="button")

    def test_type_requires_text(self):
        with pytest.raises(ValidationError):
            Decision(action="type", reasoning="field")

    def test_wait_needs_no_payload(self):
        decision = Decision(action="wait", reasoning="spinner")

        assert decision.coordinate is None
        assert decision.text is None


class TestLoopSession:
    def test_defaults(self):
        session = LoopSession()

        assert session.max_attempts == DEFAULT_MAX_ATTEMPTS == 60
        assert session.attempts == 0
        assert session.state == LoopState.RUNNING
        assert session.completed is False

    def test_begin_attempt_stops_at_ceiling(self):
        session = LoopSession(max_attempts=2)

        assert session.begin_attempt() is True
        assert session.begin_attempt() is True
        assert session.begin_attempt() is False
        assert session.attempts == 2

    def test_zero_ceiling_rejected(self):
        with pytest.raises(ValueError):
            LoopSession(max_attempts=0)

    def test_terminal_states(self):
        assert not LoopState.RUNNING.is_terminal
        assert LoopState.COMPLETED.is_terminal
        assert LoopState.FAILED.is_terminal
        assert LoopState.EXHAUSTED.is_terminal

    def test_session_ids_are_unique(self):
        assert LoopSession().session_id != LoopSession().session_id


class TestInstallationSession:
    def test_mount_point_taken_exactly_once(self):
        session = InstallationSession(
            descriptor=AppDescriptor(bundle_id="com.example.App"),
            mount_point="/Volumes/app",
        )

        assert session.bundle_id == "com.example.App"
        assert session.take_mount_point() == "/Volumes/app"
        assert session.take_mount_point() is None
        assert session.mount_point is None


class TestAppDescriptor:
    def test_display_name_falls_back_to_bundle_id(self):
        assert AppDescriptor(bundle_id="org.example.tool").display_name == "org.example.tool"
        assert AppDescriptor(bundle_id="org.example.tool", name="Tool").display_name == "Tool"

    def test_empty_bundle_id_rejected(self):
        with pytest.raises(ValidationError):
            AppDescriptor(bundle_id="")


class TestSessionResult:
    def test_completed_has_no_detail(self):
        session = LoopSession(state=LoopState.COMPLETED, attempts=2, last_reasoning="done")

        result = SessionResult.from_session(session)

        assert result.succeeded
        assert result.detail is None
        assert result.to_response() == {"outcome": "completed"}

    def test_terminal_reason_preferred_over_reasoning(self):
        session = LoopSession(
            state=LoopState.FAILED,
            last_reasoning="clicked OK",
            terminal_reason="cancelled",
        )

        assert SessionResult.from_session(session).detail == "cancelled"

    def test_exhausted_falls_back_to_last_error(self):
        session = LoopSession(
            state=LoopState.EXHAUSTED,
            attempts=5,
            last_error="DecisionParseError: bad json",
        )

        result = SessionResult.from_session(session)

        assert result.to_response() == {
            "outcome": "exhausted",
            "detail": "DecisionParseError: bad json",
        }
        assert result.attempts == 5
