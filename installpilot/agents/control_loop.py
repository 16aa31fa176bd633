"""Closed-loop desktop control: capture, decide, act, re-observe."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from installpilot.agents.decision_engine import VisionDecisionEngine
from installpilot.config.settings import Settings
from installpilot.core.interfaces import DecisionEngine, InputDriver, ScreenCapturer
from installpilot.core.types import (
    DEFAULT_MAX_ATTEMPTS,
    Decision,
    DecisionAction,
    LoopSession,
    LoopState,
    SessionResult,
)
from installpilot.desktop import DesktopDriver, ResolutionManager, ScreenCapture
from installpilot.error_handling import (
    DecisionParseError,
    OperationTimeoutError,
    OutOfBoundsError,
    RetryableError,
)
from installpilot.models.openai_client import OpenAIClient
from installpilot.monitoring.logger import log_session_event

logger = logging.getLogger(__name__)

T = TypeVar("T")

CANCELLED_REASON = "cancelled"


class ControlLoop:
    """State machine driving one desktop goal to a terminal state.

    Each iteration performs at most one input action, so the next screenshot
    always reflects exactly the previous action. The attempt ceiling is the
    only termination guarantee; the decision source is never trusted to stop.
    """

    def __init__(
        self,
        driver: InputDriver,
        capture: ScreenCapturer,
        engine: DecisionEngine,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        wait_backoff_seconds: float = 5.0,
        capture_timeout_seconds: float = 15.0,
        decision_timeout_seconds: float = 180.0,
        action_timeout_seconds: float = 10.0,
        persist_screenshots: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.driver = driver
        self.capture = capture
        self.engine = engine
        self.max_attempts = max_attempts
        self.wait_backoff_seconds = wait_backoff_seconds
        self.capture_timeout_seconds = capture_timeout_seconds
        self.decision_timeout_seconds = decision_timeout_seconds
        self.action_timeout_seconds = action_timeout_seconds
        self.persist_screenshots = persist_screenshots
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        driver: InputDriver,
        capture: ScreenCapturer,
        engine: DecisionEngine,
    ) -> "ControlLoop":
        return cls(
            driver=driver,
            capture=capture,
            engine=engine,
            max_attempts=settings.loop_max_attempts,
            wait_backoff_seconds=settings.loop_wait_backoff_seconds,
            capture_timeout_seconds=settings.capture_timeout_seconds,
            decision_timeout_seconds=settings.decision_timeout_seconds,
            action_timeout_seconds=settings.action_timeout_seconds,
        )

    def new_session(self) -> LoopSession:
        return LoopSession(max_attempts=self.max_attempts)

    async def run(
        self,
        instruction: str,
        session: Optional[LoopSession] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SessionResult:
        """
        Drive the loop until it reaches a terminal state.

        Args:
            instruction: Natural-language goal passed to the decision engine
            session: Session value to update; a fresh one is created when omitted
            cancel_event: Checked before every capture; when set the loop fails

        Returns:
            SessionResult naming the terminal state
        """
        session = session or self.new_session()
        log_session_event(
            "loop_started",
            session.session_id,
            {"max_attempts": session.max_attempts},
        )

        while session.state == LoopState.RUNNING:
            await self.step(instruction, session, cancel_event)

        result = SessionResult.from_session(session)
        log_session_event(
            "loop_finished",
            session.session_id,
            {"state": result.outcome.value, "attempts": result.attempts},
        )
        return result

    async def step(
        self,
        instruction: str,
        session: LoopSession,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Run one iteration against the session."""
        if cancel_event is not None and cancel_event.is_set():
            self._finish(session, LoopState.FAILED, CANCELLED_REASON)
            return

        if not session.begin_attempt():
            self._finish(session, LoopState.EXHAUSTED)
            return

        try:
            decision = await self._observe_and_decide(instruction)
            session.last_reasoning = decision.reasoning
            await self._dispatch(decision, session)
        except (RetryableError, OutOfBoundsError) as exc:
            session.last_error = f"{exc.error_code}: {exc.message}"
            logger.warning(
                "Loop iteration failed; retrying on next attempt",
                extra={
                    "session_id": session.session_id,
                    "attempt": session.attempts,
                    "max_attempts": session.max_attempts,
                    "error": exc.to_dict(),
                },
            )

    async def decide_once(self, instruction: str) -> Decision:
        """Capture and decide without acting or touching any session."""
        return await self._observe_and_decide(instruction)

    async def _observe_and_decide(self, instruction: str) -> Decision:
        screenshot = await self._with_timeout(
            self.capture.capture(), "capture", self.capture_timeout_seconds
        )
        if self.persist_screenshots:
            self.capture.save_to(screenshot)
        return await self._with_timeout(
            self.engine.decide(instruction, screenshot), "decide", self.decision_timeout_seconds
        )

    async def _dispatch(self, decision: Decision, session: LoopSession) -> None:
        logger.info(
            "Executing decision",
            extra={
                "session_id": session.session_id,
                "attempt": session.attempts,
                "max_attempts": session.max_attempts,
                "action": decision.action.value,
                "reasoning": decision.reasoning,
            },
        )

        if decision.action == DecisionAction.CLICK:
            coordinate = decision.coordinate
            if coordinate is None:
                raise DecisionParseError("click decision has no coordinate")
            await self._with_timeout(
                self.driver.click(coordinate), "click", self.action_timeout_seconds
            )
        elif decision.action == DecisionAction.TYPE:
            text = decision.text
            if not text:
                raise DecisionParseError("type decision has no text")
            await self._with_timeout(
                self.driver.type_text(text), "type", self.action_timeout_seconds
            )
        elif decision.action == DecisionAction.WAIT:
            await self._sleep(self.wait_backoff_seconds)
        elif decision.action == DecisionAction.COMPLETE:
            session.completed = True
            self._finish(session, LoopState.COMPLETED)
        elif decision.action == DecisionAction.ERROR:
            self._finish(session, LoopState.FAILED, decision.reasoning)

    def _finish(self, session: LoopSession, state: LoopState, reason: Optional[str] = None) -> None:
        session.state = state
        session.terminal_reason = reason
        level = logging.INFO if state == LoopState.COMPLETED else logging.WARNING
        logger.log(
            level,
            f"Control loop {state.value}",
            extra={
                "session_id": session.session_id,
                "state": state.value,
                "attempt": session.attempts,
                "max_attempts": session.max_attempts,
            },
        )

    @staticmethod
    async def _with_timeout(awaitable: Awaitable[T], operation: str, timeout: float) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise OperationTimeoutError(
                f"{operation} timed out after {timeout}s",
                operation=operation,
                timeout_seconds=timeout,
                cause=exc,
            ) from exc


def build_control_loop(settings: Settings) -> ControlLoop:
    """Assemble the desktop-backed loop from settings."""
    resolution_manager = ResolutionManager(display=settings.desktop_display)
    driver = DesktopDriver(resolution_manager=resolution_manager)
    capture = ScreenCapture(
        resolution_manager=resolution_manager,
        screenshot_dir=settings.desktop_screenshot_dir,
        display=settings.desktop_display,
        timeout_seconds=settings.capture_timeout_seconds,
    )
    model_config = settings.get_agent_model_config("decision_engine")
    client = OpenAIClient(
        model=model_config.model,
        api_key=settings.openai_api_key or None,
        reasoning_level=model_config.reasoning_level,
    )
    engine = VisionDecisionEngine(client=client, temperature=model_config.temperature)
    return ControlLoop.from_settings(settings, driver=driver, capture=capture, engine=engine)
