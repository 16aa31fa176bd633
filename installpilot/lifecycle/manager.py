"""
Application lifecycle: detect, acquire, mount, guided install, release, launch.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from installpilot.agents.control_loop import ControlLoop
from installpilot.config.agent_prompts import INSTALLATION_INSTRUCTION_TEMPLATE
from installpilot.config.settings import Settings
from installpilot.core.interfaces import AcquisitionSource, AppPlatform
from installpilot.core.types import AppDescriptor, InstallationSession, SessionResult
from installpilot.error_handling import MountError, PlatformError, SessionError
from installpilot.monitoring.logger import log_session_event

logger = logging.getLogger(__name__)


class AppLifecycleManager:
    """Wraps the control loop with installation bookkeeping.

    A mounted artifact is released exactly once on every exit path of
    ``ensure_installed``, including loop faults and task cancellation.
    """

    def __init__(
        self,
        platform: AppPlatform,
        control_loop: ControlLoop,
        mount_timeout_seconds: float = 120.0,
        detection_timeout_seconds: float = 30.0,
    ) -> None:
        self.platform = platform
        self.control_loop = control_loop
        self.mount_timeout_seconds = mount_timeout_seconds
        self.detection_timeout_seconds = detection_timeout_seconds

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        platform: AppPlatform,
        control_loop: ControlLoop,
    ) -> "AppLifecycleManager":
        return cls(
            platform=platform,
            control_loop=control_loop,
            mount_timeout_seconds=settings.mount_timeout_seconds,
            detection_timeout_seconds=settings.detection_timeout_seconds,
        )

    async def is_installed(self, descriptor: AppDescriptor) -> bool:
        try:
            return await asyncio.wait_for(
                self.platform.is_installed(descriptor),
                timeout=self.detection_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise PlatformError(
                f"Detection of {descriptor.bundle_id} timed out after "
                f"{self.detection_timeout_seconds}s",
                cause=exc,
            ) from exc

    async def ensure_installed(
        self,
        descriptor: AppDescriptor,
        source: AcquisitionSource,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[SessionResult]:
        """
        Install the application unless it is already present.

        Args:
            descriptor: Application to install
            source: Provides the installable artifact
            cancel_event: Forwarded to the control loop

        Returns:
            None when the application was already installed, otherwise the
            completed session result

        Raises:
            AcquisitionError: The artifact could not be obtained
            MountError: Mounting failed, or releasing failed with no other
                error in flight
            SessionError: The guided install ended failed or exhausted
        """
        if await self.is_installed(descriptor):
            logger.info(
                "Application already installed",
                extra={"bundle_id": descriptor.bundle_id},
            )
            return None

        artifact = await source.acquire(descriptor)
        mount_point = await self._mount(artifact)

        session = InstallationSession(
            max_attempts=self.control_loop.max_attempts,
            descriptor=descriptor,
            mount_point=mount_point,
        )
        log_session_event(
            "artifact_mounted",
            session.session_id,
            {"bundle_id": descriptor.bundle_id, "mount_point": mount_point},
        )

        instruction = self.build_instruction(descriptor, mount_point)
        try:
            result = await self.control_loop.run(
                instruction, session=session, cancel_event=cancel_event
            )
        except BaseException:
            await self._release(session, raise_errors=False)
            raise
        await self._release(session, raise_errors=True)

        if not result.succeeded:
            raise SessionError(
                f"Installation of {descriptor.display_name} ended {result.outcome.value}: "
                f"{result.detail}",
                outcome=result.outcome.value,
                attempts=result.attempts,
                reasoning=result.detail,
            )

        log_session_event(
            "installation_completed",
            session.session_id,
            {"bundle_id": descriptor.bundle_id, "attempt": result.attempts},
        )
        return result

    async def launch(self, descriptor: AppDescriptor) -> None:
        await self.platform.launch(descriptor)

    @staticmethod
    def build_instruction(descriptor: AppDescriptor, mount_point: str) -> str:
        return INSTALLATION_INSTRUCTION_TEMPLATE.format(
            app_name=descriptor.display_name,
            bundle_id=descriptor.bundle_id,
            mount_point=mount_point,
        )

    async def _mount(self, artifact: Path) -> str:
        # Shielded so that a mount finishing after the deadline is still seen
        # and released; the platform call may be running in a worker thread.
        mount_task = asyncio.ensure_future(self.platform.mount(artifact))
        try:
            return await asyncio.wait_for(
                asyncio.shield(mount_task), timeout=self.mount_timeout_seconds
            )
        except asyncio.TimeoutError as exc:
            await self._discard_late_mount(mount_task, artifact)
            raise MountError(
                f"Mounting {artifact} timed out after {self.mount_timeout_seconds}s",
                target=str(artifact),
                cause=exc,
            ) from exc
        except asyncio.CancelledError:
            await self._discard_late_mount(mount_task, artifact)
            raise

    async def _discard_late_mount(self, mount_task: "asyncio.Future[str]", artifact: Path) -> None:
        """Wait for an abandoned mount to settle and unmount whatever it produced."""
        try:
            mount_point = await asyncio.wait_for(mount_task, timeout=self.mount_timeout_seconds)
        except Exception as exc:
            logger.warning(
                "Abandoned mount produced no mount point",
                extra={"artifact": str(artifact), "error": str(exc)},
            )
            return

        logger.warning(
            "Releasing mount that completed after its deadline",
            extra={"artifact": str(artifact), "mount_point": mount_point},
        )
        try:
            await asyncio.wait_for(
                self.platform.unmount(mount_point), timeout=self.mount_timeout_seconds
            )
        except Exception as exc:
            logger.error(
                "Failed to release late mount point",
                extra={"artifact": str(artifact), "mount_point": mount_point, "error": str(exc)},
            )

    async def _release(self, session: InstallationSession, raise_errors: bool) -> None:
        mount_point = session.take_mount_point()
        if mount_point is None:
            return

        try:
            await asyncio.wait_for(
                self.platform.unmount(mount_point), timeout=self.mount_timeout_seconds
            )
        except Exception as exc:
            logger.error(
                "Failed to release mount point",
                extra={
                    "session_id": session.session_id,
                    "bundle_id": session.bundle_id,
                    "mount_point": mount_point,
                    "error": str(exc),
                },
            )
            if raise_errors:
                if isinstance(exc, MountError):
                    raise
                raise MountError(
                    f"Failed to release {mount_point}: {exc}",
                    target=mount_point,
                    operation="unmount",
                    cause=exc,
                ) from exc
            return

        log_session_event(
            "artifact_released",
            session.session_id,
            {"bundle_id": session.bundle_id, "mount_point": mount_point},
        )
