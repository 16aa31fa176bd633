"""
Tests for the application lifecycle manager.
"""

import asyncio
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import click, complete, error, wait
from installpilot.core.interfaces import AppPlatform
from installpilot.core.types import AppDescriptor, LoopState
from installpilot.error_handling import (
    AcquisitionError,
    MountError,
    PlatformError,
    SessionError,
)
from installpilot.lifecycle.manager import AppLifecycleManager


@pytest.fixture
def descriptor():
    return AppDescriptor(bundle_id="com.example.App", name="Example")


@pytest.fixture
def platform():
    """AppPlatform mock that mounts at /Volumes/app."""
    mock = MagicMock(spec=AppPlatform)
    mock.is_installed = AsyncMock(return_value=False)
    mock.mount = AsyncMock(return_value="/Volumes/app")
    mock.unmount = AsyncMock(return_value=None)
    mock.launch = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def source():
    mock = MagicMock()
    mock.acquire = AsyncMock(return_value=Path("/tmp/app.img"))
    return mock


@pytest.mark.asyncio
async def test_install_click_wait_complete(make_harness, platform, source, descriptor):
    """Click, wait, complete: one click, one pause, one unmount."""
    harness = make_harness([click(100, 200), wait(), complete()])
    manager = AppLifecycleManager(platform, harness.loop)

    result = await manager.ensure_installed(descriptor, source)

    assert result.outcome == LoopState.COMPLETED
    assert harness.driver.calls == [("click", (100, 200))]
    harness.sleep.assert_awaited_once()
    platform.mount.assert_awaited_once_with(Path("/tmp/app.img"))
    platform.unmount.assert_awaited_once_with("/Volumes/app")


@pytest.mark.asyncio
async def test_install_error_raises_session_error(make_harness, platform, source, descriptor):
    """An installer crash fails at attempt 1 and still releases the mount."""
    harness = make_harness([error("installer crashed")])
    manager = AppLifecycleManager(platform, harness.loop)

    with pytest.raises(SessionError) as exc_info:
        await manager.ensure_installed(descriptor, source)

    assert exc_info.value.outcome == "failed"
    assert exc_info.value.attempts == 1
    assert exc_info.value.reasoning == "installer crashed"
    platform.unmount.assert_awaited_once_with("/Volumes/app")


@pytest.mark.asyncio
async def test_install_exhausted_releases_once(make_harness, platform, source, descriptor):
    harness = make_harness([wait()], max_attempts=3)
    manager = AppLifecycleManager(platform, harness.loop)

    with pytest.raises(SessionError) as exc_info:
        await manager.ensure_installed(descriptor, source)

    assert exc_info.value.outcome == "exhausted"
    assert exc_info.value.attempts == 3
    platform.unmount.assert_awaited_once_with("/Volumes/app")


@pytest.mark.asyncio
async def test_unexpected_fault_releases_and_propagates(make_harness, platform, source, descriptor):
    """Faults the loop does not absorb still release the mount exactly once."""
    harness = make_harness([RuntimeError("engine exploded")])
    manager = AppLifecycleManager(platform, harness.loop)

    with pytest.raises(RuntimeError, match="engine exploded"):
        await manager.ensure_installed(descriptor, source)

    platform.unmount.assert_awaited_once_with("/Volumes/app")


@pytest.mark.asyncio
async def test_task_cancellation_releases_mount(make_harness, platform, source, descriptor):
    harness = make_harness([wait()])
    started = asyncio.Event()

    async def block_forever(seconds):
        started.set()
        await asyncio.Event().wait()

    harness.sleep.side_effect = block_forever
    manager = AppLifecycleManager(platform, harness.loop)

    task = asyncio.create_task(manager.ensure_installed(descriptor, source))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    platform.unmount.assert_awaited_once_with("/Volumes/app")


@pytest.mark.asyncio
async def test_cancel_event_fails_session_and_releases(make_harness, platform, source, descriptor):
    harness = make_harness([wait()])
    cancel_event = asyncio.Event()
    cancel_event.set()
    manager = AppLifecycleManager(platform, harness.loop)

    with pytest.raises(SessionError) as exc_info:
        await manager.ensure_installed(descriptor, source, cancel_event=cancel_event)

    assert exc_info.value.reasoning == "cancelled"
    assert exc_info.value.attempts == 0
    platform.unmount.assert_awaited_once()


@pytest.mark.asyncio
async def test_already_installed_skips_everything(make_harness, platform, source, descriptor):
    """Detection short-circuits acquisition, mount and the loop."""
    platform.is_installed.return_value = True
    harness = make_harness([complete()])
    manager = AppLifecycleManager(platform, harness.loop)

    result = await manager.ensure_installed(descriptor, source)

    assert result is None
    source.acquire.assert_not_awaited()
    platform.mount.assert_not_awaited()
    platform.unmount.assert_not_awaited()
    assert harness.engine.calls == 0
    assert harness.capture.captures == 0


@pytest.mark.asyncio
async def test_second_call_is_idempotent(make_harness, platform, source, descriptor):
    """Once installed, a repeated call performs no further work."""
    harness = make_harness([complete()])
    manager = AppLifecycleManager(platform, harness.loop)

    await manager.ensure_installed(descriptor, source)
    platform.is_installed.return_value = True
    again = await manager.ensure_installed(descriptor, source)

    assert again is None
    assert platform.mount.await_count == 1
    assert platform.unmount.await_count == 1
    assert harness.engine.calls == 1


@pytest.mark.asyncio
async def test_acquisition_failure_never_mounts(make_harness, platform, source, descriptor):
    source.acquire.side_effect = AcquisitionError("Artifact not found", bundle_id="com.example.App")
    harness = make_harness([complete()])
    manager = AppLifecycleManager(platform, harness.loop)

    with pytest.raises(AcquisitionError):
        await manager.ensure_installed(descriptor, source)

    platform.mount.assert_not_awaited()
    platform.unmount.assert_not_awaited()


@pytest.mark.asyncio
async def test_mount_timeout_raises_mount_error(make_harness, platform, source, descriptor):
    async def hang(artifact):
        await asyncio.sleep(1)

    platform.mount.side_effect = hang
    harness = make_harness([complete()])
    manager = AppLifecycleManager(platform, harness.loop, mount_timeout_seconds=0.01)

    with pytest.raises(MountError) as exc_info:
        await manager.ensure_installed(descriptor, source)

    assert exc_info.value.operation == "mount"
    assert harness.engine.calls == 0
    platform.unmount.assert_not_awaited()


@pytest.mark.asyncio
async def test_mount_finishing_after_deadline_is_released(make_harness, platform, source, descriptor):
    """A mount that completes after the timeout is still unmounted exactly once."""
    async def slow_mount(artifact):
        await asyncio.sleep(0.05)
        return "/Volumes/app"

    platform.mount.side_effect = slow_mount
    harness = make_harness([complete()])
    manager = AppLifecycleManager(platform, harness.loop, mount_timeout_seconds=0.01)

    with pytest.raises(MountError) as exc_info:
        await manager.ensure_installed(descriptor, source)

    assert exc_info.value.operation == "mount"
    platform.unmount.assert_awaited_once_with("/Volumes/app")
    assert harness.engine.calls == 0


@pytest.mark.asyncio
async def test_cancellation_during_mount_releases_late_mount(make_harness, platform, source, descriptor):
    mount_started = asyncio.Event()

    async def slow_mount(artifact):
        mount_started.set()
        await asyncio.sleep(0.05)
        return "/Volumes/app"

    platform.mount.side_effect = slow_mount
    manager = AppLifecycleManager(platform, make_harness([complete()]).loop)

    task = asyncio.create_task(manager.ensure_installed(descriptor, source))
    await mount_started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    platform.unmount.assert_awaited_once_with("/Volumes/app")


@pytest.mark.asyncio
async def test_detection_timeout_raises_platform_error(make_harness, platform, source, descriptor):
    async def hang(descriptor):
        await asyncio.sleep(1)

    platform.is_installed.side_effect = hang
    harness = make_harness([complete()])
    manager = AppLifecycleManager(platform, harness.loop, detection_timeout_seconds=0.01)

    with pytest.raises(PlatformError):
        await manager.ensure_installed(descriptor, source)

    source.acquire.assert_not_awaited()


@pytest.mark.asyncio
async def test_release_failure_raised_after_completed_session(make_harness, platform, source, descriptor):
    """With nothing else propagating, a release failure surfaces as MountError."""
    platform.unmount.side_effect = OSError("device busy")
    harness = make_harness([complete()])
    manager = AppLifecycleManager(platform, harness.loop)

    with pytest.raises(MountError) as exc_info:
        await manager.ensure_installed(descriptor, source)

    assert exc_info.value.operation == "unmount"
    assert exc_info.value.target == "/Volumes/app"
    platform.unmount.assert_awaited_once()


@pytest.mark.asyncio
async def test_release_failure_does_not_mask_loop_fault(make_harness, platform, source, descriptor):
    """The original fault wins over a failed release."""
    platform.unmount.side_effect = MountError("busy", target="/Volumes/app", operation="unmount")
    harness = make_harness([RuntimeError("engine exploded")])
    manager = AppLifecycleManager(platform, harness.loop)

    with pytest.raises(RuntimeError, match="engine exploded"):
        await manager.ensure_installed(descriptor, source)

    platform.unmount.assert_awaited_once()


@pytest.mark.asyncio
async def test_instruction_names_app_and_mount_point(make_harness, platform, source, descriptor):
    harness = make_harness([complete()])
    manager = AppLifecycleManager(platform, harness.loop)

    await manager.ensure_installed(descriptor, source)

    instruction = harness.engine.instructions[0]
    assert "Example" in instruction
    assert "com.example.App" in instruction
    assert "/Volumes/app" in instruction


@pytest.mark.asyncio
async def test_launch_delegates_to_platform(make_harness, platform, descriptor):
    manager = AppLifecycleManager(platform, make_harness([complete()]).loop)

    await manager.launch(descriptor)

    platform.launch.assert_awaited_once_with(descriptor)


def test_from_settings_reads_timeouts(platform):
    settings = SimpleNamespace(mount_timeout_seconds=42.0, detection_timeout_seconds=7.0)

    manager = AppLifecycleManager.from_settings(settings, platform=platform, control_loop=MagicMock())

    assert manager.mount_timeout_seconds == 42.0
    assert manager.detection_timeout_seconds == 7.0
