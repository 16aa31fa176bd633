"""
Operating-system primitives for detecting, mounting and launching applications.

macOS uses hdiutil, Spotlight (mdfind) and LaunchServices (open -b). Linux uses
udisksctl loop devices, XDG desktop entries and gtk-launch.
"""

from __future__ import annotations

import asyncio
import logging
import os
import plistlib
import re
import subprocess
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence
from xml.parsers.expat import ExpatError

from installpilot.core.interfaces import AppPlatform
from installpilot.core.types import AppDescriptor
from installpilot.error_handling import MountError, PlatformError

logger = logging.getLogger(__name__)

_LOOP_DEVICE_RE = re.compile(r"(/dev/loop\d+)")
_MOUNTED_AT_RE = re.compile(r"Mounted \S+ at (.+?)\.?$", re.MULTILINE)
# Bundle identifiers are reverse-DNS strings; anything else could break out of
# the quoted Spotlight query.
_BUNDLE_ID_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]*")


class SystemPlatform(AppPlatform):
    """AppPlatform backed by the host operating system's command-line tools."""

    def __init__(
        self,
        system: Optional[str] = None,
        command_timeout: float = 120.0,
        data_dirs: Optional[Sequence[Path]] = None,
    ) -> None:
        self.system = system or sys.platform
        if self.system not in ("darwin", "linux"):
            raise PlatformError(f"Unsupported platform: {self.system}")
        self.command_timeout = command_timeout
        self._data_dirs = list(data_dirs) if data_dirs is not None else None
        # Loop devices created for Linux mounts, keyed by mount point.
        self._loop_devices: Dict[str, str] = {}

    @property
    def is_macos(self) -> bool:
        return self.system == "darwin"

    async def is_installed(self, descriptor: AppDescriptor) -> bool:
        if self.is_macos:
            if not _BUNDLE_ID_RE.fullmatch(descriptor.bundle_id):
                raise PlatformError(f"Invalid bundle identifier: {descriptor.bundle_id!r}")
            query = f"kMDItemCFBundleIdentifier == '{descriptor.bundle_id}'"
            result = await self._run(["mdfind", query])
            if result.returncode != 0:
                logger.warning(
                    "Spotlight query failed; treating application as absent",
                    extra={"bundle_id": descriptor.bundle_id, "stderr": result.stderr.strip()},
                )
                return False
            installed = bool(result.stdout.strip())
        else:
            installed = self._find_desktop_entry(descriptor.bundle_id) is not None

        logger.debug(
            "Installation detection finished",
            extra={"bundle_id": descriptor.bundle_id, "installed": installed},
        )
        return installed

    async def launch(self, descriptor: AppDescriptor) -> None:
        if self.is_macos:
            command = ["open", "-b", descriptor.bundle_id]
        else:
            command = ["gtk-launch", descriptor.bundle_id]

        result = await self._run(command)
        if result.returncode != 0:
            raise PlatformError(
                f"Failed to launch {descriptor.display_name}: {result.stderr.strip()}",
                command=" ".join(command),
            )
        logger.info("Application launched", extra={"bundle_id": descriptor.bundle_id})

    async def mount(self, artifact: Path) -> str:
        if self.is_macos:
            mount_point = await self._mount_macos(artifact)
        else:
            mount_point = await self._mount_linux(artifact)
        logger.info(
            "Artifact mounted",
            extra={"artifact": str(artifact), "mount_point": mount_point},
        )
        return mount_point

    async def unmount(self, mount_point: str) -> None:
        if not os.path.ismount(mount_point):
            logger.debug("Mount point already released", extra={"mount_point": mount_point})
            await self._delete_loop_device(mount_point)
            return

        if self.is_macos:
            command = ["hdiutil", "detach", mount_point]
        elif mount_point in self._loop_devices:
            command = [
                "udisksctl", "unmount", "--no-user-interaction",
                "-b", self._loop_devices[mount_point],
            ]
        else:
            command = ["umount", mount_point]

        result = await self._run(command, operation="unmount", target=mount_point)
        if result.returncode != 0 and os.path.ismount(mount_point):
            raise MountError(
                f"Failed to unmount {mount_point}: {result.stderr.strip()}",
                target=mount_point,
                operation="unmount",
            )
        await self._delete_loop_device(mount_point)
        logger.info("Artifact unmounted", extra={"mount_point": mount_point})

    async def _mount_macos(self, artifact: Path) -> str:
        command = ["hdiutil", "attach", "-nobrowse", "-noverify", "-plist", str(artifact)]
        result = await self._run(command, operation="mount", target=str(artifact))
        if result.returncode != 0:
            raise MountError(
                f"hdiutil attach failed: {result.stderr.strip()}",
                target=str(artifact),
            )
        mount_point = self.parse_hdiutil_mount_point(result.stdout)
        if mount_point is None:
            raise MountError(
                "hdiutil attach reported no mount point",
                target=str(artifact),
            )
        return mount_point

    async def _mount_linux(self, artifact: Path) -> str:
        setup = await self._run(
            ["udisksctl", "loop-setup", "--no-user-interaction", "-r", "-f", str(artifact)],
            operation="mount",
            target=str(artifact),
        )
        match = _LOOP_DEVICE_RE.search(setup.stdout)
        if setup.returncode != 0 or match is None:
            raise MountError(
                f"udisksctl loop-setup failed: {setup.stderr.strip() or setup.stdout.strip()}",
                target=str(artifact),
            )
        loop_device = match.group(1)

        # Partitioned images expose their filesystem on the first partition.
        last_error = ""
        for block_device in (loop_device, f"{loop_device}p1"):
            result = await self._run(
                ["udisksctl", "mount", "--no-user-interaction", "-b", block_device],
                operation="mount",
                target=str(artifact),
            )
            mounted = _MOUNTED_AT_RE.search(result.stdout)
            if result.returncode == 0 and mounted is not None:
                mount_point = mounted.group(1).strip()
                self._loop_devices[mount_point] = loop_device
                return mount_point
            last_error = result.stderr.strip()

        await self._run(["udisksctl", "loop-delete", "--no-user-interaction", "-b", loop_device])
        raise MountError(
            f"udisksctl mount failed: {last_error}",
            target=str(artifact),
        )

    async def _delete_loop_device(self, mount_point: str) -> None:
        loop_device = self._loop_devices.pop(mount_point, None)
        if loop_device is None:
            return
        result = await self._run(
            ["udisksctl", "loop-delete", "--no-user-interaction", "-b", loop_device],
            operation="unmount",
            target=mount_point,
        )
        if result.returncode != 0:
            logger.warning(
                "Failed to delete loop device",
                extra={"loop_device": loop_device, "stderr": result.stderr.strip()},
            )

    @staticmethod
    def parse_hdiutil_mount_point(output: str) -> Optional[str]:
        """Extract the first mount point from `hdiutil attach -plist` output."""
        try:
            payload = plistlib.loads(output.encode("utf-8"))
        except (plistlib.InvalidFileException, ExpatError, ValueError):
            return None
        for entity in payload.get("system-entities", []):
            mount_point = entity.get("mount-point")
            if mount_point:
                return mount_point
        return None

    def _find_desktop_entry(self, bundle_id: str) -> Optional[Path]:
        for data_dir in self._application_dirs():
            candidate = data_dir / "applications" / f"{bundle_id}.desktop"
            if candidate.is_file():
                return candidate
        return None

    def _application_dirs(self) -> List[Path]:
        if self._data_dirs is not None:
            return self._data_dirs
        data_home = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
        data_dirs = os.environ.get("XDG_DATA_DIRS") or "/usr/local/share:/usr/share"
        dirs = [Path(data_home)]
        dirs.extend(Path(entry) for entry in data_dirs.split(":") if entry)
        return dirs

    async def _run(
        self,
        command: List[str],
        operation: Optional[str] = None,
        target: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        """Run a command in a worker thread.

        Timeouts on mount and unmount commands surface as MountError; every
        other timeout or a missing binary is a PlatformError.
        """
        logger.debug("Running platform command", extra={"command": command})
        try:
            return await asyncio.to_thread(
                subprocess.run,
                command,
                capture_output=True,
                text=True,
                timeout=self.command_timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            message = f"{command[0]} timed out after {self.command_timeout}s"
            if operation is not None:
                raise MountError(message, target=target, operation=operation, cause=exc) from exc
            raise PlatformError(message, command=" ".join(command), cause=exc) from exc
        except OSError as exc:
            raise PlatformError(
                f"Failed to run {command[0]}: {exc}",
                command=" ".join(command),
                cause=exc,
            ) from exc
