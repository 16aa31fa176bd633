"""Artifact acquisition sources."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Union

from installpilot.core.interfaces import AcquisitionSource
from installpilot.core.types import AppDescriptor
from installpilot.error_handling import AcquisitionError

logger = logging.getLogger(__name__)

INSTALLABLE_SUFFIXES = {".dmg", ".img", ".iso", ".pkg", ".appimage"}


class LocalArtifactSource(AcquisitionSource):
    """Serve artifacts that were downloaded ahead of time.

    Either a single artifact path for every descriptor, or a mapping keyed by
    bundle identifier.
    """

    def __init__(
        self,
        artifact: Optional[Union[str, Path]] = None,
        artifacts: Optional[Dict[str, Union[str, Path]]] = None,
    ) -> None:
        if artifact is None and not artifacts:
            raise ValueError("LocalArtifactSource needs an artifact path or a mapping")
        self.artifact = Path(artifact) if artifact is not None else None
        self.artifacts = {key: Path(value) for key, value in (artifacts or {}).items()}

    async def acquire(self, descriptor: AppDescriptor) -> Path:
        path = self.artifacts.get(descriptor.bundle_id, self.artifact)
        if path is None:
            raise AcquisitionError(
                f"No artifact registered for {descriptor.bundle_id}",
                bundle_id=descriptor.bundle_id,
            )
        if not path.is_file():
            raise AcquisitionError(
                f"Artifact not found: {path}",
                bundle_id=descriptor.bundle_id,
                details={"path": str(path)},
            )
        if path.suffix.lower() not in INSTALLABLE_SUFFIXES:
            logger.warning(
                "Artifact has an unexpected extension",
                extra={"path": str(path), "bundle_id": descriptor.bundle_id},
            )
        return path
