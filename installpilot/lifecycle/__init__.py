"""Application lifecycle management."""

from .acquisition import LocalArtifactSource
from .manager import AppLifecycleManager
from .platform import SystemPlatform

__all__ = [
    "AppLifecycleManager",
    "LocalArtifactSource",
    "SystemPlatform",
]
