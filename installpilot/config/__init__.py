"""
Configuration module exports.
"""

from installpilot.config.settings import AgentModelConfig, Settings, get_settings

__all__ = [
    "AgentModelConfig",
    "Settings",
    "get_settings",
]
