"""
Security module exports.
"""

from installpilot.security.sanitizer import (
    DataSanitizer,
    RedactionMethod,
    SanitizationRule,
    SensitiveDataPattern,
    sanitize_dict,
    sanitize_string,
)

__all__ = [
    "DataSanitizer",
    "RedactionMethod",
    "SanitizationRule",
    "SensitiveDataPattern",
    "sanitize_dict",
    "sanitize_string",
]
