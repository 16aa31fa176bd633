"""
Data sanitization for sensitive information protection.

Typed text can hold passwords or licence keys the model was asked to enter,
so log records redact it along with API credentials.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Pattern

logger = logging.getLogger(__name__)


class RedactionMethod(Enum):
    """Methods for redacting sensitive data."""
    MASK = auto()          # Replace with asterisks
    PARTIAL = auto()       # Show first/last few chars
    PLACEHOLDER = auto()   # Replace with placeholder text


@dataclass
class SensitiveDataPattern:
    """Pattern for identifying sensitive data."""

    name: str
    pattern: Pattern[str]
    redaction_method: RedactionMethod = RedactionMethod.PLACEHOLDER
    placeholder: str = "[REDACTED]"
    partial_chars: int = 3
    enabled: bool = True

    def matches(self, text: str) -> List[re.Match]:
        """Find all matches in text."""
        if not self.enabled:
            return []
        return list(self.pattern.finditer(text))


@dataclass
class SanitizationRule:
    """Redact whole values stored under matching keys."""

    name: str
    apply_to_keys: List[str] = field(default_factory=list)
    placeholder: str = "[REDACTED]"
    enabled: bool = True

    def applies_to(self, key: Optional[str]) -> bool:
        if not self.enabled or not key:
            return False
        return key.lower() in {k.lower() for k in self.apply_to_keys}


class DataSanitizer:
    """Redacts secrets from strings, dictionaries and log records."""

    def __init__(self):
        self.patterns: List[SensitiveDataPattern] = []
        self.rules: List[SanitizationRule] = []
        self._setup_default_patterns()
        self._setup_default_rules()

    def _setup_default_patterns(self) -> None:
        self.patterns.extend([
            SensitiveDataPattern(
                name="openai_key",
                pattern=re.compile(r'\bsk-[A-Za-z0-9_\-]{16,}\b'),
            ),
            SensitiveDataPattern(
                name="api_key_prefix",
                pattern=re.compile(
                    r'(api[_-]?key|apikey|api_secret|access[_-]?token)\s*[:=]\s*["\']?([^"\'\s]+)["\']?',
                    re.IGNORECASE,
                ),
            ),
            SensitiveDataPattern(
                name="bearer_token",
                pattern=re.compile(r'Bearer\s+[A-Za-z0-9\-._~+/]+=*', re.IGNORECASE),
            ),
            SensitiveDataPattern(
                name="email",
                pattern=re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'),
                redaction_method=RedactionMethod.PARTIAL,
            ),
        ])

    def _setup_default_rules(self) -> None:
        self.rules.extend([
            SanitizationRule(
                name="credentials",
                apply_to_keys=["password", "api_key", "openai_api_key", "token", "secret"],
            ),
            SanitizationRule(
                name="typed_text",
                apply_to_keys=["text", "typed_text"],
                placeholder="[TYPED TEXT]",
            ),
        ])

    def add_pattern(self, pattern: SensitiveDataPattern) -> None:
        self.patterns.append(pattern)

    def add_rule(self, rule: SanitizationRule) -> None:
        self.rules.append(rule)

    def sanitize_string(self, text: str) -> str:
        """Apply every enabled pattern to a string."""
        if not text:
            return text

        result = text
        for pattern in self.patterns:
            # Replace from the end so earlier match offsets stay valid.
            for match in reversed(pattern.matches(result)):
                replacement = self._apply_redaction(match.group(0), pattern)
                result = result[:match.start()] + replacement + result[match.end():]
        return result

    def _apply_redaction(self, value: str, pattern: SensitiveDataPattern) -> str:
        if pattern.redaction_method == RedactionMethod.MASK:
            return "*" * len(value)
        if pattern.redaction_method == RedactionMethod.PARTIAL:
            keep = pattern.partial_chars
            if len(value) <= keep * 2:
                return "*" * len(value)
            return value[:keep] + "*" * (len(value) - keep * 2) + value[-keep:]
        return pattern.placeholder

    def sanitize_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Return a sanitized copy of a nested dictionary."""

        def _sanitize_value(value: Any, key: Optional[str] = None) -> Any:
            for rule in self.rules:
                if rule.applies_to(key) and value is not None:
                    return rule.placeholder
            if isinstance(value, str):
                return self.sanitize_string(value)
            if isinstance(value, dict):
                return {k: _sanitize_value(v, k) for k, v in value.items()}
            if isinstance(value, (list, tuple)):
                return type(value)(_sanitize_value(item) for item in value)
            return value

        return {key: _sanitize_value(value, key) for key, value in data.items()}

    def sanitize_log_record(self, record: logging.LogRecord) -> logging.LogRecord:
        """Sanitize the message and extra attributes of a log record in place."""
        record.msg = self.sanitize_string(record.getMessage())
        record.args = ()

        for key, value in list(record.__dict__.items()):
            if key in _STANDARD_RECORD_ATTRS:
                continue
            for rule in self.rules:
                if rule.applies_to(key) and value is not None:
                    setattr(record, key, rule.placeholder)
                    break
            else:
                if isinstance(value, str):
                    setattr(record, key, self.sanitize_string(value))
                elif isinstance(value, dict):
                    setattr(record, key, self.sanitize_dict(value))
        return record


_STANDARD_RECORD_ATTRS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "taskName"}


_default_sanitizer: Optional[DataSanitizer] = None


def _get_default_sanitizer() -> DataSanitizer:
    global _default_sanitizer
    if _default_sanitizer is None:
        _default_sanitizer = DataSanitizer()
    return _default_sanitizer


def sanitize_string(text: str) -> str:
    """Sanitize a string with the default sanitizer."""
    return _get_default_sanitizer().sanitize_string(text)


def sanitize_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Sanitize a dictionary with the default sanitizer."""
    return _get_default_sanitizer().sanitize_dict(data)
