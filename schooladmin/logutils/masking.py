"""Masking of credentials and personal data in log output.

User accounts carry passwords and email addresses and parent records carry
phone numbers; none of those may reach a log file in clear text.
"""

from __future__ import annotations

import re
from typing import Any

MASK = "***MASKED***"

# key=value / "key": value pairs whose value is replaced by MASK
_KEYED_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r'(["\']?password["\']?\s*[:=]\s*)["\']?[^"\'\s,}\]]+["\']?', re.IGNORECASE),
    re.compile(r'(["\']?password[_-]?hash["\']?\s*[:=]\s*)["\']?[^"\'\s,}\]]+["\']?', re.IGNORECASE),
    re.compile(
        r'(["\']?(?:(?:auth|bearer|access)[_-]?)?token["\']?\s*[:=]\s*)["\']?[a-zA-Z0-9_\-\.]+["\']?',
        re.IGNORECASE,
    ),
    re.compile(r'(["\']?(?:client[_-]?)?secret["\']?\s*[:=]\s*)["\']?[a-zA-Z0-9_\-]+["\']?', re.IGNORECASE),
)

_URL_CREDENTIALS = re.compile(r"(https?://)[^:/\s]+:[^@\s]+(@)", re.IGNORECASE)
_EMAIL = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_PHONE = re.compile(r'(["\']?phone(?:_number)?["\']?\s*[:=]\s*["\']?)\+?[\d\s\-()]{6,}\d')

SENSITIVE_KEYWORDS: frozenset[str] = frozenset(
    {
        "password",
        "passwd",
        "pwd",
        "secret",
        "token",
        "api_key",
        "apikey",
        "credential",
        "private_key",
        "authorization",
        "phone",
    }
)


def _mask_email(match: re.Match[str]) -> str:
    local, domain = match.group(0).split("@", 1)
    return f"{local[:2]}***@{domain}"


def mask_sensitive_string(text: str) -> str:
    """Mask credentials, emails and phone numbers inside ``text``."""
    if not text:
        return text

    result = text
    for pattern in _KEYED_PATTERNS:
        result = pattern.sub(r"\g<1>" + MASK, result)
    result = _URL_CREDENTIALS.sub(r"\1" + MASK + r"\2", result)
    result = _PHONE.sub(r"\g<1>" + MASK, result)
    result = _EMAIL.sub(_mask_email, result)
    return result


def is_sensitive_key(key: str) -> bool:
    """True if a field name suggests its value must not be logged."""
    lower_key = key.lower()
    return any(keyword in lower_key for keyword in SENSITIVE_KEYWORDS)


def mask_dict(data: dict[str, Any], depth: int = 0, max_depth: int = 10) -> dict[str, Any]:
    """Recursively mask sensitive values in a dictionary.

    Args:
        data: Structured log data
        depth: Current recursion depth
        max_depth: Depth at which nested values are returned untouched

    Returns:
        A masked copy of ``data``
    """
    if depth >= max_depth:
        return data

    result: dict[str, Any] = {}
    for key, value in data.items():
        if is_sensitive_key(key):
            result[key] = MASK
        elif isinstance(value, dict):
            result[key] = mask_dict(value, depth + 1, max_depth)
        elif isinstance(value, list):
            result[key] = [
                mask_dict(item, depth + 1, max_depth) if isinstance(item, dict) else item
                for item in value
            ]
        elif isinstance(value, str):
            result[key] = mask_sensitive_string(value)
        else:
            result[key] = value
    return result


class SensitiveValue:
    """Wrapper that renders as MASK when formatted into a log message.

    Usage:
        logger.info("Creating user %s", SensitiveValue(password))
    """

    def __init__(self, value: Any) -> None:
        self._value = value

    def get(self) -> Any:
        return self._value

    def __str__(self) -> str:
        return MASK

    def __repr__(self) -> str:
        return f"SensitiveValue({MASK})"

    def __bool__(self) -> bool:
        return bool(self._value)
