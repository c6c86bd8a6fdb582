"""Utility for redacting sensitive data from logs."""

import re
from typing import Any

REDACTED = "***REDACTED***"

_SENSITIVE_KEY_PARTS = ("password", "passwd", "secret", "token", "api_key", "apikey", "private")


def is_sensitive_key(key: str) -> bool:
    """
    Decide whether a setting key holds a credential.

    Matches the admin store's rule (any key containing KEY or SECRET) plus the
    usual password/token names.
    """
    upper = key.upper()
    if "KEY" in upper or "SECRET" in upper:
        return True
    lower = key.lower()
    return any(part in lower for part in _SENSITIVE_KEY_PARTS)


def mask_value(value: str | None, visible: int = 4) -> str:
    """Show only the first few characters of a credential ("sk_l...")."""
    if not value:
        return ""
    if len(value) <= visible:
        return REDACTED
    return f"{value[:visible]}..."


def redact_settings(data: dict[str, Any]) -> dict[str, Any]:
    """
    Redact sensitive values in a settings mapping for logging.

    Args:
        data: key -> value mapping

    Returns:
        Copy with credential values replaced by "***REDACTED***"
    """
    return {key: (REDACTED if is_sensitive_key(key) else value) for key, value in data.items()}


def redact_text(text: str) -> str:
    """
    Redact patterns in strings that look like secrets.

    Patterns redacted:
    - Bearer tokens: "Bearer abc123..." -> "Bearer ***REDACTED***"
    - Basic auth: "Basic abc123..." -> "Basic ***REDACTED***"
    - Stripe/Resend style keys: "sk_live_abc", "re_abc" -> "***REDACTED***"
    """
    text = re.sub(r"(Bearer\s+)[A-Za-z0-9_\-\.]+", rf"\1{REDACTED}", text, flags=re.IGNORECASE)
    text = re.sub(r"(Basic\s+)[A-Za-z0-9+/=]+", rf"\1{REDACTED}", text, flags=re.IGNORECASE)
    text = re.sub(r"\b(sk|pk|rk)_(live|test)_[A-Za-z0-9]+", REDACTED, text)
    text = re.sub(r"\bre_[A-Za-z0-9_]{8,}", REDACTED, text)
    return text
