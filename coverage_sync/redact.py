"""Redaction module to mask secrets in logs."""
import re
from typing import Any, Dict

SECRET_KEYS = ("access_token", "refresh_token", "client_secret", "client_id", "authorization")

_PATTERNS = [
    (r'(access_token|refresh_token|client_secret)["\']?\s*[:=]\s*["\']([^"\']+)["\']', r'\1 = "[REDACTED]"'),
    (r'Bearer\s+[A-Za-z0-9._\-]+', "Bearer [REDACTED]"),
    (r'Basic\s+[A-Za-z0-9+/=]+', "Basic [REDACTED]"),
]


def redact_string(text: str) -> str:
    """Redact secrets from a string."""
    if not text:
        return text
    result = text
    for pattern, replacement in _PATTERNS:
        result = re.sub(pattern, replacement, result, flags=re.IGNORECASE)
    return result


def redact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively redact secrets from a dictionary."""
    redacted = {}
    for key, value in data.items():
        if str(key).lower() in SECRET_KEYS:
            redacted[key] = "[REDACTED]"
        else:
            redacted[key] = redact_json(value)
    return redacted


def redact_json(data: Any) -> Any:
    """Redact secrets from JSON-serializable data."""
    if isinstance(data, dict):
        return redact_dict(data)
    elif isinstance(data, list):
        return [redact_json(item) for item in data]
    elif isinstance(data, str):
        return redact_string(data)
    else:
        return data
