"""Error classification and sanitization utilities."""

from __future__ import annotations

import re
from typing import Any

from kubernetes.client.exceptions import ApiException

from ..exceptions import (
    ConflictError,
    NotFoundOnDelete,
    PassCancelled,
    PersistentSpecError,
    PreconditionUnmet,
    ReconcileError,
    TransientBackendError,
)

# Most specific first
TAXONOMY: tuple[type[ReconcileError], ...] = (
    PassCancelled,
    ConflictError,
    NotFoundOnDelete,
    PreconditionUnmet,
    PersistentSpecError,
    TransientBackendError,
)

# API statuses meaning the request itself is wrong
PERSISTENT_API_STATUSES = {400, 403, 422}

# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"authorization[:\s]+(?:bearer\s+)?([A-Za-z0-9\-\._~\+/=]+)",
    r"api[_\s]?token[:\s]+([A-Za-z0-9\-\._~\+/=]+)",
    r"://([^:/\s]+):([^@/\s]+)@",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "password",
    "secret",
    "credentials",
    "token",
    "access_key",
    "private_key",
}


def classify_error(error: BaseException) -> type[ReconcileError]:
    """Map an exception onto the engine's error taxonomy.

    Args:
        error: Exception raised by a collaborator

    Returns:
        One of the taxonomy classes; unknown errors are transient
    """
    if isinstance(error, ReconcileError):
        for category in TAXONOMY:
            if isinstance(error, category):
                return category
        return TransientBackendError

    if isinstance(error, ApiException):
        if error.status == 409:
            return ConflictError
        if error.status in PERSISTENT_API_STATUSES:
            return PersistentSpecError
        return TransientBackendError

    return TransientBackendError


def translate_api_exception(error: ApiException) -> ReconcileError:
    """Wrap a Kubernetes API error in the matching taxonomy error."""
    category = classify_error(error)
    translated = category(f"Kubernetes API error {error.status}: {error.reason}")
    translated.__cause__ = error
    return translated


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(
            pattern,
            lambda m: m.group(0).replace(m.group(m.lastindex), "[REDACTED]"),
            sanitized,
            flags=re.IGNORECASE,
        )

    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"{field}\s*[:=]\s*([^\s,;\)]+)",
            rf"{field}: [REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: BaseException) -> str:
    """Sanitize exception message.

    Falls back to the exception type name when the message is empty.
    """
    error_msg = str(error) or type(error).__name__
    return sanitize_error_message(error_msg)


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Sanitize dictionary by redacting sensitive fields.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Additional keys to redact (merged with SENSITIVE_FIELDS)

    Returns:
        Sanitized dictionary with sensitive values redacted
    """
    if sensitive_keys is None:
        sensitive_keys = set()

    all_sensitive = SENSITIVE_FIELDS | sensitive_keys
    sanitized = {}

    for key, value in data.items():
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in all_sensitive):
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, sensitive_keys)
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        else:
            sanitized[key] = value

    return sanitized
