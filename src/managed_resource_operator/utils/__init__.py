"""Utility functions for the Managed Resource Operator."""

from .backoff import ExponentialBackoff
from .conditions import (
    clear_error_condition,
    find_condition,
    is_condition_true,
    set_condition,
    set_error_condition,
    set_ready_condition,
)
from .context import (
    PassContext,
    get_context_dict,
    get_correlation_id,
    set_correlation_id,
    with_correlation_id,
)
from .errors import classify_error, sanitize_error_message, sanitize_exception
from .events import EventRecorder, KopfEventRecorder, emit_event
from .retry import retry_on_conflict
from .secrets import KubernetesSecretStore, SecretStore, SecretSynchronizer, StoredSecret

__all__ = [
    "set_condition",
    "find_condition",
    "is_condition_true",
    "set_ready_condition",
    "set_error_condition",
    "clear_error_condition",
    "PassContext",
    "set_correlation_id",
    "get_correlation_id",
    "with_correlation_id",
    "get_context_dict",
    "classify_error",
    "sanitize_error_message",
    "sanitize_exception",
    "EventRecorder",
    "KopfEventRecorder",
    "emit_event",
    "ExponentialBackoff",
    "retry_on_conflict",
    "KubernetesSecretStore",
    "SecretStore",
    "SecretSynchronizer",
    "StoredSecret",
]
