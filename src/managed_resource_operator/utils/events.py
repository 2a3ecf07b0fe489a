"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import kopf

from ..constants import (
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_TYPE_NORMAL,
    EVENT_TYPE_WARNING,
)
from ..models import ManagedObject
from .errors import sanitize_error_message, sanitize_exception

logger = logging.getLogger(__name__)


class EventRecorder(Protocol):
    """Append-only audit sink for human-visible notifications."""

    def record(self, obj: ManagedObject, type_: str, reason: str, message: str) -> None:
        ...


def emit_event(
    target: dict[str, Any],
    reason: str,
    message: str,
    type_: str = EVENT_TYPE_NORMAL,
) -> None:
    """Emit a Kubernetes event.

    Args:
        target: Object body (or reference) the event is attached to
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        target,
        reason=reason,
        message=sanitize_error_message(message),
        type=type_,
    )


class KopfEventRecorder:
    """Posts events for managed objects through kopf."""

    def record(self, obj: ManagedObject, type_: str, reason: str, message: str) -> None:
        emit_event(obj.reference(), reason, message, type_=type_)


def _record(recorder: EventRecorder, obj: ManagedObject, type_: str, reason: str, message: str) -> None:
    # A broken event sink must not abort the pass that records into it
    try:
        recorder.record(obj, type_, reason, message)
    except Exception as e:
        logger.warning(f"Failed to record {reason} event for {obj.identity}: {sanitize_exception(e)}")


def emit_reconcile_started(recorder: EventRecorder, obj: ManagedObject) -> None:
    """Record reconcile started event."""
    _record(recorder, obj, EVENT_TYPE_NORMAL, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_warning(recorder: EventRecorder, obj: ManagedObject, reason: str, message: str) -> None:
    """Record a Warning event."""
    _record(recorder, obj, EVENT_TYPE_WARNING, reason, message)


def emit_normal(recorder: EventRecorder, obj: ManagedObject, reason: str, message: str) -> None:
    """Record a Normal event."""
    _record(recorder, obj, EVENT_TYPE_NORMAL, reason, message)
