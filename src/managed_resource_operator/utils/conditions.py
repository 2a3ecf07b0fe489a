"""Utilities for managing Kubernetes conditions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import (
    COND_ERROR,
    COND_READY,
    REASON_READY,
    REASON_RECONCILED,
)


def set_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Update or add a condition to the conditions list.

    Conditions are keyed by type. Other types are left untouched.

    Args:
        conditions: List of existing conditions
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message
        observed_generation: Generation when condition was observed

    Returns:
        Updated list of conditions
    """
    now = datetime.now(timezone.utc).isoformat()

    existing_idx = None
    for idx, cond in enumerate(conditions):
        if cond.get("type") == condition_type:
            existing_idx = idx
            break

    new_condition = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now,
    }

    if observed_generation is not None:
        new_condition["observedGeneration"] = observed_generation

    if existing_idx is not None:
        existing = conditions[existing_idx]
        # Only update lastTransitionTime if status changed
        if existing.get("status") == status:
            new_condition["lastTransitionTime"] = existing.get("lastTransitionTime", now)
        conditions[existing_idx] = new_condition
    else:
        conditions.append(new_condition)

    return conditions


def find_condition(conditions: list[dict[str, Any]], condition_type: str) -> dict[str, Any] | None:
    """Return the condition of the given type, if any."""
    for cond in conditions:
        if cond.get("type") == condition_type:
            return cond
    return None


def is_condition_true(conditions: list[dict[str, Any]], condition_type: str) -> bool:
    cond = find_condition(conditions, condition_type)
    return cond is not None and cond.get("status") == "True"


def set_ready_condition(
    conditions: list[dict[str, Any]],
    status: bool,
    message: str,
    reason: str | None = None,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the Ready condition."""
    return set_condition(
        conditions,
        COND_READY,
        "True" if status else "False",
        reason or (REASON_READY if status else "NotReady"),
        message,
        observed_generation,
    )


def set_error_condition(
    conditions: list[dict[str, Any]],
    phase: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the Error condition for a failing phase.

    Args:
        conditions: List of existing conditions
        phase: Failing phase, used as the reason (e.g. "CreateOrUpdate")
        message: Sanitized error message
        observed_generation: Generation when the error was observed
    """
    return set_condition(conditions, COND_ERROR, "True", phase, message, observed_generation)


def clear_error_condition(
    conditions: list[dict[str, Any]],
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Flip an existing Error condition to False. Does nothing if absent."""
    if find_condition(conditions, COND_ERROR) is None:
        return conditions
    return set_condition(
        conditions,
        COND_ERROR,
        "False",
        REASON_RECONCILED,
        "Reconciliation succeeded",
        observed_generation,
    )
