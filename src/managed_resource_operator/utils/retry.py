"""Retry helpers for optimistic-concurrency writes."""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from ..exceptions import ConflictError

T = TypeVar("T")
S = TypeVar("S")

logger = logging.getLogger(__name__)


def retry_on_conflict(
    operation: Callable[[S], T],
    refresh: Callable[[], S],
    initial: S,
    attempts: int = 5,
    description: str = "write",
) -> T:
    """Run a single write, re-reading state and retrying it on conflict.

    Only the write itself is retried; there is no sleeping between attempts.

    Args:
        operation: Write to perform against the given state
        refresh: Re-reads the latest state after a conflict
        initial: State to use for the first attempt
        attempts: Maximum number of attempts
        description: Human-readable name of the write, for logs

    Returns:
        Result of the first successful attempt

    Raises:
        ConflictError: If every attempt conflicted
    """
    state = initial
    last_error: ConflictError | None = None
    for attempt in range(1, attempts + 1):
        try:
            return operation(state)
        except ConflictError as e:
            last_error = e
            logger.debug(f"Conflict on {description} (attempt {attempt}/{attempts}), re-reading")
            if attempt < attempts:
                state = refresh()
    raise ConflictError(f"{description} kept conflicting after {attempts} attempts") from last_error
