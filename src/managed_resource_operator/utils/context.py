"""Pass context and correlation ID propagation."""

from __future__ import annotations

import contextvars
import threading
import time
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

from ..exceptions import PassCancelled

# Context variable for storing correlation ID
correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


def set_correlation_id(corr_id: str) -> None:
    """Set the correlation ID in the current context."""
    correlation_id.set(corr_id)


def get_correlation_id() -> str | None:
    """Get the correlation ID from the current context."""
    return correlation_id.get()


@contextmanager
def with_correlation_id(corr_id: str) -> Iterator[str]:
    """Context manager to set a correlation ID for the duration of a block.

    Args:
        corr_id: Correlation ID to use

    Yields:
        The correlation ID
    """
    token = correlation_id.set(corr_id)
    try:
        yield corr_id
    finally:
        correlation_id.reset(token)


def get_context_dict(additional: dict[str, Any] | None = None) -> dict[str, Any]:
    """Get a dictionary of context values.

    Args:
        additional: Additional key-value pairs to include

    Returns:
        Dictionary with context values including correlation_id
    """
    ctx = {}

    corr_id = get_correlation_id()
    if corr_id:
        ctx["correlation_id"] = corr_id

    if additional:
        ctx.update(additional)

    return ctx


class PassContext:
    """Cancellable, deadline-bound context handed to every collaborator call.

    Adapters should pass ``remaining()`` on as their request timeout and call
    ``check()`` between long-running steps.
    """

    def __init__(
        self,
        deadline: float | None = None,
        cancel_event: threading.Event | None = None,
        corr_id: str | None = None,
    ):
        self.deadline = deadline
        self._cancel_event = cancel_event or threading.Event()
        self.correlation_id = corr_id or uuid.uuid4().hex

    @classmethod
    def with_timeout(
        cls,
        seconds: float | None,
        cancel_event: threading.Event | None = None,
    ) -> "PassContext":
        deadline = None if seconds is None else time.monotonic() + seconds
        return cls(deadline=deadline, cancel_event=cancel_event)

    def cancel(self) -> None:
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when unbounded."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """Raise if the pass must stop.

        Raises:
            PassCancelled: If cancelled or past the deadline
        """
        if self.cancelled:
            raise PassCancelled("reconciliation pass was cancelled")
        if self.expired:
            raise PassCancelled("reconciliation pass exceeded its deadline")
