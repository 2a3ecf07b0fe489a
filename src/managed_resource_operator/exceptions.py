"""Error taxonomy shared by the engine and its collaborators."""

from __future__ import annotations


class ReconcileError(Exception):
    """Base class for every error the engine knows how to classify."""


class TransientBackendError(ReconcileError):
    """Network failure, rate limit or server error. Retried with backoff."""


class PreconditionUnmet(ReconcileError):
    """A dependency is not ready yet. Retried on a fixed interval, not a failure."""


class PersistentSpecError(ReconcileError):
    """The backend rejects the desired state as given.

    Retried with backoff forever and surfaced prominently so a human can fix the spec.
    """


class ConflictError(ReconcileError):
    """A persisted write lost an optimistic-concurrency race."""


class NotFoundOnDelete(ReconcileError):
    """The resource was already absent when deleting it. Counts as success."""


class PassCancelled(ReconcileError):
    """The pass context was cancelled or its deadline passed."""


class ObjectGoneError(ReconcileError):
    """The stored object disappeared while a write was being retried."""


class UnknownKindError(KeyError):
    """No resource kind with the requested name is registered."""
