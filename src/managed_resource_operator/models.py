"""Value types passed between the engine and its collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .constants import (
    ANNOTATION_DELETION_POLICY,
    SPEC_SECRET_DISABLED,
    SPEC_SECRET_TARGET,
    STATUS_CONDITIONS,
)


@dataclass(frozen=True)
class ObjectIdentity:
    """Stable key of a desired-state object."""

    kind: str
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.kind}/{self.namespace}/{self.name}"


@dataclass
class ManagedObject:
    """Parsed view of one custom resource as read from the object store."""

    identity: ObjectIdentity
    api_version: str = ""
    uid: str = ""
    generation: int = 0
    resource_version: str | None = None
    spec: dict[str, Any] = field(default_factory=dict)
    status: dict[str, Any] = field(default_factory=dict)
    finalizers: list[str] = field(default_factory=list)
    annotations: dict[str, str] = field(default_factory=dict)
    deletion_timestamp: str | None = None
    body: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_body(cls, kind: str, body: dict[str, Any]) -> "ManagedObject":
        """Build a managed object from a raw Kubernetes object.

        Args:
            kind: Registered kind name
            body: Object as returned by the API server

        Returns:
            Parsed managed object
        """
        meta = body.get("metadata") or {}
        identity = ObjectIdentity(
            kind=kind,
            namespace=meta.get("namespace", "default"),
            name=meta.get("name", ""),
        )
        return cls(
            identity=identity,
            api_version=body.get("apiVersion", ""),
            uid=meta.get("uid", ""),
            generation=meta.get("generation", 0) or 0,
            resource_version=meta.get("resourceVersion"),
            spec=dict(body.get("spec") or {}),
            status=dict(body.get("status") or {}),
            finalizers=list(meta.get("finalizers") or []),
            annotations=dict(meta.get("annotations") or {}),
            deletion_timestamp=meta.get("deletionTimestamp"),
            body=body,
        )

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def namespace(self) -> str:
        return self.identity.namespace

    @property
    def kind(self) -> str:
        return self.identity.kind

    @property
    def marked_for_deletion(self) -> bool:
        return self.deletion_timestamp is not None

    def has_finalizer(self, finalizer: str) -> bool:
        return finalizer in self.finalizers

    @property
    def conditions(self) -> list[dict[str, Any]]:
        return list(self.status.get(STATUS_CONDITIONS) or [])

    @property
    def secret_disabled(self) -> bool:
        """Whether the object opted out of a connection secret."""
        return bool(self.spec.get(SPEC_SECRET_DISABLED, False))

    @property
    def secret_target_name(self) -> str:
        target = self.spec.get(SPEC_SECRET_TARGET) or {}
        return target.get("name") or self.name

    @property
    def secret_prefix(self) -> str | None:
        target = self.spec.get(SPEC_SECRET_TARGET) or {}
        return target.get("prefix")

    @property
    def deletion_policy(self) -> str | None:
        return self.annotations.get(ANNOTATION_DELETION_POLICY)

    def reference(self) -> dict[str, Any]:
        """Return a minimal object body usable as an event target."""
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                "uid": self.uid,
            },
        }

    def owner_reference(self) -> dict[str, Any]:
        """Return a controller owner reference pointing at this object."""
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }


@dataclass
class Observation:
    """Point-in-time comparison of backend reality against desired state.

    Never persisted; recomputed on every pass.
    """

    resource_exists: bool = False
    # Only meaningful when resource_exists
    resource_up_to_date: bool = False
    resource_ready: bool = False
    is_powered_off: bool = False
    preconditions_met: bool = True
    # Present iff not preconditions_met
    precondition_error: str | Exception | None = None
    # Only meaningful when resource_ready; keys carry no prefix
    secret_details: dict[str, bytes] = field(default_factory=dict)
    # Merged into status
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def precondition_message(self) -> str:
        if self.precondition_error is None:
            return "preconditions are not met"
        return str(self.precondition_error) or "preconditions are not met"


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass.

    ``requeue_after`` is ``None`` when no follow-up pass is needed, ``0`` for an
    immediate retry, or a delay in seconds. ``reason`` names why the pass asked
    to run again (``"resync"`` once converged).
    """

    requeue_after: float | None = None
    error: Exception | None = None
    reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None
