"""Shared fixtures and in-memory fakes for unit tests."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from managed_resource_operator.config import OperatorConfig
from managed_resource_operator.constants import FINALIZER
from managed_resource_operator.exceptions import ConflictError, ObjectGoneError
from managed_resource_operator.handlers.reconciler import Reconciler
from managed_resource_operator.models import ManagedObject, ObjectIdentity, Observation
from managed_resource_operator.registry import KindRegistry, ResourceKind
from managed_resource_operator.utils.backoff import ExponentialBackoff
from managed_resource_operator.utils.secrets import SecretSynchronizer, StoredSecret

KIND = "Widget"
GROUP = "example.io"
VERSION = "v1"
PLURAL = "widgets"


def make_body(
    name: str = "w1",
    namespace: str = "default",
    generation: int = 1,
    spec: dict[str, Any] | None = None,
    status: dict[str, Any] | None = None,
    finalizers: list[str] | None = None,
    annotations: dict[str, str] | None = None,
    deletion_timestamp: str | None = None,
) -> dict[str, Any]:
    """Build a raw custom resource body."""
    metadata: dict[str, Any] = {
        "name": name,
        "namespace": namespace,
        "uid": f"uid-{name}",
        "generation": generation,
        "resourceVersion": "1",
        "finalizers": list(finalizers or []),
        "annotations": dict(annotations or {}),
    }
    if deletion_timestamp is not None:
        metadata["deletionTimestamp"] = deletion_timestamp
    return {
        "apiVersion": f"{GROUP}/{VERSION}",
        "kind": KIND,
        "metadata": metadata,
        "spec": dict(spec or {}),
        "status": dict(status or {}),
    }


class FakeAdapter:
    """Backend adapter returning scripted observations and recording calls."""

    def __init__(self) -> None:
        self.observations: list[Observation] = []
        self.default_observation = Observation()
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []

    def _maybe_fail(self, operation: str) -> None:
        self.calls.append(operation)
        error = self.errors.get(operation)
        if error is not None:
            raise error

    def observe(self, ctx, obj):
        self._maybe_fail("observe")
        if self.observations:
            return self.observations.pop(0)
        return self.default_observation

    def create(self, ctx, obj):
        self._maybe_fail("create")

    def update(self, ctx, obj):
        self._maybe_fail("update")

    def delete(self, ctx, obj):
        self._maybe_fail("delete")

    def count(self, operation: str) -> int:
        return self.calls.count(operation)

    @property
    def mutations(self) -> list[str]:
        return [c for c in self.calls if c in ("create", "update", "delete")]


class FakeAccessor:
    """In-memory object store with resource versions and conflict injection."""

    def __init__(self) -> None:
        self.bodies: dict[ObjectIdentity, dict[str, Any]] = {}
        self.status_writes: list[dict[str, Any]] = []
        self.finalizer_writes: list[list[str]] = []
        self.conflicts: dict[str, int] = {}
        self.errors: dict[str, Exception] = {}

    def put(self, body: dict[str, Any], kind: str = KIND) -> ObjectIdentity:
        meta = body["metadata"]
        identity = ObjectIdentity(kind, meta["namespace"], meta["name"])
        self.bodies[identity] = copy.deepcopy(body)
        return identity

    def body(self, identity: ObjectIdentity) -> dict[str, Any]:
        return self.bodies[identity]

    def _check(self, operation: str) -> None:
        if operation in self.errors:
            raise self.errors[operation]
        if self.conflicts.get(operation, 0) > 0:
            self.conflicts[operation] -= 1
            raise ConflictError(f"conflict on {operation}")

    def _bump(self, body: dict[str, Any]) -> None:
        meta = body["metadata"]
        meta["resourceVersion"] = str(int(meta.get("resourceVersion", "0")) + 1)

    def get(self, identity: ObjectIdentity) -> ManagedObject | None:
        self._check("get")
        body = self.bodies.get(identity)
        if body is None:
            return None
        return ManagedObject.from_body(identity.kind, copy.deepcopy(body))

    def update_status(self, obj: ManagedObject, status: dict[str, Any]) -> ManagedObject | None:
        self._check("update_status")
        body = self.bodies.get(obj.identity)
        if body is None:
            return None
        body["status"] = copy.deepcopy(status)
        self._bump(body)
        self.status_writes.append(copy.deepcopy(status))
        return ManagedObject.from_body(obj.kind, copy.deepcopy(body))

    def add_finalizer(self, obj: ManagedObject, finalizer: str) -> ManagedObject:
        self._check("add_finalizer")
        body = self.bodies.get(obj.identity)
        if body is None:
            raise ObjectGoneError(str(obj.identity))
        finalizers = body["metadata"].setdefault("finalizers", [])
        if finalizer not in finalizers:
            finalizers.append(finalizer)
            self._bump(body)
            self.finalizer_writes.append(list(finalizers))
        return ManagedObject.from_body(obj.kind, copy.deepcopy(body))

    def remove_finalizer(self, obj: ManagedObject, finalizer: str) -> ManagedObject | None:
        self._check("remove_finalizer")
        body = self.bodies.get(obj.identity)
        if body is None:
            return None
        finalizers = [f for f in body["metadata"].get("finalizers", []) if f != finalizer]
        body["metadata"]["finalizers"] = finalizers
        self._bump(body)
        self.finalizer_writes.append(list(finalizers))
        # The store removes objects marked for deletion once no finalizer is left
        if body["metadata"].get("deletionTimestamp") and not finalizers:
            del self.bodies[obj.identity]
            return None
        return ManagedObject.from_body(obj.kind, copy.deepcopy(body))


class FakeSecretStore:
    """In-memory secret store keyed by (namespace, name)."""

    def __init__(self) -> None:
        self.secrets: dict[tuple[str, str], StoredSecret] = {}
        self.owners: dict[tuple[str, str], str] = {}
        self.creates = 0
        self.updates = 0
        self.conflicts = 0
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def get(self, namespace: str, name: str) -> StoredSecret | None:
        stored = self.secrets.get((namespace, name))
        if stored is None:
            return None
        return StoredSecret(namespace, name, dict(stored.data), stored.resource_version)

    def create(self, secret: StoredSecret, owner: ManagedObject) -> StoredSecret:
        key = (secret.namespace, secret.name)
        if key in self.secrets:
            raise ConflictError("already exists")
        stored = StoredSecret(secret.namespace, secret.name, dict(secret.data), self._next_version())
        self.secrets[key] = stored
        self.owners[key] = owner.uid
        self.creates += 1
        return stored

    def update(self, secret: StoredSecret) -> StoredSecret:
        key = (secret.namespace, secret.name)
        if self.conflicts > 0:
            self.conflicts -= 1
            # Someone else wrote in between
            self.secrets[key].resource_version = self._next_version()
            raise ConflictError("stale resource version")
        if self.secrets[key].resource_version != secret.resource_version:
            raise ConflictError("stale resource version")
        stored = StoredSecret(secret.namespace, secret.name, dict(secret.data), self._next_version())
        self.secrets[key] = stored
        self.updates += 1
        return stored


class RecordingEventRecorder:
    """Event recorder keeping every event in memory."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, str, str]] = []

    def record(self, obj: ManagedObject, type_: str, reason: str, message: str) -> None:
        self.events.append((str(obj.identity), type_, reason, message))

    def reasons(self) -> list[str]:
        return [reason for _, _, reason, _ in self.events]

    def of_type(self, type_: str) -> list[tuple[str, str, str, str]]:
        return [e for e in self.events if e[1] == type_]


@pytest.fixture
def adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def kind(adapter: FakeAdapter) -> ResourceKind:
    return ResourceKind(
        kind=KIND,
        group=GROUP,
        version=VERSION,
        plural=PLURAL,
        adapter_factory=lambda: adapter,
        secret_prefix="WIDGET_",
    )


@pytest.fixture
def registry(kind: ResourceKind) -> KindRegistry:
    return KindRegistry([kind])


@pytest.fixture
def accessor() -> FakeAccessor:
    return FakeAccessor()


@pytest.fixture
def secret_store() -> FakeSecretStore:
    return FakeSecretStore()


@pytest.fixture
def recorder() -> RecordingEventRecorder:
    return RecordingEventRecorder()


@pytest.fixture
def config() -> OperatorConfig:
    return OperatorConfig(backoff_jitter=0.0)


@pytest.fixture
def reconciler(
    registry: KindRegistry,
    accessor: FakeAccessor,
    secret_store: FakeSecretStore,
    recorder: RecordingEventRecorder,
    config: OperatorConfig,
) -> Reconciler:
    return Reconciler(
        registry,
        accessor,
        SecretSynchronizer(secret_store, attempts=config.write_retry_attempts),
        recorder,
        config=config,
        backoff=ExponentialBackoff.from_config(config),
    )


@pytest.fixture
def guarded_identity(accessor: FakeAccessor) -> ObjectIdentity:
    """An existing object that already carries the deletion guard."""
    return accessor.put(make_body(finalizers=[FINALIZER]))
