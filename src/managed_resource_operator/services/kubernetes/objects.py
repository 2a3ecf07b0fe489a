"""Access to the desired-state custom resources stored in Kubernetes."""

from __future__ import annotations

import copy
import logging
from typing import Any, Protocol

from kubernetes import client

from ...exceptions import ObjectGoneError
from ...models import ManagedObject, ObjectIdentity
from ...registry import KindRegistry
from ...utils.errors import translate_api_exception
from ...utils.retry import retry_on_conflict

logger = logging.getLogger(__name__)


class ObjectAccessor(Protocol):
    """Read and write side of the desired-state object store."""

    def get(self, identity: ObjectIdentity) -> ManagedObject | None:
        """Return the object, or None when it no longer exists."""
        ...

    def update_status(self, obj: ManagedObject, status: dict[str, Any]) -> ManagedObject | None:
        """Replace the object's status.

        Returns the stored object, or None when it vanished in the meantime.

        Raises:
            ConflictError: If the write kept conflicting with other writers
        """
        ...

    def add_finalizer(self, obj: ManagedObject, finalizer: str) -> ManagedObject:
        """Add the deletion-guard marker.

        Raises:
            ObjectGoneError: If the object no longer exists
        """
        ...

    def remove_finalizer(self, obj: ManagedObject, finalizer: str) -> ManagedObject | None:
        """Remove the deletion-guard marker. Returns None once the object is gone."""
        ...


class KubernetesObjectAccessor:
    """Object accessor over ``CustomObjectsApi``.

    Every write carries the last seen ``resourceVersion``. A conflicting write
    re-reads the object and retries that write only.
    """

    def __init__(
        self,
        api: client.CustomObjectsApi,
        registry: KindRegistry,
        attempts: int = 5,
    ):
        self.api = api
        self.registry = registry
        self.attempts = attempts

    def _coordinates(self, identity: ObjectIdentity) -> dict[str, str]:
        kind = self.registry.get(identity.kind)
        return {
            "group": kind.group,
            "version": kind.version,
            "namespace": identity.namespace,
            "plural": kind.plural,
            "name": identity.name,
        }

    def get(self, identity: ObjectIdentity) -> ManagedObject | None:
        try:
            body = self.api.get_namespaced_custom_object(**self._coordinates(identity))
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise translate_api_exception(e) from e
        return ManagedObject.from_body(identity.kind, body)

    def _refresh(self, identity: ObjectIdentity) -> ManagedObject:
        current = self.get(identity)
        if current is None:
            raise ObjectGoneError(f"{identity} no longer exists")
        return current

    def update_status(self, obj: ManagedObject, status: dict[str, Any]) -> ManagedObject | None:
        def write(current: ManagedObject) -> ManagedObject:
            body = copy.deepcopy(current.body)
            body["status"] = status
            body.setdefault("metadata", {})["resourceVersion"] = current.resource_version
            try:
                result = self.api.replace_namespaced_custom_object_status(
                    body=body, **self._coordinates(current.identity)
                )
            except client.exceptions.ApiException as e:
                if e.status == 404:
                    raise ObjectGoneError(f"{current.identity} no longer exists") from e
                raise translate_api_exception(e) from e
            return ManagedObject.from_body(current.kind, result)

        try:
            return retry_on_conflict(
                write,
                lambda: self._refresh(obj.identity),
                obj,
                attempts=self.attempts,
                description=f"status of {obj.identity}",
            )
        except ObjectGoneError:
            logger.info(f"{obj.identity} was removed before its status could be written")
            return None

    def _patch_finalizers(
        self,
        current: ManagedObject,
        finalizers: list[str],
    ) -> ManagedObject:
        body = {
            "metadata": {
                "finalizers": finalizers,
                "resourceVersion": current.resource_version,
            }
        }
        try:
            result = self.api.patch_namespaced_custom_object(
                body=body, **self._coordinates(current.identity)
            )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                raise ObjectGoneError(f"{current.identity} no longer exists") from e
            raise translate_api_exception(e) from e
        return ManagedObject.from_body(current.kind, result)

    def add_finalizer(self, obj: ManagedObject, finalizer: str) -> ManagedObject:
        def write(current: ManagedObject) -> ManagedObject:
            if current.has_finalizer(finalizer):
                return current
            return self._patch_finalizers(current, [*current.finalizers, finalizer])

        return retry_on_conflict(
            write,
            lambda: self._refresh(obj.identity),
            obj,
            attempts=self.attempts,
            description=f"finalizer of {obj.identity}",
        )

    def remove_finalizer(self, obj: ManagedObject, finalizer: str) -> ManagedObject | None:
        def write(current: ManagedObject) -> ManagedObject:
            if not current.has_finalizer(finalizer):
                return current
            return self._patch_finalizers(
                current, [f for f in current.finalizers if f != finalizer]
            )

        try:
            return retry_on_conflict(
                write,
                lambda: self._refresh(obj.identity),
                obj,
                attempts=self.attempts,
                description=f"finalizer of {obj.identity}",
            )
        except ObjectGoneError:
            logger.info(f"{obj.identity} is already gone")
            return None
