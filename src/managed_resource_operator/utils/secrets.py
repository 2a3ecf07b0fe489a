"""Connection secret storage and synchronization."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import Protocol

from kubernetes import client

from ..constants import CONTROLLER_NAME, FIELD_MANAGER, LABEL_MANAGED_BY, LABEL_OWNER_KIND
from ..models import ManagedObject
from .errors import translate_api_exception
from .retry import retry_on_conflict

logger = logging.getLogger(__name__)


@dataclass
class StoredSecret:
    """A secret as held by the secret store."""

    namespace: str
    name: str
    data: dict[str, bytes] = field(default_factory=dict)
    resource_version: str | None = None


class SecretStore(Protocol):
    """Read/write contract of the secret store."""

    def get(self, namespace: str, name: str) -> StoredSecret | None:
        """Return the secret, or None when it does not exist."""
        ...

    def create(self, secret: StoredSecret, owner: ManagedObject) -> StoredSecret:
        """Create the secret owned by ``owner``.

        Raises:
            ConflictError: If a secret with that name already exists
        """
        ...

    def update(self, secret: StoredSecret) -> StoredSecret:
        """Replace the secret data.

        Raises:
            ConflictError: If the stored resource version moved on
        """
        ...


def _decode_data(data: dict[str, str | bytes] | None) -> dict[str, bytes]:
    result = {}
    for key, value in (data or {}).items():
        if isinstance(value, bytes):
            result[key] = value
        else:
            result[key] = base64.b64decode(value)
    return result


def _encode_data(data: dict[str, bytes]) -> dict[str, str]:
    return {k: base64.b64encode(v).decode("utf-8") for k, v in data.items()}


class KubernetesSecretStore:
    """Secret store backed by Kubernetes ``Secret`` objects."""

    def __init__(self, api: client.CoreV1Api):
        self.api = api

    def get(self, namespace: str, name: str) -> StoredSecret | None:
        try:
            secret = self.api.read_namespaced_secret(name=name, namespace=namespace)
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise translate_api_exception(e) from e
        return StoredSecret(
            namespace=namespace,
            name=name,
            data=_decode_data(secret.data),
            resource_version=secret.metadata.resource_version if secret.metadata else None,
        )

    def create(self, secret: StoredSecret, owner: ManagedObject) -> StoredSecret:
        body = client.V1Secret(
            metadata=client.V1ObjectMeta(
                name=secret.name,
                namespace=secret.namespace,
                labels={
                    LABEL_MANAGED_BY: CONTROLLER_NAME,
                    LABEL_OWNER_KIND: owner.kind,
                },
                owner_references=[owner.owner_reference()],
            ),
            type="Opaque",
            data=_encode_data(secret.data),
        )
        try:
            created = self.api.create_namespaced_secret(
                namespace=secret.namespace,
                body=body,
                field_manager=FIELD_MANAGER,
            )
        except client.exceptions.ApiException as e:
            # 409 here means another writer created it first
            raise translate_api_exception(e) from e
        return StoredSecret(
            namespace=secret.namespace,
            name=secret.name,
            data=dict(secret.data),
            resource_version=created.metadata.resource_version if created.metadata else None,
        )

    def update(self, secret: StoredSecret) -> StoredSecret:
        # resourceVersion in the patch makes the API server reject stale writes
        body = {
            "metadata": {"resourceVersion": secret.resource_version},
            "data": _encode_data(secret.data),
        }
        try:
            patched = self.api.patch_namespaced_secret(
                name=secret.name,
                namespace=secret.namespace,
                body=body,
                field_manager=FIELD_MANAGER,
            )
        except client.exceptions.ApiException as e:
            raise translate_api_exception(e) from e
        return StoredSecret(
            namespace=secret.namespace,
            name=secret.name,
            data=dict(secret.data),
            resource_version=patched.metadata.resource_version if patched.metadata else None,
        )


class SecretSynchronizer:
    """Materializes connection details as a keyed secret."""

    def __init__(self, store: SecretStore, attempts: int = 5):
        self.store = store
        self.attempts = attempts

    def sync_secret(
        self,
        obj: ManagedObject,
        prefix: str,
        details: dict[str, bytes | str],
    ) -> bool:
        """Write ``prefix + key`` entries from ``details`` into the object's secret.

        Keys already present in the secret are kept; only the given keys are
        written. Nothing is written when the content already matches, when the
        object opted out of secrets, or when ``details`` is empty. A secret
        left behind by an earlier pass is never removed.

        Args:
            obj: Object owning the secret
            prefix: Prefix for every key
            details: Connection details reported by the adapter

        Returns:
            True if the secret was created or updated

        Raises:
            ConflictError: If the write kept conflicting with other writers
        """
        if obj.secret_disabled or not details:
            return False

        namespace = obj.namespace
        name = obj.secret_target_name
        desired = {
            f"{prefix}{key}": value.encode("utf-8") if isinstance(value, str) else bytes(value)
            for key, value in details.items()
        }

        def write(current: StoredSecret | None) -> bool:
            if current is None:
                self.store.create(StoredSecret(namespace=namespace, name=name, data=desired), obj)
                logger.info(f"Created connection secret {namespace}/{name} for {obj.identity}")
                return True
            merged = {**current.data, **desired}
            if merged == current.data:
                return False
            self.store.update(
                StoredSecret(
                    namespace=namespace,
                    name=name,
                    data=merged,
                    resource_version=current.resource_version,
                )
            )
            logger.info(f"Updated connection secret {namespace}/{name} for {obj.identity}")
            return True

        return retry_on_conflict(
            write,
            lambda: self.store.get(namespace, name),
            self.store.get(namespace, name),
            attempts=self.attempts,
            description=f"secret {namespace}/{name}",
        )
