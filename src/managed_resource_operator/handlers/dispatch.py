"""Glue between kopf handlers and the reconciliation engine."""

from __future__ import annotations

import logging
import threading
from typing import Any

import kopf

from ..config import OperatorConfig
from ..models import ObjectIdentity, ReconcileResult
from ..registry import KindRegistry, ResourceKind
from ..utils.context import PassContext
from ..utils.errors import sanitize_exception
from .reconciler import Reconciler

logger = logging.getLogger(__name__)

# Per-object key in kopf's memo holding the pass lock
MEMO_PASS_LOCK = "reconcile_pass_lock"

# Results left to the resync timer instead of a kopf retry
RESYNC_REASONS = frozenset({"resync", "powered_off"})


class ReconcileDispatcher:
    """Runs engine passes from kopf handlers and turns requeues into kopf retries.

    kopf serializes change handlers per object; the per-object lock kept in
    ``memo`` also keeps the resync timer from overlapping a running pass.
    """

    def __init__(self, reconciler: Reconciler, config: OperatorConfig | None = None):
        self.reconciler = reconciler
        self.config = config or reconciler.config
        self._shutdown = threading.Event()

    @property
    def registry(self) -> KindRegistry:
        return self.reconciler.registry

    def register(self, kopf_registry: kopf.OperatorRegistry) -> None:
        """Register change, delete and resync handlers for every resource kind."""
        for kind in self.registry:
            self._register_kind(kopf_registry, kind)

    def _register_kind(self, kopf_registry: kopf.OperatorRegistry, kind: ResourceKind) -> None:
        resource = (kind.group, kind.version, kind.plural)

        @kopf.on.create(*resource, registry=kopf_registry)
        @kopf.on.update(*resource, registry=kopf_registry)
        @kopf.on.resume(*resource, registry=kopf_registry)
        def reconcile_object(name: str, namespace: str, memo: kopf.Memo, **_: Any) -> None:
            """Run a pass when the object appears or its spec changes."""
            identity = ObjectIdentity(kind.kind, namespace, name)
            self.requeue(identity, self.run(identity, memo))

        @kopf.on.delete(*resource, registry=kopf_registry)
        def delete_object(name: str, namespace: str, memo: kopf.Memo, **_: Any) -> None:
            """Run deletion passes until the remote resource is cleaned up."""
            identity = ObjectIdentity(kind.kind, namespace, name)
            self.requeue(identity, self.run(identity, memo))

        @kopf.timer(
            *resource,
            registry=kopf_registry,
            interval=self.config.resync_interval_seconds,
            initial_delay=self.config.resync_interval_seconds,
        )
        def resync_object(name: str, namespace: str, memo: kopf.Memo, **_: Any) -> None:
            """Re-observe the object periodically to detect drift."""
            identity = ObjectIdentity(kind.kind, namespace, name)
            self.requeue(identity, self.run(identity, memo, blocking=False))

        logger.info(f"Watching {kind.plural}.{kind.group}/{kind.version} for kind {kind.kind}")

    def run(
        self,
        identity: ObjectIdentity,
        memo: dict[str, Any],
        blocking: bool = True,
    ) -> ReconcileResult | None:
        """Run one pass for an identity.

        Args:
            identity: Object to reconcile
            memo: kopf's per-object memo
            blocking: Wait for a running pass instead of skipping this one

        Returns:
            Result of the pass, or None when no pass was run

        Raises:
            kopf.TemporaryError: If the pass itself blew up
        """
        if self._shutdown.is_set():
            # A skipped pass must never count as handled, deletion included
            raise kopf.TemporaryError("Operator is shutting down", delay=self.config.backoff_base_seconds)

        lock = memo.setdefault(MEMO_PASS_LOCK, threading.Lock())
        if not lock.acquire(blocking=blocking):
            logger.debug(f"A pass for {identity} is already running, skipping")
            return None
        try:
            ctx = PassContext.with_timeout(self.config.pass_timeout_seconds, cancel_event=self._shutdown)
            return self.reconciler.reconcile(identity, ctx)
        except Exception as e:
            logger.exception(f"Pass for {identity} raised: {sanitize_exception(e)}")
            raise kopf.TemporaryError(
                f"Reconciliation of {identity} failed: {sanitize_exception(e)}",
                delay=self.config.backoff_base_seconds,
            ) from e
        finally:
            lock.release()

    def requeue(self, identity: ObjectIdentity, result: ReconcileResult | None) -> None:
        """Hand a requested requeue to kopf.

        Converged results are left to the resync timer; everything else is
        retried by kopf after ``requeue_after``.

        Raises:
            kopf.TemporaryError: If the pass asked to run again
        """
        if result is None or result.requeue_after is None or result.reason in RESYNC_REASONS:
            return
        if result.error is not None:
            message = f"Pass for {identity} failed: {sanitize_exception(result.error)}"
        else:
            message = f"Pass for {identity} is waiting ({result.reason})"
        raise kopf.TemporaryError(message, delay=max(0.0, result.requeue_after))

    def shutdown(self) -> None:
        """Signal in-flight passes to stop and refuse new ones."""
        self._shutdown.set()
        logger.info("Reconcile dispatcher stopped")
