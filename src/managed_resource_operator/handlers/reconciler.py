"""Generic reconciliation engine.

One ``Reconciler`` drives every registered resource kind through the same
pass: deletion check, guard installation, observe, precondition gate,
create or update, status and secret convergence. A pass never sleeps and
never raises adapter errors; it returns a ``ReconcileResult`` telling the
caller whether and when to run it again.
"""

from __future__ import annotations

import copy
import time
from typing import Any, Callable

from .. import metrics
from ..config import OperatorConfig
from ..constants import (
    COND_READY,
    DELETION_POLICY_ORPHAN,
    EVENT_REASON_CREATE_OR_UPDATE,
    EVENT_REASON_CREATED_OR_UPDATED,
    EVENT_REASON_DELETE_BLOCKED,
    EVENT_REASON_FINALIZER_ADDED,
    EVENT_REASON_INSTANCE_RUNNING,
    EVENT_REASON_ORPHANED,
    EVENT_REASON_POWERED_OFF,
    EVENT_REASON_PRECONDITIONS_NOT_MET,
    EVENT_REASON_SECRET_DISABLED,
    EVENT_REASON_SECRET_FAILED,
    EVENT_REASON_SPEC_REJECTED,
    EVENT_REASON_STATUS_FAILED,
    EVENT_REASON_SUCCESSFULLY_DELETED,
    EVENT_REASON_TRYING_TO_DELETE,
    EVENT_REASON_UNABLE_TO_ADD_FINALIZER,
    EVENT_REASON_UNABLE_TO_CREATE_OR_UPDATE,
    EVENT_REASON_UNABLE_TO_DELETE,
    EVENT_REASON_UNABLE_TO_OBSERVE,
    EVENT_REASON_UNABLE_TO_REMOVE_FINALIZER,
    FINALIZER,
    PHASE_CONN_INFO_SECRET,
    PHASE_CREATE_OR_UPDATE,
    PHASE_DELETE,
    PHASE_FINALIZER,
    PHASE_OBSERVE,
    REASON_POWERED_OFF,
    REASON_PRECONDITIONS_NOT_MET,
    REASON_PROVISIONING,
    REASON_READY,
    REASON_SPEC_REJECTED,
    RESERVED_STATUS_FIELDS,
    STATUS_CONDITIONS,
    STATUS_FAILED_ATTEMPTS,
    STATUS_OBSERVED_GENERATION,
)
from ..exceptions import (
    ConflictError,
    NotFoundOnDelete,
    ObjectGoneError,
    PassCancelled,
    PersistentSpecError,
    PreconditionUnmet,
    UnknownKindError,
)
from ..models import ManagedObject, ObjectIdentity, Observation, ReconcileResult
from ..registry import KindRegistry, ResourceKind
from ..services.backend.base import BackendAdapter
from ..services.kubernetes.objects import ObjectAccessor
from ..tracing import set_span_status, trace_span
from ..utils.backoff import ExponentialBackoff
from ..utils.conditions import (
    clear_error_condition,
    find_condition,
    set_error_condition,
    set_ready_condition,
)
from ..utils.context import PassContext, with_correlation_id
from ..utils.errors import classify_error, sanitize_error_message, sanitize_exception
from ..utils.events import EventRecorder, emit_normal, emit_reconcile_started, emit_warning
from ..utils.secrets import SecretSynchronizer
from .base import BaseHandler


class Reconciler(BaseHandler):
    """State machine invoked once per object identity and pass."""

    def __init__(
        self,
        registry: KindRegistry,
        accessor: ObjectAccessor,
        secrets: SecretSynchronizer,
        recorder: EventRecorder,
        config: OperatorConfig | None = None,
        backoff: ExponentialBackoff | None = None,
    ):
        super().__init__()
        self.registry = registry
        self.accessor = accessor
        self.secrets = secrets
        self.recorder = recorder
        self.config = config or OperatorConfig()
        self.backoff = backoff or ExponentialBackoff.from_config(self.config)
        # Built once; adapters are shared by every pass of their kind
        self._adapters: dict[str, BackendAdapter] = {
            kind.kind: kind.new_adapter() for kind in registry
        }

    def reconcile(self, identity: ObjectIdentity, ctx: PassContext | None = None) -> ReconcileResult:
        """Run one reconciliation pass for an object.

        Args:
            identity: Object to reconcile
            ctx: Pass context; a fresh one bounded by the pass timeout is used if omitted

        Returns:
            When to run the next pass and the error of this one, if any
        """
        if ctx is None:
            ctx = PassContext.with_timeout(self.config.pass_timeout_seconds)

        start_time = time.time()
        with with_correlation_id(ctx.correlation_id), trace_span(
            "reconcile",
            kind=identity.kind,
            attributes={"resource.name": identity.name, "resource.namespace": identity.namespace},
        ):
            try:
                result = self._reconcile(identity, ctx)
            except Exception as e:
                # Collaborator bugs outside the classified steps still end in a requeue
                self.logger.exception(f"Unexpected error reconciling {identity}: {sanitize_exception(e)}")
                metrics.error_total.labels(kind=identity.kind, error_type=type(e).__name__).inc()
                result = self._requeue(identity.kind, self.config.backoff_base_seconds, "unexpected", error=e)
            finally:
                duration = time.time() - start_time
                metrics.reconcile_duration_seconds.labels(kind=identity.kind).observe(duration)
            set_span_status(result.succeeded, str(result.error) if result.error else None)

        metrics.reconcile_total.labels(
            kind=identity.kind, result="success" if result.succeeded else "error"
        ).inc()
        return result

    def _reconcile(self, identity: ObjectIdentity, ctx: PassContext) -> ReconcileResult:
        try:
            kind = self.registry.get(identity.kind)
        except UnknownKindError as e:
            self.logger.error(f"Cannot reconcile {identity}: {e}")
            return ReconcileResult(error=e)

        try:
            ctx.check()
            obj = self.accessor.get(identity)
        except Exception as e:
            # Nothing to attach a condition to yet
            category = classify_error(e)
            self.logger.error(f"Failed to load {identity}: {sanitize_exception(e)}")
            metrics.error_total.labels(kind=identity.kind, error_type=category.__name__).inc()
            return self._requeue(identity.kind, self._retry_delay(category, 1), "load", error=e)

        if obj is None:
            self.logger.debug(f"{identity} no longer exists, nothing to do")
            return ReconcileResult()

        adapter = self._adapters[kind.kind]

        if obj.marked_for_deletion:
            return self._reconcile_deletion(ctx, kind, adapter, obj)

        if obj.generation != obj.status.get(STATUS_OBSERVED_GENERATION):
            emit_reconcile_started(self.recorder, obj)

        if not obj.has_finalizer(FINALIZER):
            try:
                obj = self.accessor.add_finalizer(obj, FINALIZER)
            except ObjectGoneError:
                return ReconcileResult()
            except Exception as e:
                return self._fail(obj, copy.deepcopy(obj.status), PHASE_FINALIZER, e,
                                  EVENT_REASON_UNABLE_TO_ADD_FINALIZER)
            emit_normal(self.recorder, obj, EVENT_REASON_FINALIZER_ADDED,
                        "Deletion guard added, the remote resource will be cleaned up on delete")

        return self._reconcile_present(ctx, kind, adapter, obj)

    # Deletion

    def _reconcile_deletion(
        self,
        ctx: PassContext,
        kind: ResourceKind,
        adapter: BackendAdapter,
        obj: ManagedObject,
    ) -> ReconcileResult:
        if not obj.has_finalizer(FINALIZER):
            return ReconcileResult()

        status = copy.deepcopy(obj.status)
        policy = obj.deletion_policy

        if policy is not None and policy != DELETION_POLICY_ORPHAN:
            error = PersistentSpecError(
                f"Unsupported deletion policy {policy!r}, only {DELETION_POLICY_ORPHAN!r} is allowed"
            )
            return self._fail(obj, status, PHASE_DELETE, error, EVENT_REASON_UNABLE_TO_DELETE)

        if policy == DELETION_POLICY_ORPHAN:
            self.log_info(obj, "Deletion policy is Orphan, leaving the remote resource in place",
                          event="orphan", reason=EVENT_REASON_ORPHANED)
            emit_normal(self.recorder, obj, EVENT_REASON_ORPHANED,
                        "The remote resource is kept because of the Orphan deletion policy")
        else:
            emit_normal(self.recorder, obj, EVENT_REASON_TRYING_TO_DELETE,
                        "Deleting the remote resource")
            try:
                self._call(kind, "delete", adapter.delete, ctx, obj)
            except NotFoundOnDelete:
                self.log_info(obj, "Remote resource is already gone", event="delete",
                              reason=EVENT_REASON_SUCCESSFULLY_DELETED)
            except PreconditionUnmet as e:
                message = sanitize_exception(e)
                conditions = status.setdefault(STATUS_CONDITIONS, [])
                set_error_condition(conditions, PHASE_DELETE, message,
                                    observed_generation=obj.generation)
                set_ready_condition(conditions, False, message,
                                    reason=REASON_PRECONDITIONS_NOT_MET,
                                    observed_generation=obj.generation)
                emit_warning(self.recorder, obj, EVENT_REASON_DELETE_BLOCKED, message)
                self._write_status(obj, status)
                return self._requeue(obj.kind, self.config.precondition_requeue_seconds, "precondition")
            except Exception as e:
                return self._fail(obj, status, PHASE_DELETE, e, EVENT_REASON_UNABLE_TO_DELETE)

        try:
            self.accessor.remove_finalizer(obj, FINALIZER)
        except Exception as e:
            return self._fail(obj, status, PHASE_FINALIZER, e, EVENT_REASON_UNABLE_TO_REMOVE_FINALIZER)

        self.log_info(obj, "Deletion guard removed", event="delete",
                      reason=EVENT_REASON_SUCCESSFULLY_DELETED)
        emit_normal(self.recorder, obj, EVENT_REASON_SUCCESSFULLY_DELETED,
                    "Remote resource cleaned up, deletion guard removed")
        return ReconcileResult()

    # Observe, create, update and converge

    def _reconcile_present(
        self,
        ctx: PassContext,
        kind: ResourceKind,
        adapter: BackendAdapter,
        obj: ManagedObject,
    ) -> ReconcileResult:
        status = copy.deepcopy(obj.status)
        conditions = status.setdefault(STATUS_CONDITIONS, [])

        try:
            observation = self._call(kind, "observe", adapter.observe, ctx, obj)
        except PreconditionUnmet as e:
            observation = Observation(preconditions_met=False, precondition_error=e)
        except Exception as e:
            return self._fail(obj, status, PHASE_OBSERVE, e, EVENT_REASON_UNABLE_TO_OBSERVE)

        for key, value in observation.metadata.items():
            if key not in RESERVED_STATUS_FIELDS:
                status[key] = value

        if not observation.preconditions_met:
            message = sanitize_error_message(observation.precondition_message)
            changed = self._set_ready(conditions, False, message, REASON_PRECONDITIONS_NOT_MET, obj)
            if changed:
                emit_normal(self.recorder, obj, EVENT_REASON_PRECONDITIONS_NOT_MET, message)
            self.log_info(obj, f"Preconditions are not met: {message}", event="blocked",
                          reason=REASON_PRECONDITIONS_NOT_MET)
            return self._finish(obj, status, self.config.precondition_requeue_seconds, "precondition")

        if observation.resource_exists and observation.is_powered_off:
            return self._powered_off(obj, status)

        if not observation.resource_exists or not observation.resource_up_to_date:
            failed = self._create_or_update(ctx, kind, adapter, obj, status, observation)
            if failed is not None:
                return failed

        return self._converge(ctx, kind, obj, status, observation)

    def _converge(
        self,
        ctx: PassContext,
        kind: ResourceKind,
        obj: ManagedObject,
        status: dict[str, Any],
        observation: Observation,
    ) -> ReconcileResult:
        """Publish connection details and set Ready from this pass's observation."""
        conditions = status[STATUS_CONDITIONS]
        if not (observation.resource_exists and observation.resource_ready):
            self._set_ready(conditions, False, "Waiting for the resource to become ready",
                            REASON_PROVISIONING, obj)
            return self._finish(obj, status, self.config.provisioning_requeue_seconds, "provisioning")

        ready_changed = self._ready_transition(conditions, True, REASON_READY)
        try:
            ctx.check()
            self._sync_secret(kind, obj, observation, announce=ready_changed)
        except Exception as e:
            return self._fail(obj, status, PHASE_CONN_INFO_SECRET, e, EVENT_REASON_SECRET_FAILED)

        self._set_ready(conditions, True, "Resource is ready", REASON_READY, obj)
        if ready_changed:
            emit_normal(self.recorder, obj, EVENT_REASON_INSTANCE_RUNNING, "Resource is ready")
        return self._finish(obj, status, self.config.resync_interval_seconds, "resync")

    def _create_or_update(
        self,
        ctx: PassContext,
        kind: ResourceKind,
        adapter: BackendAdapter,
        obj: ManagedObject,
        status: dict[str, Any],
        observation: Observation,
    ) -> ReconcileResult | None:
        """Create or update the remote resource. Returns a result only on failure."""
        if observation.resource_exists:
            operation, action = "update", adapter.update
            metrics.drift_detected_total.labels(kind=obj.kind).inc()
        else:
            operation, action = "create", adapter.create

        emit_normal(self.recorder, obj, EVENT_REASON_CREATE_OR_UPDATE,
                    f"About to {operation} the remote resource")
        try:
            self._call(kind, operation, action, ctx, obj)
        except Exception as e:
            return self._fail(obj, status, PHASE_CREATE_OR_UPDATE, e,
                              EVENT_REASON_UNABLE_TO_CREATE_OR_UPDATE)

        self.log_info(obj, f"Remote resource {operation}d", event=operation,
                      reason=EVENT_REASON_CREATED_OR_UPDATED)
        emit_normal(self.recorder, obj, EVENT_REASON_CREATED_OR_UPDATED,
                    f"Remote resource {operation}d")
        return None

    def _powered_off(self, obj: ManagedObject, status: dict[str, Any]) -> ReconcileResult:
        changed = self._set_ready(status[STATUS_CONDITIONS], False, "Resource is powered off",
                                  REASON_POWERED_OFF, obj)
        if changed:
            emit_normal(self.recorder, obj, EVENT_REASON_POWERED_OFF,
                        "Resource is powered off, changes are not applied until it is powered on")
        return self._finish(obj, status, self.config.resync_interval_seconds, "powered_off")

    def _sync_secret(
        self,
        kind: ResourceKind,
        obj: ManagedObject,
        observation: Observation,
        announce: bool,
    ) -> None:
        if not observation.secret_details:
            return
        if obj.secret_disabled:
            metrics.secret_sync_total.labels(kind=obj.kind, result="disabled").inc()
            if announce:
                emit_normal(self.recorder, obj, EVENT_REASON_SECRET_DISABLED,
                            "Connection details are available but no secret is wanted")
            return

        prefix = obj.secret_prefix if obj.secret_prefix is not None else kind.secret_prefix
        try:
            written = self.secrets.sync_secret(obj, prefix, observation.secret_details)
        except Exception:
            metrics.secret_sync_total.labels(kind=obj.kind, result="error").inc()
            raise
        metrics.secret_sync_total.labels(
            kind=obj.kind, result="written" if written else "unchanged"
        ).inc()

    # Helpers

    def _call(
        self,
        kind: ResourceKind,
        operation: str,
        action: Callable[[PassContext, ManagedObject], Any],
        ctx: PassContext,
        obj: ManagedObject,
    ) -> Any:
        """Invoke an adapter operation under the pass context."""
        ctx.check()
        with trace_span(f"backend.{operation}", kind=kind.kind):
            try:
                result = action(ctx, obj)
            except NotFoundOnDelete:
                metrics.backend_operations_total.labels(
                    kind=kind.kind, operation=operation, result="not_found"
                ).inc()
                raise
            except Exception:
                metrics.backend_operations_total.labels(
                    kind=kind.kind, operation=operation, result="error"
                ).inc()
                raise
        metrics.backend_operations_total.labels(
            kind=kind.kind, operation=operation, result="success"
        ).inc()
        return result

    @staticmethod
    def _ready_transition(conditions: list[dict[str, Any]], ready: bool, reason: str) -> bool:
        """Whether setting Ready to this status and reason would change it."""
        previous = find_condition(conditions, COND_READY)
        return (
            previous is None
            or previous.get("status") != ("True" if ready else "False")
            or previous.get("reason") != reason
        )

    def _set_ready(
        self,
        conditions: list[dict[str, Any]],
        ready: bool,
        message: str,
        reason: str,
        obj: ManagedObject,
    ) -> bool:
        """Set the Ready condition, returning whether its status or reason changed."""
        changed = self._ready_transition(conditions, ready, reason)
        set_ready_condition(conditions, ready, message, reason=reason,
                            observed_generation=obj.generation)
        return changed

    def _finish(
        self,
        obj: ManagedObject,
        status: dict[str, Any],
        requeue_after: float,
        requeue_reason: str,
    ) -> ReconcileResult:
        """Close a pass that did not fail: reset failures and write status once."""
        clear_error_condition(status[STATUS_CONDITIONS], observed_generation=obj.generation)
        status.pop(STATUS_FAILED_ATTEMPTS, None)
        status[STATUS_OBSERVED_GENERATION] = obj.generation

        ready = any(
            c.get("type") == COND_READY and c.get("status") == "True"
            for c in status[STATUS_CONDITIONS]
        )
        metrics.resource_status_total.labels(
            kind=obj.kind, status="ready" if ready else "not_ready"
        ).inc()

        error = self._write_status(obj, status)
        if error is not None:
            category = classify_error(error)
            attempts = int(obj.status.get(STATUS_FAILED_ATTEMPTS, 0)) + 1
            return self._requeue(obj.kind, self._retry_delay(category, attempts), "status", error=error)
        return self._requeue(obj.kind, requeue_after, requeue_reason)

    def _fail(
        self,
        obj: ManagedObject,
        status: dict[str, Any],
        phase: str,
        error: Exception,
        event_reason: str,
    ) -> ReconcileResult:
        """Turn a failed step into a condition, an event and a requeue decision."""
        category = classify_error(error)
        message = sanitize_exception(error)
        metrics.error_total.labels(kind=obj.kind, error_type=category.__name__).inc()

        if category is PassCancelled:
            self.log_warning(obj, f"Pass stopped during {phase}: {message}", event="cancelled",
                             reason=phase)
            return self._requeue(obj.kind, self.config.backoff_base_seconds, "cancelled", error=error)

        if category is ConflictError:
            self.log_warning(obj, f"Conflicting write during {phase}: {message}", event="conflict",
                             reason=phase)
            metrics.status_conflicts_total.labels(kind=obj.kind, target=phase).inc()
            emit_warning(self.recorder, obj, event_reason, message)
            return self._requeue(obj.kind, 0, "conflict", error=error)

        attempts = int(status.get(STATUS_FAILED_ATTEMPTS, 0) or 0) + 1
        status[STATUS_FAILED_ATTEMPTS] = attempts
        conditions = status.setdefault(STATUS_CONDITIONS, [])
        set_error_condition(conditions, phase, message, observed_generation=obj.generation)

        if category is PersistentSpecError:
            set_ready_condition(conditions, False, message, reason=REASON_SPEC_REJECTED,
                                observed_generation=obj.generation)
            event_reason = EVENT_REASON_SPEC_REJECTED

        self.log_error(obj, f"{phase} failed (attempt {attempts})", error=error,
                       event="failure", reason=event_reason)
        emit_warning(self.recorder, obj, event_reason, message)

        self._write_status(obj, status)
        return self._requeue(obj.kind, self._retry_delay(category, attempts), "backoff", error=error)

    def _write_status(self, obj: ManagedObject, status: dict[str, Any]) -> Exception | None:
        """Persist status if it changed. Returns the error of a failed write."""
        if status == obj.status:
            return None
        try:
            self.accessor.update_status(obj, status)
        except Exception as e:
            if isinstance(e, ConflictError):
                metrics.status_conflicts_total.labels(kind=obj.kind, target="status").inc()
            self.log_error(obj, "Failed to write status", error=e, event="status",
                           reason=EVENT_REASON_STATUS_FAILED)
            emit_warning(self.recorder, obj, EVENT_REASON_STATUS_FAILED, sanitize_exception(e))
            return e
        return None

    def _retry_delay(self, category: type[Exception], attempts: int) -> float:
        if category is ConflictError:
            return 0
        if category is PassCancelled:
            return self.config.backoff_base_seconds
        return self.backoff.delay(attempts)

    def _requeue(
        self,
        kind: str,
        delay: float,
        reason: str,
        error: Exception | None = None,
    ) -> ReconcileResult:
        metrics.requeue_total.labels(kind=kind, reason=reason).inc()
        return ReconcileResult(requeue_after=delay, error=error, reason=reason)
