"""Main entry point for the Managed Resource Operator."""

from __future__ import annotations

import logging
from typing import Any

import kopf

from . import __version__, health
from . import logging as structured_logging
from .config import OperatorConfig
from .constants import API_GROUP
from .handlers import ReconcileDispatcher, Reconciler
from .registry import KindRegistry
from .services.kubernetes import KubernetesObjectAccessor, get_core_api, get_custom_objects_api
from .tracing import initialize_tracing
from .utils.events import KopfEventRecorder
from .utils.secrets import KubernetesSecretStore, SecretSynchronizer

logger = logging.getLogger(__name__)


def build_dispatcher(config: OperatorConfig, kinds: KindRegistry) -> ReconcileDispatcher:
    """Assemble the engine and its Kubernetes collaborators.

    Args:
        config: Operator configuration
        kinds: Registered resource kinds

    Returns:
        Dispatcher ready to be registered with kopf
    """
    accessor = KubernetesObjectAccessor(
        get_custom_objects_api(), kinds, attempts=config.write_retry_attempts
    )
    secrets = SecretSynchronizer(
        KubernetesSecretStore(get_core_api()), attempts=config.write_retry_attempts
    )
    reconciler = Reconciler(kinds, accessor, secrets, KopfEventRecorder(), config=config)
    return ReconcileDispatcher(reconciler, config)


def register_handlers(
    kopf_registry: kopf.OperatorRegistry,
    dispatcher: ReconcileDispatcher,
    config: OperatorConfig,
) -> None:
    """Register startup, cleanup and per-kind handlers on a kopf registry."""
    servers: list[Any] = []

    @kopf.on.startup(registry=kopf_registry)
    def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
        """Configure the operator."""
        # Status belongs to the engine; kopf bookkeeping goes to annotations
        settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(prefix=API_GROUP)
        settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage(prefix=API_GROUP)

        settings.posting.level = logging.WARNING
        settings.networking.request_timeout = 30.0
        settings.execution.max_workers = 4

        servers.append(health.start_health_server(config.metrics_port))
        health.mark_ready()

    @kopf.on.cleanup(registry=kopf_registry)
    def cleanup(**_: Any) -> None:
        """Stop requeues and the health server."""
        health.mark_not_ready()
        dispatcher.shutdown()
        for server in servers:
            server.shutdown()

    dispatcher.register(kopf_registry)


def main() -> None:
    """Run the operator."""
    config = OperatorConfig.from_env()
    structured_logging.setup_structured_logging(config.log_level)
    initialize_tracing()

    kinds = KindRegistry.from_entry_points(config.entry_point_group)
    logger.info(f"Starting managed-resource-operator {__version__} with {len(kinds)} kind(s)")

    kopf_registry = kopf.OperatorRegistry()
    register_handlers(kopf_registry, build_dispatcher(config, kinds), config)

    kopf.run(
        registry=kopf_registry,
        standalone=True,
        clusterwide=not config.watch_namespaces,
        namespaces=config.watch_namespaces,
    )


if __name__ == "__main__":
    main()
