"""Structured logging configuration for the Managed Resource Operator."""

import json
import logging
import sys
from typing import Any

from .utils.context import get_context_dict
from .utils.errors import sanitize_dict


def setup_structured_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging.

    Args:
        level: Root log level name (e.g. "INFO", "DEBUG")
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    # The kubernetes client is chatty at INFO
    logging.getLogger("kubernetes").setLevel(logging.WARNING)


def log_resource_event(
    logger: logging.Logger,
    controller: str,
    resource_kind: str,
    resource_name: str,
    namespace: str,
    uid: str,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log a structured resource event.

    The active correlation ID, if any, is added to the document and values
    under sensitive keys are redacted.
    """
    log_data = {
        "controller": controller,
        "resource": resource_kind,
        "name": resource_name,
        "namespace": namespace,
        "uid": uid,
        "event": event,
        "reason": reason,
        "message": message,
    }
    log_data.update(kwargs)
    log_data = get_context_dict(sanitize_dict(log_data))
    logger.log(level, json.dumps(log_data, default=str))
