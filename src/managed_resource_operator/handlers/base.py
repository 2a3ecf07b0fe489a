"""Base handler class with common logging functionality."""

from __future__ import annotations

import logging
from typing import Any

from ..constants import CONTROLLER_NAME
from ..logging import log_resource_event
from ..models import ManagedObject
from ..utils.errors import sanitize_exception


class BaseHandler:
    """Base class for handlers that act on managed objects."""

    def __init__(self, controller: str = CONTROLLER_NAME):
        """Initialize base handler.

        Args:
            controller: Controller name reported in every log line
        """
        self.controller = controller
        self.logger = logging.getLogger(__name__)

    def _get_resource_context(self, obj: ManagedObject) -> dict[str, Any]:
        """Extract common resource context from a managed object.

        Args:
            obj: Managed object

        Returns:
            Dictionary with resource context fields
        """
        return {
            "kind": obj.kind,
            "name": obj.name or "unknown",
            "namespace": obj.namespace,
            "uid": obj.uid or "unknown",
        }

    def _log(
        self,
        level: int,
        obj: ManagedObject,
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        ctx = self._get_resource_context(obj)
        log_resource_event(
            self.logger,
            controller=self.controller,
            resource_kind=ctx["kind"],
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_info(
        self,
        obj: ManagedObject,
        message: str,
        event: str = "info",
        reason: str = "Info",
        **kwargs: Any,
    ) -> None:
        """Log an info-level structured log message.

        Args:
            obj: Managed object the message is about
            message: Log message
            event: Event type (default: "info")
            reason: Reason for the event (default: "Info")
            **kwargs: Additional fields to include in the log
        """
        self._log(logging.INFO, obj, message, event, reason, **kwargs)

    def log_warning(
        self,
        obj: ManagedObject,
        message: str,
        event: str = "warning",
        reason: str = "Warning",
        **kwargs: Any,
    ) -> None:
        """Log a warning-level structured log message."""
        self._log(logging.WARNING, obj, message, event, reason, **kwargs)

    def log_error(
        self,
        obj: ManagedObject,
        message: str,
        error: BaseException | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            obj: Managed object the message is about
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        log_data = kwargs.copy()

        if error is not None:
            log_data["error"] = sanitize_exception(error)
            log_data["error_type"] = type(error).__name__

        self._log(logging.ERROR, obj, message, event, reason, **log_data)
