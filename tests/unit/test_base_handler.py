"""Tests for base handler functionality."""

from __future__ import annotations

import json
import logging
from unittest.mock import patch

from conftest import make_body
from managed_resource_operator.handlers.base import BaseHandler
from managed_resource_operator.models import ManagedObject
from managed_resource_operator.utils.context import with_correlation_id


def widget() -> ManagedObject:
    return ManagedObject.from_body("Widget", make_body(name="w1", namespace="team-a"))


class TestBaseHandler:
    """Test cases for BaseHandler class."""

    def test_init(self):
        """Test handler initialization."""
        handler = BaseHandler()
        assert handler.controller == "managed-resource-operator"
        assert handler.logger is not None

    def test_resource_context(self):
        """Test that the log context is taken from the object."""
        ctx = BaseHandler()._get_resource_context(widget())

        assert ctx == {"kind": "Widget", "name": "w1", "namespace": "team-a", "uid": "uid-w1"}

    @patch("managed_resource_operator.handlers.base.log_resource_event")
    def test_log_info(self, mock_log):
        """Test info logging passes the resource fields through."""
        handler = BaseHandler()

        handler.log_info(widget(), "Remote resource created", reason="CreatedOrUpdated", operation="create")

        kwargs = mock_log.call_args.kwargs
        assert kwargs["resource_kind"] == "Widget"
        assert kwargs["resource_name"] == "w1"
        assert kwargs["namespace"] == "team-a"
        assert kwargs["reason"] == "CreatedOrUpdated"
        assert kwargs["level"] == logging.INFO
        assert kwargs["operation"] == "create"

    @patch("managed_resource_operator.handlers.base.log_resource_event")
    def test_log_warning_level(self, mock_log):
        """Test warning logging uses the warning level."""
        BaseHandler().log_warning(widget(), "Conflict")

        assert mock_log.call_args.kwargs["level"] == logging.WARNING
        assert mock_log.call_args.kwargs["event"] == "warning"

    @patch("managed_resource_operator.handlers.base.log_resource_event")
    def test_log_error_includes_sanitized_error(self, mock_log):
        """Test that errors are attached sanitized with their type."""
        BaseHandler().log_error(widget(), "Observe failed", error=ValueError("password: hunter2"))

        kwargs = mock_log.call_args.kwargs
        assert kwargs["level"] == logging.ERROR
        assert kwargs["error_type"] == "ValueError"
        assert "hunter2" not in kwargs["error"]

    def test_log_line_is_json(self, caplog):
        """Test that a full log line is one JSON document with the correlation ID."""
        handler = BaseHandler()

        with caplog.at_level(logging.INFO, logger="managed_resource_operator.handlers.base"):
            with with_correlation_id("corr-1"):
                handler.log_info(widget(), "Resource is ready", reason="Ready")

        data = json.loads(caplog.records[-1].getMessage())
        assert data["controller"] == "managed-resource-operator"
        assert data["resource"] == "Widget"
        assert data["message"] == "Resource is ready"
        assert data["correlation_id"] == "corr-1"
