"""Tests for operator configuration."""

from __future__ import annotations

import pytest

from managed_resource_operator.config import OperatorConfig
from managed_resource_operator.constants import DEFAULT_ENTRY_POINT_GROUP


class TestOperatorConfig:
    """Test cases for OperatorConfig."""

    def test_defaults(self):
        """Test the documented defaults."""
        config = OperatorConfig.from_env({})

        assert config.backoff_base_seconds == 1.0
        assert config.backoff_max_seconds == 300.0
        assert config.precondition_requeue_seconds == 10.0
        assert config.provisioning_requeue_seconds == 20.0
        assert config.resync_interval_seconds == 60.0
        assert config.watch_namespaces == []
        assert config.log_level == "INFO"
        assert config.entry_point_group == DEFAULT_ENTRY_POINT_GROUP

    def test_from_env(self):
        """Test reading every variable."""
        config = OperatorConfig.from_env(
            {
                "BACKOFF_BASE_SECONDS": "0.5",
                "BACKOFF_MAX_SECONDS": "60",
                "RESYNC_INTERVAL_SECONDS": "30",
                "WRITE_RETRY_ATTEMPTS": "3",
                "METRICS_PORT": "9090",
                "WATCH_NAMESPACES": "team-a, team-b,,",
                "LOG_LEVEL": "debug",
                "ADAPTER_ENTRY_POINT_GROUP": "acme.kinds",
            }
        )

        assert config.backoff_base_seconds == 0.5
        assert config.backoff_max_seconds == 60.0
        assert config.resync_interval_seconds == 30.0
        assert config.write_retry_attempts == 3
        assert config.metrics_port == 9090
        assert config.watch_namespaces == ["team-a", "team-b"]
        assert config.log_level == "DEBUG"
        assert config.entry_point_group == "acme.kinds"

    def test_unparseable_number(self):
        """Test that a malformed value names the variable."""
        with pytest.raises(ValueError, match="METRICS_PORT"):
            OperatorConfig.from_env({"METRICS_PORT": "http"})

    @pytest.mark.parametrize(
        "overrides",
        [
            {"backoff_base_seconds": 0},
            {"backoff_base_seconds": 10, "backoff_max_seconds": 5},
            {"backoff_multiplier": 0.5},
            {"backoff_jitter": 1.0},
            {"resync_interval_seconds": 0},
            {"write_retry_attempts": 0},
            {"metrics_port": 70000},
        ],
    )
    def test_validation(self, overrides):
        """Test that out-of-range values are rejected."""
        with pytest.raises(ValueError):
            OperatorConfig(**overrides)
