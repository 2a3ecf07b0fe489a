"""Configuration for the Managed Resource Operator.

All settings are read from environment variables at start-up and validated once.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from .constants import DEFAULT_ENTRY_POINT_GROUP


@dataclass
class OperatorConfig:
    """Operator and reconciliation engine configuration."""

    # Capped exponential backoff for failed passes: 1s, 2s, 4s ... 300s
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 300.0
    backoff_multiplier: float = 2.0
    backoff_jitter: float = 0.1

    # Fixed polling intervals
    precondition_requeue_seconds: float = 10.0
    provisioning_requeue_seconds: float = 20.0
    resync_interval_seconds: float = 60.0

    pass_timeout_seconds: float = 120.0
    write_retry_attempts: int = 5

    metrics_port: int = 8080
    watch_namespaces: list[str] = field(default_factory=list)
    log_level: str = "INFO"
    entry_point_group: str = DEFAULT_ENTRY_POINT_GROUP

    def __post_init__(self) -> None:
        self.validate()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "OperatorConfig":
        """Load configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)

        Returns:
            Validated configuration

        Raises:
            ValueError: If a variable cannot be parsed or is out of range
        """
        env = os.environ if environ is None else environ

        def _float(name: str, default: str) -> float:
            raw = env.get(name, default)
            try:
                return float(raw)
            except ValueError as e:
                raise ValueError(f"{name} must be a number, got {raw!r}") from e

        def _int(name: str, default: str) -> int:
            raw = env.get(name, default)
            try:
                return int(raw)
            except ValueError as e:
                raise ValueError(f"{name} must be an integer, got {raw!r}") from e

        namespaces_str = env.get("WATCH_NAMESPACES", "")
        namespaces = [ns.strip() for ns in namespaces_str.split(",") if ns.strip()]

        return cls(
            backoff_base_seconds=_float("BACKOFF_BASE_SECONDS", "1"),
            backoff_max_seconds=_float("BACKOFF_MAX_SECONDS", "300"),
            backoff_multiplier=_float("BACKOFF_MULTIPLIER", "2"),
            backoff_jitter=_float("BACKOFF_JITTER", "0.1"),
            precondition_requeue_seconds=_float("PRECONDITION_REQUEUE_SECONDS", "10"),
            provisioning_requeue_seconds=_float("PROVISIONING_REQUEUE_SECONDS", "20"),
            resync_interval_seconds=_float("RESYNC_INTERVAL_SECONDS", "60"),
            pass_timeout_seconds=_float("PASS_TIMEOUT_SECONDS", "120"),
            write_retry_attempts=_int("WRITE_RETRY_ATTEMPTS", "5"),
            metrics_port=_int("METRICS_PORT", "8080"),
            watch_namespaces=namespaces,
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            entry_point_group=env.get("ADAPTER_ENTRY_POINT_GROUP", DEFAULT_ENTRY_POINT_GROUP),
        )

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ValueError: If any setting is out of range
        """
        if self.backoff_base_seconds <= 0:
            raise ValueError("backoff_base_seconds must be positive")
        if self.backoff_max_seconds < self.backoff_base_seconds:
            raise ValueError("backoff_max_seconds must not be lower than backoff_base_seconds")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be at least 1")
        if not 0 <= self.backoff_jitter < 1:
            raise ValueError("backoff_jitter must be in [0, 1)")
        for name in (
            "precondition_requeue_seconds",
            "provisioning_requeue_seconds",
            "resync_interval_seconds",
            "pass_timeout_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.write_retry_attempts < 1:
            raise ValueError("write_retry_attempts must be at least 1")
        if not 0 < self.metrics_port < 65536:
            raise ValueError("metrics_port must be a valid TCP port")
