"""Capped exponential backoff for failed reconciliation passes."""

from __future__ import annotations

import random

from ..config import OperatorConfig


class ExponentialBackoff:
    """Compute requeue delays from the number of consecutive failures.

    The delay for attempt ``n`` (1-based) is ``base * multiplier ** (n - 1)``,
    capped at ``maximum`` and spread by +/- ``jitter`` (a fraction of the delay).
    """

    def __init__(
        self,
        base: float = 1.0,
        maximum: float = 300.0,
        multiplier: float = 2.0,
        jitter: float = 0.1,
        rng: random.Random | None = None,
    ):
        self.base = base
        self.maximum = maximum
        self.multiplier = multiplier
        self.jitter = jitter
        self._rng = rng or random.Random()

    @classmethod
    def from_config(cls, config: OperatorConfig, rng: random.Random | None = None) -> "ExponentialBackoff":
        return cls(
            base=config.backoff_base_seconds,
            maximum=config.backoff_max_seconds,
            multiplier=config.backoff_multiplier,
            jitter=config.backoff_jitter,
            rng=rng,
        )

    def delay(self, attempt: int) -> float:
        """Return the delay in seconds before retrying.

        Args:
            attempt: Number of consecutive failures, including the current one

        Returns:
            Delay in seconds, never above ``maximum`` and never below zero
        """
        attempt = max(1, attempt)
        # Avoid float overflow for very long failure streaks
        exponent = min(attempt - 1, 64)
        delay = min(self.maximum, self.base * (self.multiplier ** exponent))
        if self.jitter:
            spread = delay * self.jitter
            delay += self._rng.uniform(-spread, spread)
        return max(0.0, min(self.maximum, delay))
