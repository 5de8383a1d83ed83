"""
Persistent-error backoff

A cycle that fails even after every per-operation retry is re-run after an
escalating cooldown. Successes pay the failure count back one step at a time.
"""

import logging

logger = logging.getLogger(__name__)


def clamp(value: float, minimum: float, maximum: float) -> float:
    return min(max(value, minimum), maximum)


class PersistentErrorBackoff:
    """Quadratic cooldown driven by the number of consecutive failures"""

    def __init__(self, base_cooldown_ms: int, max_cooldown_ms: int):
        if base_cooldown_ms < 0 or max_cooldown_ms < 0:
            raise ValueError("cooldowns must be >= 0")

        self.base_cooldown_ms = base_cooldown_ms
        self.max_cooldown_ms = max_cooldown_ms
        self.consecutive_failures = 0

    def cooldown_ms(self) -> int:
        """Cooldown for the current failure count"""
        return int(
            clamp(
                self.base_cooldown_ms * self.consecutive_failures**2,
                self.base_cooldown_ms,
                self.max_cooldown_ms,
            )
        )

    def record_failure(self) -> int:
        """Count a failed cycle and return how long to wait before the next one"""
        self.consecutive_failures += 1
        cooldown = self.cooldown_ms()
        logger.debug(
            f"Persistent failure #{self.consecutive_failures}, cooldown {cooldown} ms"
        )
        return cooldown

    def record_success(self) -> None:
        self.consecutive_failures = max(self.consecutive_failures - 1, 0)
