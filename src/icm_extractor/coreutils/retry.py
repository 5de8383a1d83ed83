"""
Retry Policy

Bounded retry with a fixed delay, applied independently to every
network-bound operation (each fetch, each sink write).
"""

import time
import logging
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Retry budget for a single operation

    Attributes:
        max_attempts: Total number of attempts, first call included
        delay_ms: Fixed wait between attempts in milliseconds
        reset_on_success: A success starts the next invocation with a full budget.
            Always honoured: `with_retry` keeps no state between invocations,
            so every call counts its attempts from one.
    """

    max_attempts: int = 6
    delay_ms: int = 10_000
    reset_on_success: bool = True

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.delay_ms < 0:
            raise ValueError(f"delay_ms must be >= 0, got {self.delay_ms}")

    @classmethod
    def from_retries(cls, retries: int, delay_ms: int) -> "RetryConfig":
        """Build a config from a retry count (attempts after the first one)"""
        return cls(max_attempts=max(retries, 0) + 1, delay_ms=delay_ms)


def with_retry(
    operation: Callable[[], T],
    config: RetryConfig,
    description: Optional[str] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run an operation, retrying on failure

    Args:
        operation: Zero-argument callable doing the actual work
        config: Retry budget
        description: Name used in log messages
        sleep: Blocking wait in seconds (injectable for tests)

    Returns:
        Whatever the operation returns on its first successful attempt

    Raises:
        The last exception once all attempts are used up
    """
    description = description or getattr(operation, "__name__", "operation")

    attempt = 1
    while True:
        try:
            return operation()

        except Exception as e:
            if attempt >= config.max_attempts:
                logger.error(
                    f"❌ {description} failed after {attempt} attempt(s): {e}"
                )
                raise

            logger.warning(
                f"Attempt {attempt}/{config.max_attempts} of {description} failed: {e}, "
                f"retrying in {config.delay_ms / 1000:.1f}s..."
            )
            sleep(config.delay_ms / 1000)
            attempt += 1
