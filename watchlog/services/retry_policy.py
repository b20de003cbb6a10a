from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_STEP_SECONDS = 0.3


def linear_backoff(step_seconds: float) -> Callable[[int], float]:
    def _delay(attempt: int) -> float:
        return max(0.0, step_seconds) * attempt

    return _delay


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry: ``max_retries`` extra attempts after the first one.

    ``backoff`` maps the 1-based retry number to a delay in seconds.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    backoff: Callable[[int], float] = field(
        default_factory=lambda: linear_backoff(DEFAULT_BACKOFF_STEP_SECONDS)
    )
    sleep: Callable[[float], None] = time.sleep

    @property
    def max_attempts(self) -> int:
        return 1 + max(0, self.max_retries)

    def should_retry(self, retries_done: int) -> bool:
        return retries_done < max(0, self.max_retries)

    def wait(self, retry_number: int) -> float:
        delay = self.backoff(retry_number)
        if delay > 0:
            self.sleep(delay)
        return delay
