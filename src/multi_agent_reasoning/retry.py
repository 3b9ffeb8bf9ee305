"""Reusable retry-with-backoff policy for backend call sites."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from multi_agent_reasoning.errors import BackendRequestError

T = TypeVar("T")
logger = logging.getLogger(__name__)

_RATE_LIMIT_PATTERNS: tuple[str, ...] = (
    "too many requests",
    "rate limit",
    "rate_limit",
    "429",
    "please retry",
    "try again later",
    "quota",
)


def is_rate_limit_error(exc: BaseException) -> bool:
    """Classify an exception as rate-limit shaped (status 429 or matching message)."""
    if isinstance(exc, BackendRequestError) and exc.status == 429:
        return True
    message = str(exc).lower()
    return any(pattern in message for pattern in _RATE_LIMIT_PATTERNS)


def is_transient_error(exc: BaseException) -> bool:
    """Server-side or connection failures worth a transport-level retry.

    Rate limits are excluded; the solver's per-proposal policy owns them.
    """
    if is_rate_limit_error(exc):
        return False
    if isinstance(exc, BackendRequestError):
        return exc.status is None or exc.status >= 500
    return isinstance(exc, TimeoutError)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded attempts with exponential backoff per call slot.

    `slot` lets concurrent callers stagger their delays (slot 0 waits base, slot 1
    waits twice as long, and so on up to `max_delay_s`).
    """

    max_attempts: int = 2
    base_delay_s: float = 1.0
    max_delay_s: float = 10.0
    retryable: Callable[[BaseException], bool] = is_rate_limit_error
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def delay_for(self, slot: int) -> float:
        return min(self.base_delay_s * (2 ** max(slot, 0)), self.max_delay_s)

    def call(self, fn: Callable[[], T], *, slot: int = 0, label: str = "backend") -> T:
        attempts = max(1, self.max_attempts)
        for attempt in range(attempts):
            try:
                return fn()
            except Exception as exc:
                if attempt + 1 >= attempts or not self.retryable(exc):
                    raise
                delay = self.delay_for(slot)
                logger.warning(
                    "retry event=backoff label=%s attempt=%d/%d delay_s=%.2f reason=%s",
                    label,
                    attempt + 1,
                    attempts,
                    delay,
                    exc,
                )
                if delay > 0:
                    self.sleep(delay)
        raise RuntimeError(f"{label} call failed without raising")  # pragma: no cover
