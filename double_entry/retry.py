"""Caller-side retry for transfers that lost a lock race."""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from double_entry.errors import LockContentionError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_on_lock_contention(
    fn: Callable[[], T],
    attempts: int = 3,
    backoff_seconds: float = 0.05,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` until it stops raising ``LockContentionError``.

    The n-th retry waits ``n * backoff_seconds``. Other exceptions propagate
    immediately; the last contention error is re-raised once ``attempts`` calls
    have failed.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")
    if backoff_seconds < 0:
        raise ValueError("backoff_seconds must be >= 0")

    failures = 0
    while True:
        try:
            return fn()
        except LockContentionError as exc:
            failures += 1
            if failures >= attempts:
                logger.warning("Giving up after %s lock contention failures: %s", failures, exc)
                raise
            delay = failures * backoff_seconds
            logger.warning(
                "Lock contention (attempt %s/%s), retrying in %.3fs: %s",
                failures,
                attempts,
                delay,
                exc,
            )
            sleep(delay)
