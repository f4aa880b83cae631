"""Unit tests for caller-side lock contention retries."""

from __future__ import annotations

import pytest

from double_entry.errors import InsufficientBalanceError, LockContentionError
from double_entry.retry import retry_on_lock_contention


class _Flaky:
    def __init__(self, failures: int, error: Exception | None = None) -> None:
        self.failures = failures
        self.error = error or LockContentionError()
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


def test_retry_returns_after_transient_contention() -> None:
    sleeps: list[float] = []
    fn = _Flaky(failures=2)

    assert retry_on_lock_contention(fn, attempts=3, backoff_seconds=0.5, sleep=sleeps.append) == "ok"
    assert fn.calls == 3
    assert sleeps == [0.5, 1.0]


def test_retry_reraises_after_exhausting_attempts() -> None:
    sleeps: list[float] = []
    fn = _Flaky(failures=10)

    with pytest.raises(LockContentionError):
        retry_on_lock_contention(fn, attempts=3, backoff_seconds=0.1, sleep=sleeps.append)
    assert fn.calls == 3
    assert len(sleeps) == 2


def test_retry_does_not_retry_other_errors() -> None:
    sleeps: list[float] = []
    fn = _Flaky(failures=1, error=InsufficientBalanceError())

    with pytest.raises(InsufficientBalanceError):
        retry_on_lock_contention(fn, attempts=5, backoff_seconds=0.1, sleep=sleeps.append)
    assert fn.calls == 1
    assert sleeps == []


def test_retry_validates_arguments() -> None:
    with pytest.raises(ValueError, match="attempts"):
        retry_on_lock_contention(lambda: None, attempts=0)
    with pytest.raises(ValueError, match="backoff_seconds"):
        retry_on_lock_contention(lambda: None, backoff_seconds=-1)
