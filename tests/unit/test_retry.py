"""Tests for lookbook.core.retry — exponential backoff on transient errors.

The sleep function is injected so delays are recorded instead of waited.
"""

from __future__ import annotations

import asyncio

import pytest

from lookbook.core.errors import GenerationError
from lookbook.core.retry import RetryPolicy, is_transient


class _Recorder:
    """Records sleep delays and counts operation calls."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0
        self.delays: list[float] = []

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)

    async def operation(self):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _transient() -> GenerationError:
    return GenerationError('{"error":{"code":500,"status":"INTERNAL"}}', "transient")


class TestRetryPolicy:
    """Test retry decisions and delays."""

    def test_success_on_first_attempt(self):
        recorder = _Recorder(["image"])
        policy = RetryPolicy(sleep=recorder.sleep)

        assert asyncio.run(policy.execute(recorder.operation)) == "image"
        assert recorder.calls == 1
        assert recorder.delays == []

    def test_always_transient_exhausts_three_attempts(self):
        errors = [_transient(), _transient(), _transient()]
        recorder = _Recorder(errors)
        policy = RetryPolicy(sleep=recorder.sleep)

        with pytest.raises(GenerationError) as exc_info:
            asyncio.run(policy.execute(recorder.operation))

        assert recorder.calls == 3
        assert recorder.delays == [1.0, 2.0]
        assert exc_info.value is errors[-1]

    def test_transient_then_success(self):
        recorder = _Recorder([_transient(), "image"])
        policy = RetryPolicy(sleep=recorder.sleep)

        assert asyncio.run(policy.execute(recorder.operation)) == "image"
        assert recorder.calls == 2
        assert recorder.delays == [1.0]

    def test_permanent_error_is_not_retried(self):
        recorder = _Recorder([GenerationError("PERMISSION_DENIED", "permanent"), "image"])
        policy = RetryPolicy(sleep=recorder.sleep)

        with pytest.raises(GenerationError, match="PERMISSION_DENIED"):
            asyncio.run(policy.execute(recorder.operation))

        assert recorder.calls == 1
        assert recorder.delays == []

    def test_unclassified_error_is_not_retried(self):
        recorder = _Recorder([RuntimeError("bug")])
        policy = RetryPolicy(sleep=recorder.sleep)

        with pytest.raises(RuntimeError):
            asyncio.run(policy.execute(recorder.operation))

        assert recorder.calls == 1

    def test_delay_doubles(self):
        policy = RetryPolicy(initial_delay=0.5)
        assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [0.5, 1.0, 2.0, 4.0]

    def test_custom_max_attempts(self):
        recorder = _Recorder([_transient()] * 5)
        policy = RetryPolicy(max_attempts=5, sleep=recorder.sleep)

        with pytest.raises(GenerationError):
            asyncio.run(policy.execute(recorder.operation))

        assert recorder.calls == 5
        assert recorder.delays == [1.0, 2.0, 4.0, 8.0]

    def test_invalid_max_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_observer_receives_every_failure(self):
        seen = []
        recorder = _Recorder([_transient(), _transient(), _transient()])
        policy = RetryPolicy(
            sleep=recorder.sleep,
            observer=lambda attempt, error, delay: seen.append((attempt, delay)),
        )

        with pytest.raises(GenerationError):
            asyncio.run(policy.execute(recorder.operation))

        assert seen == [(1, 1.0), (2, 2.0), (3, None)]

    def test_observer_receives_success_after_retry(self):
        seen = []
        recorder = _Recorder([_transient(), "image"])
        policy = RetryPolicy(
            sleep=recorder.sleep,
            observer=lambda attempt, error, delay: seen.append((attempt, error is None, delay)),
        )

        assert asyncio.run(policy.execute(recorder.operation)) == "image"
        assert seen == [(1, False, 1.0), (2, True, None)]

    def test_every_attempt_is_logged(self, caplog):
        recorder = _Recorder([_transient(), "image"])
        policy = RetryPolicy(sleep=recorder.sleep)

        with caplog.at_level("DEBUG", logger="lookbook.core.retry"):
            asyncio.run(policy.execute(recorder.operation))

        messages = [record.getMessage() for record in caplog.records]
        assert "Generation attempt 1/3..." in messages
        assert "Generation attempt 2/3..." in messages
        assert "Generation attempt 2/3 succeeded." in messages

    def test_failing_observer_does_not_change_outcome(self):
        def observer(attempt, error, delay):
            raise RuntimeError("observer broke")

        recorder = _Recorder([_transient(), "image"])
        policy = RetryPolicy(sleep=recorder.sleep, observer=observer)

        assert asyncio.run(policy.execute(recorder.operation)) == "image"


class TestIsTransient:
    """Test the default retry predicate."""

    def test_transient_generation_error(self):
        assert is_transient(_transient())

    def test_permanent_generation_error(self):
        assert not is_transient(GenerationError("bad request"))

    def test_other_exception(self):
        assert not is_transient(ValueError("nope"))
