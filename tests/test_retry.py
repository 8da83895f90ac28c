"""
Tests for the retry controller.
"""

from __future__ import annotations

import logging
import time

import httpx
import pytest

from llm_interface.errors import ConfigurationError, MessageFormatError, ProviderError
from llm_interface.retry import RetryState, error_payload, with_retry


class FakeSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class CallCounter:
    """Fails the first `failures` calls, then returns `result`."""

    def __init__(self, failures: int, result: str = "ok", exc: Exception | None = None) -> None:
        self.failures = failures
        self.result = result
        self.exc = exc or ProviderError("boom", provider="stub", response_data={"detail": "x"})
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return self.result


class TestRetryState:

    def test_delay_grows_linearly(self) -> None:
        state = RetryState(attempts_remaining=3, multiplier=0.3)
        delays = []
        while not state.exhausted:
            delays.append(state.delay_seconds)
            state = state.advance()

        assert delays == pytest.approx([0.3, 0.6, 0.9])
        assert state.attempt_index == 3

    def test_advance_returns_new_state(self) -> None:
        state = RetryState(attempts_remaining=1)
        nxt = state.advance()

        assert state.attempts_remaining == 1
        assert nxt.attempts_remaining == 0
        assert nxt.exhausted

    def test_rejects_negative_budget(self) -> None:
        with pytest.raises(ValueError):
            RetryState(attempts_remaining=-1)


class TestWithRetry:

    @pytest.mark.asyncio
    async def test_success_first_try_does_not_sleep(self) -> None:
        fn = CallCounter(failures=0)
        sleep = FakeSleep()

        assert await with_retry(fn, retry_attempts=3, sleep=sleep) == "ok"
        assert fn.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("attempts", [0, 1, 3])
    async def test_always_failing_called_n_plus_one_times(self, attempts) -> None:
        fn = CallCounter(failures=100)

        with pytest.raises(ProviderError):
            await with_retry(fn, retry_attempts=attempts, sleep=FakeSleep())

        assert fn.calls == attempts + 1

    @pytest.mark.asyncio
    async def test_backoff_delays(self) -> None:
        fn = CallCounter(failures=3)
        sleep = FakeSleep()

        result = await with_retry(fn, retry_attempts=3, retry_multiplier=0.5, sleep=sleep)

        assert result == "ok"
        assert sleep.delays == pytest.approx([0.5, 1.0, 1.5])

    @pytest.mark.asyncio
    async def test_real_sleep_delay(self) -> None:
        """Default sleep waits roughly (i + 1) * multiplier."""
        fn = CallCounter(failures=1)
        started = time.monotonic()
        await with_retry(fn, retry_attempts=1, retry_multiplier=0.05)
        elapsed = time.monotonic() - started

        assert elapsed >= 0.045

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exc", [ConfigurationError("bad"), MessageFormatError("bad")])
    async def test_terminal_errors_not_retried(self, exc) -> None:
        fn = CallCounter(failures=100, exc=exc)
        sleep = FakeSleep()

        with pytest.raises(type(exc)):
            await with_retry(fn, retry_attempts=5, sleep=sleep)

        assert fn.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_exhaustion_logs_response_data(self, caplog) -> None:
        fn = CallCounter(failures=100)

        with caplog.at_level(logging.ERROR, logger="llm_interface.retry"):
            with pytest.raises(ProviderError):
                await with_retry(fn, retry_attempts=1, provider="stub", sleep=FakeSleep())

        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert "Response data" in errors[0].getMessage()
        assert "detail" in errors[0].getMessage()
        assert errors[0]._extra["attempts"] == 2

    @pytest.mark.asyncio
    async def test_original_error_propagates(self) -> None:
        original = ProviderError("specific failure", provider="stub")
        fn = CallCounter(failures=100, exc=original)

        with pytest.raises(ProviderError) as info:
            await with_retry(fn, retry_attempts=2, sleep=FakeSleep())

        assert info.value is original


class TestErrorPayload:

    def test_provider_error(self) -> None:
        exc = ProviderError("x", response_data={"error": "quota"})
        assert error_payload(exc) == {"error": "quota"}

    def test_http_status_error(self) -> None:
        request = httpx.Request("POST", "https://example.test")
        response = httpx.Response(429, json={"error": "rate"}, request=request)
        exc = httpx.HTTPStatusError("rate limited", request=request, response=response)

        assert error_payload(exc) == {"error": "rate"}

    def test_plain_exception(self) -> None:
        assert error_payload(RuntimeError("x")) is None
