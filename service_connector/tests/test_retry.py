"""
Unit tests for the shared retry executor.
"""

import asyncio
from unittest.mock import MagicMock

import httpx
import pytest
from prometheus_client import CollectorRegistry

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.config import BaseConfig
from shared.errors import ProviderHTTPError, RetryBudgetExceededError
from shared.metrics import MetricsCollector
from shared.retry import (
    MetricsRetryObserver,
    RetryConfig,
    RetryExecutor,
    RetryObserver,
    calculate_backoff_delay,
    execute_with_retry,
)
from shared.test_helpers import FakeMonotonic, RecordingSleep, ScriptedCall, TestDataFactory


def throttled(retry_after="2"):
    return TestDataFactory.create_graph_error(429, "TooManyRequests", retry_after=retry_after)


def unavailable():
    return TestDataFactory.create_graph_error(503, "ServiceUnavailable")


class TestBackoffDelay:
    """Test cases for backoff delay calculation."""

    def test_exponential_growth(self):
        config = RetryConfig(base_delay=1.0, max_delay=32.0, jitter_max=0)

        delays = [calculate_backoff_delay(attempt, config) for attempt in range(1, 8)]

        assert delays == [1.0, 2.0, 4.0, 8.0, 16.0, 32.0, 32.0]

    def test_jitter_is_added_after_cap(self):
        config = RetryConfig(base_delay=1.0, max_delay=4.0, jitter_max=1.0)

        delay = calculate_backoff_delay(10, config, uniform=lambda low, high: high)

        assert delay == 5.0

    def test_jitter_bounds(self):
        config = RetryConfig(base_delay=1.0, max_delay=32.0, jitter_max=1.0)

        for attempt in range(1, 10):
            delay = calculate_backoff_delay(attempt, config)
            base = min(2 ** (attempt - 1), 32.0)
            assert base <= delay <= base + 1.0


class TestRetryConfig:
    """Test cases for RetryConfig."""

    def test_defaults(self):
        config = RetryConfig()

        assert config.max_retries == 3
        assert config.base_delay == 1.0
        assert config.max_delay == 32.0
        assert config.jitter_max == 1.0
        assert config.retryable_status_codes == frozenset({429, 503, 504})
        assert "TooManyRequests" in config.retryable_error_codes

    def test_from_settings(self):
        settings = BaseConfig(retry_max_retries=5, retry_base_delay_seconds=0.5, retry_time_budget_seconds=30.0)

        config = RetryConfig.from_settings(settings)

        assert config.max_retries == 5
        assert config.base_delay == 0.5
        assert config.time_budget == 30.0

    def test_replace_keeps_other_values(self):
        config = RetryConfig(max_retries=5, base_delay=2.0)

        overridden = config.replace(max_retries=1)

        assert overridden.max_retries == 1
        assert overridden.base_delay == 2.0
        assert config.max_retries == 5


class TestRetryExecutor:
    """Test cases for RetryExecutor."""

    @pytest.fixture
    def sleep(self):
        """Recording sleep."""
        return RecordingSleep()

    @pytest.fixture
    def executor(self, sleep):
        """Create executor with deterministic jitter."""
        return RetryExecutor(sleep=sleep, uniform=lambda low, high: 0.5)

    @pytest.mark.asyncio
    async def test_success_without_retry(self, executor, sleep):
        call = ScriptedCall(result={"id": "1"})

        result = await executor.execute(call)

        assert result == {"id": "1"}
        assert call.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_retry_after_is_honoured(self, executor, sleep):
        call = ScriptedCall([throttled("2"), throttled("2")])

        result = await executor.execute(call)

        assert result == "ok"
        assert call.calls == 3
        assert sleep.delays == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_retry_after_above_max_delay_is_not_capped(self, executor, sleep):
        call = ScriptedCall([throttled("60")])

        await executor.execute(call, RetryConfig(max_delay=32.0))

        assert sleep.delays == [60.0]

    @pytest.mark.asyncio
    async def test_exponential_backoff_without_hint(self, executor, sleep):
        call = ScriptedCall([unavailable(), unavailable()])

        result = await executor.execute(call)

        assert result == "ok"
        assert len(sleep.delays) == 2
        assert sleep.delays == [1.5, 2.5]

    @pytest.mark.asyncio
    async def test_delays_never_exceed_cap_plus_jitter(self, sleep):
        executor = RetryExecutor(sleep=sleep, uniform=lambda low, high: high)
        config = RetryConfig(max_retries=6, base_delay=1.0, max_delay=4.0, jitter_max=1.0)
        call = ScriptedCall([unavailable() for _ in range(6)])

        await executor.execute(call, config)

        assert sleep.delays == [2.0, 3.0, 5.0, 5.0, 5.0, 5.0]
        assert all(delay <= config.max_delay + config.jitter_max for delay in sleep.delays)

    @pytest.mark.asyncio
    async def test_last_error_raised_after_max_retries(self, executor, sleep):
        errors = [unavailable() for _ in range(4)]
        call = ScriptedCall(list(errors))

        with pytest.raises(ProviderHTTPError) as exc_info:
            await executor.execute(call, RetryConfig(max_retries=3))

        assert exc_info.value is errors[-1]
        assert call.calls == 4
        assert len(sleep.delays) == 3

    @pytest.mark.asyncio
    async def test_zero_retries_means_single_attempt(self, executor, sleep):
        call = ScriptedCall([unavailable()])

        with pytest.raises(ProviderHTTPError):
            await executor.execute(call, RetryConfig(max_retries=0))

        assert call.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_non_retryable_error_fails_immediately(self, executor, sleep):
        error = TestDataFactory.create_graph_error(400, "BadRequest")
        call = ScriptedCall([error])

        with pytest.raises(ProviderHTTPError) as exc_info:
            await executor.execute(call)

        assert exc_info.value is error
        assert call.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_unauthorized_is_not_retried(self, executor, sleep):
        call = ScriptedCall([TestDataFactory.create_graph_error(401, "InvalidAuthenticationToken")])

        with pytest.raises(ProviderHTTPError):
            await executor.execute(call)

        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_final_non_retryable_error_logged_as_non_retryable(self, executor):
        executor.logger = MagicMock()
        call = ScriptedCall([TestDataFactory.create_graph_error(400, "BadRequest")])

        with pytest.raises(ProviderHTTPError):
            await executor.execute(call, RetryConfig(max_retries=0))

        executor.logger.error.assert_not_called()
        assert executor.logger.debug.call_args.args == ("Non-retryable provider error",)

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self, executor, sleep):
        call = ScriptedCall([httpx.ConnectError("connection reset")])

        assert await executor.execute(call) == "ok"
        assert len(sleep.delays) == 1

    @pytest.mark.asyncio
    async def test_config_retryable_codes_override_defaults(self, executor, sleep):
        call = ScriptedCall([ProviderHTTPError(500)])

        await executor.execute(call, RetryConfig(retryable_status_codes={500}))

        assert call.calls == 2

    @pytest.mark.asyncio
    async def test_on_retry_callback_receives_attempt_error_and_delay(self, executor):
        seen = []
        error = throttled("3")
        call = ScriptedCall([error])

        await executor.execute(call, RetryConfig(on_retry=lambda attempt, exc, delay: seen.append((attempt, exc, delay))))

        assert seen == [(1, error, 3.0)]

    @pytest.mark.asyncio
    async def test_failing_callbacks_do_not_break_retries(self, sleep):
        class BrokenObserver(RetryObserver):
            def on_retry(self, attempt, error, delay, classification):
                raise RuntimeError("observer down")

        def broken_callback(attempt, error, delay):
            raise ValueError("callback down")

        executor = RetryExecutor(sleep=sleep, observer=BrokenObserver())
        call = ScriptedCall([unavailable()])

        result = await executor.execute(call, RetryConfig(on_retry=broken_callback))

        assert result == "ok"
        assert len(sleep.delays) == 1

    @pytest.mark.asyncio
    async def test_time_budget_stops_retries(self):
        clock = FakeMonotonic()
        sleep = RecordingSleep(clock)
        executor = RetryExecutor(sleep=sleep, clock=clock, uniform=lambda low, high: 0.0)
        errors = [unavailable() for _ in range(3)]
        call = ScriptedCall(list(errors))

        with pytest.raises(RetryBudgetExceededError) as exc_info:
            await executor.execute(call, RetryConfig(time_budget=2.5))

        assert sleep.delays == [1.0]
        assert exc_info.value.__cause__ is errors[1]
        assert exc_info.value.details["attempts"] == 2
        assert exc_info.value.status_code == 504

    @pytest.mark.asyncio
    async def test_attempt_timeout_is_retried(self, sleep):
        executor = RetryExecutor(sleep=sleep, uniform=lambda low, high: 0.0)
        calls = []

        async def slow_then_fast():
            calls.append(1)
            if len(calls) == 1:
                await asyncio.sleep(10)
            return "done"

        result = await executor.execute(slow_then_fast, RetryConfig(attempt_timeout=0.05))

        assert result == "done"
        assert len(calls) == 2
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_metrics_observer_counts_retries(self, sleep):
        registry = CollectorRegistry()
        metrics = MetricsCollector("connector", registry)
        executor = RetryExecutor(sleep=sleep, observer=MetricsRetryObserver(metrics))

        await executor.execute(ScriptedCall([throttled("1"), unavailable()]))

        assert registry.get_sample_value("provider_retries_total", {"kind": "throttled"}) == 1.0
        assert registry.get_sample_value("provider_retries_total", {"kind": "unavailable"}) == 1.0


class TestExecuteWithRetry:
    """Test cases for the module-level helper."""

    @pytest.mark.asyncio
    async def test_retries_with_default_executor(self):
        call = ScriptedCall([unavailable()])

        result = await execute_with_retry(call, RetryConfig(base_delay=0, jitter_max=0))

        assert result == "ok"
        assert call.calls == 2
