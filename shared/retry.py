"""
Retry mechanism for resilient provider calls.

``RetryExecutor`` re-invokes a zero-argument coroutine factory while the failure
classifies as transient (throttling or upstream unavailability), honouring the
provider's ``Retry-After`` hint and otherwise backing off exponentially with
jitter. After the last attempt the last exception is re-raised unchanged.
"""

import asyncio
import random
import time
from typing import Any, Awaitable, Callable, FrozenSet, Iterable, Optional, TypeVar, TYPE_CHECKING

from shared.errors import ErrorClassification, RetryBudgetExceededError
from shared.error_classifier import (
    DEFAULT_RETRYABLE_ERROR_CODES,
    DEFAULT_RETRYABLE_STATUS_CODES,
    ErrorClassifier,
)
from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.config import BaseConfig
    from shared.metrics import MetricsCollector

T = TypeVar("T")

OnRetry = Callable[[int, BaseException, float], Any]


class RetryConfig:
    """Configuration for retry behavior. Durations are in seconds."""

    def __init__(self,
                 max_retries: int = 3,
                 base_delay: float = 1.0,
                 max_delay: float = 32.0,
                 jitter_max: float = 1.0,
                 retryable_status_codes: Iterable[int] = DEFAULT_RETRYABLE_STATUS_CODES,
                 retryable_error_codes: Iterable[str] = DEFAULT_RETRYABLE_ERROR_CODES,
                 on_retry: Optional[OnRetry] = None,
                 attempt_timeout: Optional[float] = None,
                 time_budget: Optional[float] = None):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter_max = jitter_max
        self.retryable_status_codes: FrozenSet[int] = frozenset(retryable_status_codes)
        self.retryable_error_codes: FrozenSet[str] = frozenset(retryable_error_codes)
        self.on_retry = on_retry
        self.attempt_timeout = attempt_timeout
        self.time_budget = time_budget

    @classmethod
    def from_settings(cls, config: "BaseConfig", **overrides) -> "RetryConfig":
        """Build the default policy from service configuration."""
        values = dict(
            max_retries=config.retry_max_retries,
            base_delay=config.retry_base_delay_seconds,
            max_delay=config.retry_max_delay_seconds,
            jitter_max=config.retry_jitter_max_seconds,
            attempt_timeout=config.retry_attempt_timeout_seconds,
            time_budget=config.retry_time_budget_seconds,
        )
        values.update(overrides)
        return cls(**values)

    def replace(self, **overrides) -> "RetryConfig":
        """Copy of this config with per-call overrides applied."""
        values = dict(self.__dict__)
        values.update(overrides)
        return RetryConfig(**values)


class RetryObserver:
    """Observer notified before each backoff sleep. The default does nothing."""

    def on_retry(self, attempt: int, error: BaseException, delay: float,
                 classification: ErrorClassification) -> None:
        return None


class LoggingRetryObserver(RetryObserver):
    """Logs each retry decision."""

    def __init__(self, name: str = "provider"):
        self.logger = get_logger(f"retry.{name}")

    def on_retry(self, attempt, error, delay, classification):
        self.logger.info(
            "Retrying provider call",
            attempt=attempt,
            delay_seconds=round(delay, 3),
            kind=classification.kind.value,
            status_code=classification.status_code,
            provider_code=classification.code,
            request_id=classification.request_id,
        )


class MetricsRetryObserver(RetryObserver):
    """Counts retries by failure kind."""

    def __init__(self, metrics: "MetricsCollector"):
        self.metrics = metrics

    def on_retry(self, attempt, error, delay, classification):
        self.metrics.record_retry(classification.kind.value)


def calculate_backoff_delay(attempt: int, config: RetryConfig,
                            uniform: Callable[[float, float], float] = random.uniform) -> float:
    """Exponential backoff capped at ``max_delay`` plus ``uniform(0, jitter_max)``."""
    delay = min(config.base_delay * (2 ** (attempt - 1)), config.max_delay)
    if config.jitter_max > 0:
        delay += uniform(0, config.jitter_max)
    return delay


class RetryExecutor:
    """Runs provider calls with classification-driven retries."""

    def __init__(self,
                 classifier: Optional[ErrorClassifier] = None,
                 *,
                 observer: Optional[RetryObserver] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
                 clock: Callable[[], float] = time.monotonic,
                 uniform: Callable[[float, float], float] = random.uniform):
        self.classifier = classifier or ErrorClassifier()
        self.observer = observer or RetryObserver()
        self._sleep = sleep
        self._clock = clock
        self._uniform = uniform
        self.logger = get_logger("retry.executor")

    async def execute(self, call: Callable[[], Awaitable[T]], config: Optional[RetryConfig] = None) -> T:
        """Invoke ``call`` until it succeeds, fails permanently, or retries run out."""
        config = config or RetryConfig()
        classifier = self._classifier_for(config)
        started = self._clock()

        attempt = 1
        while True:
            try:
                return await self._invoke(call, config, started)
            except Exception as exc:
                classification = classifier.classify(exc)

                if not classification.retryable:
                    self.logger.debug(
                        "Non-retryable provider error",
                        attempt=attempt,
                        kind=classification.kind.value,
                        status_code=classification.status_code,
                        provider_code=classification.code,
                    )
                    raise

                if attempt > config.max_retries:
                    self.logger.error(
                        "Max retries exceeded",
                        max_retries=config.max_retries,
                        kind=classification.kind.value,
                        status_code=classification.status_code,
                        provider_code=classification.code,
                    )
                    raise

                if classification.wait_hint_seconds is not None:
                    delay = float(classification.wait_hint_seconds)
                else:
                    delay = calculate_backoff_delay(attempt, config, self._uniform)

                if config.time_budget is not None:
                    elapsed = self._clock() - started
                    if elapsed + delay > config.time_budget:
                        self.logger.warning(
                            "Retry budget exhausted",
                            attempt=attempt,
                            elapsed_seconds=round(elapsed, 3),
                            delay_seconds=round(delay, 3),
                            budget_seconds=config.time_budget,
                        )
                        raise RetryBudgetExceededError(config.time_budget, attempt, classification) from exc

                self.logger.warning(
                    "Retryable provider error, backing off",
                    attempt=attempt,
                    max_retries=config.max_retries,
                    delay_seconds=round(delay, 3),
                    wait_hint_seconds=classification.wait_hint_seconds,
                    kind=classification.kind.value,
                    status_code=classification.status_code,
                    provider_code=classification.code,
                    message=classification.message,
                )
                self._notify(config, attempt, exc, delay, classification)

                await self._sleep(delay)
                attempt += 1

    async def _invoke(self, call, config: RetryConfig, started: float):
        timeout = config.attempt_timeout
        if config.time_budget is not None:
            remaining = max(0.0, config.time_budget - (self._clock() - started))
            timeout = remaining if timeout is None else min(timeout, remaining)
        if timeout is None:
            return await call()
        return await asyncio.wait_for(call(), timeout)

    def _classifier_for(self, config: RetryConfig) -> ErrorClassifier:
        if (config.retryable_status_codes == self.classifier.retryable_status_codes
                and config.retryable_error_codes == self.classifier.retryable_error_codes):
            return self.classifier
        return ErrorClassifier(config.retryable_status_codes, config.retryable_error_codes)

    def _notify(self, config, attempt, exc, delay, classification):
        if config.on_retry is not None:
            try:
                config.on_retry(attempt, exc, delay)
            except Exception as callback_error:
                self.logger.warning("Error in on_retry callback", error=str(callback_error))
        try:
            self.observer.on_retry(attempt, exc, delay, classification)
        except Exception as observer_error:
            self.logger.warning("Error in retry observer", error=str(observer_error))


_default_executor: Optional[RetryExecutor] = None


async def execute_with_retry(call: Callable[[], Awaitable[T]], config: Optional[RetryConfig] = None) -> T:
    """Run ``call`` through a process-wide default ``RetryExecutor``."""
    global _default_executor
    if _default_executor is None:
        _default_executor = RetryExecutor(observer=LoggingRetryObserver())
    return await _default_executor.execute(call, config)
