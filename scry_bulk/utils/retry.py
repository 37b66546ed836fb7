"""Async retry utilities for catalog and snapshot HTTP calls."""

from __future__ import annotations

import logging
import random
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, TypeVar, cast

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryableStatusError(Exception):
    """Internal exception used to signal retryable HTTP status codes."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"Retryable HTTP status {response.status_code}")
        self.response = response


_RETRYABLE_EXCEPTIONS = (
    httpx.TimeoutException,
    httpx.TransportError,
    RetryableStatusError,
)


class RetryConfig(BaseModel):
    """Configuration object describing HTTP retry behaviour."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    max_attempts: int = Field(default=3, ge=1)
    backoff_factor: float = Field(default=0.5, gt=0)
    max_backoff: float | None = Field(default=10.0, gt=0)
    jitter: float = Field(default=0.0, ge=0)
    status_forcelist: list[int] = Field(default_factory=lambda: [429, 500, 502, 503, 504])
    respect_retry_after: bool = True

    @field_validator("status_forcelist", mode="before")
    @classmethod
    def _coerce_status_codes(cls, value: Any) -> list[int]:
        if value is None:
            return []
        if not isinstance(value, (list, tuple, set)):
            raise ValueError("status_forcelist must be a sequence of integers")
        coerced: list[int] = []
        for item in value:
            try:
                coerced.append(int(item))
            except (TypeError, ValueError) as exc:
                raise ValueError("status_forcelist entries must be integers") from exc
        return coerced

    @property
    def active(self) -> bool:
        """Return True when more than one attempt will ever be made."""

        return self.enabled and self.max_attempts > 1

    def should_retry_status(self, status_code: int) -> bool:
        """Return True when the HTTP status warrants a retry."""

        return status_code in self.status_forcelist

    def should_retry_response(self, response: httpx.Response | None) -> bool:
        """Return True when the HTTP response warrants a retry."""

        if response is None:
            return False
        return self.should_retry_status(response.status_code)


def _parse_retry_after(value: str | None) -> float | None:
    if value is None:
        return None
    trimmed = value.strip()
    if trimmed == "":
        return None
    if trimmed.isdigit():
        return max(float(trimmed), 0.0)
    try:
        parsed = parsedate_to_datetime(trimmed)
    except (TypeError, ValueError):
        logger.warning("Failed to parse Retry-After header: %s", value)
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    now = datetime.now(timezone.utc)
    delay = (parsed - now).total_seconds()
    return max(delay, 0.0)


def _backoff_delay(config: RetryConfig, attempt_number: int) -> float:
    delay = config.backoff_factor * (2 ** (max(attempt_number, 1) - 1))
    if config.max_backoff is not None:
        delay = min(delay, config.max_backoff)
    return delay


def _wait_strategy(config: RetryConfig) -> Callable[[RetryCallState], float]:
    def _wait(retry_state: RetryCallState) -> float:
        delay = _backoff_delay(config, retry_state.attempt_number)

        outcome = retry_state.outcome
        if config.respect_retry_after and outcome is not None and outcome.failed:
            exception = outcome.exception()
            if isinstance(exception, RetryableStatusError):
                header_value = exception.response.headers.get("retry-after")
                header_delay = _parse_retry_after(header_value)
                if header_delay is not None:
                    delay = max(delay, header_delay)

        if config.jitter > 0:
            delay += random.uniform(0, config.jitter)
        return max(delay, 0.0)

    return _wait


def _retry_error_callback(retry_state: RetryCallState) -> httpx.Response:
    outcome = retry_state.outcome
    if outcome is None:
        raise RuntimeError("Retry attempt completed without outcome")
    if outcome.failed:
        exception = outcome.exception()
        if isinstance(exception, RetryableStatusError):
            return exception.response
        if exception is None:
            raise RuntimeError("Retry attempt raised an unknown exception")
        raise exception
    result = outcome.result()
    if isinstance(result, httpx.Response):
        return result
    raise RuntimeError("Retry attempt produced an unexpected result type")


def _sleep_logger(log: logging.Logger | logging.LoggerAdapter | None) -> logging.Logger:
    logger_to_use = log or logger
    if isinstance(logger_to_use, logging.LoggerAdapter):
        return cast(logging.Logger, logger_to_use.logger)
    return logger_to_use


async def execute_with_retry(
    send: Callable[[], Awaitable[httpx.Response]],
    *,
    retry_config: RetryConfig,
    log: logging.Logger | logging.LoggerAdapter | None = None,
) -> httpx.Response:
    """Execute an HTTP request with retries according to the provided configuration.

    Retryable statuses that persist past the final attempt are returned as the
    last response so callers can report the status themselves.
    """

    if not retry_config.active:
        return await send()

    response: httpx.Response | None = None
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(retry_config.max_attempts),
        wait=_wait_strategy(retry_config),
        retry=retry_if_exception_type(_RETRYABLE_EXCEPTIONS),
        before_sleep=before_sleep_log(_sleep_logger(log), logging.WARNING),
        reraise=False,
        retry_error_callback=_retry_error_callback,
    ):
        with attempt:
            response = await send()
            if retry_config.should_retry_response(response):
                raise RetryableStatusError(response)

    if response is None:
        raise RuntimeError("Retry loop exited without producing a response")

    return response


async def retry_operation(
    operation: Callable[[], Awaitable[T]],
    *,
    retry_config: RetryConfig,
    is_retryable: Callable[[BaseException], bool],
    log: logging.Logger | logging.LoggerAdapter | None = None,
) -> T:
    """Run a whole async operation, retrying it when ``is_retryable`` accepts the error.

    The last exception is re-raised unchanged once attempts are exhausted.
    """

    if not retry_config.active:
        return await operation()

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(retry_config.max_attempts),
        wait=_wait_strategy(retry_config),
        retry=retry_if_exception(is_retryable),
        before_sleep=before_sleep_log(_sleep_logger(log), logging.WARNING),
        reraise=True,
    ):
        with attempt:
            return await operation()

    raise RuntimeError("Retry loop exited without producing a result")  # pragma: no cover
