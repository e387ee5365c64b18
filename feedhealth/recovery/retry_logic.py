"""
FeedHealth Retry Logic
======================

Bounded retry with a fixed pause between attempts, shared by the counting
service and the owner resolver. Retrying is decided per exception:
recoverable FeedHealth errors and plain network errors are retried,
everything else is raised on the first occurrence.
"""

import asyncio
import inspect
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type

from ..utils.exceptions import FeedHealthError
from ..utils.logging import get_logger_for_component


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    delay: float = 1.0                     # Pause between attempts in seconds

    # Exceptions retried even when they are not FeedHealth errors
    retry_on_exceptions: Tuple[Type[BaseException], ...] = (
        ConnectionError,
        TimeoutError,
        asyncio.TimeoutError,
    )


class RetryExhaustedError(FeedHealthError):
    """Raised when every attempt failed with a retryable error."""

    def __init__(self, operation: str, attempts: int, last_exception: Exception):
        super().__init__(
            f"{operation} failed after {attempts} attempt(s): {last_exception}",
            context={"operation": operation, "attempts": attempts},
            recoverable=False,
        )
        self.attempts = attempts
        self.last_exception = last_exception


class RetryManager:
    """Runs a callable up to max_attempts times with a fixed delay."""

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or RetryConfig()
        self.logger = get_logger_for_component('retry_manager')

    async def retry_async(self,
                          func: Callable[..., Any],
                          *args,
                          operation: Optional[str] = None,
                          config: Optional[RetryConfig] = None,
                          **kwargs) -> Any:
        """
        Retry an async function with a fixed delay between attempts.

        Args:
            func: Async (or plain) callable to retry
            *args: Function arguments
            operation: Name used in log messages (defaults to the function name)
            config: Override default retry configuration
            **kwargs: Function keyword arguments

        Returns:
            Function result if successful

        Raises:
            RetryExhaustedError: if every attempt failed with a retryable error
            Exception: the first non-retryable exception, unchanged
        """
        retry_config = config or self.config
        name = operation or getattr(func, '__name__', 'operation')
        last_exception = None

        for attempt in range(1, retry_config.max_attempts + 1):
            try:
                if inspect.iscoroutinefunction(func):
                    result = await func(*args, **kwargs)
                else:
                    result = func(*args, **kwargs)

                if attempt > 1:
                    self.logger.info(f"Retry successful for {name} on attempt {attempt}")

                return result

            except Exception as e:
                last_exception = e

                if not self.should_retry(e, retry_config):
                    self.logger.info(f"Not retrying {name} due to non-retryable exception: {e}")
                    raise

                delay = self._after_failure(name, attempt, e, retry_config)
                if delay is not None:
                    await asyncio.sleep(delay)

        raise RetryExhaustedError(name, retry_config.max_attempts, last_exception)

    def retry_sync(self,
                   func: Callable[..., Any],
                   *args,
                   operation: Optional[str] = None,
                   config: Optional[RetryConfig] = None,
                   **kwargs) -> Any:
        """
        Retry a synchronous function with a fixed delay between attempts.
        Same semantics as retry_async.
        """
        retry_config = config or self.config
        name = operation or getattr(func, '__name__', 'operation')
        last_exception = None

        for attempt in range(1, retry_config.max_attempts + 1):
            try:
                result = func(*args, **kwargs)

                if attempt > 1:
                    self.logger.info(f"Retry successful for {name} on attempt {attempt}")

                return result

            except Exception as e:
                last_exception = e

                if not self.should_retry(e, retry_config):
                    self.logger.info(f"Not retrying {name} due to non-retryable exception: {e}")
                    raise

                delay = self._after_failure(name, attempt, e, retry_config)
                if delay is not None:
                    time.sleep(delay)

        raise RetryExhaustedError(name, retry_config.max_attempts, last_exception)

    def _after_failure(self, name: str, attempt: int, exception: Exception,
                       config: RetryConfig) -> Optional[float]:
        """Log a failed attempt and return the delay before the next one, if any."""
        extra = exception.to_dict() if isinstance(exception, FeedHealthError) else {}

        if attempt < config.max_attempts:
            self.logger.warning(
                f"Attempt {attempt} failed for {name}: {exception}. "
                f"Retrying in {config.delay:.2f}s (attempt {attempt+1}/{config.max_attempts})",
                extra=extra,
            )
            return max(0.0, config.delay)

        self.logger.error(
            f"All {config.max_attempts} attempts failed for {name}: {exception}",
            extra=extra,
        )
        return None

    def should_retry(self, exception: Exception, config: Optional[RetryConfig] = None) -> bool:
        """Determine if an exception should trigger a retry."""
        if isinstance(exception, FeedHealthError):
            return exception.recoverable

        return isinstance(exception, (config or self.config).retry_on_exceptions)
