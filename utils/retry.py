"""
Exponential-backoff retry executor and rate-limit error classifier.

Only rate-limit-class failures are retried.  Everything else, and the
failure of the final attempt, is re-raised unchanged so the caller sees
the original exception.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_STATUS = 429


class ErrorKind(enum.Enum):
    """Classification of a failed playback-engine call."""

    RATE_LIMITED = "rate_limited"
    OTHER = "other"


@dataclass(frozen=True)
class ClassifiedError:
    """A failure reduced to the fields the retry policy cares about."""

    kind: ErrorKind
    status_code: Optional[int] = None
    message: str = ""

    @property
    def retryable(self) -> bool:
        return self.kind is ErrorKind.RATE_LIMITED


@dataclass(frozen=True)
class RetryConfig:
    """Backoff parameters. Delays are in seconds."""

    max_retries: int = 3
    base_delay: float = 2.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0


def _status_code(error: Any) -> Optional[int]:
    for attr in ("status_code", "status"):
        try:
            value = getattr(error, attr, None)
        except Exception:
            continue
        # bool is an int subclass but never a status code
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def _message(error: Any) -> str:
    try:
        message = getattr(error, "message", None)
    except Exception:
        message = None
    if isinstance(message, str):
        return message
    if error is None:
        return ""
    try:
        return str(error)
    except Exception:
        return ""


def classify_error(error: Any) -> ClassifiedError:
    """Decide whether *error* is a transient rate-limit failure.

    Tolerates partial or malformed error objects: a missing status code or
    message simply counts as "not rate limited".
    """
    status = _status_code(error)
    message = _message(error)

    rate_limited = (
        status == RATE_LIMIT_STATUS
        or "429" in message
        or "Too Many Requests" in message
        or "rate limit" in message.lower()
    )
    kind = ErrorKind.RATE_LIMITED if rate_limited else ErrorKind.OTHER
    return ClassifiedError(kind=kind, status_code=status, message=message)


class RetryExecutor:
    """Run one async operation with bounded exponential backoff.

    Parameters
    ----------
    config : RetryConfig
        Backoff parameters shared by every call on this executor.
    sleep : callable
        Awaitable sleep used between attempts (injectable for tests).
    """

    def __init__(
        self,
        config: RetryConfig,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config
        self._sleep = sleep

    def compute_delay(self, attempt: int) -> float:
        """Delay to wait after the failure of *attempt* (1-based)."""
        cfg = self.config
        delay = cfg.base_delay * (cfg.backoff_factor ** (attempt - 1))
        return min(delay, cfg.max_delay)

    async def run_with_backoff(
        self,
        operation: Callable[[], Awaitable[T]],
        context: str,
        max_retries: Optional[int] = None,
        *,
        timeout: Optional[float] = None,
    ) -> T:
        """Invoke *operation* until it succeeds or fails terminally.

        *context* labels the log lines.  *timeout* (seconds) bounds the
        whole call, backoff sleeps included, and raises
        ``asyncio.TimeoutError`` when exceeded.
        """
        limit = self.config.max_retries if max_retries is None else max_retries
        if limit < 1:
            raise ValueError("max_retries must be at least 1")

        coro = self._run(operation, context, limit)
        if timeout:
            return await asyncio.wait_for(coro, timeout)
        return await coro

    async def _run(
        self,
        operation: Callable[[], Awaitable[T]],
        context: str,
        max_retries: int,
    ) -> T:
        attempt = 1
        while True:
            try:
                return await operation()
            except Exception as exc:
                classified = classify_error(exc)
                if not classified.retryable or attempt >= max_retries:
                    logger.debug(
                        "[%s] attempt %d/%d failed terminally (%s): %s",
                        context,
                        attempt,
                        max_retries,
                        classified.kind.value,
                        classified.message[:200],
                    )
                    raise

                delay = self.compute_delay(attempt)
                logger.warning(
                    "[%s] rate limited (attempt %d/%d), retrying in %.1fs",
                    context,
                    attempt,
                    max_retries,
                    delay,
                )
            await self._sleep(delay)
            attempt += 1
