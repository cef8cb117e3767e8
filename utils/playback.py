"""
Playback request service: admission gate in front of the retry executor.

This is the only path from a command to the playback engine, so every
executor invocation is preceded by an admission check for its guild.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Hashable, Optional, TypeVar

from utils.admission import AdmissionGate
from utils.retry import ErrorKind, RetryExecutor, classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OutcomeStatus(enum.Enum):
    REJECTED = "rejected"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class PlaybackOutcome(Generic[T]):
    """Structured result of a playback request."""

    status: OutcomeStatus
    result: Optional[T] = None
    retry_after: float = 0.0  # seconds, set when rejected
    error: Optional[BaseException] = None  # original exception, set when failed
    error_kind: Optional[ErrorKind] = None

    @property
    def admitted(self) -> bool:
        return self.status is not OutcomeStatus.REJECTED

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.COMPLETED


class PlaybackService:
    """Admit, then execute with backoff, then report a ``PlaybackOutcome``."""

    def __init__(
        self,
        gate: AdmissionGate,
        executor: RetryExecutor,
        *,
        timeout: Optional[float] = None,
    ):
        self.gate = gate
        self.executor = executor
        self.timeout = timeout or None

    async def request(
        self,
        guild_id: Hashable,
        operation: Callable[[], Awaitable[T]],
        *,
        context: str = "playback",
    ) -> PlaybackOutcome[T]:
        if not self.gate.try_admit(guild_id):
            return PlaybackOutcome(
                status=OutcomeStatus.REJECTED,
                retry_after=self.gate.retry_after(guild_id),
            )

        try:
            result: Any = await self.executor.run_with_backoff(
                operation, context, timeout=self.timeout
            )
        except Exception as exc:
            kind = classify_error(exc).kind
            logger.info("[%s] request for guild %s failed (%s): %s", context, guild_id, kind.value, exc)
            return PlaybackOutcome(
                status=OutcomeStatus.FAILED,
                error=exc,
                error_kind=kind,
            )

        return PlaybackOutcome(status=OutcomeStatus.COMPLETED, result=result)
