"""
Per-guild admission gate.

Each guild may have at most one admitted playback request per cooldown
window.  Records live in a ``TTLCache`` whose TTL equals the cooldown, so
a guild's entry disappears once it could be admitted again and the map
never grows past ``maxsize``.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Hashable, Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)


class AdmissionGate:
    """Throttle playback requests per guild.

    Parameters
    ----------
    cooldown : float
        Seconds that must pass after an admitted request before the same
        guild is admitted again.
    maxsize : int
        Max number of guilds tracked at once.
    clock : callable
        Monotonic time source in seconds (injectable for tests).
    """

    def __init__(
        self,
        cooldown: float = 5.0,
        *,
        maxsize: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if cooldown < 0:
            raise ValueError("cooldown must not be negative")
        self.cooldown = cooldown
        self._clock = clock
        # Expiry is judged against the timestamp of the current decision,
        # not a second read of the clock.
        self._now = clock()
        self._last_admitted: TTLCache[Hashable, float] = TTLCache(
            maxsize=maxsize, ttl=cooldown, timer=lambda: self._now
        )

    def __len__(self) -> int:
        return len(self._last_admitted)

    def _elapsed(self, guild_id: Hashable, now: float) -> Optional[float]:
        self._now = now
        last = self._last_admitted.get(guild_id)
        if last is None:
            return None
        return now - last

    def try_admit(self, guild_id: Hashable, now: Optional[float] = None) -> bool:
        """Admit *guild_id* if its cooldown has elapsed, recording *now*.

        Never awaits, so the check-and-set is atomic on the event loop.
        A rejected request leaves the recorded timestamp untouched.
        """
        if now is None:
            now = self._clock()
        elapsed = self._elapsed(guild_id, now)
        if elapsed is not None and elapsed < self.cooldown:
            logger.debug(
                "Rejected request for guild %s (%.2fs into %.2fs cooldown)",
                guild_id,
                elapsed,
                self.cooldown,
            )
            return False

        self._last_admitted[guild_id] = now
        return True

    def retry_after(self, guild_id: Hashable, now: Optional[float] = None) -> float:
        """Seconds until *guild_id* can be admitted again (0.0 if now)."""
        if now is None:
            now = self._clock()
        elapsed = self._elapsed(guild_id, now)
        if elapsed is None:
            return 0.0
        return max(self.cooldown - elapsed, 0.0)

    def sweep(self, now: Optional[float] = None) -> int:
        """Evict records whose cooldown has passed. Returns how many were removed."""
        self._now = self._clock() if now is None else now
        expired = self._last_admitted.expire()
        return len(expired)
