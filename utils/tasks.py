"""
Background tasks for maintenance and cleanup.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import tasks

from config.constants import ADMISSION_SWEEP_MINUTES

if TYPE_CHECKING:
    from bot import WaveBot

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Scheduled background tasks for the bot."""

    def __init__(self, bot: WaveBot):
        self.bot = bot
        self.sweep_task.start()

    @tasks.loop(minutes=ADMISSION_SWEEP_MINUTES)
    async def sweep_task(self):
        """Evict admission records whose cooldown has passed."""
        try:
            removed = self.bot.admission_gate.sweep()
            if removed:
                logger.info(
                    "🧹 Evicted %d admission record(s), %d guild(s) still tracked",
                    removed,
                    len(self.bot.admission_gate),
                )
        except Exception as e:
            logger.error("Error during admission sweep: %s", e, exc_info=True)

    @sweep_task.before_loop
    async def before_sweep(self):
        """Wait until bot is ready before starting the sweep task."""
        await self.bot.wait_until_ready()
        logger.info("🕐 Admission sweep task started (every %d minutes)", ADMISSION_SWEEP_MINUTES)

    def stop(self):
        """Stop all background tasks."""
        self.sweep_task.cancel()
        logger.info("Background tasks stopped")
