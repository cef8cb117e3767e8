"""
Wave Discord Bot — Main entry point.
Loads configuration, initializes services, and starts the bot.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import discord
from aiohttp import web
from discord.ext import commands

from config.settings import Settings
from utils.admission import AdmissionGate
from utils.embedder import Embedder
from utils.engine import PlaybackEngine
from utils.playback import PlaybackService
from utils.retry import RetryExecutor
from utils.tasks import BackgroundTasks

# ── Logging ──────────────────────────────────────────────────────────
settings = Settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s │ %(levelname)-8s │ %(name)-20s │ %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("wave")

# ── Cog list ─────────────────────────────────────────────────────────
COGS = [
    "cogs.music",
]


# ── Bot subclass ─────────────────────────────────────────────────────
class WaveBot(commands.Bot):
    """Custom Bot with shared services attached."""

    def __init__(self, settings: Settings):
        intents = discord.Intents.default()
        intents.guilds = True
        intents.messages = True
        intents.message_content = True  # privileged: prefix commands need it
        intents.voice_states = True

        super().__init__(
            command_prefix=settings.command_prefix,
            intents=intents,
            help_command=None,  # replaced by the music cog's help
            case_insensitive=True,
        )

        self.settings = settings
        self.admission_gate = AdmissionGate(
            settings.cooldown, maxsize=settings.admission_cache_size
        )
        self.retry_executor = RetryExecutor(settings.retry_config())
        self.playback = PlaybackService(
            self.admission_gate,
            self.retry_executor,
            timeout=settings.playback_timeout,
        )
        self.engine = PlaybackEngine(self, empty_leave_delay=settings.empty_leave_delay)
        self.background_tasks: Optional[BackgroundTasks] = None
        self._health_runner: Optional[web.AppRunner] = None

    # ── Startup ──────────────────────────────────────────────────────

    async def setup_hook(self) -> None:
        """Called once when the bot starts. Load cogs and init services."""
        logger.info("Running setup_hook…")

        for cog_path in COGS:
            try:
                await self.load_extension(cog_path)
                logger.info("Loaded cog: %s", cog_path)
            except Exception as exc:
                logger.error("Failed to load cog %s: %s", cog_path, exc, exc_info=True)

        await self._start_health_server()
        self.background_tasks = BackgroundTasks(self)

    async def on_ready(self) -> None:
        logger.info("✨ %s is online! Guilds: %d", self.user, len(self.guilds))
        await self.change_presence(
            activity=discord.Game(name=f"to {self.settings.command_prefix}help")
        )

    # ── Shutdown ─────────────────────────────────────────────────────

    async def close(self) -> None:
        logger.info("Shutting down…")
        if self.background_tasks:
            self.background_tasks.stop()
        await self.engine.close()
        if self._health_runner:
            await self._health_runner.cleanup()
        await super().close()

    # ── Global Error Handler ─────────────────────────────────────────

    async def on_command_error(
        self, ctx: commands.Context, error: commands.CommandError
    ) -> None:
        prefix = self.settings.command_prefix
        if isinstance(error, commands.CommandNotFound):
            await ctx.reply(
                embed=Embedder.error(
                    "Unknown Command",
                    "That command doesn't exist!",
                    fields=[("💡 Need Help?", f"Use `{prefix}help` to see all available commands", False)],
                    footer="Check your spelling and try again",
                )
            )
            return
        if isinstance(error, commands.NoPrivateMessage):
            await ctx.send(
                embed=Embedder.error("Server Only", "Music commands only work inside a server.")
            )
            return
        if isinstance(error, commands.UserInputError):
            usage = f"`{prefix}{ctx.command.qualified_name} {ctx.command.signature}`" if ctx.command else ""
            await ctx.reply(embed=Embedder.warning("Invalid Usage", f"{error}\n{usage}".strip()))
            return

        original = getattr(error, "original", error)
        logger.error("Unhandled command error: %s", original, exc_info=original)
        await ctx.send(
            embed=Embedder.error(
                "Something went wrong",
                "An unexpected error occurred. Please try again later.",
            )
        )

    # ── Keep-alive HTTP Server ───────────────────────────────────────

    async def _start_health_server(self) -> None:
        """Start a tiny HTTP server so the host knows the bot is alive."""
        app = web.Application()
        app.router.add_get("/", self._root_handler)
        app.router.add_get("/health", self._health_handler)
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, "0.0.0.0", self.settings.port)
        await site.start()
        self._health_runner = runner
        logger.info("Bot is running on port %d", self.settings.port)

    async def _root_handler(self, _request: web.Request) -> web.Response:
        return web.Response(text="Music bot is running!")

    async def _health_handler(self, _request: web.Request) -> web.Response:
        return web.json_response(
            {
                "status": "ok",
                "bot": str(self.user),
                "guilds": len(self.guilds),
                "latency_ms": round(self.latency * 1000, 2),
                "tracked_guilds": len(self.admission_gate),
            }
        )


# ── Entry Point ──────────────────────────────────────────────────────
def main() -> None:
    errors = settings.validate()
    if errors:
        for e in errors:
            logger.critical("CONFIG ERROR: %s", e)
        sys.exit(1)

    bot = WaveBot(settings)

    try:
        bot.run(settings.discord_token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as exc:
        logger.critical("Bot crashed: %s", exc, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
