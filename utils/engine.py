"""
Playback engine — yt-dlp search/extraction plus discord.py voice playback.

Owns the per-guild song queues and voice connections.  Lifecycle events
are published through ``bot.dispatch`` so cogs can render them:

    music_play_song(queue, song)   — a song started playing
    music_add_song(queue, song)    — a song was appended to a busy queue
    music_finish(queue)            — the queue ran out of songs
    music_empty(queue)             — every listener left the voice channel
    music_disconnect(queue)        — the bot left the voice channel
    music_error(queue, error)      — a track failed while streaming

System requirement:
    FFmpeg must be installed on the host system (e.g. ``apt install ffmpeg``).
"""

from __future__ import annotations

import asyncio
import enum
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import discord
import yt_dlp

from config.constants import DEFAULT_VOLUME, EMPTY_LEAVE_DELAY

if TYPE_CHECKING:
    from discord.ext import commands

logger = logging.getLogger(__name__)

# ── FFmpeg / yt-dlp options ──────────────────────────────────────────
FFMPEG_OPTIONS = {
    "before_options": "-reconnect 1 -reconnect_streamed 1 -reconnect_delay_max 5",
    "options": "-vn",
}

YTDL_OPTIONS: Dict[str, Any] = {
    "format": "bestaudio/best",
    "quiet": True,
    "no_warnings": True,
    "noplaylist": True,
    "default_search": "ytsearch",
    "source_address": "0.0.0.0",
    "cachedir": False,
}

HTTP_ERROR_PATTERN = re.compile(r"HTTP Error (\d{3})")


class EngineError(Exception):
    """Failure raised by the playback engine."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def translate_download_error(exc: Exception) -> EngineError:
    """Turn a yt-dlp ``DownloadError`` into an ``EngineError``.

    The HTTP status is recovered from messages such as
    ``"HTTP Error 429: Too Many Requests"``.
    """
    message = str(exc)
    if message.startswith("ERROR: "):
        message = message[len("ERROR: "):]
    match = HTTP_ERROR_PATTERN.search(message)
    status = int(match.group(1)) if match else None
    return EngineError(message, status_code=status)


def format_duration(seconds: float) -> str:
    """Format seconds as ``m:ss`` (or ``h:mm:ss`` for long tracks)."""
    seconds = int(max(0, seconds or 0))
    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


class RepeatMode(enum.IntEnum):
    OFF = 0
    SONG = 1
    QUEUE = 2

    @property
    def label(self) -> str:
        return self.name.title()

    @classmethod
    def parse(cls, raw: str) -> Optional["RepeatMode"]:
        """Parse ``off``/``song``/``queue`` or ``0``/``1``/``2``."""
        value = raw.strip().lower()
        if value.isdigit():
            try:
                return cls(int(value))
            except ValueError:
                return None
        return cls.__members__.get(value.upper())


# =====================================================================
#  Songs and queues
# =====================================================================

@dataclass
class Song:
    name: str
    url: str
    stream_url: str
    duration: int = 0
    thumbnail: str = ""
    requester: Optional[discord.abc.User] = None

    @property
    def formatted_duration(self) -> str:
        return format_duration(self.duration)

    @classmethod
    def from_info(
        cls, info: Dict[str, Any], requester: Optional[discord.abc.User] = None
    ) -> "Song":
        """Build a song from a yt-dlp info dict."""
        stream_url = info.get("url")
        if not stream_url:
            raise EngineError("No playable audio stream found for this song.")
        return cls(
            name=info.get("title") or "Unknown",
            url=info.get("webpage_url") or info.get("original_url") or "",
            stream_url=stream_url,
            duration=int(info.get("duration") or 0),
            thumbnail=info.get("thumbnail") or "",
            requester=requester,
        )


@dataclass
class GuildQueue:
    """Per-guild playback state. ``songs[0]`` is the current song."""

    guild_id: int
    text_channel: Optional[discord.abc.Messageable] = None
    voice_client: Optional[discord.VoiceClient] = None
    songs: List[Song] = field(default_factory=list)
    volume: int = DEFAULT_VOLUME
    repeat_mode: RepeatMode = RepeatMode.OFF
    autoplay: bool = False
    skip_requested: bool = False
    ending: bool = False  # stop() issued, after-callback still pending
    leave_task: Optional[asyncio.Task] = None

    @property
    def current(self) -> Optional[Song]:
        return self.songs[0] if self.songs else None

    def advance(self, *, skip: bool = False) -> Optional[Song]:
        """Move past the current song and return the next one to play.

        Song repeat replays the current song unless it is being skipped;
        queue repeat moves it to the back instead of dropping it.
        """
        if not self.songs:
            return None
        if self.repeat_mode is RepeatMode.SONG and not skip:
            return self.songs[0]
        finished = self.songs.pop(0)
        if self.repeat_mode is RepeatMode.QUEUE:
            self.songs.append(finished)
        return self.current

    def cancel_leave(self) -> None:
        if self.leave_task and not self.leave_task.done():
            self.leave_task.cancel()
        self.leave_task = None


# =====================================================================
#  Engine
# =====================================================================

class PlaybackEngine:
    """Resolve queries with yt-dlp and stream them into voice channels."""

    def __init__(
        self,
        bot: "commands.Bot",
        *,
        empty_leave_delay: float = EMPTY_LEAVE_DELAY,
        ytdl_options: Optional[Dict[str, Any]] = None,
    ):
        self.bot = bot
        self.empty_leave_delay = empty_leave_delay
        self._ytdl_options = dict(ytdl_options or YTDL_OPTIONS)
        self._queues: Dict[int, GuildQueue] = {}

    def get_queue(self, guild_id: int) -> Optional[GuildQueue]:
        return self._queues.get(guild_id)

    # ── Resolution ───────────────────────────────────────────────────

    async def _extract(self, query: str) -> Dict[str, Any]:
        def _search() -> Optional[Dict[str, Any]]:
            with yt_dlp.YoutubeDL(self._ytdl_options) as ydl:
                return ydl.extract_info(f"ytsearch1:{query}", download=False)

        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(None, _search)
        except yt_dlp.utils.DownloadError as exc:
            raise translate_download_error(exc) from exc

        if data and "entries" in data:
            data = next((e for e in data["entries"] if e), None)
        if not data:
            raise EngineError(f"No results found for '{query}'.")
        return data

    # ── Commands ─────────────────────────────────────────────────────

    async def play(
        self,
        voice_channel: discord.abc.Connectable,
        query: str,
        *,
        text_channel: discord.abc.Messageable,
        member: Optional[discord.Member] = None,
    ) -> Song:
        """Search for *query*, queue the best match, and start playback.

        A new queue is only registered once the voice connection succeeds,
        and the song is taken back out if playback cannot start, so a failed
        call leaves no trace and can simply be retried.
        """
        info = await self._extract(query)
        song = Song.from_info(info, requester=member)

        guild_id = voice_channel.guild.id
        queue = self._queues.get(guild_id)
        if queue is None:
            queue = GuildQueue(guild_id=guild_id)
            await self._connect(queue, voice_channel)
            self._queues[guild_id] = queue
            logger.info("Created queue for guild %d", guild_id)
        else:
            await self._connect(queue, voice_channel)

        queue.text_channel = text_channel
        queue.cancel_leave()
        queue.songs.append(song)

        if len(queue.songs) == 1:
            try:
                self._start(queue)
            except Exception:
                queue.songs.remove(song)
                raise
        else:
            self.bot.dispatch("music_add_song", queue, song)
        return song

    async def skip(self, guild_id: int) -> Song:
        """Stop the current song so the next one starts; return the skipped song."""
        queue = self._queues.get(guild_id)
        if queue is None or queue.current is None:
            raise EngineError("There is nothing playing.")
        if len(queue.songs) < 2 and queue.repeat_mode is not RepeatMode.QUEUE:
            raise EngineError("There is no up next song.")

        skipped = queue.current
        queue.skip_requested = True
        if queue.ending:
            # The stopped track's callback has not run yet; it will advance.
            return skipped
        if queue.voice_client and (
            queue.voice_client.is_playing() or queue.voice_client.is_paused()
        ):
            queue.ending = True
            queue.voice_client.stop()  # triggers _on_track_end
        else:
            self._on_track_end(queue, None)
        return skipped

    async def stop(self, guild_id: int) -> None:
        """Clear the queue and leave the voice channel."""
        queue = self._queues.pop(guild_id, None)
        if queue is None:
            return
        queue.cancel_leave()
        queue.songs.clear()

        voice_client = queue.voice_client
        queue.voice_client = None
        if voice_client:
            try:
                if voice_client.is_playing() or voice_client.is_paused():
                    voice_client.stop()
                await voice_client.disconnect(force=True)
            except (discord.ClientException, discord.HTTPException) as exc:
                logger.warning("Disconnect error for guild %d: %s", guild_id, exc)
        logger.info("Left voice channel in guild %d", guild_id)
        self.bot.dispatch("music_disconnect", queue)

    def set_repeat_mode(self, guild_id: int, mode: RepeatMode) -> RepeatMode:
        queue = self._queues.get(guild_id)
        if queue is None:
            raise EngineError("There is nothing playing.")
        queue.repeat_mode = mode
        return mode

    async def close(self) -> None:
        """Leave every voice channel (used on shutdown)."""
        for guild_id in list(self._queues):
            await self.stop(guild_id)

    # ── Voice channel presence ───────────────────────────────────────

    def handle_voice_state_update(self, member: discord.Member) -> None:
        """Start or cancel the empty-channel leave timer for *member*'s guild."""
        if member.bot:
            return
        queue = self._queues.get(member.guild.id)
        if queue is None or queue.voice_client is None or not queue.voice_client.is_connected():
            return

        humans = sum(1 for m in queue.voice_client.channel.members if not m.bot)
        if humans == 0:
            if queue.leave_task is None or queue.leave_task.done():
                self.bot.dispatch("music_empty", queue)
                queue.leave_task = asyncio.ensure_future(self._leave_when_empty(queue))
        else:
            queue.cancel_leave()

    async def _leave_when_empty(self, queue: GuildQueue) -> None:
        try:
            await asyncio.sleep(self.empty_leave_delay)
        except asyncio.CancelledError:
            return
        if self._queues.get(queue.guild_id) is queue:
            queue.leave_task = None
            await self.stop(queue.guild_id)

    # ── Internal: playback ───────────────────────────────────────────

    async def _connect(
        self, queue: GuildQueue, voice_channel: discord.abc.Connectable
    ) -> None:
        vc = queue.voice_client
        if vc and vc.is_connected():
            if vc.channel != voice_channel:
                await vc.move_to(voice_channel)
            return
        queue.voice_client = await voice_channel.connect()
        logger.info("Joined voice channel %s in guild %d", voice_channel, queue.guild_id)

    def _start(self, queue: GuildQueue) -> None:
        song = queue.current
        vc = queue.voice_client
        if song is None or vc is None or not vc.is_connected():
            return

        source = discord.PCMVolumeTransformer(
            discord.FFmpegPCMAudio(song.stream_url, **FFMPEG_OPTIONS),
            volume=queue.volume / 100,
        )
        loop = self.bot.loop
        vc.play(
            source,
            after=lambda e: loop.call_soon_threadsafe(self._on_track_end, queue, e),
        )
        logger.info("Playing '%s' in guild %d", song.name, queue.guild_id)
        self.bot.dispatch("music_play_song", queue, song)

    def _on_track_end(self, queue: GuildQueue, error: Optional[Exception]) -> None:
        queue.ending = False
        if error:
            logger.error("Playback error in guild %d: %s", queue.guild_id, error)
        if self._queues.get(queue.guild_id) is not queue:
            return  # stopped
        if error:
            self.bot.dispatch("music_error", queue, error)

        skip = queue.skip_requested
        queue.skip_requested = False
        if queue.advance(skip=skip) is None:
            logger.info("Queue finished in guild %d", queue.guild_id)
            self.bot.dispatch("music_finish", queue)
            return
        self._start(queue)
