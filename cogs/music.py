"""
Music Cog — prefix commands and event embeds for voice playback.

Commands (default prefix ``w!``):
    play / p <song>     — Search YouTube and play or queue a song
    stop                — Stop music, clear the queue, and leave VC
    skip / s            — Skip the current song
    queue / q           — Show the current queue
    loop / repeat [m]   — Show or set loop mode (off / song / queue)
    nowplaying / np     — Show the current song
    help                — Show this command list

``play`` goes through the bot's ``PlaybackService``: one request per
server per cooldown window, with automatic backoff when the music source
rate limits us.  Everything here is presentation; the service and engine
never build user-facing text.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional

import discord
from discord.ext import commands

from config.constants import (
    BOT_COLOR,
    BOT_INFO_COLOR,
    BOT_MUTED_COLOR,
    BOT_SUCCESS_COLOR,
    BOT_WARN_COLOR,
    BRAND,
    MAX_ERROR_SNIPPET,
    MAX_STREAM_ERROR,
    QUEUE_DISPLAY_LIMIT,
)
from utils.embedder import Embedder
from utils.engine import EngineError, GuildQueue, RepeatMode, Song
from utils.platform_resolver import is_music_url
from utils.playback import OutcomeStatus
from utils.retry import ErrorKind

if TYPE_CHECKING:
    from bot import WaveBot

logger = logging.getLogger(__name__)

# ── Colours ──────────────────────────────────────────────────────────
NOW_PLAYING_COLOR = 0xFF6B6B
PLAYLIST_COLOR = 0xA8E6CF
NP_DETAIL_COLOR = 0xE74C3C


# =====================================================================
#  Embed builders
# =====================================================================

def _requester(song: Song) -> str:
    return song.requester.mention if song.requester else "Unknown"


def _song_link(song: Song) -> str:
    return f"**[{song.name}]({song.url})**" if song.url else f"**{song.name}**"


def _now_playing_embed(queue: GuildQueue, song: Song) -> discord.Embed:
    position = queue.songs.index(song) + 1 if song in queue.songs else 1
    return Embedder.standard(
        "🎵 Now Playing",
        _song_link(song),
        color=NOW_PLAYING_COLOR,
        fields=[
            ("⏱️ Duration", f"`{song.formatted_duration}`", True),
            ("👤 Requested by", _requester(song), True),
            ("📍 Position", f"`{position}/{len(queue.songs)}`", True),
        ],
        footer=f"🔊 Volume: {queue.volume}% • 🎶 Queue: {len(queue.songs)} songs",
        thumbnail=song.thumbnail or None,
    )


def _song_added_embed(queue: GuildQueue, song: Song) -> discord.Embed:
    return Embedder.standard(
        "✅ Song Added to Queue",
        _song_link(song),
        color=BOT_SUCCESS_COLOR,
        fields=[
            ("⏱️ Duration", f"`{song.formatted_duration}`", True),
            ("👤 Requested by", _requester(song), True),
            ("🔢 Position", f"`#{len(queue.songs)}`", True),
        ],
        footer=f"🎵 Total songs in queue: {len(queue.songs)}",
        thumbnail=song.thumbnail or None,
    )


def _queue_embed(queue: GuildQueue, prefix: str) -> discord.Embed:
    current = queue.songs[0]
    fields = [
        (
            "🎵 Now Playing",
            f"{_song_link(current)}\n⏱️ Duration: `{current.formatted_duration}` | 👤 {_requester(current)}",
            False,
        )
    ]

    upcoming = queue.songs[1:QUEUE_DISPLAY_LIMIT + 1]
    if upcoming:
        lines = [
            f"**{i}.** {_song_link(s)}\n⏱️ `{s.formatted_duration}` | 👤 {_requester(s)}"
            for i, s in enumerate(upcoming, 1)
        ]
        # Field values are capped at 1024 characters
        fields.append(("📋 Up Next", "\n\n".join(lines)[:1024], False))

        hidden = len(queue.songs) - QUEUE_DISPLAY_LIMIT - 1
        if hidden > 0:
            footer = f"And {hidden} more songs... | Total: {len(queue.songs)} songs"
        else:
            footer = f"Total: {len(queue.songs)} songs in queue"
    else:
        footer = f"Add more songs with {prefix}play"

    fields.extend(
        [
            ("🔊 Volume", f"`{queue.volume}%`", True),
            ("🔁 Loop", f"`{queue.repeat_mode.label}`", True),
            ("🎲 Autoplay", "`On`" if queue.autoplay else "`Off`", True),
        ]
    )
    return Embedder.standard("🎵 Music Queue", color=BOT_COLOR, fields=fields, footer=footer)


def _help_embed(prefix: str) -> discord.Embed:
    p = prefix
    return Embedder.standard(
        "🎵 Music Bot Commands",
        "Here are all the available commands to control your music experience!",
        color=BOT_INFO_COLOR,
        fields=[
            (
                "🎵 Music Controls",
                f"`{p}play <song_title>` - Play a song from YouTube\n"
                f"`{p}stop` - Stop music and clear queue\n"
                f"`{p}skip` - Skip the current song",
                False,
            ),
            (
                "📋 Queue Management",
                f"`{p}queue` - Show the current queue\n"
                f"`{p}nowplaying` - Show current song info",
                False,
            ),
            ("🔁 Playback Options", f"`{p}loop <off/song/queue>` - Set loop mode", False),
            (
                "💡 Tips",
                f"• You can use `{p}p` as a shortcut for `{p}play`\n"
                f"• You can use `{p}s` as a shortcut for `{p}skip`\n"
                f"• You can use `{p}q` as a shortcut for `{p}queue`\n"
                f"• You can use `{p}np` as a shortcut for `{p}nowplaying`",
                False,
            ),
        ],
        footer=f"{BRAND} | Join a voice channel to get started!",
    )


def _nothing_playing_embed(prefix: str) -> discord.Embed:
    return Embedder.standard(
        "❌ Nothing Playing",
        "There's no music currently playing!",
        color=BOT_WARN_COLOR,
        footer=f"Use {prefix}play to start playing music",
    )


def _stream_error_embed(error: Exception) -> discord.Embed:
    return Embedder.error(
        "Error Occurred",
        f"```{str(error)[:MAX_STREAM_ERROR]}```",
        footer="Please try again or contact support if the issue persists",
    )


def _examples(prefix: str, titles: List[str]) -> str:
    return "\n".join(f"`{prefix}play {t}`" for t in titles)


# =====================================================================
#  Cog
# =====================================================================

class MusicCog(commands.Cog, name="Music"):
    """Voice channel music playback."""

    def __init__(self, bot: WaveBot) -> None:
        self.bot = bot

    @property
    def prefix(self) -> str:
        return self.bot.settings.command_prefix

    async def cog_check(self, ctx: commands.Context) -> bool:
        if ctx.guild is None:
            raise commands.NoPrivateMessage()
        return True

    async def cog_unload(self) -> None:
        await self.bot.engine.close()

    async def _send_event(self, queue: GuildQueue, embed: discord.Embed) -> None:
        if queue.text_channel is None:
            return
        try:
            await queue.text_channel.send(embed=embed)
        except discord.HTTPException as exc:
            logger.warning("Could not send music event to guild %d: %s", queue.guild_id, exc)

    # ── play ─────────────────────────────────────────────────────────

    @commands.command(name="play", aliases=["p"])
    async def play_cmd(self, ctx: commands.Context, *, query: Optional[str] = None) -> None:
        """Play a song by title and artist."""
        p = self.prefix
        voice = getattr(ctx.author, "voice", None)
        if voice is None or voice.channel is None:
            await ctx.reply(
                embed=Embedder.error(
                    "Voice Channel Required",
                    "You need to be in a voice channel to play music!",
                    footer="Join a voice channel and try again",
                )
            )
            return

        query = (query or "").strip()
        if not query:
            await ctx.reply(
                embed=Embedder.warning(
                    "Song Required",
                    "Please provide a song name and artist!",
                    fields=[
                        (
                            "✅ Correct Usage",
                            _examples(p, ["Never Gonna Give You Up - Rick Astley", "Bohemian Rhapsody Queen", "Despacito"]),
                            False,
                        )
                    ],
                    footer="Song titles only - No URLs allowed!",
                )
            )
            return

        if is_music_url(query):
            await ctx.reply(
                embed=Embedder.error(
                    "URLs Not Allowed",
                    "Please do not use URLs! Only provide the song title and artist name.",
                    fields=[
                        (
                            "❌ What NOT to do",
                            f"`{p}play https://youtube.com/watch?v=...`\n`{p}play https://spotify.com/track/...`\n`{p}play youtu.be/...`",
                            False,
                        ),
                        (
                            "✅ What TO do instead",
                            _examples(p, ["Never Gonna Give You Up - Rick Astley", "Bohemian Rhapsody Queen", "Shape of You Ed Sheeran"]),
                            False,
                        ),
                        (
                            "💡 Why?",
                            "Using song titles ensures better search results and prevents broken links!",
                            False,
                        ),
                    ],
                    footer="Try again with just the song title and artist name",
                )
            )
            return

        async with ctx.typing():
            outcome = await self.bot.playback.request(
                ctx.guild.id,
                lambda: self.bot.engine.play(
                    voice.channel,
                    query,
                    text_channel=ctx.channel,
                    member=ctx.author,
                ),
                context=f"play:{ctx.guild.id}",
            )

        if outcome.status is OutcomeStatus.REJECTED:
            await ctx.reply(embed=Embedder.rate_limited(outcome.retry_after))
            return
        if outcome.status is OutcomeStatus.FAILED:
            if outcome.error_kind is ErrorKind.RATE_LIMITED:
                await ctx.send(embed=Embedder.service_busy())
                return
            snippet = str(outcome.error)[:MAX_ERROR_SNIPPET]
            await ctx.send(
                embed=Embedder.error(
                    "Playback Error",
                    f"Unable to find or play the requested song: `{snippet}...`",
                    fields=[
                        (
                            "💡 Troubleshooting Tips",
                            "• Check your spelling\n• Try adding the artist name\n"
                            "• Use more specific search terms\n• Make sure the song exists on YouTube",
                            False,
                        )
                    ],
                    footer=f"Example: {p}play Despacito Luis Fonsi",
                )
            )

    # ── stop ─────────────────────────────────────────────────────────

    @commands.command(name="stop")
    async def stop_cmd(self, ctx: commands.Context) -> None:
        """Stop music and clear the queue."""
        if self.bot.engine.get_queue(ctx.guild.id) is None:
            await ctx.reply(embed=_nothing_playing_embed(self.prefix))
            return
        await self.bot.engine.stop(ctx.guild.id)

    # ── skip ─────────────────────────────────────────────────────────

    @commands.command(name="skip", aliases=["s"])
    async def skip_cmd(self, ctx: commands.Context) -> None:
        """Skip the current song."""
        p = self.prefix
        queue = self.bot.engine.get_queue(ctx.guild.id)
        if queue is None or queue.current is None:
            await ctx.reply(embed=_nothing_playing_embed(p))
            return

        if len(queue.songs) == 1:
            await ctx.reply(
                embed=Embedder.standard(
                    "❌ No Next Song",
                    "There are no more songs in the queue to skip to!",
                    color=BOT_WARN_COLOR,
                    footer=f"Add more songs with {p}play",
                )
            )
            return

        try:
            skipped = await self.bot.engine.skip(ctx.guild.id)
        except EngineError as exc:
            logger.warning("Skip failed in guild %d: %s", ctx.guild.id, exc)
            await ctx.send(
                embed=Embedder.error("Skip Error", "Unable to skip the current song!", footer="Please try again")
            )
            return

        await ctx.send(
            embed=Embedder.standard(
                "⏭️ Song Skipped",
                f"Skipped {_song_link(skipped)}",
                color=BOT_SUCCESS_COLOR,
                footer=f"{max(len(queue.songs) - 1, 0)} songs remaining in queue",
                thumbnail=skipped.thumbnail or None,
            )
        )

    # ── queue ────────────────────────────────────────────────────────

    @commands.command(name="queue", aliases=["q"])
    async def queue_cmd(self, ctx: commands.Context) -> None:
        """Show the current queue."""
        p = self.prefix
        queue = self.bot.engine.get_queue(ctx.guild.id)
        if queue is None or not queue.songs:
            await ctx.reply(
                embed=Embedder.standard(
                    "📭 Empty Queue",
                    "The music queue is currently empty!",
                    color=BOT_WARN_COLOR,
                    fields=[("💡 Get Started", f"Use `{p}play <song name>` to add songs to the queue!", False)],
                    footer="Add some music to get the party started!",
                )
            )
            return
        await ctx.send(embed=_queue_embed(queue, p))

    # ── loop ─────────────────────────────────────────────────────────

    @commands.command(name="loop", aliases=["repeat"])
    async def loop_cmd(self, ctx: commands.Context, mode: Optional[str] = None) -> None:
        """Show or set the loop mode."""
        p = self.prefix
        queue = self.bot.engine.get_queue(ctx.guild.id)
        if queue is None:
            await ctx.reply(embed=_nothing_playing_embed(p))
            return

        if not mode:
            await ctx.reply(
                embed=Embedder.standard(
                    "🔁 Loop Status",
                    f"Current loop mode: **{queue.repeat_mode.label}**",
                    fields=[("💡 Usage", f"`{p}loop [off/song/queue]`", False)],
                    footer="Choose your preferred loop mode",
                )
            )
            return

        repeat_mode = RepeatMode.parse(mode)
        if repeat_mode is None:
            await ctx.reply(
                embed=Embedder.error(
                    "Invalid Loop Mode",
                    "Please use a valid loop mode!",
                    fields=[("✅ Valid Options", "`off` • `song` • `queue`", False)],
                    footer=f"Example: {p}loop song",
                )
            )
            return

        self.bot.engine.set_repeat_mode(ctx.guild.id, repeat_mode)
        await ctx.send(
            embed=Embedder.standard(
                "🔁 Loop Mode Updated",
                f"Loop mode set to: **{repeat_mode.label}**",
                color=BOT_SUCCESS_COLOR,
                footer="Enjoy your music!",
            )
        )

    # ── nowplaying ───────────────────────────────────────────────────

    @commands.command(name="nowplaying", aliases=["np"])
    async def nowplaying_cmd(self, ctx: commands.Context) -> None:
        """Show the current song."""
        queue = self.bot.engine.get_queue(ctx.guild.id)
        if queue is None or queue.current is None:
            await ctx.reply(embed=_nothing_playing_embed(self.prefix))
            return

        song = queue.current
        await ctx.send(
            embed=Embedder.standard(
                "🎵 Now Playing",
                _song_link(song),
                color=NP_DETAIL_COLOR,
                fields=[
                    ("⏱️ Duration", f"`{song.formatted_duration}`", True),
                    ("👤 Requested by", _requester(song), True),
                    ("🔊 Volume", f"`{queue.volume}%`", True),
                ],
                footer=f"Queue: {len(queue.songs)} songs • Loop: {queue.repeat_mode.label}",
                thumbnail=song.thumbnail or None,
            )
        )

    # ── help ─────────────────────────────────────────────────────────

    @commands.command(name="help")
    async def help_cmd(self, ctx: commands.Context) -> None:
        """Show the command list."""
        await ctx.send(embed=_help_embed(self.prefix))

    # ── Engine events ────────────────────────────────────────────────

    @commands.Cog.listener()
    async def on_music_play_song(self, queue: GuildQueue, song: Song) -> None:
        await self._send_event(queue, _now_playing_embed(queue, song))

    @commands.Cog.listener()
    async def on_music_add_song(self, queue: GuildQueue, song: Song) -> None:
        await self._send_event(queue, _song_added_embed(queue, song))

    @commands.Cog.listener()
    async def on_music_finish(self, queue: GuildQueue) -> None:
        await self._send_event(
            queue,
            Embedder.standard(
                "🎉 Queue Finished",
                "All songs have been played! Add more songs to continue the party!",
                color=PLAYLIST_COLOR,
                footer=f"Use {self.prefix}play to add more music",
            ),
        )

    @commands.Cog.listener()
    async def on_music_error(self, queue: GuildQueue, error: Exception) -> None:
        await self._send_event(queue, _stream_error_embed(error))

    @commands.Cog.listener()
    async def on_music_empty(self, queue: GuildQueue) -> None:
        delay = int(self.bot.engine.empty_leave_delay)
        await self._send_event(
            queue,
            Embedder.standard(
                "📭 Voice Channel Empty",
                f"The voice channel is empty! I'll leave in {delay} seconds...",
                color=BOT_WARN_COLOR,
                footer="Join the voice channel to continue listening",
            ),
        )

    @commands.Cog.listener()
    async def on_music_disconnect(self, queue: GuildQueue) -> None:
        await self._send_event(
            queue,
            Embedder.standard(
                "👋 Disconnected",
                "Successfully disconnected from the voice channel!",
                color=BOT_MUTED_COLOR,
                footer="Thanks for using the music bot!",
            ),
        )

    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        """Leave after a delay when every listener has left the channel."""
        self.bot.engine.handle_voice_state_update(member)


# =====================================================================
#  Setup
# =====================================================================

async def setup(bot: WaveBot) -> None:
    await bot.add_cog(MusicCog(bot))
