"""
Tests for the playback engine's queue model and error translation.
"""

import unittest
from unittest import mock

import discord

from utils.engine import (
    EngineError,
    GuildQueue,
    PlaybackEngine,
    RepeatMode,
    Song,
    format_duration,
    translate_download_error,
)
from utils.retry import ErrorKind, classify_error


def _song(name: str) -> Song:
    return Song(name=name, url=f"https://youtube.com/watch?v={name}", stream_url=f"https://cdn/{name}")


def _voice_client() -> mock.MagicMock:
    vc = mock.MagicMock()
    vc.is_connected.return_value = True
    vc.is_playing.return_value = True
    vc.is_paused.return_value = False
    return vc


def _no_ffmpeg():
    return mock.patch.multiple(
        "utils.engine.discord",
        FFmpegPCMAudio=mock.DEFAULT,
        PCMVolumeTransformer=mock.DEFAULT,
    )


class TestFormatDuration(unittest.TestCase):
    def test_minutes(self):
        self.assertEqual(format_duration(213), "3:33")

    def test_pads_seconds(self):
        self.assertEqual(format_duration(65), "1:05")

    def test_hours(self):
        self.assertEqual(format_duration(3725), "1:02:05")

    def test_zero_and_none(self):
        self.assertEqual(format_duration(0), "0:00")
        self.assertEqual(format_duration(None), "0:00")


class TestRepeatMode(unittest.TestCase):
    def test_parse_names(self):
        self.assertIs(RepeatMode.parse("off"), RepeatMode.OFF)
        self.assertIs(RepeatMode.parse("Song"), RepeatMode.SONG)
        self.assertIs(RepeatMode.parse("QUEUE"), RepeatMode.QUEUE)

    def test_parse_numbers(self):
        self.assertIs(RepeatMode.parse("0"), RepeatMode.OFF)
        self.assertIs(RepeatMode.parse("1"), RepeatMode.SONG)
        self.assertIs(RepeatMode.parse("2"), RepeatMode.QUEUE)

    def test_parse_invalid(self):
        self.assertIsNone(RepeatMode.parse("3"))
        self.assertIsNone(RepeatMode.parse("forever"))

    def test_label(self):
        self.assertEqual(RepeatMode.QUEUE.label, "Queue")


class TestSongFromInfo(unittest.TestCase):
    def test_fields(self):
        song = Song.from_info(
            {
                "title": "Despacito",
                "webpage_url": "https://youtube.com/watch?v=kJQP7kiw5Fk",
                "url": "https://stream",
                "duration": 282.4,
                "thumbnail": "https://img",
            }
        )
        self.assertEqual(song.name, "Despacito")
        self.assertEqual(song.duration, 282)
        self.assertEqual(song.formatted_duration, "4:42")
        self.assertIsNone(song.requester)

    def test_missing_stream_url(self):
        with self.assertRaises(EngineError):
            Song.from_info({"title": "x"})


class TestGuildQueue(unittest.TestCase):
    def setUp(self):
        self.queue = GuildQueue(guild_id=1, songs=[_song("a"), _song("b"), _song("c")])

    def test_defaults(self):
        queue = GuildQueue(guild_id=1)
        self.assertEqual(queue.volume, 50)
        self.assertIs(queue.repeat_mode, RepeatMode.OFF)
        self.assertFalse(queue.autoplay)
        self.assertIsNone(queue.current)

    def test_advance_off(self):
        self.assertEqual(self.queue.advance().name, "b")
        self.assertEqual(self.queue.advance().name, "c")
        self.assertIsNone(self.queue.advance())
        self.assertEqual(self.queue.songs, [])

    def test_advance_song_repeat(self):
        self.queue.repeat_mode = RepeatMode.SONG
        self.assertEqual(self.queue.advance().name, "a")
        self.assertEqual(len(self.queue.songs), 3)

    def test_skip_overrides_song_repeat(self):
        self.queue.repeat_mode = RepeatMode.SONG
        self.assertEqual(self.queue.advance(skip=True).name, "b")
        self.assertEqual(len(self.queue.songs), 2)

    def test_advance_queue_repeat_rotates(self):
        self.queue.repeat_mode = RepeatMode.QUEUE
        self.assertEqual(self.queue.advance().name, "b")
        self.assertEqual([s.name for s in self.queue.songs], ["b", "c", "a"])


class TestTranslateDownloadError(unittest.TestCase):
    def test_rate_limited(self):
        err = translate_download_error(
            Exception("ERROR: Unable to download webpage: HTTP Error 429: Too Many Requests")
        )
        self.assertEqual(err.status_code, 429)
        self.assertEqual(err.message, "Unable to download webpage: HTTP Error 429: Too Many Requests")
        self.assertIs(classify_error(err).kind, ErrorKind.RATE_LIMITED)

    def test_unavailable(self):
        err = translate_download_error(Exception("ERROR: [youtube] abc: Video unavailable"))
        self.assertIsNone(err.status_code)
        self.assertIs(classify_error(err).kind, ErrorKind.OTHER)

    def test_other_http_status(self):
        err = translate_download_error(Exception("HTTP Error 403: Forbidden"))
        self.assertEqual(err.status_code, 403)
        self.assertIs(classify_error(err).kind, ErrorKind.OTHER)


class TestPlaybackEngine(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.bot = mock.MagicMock()
        self.engine = PlaybackEngine(self.bot, empty_leave_delay=0)

    async def test_play_propagates_search_failure_without_state(self):
        channel = mock.MagicMock()
        channel.guild.id = 7
        with mock.patch.object(
            self.engine, "_extract", side_effect=EngineError("Video unavailable")
        ):
            with self.assertRaises(EngineError):
                await self.engine.play(channel, "missing song", text_channel=mock.MagicMock())
        self.assertIsNone(self.engine.get_queue(7))
        channel.connect.assert_not_called()

    async def test_skip_without_queue(self):
        with self.assertRaises(EngineError):
            await self.engine.skip(1)

    async def test_set_repeat_mode_without_queue(self):
        with self.assertRaises(EngineError):
            self.engine.set_repeat_mode(1, RepeatMode.SONG)

    async def test_stop_dispatches_disconnect(self):
        queue = GuildQueue(guild_id=3, songs=[_song("a")])
        self.engine._queues[3] = queue
        await self.engine.stop(3)
        self.assertIsNone(self.engine.get_queue(3))
        self.assertEqual(queue.songs, [])
        self.bot.dispatch.assert_called_with("music_disconnect", queue)

    async def test_track_end_finishes_queue(self):
        queue = GuildQueue(guild_id=4, songs=[_song("a")])
        self.engine._queues[4] = queue
        self.engine._on_track_end(queue, None)
        self.bot.dispatch.assert_called_with("music_finish", queue)

    async def test_track_end_ignored_after_stop(self):
        queue = GuildQueue(guild_id=5, songs=[_song("a"), _song("b")])
        self.engine._on_track_end(queue, RuntimeError("stream closed"))
        self.assertEqual(len(queue.songs), 2)
        self.bot.dispatch.assert_not_called()

    async def test_stream_error_dispatched_and_queue_moves_on(self):
        vc = _voice_client()
        queue = GuildQueue(guild_id=6, voice_client=vc, songs=[_song("a"), _song("b")])
        self.engine._queues[6] = queue
        error = RuntimeError("403 Forbidden")
        with _no_ffmpeg():
            self.engine._on_track_end(queue, error)
        self.bot.dispatch.assert_any_call("music_error", queue, error)
        self.assertEqual(queue.current.name, "b")
        vc.play.assert_called_once()

    async def test_double_skip_while_stop_pending(self):
        vc = _voice_client()
        vc.is_playing.side_effect = [True, False]
        queue = GuildQueue(
            guild_id=8, voice_client=vc, songs=[_song("a"), _song("b"), _song("c")]
        )
        self.engine._queues[8] = queue

        self.assertEqual((await self.engine.skip(8)).name, "a")
        self.assertTrue(queue.ending)
        await self.engine.skip(8)
        vc.stop.assert_called_once()
        self.assertEqual([s.name for s in queue.songs], ["a", "b", "c"])

        # the stopped track's after-callback lands
        with _no_ffmpeg():
            self.engine._on_track_end(queue, None)
        self.assertFalse(queue.ending)
        self.assertEqual(queue.current.name, "b")
        vc.play.assert_called_once()

    async def test_play_connect_failure_leaves_no_queue(self):
        channel = mock.MagicMock()
        channel.guild.id = 9
        channel.connect = mock.AsyncMock(side_effect=discord.ClientException("timed out"))
        info = {"title": "Despacito", "url": "https://stream"}
        with mock.patch.object(self.engine, "_extract", mock.AsyncMock(return_value=info)):
            with self.assertRaises(discord.ClientException):
                await self.engine.play(channel, "despacito", text_channel=mock.MagicMock())
        self.assertIsNone(self.engine.get_queue(9))

    async def test_play_start_failure_drops_song(self):
        channel = mock.MagicMock()
        channel.guild.id = 10
        channel.connect = mock.AsyncMock(return_value=_voice_client())
        info = {"title": "Despacito", "url": "https://stream"}
        with mock.patch.object(self.engine, "_extract", mock.AsyncMock(return_value=info)), \
                mock.patch.object(
                    self.engine, "_start", side_effect=discord.ClientException("Not connected")
                ):
            with self.assertRaises(discord.ClientException):
                await self.engine.play(channel, "despacito", text_channel=mock.MagicMock())
        self.assertEqual(self.engine.get_queue(10).songs, [])


if __name__ == "__main__":
    unittest.main()
