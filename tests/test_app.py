import unittest
from unittest.mock import AsyncMock, MagicMock, patch
from castplayer.app import Player
from castplayer.core.config import Config, SonicastTarget
from castplayer.core.targets import LocalTarget
from castplayer.sonicast.models import PlayQueue
from tests.fakes import FakeAudio, FakeMediaSession, make_track


class TestPlayer(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.config = Config(sonicast_targets=[SonicastTarget("Kitchen", "http://kitchen")])
        self.storage = MagicMock()
        self.storage.get_play_queue = AsyncMock(return_value=PlayQueue())
        self.storage.save_play_queue = AsyncMock()
        self.history = MagicMock()
        self.history.scrobble = AsyncMock()
        self.history.update_now_playing = AsyncMock()
        self.audio = FakeAudio()
        self.session = FakeMediaSession()

        self.player = Player(self.config, self.audio, catalog=None, storage=self.storage,
                             history=self.history, media_session=self.session)

    async def asyncTearDown(self):
        await self.player.close()

    async def test_start_local_and_register_media_keys(self):
        with patch("castplayer.app.find_playing_sonicast", AsyncMock(return_value=None)):
            await self.player.start()
            await self.player.store.wait_tasks()

        self.assertIsInstance(self.player.store.target, LocalTarget)
        self.assertIn("play", self.session.handlers)
        self.assertIsNone(self.player.app_state.sonicast_url)

    async def test_start_restores_saved_queue(self):
        a, b = make_track("A"), make_track("B")
        self.storage.get_play_queue.return_value = PlayQueue(tracks=[a, b], current_index=1, current_position=20)

        with patch("castplayer.app.find_playing_sonicast", AsyncMock(return_value=None)):
            await self.player.start()
            await self.player.store.wait_tasks()

        self.storage.get_play_queue.assert_awaited_once()
        self.assertEqual(self.player.store.queue, [a, b])
        self.assertEqual(self.player.store.track_id, "B")
        self.assertFalse(self.player.store.is_playing)
        self.audio.change_track.assert_awaited_with(b, paused=True, playback_rate=1.0)
        self.audio.seek.assert_awaited_with(20)
        self.storage.save_play_queue.assert_not_awaited()

    async def test_restore_failure_goes_to_error_slot(self):
        self.storage.get_play_queue.side_effect = ConnectionError("server down")

        with patch("castplayer.app.find_playing_sonicast", AsyncMock(return_value=None)):
            await self.player.start()

        self.assertIsInstance(self.player.app_state.error, ConnectionError)
        self.assertIsInstance(self.player.store.target, LocalTarget)

    async def test_joins_playing_sonicast(self):
        with patch("castplayer.app.find_playing_sonicast", AsyncMock(return_value="http://kitchen")):
            url = await self.player.select_playing_sonicast()

        self.assertEqual(url, "http://kitchen")
        self.assertEqual(self.player.app_state.sonicast_url, "http://kitchen")

    async def test_keeps_selected_target(self):
        self.player.select_target("http://living")

        with patch("castplayer.app.find_playing_sonicast", AsyncMock(return_value="http://kitchen")):
            await self.player.select_playing_sonicast()

        self.assertTrue(self.player.app_state.is_casting)
        self.assertEqual(self.player.app_state.sonicast_url, "http://living")

    async def test_does_not_interrupt_local_playback(self):
        with patch("castplayer.app.find_playing_sonicast", AsyncMock(return_value=None)):
            await self.player.start()
            await self.player.store.wait_tasks()
        await self.player.store.play_track_list([make_track("A")], 0)

        with patch("castplayer.app.find_playing_sonicast", AsyncMock(return_value="http://kitchen")):
            await self.player.select_playing_sonicast()

        self.assertIsNone(self.player.app_state.sonicast_url)
        self.assertIsInstance(self.player.store.target, LocalTarget)


if __name__ == '__main__':
    unittest.main()
