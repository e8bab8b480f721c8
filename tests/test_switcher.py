import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock
from castplayer.core.app_state import AppState
from castplayer.core.store import PlayerStore
from castplayer.core.switcher import TargetSwitchController
from castplayer.core.targets import LocalTarget, RemoteTarget
from castplayer.sonicast.errors import ChannelDisposed
from castplayer.sonicast.models import PlaybackEvent, PlayerState, PlayQueue
from castplayer.sonicast.player import SonicastPlayer
from tests.fakes import FakeAudio, make_track


X, Y, Z = (make_track(x) for x in "XYZ")


class TestTargetSwitchController(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.storage = MagicMock()
        self.storage.get_play_queue = AsyncMock(return_value=PlayQueue())
        self.storage.save_play_queue = AsyncMock()
        self.history = MagicMock()
        self.history.scrobble = AsyncMock()
        self.history.update_now_playing = AsyncMock()
        self.app_state = AppState()

        self.store = PlayerStore(self.storage, self.history, app_state=self.app_state)
        self.audio = FakeAudio()
        self.players = []
        self.controller = TargetSwitchController(
            self.store, self.audio, catalog=None,
            app_state=self.app_state,
            switch_timeout=0.2,
            player_factory=self.make_player,
        )
        await self.controller.start()

    async def asyncTearDown(self):
        await self.controller.stop()
        self.store.cancel_all_tasks()

    def make_player(self, url):
        player = MagicMock(spec=SonicastPlayer)
        player.get_play_queue.return_value = PlayQueue(tracks=[Z], current_index=0, current_position=4)
        player.unload_player_state.return_value = PlayerState(tracks=[Z], index=0, time=5, playing=True)
        self.players.append((url, player))
        return player

    async def switch(self, url):
        await asyncio.wait_for(self.controller.request(url), 2)

    async def test_starts_local(self):
        self.assertIsInstance(self.controller.target, LocalTarget)
        self.assertIs(self.store.target, self.controller.target)
        self.assertEqual(len(self.audio.wired_handlers), 6)
        self.assertIsNone(self.controller.current_url)

    async def test_transfer_local_to_remote(self):
        await self.store.play_track_list([X, Y], 0)
        self.audio.on_time_update(12)

        await self.switch("http://kitchen")

        url, player = self.players[0]
        self.assertEqual(url, "http://kitchen")
        player.load_player_state.assert_awaited_once()
        state = player.load_player_state.await_args.args[0]
        self.assertEqual([t.id for t in state.tracks], ["X", "Y"])
        self.assertEqual(state.index, 0)
        self.assertEqual(state.time, 12)
        self.assertTrue(state.playing)
        player.get_play_queue.assert_not_awaited()

        self.assertEqual(self.audio.wired_handlers, [])
        self.audio.stop.assert_called()
        self.assertIsInstance(self.store.target, RemoteTarget)
        self.assertEqual(self.controller.current_url, "http://kitchen")
        self.assertTrue(self.store.is_remote)

    async def test_paused_switch_fetches_remote_queue(self):
        await self.store.play_track_list([X, Y], 0)
        await self.store.pause()

        await self.switch("http://kitchen")

        _, player = self.players[0]
        player.load_player_state.assert_not_awaited()
        player.get_play_queue.assert_awaited_once()
        self.assertEqual(self.store.track_id, "Z")
        self.assertEqual(self.store.current_time, 4)

    async def test_transfer_remote_to_local(self):
        await self.switch("http://kitchen")
        _, player = self.players[0]
        self.store.apply_playback_event(PlaybackEvent(playing=True, position=5, duration=40))

        await self.switch(None)

        player.detach.assert_called_once()
        player.clear_queue.assert_awaited_once()
        player.dispose.assert_awaited_once()
        self.assertIsInstance(self.store.target, LocalTarget)
        self.assertEqual(len(self.audio.wired_handlers), 6)
        self.assertEqual(self.store.track_id, "Z")
        self.assertTrue(self.store.is_playing)
        self.audio.seek.assert_awaited_with(5)
        self.audio.resume.assert_awaited()

    async def test_remote_to_remote(self):
        await self.switch("http://kitchen")
        self.store.apply_playback_event(PlaybackEvent(playing=True))

        await self.switch("http://living")

        (_, kitchen), (_, living) = self.players
        kitchen.dispose.assert_awaited_once()
        living.load_player_state.assert_awaited_once_with(kitchen.unload_player_state.return_value)
        self.assertEqual(self.controller.current_url, "http://living")

    async def test_same_target_is_noop(self):
        await self.switch("http://kitchen")
        await self.switch("http://kitchen")
        self.assertEqual(len(self.players), 1)

    async def test_latest_request_wins(self):
        first = self.controller.request("http://kitchen")
        second = self.controller.request("http://living")
        await asyncio.wait_for(asyncio.gather(first, second), 2)

        self.assertEqual([url for url, _ in self.players], ["http://living"])
        self.assertEqual(self.controller.current_url, "http://living")

    async def test_unreachable_remote_does_not_block(self):
        await self.switch("http://kitchen")
        _, player = self.players[0]

        async def hang():
            await asyncio.sleep(10)

        player.unload_player_state.side_effect = hang
        player.clear_queue.side_effect = ChannelDisposed("gone")
        self.store.apply_playback_event(PlaybackEvent(playing=True))

        await self.switch(None)

        player.dispose.assert_awaited_once()
        self.assertIsInstance(self.store.target, LocalTarget)
        self.assertIsNone(self.app_state.error)
        self.audio.resume.assert_not_awaited()

    async def test_failed_switch_reports_error(self):
        error = RuntimeError("bad url")

        def broken_factory(url):
            raise error

        self.controller.player_factory = broken_factory
        await self.switch("http://nowhere")

        self.assertIs(self.app_state.error, error)
        self.assertIsNone(self.controller.target)

    async def test_failed_local_attach_leaves_engine_unwired(self):
        await self.switch("http://kitchen")
        self.store.apply_play_queue(PlayQueue(tracks=[X], current_index=0))
        self.audio.change_track.side_effect = RuntimeError("no output device")
        self.audio.stop.reset_mock()

        await self.switch(None)

        self.assertIsInstance(self.app_state.error, RuntimeError)
        self.assertIsNone(self.controller.target)
        self.assertIsNone(self.store.target)
        self.assertEqual(self.audio.wired_handlers, [])
        self.audio.stop.assert_called()

        self.audio.change_track.side_effect = None
        await self.switch("http://living")

        self.assertIsInstance(self.store.target, RemoteTarget)
        self.assertEqual(self.audio.wired_handlers, [])

    async def test_follows_app_state(self):
        self.app_state.sonicast_url = "http://kitchen"
        await asyncio.wait_for(self.controller.wait_tasks(), 2)

        self.assertEqual(self.controller.current_url, "http://kitchen")

    async def test_stop_releases_target(self):
        await self.controller.stop()

        self.assertIsNone(self.controller.target)
        self.assertIsNone(self.store.target)
        self.assertEqual(self.audio.wired_handlers, [])


if __name__ == '__main__':
    unittest.main()
