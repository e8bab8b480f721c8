import unittest
from unittest.mock import AsyncMock, MagicMock, patch
from castplayer.sonicast.player import SonicastPlayer
from castplayer.sonicast.models import CommandName, PlayerState, PlayQueue, ReplayGainMode
from tests.fakes import make_track


class MockCatalog:
    def normalize_track(self, track):
        return track.model_copy(update={"url": f"https://music/stream?id={track.id}"})


class TestSonicastPlayer(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        patcher = patch("castplayer.sonicast.player.SonicastWebSocket")
        self.channel_cls = patcher.start()
        self.addCleanup(patcher.stop)

        self.channel = self.channel_cls.return_value
        self.channel.send = AsyncMock(return_value=None)
        self.channel.dispose = AsyncMock()
        self.player = SonicastPlayer(MockCatalog(), "http://kitchen:8090")

    async def test_get_play_queue_normalizes_tracks(self):
        self.channel.send.return_value = PlayQueue(tracks=[make_track("a"), make_track("b")], current_index=1)

        queue = await self.player.get_play_queue()

        self.channel.send.assert_awaited_once_with(CommandName.QUEUE)
        self.assertEqual([t.url for t in queue.tracks],
                         ["https://music/stream?id=a", "https://music/stream?id=b"])
        self.assertEqual(queue.current_index, 1)

    async def test_unload_player_state_normalizes_tracks(self):
        self.channel.send.return_value = PlayerState(tracks=[make_track("a")], index=0, time=3, playing=True)

        state = await self.player.unload_player_state()

        self.assertEqual(state.tracks[0].url, "https://music/stream?id=a")
        self.assertTrue(state.playing)

    async def test_play_track_list_params(self):
        tracks = [make_track("a"), make_track("b")]

        await self.player.play_track_list(tracks)
        self.channel.send.assert_awaited_with(CommandName.PLAY_TRACK_LIST, {"tracks": ["a", "b"]})

        await self.player.play_track_list(tracks, index=0, shuffle=False)
        self.channel.send.assert_awaited_with(
            CommandName.PLAY_TRACK_LIST, {"tracks": ["a", "b"], "index": 0, "shuffle": False}
        )

    async def test_command_params(self):
        await self.player.seek(30)
        self.channel.send.assert_awaited_with(CommandName.SEEK, {"pos": 30})

        await self.player.next()
        self.channel.send.assert_awaited_with(CommandName.SKIP_NEXT)

        await self.player.remove_from_queue(2)
        self.channel.send.assert_awaited_with(CommandName.REMOVE_FROM_QUEUE, {"index": 2})

        await self.player.set_next_in_queue([make_track("c")])
        self.channel.send.assert_awaited_with(CommandName.SET_NEXT_IN_QUEUE, {"tracks": ["c"]})

        await self.player.set_replay_gain_mode(ReplayGainMode.ALBUM)
        self.channel.send.assert_awaited_with(CommandName.REPLAY_GAIN_MODE, {"mode": "album"})

        await self.player.set_repeat(True)
        self.channel.send.assert_awaited_with(CommandName.SET_REPEAT, {"flag": True})

        await self.player.set_volume(0.25)
        self.channel.send.assert_awaited_with(CommandName.SET_VOLUME, {"volume": 0.25})

    async def test_load_player_state_uses_wire_names(self):
        state = PlayerState(tracks=[make_track("a", is_podcast=True)], index=0, time=12, playing=True)

        await self.player.load_player_state(state)

        name, param = self.channel.send.await_args.args
        self.assertEqual(name, CommandName.LOAD_PLAYER_STATE)
        self.assertEqual(param["time"], 12)
        self.assertTrue(param["tracks"][0]["isPodcast"])

    async def test_attach_normalizes_pushed_queue(self):
        subscriptions = {}

        def subscribe(event, callback):
            subscriptions[event] = callback
            return event

        self.channel.subscribe = MagicMock(side_effect=subscribe)
        received = []

        handle = self.player.attach(on_playback=MagicMock(), on_queue=received.append)

        self.assertEqual(set(subscriptions), {"playback", "queue"})
        subscriptions["queue"](PlayQueue(tracks=[make_track("a")], current_index=0))
        self.assertEqual(received[0].tracks[0].url, "https://music/stream?id=a")
        self.assertEqual(len(handle.subscriptions), 2)

    async def test_detach_is_idempotent(self):
        self.channel.subscribe = MagicMock(side_effect=lambda event, cb: event)
        self.channel.unsubscribe = MagicMock()
        handle = self.player.attach(on_playback=MagicMock(), on_options=MagicMock())

        self.player.detach(handle)
        self.player.detach(handle)

        self.assertEqual(self.channel.unsubscribe.call_count, 2)
        self.assertTrue(handle.released)

    async def test_dispose(self):
        await self.player.dispose()
        self.channel.dispose.assert_awaited_once()


if __name__ == '__main__':
    unittest.main()
