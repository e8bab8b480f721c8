import unittest
from castplayer.core.media_session import setup_media_session
from castplayer.core.store import NoPlaybackTarget
from tests.fakes import make_track
from tests.test_store import StoreTestCase


A, B = make_track("A"), make_track("B")


class TestMediaSession(StoreTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        setup_media_session(self.store, self.session)
        await self.store.play_track_list([A, B], 0)
        self.handlers = self.session.handlers

    async def test_registers_actions(self):
        self.assertEqual(set(self.handlers), {
            "play", "pause", "nexttrack", "previoustrack", "stop",
            "seekto", "seekforward", "seekbackward",
        })

    async def test_track_navigation(self):
        self.handlers["nexttrack"]({})
        await self.store.wait_tasks()
        self.assertEqual(self.store.track_id, "B")

        self.handlers["previoustrack"]({})
        await self.store.wait_tasks()
        self.assertEqual(self.store.track_id, "A")

    async def test_pause_and_play(self):
        self.handlers["pause"]({})
        await self.store.wait_tasks()
        self.assertFalse(self.store.is_playing)
        self.assertEqual(self.session.playback_state, "paused")
        self.audio.pause.assert_called_once()

        self.handlers["play"]({})
        await self.store.wait_tasks()
        self.assertTrue(self.store.is_playing)
        self.audio.resume.assert_awaited_once()

    async def test_seek_actions(self):
        self.audio.on_time_update(35)

        self.handlers["seekforward"]({})
        await self.store.wait_tasks()
        self.audio.seek.assert_awaited_with(40)

        self.handlers["seekbackward"]({"seekOffset": 5})
        await self.store.wait_tasks()
        self.audio.seek.assert_awaited_with(30)

        self.handlers["seekto"]({"seekTime": 12})
        await self.store.wait_tasks()
        self.audio.seek.assert_awaited_with(12)

        self.audio.seek.reset_mock()
        self.handlers["seekto"]({})
        await self.store.wait_tasks()
        self.audio.seek.assert_not_awaited()

    async def test_errors_go_to_app_state(self):
        self.store.use_target(None)

        self.handlers["nexttrack"]({})
        await self.store.wait_tasks()

        self.assertIsInstance(self.app_state.error, NoPlaybackTarget)


if __name__ == '__main__':
    unittest.main()
