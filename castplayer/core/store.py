import time
import inspect
import logging
from contextlib import contextmanager
from typing import Any, Callable, Coroutine, Dict, List, Optional, Sequence, TYPE_CHECKING
from castplayer.core.app_state import AppState
from castplayer.core.mixins.task import BackgroundTaskMixin
from castplayer.core.settings_manager import SettingsProxy
from castplayer.core.schemas.settings import PlayerPreferences
from castplayer.core.interfaces import (
    ListeningHistory,
    MediaMetadata,
    MediaSession,
    PlayQueueStorage,
    PreferenceStorage,
)
from castplayer.sonicast.models import (
    PlaybackEvent,
    PlayerOptions,
    PlayerState,
    PlayQueue,
    ReplayGainMode,
    Track,
    format_artists,
)

if TYPE_CHECKING:
    from castplayer.core.targets import PlaybackTarget


logger = logging.getLogger(__name__)

SCROBBLE_RATIO = 0.7
SCROBBLE_MIN_DURATION = 30
QUEUE_SAVE_INTERVAL = 10.0


class NoPlaybackTarget(RuntimeError):
    pass


class PlayerStore(BackgroundTaskMixin):
    """
    Единственный источник правды о очереди и состоянии воспроизведения.

    Все команды делегируются текущей цели (LocalTarget или RemoteTarget),
    которую подставляет TargetSwitchController. Локальная цель меняет поля
    стора сразу, удалённая позже, через события сервера.
    """

    def __init__(self, storage: PlayQueueStorage, history: ListeningHistory,
                 preferences: Optional[PreferenceStorage] = None,
                 media_session: Optional[MediaSession] = None,
                 app_state: Optional[AppState] = None,
                 queue_save_interval: float = QUEUE_SAVE_INTERVAL):
        self.storage = storage
        self.history = history
        self.media_session = media_session
        self.app_state = app_state or AppState()
        self.queue_save_interval = queue_save_interval
        self._preference_storage = preferences

        prefs = PlayerPreferences.from_dict(preferences.load() if preferences else {})
        self.preferences = SettingsProxy(prefs, self._save_preferences)

        self.target: Optional["PlaybackTarget"] = None

        self.queue: Optional[List[Track]] = None
        self.queue_index = -1
        self.is_playing = False
        self.duration = 0.0
        self._current_time = 0.0
        self.stream_title: Optional[str] = None
        self.replay_gain_mode = prefs.replay_gain_mode
        self.repeat = prefs.repeat
        self.shuffle = prefs.shuffle
        self.volume = prefs.volume
        self.podcast_playback_rate = prefs.podcast_playback_rate
        self.scrobbled = False

        self._last_saved = time.monotonic()
        self._persistence_suspended = False
        self._callbacks: Dict[str, Callable[["PlayerStore"], Any]] = {}

    # ---- derived state ----

    @property
    def track(self) -> Optional[Track]:
        if self.queue and self.queue_index != -1:
            return self.queue[self.queue_index]
        return None

    @property
    def track_id(self) -> Optional[str]:
        track = self.track
        return track.id if track else None

    @property
    def progress(self) -> float:
        if self.current_time > -1 and self.duration > 0:
            return self.current_time / self.duration
        return 0

    @property
    def has_next(self) -> bool:
        return bool(self.queue) and self.queue_index < len(self.queue) - 1

    @property
    def has_previous(self) -> bool:
        return self.queue_index > 0

    @property
    def playback_rate(self) -> float:
        track = self.track
        return self.podcast_playback_rate if track and track.is_podcast else 1.0

    @property
    def is_remote(self) -> bool:
        return self.target is not None and self.target.is_remote

    @property
    def current_time(self) -> float:
        return self._current_time

    @current_time.setter
    def current_time(self, value: float):
        self._current_time = value
        self._check_scrobble()
        self._check_periodic_save()
        self._notify()

    # ---- listeners ----

    def register_callback(self, name: str, callback: Callable[["PlayerStore"], Any]):
        self._callbacks[name] = callback

    def unregister_callback(self, name: str):
        self._callbacks.pop(name, None)

    def _notify(self):
        for name, callback in list(self._callbacks.items()):
            try:
                res = callback(self)
                if inspect.iscoroutine(res):
                    self.start_task(f"listener:{name}", res)
            except Exception as e:
                logger.error(f"Store listener '{name}' failed: {e}")

    # ---- target plumbing ----

    def use_target(self, target: Optional["PlaybackTarget"]):
        self.target = target
        logger.info(f"Playback target: {target!r}")

    def _target(self) -> "PlaybackTarget":
        if self.target is None:
            raise NoPlaybackTarget("No playback target attached")
        return self.target

    def run_action(self, name: str, coro: Coroutine):
        """Запускает команду в фоне; ошибка уходит в слот ошибок приложения."""
        async def guarded():
            try:
                await coro
            except Exception as e:
                self.app_state.set_error(e)
        return self.start_task(name, guarded())

    # ---- commands ----

    async def play_now(self, tracks: Sequence[Track]):
        await self._target().play_now(tracks)

    async def shuffle_now(self, tracks: Sequence[Track]):
        await self._target().shuffle_now(tracks)

    async def play_track_list_index(self, index: int):
        await self._target().play_track_list_index(index)

    async def play_track_list(self, tracks: Sequence[Track], index: Optional[int] = None):
        await self._target().play_track_list(tracks, index)

    async def resume(self):
        self._set_playing()
        await self._target().resume()

    async def pause(self):
        self._set_paused()
        await self._target().pause()

    async def play_pause(self):
        if self.is_playing:
            return await self.pause()
        return await self.resume()

    async def next(self):
        await self._target().next()

    async def previous(self):
        await self._target().previous()

    async def seek(self, pos: float):
        await self._target().seek(pos)

    async def load_queue(self):
        await self._target().load_queue()

    async def reset_queue(self):
        await self._target().reset_queue()

    async def clear_queue(self):
        await self._target().clear_queue()

    async def add_to_queue(self, tracks: Sequence[Track]):
        await self._target().add_to_queue(tracks)

    async def set_next_in_queue(self, tracks: Sequence[Track]):
        await self._target().set_next_in_queue(tracks)

    async def remove_from_queue(self, index: int):
        await self._target().remove_from_queue(index)

    async def shuffle_queue(self):
        await self._target().shuffle_queue()

    async def toggle_replay_gain(self):
        mode = ReplayGainMode((self.replay_gain_mode + 1) % len(ReplayGainMode))
        self.replay_gain_mode = mode
        await self._target().set_replay_gain_mode(mode)

    async def toggle_repeat(self):
        self.repeat = not self.repeat
        await self._target().set_repeat(self.repeat)

    async def toggle_shuffle(self):
        await self.set_shuffle(not self.shuffle)

    async def set_shuffle(self, enable: bool):
        self.shuffle = enable
        await self._target().set_shuffle(enable)

    async def set_volume(self, value: float):
        self.volume = value
        await self._target().set_volume(value)

    async def set_playback_rate(self, value: float):
        self.podcast_playback_rate = value
        await self._target().set_playback_rate(value)

    async def load_player_state(self, state: PlayerState):
        logger.info(f"Loading player state: {len(state.tracks)} track(s), index {state.index}, {state.time:.1f}s")
        await self._target().load_player_state(state)

    async def unload_player_state(self) -> PlayerState:
        state = await self._target().unload_player_state()
        logger.info(f"Unloaded player state: {len(state.tracks)} track(s), index {state.index}")
        return state

    # ---- remote push events ----

    def apply_playback_event(self, event: PlaybackEvent):
        self.is_playing = event.playing
        self.duration = event.duration or 0
        self.current_time = event.position or 0

    def apply_play_queue(self, queue: PlayQueue):
        self._set_queue(queue.tracks)
        self._set_queue_index(queue.current_index)
        self.current_time = queue.current_position

    def apply_options(self, options: PlayerOptions):
        self.volume = options.volume
        self.repeat = options.repeat
        self.shuffle = options.shuffle
        self.replay_gain_mode = ReplayGainMode.from_wire(options.replay_gain)
        self._notify()

    # ---- mutations ----

    def _set_playing(self):
        self.is_playing = True
        if self.media_session:
            self.media_session.playback_state = "playing"
        self._notify()

    def _set_paused(self):
        self.is_playing = False
        if self.media_session:
            self.media_session.playback_state = "paused"
        self._notify()

    def _set_queue(self, queue: Sequence[Track]):
        self.queue = list(queue)
        self.queue_index = -1

    def _set_queue_index(self, index: int):
        previous_track_id = self.track_id

        if not self.queue:
            self.queue_index = -1
            self.scrobbled = False
            self.duration = 0
            if self.media_session:
                self.media_session.metadata = None
                self.media_session.playback_state = "none"
            self._queue_changed()
            return

        index = max(0, min(index, len(self.queue) - 1))
        self.queue_index = index
        self.scrobbled = False
        track = self.queue[index]
        self.duration = track.duration

        if self.target is not None:
            self.target.preload(self.queue[(index + 1) % len(self.queue)])

        if self.media_session:
            self.media_session.metadata = MediaMetadata(
                title=track.title,
                artist=format_artists(track.artists),
                album=track.album,
                artwork=track.image,
            )

        if track.id != previous_track_id:
            self._report_now_playing(track)
        self._queue_changed()

    def _ensure_index(self):
        """После правки очереди индекс должен указывать в неё (или быть -1 для пустой)."""
        if not self.queue:
            if self.queue_index != -1:
                self._set_queue_index(-1)
            else:
                self._queue_changed()
        elif not 0 <= self.queue_index < len(self.queue):
            self._set_queue_index(self.queue_index)
        else:
            self._queue_changed()

    def set_stream_title(self, value: Optional[str]):
        self.stream_title = value
        if value and self.media_session and self.media_session.metadata:
            self.media_session.metadata.title = value
        self._notify()

    # ---- side effects ----

    @contextmanager
    def persistence_suspended(self):
        self._persistence_suspended = True
        try:
            yield
        finally:
            self._persistence_suspended = False

    def _queue_changed(self):
        self._last_saved = time.monotonic()
        if not self._persistence_suspended:
            self._save_play_queue()
        self._notify()

    def _check_periodic_save(self):
        now = time.monotonic()
        if now - self._last_saved >= self.queue_save_interval:
            self._last_saved = now
            self._save_play_queue()

    def _save_play_queue(self):
        if self.is_remote or self.queue is None:
            return
        self.start_task("save_play_queue", self._call_history(
            "save play queue", self.storage.save_play_queue, list(self.queue), self.track, self.current_time
        ))

    def _check_scrobble(self):
        track = self.track
        if (
            track is None
            or self.scrobbled
            or self.duration <= SCROBBLE_MIN_DURATION
            or self.current_time / self.duration <= SCROBBLE_RATIO
            or track.is_stream
        ):
            return

        self.scrobbled = True
        if not self.is_remote:
            logger.info(f"Scrobbling track {track.id}")
            self.start_task(f"scrobble:{track.id}", self._call_history("scrobble", self.history.scrobble, track.id))

    def _report_now_playing(self, track: Track):
        if track.is_stream or self.is_remote:
            return
        self.start_task("now_playing", self._call_history(
            "update now playing", self.history.update_now_playing, track.id
        ))

    async def _call_history(self, what: str, func: Callable[..., Coroutine], *args):
        try:
            await func(*args)
        except Exception as e:
            logger.error(f"Failed to {what}: {e}")

    def _save_preferences(self, prefs: PlayerPreferences):
        if self._preference_storage is None:
            return
        try:
            self._preference_storage.save(prefs.to_dict())
        except Exception as e:
            logger.error(f"Failed to save player preferences: {e}")
