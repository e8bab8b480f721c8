import math
import random
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence
from castplayer.core.app_state import AppState
from castplayer.core.interfaces import AudioEngine
from castplayer.core.store import PlayerStore
from castplayer.core.utils import shuffled, track_list_equals
from castplayer.sonicast.errors import SonicastError
from castplayer.sonicast.player import AttachHandle, SonicastPlayer
from castplayer.sonicast.models import PlayerState, ReplayGainMode, Track


logger = logging.getLogger(__name__)

CLEAR_QUEUE_TIMEOUT = 2.0
RESTART_THRESHOLD = 3


class PlaybackTarget(ABC):
    """
    Цель воспроизведения: локальный движок или удалённый sonicast.

    Стор вызывает эти методы одинаково для обоих вариантов.
    """
    is_remote: bool = False
    url: Optional[str] = None

    def __init__(self, store: PlayerStore):
        self.store = store

    @abstractmethod
    async def attach(self) -> Any:
        """Подключает события цели к стору и возвращает handle для detach()."""

    @abstractmethod
    def detach(self, handle: Any): ...

    @abstractmethod
    async def teardown(self): ...

    def preload(self, track: Track):
        pass

    @abstractmethod
    async def play_now(self, tracks: Sequence[Track]): ...

    @abstractmethod
    async def shuffle_now(self, tracks: Sequence[Track]): ...

    @abstractmethod
    async def play_track_list_index(self, index: int): ...

    @abstractmethod
    async def play_track_list(self, tracks: Sequence[Track], index: Optional[int] = None): ...

    @abstractmethod
    async def resume(self): ...

    @abstractmethod
    async def pause(self): ...

    @abstractmethod
    async def next(self): ...

    @abstractmethod
    async def previous(self): ...

    @abstractmethod
    async def seek(self, pos: float): ...

    @abstractmethod
    async def load_queue(self): ...

    @abstractmethod
    async def reset_queue(self): ...

    @abstractmethod
    async def clear_queue(self): ...

    @abstractmethod
    async def add_to_queue(self, tracks: Sequence[Track]): ...

    @abstractmethod
    async def set_next_in_queue(self, tracks: Sequence[Track]): ...

    @abstractmethod
    async def remove_from_queue(self, index: int): ...

    @abstractmethod
    async def shuffle_queue(self): ...

    @abstractmethod
    async def set_replay_gain_mode(self, mode: ReplayGainMode): ...

    @abstractmethod
    async def set_repeat(self, flag: bool): ...

    @abstractmethod
    async def set_shuffle(self, flag: bool): ...

    @abstractmethod
    async def set_volume(self, volume: float): ...

    @abstractmethod
    async def set_playback_rate(self, rate: float): ...

    @abstractmethod
    async def load_player_state(self, state: PlayerState): ...

    @abstractmethod
    async def unload_player_state(self) -> PlayerState: ...


@dataclass(eq=False)
class AudioHandle:
    handlers: Dict[str, Callable] = field(default_factory=dict)
    released: bool = False


class LocalTarget(PlaybackTarget):
    """Воспроизведение через локальный движок: стор меняется сразу, синхронно с движком."""
    is_remote = False

    def __init__(self, store: PlayerStore, audio: AudioEngine, app_state: Optional[AppState] = None):
        super().__init__(store)
        self.audio = audio
        self.app_state = app_state or store.app_state

    def __repr__(self):
        return "LocalTarget()"

    async def attach(self) -> AudioHandle:
        handle = AudioHandle(handlers={
            "on_time_update": self._on_time_update,
            "on_duration_change": self._on_duration_change,
            "on_ended": self._on_ended,
            "on_pause": self._on_pause,
            "on_stream_title_change": self.store.set_stream_title,
            "on_error": self._on_error,
        })
        for name, callback in handle.handlers.items():
            setattr(self.audio, name, callback)

        try:
            await self._restore_audio_state()
        except Exception:
            self.detach(handle)
            raise
        return handle

    def detach(self, handle: AudioHandle):
        if handle.released:
            return
        for name, callback in handle.handlers.items():
            # Чужой обработчик, повешенный позже, не трогаем.
            if getattr(self.audio, name, None) == callback:
                setattr(self.audio, name, None)
        handle.released = True

    async def teardown(self):
        self.audio.stop()

    async def _restore_audio_state(self):
        s, prefs = self.store, self.store.preferences
        s.replay_gain_mode = prefs.replay_gain_mode
        s.volume = prefs.volume
        s.podcast_playback_rate = prefs.podcast_playback_rate

        self.audio.set_replay_gain_mode(s.replay_gain_mode)
        self.audio.set_volume(s.volume)
        track = s.track
        if track and track.url:
            await self.audio.change_track(track, paused=True, playback_rate=s.playback_rate)
        self.audio.set_playback_rate(s.playback_rate)

    # ---- engine events ----

    def _on_time_update(self, value: float):
        self.store.current_time = value

    def _on_duration_change(self, value: float):
        if math.isfinite(value):
            self.store.duration = value

    def _on_ended(self):
        s = self.store
        if s.has_next or s.repeat:
            return s.run_action("track_ended", s.next())
        return s.run_action("track_ended", s.reset_queue())

    def _on_pause(self):
        self.store._set_paused()

    def _on_error(self, error: Exception):
        self.store._set_paused()
        self.app_state.set_error(error)

    # ---- commands ----

    def preload(self, track: Track):
        self.audio.set_buffer(track.url)

    async def _change_track(self, paused: bool = False):
        s = self.store
        await self.audio.change_track(s.track, paused=paused, playback_rate=s.playback_rate)

    async def play_now(self, tracks: Sequence[Track]):
        await self.store.set_shuffle(False)
        await self.play_track_list(tracks, 0)

    async def shuffle_now(self, tracks: Sequence[Track]):
        await self.store.set_shuffle(True)
        await self.play_track_list(tracks)

    async def play_track_list_index(self, index: int):
        s = self.store
        s._set_queue_index(index)
        s._set_playing()
        await self._change_track()

    async def play_track_list(self, tracks: Sequence[Track], index: Optional[int] = None):
        s = self.store
        tracks = list(tracks)
        if not tracks:
            return
        if index is None:
            index = random.randrange(len(tracks)) if s.shuffle else 0
        if s.shuffle:
            tracks = shuffled(tracks, index)
            index = 0
        if not track_list_equals(s.queue or [], tracks):
            s._set_queue(tracks)
        s._set_queue_index(index)
        s._set_playing()
        await self._change_track()

    async def resume(self):
        await self.audio.resume()

    async def pause(self):
        self.audio.pause()

    async def next(self):
        s = self.store
        if not s.queue:
            return
        s._set_queue_index((s.queue_index + 1) % len(s.queue))
        s._set_playing()
        await self._change_track()

    async def previous(self):
        s = self.store
        if not s.queue:
            return
        restart = self.audio.current_time() > RESTART_THRESHOLD
        s._set_queue_index(s.queue_index if restart else s.queue_index - 1)
        s._set_playing()
        await self._change_track()

    async def seek(self, pos: float):
        if math.isfinite(self.store.duration):
            await self.audio.seek(pos)

    async def load_queue(self):
        s = self.store
        queue = await s.storage.get_play_queue()
        with s.persistence_suspended():
            s._set_queue(queue.tracks)
            s._set_queue_index(queue.current_index)
        s._set_paused()
        await self._change_track(paused=True)
        await self.audio.seek(queue.current_position)

    async def reset_queue(self):
        s = self.store
        s._set_queue_index(0)
        s._set_paused()
        await self._change_track(paused=True)

    async def clear_queue(self):
        s = self.store
        if not s.queue:
            return
        if len(s.queue) > 1:
            s._set_queue([s.queue[s.queue_index]])
            s._set_queue_index(0)
        else:
            s._set_queue([])
            s._set_queue_index(-1)
            s._set_paused()
            self.audio.stop()

    async def add_to_queue(self, tracks: Sequence[Track]):
        s = self.store
        if s.queue is None:
            s.queue = []
        s.queue.extend(shuffled(tracks) if s.shuffle else tracks)
        s._ensure_index()

    async def set_next_in_queue(self, tracks: Sequence[Track]):
        s = self.store
        if s.queue is None:
            s.queue = []
        position = s.queue_index + 1
        s.queue[position:position] = shuffled(tracks) if s.shuffle else list(tracks)
        s._ensure_index()

    async def remove_from_queue(self, index: int):
        s = self.store
        if not s.queue or not 0 <= index < len(s.queue):
            return
        del s.queue[index]
        if index < s.queue_index:
            s.queue_index -= 1
            s._ensure_index()
        elif index == s.queue_index:
            s._set_queue_index(s.queue_index)
            if not s.queue:
                s._set_paused()
                self.audio.stop()
        else:
            s._ensure_index()

    def _shuffle_around_current(self):
        s = self.store
        if s.queue:
            s.queue = shuffled(s.queue, s.queue_index)
            s.queue_index = 0
            s._queue_changed()

    async def shuffle_queue(self):
        self._shuffle_around_current()

    async def set_replay_gain_mode(self, mode: ReplayGainMode):
        self.audio.set_replay_gain_mode(mode)
        self.store.preferences.replay_gain_mode = mode

    async def set_repeat(self, flag: bool):
        self.store.preferences.repeat = flag

    async def set_shuffle(self, flag: bool):
        self.store.preferences.shuffle = flag
        if flag and self.store.track is not None:
            self._shuffle_around_current()

    async def set_volume(self, volume: float):
        self.audio.set_volume(volume)
        self.store.preferences.volume = volume

    async def set_playback_rate(self, rate: float):
        self.store.preferences.podcast_playback_rate = rate
        track = self.store.track
        if track and track.is_podcast:
            self.audio.set_playback_rate(rate)

    async def load_player_state(self, state: PlayerState):
        s = self.store
        s._set_queue(state.tracks)
        s._set_queue_index(state.index)
        # Очередь пришла уже в нужном порядке, перемешивать её нельзя.
        s.shuffle = state.shuffle
        s.preferences.shuffle = state.shuffle
        s.repeat = state.repeat
        s.preferences.repeat = state.repeat
        s._set_paused()
        await self._change_track(paused=True)
        await self.seek(state.time)
        if state.playing:
            s._set_playing()
            await self.audio.resume()

    async def unload_player_state(self) -> PlayerState:
        s = self.store
        state = PlayerState(
            tracks=list(s.queue or []),
            index=max(s.queue_index, 0),
            time=s.current_time,
            shuffle=s.shuffle,
            repeat=s.repeat,
            playing=s.is_playing,
        )

        with s.persistence_suspended():
            s._set_queue([])
            s._set_queue_index(-1)
        s._set_paused()
        self.audio.stop()
        return state


class RemoteTarget(PlaybackTarget):
    """Воспроизведение на sonicast: команды уходят на сервер, стор обновляют его события."""
    is_remote = True

    def __init__(self, store: PlayerStore, player: SonicastPlayer, url: str,
                 clear_queue_timeout: float = CLEAR_QUEUE_TIMEOUT):
        super().__init__(store)
        self.player = player
        self.url = url
        self.clear_queue_timeout = clear_queue_timeout

    def __repr__(self):
        return f"RemoteTarget({self.url!r})"

    async def attach(self) -> AttachHandle:
        s = self.store
        return self.player.attach(
            on_playback=s.apply_playback_event,
            on_queue=s.apply_play_queue,
            on_options=s.apply_options,
        )

    def detach(self, handle: AttachHandle):
        self.player.detach(handle)

    async def teardown(self):
        """Очищает очередь на сервере, чтобы он не продолжал играть в пустоту."""
        try:
            await asyncio.wait_for(self.player.clear_queue(), self.clear_queue_timeout)
        except (asyncio.TimeoutError, SonicastError) as e:
            logger.warning(f"Failed to clear queue on {self.url}: {e!r}")
        finally:
            await self.player.dispose()

    async def play_now(self, tracks: Sequence[Track]):
        await self.player.play_track_list(tracks, index=0, shuffle=False)

    async def shuffle_now(self, tracks: Sequence[Track]):
        await self.player.play_track_list(tracks, shuffle=True)

    async def play_track_list_index(self, index: int):
        await self.player.play_index(index)

    async def play_track_list(self, tracks: Sequence[Track], index: Optional[int] = None):
        await self.player.play_track_list(tracks, index=index)

    async def resume(self):
        await self.player.play()

    async def pause(self):
        await self.player.pause()

    async def next(self):
        await self.player.next()

    async def previous(self):
        await self.player.previous()

    async def seek(self, pos: float):
        if math.isfinite(self.store.duration):
            await self.player.seek(pos)

    async def load_queue(self):
        queue = await self.player.get_play_queue()
        self.store.apply_play_queue(queue)

    async def reset_queue(self):
        await self.player.reset_queue()

    async def clear_queue(self):
        await self.player.clear_queue()

    async def add_to_queue(self, tracks: Sequence[Track]):
        await self.player.add_to_queue(tracks)

    async def set_next_in_queue(self, tracks: Sequence[Track]):
        await self.player.set_next_in_queue(tracks)

    async def remove_from_queue(self, index: int):
        await self.player.remove_from_queue(index)

    async def shuffle_queue(self):
        await self.player.shuffle_queue()

    async def set_replay_gain_mode(self, mode: ReplayGainMode):
        await self.player.set_replay_gain_mode(mode)

    async def set_repeat(self, flag: bool):
        await self.player.set_repeat(flag)

    async def set_shuffle(self, flag: bool):
        await self.player.set_shuffle(flag)

    async def set_volume(self, volume: float):
        await self.player.set_volume(volume)

    async def set_playback_rate(self, rate: float):
        await self.player.set_playback_rate(rate)

    async def load_player_state(self, state: PlayerState):
        await self.player.load_player_state(state)

    async def unload_player_state(self) -> PlayerState:
        return await self.player.unload_player_state()
