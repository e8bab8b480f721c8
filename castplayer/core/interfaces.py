from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, runtime_checkable
from castplayer.sonicast.models import PlayQueue, ReplayGainMode, Track


@runtime_checkable
class CatalogClient(Protocol):
    def normalize_track(self, track: Track) -> Track: ...


@runtime_checkable
class PlayQueueStorage(Protocol):
    async def get_play_queue(self) -> PlayQueue: ...

    async def save_play_queue(self, tracks: List[Track], current_track: Optional[Track],
                              position: float) -> None: ...


@runtime_checkable
class ListeningHistory(Protocol):
    async def scrobble(self, track_id: str) -> None: ...

    async def update_now_playing(self, track_id: str) -> None: ...


@runtime_checkable
class PreferenceStorage(Protocol):
    def load(self) -> dict: ...

    def save(self, data: dict) -> None: ...


class AudioEngine(Protocol):
    """
    Локальный движок воспроизведения.

    События отдаются через атрибуты-колбэки; None означает, что обработчик
    не подключён.
    """
    on_time_update: Optional[Callable[[float], Any]]
    on_duration_change: Optional[Callable[[float], Any]]
    on_ended: Optional[Callable[[], Any]]
    on_pause: Optional[Callable[[], Any]]
    on_stream_title_change: Optional[Callable[[Optional[str]], Any]]
    on_error: Optional[Callable[[Exception], Any]]

    async def change_track(self, track: Optional[Track], paused: bool = False,
                           playback_rate: float = 1.0) -> None: ...

    async def resume(self) -> None: ...

    def pause(self) -> None: ...

    def stop(self) -> None: ...

    async def seek(self, pos: float) -> None: ...

    def current_time(self) -> float: ...

    def set_buffer(self, url: Optional[str]) -> None: ...

    def set_volume(self, volume: float) -> None: ...

    def set_replay_gain_mode(self, mode: ReplayGainMode) -> None: ...

    def set_playback_rate(self, rate: float) -> None: ...


@dataclass
class MediaMetadata:
    title: str
    artist: str = ""
    album: Optional[str] = None
    artwork: Optional[str] = None


class MediaSession(Protocol):
    playback_state: str
    metadata: Optional[MediaMetadata]

    def set_action_handler(self, action: str, handler: Optional[Callable[[dict], Any]]) -> None: ...
