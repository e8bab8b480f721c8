import logging
from dataclasses import dataclass, field
from castplayer.utils.auth import AuthStorage
from typing import Callable, List, Optional, Sequence
from castplayer.core.interfaces import CatalogClient
from castplayer.sonicast.client import RECONNECT_DELAY, SonicastWebSocket, Subscription
from castplayer.sonicast.models import (
    CommandName,
    PlaybackEvent,
    PlayerOptions,
    PlayerState,
    PlayQueue,
    ReplayGainMode,
    Track,
)


logger = logging.getLogger(__name__)


@dataclass(eq=False)
class AttachHandle:
    subscriptions: List[Subscription] = field(default_factory=list)
    released: bool = False


class SonicastPlayer:
    """
    Управление удалённой целью воспроизведения.

    Каждая операция делает ровно один обмен командой и ответом. Собственного
    состояния не хранит: только пересылает команды и события сервера.
    """

    def __init__(self, catalog: CatalogClient, base_url: str, auth: Optional[AuthStorage] = None,
                 reconnect_delay: float = RECONNECT_DELAY):
        self.catalog = catalog
        self.base_url = base_url
        self.channel = SonicastWebSocket(base_url, auth, reconnect_delay=reconnect_delay)

    def __repr__(self):
        return f"SonicastPlayer({self.base_url!r})"

    def attach(self, on_playback: Optional[Callable[[PlaybackEvent], None]] = None,
               on_queue: Optional[Callable[[PlayQueue], None]] = None,
               on_options: Optional[Callable[[PlayerOptions], None]] = None) -> AttachHandle:
        handle = AttachHandle()
        if on_playback:
            handle.subscriptions.append(self.channel.subscribe("playback", on_playback))
        if on_queue:
            def deliver_queue(queue: PlayQueue):
                return on_queue(self._normalize_queue(queue))
            handle.subscriptions.append(self.channel.subscribe("queue", deliver_queue))
        if on_options:
            handle.subscriptions.append(self.channel.subscribe("options", on_options))
        return handle

    def detach(self, handle: AttachHandle):
        if handle.released:
            return
        for subscription in handle.subscriptions:
            self.channel.unsubscribe(subscription)
        handle.subscriptions.clear()
        handle.released = True

    def _normalize_tracks(self, tracks: Sequence[Track]) -> List[Track]:
        return [self.catalog.normalize_track(t) for t in tracks]

    def _normalize_queue(self, queue: PlayQueue) -> PlayQueue:
        queue.tracks = self._normalize_tracks(queue.tracks)
        return queue

    async def get_play_queue(self) -> PlayQueue:
        queue = await self.channel.send(CommandName.QUEUE)
        return self._normalize_queue(queue)

    async def play_track_list(self, tracks: Sequence[Track], index: Optional[int] = None,
                              shuffle: Optional[bool] = None):
        param = {"tracks": [t.id for t in tracks]}
        if index is not None:
            param["index"] = index
        if shuffle is not None:
            param["shuffle"] = shuffle
        await self.channel.send(CommandName.PLAY_TRACK_LIST, param)

    async def play_index(self, index: int):
        await self.channel.send(CommandName.PLAY_INDEX, {"index": index})

    async def play(self):
        await self.channel.send(CommandName.PLAY)

    async def pause(self):
        await self.channel.send(CommandName.PAUSE)

    async def next(self):
        await self.channel.send(CommandName.SKIP_NEXT)

    async def previous(self):
        await self.channel.send(CommandName.SKIP_PREVIOUS)

    async def seek(self, pos: float):
        await self.channel.send(CommandName.SEEK, {"pos": pos})

    async def reset_queue(self):
        await self.channel.send(CommandName.RESET_QUEUE)

    async def clear_queue(self):
        await self.channel.send(CommandName.CLEAR_QUEUE)

    async def shuffle_queue(self):
        await self.channel.send(CommandName.SHUFFLE_QUEUE)

    async def add_to_queue(self, tracks: Sequence[Track]):
        await self.channel.send(CommandName.ADD_TO_QUEUE, {"tracks": [t.id for t in tracks]})

    async def set_next_in_queue(self, tracks: Sequence[Track]):
        await self.channel.send(CommandName.SET_NEXT_IN_QUEUE, {"tracks": [t.id for t in tracks]})

    async def remove_from_queue(self, index: int):
        await self.channel.send(CommandName.REMOVE_FROM_QUEUE, {"index": index})

    async def load_player_state(self, state: PlayerState):
        await self.channel.send(CommandName.LOAD_PLAYER_STATE, state.model_dump(mode="json", by_alias=True))

    async def unload_player_state(self) -> PlayerState:
        state = await self.channel.send(CommandName.UNLOAD_PLAYER_STATE)
        state.tracks = self._normalize_tracks(state.tracks)
        return state

    async def set_replay_gain_mode(self, mode: ReplayGainMode):
        await self.channel.send(CommandName.REPLAY_GAIN_MODE, {"mode": mode.wire_name})

    async def set_repeat(self, flag: bool):
        await self.channel.send(CommandName.SET_REPEAT, {"flag": flag})

    async def set_shuffle(self, flag: bool):
        await self.channel.send(CommandName.SET_SHUFFLE, {"flag": flag})

    async def set_volume(self, volume: float):
        await self.channel.send(CommandName.SET_VOLUME, {"volume": volume})

    async def set_playback_rate(self, rate: float):
        await self.channel.send(CommandName.SET_PLAYBACK_RATE, {"rate": rate})

    async def dispose(self):
        await self.channel.dispose()
