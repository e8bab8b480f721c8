import asyncio
import logging
import itertools
from typing import Any, Callable, Optional
from castplayer.core.app_state import AppState
from castplayer.core.interfaces import AudioEngine, CatalogClient
from castplayer.core.mixins.task import BackgroundTaskMixin
from castplayer.core.store import PlayerStore
from castplayer.core.targets import LocalTarget, PlaybackTarget, RemoteTarget
from castplayer.sonicast.client import RECONNECT_DELAY
from castplayer.sonicast.errors import SonicastError
from castplayer.sonicast.models import PlayerState
from castplayer.sonicast.player import SonicastPlayer
from castplayer.utils.auth import AuthStorage


logger = logging.getLogger(__name__)

SWITCH_TIMEOUT = 5.0

PlayerFactory = Callable[[str], SonicastPlayer]


class TargetSwitchController(BackgroundTaskMixin):
    """
    Переключает цель воспроизведения: Local <-> Remote(url), Remote <-> Remote.

    Порядок переключения:
    1. снимок состояния у текущей цели (unload_player_state);
    2. отключение событий старой цели и её остановка;
    3. создание новой цели и подключение её событий к стору;
    4. перенос снимка (load_player_state) либо загрузка очереди новой цели.

    Переключения не пересекаются: выполняются под одним замком, а из
    нескольких запросов подряд выигрывает последний.
    """

    def __init__(self, store: PlayerStore, audio: AudioEngine, catalog: CatalogClient,
                 app_state: Optional[AppState] = None, auth: Optional[AuthStorage] = None,
                 switch_timeout: float = SWITCH_TIMEOUT, reconnect_delay: float = RECONNECT_DELAY,
                 player_factory: Optional[PlayerFactory] = None):
        self.store = store
        self.audio = audio
        self.catalog = catalog
        self.app_state = app_state or store.app_state
        self.auth = auth
        self.switch_timeout = switch_timeout
        self.player_factory = player_factory or (
            lambda url: SonicastPlayer(catalog, url, auth, reconnect_delay=reconnect_delay)
        )

        self.target: Optional[PlaybackTarget] = None
        self._handle: Any = None
        self._lock = asyncio.Lock()
        self._desired: Optional[str] = None
        self._transfer = False
        self._requests = itertools.count(1)

    @property
    def current_url(self) -> Optional[str]:
        if self.target is not None and self.target.is_remote:
            return self.target.url
        return None

    def start(self) -> asyncio.Task:
        """Подписывается на выбор цели в AppState и сразу применяет текущее значение."""
        self.app_state.watch_target("switcher", self.request)
        return self.request(self.app_state.sonicast_url)

    async def stop(self):
        self.app_state.unwatch_target("switcher")
        self.cancel_all_tasks()
        async with self._lock:
            await self._teardown()

    def request(self, url: Optional[str]) -> asyncio.Task:
        self._desired = url
        self._transfer = self.store.is_playing
        logger.info(f"Play target requested: {url or 'local'} (transfer={self._transfer})")
        return self.start_task(f"switch:{next(self._requests)}", self._apply())

    async def _apply(self):
        async with self._lock:
            url, transfer = self._desired, self._transfer
            if self.target is not None and self.current_url == url:
                return
            try:
                await self._change_play_target(url, transfer)
            except Exception as e:
                logger.error(f"Switching play target to {url or 'local'} failed: {e}")
                self.app_state.set_error(e)

    async def change_play_target(self, url: Optional[str], transfer: bool):
        async with self._lock:
            await self._change_play_target(url, transfer)

    async def _change_play_target(self, url: Optional[str], transfer: bool):
        state = await self._snapshot()
        await self._teardown()
        await self._setup(url)

        if transfer and state is not None:
            await self.store.load_player_state(state)
        elif url:
            await self.store.load_queue()
        logger.info(f"Play target is now {self.target!r}")

    async def _snapshot(self) -> Optional[PlayerState]:
        if self.target is None:
            return None
        try:
            return await asyncio.wait_for(self.store.unload_player_state(), self.switch_timeout)
        except (asyncio.TimeoutError, SonicastError) as e:
            logger.warning(f"Could not unload player state from {self.target!r}: {e!r}")
            return None

    async def _teardown(self):
        target, self.target = self.target, None
        if target is None:
            return
        target.detach(self._handle)
        self._handle = None
        self.store.use_target(None)
        await target.teardown()

    async def _setup(self, url: Optional[str]):
        if url:
            target = RemoteTarget(self.store, self.player_factory(url), url)
        else:
            target = LocalTarget(self.store, self.audio, self.app_state)

        self.store.use_target(target)
        try:
            self._handle = await target.attach()
        except Exception:
            # цель, не прошедшая attach, не остаётся в сторе
            self.store.use_target(None)
            await target.teardown()
            raise
        self.target = target
