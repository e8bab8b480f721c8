import logging
from typing import Optional
from castplayer.core.config import Config
from castplayer.core.app_state import AppState
from castplayer.core.store import PlayerStore
from castplayer.core.switcher import TargetSwitchController
from castplayer.core.media_session import setup_media_session
from castplayer.sonicast.discovery import find_playing_sonicast
from castplayer.core.interfaces import (
    AudioEngine,
    CatalogClient,
    ListeningHistory,
    MediaSession,
    PlayQueueStorage,
    PreferenceStorage,
)


logger = logging.getLogger(__name__)


class Player:
    """Собирает стор, переключатель целей и системные медиа-клавиши в одно целое."""

    def __init__(self, config: Config, audio: AudioEngine, catalog: CatalogClient,
                 storage: PlayQueueStorage, history: ListeningHistory,
                 preferences: Optional[PreferenceStorage] = None,
                 media_session: Optional[MediaSession] = None):
        self.config = config
        self.catalog = catalog
        self.media_session = media_session
        self.app_state = AppState()
        self.store = PlayerStore(
            storage, history,
            preferences=preferences,
            media_session=media_session,
            app_state=self.app_state,
            queue_save_interval=config.queue_save_interval,
        )
        self.switcher = TargetSwitchController(
            self.store, audio, catalog,
            app_state=self.app_state,
            auth=config.auth,
            switch_timeout=config.switch_timeout,
            reconnect_delay=config.reconnect_delay,
        )

    async def start(self):
        if self.media_session:
            setup_media_session(self.store, self.media_session)
        await self.switcher.start()
        if self.store.target is not None and not self.store.is_remote:
            await self.restore_queue()
        self.store.start_task("select_playing_sonicast", self.select_playing_sonicast())

    async def restore_queue(self):
        """Поднимает сохранённую очередь в локальный плеер (на паузе)."""
        try:
            await self.store.load_queue()
        except Exception as e:
            self.app_state.set_error(e)

    async def select_playing_sonicast(self) -> Optional[str]:
        """Если какая-то цель уже играет, а мы нет — подключаемся к ней."""
        url = await find_playing_sonicast(
            self.config.sonicast_targets, self.catalog,
            auth=self.config.auth,
            timeout=self.config.discovery_timeout,
            reconnect_delay=self.config.reconnect_delay,
        )
        if url and not self.store.is_playing and not self.app_state.is_casting:
            self.app_state.sonicast_url = url
        return url

    def select_target(self, url: Optional[str]):
        self.app_state.sonicast_url = url

    async def close(self):
        self.store.cancel_all_tasks()
        await self.switcher.stop()
