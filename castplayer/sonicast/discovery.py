import asyncio
import logging
from typing import List, Optional, Sequence
from castplayer.utils.auth import AuthStorage
from castplayer.core.config import SonicastTarget
from castplayer.core.interfaces import CatalogClient
from castplayer.sonicast.client import RECONNECT_DELAY
from castplayer.sonicast.models import PlaybackEvent
from castplayer.sonicast.player import SonicastPlayer


logger = logging.getLogger(__name__)

DISCOVERY_TIMEOUT = 1.5


async def find_playing_sonicast(targets: Sequence[SonicastTarget], catalog: CatalogClient,
                                auth: Optional[AuthStorage] = None,
                                timeout: float = DISCOVERY_TIMEOUT,
                                reconnect_delay: float = RECONNECT_DELAY) -> Optional[str]:
    """
    Подключается ко всем целям одновременно и возвращает URL первой,
    которая сообщила playing=True. Если за timeout никто не играет, возвращает None.
    Все открытые подключения закрываются в любом случае.
    """
    if not targets:
        return None

    found: asyncio.Future = asyncio.get_running_loop().create_future()
    players: List[SonicastPlayer] = []

    def resolve(url: str):
        # Первый победитель фиксирует результат, остальные ничего не меняют.
        if not found.done():
            found.set_result(url)

    for target in targets:
        player = SonicastPlayer(catalog, target.url, auth, reconnect_delay=reconnect_delay)
        players.append(player)

        def on_playback(event: PlaybackEvent, url: str = target.url):
            if event.playing:
                resolve(url)

        player.attach(on_playback=on_playback)

    try:
        url = await asyncio.wait_for(found, timeout)
        logger.info(f"Found playing sonicast at {url}")
        return url
    except asyncio.TimeoutError:
        logger.info(f"No playing sonicast among {len(targets)} target(s)")
        return None
    finally:
        await asyncio.gather(*(p.dispose() for p in players), return_exceptions=True)
