import logging
from typing import Callable, Dict, Optional


logger = logging.getLogger(__name__)

TargetWatcher = Callable[[Optional[str]], None]


class AppState:
    """Общее состояние приложения: слот ошибки и выбранная цель воспроизведения."""

    def __init__(self):
        self.error: Optional[Exception] = None
        self._sonicast_url: Optional[str] = None
        self._watchers: Dict[str, TargetWatcher] = {}

    @property
    def is_casting(self) -> bool:
        return self._sonicast_url is not None

    @property
    def sonicast_url(self) -> Optional[str]:
        return self._sonicast_url

    @sonicast_url.setter
    def sonicast_url(self, value: Optional[str]):
        if value == self._sonicast_url:
            return
        self._sonicast_url = value
        for watcher in list(self._watchers.values()):
            watcher(value)

    def watch_target(self, name: str, callback: TargetWatcher):
        self._watchers[name] = callback

    def unwatch_target(self, name: str):
        self._watchers.pop(name, None)

    def set_error(self, error: Exception):
        logger.error(f"Player error: {error}")
        self.error = error

    def clear_error(self):
        self.error = None
