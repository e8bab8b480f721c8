import os
import json
import logging
from typing import List, Optional
from dataclasses import dataclass, field, asdict
from castplayer.utils.auth import AuthStorage


logger = logging.getLogger(__name__)

ENV_PREFIX = "CASTPLAYER_"


@dataclass(slots=True)
class SonicastTarget:
    name: str
    url: str


@dataclass(slots=True)
class Config:
    username: str = ""
    token: str = ""
    salt: str = ""
    sonicast_targets: List[SonicastTarget] = field(default_factory=list)
    log_dir: Optional[str] = None

    reconnect_delay: float = 0.5
    discovery_timeout: float = 1.5
    queue_save_interval: float = 10.0
    switch_timeout: float = 5.0

    @property
    def auth(self) -> Optional[AuthStorage]:
        if not self.username:
            return None
        return AuthStorage(username=self.username, token=self.token, salt=self.salt)

    @classmethod
    def from_dict(cls, data: dict):
        if not data: return cls()
        return cls(
            username=data.get("username", ""),
            token=data.get("token", ""),
            salt=data.get("salt", ""),
            sonicast_targets=[SonicastTarget(**t) for t in data.get("sonicast_targets", [])],
            log_dir=data.get("log_dir"),
            reconnect_delay=float(data.get("reconnect_delay", 0.5)),
            discovery_timeout=float(data.get("discovery_timeout", 1.5)),
            queue_save_interval=float(data.get("queue_save_interval", 10.0)),
            switch_timeout=float(data.get("switch_timeout", 5.0))
        )

    def to_dict(self):
        return asdict(self)


def parse_targets(raw: Optional[str]) -> List[SonicastTarget]:
    """
    Разбирает список целей из переменной окружения.

    Поддерживаются два формата:
    - JSON: [{"name": "Kitchen", "url": "http://kitchen:8090"}]
    - строка: Kitchen=http://kitchen:8090,Living=http://living:8090
    """
    if not raw or not raw.strip():
        return []

    raw = raw.strip()
    if raw.startswith("["):
        try:
            return [SonicastTarget(name=t.get("name") or t["url"], url=t["url"]) for t in json.loads(raw)]
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"Invalid sonicast targets JSON: {e}")
            return []

    targets = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, url = item.partition("=")
        if not sep:
            name, url = item, item
        targets.append(SonicastTarget(name=name.strip(), url=url.strip()))
    return targets


def load_config() -> Config:
    env = lambda key, default="": os.getenv(ENV_PREFIX + key, default)

    config = Config(
        username=env("USERNAME"),
        token=env("TOKEN"),
        salt=env("SALT"),
        sonicast_targets=parse_targets(env("TARGETS")),
        log_dir=env("LOG_DIR") or None,
    )

    if not config.sonicast_targets:
        logger.info("No sonicast targets configured, local playback only")
    return config
