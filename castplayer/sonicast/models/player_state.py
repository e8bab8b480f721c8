from pydantic import Field
from typing import List, Optional
from .base import SonicastModel
from .common import Track


class PlayerState(SonicastModel):
    """Переносимый снимок плеера. Живёт только на время переключения цели."""
    tracks: List[Track] = []
    index: int = 0
    time: float = 0
    shuffle: bool = False
    repeat: bool = False
    playing: bool = False


class PlaybackEvent(SonicastModel):
    playing: bool
    position: Optional[float] = None
    duration: Optional[float] = None


class PlayerOptions(SonicastModel):
    volume: float = 1.0
    repeat: bool = False
    shuffle: bool = False
    replay_gain: str = Field(default="none", alias="replayGain")
