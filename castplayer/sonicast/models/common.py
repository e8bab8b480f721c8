from enum import Enum
from pydantic import ConfigDict, Field
from .base import SonicastModel
from typing import List, Optional


class ReplayGainMode(int, Enum):
    NONE = 0
    TRACK = 1
    ALBUM = 2

    @property
    def wire_name(self) -> str:
        return self.name.lower()

    @classmethod
    def from_wire(cls, value: Optional[str]) -> "ReplayGainMode":
        """Сервер дополнительно шлёт 'auto', который трактуем как album."""
        if isinstance(value, str):
            if value.lower() == "auto":
                return cls.ALBUM
            for member in cls:
                if member.wire_name == value.lower():
                    return member
        return cls.NONE


class TrackArtist(SonicastModel):
    id: Optional[str] = None
    name: str


class Track(SonicastModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    id: str
    title: str = ""
    duration: float = 0
    artists: List[TrackArtist] = []
    album: Optional[str] = None
    album_id: Optional[str] = Field(default=None, alias="albumId")
    image: Optional[str] = None
    url: Optional[str] = None
    is_podcast: bool = Field(default=False, alias="isPodcast")
    is_stream: bool = Field(default=False, alias="isStream")


def format_artists(artists: List[TrackArtist]) -> str:
    return ", ".join(a.name for a in artists if a.name)
