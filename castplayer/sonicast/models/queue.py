from typing import List
from pydantic import Field, model_validator
from .base import SonicastModel
from .common import Track


class PlayQueue(SonicastModel):
    tracks: List[Track] = []
    current_index: int = Field(default=-1, alias="currentTrack")
    current_position: float = Field(default=0, alias="currentTrackPosition")

    @model_validator(mode="after")
    def _empty_queue_has_no_index(self):
        if not self.tracks:
            self.current_index = -1
        return self
