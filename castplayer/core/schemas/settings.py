from dataclasses import dataclass, asdict
from castplayer.sonicast.models import ReplayGainMode


@dataclass(slots=True)
class PlayerPreferences:
    volume: float = 1.0
    replay_gain_mode: ReplayGainMode = ReplayGainMode.NONE
    repeat: bool = False
    shuffle: bool = False
    podcast_playback_rate: float = 1.0

    @classmethod
    def from_dict(cls, data: dict):
        if not data: return cls()
        try:
            mode = ReplayGainMode(int(data.get("replay_gain_mode", 0)))
        except ValueError:
            mode = ReplayGainMode.NONE
        return cls(
            volume=float(data.get("volume", 1.0)),
            replay_gain_mode=mode,
            repeat=bool(data.get("repeat", False)),
            shuffle=bool(data.get("shuffle", False)),
            podcast_playback_rate=float(data.get("podcast_playback_rate", 1.0))
        )

    def to_dict(self):
        data = asdict(self)
        data["replay_gain_mode"] = int(self.replay_gain_mode)
        return data
