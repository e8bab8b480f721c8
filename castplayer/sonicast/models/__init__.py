from .common import ReplayGainMode, Track, TrackArtist, format_artists
from .queue import PlayQueue
from .player_state import PlaybackEvent, PlayerOptions, PlayerState
from .messages import (
    COMMAND_RESULTS,
    ClientMessage,
    Command,
    CommandName,
    Response,
    ServerMessage,
)
