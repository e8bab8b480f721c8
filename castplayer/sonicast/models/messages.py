from enum import Enum
from .base import SonicastModel
from .queue import PlayQueue
from typing import Any, Dict, Optional, Type
from .player_state import PlaybackEvent, PlayerOptions, PlayerState


class CommandName(str, Enum):
    PLAY = "play"
    PAUSE = "pause"
    SKIP_NEXT = "skip-next"
    SKIP_PREVIOUS = "skip-previous"
    SEEK = "seek"
    PLAY_INDEX = "play-index"
    PLAY_TRACK_LIST = "play-track-list"
    RESET_QUEUE = "reset-queue"
    CLEAR_QUEUE = "clear-queue"
    SHUFFLE_QUEUE = "shuffle-queue"
    ADD_TO_QUEUE = "add-to-queue"
    SET_NEXT_IN_QUEUE = "set-next-in-queue"
    REMOVE_FROM_QUEUE = "remove-from-queue"
    QUEUE = "queue"
    LOAD_PLAYER_STATE = "load-player-state"
    UNLOAD_PLAYER_STATE = "unload-player-state"
    REPLAY_GAIN_MODE = "replay-gain-mode"
    SET_REPEAT = "set-repeat"
    SET_SHUFFLE = "set-shuffle"
    SET_VOLUME = "set-volume"
    SET_PLAYBACK_RATE = "set-playback-rate"


# Команды, не перечисленные здесь, ничего не возвращают.
COMMAND_RESULTS: Dict[CommandName, Type[SonicastModel]] = {
    CommandName.QUEUE: PlayQueue,
    CommandName.UNLOAD_PLAYER_STATE: PlayerState,
}

ERROR_KIND = "error"


class Command(SonicastModel):
    seq: int
    name: CommandName
    param: Optional[Any] = None


class ClientMessage(SonicastModel):
    command: Command


class ErrorData(SonicastModel):
    message: str = "unknown error"


class Response(SonicastModel):
    seq: int
    kind: str
    data: Optional[Any] = None

    @property
    def is_error(self) -> bool:
        return self.kind == ERROR_KIND

    @property
    def error_message(self) -> str:
        if isinstance(self.data, dict):
            return ErrorData.model_validate(self.data).message
        return ErrorData().message


class ServerMessage(SonicastModel):
    playback: Optional[PlaybackEvent] = None
    queue: Optional[PlayQueue] = None
    options: Optional[PlayerOptions] = None
    response: Optional[Response] = None
