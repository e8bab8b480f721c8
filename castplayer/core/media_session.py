from castplayer.core.store import PlayerStore
from castplayer.core.interfaces import MediaSession


SEEK_OFFSET = 10


def setup_media_session(store: PlayerStore, session: MediaSession):
    """
    Регистрирует обработчики системных медиа-клавиш.
    Ошибки команд уходят в слот ошибок приложения через store.run_action.
    """
    def seek_to(details: dict):
        seek_time = details.get("seekTime")
        if seek_time is not None:
            store.run_action("media:seek", store.seek(seek_time))

    def seek_forward(details: dict):
        offset = details.get("seekOffset") or SEEK_OFFSET
        store.run_action("media:seek", store.seek(min(store.current_time + offset, store.duration)))

    def seek_backward(details: dict):
        offset = details.get("seekOffset") or SEEK_OFFSET
        store.run_action("media:seek", store.seek(max(store.current_time - offset, 0)))

    handlers = {
        "play": lambda details: store.run_action("media:play", store.resume()),
        "pause": lambda details: store.run_action("media:pause", store.pause()),
        "nexttrack": lambda details: store.run_action("media:next", store.next()),
        "previoustrack": lambda details: store.run_action("media:previous", store.previous()),
        "stop": lambda details: store.run_action("media:pause", store.pause()),
        "seekto": seek_to,
        "seekforward": seek_forward,
        "seekbackward": seek_backward,
    }
    for action, handler in handlers.items():
        session.set_action_handler(action, handler)
