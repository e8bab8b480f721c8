class SonicastError(Exception):
    """Базовая ошибка удалённого управления воспроизведением."""


class ProtocolViolation(SonicastError):
    """Ответ не соответствует команде: другой kind или некорректный результат."""


class RemoteError(SonicastError):
    """Сервер явно сообщил об ошибке выполнения команды."""


class ChannelDisposed(SonicastError):
    """Канал закрыт до того, как пришёл ответ."""
