import asyncio
import inspect
import logging
import aiohttp
from collections import deque
from dataclasses import dataclass
from urllib.parse import urlencode
from pydantic import ValidationError
from castplayer.utils.auth import AuthStorage
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Tuple, Union
from castplayer.sonicast.errors import ChannelDisposed, ProtocolViolation, RemoteError
from castplayer.sonicast.models.messages import (
    COMMAND_RESULTS,
    ClientMessage,
    Command,
    CommandName,
    Response,
    ServerMessage,
)


logger = logging.getLogger(__name__)

RECONNECT_DELAY = 0.5
PUSH_EVENTS = ("playback", "queue", "options")

PushHandler = Callable[[Any], Union[None, Awaitable[None]]]


@dataclass(eq=False)
class Subscription:
    event: str
    callback: PushHandler


def build_ws_url(base_url: str, auth: Optional[AuthStorage] = None) -> str:
    url = base_url if base_url.endswith("/") else base_url + "/"
    url += "ws"
    if auth:
        url += "?" + urlencode(auth.query_params())
    return url


class SonicastWebSocket:
    """
    Постоянное соединение с одной целью воспроизведения.

    Сопоставляет команды с ответами по seq, копит команды пока соединения нет
    и переотправляет их после переподключения. Переподключается бесконечно,
    пока не вызван dispose().
    """

    def __init__(self, base_url: str, auth: Optional[AuthStorage] = None,
                 reconnect_delay: float = RECONNECT_DELAY):
        self.url = build_ws_url(base_url, auth)
        self.reconnect_delay = reconnect_delay

        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._session: Optional[aiohttp.ClientSession] = None
        self._connected = False
        self._disposed = False

        self._seq = 0
        self._awaiting: Dict[int, Tuple[CommandName, asyncio.Future]] = {}
        # TODO: ограничить размер и отклонять команды при переполнении, пока цель недоступна
        self._outbox: Deque[str] = deque()
        self._flush_lock = asyncio.Lock()
        self._handlers: Dict[str, List[Subscription]] = {event: [] for event in PUSH_EVENTS}
        # Обработчики событий работают вне цикла чтения: им можно ждать send() на этом же канале.
        self._events: asyncio.Queue = asyncio.Queue()

        self._task: Optional[asyncio.Task] = asyncio.create_task(self._run())
        self._dispatch_task: Optional[asyncio.Task] = asyncio.create_task(self._dispatch())

    @property
    def is_connected(self) -> bool:
        return self._connected and self._ws is not None and not self._ws.closed

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def pending_count(self) -> int:
        return len(self._awaiting)

    def subscribe(self, event: str, callback: PushHandler) -> Subscription:
        if event not in self._handlers:
            raise ValueError(f"Unknown push event: {event}")
        subscription = Subscription(event, callback)
        self._handlers[event].append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription):
        handlers = self._handlers.get(subscription.event, [])
        if subscription in handlers:
            handlers.remove(subscription)

    async def _run(self):
        while not self._disposed:
            try:
                if self._session is None or self._session.closed:
                    self._session = aiohttp.ClientSession()

                async with self._session.ws_connect(self.url, heartbeat=30) as ws:
                    self._ws = ws
                    logger.info(f"Connected to {self.url}")
                    await self._on_open()

                    async for msg in ws:
                        match msg.type:
                            case aiohttp.WSMsgType.TEXT:
                                await self._receive(msg.data)
                            case aiohttp.WSMsgType.ERROR:
                                logger.error(f"Sonicast WS error: {ws.exception()}")
                                break
                            case _:
                                pass
                    logger.info(f"Connection to {self.url} closed (code {ws.close_code})")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Sonicast connection to {self.url} failed: {e}")
            finally:
                self._connected = False
                self._ws = None

            if not self._disposed:
                await asyncio.sleep(self.reconnect_delay)

    async def _on_open(self):
        """Сначала отправляет всё накопленное, только потом принимает новые команды напрямую."""
        if self._outbox:
            logger.info(f"Flushing {len(self._outbox)} queued command(s) to {self.url}")
        self._connected = True
        await self._flush()

    async def _flush(self):
        async with self._flush_lock:
            while self._outbox and self.is_connected:
                data = self._outbox[0]
                await self._ws.send_str(data)
                # dispose() мог очистить очередь, пока шла отправка
                if self._outbox and self._outbox[0] is data:
                    self._outbox.popleft()

    async def _send_raw(self, data: str):
        self._outbox.append(data)
        if self.is_connected:
            try:
                await self._flush()
            except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
                # Сообщение осталось в очереди и уйдёт после переподключения.
                logger.warning(f"Send to {self.url} failed, keeping command queued: {e}")

    async def send(self, name: CommandName, param: Any = None) -> Any:
        """Отправляет команду и ждёт ответ с тем же seq. Таймаута нет."""
        if self._disposed:
            raise ChannelDisposed(f"command {name.value} issued on disposed channel")

        self._seq += 1
        seq = self._seq

        future = asyncio.get_running_loop().create_future()
        self._awaiting[seq] = (name, future)

        message = ClientMessage(command=Command(seq=seq, name=name, param=param))
        logger.debug(f"TX -> {self.url}: {name.value} #{seq}")
        await self._send_raw(message.model_dump_json(by_alias=True))

        try:
            return await future
        finally:
            self._awaiting.pop(seq, None)

    async def _receive(self, data: str):
        try:
            message = ServerMessage.model_validate_json(data)
        except ValidationError as e:
            logger.error(f"Failed to parse sonicast message: {e}")
            return

        for event in PUSH_EVENTS:
            payload = getattr(message, event)
            if payload is not None:
                self._events.put_nowait((event, payload))
        if message.response is not None:
            self._resolve(message.response)

    async def _dispatch(self):
        """Доставляет события подписчикам по одному, в порядке получения."""
        while not self._disposed:
            event, payload = await self._events.get()
            await self._emit(event, payload)

    async def _emit(self, event: str, payload: Any):
        for subscription in list(self._handlers[event]):
            if self._disposed:
                return
            try:
                res = subscription.callback(payload)
                if inspect.isawaitable(res):
                    await res
            except Exception as e:
                logger.error(f"Sonicast {event} handler failed: {e}", exc_info=True)

    def _resolve(self, response: Response):
        pending = self._awaiting.pop(response.seq, None)
        if pending is None:
            logger.warning(f"Response for unknown command #{response.seq} ignored")
            return

        name, future = pending
        if future.done():
            return

        if response.is_error:
            future.set_exception(RemoteError(f"command {name.value} failed: {response.error_message}"))
        elif response.kind != name.value:
            future.set_exception(ProtocolViolation(
                f"received invalid response for command {name.value}: kind={response.kind!r}"
            ))
        else:
            result_type = COMMAND_RESULTS.get(name)
            if result_type is None:
                future.set_result(response.data)
                return
            try:
                future.set_result(result_type.model_validate(response.data))
            except ValidationError as e:
                future.set_exception(ProtocolViolation(f"invalid {name.value} result: {e}"))

    async def dispose(self):
        """Останавливает переподключение и доставку событий, отклоняет ожидающие команды."""
        if self._disposed:
            return
        self._disposed = True
        self._connected = False

        for handlers in self._handlers.values():
            handlers.clear()
        self._outbox.clear()

        for seq, (name, future) in list(self._awaiting.items()):
            if not future.done():
                future.set_exception(ChannelDisposed(f"command {name.value} #{seq} abandoned"))
        self._awaiting.clear()

        for task in (self._task, self._dispatch_task):
            if task and not task.done() and task is not asyncio.current_task():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
        self._task = self._dispatch_task = None

        if self._ws and not self._ws.closed:
            await self._ws.close()
        if self._session and not self._session.closed:
            await self._session.close()
        logger.info(f"Sonicast channel {self.url} disposed")
