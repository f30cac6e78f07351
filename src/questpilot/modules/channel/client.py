"""
可自动重连的通道客户端（有上限的指数退避）

事件：connected、disconnected、reconnecting、error、message，
以及按类型分发的 quest-update / status-update / log / user-update（处理函数收到消息的 data）。
"""
from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ...core.config import settings
from ...core.constants import TYPED_EVENTS
from ...core.logger import logger
from .protocol import decode_frame, encode_message

Handler = Callable[..., Any]

CONNECTION_ERRORS = (OSError, asyncio.TimeoutError, WebSocketException)


class ReconnectingChannelClient:
    def __init__(
        self,
        url: Optional[str] = None,
        connect_timeout: Optional[float] = None,
        base_delay: Optional[float] = None,
        max_attempts: Optional[int] = None,
        connector: Optional[Callable[[str], Awaitable[Any]]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.url = url or settings.resolved_channel_url
        self.connect_timeout = float(settings.channel_connect_timeout_sec if connect_timeout is None else connect_timeout)
        self.base_delay = float(settings.channel_reconnect_base_delay_sec if base_delay is None else base_delay)
        self.max_attempts = int(settings.channel_max_reconnect_attempts if max_attempts is None else max_attempts)
        self.attempts = 0
        self._connector = connector or websockets.connect
        self._sleep = sleep
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._pending: Set[asyncio.Task] = set()
        self._ws: Any = None
        self._task: Optional[asyncio.Task] = None
        self._should_reconnect = True
        self._log = logger.bind(module="ChannelClient")

    # 事件

    def on(self, event: str, handler: Handler) -> "ReconnectingChannelClient":
        self._handlers[event].append(handler)
        return self

    def off(self, event: str, handler: Handler) -> "ReconnectingChannelClient":
        if handler in self._handlers.get(event, []):
            self._handlers[event].remove(handler)
        return self

    def emit(self, event: str, *args: Any) -> bool:
        handlers = list(self._handlers.get(event, []))
        for handler in handlers:
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    self._pending.add(task)
                    task.add_done_callback(self._on_handler_done)
            except Exception as e:
                self._log.error(f"事件处理失败 event={event}: {e}")
        return bool(handlers)

    def _on_handler_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self._log.error(f"异步事件处理失败: {task.exception()}")

    # 连接

    def is_connected(self) -> bool:
        return self._ws is not None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def connect(self) -> None:
        if self.running:
            return
        self._should_reconnect = True
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while True:
            try:
                ws = await asyncio.wait_for(self._connector(self.url), timeout=self.connect_timeout)
            except CONNECTION_ERRORS as e:
                self._log.warning(f"通道连接失败: {e or e.__class__.__name__}")
                self.emit("error", e)
                self.emit("disconnected")
            else:
                await self._serve(ws)

            if not self._should_reconnect or self.attempts >= self.max_attempts:
                if self._should_reconnect:
                    self._log.error(f"通道重连次数已达上限（{self.max_attempts}），停止重连")
                break
            self.attempts += 1
            delay = self.base_delay * 2 ** (self.attempts - 1)
            self._log.info(f"{delay:.1f}秒后重连（第{self.attempts}次）")
            self.emit("reconnecting", {"attempt": self.attempts, "delay": delay})
            await self._sleep(delay)
            if not self._should_reconnect:
                break

    async def _serve(self, ws: Any) -> None:
        self._ws = ws
        self.attempts = 0
        self._log.info(f"通道已连接: {self.url}")
        self.emit("connected")
        try:
            async for frame in ws:
                self._dispatch(frame)
        except ConnectionClosed as e:
            self._log.warning(f"通道异常断开: {e}")
            self.emit("error", e)
        finally:
            self._ws = None
        self._log.info("通道已断开")
        self.emit("disconnected")

    def _dispatch(self, frame: Any) -> None:
        try:
            message = decode_frame(frame)
        except ValueError as e:
            self._log.warning(f"无法解析的通道消息，已丢弃: {e}")
            return
        self.emit("message", message.model_dump())
        if message.type in TYPED_EVENTS:
            self.emit(message.type, message.data)

    async def send(self, message: Any) -> bool:
        ws = self._ws
        if ws is None:
            return False
        try:
            await ws.send(encode_message(message))
            return True
        except (OSError, WebSocketException) as e:
            self._log.error(f"通道发送失败: {e}")
            return False

    async def disconnect(self) -> None:
        self._should_reconnect = False
        ws = self._ws
        if ws is not None:
            try:
                await ws.close()
            except (OSError, WebSocketException) as e:
                self._log.warning(f"关闭通道失败: {e}")
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None


__all__ = ["ReconnectingChannelClient"]
