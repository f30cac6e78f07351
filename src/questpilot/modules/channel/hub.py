"""
本地通道中心（/ws）

- 宿主连接（客户端页面）只有一个，重连时替换
- 观察者连接（控制面板）可以有多个
- 宿主消息广播给所有观察者；观察者消息转发给宿主
- execute-quest / get-status 由本进程直接处理
- 事件流中的日志与进度推送给观察者，运行中游戏变更推送给宿主
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Set

from fastapi import WebSocket, WebSocketDisconnect

from ...core.constants import (
    MessageType,
    TOPIC_ACTIVITY,
    TOPIC_LOG,
    TOPIC_PROGRESS,
    TOPIC_PROGRESS_CLEARED,
    TOPIC_REFRESH,
)
from ...core.logger import logger
from ..events.stream import EventStream, StreamEvent
from .protocol import decode_frame, encode_message, make_message

ROLE_HOST = "host"
ROLE_OBSERVER = "observer"


def resolve_role(role: Optional[str], origin: Optional[str]) -> str:
    """显式 role 优先；否则按 Origin 推断（客户端页面或无 Origin 视为宿主）"""
    value = (role or "").strip().lower()
    if value in (ROLE_HOST, ROLE_OBSERVER):
        return value
    origin = (origin or "").lower()
    if not origin or "discord" in origin:
        return ROLE_HOST
    return ROLE_OBSERVER


def message_for_event(event: StreamEvent) -> Optional[Dict[str, Any]]:
    payload = event.payload
    if event.topic == TOPIC_LOG:
        return make_message(MessageType.LOG, payload.to_dict())
    if event.topic == TOPIC_PROGRESS:
        return make_message(MessageType.QUEST_UPDATE, {"progress": payload.to_dict()})
    if event.topic == TOPIC_PROGRESS_CLEARED:
        return make_message(MessageType.QUEST_UPDATE, {"progressCleared": payload})
    if event.topic == TOPIC_REFRESH:
        return make_message(MessageType.QUEST_UPDATE, {"refresh": payload or {}})
    if event.topic == TOPIC_ACTIVITY:
        return make_message(MessageType.STATUS_UPDATE, {"runningGamesChange": payload})
    return None


class ChannelHub:
    def __init__(self, orchestrator=None) -> None:
        self.orchestrator = orchestrator
        self.host: Optional[WebSocket] = None
        self.observers: Set[WebSocket] = set()
        self._host_listeners: List[Callable[[Dict[str, Any]], Any]] = []
        self._pumps: List[asyncio.Task] = []
        self._unsubscribes: List[Callable[[], None]] = []
        self._background: Set[asyncio.Task] = set()
        self._log = logger.bind(module="ChannelHub")

    def add_host_listener(self, listener: Callable[[Dict[str, Any]], Any]) -> None:
        self._host_listeners.append(listener)

    def status(self) -> Dict[str, Any]:
        return {"hostConnected": self.host is not None, "observers": len(self.observers)}

    # 事件流转发

    def attach(self, *streams: EventStream) -> None:
        for stream in streams:
            queue, unsubscribe = stream.open_queue()
            self._unsubscribes.append(unsubscribe)
            self._pumps.append(asyncio.create_task(self._pump(queue)))

    async def detach(self) -> None:
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()
        for task in self._pumps:
            task.cancel()
        for task in self._pumps:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._pumps.clear()

    async def _pump(self, queue: asyncio.Queue) -> None:
        while True:
            event = await queue.get()
            message = message_for_event(event)
            if message is None:
                continue
            if event.topic == TOPIC_ACTIVITY:
                await self.send_to_host(message)
            else:
                await self.broadcast(message)

    # 发送

    async def broadcast(self, message: Dict[str, Any]) -> int:
        frame = encode_message(message)
        sent = 0
        for ws in list(self.observers):
            try:
                await ws.send_text(frame)
                sent += 1
            except Exception as e:
                self._log.warning(f"观察者发送失败，移除连接: {e}")
                self.observers.discard(ws)
        return sent

    async def send_to_host(self, message: Dict[str, Any]) -> bool:
        ws = self.host
        if ws is None:
            return False
        try:
            await ws.send_text(encode_message(message))
            return True
        except Exception as e:
            self._log.warning(f"宿主发送失败: {e}")
            if self.host is ws:
                self.host = None
            return False

    # 连接处理

    async def handle(self, websocket: WebSocket, role: Optional[str] = None) -> None:
        role = resolve_role(role, websocket.headers.get("origin"))
        await websocket.accept()
        self._register(websocket, role)
        try:
            while True:
                frame = await websocket.receive_text()
                try:
                    message = decode_frame(frame).model_dump(exclude_none=True)
                except ValueError as e:
                    self._log.warning(f"无法解析的消息，已丢弃: {e}")
                    continue
                if role == ROLE_HOST:
                    await self.on_host_message(message)
                else:
                    await self.on_observer_message(websocket, message)
        except WebSocketDisconnect:
            pass
        finally:
            self._unregister(websocket, role)

    def _register(self, websocket: WebSocket, role: str) -> None:
        if role == ROLE_HOST:
            if self.host is not None:
                self._log.info("宿主重新连接，替换旧连接")
            self.host = websocket
        else:
            self.observers.add(websocket)
        self._log.info(f"通道连接: role={role} observers={len(self.observers)}")

    def _unregister(self, websocket: WebSocket, role: str) -> None:
        if role == ROLE_HOST:
            if self.host is websocket:
                self.host = None
        else:
            self.observers.discard(websocket)
        self._log.info(f"通道断开: role={role}")

    async def on_host_message(self, message: Dict[str, Any]) -> None:
        await self.broadcast(message)
        for listener in list(self._host_listeners):
            try:
                result = listener(message)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                self._log.error(f"宿主消息处理失败: {e}")

    async def on_observer_message(self, websocket: WebSocket, message: Dict[str, Any]) -> None:
        kind = message.get("type")
        if kind == MessageType.EXECUTE_QUEST.value:
            self._spawn(self._execute_for(websocket, message.get("questId")))
            return
        if kind == MessageType.GET_STATUS.value:
            await self._reply(websocket, make_message(MessageType.STATUS_UPDATE, self.full_status()))
            return
        if not await self.send_to_host(message):
            self._log.debug(f"宿主未连接，消息未转发: {kind}")

    def full_status(self) -> Dict[str, Any]:
        data = self.status()
        if self.orchestrator is not None:
            data.update(self.orchestrator.status())
        return data

    async def _execute_for(self, websocket: WebSocket, quest_id: Any) -> None:
        if self.orchestrator is None:
            return
        outcome = await self.orchestrator.execute(quest_id)
        await self._reply(websocket, make_message(MessageType.STATUS_UPDATE, {"execution": outcome.to_dict()}))

    async def _reply(self, websocket: WebSocket, message: Dict[str, Any]) -> None:
        try:
            await websocket.send_text(encode_message(message))
        except Exception as e:
            self._log.warning(f"回复观察者失败: {e}")

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)


__all__ = ["ChannelHub", "resolve_role", "message_for_event", "ROLE_HOST", "ROLE_OBSERVER"]
