"""
进程内事件流（发布/订阅）

监控器和编排器只发布不可变的值；Web 层、通道中心和宿主通过订阅消费。
"""
from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, List, Optional

from ...core.constants import LogLevel, TOPIC_LOG
from ...core.logger import logger
from ...core.timeutils import now_ms
from ..quests.types import LogEvent


@dataclass(frozen=True)
class StreamEvent:
    topic: str
    payload: Any
    timestamp: int = field(default_factory=now_ms)


Handler = Callable[[StreamEvent], None]

_LOGURU_LEVEL = {
    LogLevel.INFO: "INFO",
    LogLevel.SUCCESS: "SUCCESS",
    LogLevel.WARNING: "WARNING",
    LogLevel.ERROR: "ERROR",
}


class EventStream:
    def __init__(self, name: str = "events", max_logs: int = 500) -> None:
        self._handlers: List[Handler] = []
        self._logs: Deque[LogEvent] = deque(maxlen=max(1, max_logs))
        self._log = logger.bind(module="EventStream", stream=name)

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    def publish(self, topic: str, payload: Any = None) -> StreamEvent:
        event = StreamEvent(topic=topic, payload=payload)
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as e:
                self._log.error(f"事件处理失败 topic={topic}: {e}")
        return event

    def open_queue(self, maxsize: int = 1000):
        """为异步消费者创建队列；队列满时丢弃最旧事件。

        Returns (queue, unsubscribe).
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

        def _enqueue(event: StreamEvent) -> None:
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            queue.put_nowait(event)

        return queue, self.subscribe(_enqueue)

    # 界面日志

    def log(self, level: LogLevel, message: str, timestamp: Optional[int] = None) -> LogEvent:
        level = LogLevel(level)
        entry = LogEvent(timestamp=timestamp or now_ms(), message=message, level=level)
        self._logs.append(entry)
        self._log.log(_LOGURU_LEVEL[level], message)
        self.publish(TOPIC_LOG, entry)
        return entry

    def recent_logs(self, limit: Optional[int] = None) -> List[LogEvent]:
        items = list(self._logs)
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return items

    def clear_logs(self) -> None:
        self._logs.clear()


__all__ = ["EventStream", "StreamEvent"]
