"""
任务真实进度来源

编排器与监控只通过 TaskSource 读取任务状态，
具体从代码执行提供者还是从通道获取由配置决定。
"""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from ...core.config import settings
from ...core.constants import MessageType
from ...core.errors import PollingTransientError, TaskNotFound
from ...core.logger import logger
from ...core.timeutils import now_ms
from .parser import eligible_tasks, find_task, parse_tasks
from .types import Task


class TaskSource(ABC):
    """任务来源抽象基类"""

    def __init__(self, ignored_ids: Optional[Sequence[str]] = None) -> None:
        self.ignored_ids = list(settings.ignored_quest_ids if ignored_ids is None else ignored_ids)

    @abstractmethod
    async def list_tasks(self) -> List[Task]:
        ...

    async def get_current_progress(self, task_id: Any) -> int:
        task = find_task(await self.list_tasks(), task_id)
        if task is None:
            raise TaskNotFound(f"任务不存在: {task_id}")
        return task.seconds_done

    async def eligible_tasks(self) -> List[Task]:
        return eligible_tasks(await self.list_tasks(), now_ms(), self.ignored_ids)


class StaticTaskSource(TaskSource):
    """固定任务列表（测试与离线场景）"""

    def __init__(self, tasks: Sequence[Task] = (), ignored_ids: Optional[Sequence[str]] = None) -> None:
        super().__init__(ignored_ids=ignored_ids)
        self.tasks = list(tasks)

    async def list_tasks(self) -> List[Task]:
        return list(self.tasks)


class ProviderTaskSource(TaskSource):
    """通过代码执行提供者向宿主请求任务列表"""

    def __init__(self, provider, ignored_ids: Optional[Sequence[str]] = None) -> None:
        super().__init__(ignored_ids=ignored_ids)
        self.provider = provider

    async def list_tasks(self) -> List[Task]:
        from ..injection.base import build_command

        result = await self.provider.submit(build_command(MessageType.GET_QUESTS.value))
        if not result.success:
            raise PollingTransientError(result.message or "获取任务列表失败")
        return parse_tasks(result.data.get("quests") or [])


class ChannelTaskSource(TaskSource):
    """通过通道客户端获取任务列表（宿主以 quest-update 回复）"""

    def __init__(self, client, timeout: Optional[float] = None,
                 ignored_ids: Optional[Sequence[str]] = None) -> None:
        super().__init__(ignored_ids=ignored_ids)
        self.client = client
        self.timeout = float(timeout if timeout is not None else settings.channel_request_timeout_sec)
        self.latest: List[Task] = []
        self._waiters: List[asyncio.Future] = []
        self._log = logger.bind(module="ChannelTaskSource")
        client.on(MessageType.QUEST_UPDATE.value, self._on_update)

    def _on_update(self, data: Any) -> None:
        # 进度类 quest-update 不带任务列表
        if isinstance(data, dict):
            if "quests" not in data:
                return
            records = data.get("quests")
        elif isinstance(data, list):
            records = data
        else:
            return
        self.latest = parse_tasks(records or [])
        waiters, self._waiters = self._waiters, []
        for fut in waiters:
            if not fut.done():
                fut.set_result(list(self.latest))

    async def list_tasks(self) -> List[Task]:
        loop = asyncio.get_running_loop()
        fut = loop.create_future()
        self._waiters.append(fut)
        try:
            sent = await self.client.send({"type": MessageType.GET_QUESTS.value})
            if not sent:
                raise PollingTransientError("通道未连接，无法获取任务列表")
            return await asyncio.wait_for(fut, timeout=self.timeout)
        except asyncio.TimeoutError:
            raise PollingTransientError(f"等待任务列表超时（{self.timeout:g}秒）")
        finally:
            if fut in self._waiters:
                self._waiters.remove(fut)


__all__ = ["TaskSource", "StaticTaskSource", "ProviderTaskSource", "ChannelTaskSource"]
