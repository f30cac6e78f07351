"""
进度监控

轮询真实进度直到任务完成、从列表中消失或被取消。
每次 tick 生成新的不可变快照并发布到事件流；校准逻辑在 reconcile_snapshot 中。
"""
from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

from ...core.config import settings
from ...core.constants import (
    LogLevel,
    MonitorState,
    TOPIC_PROGRESS,
    TOPIC_PROGRESS_CLEARED,
    TOPIC_REFRESH,
)
from ...core.errors import describe_error
from ...core.logger import logger
from ...core.timeutils import SystemClock, system_clock
from ..events.stream import EventStream
from ..quests.parser import find_task
from ..quests.types import ProgressSnapshot


def reconcile_snapshot(
    prev: ProgressSnapshot,
    seconds_done: int,
    seconds_needed: int,
    now: int,
    slack: int = 5,
) -> ProgressSnapshot:
    """以真实进度覆盖本地快照，并重新估算结束时间"""
    needed = max(0, int(seconds_needed))
    done = max(0, int(seconds_done))
    if needed:
        done = min(done, needed)

    start_time = prev.start_time
    # 进度跳变（宿主批量上报）时重新校准起点
    if done > prev.seconds_done + slack:
        start_time = now - done * 1000

    elapsed = now - start_time
    remaining = max(0, needed - done)
    rate = done / elapsed if done > 0 and elapsed > 0 else 0.0
    if rate > 0 and done < needed:
        # remaining / rate
        eta = now + round(remaining * elapsed / done)
    else:
        eta = now + remaining * 1000

    return ProgressSnapshot(
        task_id=prev.task_id,
        seconds_needed=needed,
        seconds_done=done,
        start_time=start_time,
        estimated_end_time=eta,
        task_name=prev.task_name,
    )


class ProgressMonitor:
    def __init__(
        self,
        source,
        events: EventStream,
        clock: SystemClock = system_clock,
        interval: Optional[float] = None,
        slack_seconds: Optional[int] = None,
        restore: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.source = source
        self.events = events
        self.clock = clock
        self.interval = float(settings.progress_poll_interval_sec if interval is None else interval)
        self.slack = int(settings.progress_slack_seconds if slack_seconds is None else slack_seconds)
        self._restore = restore
        self._snapshots: Dict[str, ProgressSnapshot] = {}
        self._jobs: Dict[str, asyncio.Task] = {}
        self._states: Dict[str, MonitorState] = {}
        self._log = logger.bind(module="ProgressMonitor")

    def is_tracking(self, task_id: str) -> bool:
        return task_id in self._snapshots

    def snapshot(self, task_id: str) -> Optional[ProgressSnapshot]:
        return self._snapshots.get(task_id)

    def snapshots(self) -> Dict[str, ProgressSnapshot]:
        return dict(self._snapshots)

    def state(self, task_id: str) -> Optional[MonitorState]:
        return self._states.get(task_id)

    def track(self, task_id: str, snapshot: ProgressSnapshot) -> None:
        """登记初始快照（不启动轮询，由调用方驱动 tick）"""
        self._snapshots[task_id] = snapshot
        self._states[task_id] = MonitorState.MONITORING
        self.events.publish(TOPIC_PROGRESS, snapshot)

    def start(self, task_id: str, snapshot: ProgressSnapshot) -> None:
        if task_id in self._jobs and not self._jobs[task_id].done():
            self._log.warning(f"任务已在监控中: {task_id}")
            return
        self.track(task_id, snapshot)
        self._jobs[task_id] = asyncio.create_task(self._loop(task_id))
        self._log.info(f"开始监控任务进度: {task_id} 间隔={self.interval}s")

    async def _loop(self, task_id: str) -> MonitorState:
        state = MonitorState.MONITORING
        while state == MonitorState.MONITORING:
            await self.clock.sleep(self.interval)
            state = await self.tick(task_id)
        return state

    async def tick(self, task_id: str) -> MonitorState:
        if task_id not in self._snapshots:
            return self._states.get(task_id, MonitorState.CANCELLED)
        try:
            tasks = await self.source.list_tasks()
        except Exception as e:
            self._log.warning(f"进度轮询失败，下次继续: {describe_error(e, task_id)}")
            return MonitorState.MONITORING

        prev = self._snapshots.get(task_id)
        if prev is None:
            # 轮询期间被取消
            return self._states.get(task_id, MonitorState.CANCELLED)

        task = find_task(tasks, task_id)
        if task is None:
            self.events.log(LogLevel.WARNING, f"任务已从列表中消失，停止监控: {prev.task_name or task_id}")
            self._finish(task_id, MonitorState.ABANDONED)
            self._call_restore()
            return MonitorState.ABANDONED

        now = self.clock.now_ms()
        needed = task.seconds_needed or prev.seconds_needed
        snap = reconcile_snapshot(prev, task.seconds_done, needed, now, self.slack)

        if task.completed or task.seconds_done >= needed:
            final = replace(snap, seconds_done=needed, estimated_end_time=now)
            self.events.publish(TOPIC_PROGRESS, final)
            self._finish(task_id, MonitorState.COMPLETED)
            self.events.log(LogLevel.SUCCESS, f"任务已完成: {task.name or task_id}")
            self._call_restore()
            self.events.publish(TOPIC_REFRESH, {"questId": task_id})
            return MonitorState.COMPLETED

        self._snapshots[task_id] = snap
        self.events.publish(TOPIC_PROGRESS, snap)
        return MonitorState.MONITORING

    async def wait(self, task_id: str) -> MonitorState:
        job = self._jobs.get(task_id)
        if job is None:
            return self._states.get(task_id, MonitorState.CANCELLED)
        try:
            return await asyncio.shield(job)
        except asyncio.CancelledError:
            if job.cancelled():
                return MonitorState.CANCELLED
            raise
        finally:
            if job.done():
                self._jobs.pop(task_id, None)

    def cancel(self, task_id: str) -> bool:
        """停止轮询并清除快照，不视为完成"""
        job = self._jobs.get(task_id)
        tracked = task_id in self._snapshots
        if tracked:
            self._finish(task_id, MonitorState.CANCELLED)
        if job is not None and not job.done():
            job.cancel()
            tracked = True
        if tracked:
            self._log.info(f"已取消进度监控: {task_id}")
        return tracked

    def _finish(self, task_id: str, state: MonitorState) -> None:
        self._states[task_id] = state
        if self._snapshots.pop(task_id, None) is not None:
            self.events.publish(TOPIC_PROGRESS_CLEARED, {"questId": task_id, "state": state.value})

    def _call_restore(self) -> None:
        if self._restore is None:
            return
        try:
            self._restore()
        except Exception as e:
            self._log.warning(f"恢复运行状态失败: {e}")


__all__ = ["ProgressMonitor", "reconcile_snapshot"]
