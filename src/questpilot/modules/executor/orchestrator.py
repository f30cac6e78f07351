"""
ExecutionOrchestrator: 单次任务执行的入口

职责：
- 同一时刻只允许一次运行（RunLock），并发调用共享同一结果
- 解析目标任务（指定 id 或全部可执行任务）
- 即时类任务：通过代码执行提供者提交 execute-quest
- 计时类任务：伪装运行中的游戏并启动进度监控
- 任何路径结束时恢复真实运行状态后再释放运行锁
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from ...core.config import settings
from ...core.constants import FailureKind, LogLevel, MessageType, RunState, TOPIC_REFRESH
from ...core.errors import (
    EnvironmentUnsupported,
    ExecutionTimeout,
    InjectionFailed,
    describe_error,
    failure_kind_of,
)
from ...core.logger import logger
from ...core.timeutils import SystemClock, system_clock
from ..activity.spoofer import ActivitySpoofer
from ..events.stream import EventStream
from ..injection.base import CodeExecutionProvider, build_command
from ..quests.parser import find_task
from ..quests.types import ExecutionOutcome, ProgressSnapshot, Task
from .lock import PendingRun, RunLock
from .monitor import ProgressMonitor


class ExecutionOrchestrator:
    def __init__(
        self,
        source,
        provider: CodeExecutionProvider,
        spoofer: ActivitySpoofer,
        monitor: ProgressMonitor,
        events: EventStream,
        clock: SystemClock = system_clock,
        injection_timeout: Optional[float] = None,
        lock: Optional[RunLock] = None,
    ) -> None:
        self.source = source
        self.provider = provider
        self.spoofer = spoofer
        self.monitor = monitor
        self.events = events
        self.clock = clock
        self.injection_timeout = float(
            settings.injection_timeout_sec if injection_timeout is None else injection_timeout
        )
        self.lock = lock or RunLock()
        self._state = RunState.IDLE
        self._current_task: Optional[Task] = None
        self._active: Optional[asyncio.Task] = None
        self._log = logger.bind(module="ExecutionOrchestrator")

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def current_task(self) -> Optional[Task]:
        return self._current_task

    def status(self) -> Dict[str, Any]:
        run = self.lock.current
        return {
            "state": self._state.value,
            "inFlight": run is not None,
            "questId": self._current_task.task_id if self._current_task else (run.task_id if run else None),
            "startedAt": run.started_at if run else None,
            "progress": [s.to_dict() for s in self.monitor.snapshots().values()],
        }

    async def execute(self, task_id: Any = None) -> ExecutionOutcome:
        current = self.lock.current
        if current is not None:
            self.events.log(LogLevel.INFO, "已有任务正在执行，等待当前执行结果")
            return await asyncio.shield(current.outcome)

        wanted = str(task_id).strip() if task_id is not None else ""
        run = self.lock.acquire(wanted or None)
        self._state = RunState.ACQUIRING
        self._active = asyncio.create_task(self._drive(run))
        return await asyncio.shield(run.outcome)

    async def cancel(self, task_id: str) -> bool:
        """取消计时任务的进度监控；运行随之结束并恢复"""
        cancelled = self.monitor.cancel(task_id)
        if cancelled:
            self.events.log(LogLevel.WARNING, f"已取消任务: {task_id}")
        return cancelled

    async def wait_idle(self) -> None:
        """等待当前运行（含进度监控）完全结束"""
        job = self._active
        if job is not None and not job.done():
            await asyncio.shield(job)

    async def shutdown(self) -> None:
        """进程退出：取消当前运行并恢复真实运行状态"""
        job = self._active
        if job is not None and not job.done():
            job.cancel()
            try:
                await job
            except asyncio.CancelledError:
                pass
        for task_id in list(self.monitor.snapshots()):
            self.monitor.cancel(task_id)
        self.spoofer.restore()

    async def _drive(self, run: PendingRun) -> None:
        cancelled = False
        try:
            for task in await self._resolve_tasks(run):
                await self._run_task(run, task)
        except asyncio.CancelledError:
            cancelled = True
            raise
        except Exception as e:
            message = describe_error(e)
            self.events.log(LogLevel.ERROR, f"执行失败: {message}")
            run.resolve(ExecutionOutcome.failed(failure_kind_of(e), message, task_id=run.task_id))
        finally:
            self.spoofer.restore()
            self._current_task = None
            self._state = RunState.IDLE
            self.lock.release(run, cancelled=cancelled)

    async def _resolve_tasks(self, run: PendingRun) -> List[Task]:
        if run.task_id:
            task = find_task(await self.source.list_tasks(), run.task_id)
            if task is None:
                message = f"未找到任务: {run.task_id}"
                self.events.log(LogLevel.ERROR, message)
                run.resolve(ExecutionOutcome.failed(FailureKind.NOT_FOUND, message, task_id=run.task_id))
                return []
            if task.is_finished() or task.is_expired(self.clock.now_ms()):
                reason = "已完成" if task.is_finished() else "已过期"
                message = f"任务{reason}，无需执行: {task.name or task.task_id}"
                self.events.log(LogLevel.ERROR, message)
                run.resolve(ExecutionOutcome.failed(FailureKind.NOT_FOUND, message, task=task))
                return []
            return [task]

        tasks = await self.source.eligible_tasks()
        if not tasks:
            message = "没有可执行的任务"
            self.events.log(LogLevel.ERROR, message)
            run.resolve(ExecutionOutcome.failed(FailureKind.NOT_FOUND, message))
            return []
        self.events.log(LogLevel.INFO, f"共 {len(tasks)} 个可执行任务，依次执行")
        return tasks

    async def _run_task(self, run: PendingRun, task: Task) -> None:
        self._current_task = task
        self.events.log(LogLevel.INFO, f"开始执行任务: {task.name or task.task_id} ({task.kind.value})")
        try:
            if task.is_time_gated:
                await self._run_timed(run, task)
            else:
                run.resolve(await self._run_instant(task))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            message = describe_error(e)
            self.events.log(LogLevel.ERROR, f"任务执行失败: {message}")
            run.resolve(ExecutionOutcome.failed(failure_kind_of(e), message, task=task))
        finally:
            self.spoofer.restore()

    async def _run_instant(self, task: Task) -> ExecutionOutcome:
        self._state = RunState.REQUESTING
        # 环境探测不计入确认超时
        await self.provider.prepare()
        payload = build_command(MessageType.EXECUTE_QUEST.value, questId=task.task_id)
        try:
            result = await asyncio.wait_for(self.provider.submit(payload), timeout=self.injection_timeout)
        except asyncio.TimeoutError:
            raise ExecutionTimeout(f"等待执行确认超时（{self.injection_timeout:g}秒）")
        if not result.success:
            raise InjectionFailed(result.message or "宿主执行失败")

        self.events.log(LogLevel.SUCCESS, f"任务已完成: {task.name or task.task_id}")
        self.events.publish(TOPIC_REFRESH, {"questId": task.task_id})
        return ExecutionOutcome(
            success=True,
            message=result.message or "任务已完成",
            task_id=task.task_id,
            kind=task.kind,
            seconds_needed=task.seconds_needed,
            seconds_done=task.seconds_needed,
            task_name=task.name,
            app_name=task.owner_app_name,
        )

    async def _initial_snapshot(self, task: Task) -> ProgressSnapshot:
        try:
            done = await self.source.get_current_progress(task.task_id)
        except Exception as e:
            self._log.warning(f"获取当前进度失败，使用列表中的进度: {describe_error(e)}")
            done = task.seconds_done
        needed = task.seconds_needed
        done = max(0, min(int(done), needed)) if needed else max(0, int(done))
        now = self.clock.now_ms()
        return ProgressSnapshot(
            task_id=task.task_id,
            seconds_needed=needed,
            seconds_done=done,
            start_time=now - done * 1000 if done > 0 else now,
            estimated_end_time=now + max(0, needed - done) * 1000,
            task_name=task.name,
        )

    async def _run_timed(self, run: PendingRun, task: Task) -> None:
        if not self.spoofer.available():
            raise EnvironmentUnsupported("计时类任务仅支持在原生客户端中执行，浏览器环境无法伪装运行中的游戏")

        self._state = RunState.SPOOFING
        snapshot = await self._initial_snapshot(task)
        record = self.spoofer.install(task)
        self.events.log(LogLevel.INFO, f"已模拟运行 {record.display_name}，等待进度完成")

        self._state = RunState.MONITORING
        self.monitor.start(task.task_id, snapshot)
        run.resolve(ExecutionOutcome(
            success=True,
            message="任务已开始，正在监控进度",
            task_id=task.task_id,
            kind=task.kind,
            seconds_needed=snapshot.seconds_needed,
            seconds_done=snapshot.seconds_done,
            task_name=task.name,
            app_name=task.owner_app_name,
        ))
        try:
            state = await self.monitor.wait(task.task_id)
            self._log.info(f"任务监控结束: {task.task_id} state={state.value}")
        finally:
            if self.monitor.is_tracking(task.task_id):
                self.monitor.cancel(task.task_id)


__all__ = ["ExecutionOrchestrator"]
