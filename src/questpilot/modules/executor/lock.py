"""
运行锁：同一时刻只允许一次逻辑运行

槽位中保存 PendingRun，运行期间到达的调用方共享同一个结果 future。
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional

from ...core.constants import FailureKind
from ...core.timeutils import now_ms
from ..quests.types import ExecutionOutcome


@dataclass
class PendingRun:
    task_id: Optional[str]
    started_at: int = field(default_factory=now_ms)
    outcome: asyncio.Future = field(default=None)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.outcome is None:
            self.outcome = asyncio.get_running_loop().create_future()

    @property
    def resolved(self) -> bool:
        return self.outcome.done()

    def resolve(self, outcome: ExecutionOutcome) -> bool:
        """首次解析生效，之后的调用被忽略"""
        if self.outcome.done():
            return False
        self.outcome.set_result(outcome)
        return True


class RunLockBusy(RuntimeError):
    pass


class RunLock:
    def __init__(self) -> None:
        self._current: Optional[PendingRun] = None

    @property
    def current(self) -> Optional[PendingRun]:
        return self._current

    def in_flight(self) -> bool:
        return self._current is not None

    def acquire(self, task_id: Optional[str]) -> PendingRun:
        if self._current is not None:
            raise RunLockBusy(f"run already in progress: {self._current.task_id}")
        run = PendingRun(task_id=task_id)
        self._current = run
        return run

    def release(self, run: PendingRun, cancelled: bool = False) -> None:
        if self._current is run:
            self._current = None
        if run.outcome.done():
            return
        if cancelled:
            run.outcome.cancel()
        else:
            run.resolve(ExecutionOutcome.failed(FailureKind.UNKNOWN, "运行意外结束", task_id=run.task_id))


__all__ = ["PendingRun", "RunLock", "RunLockBusy"]
