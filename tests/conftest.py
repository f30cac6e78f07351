import asyncio
from typing import Iterable, List, Optional

import pytest

from questpilot.core.constants import TaskKind
from questpilot.modules.events.stream import EventStream
from questpilot.modules.injection.base import CodeExecutionProvider, SubmitResult
from questpilot.modules.quests.source import TaskSource
from questpilot.modules.quests.types import Task


class FakeClock:
    """sleep 立即推进时间"""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def now_ms(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)
        await asyncio.sleep(0)


class FakeSource(TaskSource):
    """list_tasks 依次返回脚本中的进度；脚本耗尽后保持最后的值"""

    def __init__(self, tasks: Iterable[Task] = (), progress: Optional[List] = None,
                 ignored_ids: Iterable[str] = ()) -> None:
        super().__init__(ignored_ids=list(ignored_ids))
        self.tasks = list(tasks)
        self.progress = list(progress or [])
        self.calls = 0
        self.current_progress: Optional[int] = None

    async def list_tasks(self) -> List[Task]:
        self.calls += 1
        if self.progress:
            step = self.progress.pop(0) if len(self.progress) > 1 else self.progress[0]
            if isinstance(step, Exception):
                raise step
            if step is None:
                return []
            for task in self.tasks:
                task.seconds_done = step
        return list(self.tasks)

    async def get_current_progress(self, task_id) -> int:
        if self.current_progress is not None:
            return self.current_progress
        return await super().get_current_progress(task_id)


class FakeProvider(CodeExecutionProvider):
    name = "fake"

    def __init__(self, result: Optional[SubmitResult] = None, error: Optional[Exception] = None,
                 gate: Optional[asyncio.Event] = None) -> None:
        self.result = result or SubmitResult(success=True, message="ok")
        self.error = error
        self.gate = gate
        self.payloads: List[str] = []

    async def submit(self, payload: str) -> SubmitResult:
        self.payloads.append(payload)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


def make_task(task_id: str = "q1", kind: TaskKind = TaskKind.PLAY_ON_DESKTOP, needed: int = 600,
              done: int = 0, **kwargs) -> Task:
    return Task(
        task_id=task_id,
        kind=kind,
        owner_app_id=kwargs.pop("owner_app_id", "1001"),
        owner_app_name=kwargs.pop("owner_app_name", "Star Game"),
        seconds_needed=needed,
        seconds_done=done,
        name=kwargs.pop("name", f"Quest {task_id}"),
        **kwargs,
    )


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def events():
    return EventStream(name="test", max_logs=100)


@pytest.fixture()
def fakes():
    """测试替身集合"""
    return type("Fakes", (), {
        "Clock": FakeClock,
        "Source": FakeSource,
        "Provider": FakeProvider,
        "task": staticmethod(make_task),
    })
