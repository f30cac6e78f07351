"""
任务相关数据结构（任务来源、进度监控与编排器共用）
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ...core.constants import FailureKind, LogLevel, TaskKind, TIMED_KINDS


@dataclass
class Task:
    task_id: str
    kind: TaskKind
    owner_app_id: str = "0"
    owner_app_name: str = ""
    seconds_needed: int = 0
    seconds_done: int = 0
    expires_at: Optional[int] = None  # epoch ms
    name: str = ""
    enrolled: bool = False
    completed: bool = False
    app_meta: Dict[str, Any] = field(default_factory=dict)
    aliases: Tuple[str, ...] = ()  # 其他来源中的 id 字段值

    def matches(self, task_id: Any) -> bool:
        wanted = str(task_id).strip() if task_id is not None else ""
        if not wanted:
            return False
        return wanted == str(self.task_id).strip() or wanted in self.aliases

    @property
    def is_time_gated(self) -> bool:
        return self.kind in TIMED_KINDS

    def clamped_seconds_done(self) -> int:
        return max(0, min(self.seconds_done, self.seconds_needed))

    def is_expired(self, now: int) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def is_finished(self) -> bool:
        return self.completed or self.seconds_done >= self.seconds_needed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questId": self.task_id,
            "questName": self.name,
            "taskType": self.kind.value,
            "applicationId": self.owner_app_id,
            "applicationName": self.owner_app_name,
            "secondsNeeded": self.seconds_needed,
            "secondsDone": self.clamped_seconds_done(),
            "expiresAt": self.expires_at,
            "isEnrolled": self.enrolled,
            "isCompleted": self.completed,
        }


@dataclass(frozen=True)
class ProgressSnapshot:
    task_id: str
    seconds_needed: int
    seconds_done: int
    start_time: int
    estimated_end_time: int
    task_name: str = ""

    @property
    def percent(self) -> int:
        if self.seconds_needed <= 0:
            return 100
        return round(self.seconds_done * 100 / self.seconds_needed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questId": self.task_id,
            "questName": self.task_name,
            "secondsNeeded": self.seconds_needed,
            "secondsDone": self.seconds_done,
            "startTime": self.start_time,
            "estimatedEndTime": self.estimated_end_time,
            "percent": self.percent,
        }


@dataclass
class ExecutionOutcome:
    success: bool
    message: str = ""
    task_id: Optional[str] = None
    kind: Optional[TaskKind] = None
    failure: Optional[FailureKind] = None
    seconds_needed: int = 0
    seconds_done: int = 0
    task_name: str = ""
    app_name: str = ""

    @classmethod
    def failed(cls, failure: FailureKind, message: str, task: Optional[Task] = None,
               task_id: Optional[str] = None) -> "ExecutionOutcome":
        outcome = cls(success=False, message=message, failure=failure, task_id=task_id)
        if task is not None:
            outcome.task_id = task.task_id
            outcome.kind = task.kind
            outcome.task_name = task.name
            outcome.app_name = task.owner_app_name
        return outcome

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "questId": self.task_id,
            "taskType": self.kind.value if self.kind else None,
            "failure": self.failure.value if self.failure else None,
            "secondsNeeded": self.seconds_needed,
            "secondsDone": self.seconds_done,
            "questName": self.task_name,
            "applicationName": self.app_name,
        }


@dataclass(frozen=True)
class LogEvent:
    timestamp: int
    message: str
    level: LogLevel = LogLevel.INFO

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp, "message": self.message, "level": self.level.value}


__all__ = ["Task", "ProgressSnapshot", "ExecutionOutcome", "LogEvent"]
