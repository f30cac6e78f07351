"""
任务记录解析

宿主返回的任务记录有两种形态：
- 规整形态：questId / secondsNeeded / secondsDone / isCompleted ...
- 原始形态：id / config.taskConfig(V2).tasks[KIND].target / userStatus.progress[KIND].value ...
两种形态统一解析为 Task。
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Optional

from ...core.constants import TaskKind
from .types import Task

# 不同来源中 id 可能出现的字段
ID_FIELDS = ("questId", "questImageId", "id")


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def parse_timestamp(value: Any) -> Optional[int]:
    """解析毫秒时间戳：支持数字与 ISO-8601 字符串"""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    try:
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    return int(dt.timestamp() * 1000)


def candidate_ids(raw: dict) -> List[str]:
    ids = []
    for key in ID_FIELDS:
        value = _text(raw.get(key))
        if value and value not in ids:
            ids.append(value)
    return ids


def matches_task_id(raw: dict, task_id: Any) -> bool:
    wanted = _text(task_id)
    if not wanted:
        return False
    return wanted in candidate_ids(raw)


def _detect_kind(tasks: dict) -> Optional[TaskKind]:
    for kind in TaskKind:
        if tasks.get(kind.value) is not None:
            return kind
    return None


def _parse_normalized(raw: dict) -> Optional[Task]:
    try:
        kind = TaskKind(_text(raw.get("taskType")))
    except ValueError:
        return None
    ids = candidate_ids(raw)
    if not ids:
        return None
    return Task(
        task_id=ids[0],
        kind=kind,
        owner_app_id=_text(raw.get("applicationId")) or "0",
        owner_app_name=_text(raw.get("applicationName")),
        seconds_needed=max(0, _int(raw.get("secondsNeeded"))),
        seconds_done=_int(raw.get("secondsDone")),
        expires_at=parse_timestamp(raw.get("expiresAt")),
        name=_text(raw.get("questName")),
        enrolled=bool(raw.get("isEnrolled") or raw.get("enrolledAt")),
        completed=bool(raw.get("isCompleted") or raw.get("completedAt")),
        app_meta=raw.get("application") or {},
        aliases=tuple(ids),
    )


def _parse_store_record(raw: dict) -> Optional[Task]:
    config = raw.get("config") or {}
    task_config = config.get("taskConfig") or config.get("taskConfigV2") or {}
    tasks = task_config.get("tasks") or {}
    kind = _detect_kind(tasks)
    task_id = _text(raw.get("id"))
    if kind is None or not task_id:
        return None

    user_status = raw.get("userStatus") or {}
    progress = (user_status.get("progress") or {}).get(kind.value) or {}
    application = config.get("application") or {}
    messages = config.get("messages") or {}
    return Task(
        task_id=task_id,
        kind=kind,
        owner_app_id=_text(application.get("id")) or "0",
        owner_app_name=_text(application.get("name")),
        seconds_needed=max(0, _int((tasks.get(kind.value) or {}).get("target"))),
        seconds_done=_int(progress.get("value")),
        expires_at=parse_timestamp(config.get("expiresAt")),
        name=_text(messages.get("questName")),
        enrolled=bool(user_status.get("enrolledAt")),
        completed=bool(user_status.get("completedAt")),
        app_meta=application,
    )


def parse_task(raw: Any) -> Optional[Task]:
    """解析单条任务记录，无法识别时返回 None"""
    if not isinstance(raw, dict):
        return None
    if "config" in raw:
        return _parse_store_record(raw)
    return _parse_normalized(raw)


def parse_tasks(records: Iterable[Any]) -> List[Task]:
    tasks = []
    for raw in records or []:
        task = parse_task(raw)
        if task is not None:
            tasks.append(task)
    return tasks


def find_task(tasks: Iterable[Task], task_id: Any) -> Optional[Task]:
    for task in tasks:
        if task.matches(task_id):
            return task
    return None


def eligible_tasks(tasks: Iterable[Task], now: int, ignored_ids: Iterable[str] = ()) -> List[Task]:
    """可执行任务：未过期、未完成、不在忽略列表"""
    ignored = {_text(x) for x in ignored_ids}
    return [
        t for t in tasks
        if t.task_id not in ignored and not t.is_expired(now) and not t.is_finished()
    ]


__all__ = [
    "parse_task",
    "parse_tasks",
    "parse_timestamp",
    "candidate_ids",
    "matches_task_id",
    "find_task",
    "eligible_tasks",
]
