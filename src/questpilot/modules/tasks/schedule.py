"""
定时执行（cron 表达式）
"""
from __future__ import annotations

import secrets
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from ...core.logger import logger
from ...core.timeutils import now_ms


@dataclass
class Schedule:
    id: str
    name: str
    cron_expression: str
    quest_id: Optional[str] = None  # 为空时执行全部可执行任务
    enabled: bool = True
    last_run: Optional[int] = None
    next_run: Optional[int] = None
    created_at: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_trigger(expression: str) -> CronTrigger:
    """解析 5 段 cron 表达式，非法时抛出 ValueError"""
    try:
        return CronTrigger.from_crontab((expression or "").strip())
    except (ValueError, TypeError) as e:
        raise ValueError(f"无效的 cron 表达式: {expression}") from e


def next_fire_ms(trigger: CronTrigger) -> Optional[int]:
    fire = trigger.get_next_fire_time(None, datetime.now(trigger.timezone))
    return int(fire.timestamp() * 1000) if fire else None


class ScheduleService:
    """定时任务服务"""

    _UPDATABLE = ("name", "cron_expression", "quest_id", "enabled")

    def __init__(self, orchestrator, scheduler: Optional[AsyncIOScheduler] = None) -> None:
        self.orchestrator = orchestrator
        self.scheduler = scheduler or AsyncIOScheduler()
        self._schedules: Dict[str, Schedule] = {}
        self._running = False
        self.logger = logger.bind(module="ScheduleService")

    def start(self) -> None:
        if self._running:
            return
        self.scheduler.start()
        self._running = True
        self.logger.info(f"定时服务已启动，共 {len(self._schedules)} 个计划")

    def stop(self) -> None:
        if not self._running:
            return
        self.scheduler.shutdown(wait=False)
        self._running = False
        self.logger.info("定时服务已停止")

    def list(self) -> List[Schedule]:
        return sorted(self._schedules.values(), key=lambda s: s.created_at)

    def get(self, schedule_id: str) -> Optional[Schedule]:
        return self._schedules.get(schedule_id)

    def create(self, name: str, cron_expression: str, quest_id: Optional[str] = None,
               enabled: bool = True) -> Schedule:
        trigger = build_trigger(cron_expression)
        schedule = Schedule(
            id=f"schedule_{now_ms()}_{secrets.token_hex(4)}",
            name=name,
            cron_expression=cron_expression.strip(),
            quest_id=quest_id or None,
            enabled=enabled,
            next_run=next_fire_ms(trigger) if enabled else None,
        )
        self._schedules[schedule.id] = schedule
        if enabled:
            self._add_job(schedule, trigger)
        self.logger.info(f"创建定时计划: {schedule.name} [{schedule.cron_expression}]")
        return schedule

    def update(self, schedule_id: str, **changes: Any) -> Optional[Schedule]:
        schedule = self._schedules.get(schedule_id)
        if schedule is None:
            return None
        expression = changes.get("cron_expression") or schedule.cron_expression
        trigger = build_trigger(expression)

        self._remove_job(schedule_id)
        for key in self._UPDATABLE:
            if key in changes and changes[key] is not None:
                setattr(schedule, key, changes[key])
        schedule.cron_expression = expression.strip()
        schedule.next_run = next_fire_ms(trigger) if schedule.enabled else None
        if schedule.enabled:
            self._add_job(schedule, trigger)
        return schedule

    def remove(self, schedule_id: str) -> bool:
        if self._schedules.pop(schedule_id, None) is None:
            return False
        self._remove_job(schedule_id)
        self.logger.info(f"删除定时计划: {schedule_id}")
        return True

    def _add_job(self, schedule: Schedule, trigger: CronTrigger) -> None:
        self.scheduler.add_job(
            self.run_schedule,
            trigger,
            args=[schedule.id],
            id=schedule.id,
            name=schedule.name,
            replace_existing=True,
        )

    def _remove_job(self, schedule_id: str) -> None:
        if self.scheduler.get_job(schedule_id) is not None:
            self.scheduler.remove_job(schedule_id)

    async def run_schedule(self, schedule_id: str) -> None:
        schedule = self._schedules.get(schedule_id)
        if schedule is None:
            return
        schedule.last_run = now_ms()
        self.logger.info(f"执行定时计划: {schedule.name}")
        try:
            outcome = await self.orchestrator.execute(schedule.quest_id)
            if not outcome.success:
                self.logger.warning(f"定时计划执行失败: {schedule.name} - {outcome.message}")
        finally:
            schedule.next_run = next_fire_ms(build_trigger(schedule.cron_expression))


__all__ = ["Schedule", "ScheduleService", "build_trigger"]
