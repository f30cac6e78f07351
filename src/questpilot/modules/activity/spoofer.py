"""
运行中游戏伪装

为计时类任务安装一条合成的运行中游戏记录，并且只恢复一次真实视图。
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ...core.constants import RUNNING_GAMES_CHANGE, SPOOF_PID_MAX, SPOOF_PID_MIN
from ...core.errors import EnvironmentUnsupported
from ...core.logger import logger
from ...core.timeutils import SystemClock, system_clock
from ..quests.types import Task
from .provider import Activity, ActivityHost, SyntheticActivityProvider


@dataclass(frozen=True)
class SpoofedActivityRecord:
    pid: int
    display_name: str
    exe_name: str
    exe_path: str
    created_at: int
    activity: Activity


def resolve_exe_name(app_meta: Dict[str, Any], display_name: str) -> str:
    """优先使用应用元数据中 win32 可执行文件名，否则按显示名合成"""
    for item in app_meta.get("executables") or []:
        if isinstance(item, dict) and item.get("os") == "win32" and item.get("name"):
            return str(item["name"]).replace(">", "")
    base = display_name.strip() or "game"
    return f"{base}.exe"


def change_event(removed: List[Activity], added: List[Activity], games: List[Activity]) -> Dict[str, Any]:
    return {
        "type": RUNNING_GAMES_CHANGE,
        "removed": [a.to_dict() for a in removed],
        "added": [a.to_dict() for a in added],
        "games": [a.to_dict() for a in games],
    }


class ActivitySpoofer:
    def __init__(
        self,
        host: ActivityHost,
        clock: SystemClock = system_clock,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.host = host
        self._clock = clock
        self._rng = rng or random.Random()
        self._record: Optional[SpoofedActivityRecord] = None
        self._restored = True
        self._log = logger.bind(module="ActivitySpoofer")

    @property
    def record(self) -> Optional[SpoofedActivityRecord]:
        return None if self._restored else self._record

    def available(self) -> bool:
        return bool(self.host.supports_spoofing)

    def build_record(self, task: Task) -> SpoofedActivityRecord:
        meta = task.app_meta or {}
        display_name = str(meta.get("name") or task.owner_app_name or task.name or task.owner_app_id)
        exe_name = resolve_exe_name(meta, display_name)
        pid = self._rng.randint(SPOOF_PID_MIN, SPOOF_PID_MAX)
        created_at = self._clock.now_ms()
        activity = Activity(
            app_id=str(task.owner_app_id),
            name=display_name,
            pid=pid,
            exe_name=exe_name,
            exe_path=f"c:/program files/{display_name.lower()}/{exe_name}",
            cmd_line=f"C:\\Program Files\\{display_name}\\{exe_name}",
            start=created_at,
        )
        return SpoofedActivityRecord(
            pid=pid,
            display_name=display_name,
            exe_name=exe_name,
            exe_path=activity.exe_path,
            created_at=created_at,
            activity=activity,
        )

    def install(self, task: Task) -> SpoofedActivityRecord:
        if not self.available():
            raise EnvironmentUnsupported("当前宿主不是原生客户端，无法伪装运行中的游戏")
        if not self._restored:
            raise EnvironmentUnsupported("已有伪装中的游戏，请等待当前任务结束")

        record = self.build_record(task)
        real_games = self.host.active.list_running_activities()
        fake = record.activity
        self.host.swap(SyntheticActivityProvider(fake))
        try:
            self.host.publish(change_event(removed=real_games, added=[fake], games=[fake]))
        except Exception:
            # 通知未送达则视为未安装
            self.host.reset()
            raise

        self._record = record
        self._restored = False
        self._log.info(f"已伪装运行游戏: {record.display_name} pid={record.pid}")
        return record

    def restore(self) -> None:
        """恢复真实视图；重复调用无副作用，且不抛出异常"""
        if self._restored or self._record is None:
            return
        self._restored = True
        fake = self._record.activity
        self.host.reset()
        try:
            self.host.publish(change_event(removed=[fake], added=[], games=[]))
        except Exception as e:
            self._log.warning(f"恢复通知发送失败: {e}")
        self._log.info(f"已恢复真实运行状态: {self._record.display_name}")


__all__ = ["ActivitySpoofer", "SpoofedActivityRecord", "resolve_exe_name", "change_event"]
