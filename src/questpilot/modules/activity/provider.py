"""
宿主"运行中游戏"视图

宿主通过 ActivityProvider 回答两个问题：当前运行了哪些游戏、某个进程号对应哪个游戏。
ActivityHost 持有真实实现与一个可替换的引用单元 active，伪装时只替换单元，
恢复时重置单元，不修改任何宿主对象的属性。
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from ...core.constants import TOPIC_ACTIVITY
from ..events.stream import EventStream


@dataclass(frozen=True)
class Activity:
    app_id: str
    name: str
    pid: int
    exe_name: str = ""
    exe_path: str = ""
    cmd_line: str = ""
    start: int = 0
    hidden: bool = False
    is_launcher: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.app_id,
            "name": self.name,
            "pid": self.pid,
            "pidPath": [self.pid],
            "processName": self.name,
            "exeName": self.exe_name,
            "exePath": self.exe_path,
            "cmdLine": self.cmd_line,
            "start": self.start,
            "hidden": self.hidden,
            "isLauncher": self.is_launcher,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> Optional["Activity"]:
        """解析宿主上报的运行中游戏；缺少 pid 时返回 None"""
        try:
            pid = int(raw.get("pid"))
        except (TypeError, ValueError):
            return None
        name = str(raw.get("name") or raw.get("processName") or "")
        return cls(
            app_id=str(raw.get("id") or "0"),
            name=name,
            pid=pid,
            exe_name=str(raw.get("exeName") or ""),
            exe_path=str(raw.get("exePath") or ""),
            cmd_line=str(raw.get("cmdLine") or ""),
            start=int(raw.get("start") or 0),
            hidden=bool(raw.get("hidden")),
            is_launcher=bool(raw.get("isLauncher")),
        )


class ActivityProvider(ABC):
    @abstractmethod
    def list_running_activities(self) -> List[Activity]:
        ...

    def find_activity_by_process_id(self, pid: int) -> Optional[Activity]:
        for activity in self.list_running_activities():
            if activity.pid == pid:
                return activity
        return None


class StaticActivityProvider(ActivityProvider):
    """真实视图：由宿主上报的运行中游戏列表"""

    def __init__(self, activities: Iterable[Activity] = ()) -> None:
        self._activities = list(activities)

    def update(self, activities: Iterable[Activity]) -> None:
        self._activities = list(activities)

    def list_running_activities(self) -> List[Activity]:
        return list(self._activities)


class SyntheticActivityProvider(ActivityProvider):
    """伪装视图：只包含一条合成记录"""

    def __init__(self, activity: Activity) -> None:
        self.activity = activity

    def list_running_activities(self) -> List[Activity]:
        return [self.activity]


class ActivityHost:
    def __init__(
        self,
        real: Optional[ActivityProvider] = None,
        bus: Optional[EventStream] = None,
        supports_spoofing: bool = True,
    ) -> None:
        self.real = real or StaticActivityProvider()
        self.bus = bus or EventStream(name="activity")
        self.supports_spoofing = supports_spoofing
        self._active: ActivityProvider = self.real

    @property
    def active(self) -> ActivityProvider:
        return self._active

    def is_spoofed(self) -> bool:
        return self._active is not self.real

    def swap(self, provider: ActivityProvider) -> None:
        self._active = provider

    def reset(self) -> None:
        self._active = self.real

    # 宿主侧消费者看到的访问器
    def list_running_activities(self) -> List[Activity]:
        return self._active.list_running_activities()

    def find_activity_by_process_id(self, pid: int) -> Optional[Activity]:
        return self._active.find_activity_by_process_id(pid)

    def publish(self, change: Dict[str, Any]) -> None:
        self.bus.publish(TOPIC_ACTIVITY, change)


__all__ = [
    "Activity",
    "ActivityProvider",
    "StaticActivityProvider",
    "SyntheticActivityProvider",
    "ActivityHost",
]
