"""
进程级组件装配
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from ..core.config import Settings, settings
from ..core.constants import MessageType
from ..core.logger import logger
from ..core.timeutils import SystemClock, system_clock
from .activity.provider import Activity, ActivityHost, StaticActivityProvider
from .activity.spoofer import ActivitySpoofer
from .channel.client import ReconnectingChannelClient
from .channel.hub import ChannelHub
from .events.stream import EventStream
from .executor.monitor import ProgressMonitor
from .executor.orchestrator import ExecutionOrchestrator
from .injection import CodeExecutionProvider, build_provider
from .quests.source import ChannelTaskSource, ProviderTaskSource, TaskSource
from .tasks.schedule import ScheduleService


class QuestRuntime:
    def __init__(
        self,
        config: Settings = settings,
        provider: Optional[CodeExecutionProvider] = None,
        source: Optional[TaskSource] = None,
        clock: SystemClock = system_clock,
    ) -> None:
        self.config = config
        self.events = EventStream(name="quests", max_logs=config.log_max_entries)
        self.host = ActivityHost(
            real=StaticActivityProvider(),
            bus=EventStream(name="activity", max_logs=config.log_max_entries),
            supports_spoofing=config.host_native_app,
        )
        self.spoofer = ActivitySpoofer(self.host, clock=clock)
        self.provider = provider or build_provider(config)
        self.channel_client = ReconnectingChannelClient()
        self.source = source or self._build_source()
        self.monitor = ProgressMonitor(
            self.source,
            self.events,
            clock=clock,
            interval=config.progress_poll_interval_sec,
            slack_seconds=config.progress_slack_seconds,
            restore=self.spoofer.restore,
        )
        self.orchestrator = ExecutionOrchestrator(
            self.source,
            self.provider,
            self.spoofer,
            self.monitor,
            self.events,
            clock=clock,
            injection_timeout=config.injection_timeout_sec,
        )
        self.hub = ChannelHub(self.orchestrator)
        self.hub.add_host_listener(self._on_host_message)
        self.schedules = ScheduleService(self.orchestrator)
        self._started = False
        self.log = logger.bind(module="QuestRuntime")

    def _build_source(self) -> TaskSource:
        mode = (self.config.task_source or "provider").lower()
        if mode == "channel":
            return ChannelTaskSource(self.channel_client, ignored_ids=self.config.ignored_quest_ids)
        return ProviderTaskSource(self.provider, ignored_ids=self.config.ignored_quest_ids)

    async def start(self) -> None:
        if self._started:
            return
        self.hub.attach(self.events, self.host.bus)
        if isinstance(self.source, ChannelTaskSource):
            self.channel_client.connect()
        self.schedules.start()
        self._started = True
        self.log.info(f"运行时已启动 injection={self.provider.name} source={self.config.task_source}")

    async def stop(self) -> None:
        if not self._started:
            return
        await self.orchestrator.shutdown()
        await self.channel_client.disconnect()
        self.schedules.stop()
        await self.hub.detach()
        self._started = False
        self.log.info("运行时已停止")

    def status(self) -> Dict[str, Any]:
        data = self.hub.full_status()
        data.update({
            "injection": self.provider.name,
            "taskSource": self.config.task_source,
            "channelConnected": self.channel_client.is_connected(),
            "spoofing": self.host.is_spoofed(),
            "spoofAvailable": self.spoofer.available(),
        })
        return data

    def _on_host_message(self, message: Dict[str, Any]) -> None:
        """宿主上报的真实运行中游戏列表"""
        if message.get("type") != MessageType.STATUS_UPDATE.value:
            return
        data = message.get("data")
        if not isinstance(data, dict) or not isinstance(data.get("runningGames"), list):
            return
        games = [a for a in (Activity.from_dict(g) for g in data["runningGames"] if isinstance(g, dict)) if a]
        if isinstance(self.host.real, StaticActivityProvider):
            self.host.real.update(games)


runtime = QuestRuntime()


__all__ = ["QuestRuntime", "runtime"]
