import asyncio
import json

import pytest

from questpilot.core.errors import PollingTransientError, TaskNotFound
from questpilot.modules.injection.base import SubmitResult
from questpilot.modules.quests.source import ChannelTaskSource, ProviderTaskSource, StaticTaskSource


QUESTS = [
    {"questId": "a", "taskType": "PLAY_ON_DESKTOP", "secondsNeeded": 600, "secondsDone": 30},
    {"questId": "b", "taskType": "WATCH_VIDEO", "secondsNeeded": 30},
]


class _Provider:
    def __init__(self, result):
        self.result = result
        self.payloads = []

    async def submit(self, payload):
        self.payloads.append(payload)
        return self.result


class _Client:
    """通道客户端替身：发送 get-quests 后按脚本回复"""

    def __init__(self, reply=None, connected=True):
        self.handlers = {}
        self.sent = []
        self.reply = reply
        self.connected = connected

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    async def send(self, message):
        if not self.connected:
            return False
        self.sent.append(message)
        if self.reply is not None:
            for data in self.reply:
                asyncio.get_running_loop().call_soon(self._emit, "quest-update", data)
        return True

    def _emit(self, event, data):
        for handler in self.handlers.get(event, []):
            handler(data)


@pytest.mark.asyncio
async def test_provider_source_parses_quests():
    provider = _Provider(SubmitResult(success=True, data={"quests": QUESTS}))
    source = ProviderTaskSource(provider, ignored_ids=[])

    tasks = await source.list_tasks()

    assert [t.task_id for t in tasks] == ["a", "b"]
    assert json.loads(provider.payloads[0]) == {"type": "get-quests"}
    assert await source.get_current_progress("a") == 30


@pytest.mark.asyncio
async def test_provider_source_failure_is_transient():
    source = ProviderTaskSource(_Provider(SubmitResult(success=False, message="bridge not installed")))

    with pytest.raises(PollingTransientError):
        await source.list_tasks()


@pytest.mark.asyncio
async def test_get_current_progress_unknown_task():
    source = StaticTaskSource([], ignored_ids=[])
    with pytest.raises(TaskNotFound):
        await source.get_current_progress("missing")


@pytest.mark.asyncio
async def test_channel_source_waits_for_quest_list_and_ignores_progress_updates():
    client = _Client(reply=[{"progress": {"questId": "a"}}, {"quests": QUESTS}])
    source = ChannelTaskSource(client, timeout=1, ignored_ids=[])

    tasks = await source.list_tasks()

    assert [t.task_id for t in tasks] == ["a", "b"]
    assert client.sent == [{"type": "get-quests"}]
    assert [t.task_id for t in source.latest] == ["a", "b"]


@pytest.mark.asyncio
async def test_channel_source_timeout_is_transient():
    source = ChannelTaskSource(_Client(reply=[]), timeout=0.01)
    with pytest.raises(PollingTransientError):
        await source.list_tasks()


@pytest.mark.asyncio
async def test_channel_source_not_connected_is_transient():
    source = ChannelTaskSource(_Client(connected=False), timeout=1)
    with pytest.raises(PollingTransientError):
        await source.list_tasks()


@pytest.mark.asyncio
async def test_eligible_tasks_uses_ignored_ids():
    source = ProviderTaskSource(_Provider(SubmitResult(success=True, data={"quests": QUESTS})), ignored_ids=["b"])
    tasks = await source.eligible_tasks()
    assert [t.task_id for t in tasks] == ["a"]
