import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosedError

from questpilot.modules.channel.client import ReconnectingChannelClient


class _Conn:
    """队列驱动的假连接；close 后迭代结束"""

    def __init__(self, frames=()):
        self.queue = asyncio.Queue()
        for frame in frames:
            self.queue.put_nowait(frame)
        self.sent = []
        self.closed = False

    def finish(self):
        self.queue.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self):
        frame = await self.queue.get()
        if frame is None:
            raise StopAsyncIteration
        return frame

    async def send(self, data):
        self.sent.append(json.loads(data))

    async def close(self):
        self.closed = True
        self.finish()


def _client(results, max_attempts=3, base_delay=1.0):
    """results 中的异常依次抛出，其余作为连接返回"""
    delays = []
    calls = []

    async def connector(url):
        calls.append(url)
        item = results.pop(0) if len(results) > 1 else results[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def sleep(delay):
        delays.append(delay)

    client = ReconnectingChannelClient(
        url="ws://127.0.0.1:8765/ws",
        connect_timeout=1,
        base_delay=base_delay,
        max_attempts=max_attempts,
        connector=connector,
        sleep=sleep,
    )
    return client, delays, calls


@pytest.mark.asyncio
async def test_backoff_doubles_until_limit():
    client, delays, calls = _client([OSError("refused")], max_attempts=3)
    reconnecting = []
    client.on("reconnecting", reconnecting.append)

    client.connect()
    await asyncio.wait_for(client._task, timeout=1)

    assert delays == [1.0, 2.0, 4.0]
    assert len(calls) == 4
    assert [r["attempt"] for r in reconnecting] == [1, 2, 3]
    assert not client.running


@pytest.mark.asyncio
async def test_attempts_reset_after_successful_connection():
    conn = _Conn()
    conn.finish()
    client, delays, _ = _client([OSError("refused"), conn, OSError("refused")], max_attempts=2)
    connected = []
    client.on("connected", lambda: connected.append(1))

    client.connect()
    await asyncio.wait_for(client._task, timeout=1)

    assert connected == [1]
    assert delays == [1.0, 1.0, 2.0]


@pytest.mark.asyncio
async def test_messages_dispatch_and_bad_frames_drop():
    conn = _Conn([
        "not json",
        json.dumps([1, 2]),
        json.dumps({"type": "quest-update", "data": {"quests": []}}),
        json.dumps({"type": "custom", "data": 1}),
    ])
    conn.finish()
    client, _, _ = _client([conn], max_attempts=0)
    messages, updates = [], []
    client.on("message", messages.append)
    client.on("quest-update", updates.append)

    client.connect()
    await asyncio.wait_for(client._task, timeout=1)

    assert [m["type"] for m in messages] == ["quest-update", "custom"]
    assert updates == [{"quests": []}]


@pytest.mark.asyncio
async def test_send_requires_connection():
    client, _, _ = _client([OSError("refused")], max_attempts=0)
    assert await client.send({"type": "get-quests"}) is False


@pytest.mark.asyncio
async def test_send_and_manual_disconnect():
    conn = _Conn()
    client, delays, _ = _client([conn])
    ready = asyncio.Event()
    reconnecting = []
    client.on("connected", ready.set)
    client.on("reconnecting", reconnecting.append)

    client.connect()
    await asyncio.wait_for(ready.wait(), timeout=1)
    assert client.is_connected()
    assert await client.send({"type": "get-quests"}) is True
    assert conn.sent == [{"type": "get-quests"}]

    await client.disconnect()

    assert conn.closed
    assert not client.is_connected()
    assert reconnecting == []
    assert delays == []


@pytest.mark.asyncio
async def test_async_handlers_are_scheduled():
    conn = _Conn([json.dumps({"type": "log", "data": {"message": "hi"}})])
    conn.finish()
    client, _, _ = _client([conn], max_attempts=0)
    received = asyncio.Event()
    seen = []

    async def on_log(data):
        seen.append(data)
        received.set()

    client.on("log", on_log)
    client.connect()
    await asyncio.wait_for(received.wait(), timeout=1)

    assert seen == [{"message": "hi"}]


def test_off_removes_handler():
    client, _, _ = _client([OSError("x")])
    handler = lambda *a: None  # noqa: E731
    client.on("error", handler)
    client.off("error", handler)
    assert client.emit("error", OSError("x")) is False


@pytest.mark.asyncio
async def test_connect_timeout_counts_as_disconnect():
    delays = []

    async def never_opens(url):
        await asyncio.Event().wait()

    async def sleep(delay):
        delays.append(delay)

    client = ReconnectingChannelClient(
        url="ws://127.0.0.1:8765/ws",
        connect_timeout=0.01,
        base_delay=1.5,
        max_attempts=1,
        connector=never_opens,
        sleep=sleep,
    )
    disconnected, errors = [], []
    client.on("disconnected", lambda: disconnected.append(1))
    client.on("error", errors.append)

    client.connect()
    await asyncio.wait_for(client._task, timeout=1)

    assert delays == [1.5]
    assert len(disconnected) == 2
    assert all(isinstance(e, asyncio.TimeoutError) for e in errors)
    assert not client.is_connected()


class _DroppedConn(_Conn):
    async def __anext__(self):
        raise ConnectionClosedError(None, None)


@pytest.mark.asyncio
async def test_abnormal_close_emits_error_then_disconnected():
    client, delays, _ = _client([_DroppedConn()], max_attempts=0)
    seen = []
    client.on("error", lambda e: seen.append(("error", type(e))))
    client.on("disconnected", lambda: seen.append(("disconnected", None)))

    client.connect()
    await asyncio.wait_for(client._task, timeout=1)

    assert seen == [("error", ConnectionClosedError), ("disconnected", None)]
    assert not client.is_connected()
