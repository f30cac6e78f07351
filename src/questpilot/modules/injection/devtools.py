"""
DevTools 协议注入

通过调试端口列出页面目标（HTTP /json/list），再经目标的 websocket
调用 Runtime.evaluate，把命令交给页面内已安装的桥接对象处理。
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, List, Optional

import httpx
import websockets
from websockets.exceptions import WebSocketException

from ...core.config import settings
from ...core.errors import EnvironmentUnsupported, ExecutionTimeout
from ...core.logger import logger
from .base import CodeExecutionProvider, SubmitResult


class DevToolsProvider(CodeExecutionProvider):
    name = "devtools"

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        bridge: Optional[str] = None,
        target_prefixes: Optional[List[str]] = None,
        target_timeout: Optional[float] = None,
        eval_timeout: Optional[float] = None,
        poll_interval: float = 0.5,
        connector: Optional[Callable[..., Any]] = None,
    ) -> None:
        self._host = host or settings.devtools_host
        self._port = int(port or settings.devtools_port)
        self._bridge = bridge or settings.devtools_bridge
        self._prefixes = list(target_prefixes or settings.devtools_target_prefixes)
        self._target_timeout = float(settings.devtools_target_timeout_sec if target_timeout is None else target_timeout)
        self._eval_timeout = float(settings.injection_timeout_sec if eval_timeout is None else eval_timeout)
        self._poll_interval = poll_interval
        self._connector = connector or websockets.connect
        self._next_id = 0
        self._target: Optional[dict] = None
        self._log = logger.bind(module="DevToolsProvider")

    def _list_url(self) -> str:
        return f"http://{self._host}:{self._port}/json/list"

    async def list_targets(self) -> List[dict]:
        async with httpx.AsyncClient(timeout=5) as client:
            response = await client.get(self._list_url())
        response.raise_for_status()
        payload = response.json()
        return payload if isinstance(payload, list) else []

    def match_target(self, targets: List[dict]) -> Optional[dict]:
        for target in targets:
            if target.get("type") != "page":
                continue
            url = target.get("url") or ""
            if any(url.startswith(p) for p in self._prefixes) or "discordapp" in url:
                return target
        return None

    async def find_target(self) -> dict:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._target_timeout
        while True:
            try:
                target = self.match_target(await self.list_targets())
                if target:
                    return target
            except (httpx.HTTPError, ValueError) as e:
                self._log.debug(f"调试端口暂不可用: {e}")
            if loop.time() >= deadline:
                raise EnvironmentUnsupported("未找到目标客户端页面，请确认客户端已完全打开并启用调试端口")
            await asyncio.sleep(self._poll_interval)

    async def prepare(self) -> None:
        self._target = await self.find_target()

    def build_expression(self, payload: str) -> str:
        literal = json.dumps(payload, ensure_ascii=False)
        return (
            "(async () => {"
            f" const bridge = {self._bridge};"
            " if (!bridge || typeof bridge.handle !== 'function') {"
            " return { success: false, message: 'bridge not installed' }; }"
            f" return await bridge.handle(JSON.parse({literal}));"
            " })()"
        )

    async def evaluate(self, ws_url: str, expression: str) -> Any:
        self._next_id += 1
        request_id = self._next_id
        request = {
            "id": request_id,
            "method": "Runtime.evaluate",
            "params": {
                "expression": expression,
                "awaitPromise": True,
                "returnByValue": True,
            },
        }
        async with self._connector(ws_url, max_size=None) as ws:
            await ws.send(json.dumps(request))
            while True:
                message = json.loads(await ws.recv())
                if message.get("id") != request_id:
                    continue
                if message.get("error"):
                    return {"success": False, "message": message["error"].get("message") or "evaluate failed"}
                result = message.get("result") or {}
                details = result.get("exceptionDetails")
                if details:
                    text = (details.get("exception") or {}).get("description") or details.get("text")
                    return {"success": False, "message": text or "script exception"}
                return (result.get("result") or {}).get("value")

    async def submit(self, payload: str) -> SubmitResult:
        target, self._target = self._target, None
        if target is None:
            target = await self.find_target()
        ws_url = target.get("webSocketDebuggerUrl")
        if not ws_url:
            raise EnvironmentUnsupported("目标页面已被其他调试器占用")
        try:
            value = await asyncio.wait_for(
                self.evaluate(ws_url, self.build_expression(payload)),
                timeout=self._eval_timeout,
            )
        except asyncio.TimeoutError:
            raise ExecutionTimeout(f"等待执行结果超时（{self._eval_timeout:g}秒）")
        except (OSError, WebSocketException) as e:
            self._log.error(f"调试连接失败: {e}")
            return SubmitResult(success=False, message=f"调试连接失败: {e}")
        return SubmitResult.from_value(value)


__all__ = ["DevToolsProvider"]
