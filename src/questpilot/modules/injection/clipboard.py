"""
剪贴板投递（DevTools 不可用时的兜底方式）

通过 PowerShell 找到客户端窗口、打开控制台并粘贴桥接调用。
该方式没有回传通道，成功仅代表"已投递"。
"""
from __future__ import annotations

import asyncio
import base64
import sys
from typing import List, Optional

from ...core.config import settings
from ...core.errors import EnvironmentUnsupported, InjectionFailed
from ...core.logger import logger
from .base import CodeExecutionProvider, SubmitResult

# 脚本退出码
EXIT_DELIVERED = 0
EXIT_WINDOW_NOT_FOUND = 2

_FIND_WINDOW = r"""
$proc = $null
for ($i = 0; $i -lt {max_tries}; $i++) {{
    $proc = Get-Process -Name '{process}' -ErrorAction SilentlyContinue |
        Where-Object {{ $_.MainWindowHandle -ne 0 }} | Select-Object -First 1
    if ($proc) {{ break }}
    Start-Sleep -Milliseconds {poll_ms}
}}
if (-not $proc) {{ exit {not_found} }}
"""

_WAIT_SCRIPT = _FIND_WINDOW + "exit {delivered}\n"

_SCRIPT = r"""
$ErrorActionPreference = 'Stop'
Add-Type -AssemblyName System.Windows.Forms
Add-Type @"
using System;
using System.Runtime.InteropServices;
public class QpWin {{
    [DllImport("user32.dll")] public static extern bool SetForegroundWindow(IntPtr hWnd);
    [DllImport("user32.dll")] public static extern bool ShowWindow(IntPtr hWnd, int nCmdShow);
}}
"@
$code = [System.Text.Encoding]::UTF8.GetString([System.Convert]::FromBase64String('{code}'))
""" + _FIND_WINDOW + r"""[QpWin]::ShowWindow($proc.MainWindowHandle, 9) | Out-Null
[QpWin]::SetForegroundWindow($proc.MainWindowHandle) | Out-Null
Start-Sleep -Milliseconds 300
$saved = $null
try {{ $saved = Get-Clipboard -Raw }} catch {{ $saved = $null }}
Set-Clipboard -Value $code
{keys}
Start-Sleep -Milliseconds 300
if ($saved) {{ try {{ Set-Clipboard -Value $saved }} catch {{ }} }}
exit {delivered}
"""


class ClipboardProvider(CodeExecutionProvider):
    name = "clipboard"

    def __init__(
        self,
        process_name: Optional[str] = None,
        bridge: Optional[str] = None,
        max_tries: Optional[int] = None,
        poll_ms: Optional[int] = None,
        key_sequence: Optional[List[str]] = None,
        platform: Optional[str] = None,
    ) -> None:
        self._process = process_name or settings.clipboard_process_name
        self._bridge = bridge or settings.devtools_bridge
        self._max_tries = int(settings.clipboard_max_window_tries if max_tries is None else max_tries)
        self._poll_ms = int(settings.clipboard_window_poll_ms if poll_ms is None else poll_ms)
        self._keys = list(key_sequence or settings.clipboard_key_sequence)
        self._platform = platform or sys.platform
        self._log = logger.bind(module="ClipboardProvider")

    def build_code(self, payload: str) -> str:
        return f"{self._bridge} && {self._bridge}.handle({payload})"

    def build_script(self, payload: str) -> str:
        encoded = base64.b64encode(self.build_code(payload).encode("utf-8")).decode("ascii")
        keys = "\n".join(
            f"[System.Windows.Forms.SendKeys]::SendWait('{k}'); Start-Sleep -Milliseconds 400"
            for k in self._keys
        )
        return _SCRIPT.format(
            code=encoded,
            max_tries=self._max_tries,
            process=self._process,
            poll_ms=self._poll_ms,
            not_found=EXIT_WINDOW_NOT_FOUND,
            delivered=EXIT_DELIVERED,
            keys=keys,
        )

    def build_wait_script(self) -> str:
        return _WAIT_SCRIPT.format(
            max_tries=self._max_tries,
            process=self._process,
            poll_ms=self._poll_ms,
            not_found=EXIT_WINDOW_NOT_FOUND,
            delivered=EXIT_DELIVERED,
        )

    async def _run_script(self, script: str):
        process = await asyncio.create_subprocess_exec(
            "powershell", "-NoProfile", "-ExecutionPolicy", "Bypass", "-Command", script,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        return process.returncode, stderr.decode("utf-8", errors="ignore") if stderr else ""

    async def _execute(self, script: str) -> None:
        if not self._platform.startswith("win"):
            raise EnvironmentUnsupported("剪贴板投递仅支持 Windows")

        try:
            code, err = await self._run_script(script)
        except FileNotFoundError as e:
            raise EnvironmentUnsupported("找不到 PowerShell") from e

        if code == EXIT_WINDOW_NOT_FOUND:
            raise EnvironmentUnsupported(f"未找到 {self._process} 窗口")
        if code != EXIT_DELIVERED:
            raise InjectionFailed(f"剪贴板投递失败: {err.strip() or code}")

    async def prepare(self) -> None:
        """等待客户端窗口出现"""
        await self._execute(self.build_wait_script())

    async def submit(self, payload: str) -> SubmitResult:
        await self._execute(self.build_script(payload))
        self._log.info("命令已通过剪贴板投递")
        return SubmitResult(success=True, message="已投递")


__all__ = ["ClipboardProvider", "EXIT_DELIVERED", "EXIT_WINDOW_NOT_FOUND"]
