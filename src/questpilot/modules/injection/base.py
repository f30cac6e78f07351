"""
代码执行提供者基类定义
"""
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class SubmitResult:
    success: bool
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_value(cls, value: Any) -> "SubmitResult":
        """将宿主返回的 {success, message, ...} 转为结果"""
        if not isinstance(value, dict):
            return cls(success=False, message="宿主未返回有效结果")
        data = {k: v for k, v in value.items() if k not in ("success", "message")}
        return cls(
            success=bool(value.get("success")),
            message=str(value.get("message") or ""),
            data=data,
        )


def build_command(type_: str, **fields: Any) -> str:
    """构造提交给宿主的命令（与通道协议同形）"""
    payload = {"type": type_}
    payload.update({k: v for k, v in fields.items() if v is not None})
    return json.dumps(payload, ensure_ascii=False)


class CodeExecutionProvider(ABC):
    """代码执行提供者抽象基类"""

    name = "base"

    async def prepare(self) -> None:
        """提交前确认目标环境可用；不可用时抛出 EnvironmentUnsupported"""
        return None

    @abstractmethod
    async def submit(self, payload: str) -> SubmitResult:
        """
        在目标应用上下文中执行 payload

        Args:
            payload: build_command 生成的命令

        Returns:
            执行结果；环境不可用时抛出 EnvironmentUnsupported
        """
        pass


__all__ = ["SubmitResult", "CodeExecutionProvider", "build_command"]
