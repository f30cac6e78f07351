from .base import CodeExecutionProvider, SubmitResult, build_command
from .clipboard import ClipboardProvider
from .devtools import DevToolsProvider


def build_provider(config=None) -> CodeExecutionProvider:
    """按 injection_mode 选择代码执行方式"""
    if config is None:
        from ...core.config import settings as config
    mode = (config.injection_mode or "devtools").lower()
    if mode == "clipboard":
        return ClipboardProvider()
    if mode == "devtools":
        return DevToolsProvider()
    raise ValueError(f"未知的 injection_mode: {config.injection_mode}")


__all__ = [
    "CodeExecutionProvider",
    "SubmitResult",
    "build_command",
    "ClipboardProvider",
    "DevToolsProvider",
    "build_provider",
]
