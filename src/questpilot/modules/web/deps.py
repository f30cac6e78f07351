"""
路由依赖
"""
from ..runtime import QuestRuntime, runtime


def get_runtime() -> QuestRuntime:
    return runtime
