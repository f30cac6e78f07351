"""
异常定义

所有自动化流程的可预期失败都继承 QuestAutomationError，
并携带 FailureKind，编排器据此生成对应的执行结果。
"""
from __future__ import annotations

import asyncio
from typing import Optional

from .constants import FailureKind


class QuestAutomationError(RuntimeError):
    """自动化流程失败"""

    kind: FailureKind = FailureKind.UNKNOWN


class TaskNotFound(QuestAutomationError):
    kind = FailureKind.NOT_FOUND


class EnvironmentUnsupported(QuestAutomationError):
    kind = FailureKind.ENVIRONMENT_UNSUPPORTED


class InjectionFailed(QuestAutomationError):
    kind = FailureKind.INJECTION_FAILED


class ExecutionTimeout(QuestAutomationError):
    kind = FailureKind.TIMEOUT


class PollingTransientError(QuestAutomationError):
    """单次轮询失败，不终止监控"""

    kind = FailureKind.POLLING_TRANSIENT


def failure_kind_of(exc: BaseException) -> FailureKind:
    if isinstance(exc, QuestAutomationError):
        return exc.kind
    if isinstance(exc, asyncio.TimeoutError):
        return FailureKind.TIMEOUT
    return FailureKind.UNKNOWN


def describe_error(exc: BaseException, context: Optional[str] = None) -> str:
    """生成单行错误描述"""
    message = str(exc).strip() or exc.__class__.__name__
    if context:
        return f"[{context}] {message}"
    return message
