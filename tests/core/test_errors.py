import asyncio

from questpilot.core.constants import FailureKind
from questpilot.core.errors import (
    EnvironmentUnsupported,
    ExecutionTimeout,
    InjectionFailed,
    PollingTransientError,
    TaskNotFound,
    describe_error,
    failure_kind_of,
)


def test_failure_kind_of_taxonomy():
    assert failure_kind_of(TaskNotFound("x")) == FailureKind.NOT_FOUND
    assert failure_kind_of(EnvironmentUnsupported("x")) == FailureKind.ENVIRONMENT_UNSUPPORTED
    assert failure_kind_of(InjectionFailed("x")) == FailureKind.INJECTION_FAILED
    assert failure_kind_of(ExecutionTimeout("x")) == FailureKind.TIMEOUT
    assert failure_kind_of(PollingTransientError("x")) == FailureKind.POLLING_TRANSIENT
    assert failure_kind_of(asyncio.TimeoutError()) == FailureKind.TIMEOUT
    assert failure_kind_of(KeyError("boom")) == FailureKind.UNKNOWN


def test_describe_error_uses_class_name_for_empty_message():
    assert describe_error(ValueError()) == "ValueError"
    assert describe_error(ValueError(" bad "), "parse") == "[parse] bad"
