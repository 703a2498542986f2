"""Result type returned at the new-API boundary.

The facade never decides alone whether an execution failure terminates the
caller. It produces an ``InvocationResult`` and the caller's
``ContinueOnError`` preference picks ``unwrap()`` or ``unwrap_or()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from adtshim.lib.errors import ExecutionFailure

__all__ = ["Success", "Failure", "InvocationResult"]

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    ok = True

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: Any = None) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    """A failed new-API call with its kind, message and originating call."""

    error: ExecutionFailure

    ok = False

    @property
    def kind(self) -> str:
        return self.error.kind

    @property
    def message(self) -> str:
        return self.error.message

    @property
    def operation(self) -> str:
        return self.error.operation or ""

    def unwrap(self) -> Any:
        cause = self.error.cause
        if cause is not None:
            raise self.error from cause
        raise self.error

    def unwrap_or(self, default: Any = None) -> Any:
        return default


InvocationResult = Union[Success[Any], Failure]
