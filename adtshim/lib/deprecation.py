"""Deprecation notices for legacy operations.

Every legacy call produces a notice pointing at its replacement, and every
discontinued parameter produces one more. Both kinds go through a
``NoticeSink`` and share one suppression flag, fixed when the facade is built.
"""

from __future__ import annotations

import logging
import os
import sys
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Protocol, Tuple

__all__ = [
    "LegacyOperationDeprecationWarning",
    "NoticeSeverity",
    "DeprecationNotice",
    "NoticeSink",
    "LogNoticeSink",
    "MemoryNoticeSink",
    "operation_notice",
    "parameter_notice",
]

DEPRECATION_LOGGER = "adtshim.deprecation"


class LegacyOperationDeprecationWarning(DeprecationWarning):
    """Category for legacy operation notices raised through ``warnings``."""


# Shown once per call site unless the interpreter was started with -W options.
if not sys.warnoptions:
    warnings.simplefilter("default", LegacyOperationDeprecationWarning)

_PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__))) + os.sep


def _caller_stacklevel() -> int:
    """Stack level of the first frame outside this package, seen from the caller."""
    frame = sys._getframe(1)
    level = 1
    while frame is not None and frame.f_code.co_filename.startswith(_PACKAGE_DIR):
        frame = frame.f_back
        level += 1
    return level


class NoticeSeverity(Enum):
    """Notice levels, mirroring the toolkit's 1/2/3 log severities."""

    INFO = 1
    WARNING = 2
    ERROR = 3

    @property
    def log_level(self) -> int:
        return {
            NoticeSeverity.INFO: logging.INFO,
            NoticeSeverity.WARNING: logging.WARNING,
            NoticeSeverity.ERROR: logging.ERROR,
        }[self]


@dataclass(frozen=True)
class DeprecationNotice:
    operation: str
    replacement: str
    parameter: Optional[str] = None
    severity: NoticeSeverity = NoticeSeverity.WARNING

    @property
    def message(self) -> str:
        if self.parameter:
            return (
                f"The parameter [-{self.parameter}] of [{self.operation}] is "
                f"discontinued and no longer has any effect."
            )
        return (
            f"The function [{self.operation}] has been replaced by "
            f"[{self.replacement}]. Please migrate your scripts to use the new "
            f"function, as the legacy name will be removed in a future release."
        )


def operation_notice(operation: str, replacement: str) -> DeprecationNotice:
    return DeprecationNotice(operation=operation, replacement=replacement)


def parameter_notice(operation: str, replacement: str, parameter: str) -> DeprecationNotice:
    return DeprecationNotice(
        operation=operation, replacement=replacement, parameter=parameter
    )


class NoticeSink(Protocol):
    """Single-call, leveled notice interface."""

    def emit(
        self,
        message: str,
        *,
        severity: NoticeSeverity,
        source: str,
        suppress: bool = False,
    ) -> None:
        ...


class LogNoticeSink:
    """Write notices to the ``adtshim.deprecation`` logger.

    With ``warn=True`` each notice is also raised as a
    ``LegacyOperationDeprecationWarning`` attributed to the line that called
    the legacy operation. The warning is shown by default; when Python runs
    with ``-W`` options (``-W error::DeprecationWarning``, say) those decide
    instead, so test suites can turn legacy usage into errors.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, warn: bool = False):
        self.logger = logger or logging.getLogger(DEPRECATION_LOGGER)
        self.warn = warn

    def emit(
        self,
        message: str,
        *,
        severity: NoticeSeverity,
        source: str,
        suppress: bool = False,
    ) -> None:
        if suppress:
            return
        self.logger.log(
            severity.log_level,
            message,
            extra={"source": source, "notice_severity": severity.value},
        )
        if self.warn:
            warnings.warn(
                message, LegacyOperationDeprecationWarning, stacklevel=_caller_stacklevel()
            )


class MemoryNoticeSink:
    """Collect notices in memory."""

    def __init__(self) -> None:
        self.records: List[Tuple[str, NoticeSeverity, str]] = []

    def emit(
        self,
        message: str,
        *,
        severity: NoticeSeverity,
        source: str,
        suppress: bool = False,
    ) -> None:
        if suppress:
            return
        self.records.append((message, severity, source))

    @property
    def messages(self) -> List[str]:
        return [message for message, _, _ in self.records]

    def clear(self) -> None:
        self.records.clear()
