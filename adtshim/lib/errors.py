"""Structured exception hierarchy for the compatibility layer.

Three failure families matter to callers:

- ``ContractViolation``: the caller supplied something a legacy operation
  never accepted (missing file, unknown parameter, bad enum value).
- ``TranslationImpossible``: the supplied legacy parameters cannot be mapped
  onto the new API (mutually exclusive switches, alias clashes).
- ``ExecutionFailure``: the new API itself failed.

Only ``ExecutionFailure`` is subject to ``ContinueOnError``.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from adtshim.lib.params import TranslatedCall

__all__ = [
    "ShimError",
    "ContractViolation",
    "UnknownOperationError",
    "TranslationImpossible",
    "ExecutionFailure",
    "CatalogError",
    "ConfigurationError",
]


class ShimError(Exception):
    """Base exception for all compatibility layer errors."""

    error_code: str = "ERR000"

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.operation = operation
        self.details = details or {}
        self.suggestion = suggestion
        if error_code:
            self.error_code = error_code

        parts = [f"[{self.error_code}]"]
        if operation:
            parts.append(f"[{operation}]")
        parts.append(message)
        rendered = " ".join(parts)

        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            rendered = f"{rendered} ({detail_str})"
        if suggestion:
            rendered = f"{rendered}\nSuggestion: {suggestion}"

        super().__init__(rendered)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "operation": self.operation,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class ContractViolation(ShimError):
    """A supplied value violates a documented precondition.

    Always fatal, regardless of ``ContinueOnError``.
    """

    error_code = "CMP001"

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        parameter: Optional[str] = None,
        rule: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.parameter = parameter
        self.rule = rule

        details = kwargs.pop("details", {})
        if parameter:
            details["parameter"] = parameter
        if rule:
            details["rule"] = rule

        super().__init__(message, operation=operation, details=details, **kwargs)


class UnknownOperationError(ContractViolation, LookupError):
    """The legacy operation name is not in the catalog."""

    error_code = "CMP004"

    def __init__(self, operation: str, **kwargs: Any) -> None:
        kwargs.setdefault(
            "suggestion", "Run 'adt-shim list' to see the supported legacy operations."
        )
        super().__init__(
            f"Unknown legacy operation '{operation}'",
            operation=operation,
            **kwargs,
        )


class TranslationImpossible(ShimError):
    """The supplied legacy parameters cannot be mapped to the new API."""

    error_code = "CMP002"

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        parameters: Optional[Iterable[str]] = None,
        **kwargs: Any,
    ) -> None:
        self.parameters = tuple(parameters or ())

        details = kwargs.pop("details", {})
        if self.parameters:
            details["parameters"] = ", ".join(self.parameters)

        super().__init__(message, operation=operation, details=details, **kwargs)


class ExecutionFailure(ShimError):
    """The wrapped new-API call failed.

    ``operation`` is always the legacy name the caller used so scripts can
    tell which of their calls broke.
    """

    error_code = "CMP003"

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        replacement: Optional[str] = None,
        call: Optional["TranslatedCall"] = None,
        cause: Optional[BaseException] = None,
        **kwargs: Any,
    ) -> None:
        self.replacement = replacement
        self.call = call
        self.cause = cause

        details = kwargs.pop("details", {})
        if replacement:
            details["replacement"] = replacement
        if cause is not None:
            details["cause_type"] = type(cause).__name__

        super().__init__(message, operation=operation, details=details, **kwargs)

    @property
    def kind(self) -> str:
        """Name of the underlying exception type, or of this class."""
        if self.cause is not None:
            return type(self.cause).__name__
        return type(self).__name__


class ConfigurationError(ShimError):
    """Invalid settings (environment, .env or YAML)."""

    error_code = "CFG002"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        self.field = field
        self.value = value

        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(message, details=details, **kwargs)


class CatalogError(ConfigurationError):
    """The translation rule catalog is malformed or inconsistent."""

    error_code = "CFG001"

    def __init__(
        self,
        message: str,
        *,
        catalog_path: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.catalog_path = catalog_path

        details = kwargs.pop("details", {})
        if catalog_path:
            details["catalog_path"] = catalog_path

        super().__init__(message, details=details, **kwargs)
