"""Legacy call capture and parameter rewriting.

A ``LegacyCall`` records exactly what the caller supplied. Parameters the
caller left out are absent, never filled with defaults, because several
translations only fire when a parameter was given explicitly (inverting an
explicit ``False`` is not the same as inverting "not supplied").

``ParameterBuilder`` starts from a ``LegacyCall`` and produces the read-only
mapping handed to the new API. The caller's input is never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple, TYPE_CHECKING

from adtshim.lib.env import parse_flag
from adtshim.lib.errors import ConfigurationError, ContractViolation, TranslationImpossible

if TYPE_CHECKING:
    from adtshim.lib.deprecation import DeprecationNotice

__all__ = [
    "NOT_SUPPLIED",
    "LegacyCall",
    "ParameterBuilder",
    "TranslatedCall",
    "as_switch",
    "is_empty",
    "is_supplied",
]


class _NotSupplied:
    """Marker for a parameter the caller did not pass."""

    _instance: Optional["_NotSupplied"] = None

    def __new__(cls) -> "_NotSupplied":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_SUPPLIED"

    def __reduce__(self) -> str:
        return "NOT_SUPPLIED"


NOT_SUPPLIED: Any = _NotSupplied()


def is_supplied(value: Any) -> bool:
    """Return True unless ``value`` is the ``NOT_SUPPLIED`` marker."""
    return value is not NOT_SUPPLIED


def is_empty(value: Any) -> bool:
    """None, blank strings and empty collections count as empty."""
    if value is None or value is NOT_SUPPLIED:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def as_switch(value: Any, *, operation: str, parameter: str) -> bool:
    """Read a switch value: booleans, 1/0 and the usual true/false strings.

    Raises:
        ContractViolation: The value is not recognisable as a boolean.
    """
    try:
        return parse_flag(value, field=parameter)
    except ConfigurationError:
        raise ContractViolation(
            f"Value '{value}' for switch '{parameter}' is not a boolean",
            operation=operation,
            parameter=parameter,
            rule="boolean switch",
        ) from None


@dataclass(frozen=True)
class LegacyCall:
    """An immutable record of one legacy invocation."""

    operation: str
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        cleaned = {k: v for k, v in self.parameters.items() if is_supplied(v)}
        object.__setattr__(self, "parameters", MappingProxyType(cleaned))

    @classmethod
    def capture(
        cls,
        operation: str,
        parameters: Optional[Mapping[str, Any]] = None,
        aliases: Optional[Mapping[str, str]] = None,
    ) -> "LegacyCall":
        """Capture supplied parameters, folding aliases onto canonical names.

        Raises:
            TranslationImpossible: An alias and its canonical name were both
                supplied.
        """
        aliases = aliases or {}
        captured: Dict[str, Any] = {}
        origin: Dict[str, str] = {}

        for name, value in (parameters or {}).items():
            if not is_supplied(value):
                continue
            canonical = aliases.get(name, name)
            if canonical in captured:
                raise TranslationImpossible(
                    f"Parameter '{canonical}' was supplied more than once",
                    operation=operation,
                    parameters=sorted({origin[canonical], name}),
                )
            captured[canonical] = value
            origin[canonical] = name

        return cls(operation=operation, parameters=captured)

    def supplied(self, name: str) -> bool:
        return name in self.parameters

    def get(self, name: str, default: Any = NOT_SUPPLIED) -> Any:
        return self.parameters.get(name, default)

    def __iter__(self) -> Iterator[str]:
        return iter(self.parameters)


class ParameterBuilder:
    """Mutable working copy of a legacy call's parameters.

    Rewrite steps operate on the builder; ``build()`` freezes the result.
    """

    def __init__(self, call: LegacyCall):
        self.call = call
        self._params: Dict[str, Any] = dict(call.parameters)

    @property
    def operation(self) -> str:
        return self.call.operation

    def has(self, name: str) -> bool:
        return name in self._params

    def get(self, name: str, default: Any = NOT_SUPPLIED) -> Any:
        return self._params.get(name, default)

    def set(self, name: str, value: Any) -> None:
        self._params[name] = value

    def pop(self, name: str, default: Any = NOT_SUPPLIED) -> Any:
        return self._params.pop(name, default)

    def rename(self, source: str, target: str) -> bool:
        """Move ``source`` to ``target``; return whether anything moved."""
        if source not in self._params:
            return False
        if source == target:
            return True
        if target in self._params:
            raise TranslationImpossible(
                f"Cannot rename '{source}' to '{target}': '{target}' is already set",
                operation=self.operation,
                parameters=[source, target],
            )
        self._params[target] = self._params.pop(source)
        return True

    def names(self) -> Tuple[str, ...]:
        return tuple(self._params)

    def build(self) -> Mapping[str, Any]:
        return MappingProxyType(dict(self._params))


@dataclass(frozen=True)
class TranslatedCall:
    """Result of translating a legacy call: what will reach the new API."""

    operation: str
    replacement: str
    parameters: Mapping[str, Any]
    notices: Tuple["DeprecationNotice", ...] = ()
    passthru: bool = False
    continue_on_error: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view, used by the CLI dry run."""
        return {
            "operation": self.operation,
            "replacement": self.replacement,
            "parameters": dict(self.parameters),
            "passthru": self.passthru,
            "continue_on_error": self.continue_on_error,
            "notices": [notice.message for notice in self.notices],
        }
