"""Translation rules: how one legacy operation maps onto the new API.

A ``TranslationRule`` is static configuration. Its ``steps`` rewrite the
parameter set in order; its ``checks`` are preconditions evaluated before
anything reaches the new API.

Steps and checks are registered by name so the YAML catalog can refer to
them (``rename``, ``invert``, ``split`` ...).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from pathlib import Path, PureWindowsPath
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
    Type,
    TypeVar,
)

from adtshim.lib.errors import ContractViolation, TranslationImpossible
from adtshim.lib.params import LegacyCall, ParameterBuilder, as_switch, is_empty

__all__ = [
    "CONTINUE_ON_ERROR",
    "PASSTHRU",
    "NAMED_PATTERNS",
    "ReturnMode",
    "RewriteStep",
    "Check",
    "Rename",
    "Invert",
    "MapValues",
    "Split",
    "Route",
    "Join",
    "Duration",
    "Switch",
    "Exclusive",
    "Unsupported",
    "Constant",
    "ProcessList",
    "Required",
    "PathExists",
    "MatchesPattern",
    "Choices",
    "STEP_TYPES",
    "CHECK_TYPES",
    "TranslationRule",
    "resolve_pattern",
]

CONTINUE_ON_ERROR = "ContinueOnError"
PASSTHRU = "PassThru"

NAMED_PATTERNS: Dict[str, str] = {
    "guid": (
        r"^\{?[0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-"
        r"[0-9A-Fa-f]{4}-[0-9A-Fa-f]{12}\}?$"
    ),
    "kb_number": r"^(KB)?\d+$",
    "registry_value_type": (
        r"^(Binary|DWord|ExpandString|MultiString|None|QWord|String|Unknown)$"
    ),
}


def resolve_pattern(pattern: str) -> "re.Pattern[str]":
    """Compile a named pattern (``guid``) or a literal regex, case-insensitive."""
    return re.compile(NAMED_PATTERNS.get(pattern, pattern), re.IGNORECASE)


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class ReturnMode(Enum):
    """When a legacy operation hands the new API's result back."""

    ALWAYS = "always"
    PASSTHRU = "passthru"
    NEVER = "never"


# =============================================================================
# Rewrite steps
# =============================================================================


class RewriteStep:
    """One ordered rewrite applied to a ``ParameterBuilder``."""

    keyword: str = ""

    def apply(self, builder: ParameterBuilder) -> None:
        raise NotImplementedError

    def sources(self) -> Tuple[str, ...]:
        """Parameter names this step reads."""
        return ()

    def consumes(self) -> Tuple[str, ...]:
        """Parameter names that are always gone after this step."""
        return self.sources()

    def produces(self) -> Tuple[str, ...]:
        """Parameter names this step may add."""
        return ()


S = TypeVar("S", bound=RewriteStep)

STEP_TYPES: Dict[str, Type[RewriteStep]] = {}


def register_step(name: str) -> Callable[[Type[S]], Type[S]]:
    def decorator(cls: Type[S]) -> Type[S]:
        cls.keyword = name
        STEP_TYPES[name] = cls
        return cls

    return decorator


@register_step("rename")
@dataclass(frozen=True)
class Rename(RewriteStep):
    source: str
    target: str

    def apply(self, builder: ParameterBuilder) -> None:
        builder.rename(self.source, self.target)

    def sources(self) -> Tuple[str, ...]:
        return (self.source,)

    def consumes(self) -> Tuple[str, ...]:
        return () if self.source == self.target else (self.source,)

    def produces(self) -> Tuple[str, ...]:
        return (self.target,)


@register_step("invert")
@dataclass(frozen=True)
class Invert(RewriteStep):
    """Boolean inversion, e.g. ``TopMost=False`` -> ``NotTopMost=True``.

    Fires only when the source was supplied; an absent source leaves the
    target absent too.
    """

    source: str
    target: str

    def apply(self, builder: ParameterBuilder) -> None:
        if not builder.has(self.source):
            return
        value = builder.pop(self.source)
        builder.set(
            self.target,
            not as_switch(value, operation=builder.operation, parameter=self.source),
        )

    def sources(self) -> Tuple[str, ...]:
        return (self.source,)

    def produces(self) -> Tuple[str, ...]:
        return (self.target,)


@register_step("map")
@dataclass(frozen=True)
class MapValues(RewriteStep):
    """Enum mapping, matched case-insensitively."""

    source: str
    values: Mapping[str, Any]
    target: Optional[str] = None

    def apply(self, builder: ParameterBuilder) -> None:
        if not builder.has(self.source):
            return
        value = builder.pop(self.source)
        lookup = {str(k).lower(): v for k, v in self.values.items()}
        key = str(value).lower()
        if key not in lookup:
            raise ContractViolation(
                f"Value '{value}' is not valid for parameter '{self.source}'",
                operation=builder.operation,
                parameter=self.source,
                rule=f"one of: {', '.join(str(k) for k in self.values)}",
            )
        builder.set(self.target or self.source, lookup[key])

    def sources(self) -> Tuple[str, ...]:
        return (self.source,)

    def consumes(self) -> Tuple[str, ...]:
        return () if self.target in (None, self.source) else (self.source,)

    def produces(self) -> Tuple[str, ...]:
        return (self.target or self.source,)


@register_step("split")
@dataclass(frozen=True)
class Split(RewriteStep):
    """Split a delimited string into a list (``"1641,3010"`` -> ``["1641", "3010"]``)."""

    source: str
    target: Optional[str] = None
    separator: str = ","

    def apply(self, builder: ParameterBuilder) -> None:
        if not builder.has(self.source):
            return
        value = builder.pop(self.source)
        items: List[str] = []
        for entry in _as_list(value):
            if entry is None:
                continue
            for part in str(entry).split(self.separator):
                part = part.strip()
                if part:
                    items.append(part)
        builder.set(self.target or self.source, items)

    def sources(self) -> Tuple[str, ...]:
        return (self.source,)

    def consumes(self) -> Tuple[str, ...]:
        return () if self.target in (None, self.source) else (self.source,)

    def produces(self) -> Tuple[str, ...]:
        return (self.target or self.source,)


@register_step("route")
@dataclass(frozen=True)
class Route(RewriteStep):
    """Move ``source`` to ``target`` when its value matches ``pattern``."""

    source: str
    target: str
    pattern: str

    def apply(self, builder: ParameterBuilder) -> None:
        if not builder.has(self.source):
            return
        value = builder.get(self.source)
        if isinstance(value, str) and resolve_pattern(self.pattern).match(value.strip()):
            builder.pop(self.source)
            builder.set(self.target, value.strip())

    def sources(self) -> Tuple[str, ...]:
        return (self.source,)

    def consumes(self) -> Tuple[str, ...]:
        return ()

    def produces(self) -> Tuple[str, ...]:
        return (self.target,)


@register_step("join")
@dataclass(frozen=True)
class Join(RewriteStep):
    """Combine several parameters into one.

    ``separator: path`` joins as a Windows path; any other separator is
    used literally.
    """

    names: Tuple[str, ...]
    target: str
    separator: str = "path"

    def apply(self, builder: ParameterBuilder) -> None:
        parts = [builder.pop(name) for name in self.names if builder.has(name)]
        parts = [str(p) for p in parts if not is_empty(p)]
        if not parts:
            return
        if self.separator == "path":
            builder.set(self.target, str(PureWindowsPath(*parts)))
        else:
            builder.set(self.target, self.separator.join(parts))

    def sources(self) -> Tuple[str, ...]:
        return tuple(self.names)

    def produces(self) -> Tuple[str, ...]:
        return (self.target,)


@register_step("duration")
@dataclass(frozen=True)
class Duration(RewriteStep):
    """Convert a number of seconds or milliseconds into a ``timedelta``."""

    source: str
    target: Optional[str] = None
    unit: str = "seconds"

    def apply(self, builder: ParameterBuilder) -> None:
        if not builder.has(self.source):
            return
        value = builder.pop(self.source)
        if isinstance(value, timedelta):
            builder.set(self.target or self.source, value)
            return
        try:
            amount = float(value)
        except (TypeError, ValueError):
            raise ContractViolation(
                f"Value '{value}' for parameter '{self.source}' is not a number",
                operation=builder.operation,
                parameter=self.source,
                rule=f"numeric {self.unit}",
            ) from None
        try:
            duration = timedelta(**{self.unit: amount})
        except (OverflowError, ValueError):
            raise ContractViolation(
                f"Value '{value}' for parameter '{self.source}' is not a representable duration",
                operation=builder.operation,
                parameter=self.source,
                rule=f"finite {self.unit}",
            ) from None
        builder.set(self.target or self.source, duration)

    def sources(self) -> Tuple[str, ...]:
        return (self.source,)

    def consumes(self) -> Tuple[str, ...]:
        return () if self.target in (None, self.source) else (self.source,)

    def produces(self) -> Tuple[str, ...]:
        return (self.target or self.source,)


@register_step("switch")
@dataclass(frozen=True)
class Switch(RewriteStep):
    """Collapse mutually exclusive switches into one value.

    ``Exact`` / ``WildCard`` / ``RegEx`` -> ``NameMatch='Exact'`` etc.
    """

    options: Mapping[str, Any]
    target: str

    def apply(self, builder: ParameterBuilder) -> None:
        chosen = [
            name
            for name in self.options
            if builder.has(name)
            and as_switch(builder.get(name), operation=builder.operation, parameter=name)
        ]
        for name in self.options:
            builder.pop(name)
        if len(chosen) > 1:
            raise TranslationImpossible(
                "Mutually exclusive switches were supplied together",
                operation=builder.operation,
                parameters=chosen,
            )
        if chosen:
            builder.set(self.target, self.options[chosen[0]])

    def sources(self) -> Tuple[str, ...]:
        return tuple(self.options)

    def produces(self) -> Tuple[str, ...]:
        return (self.target,)


@register_step("exclusive")
@dataclass(frozen=True)
class Exclusive(RewriteStep):
    """Fail when more than one of ``names`` is supplied."""

    names: Tuple[str, ...]

    def apply(self, builder: ParameterBuilder) -> None:
        present = [name for name in self.names if builder.has(name)]
        if len(present) > 1:
            raise TranslationImpossible(
                "Parameters cannot be combined",
                operation=builder.operation,
                parameters=present,
            )

    def sources(self) -> Tuple[str, ...]:
        return tuple(self.names)

    def consumes(self) -> Tuple[str, ...]:
        return ()


@register_step("unsupported")
@dataclass(frozen=True)
class Unsupported(RewriteStep):
    """Legacy parameters whose behaviour the new API cannot reproduce.

    Unlike discontinued parameters these still change the outcome, so
    dropping them silently is not an option.
    """

    names: Tuple[str, ...]
    reason: str = ""

    def apply(self, builder: ParameterBuilder) -> None:
        present = [name for name in self.names if builder.has(name)]
        if present:
            message = "Parameters have no equivalent in the new API"
            if self.reason:
                message = f"{message}: {self.reason}"
            raise TranslationImpossible(
                message, operation=builder.operation, parameters=present
            )

    def sources(self) -> Tuple[str, ...]:
        return tuple(self.names)


@register_step("constant")
@dataclass(frozen=True)
class Constant(RewriteStep):
    """Replace a truthy switch with a fixed value on another parameter."""

    source: str
    target: str
    value: Any = True

    def apply(self, builder: ParameterBuilder) -> None:
        if not builder.has(self.source):
            return
        value = builder.pop(self.source)
        if as_switch(value, operation=builder.operation, parameter=self.source):
            builder.set(self.target, self.value)

    def sources(self) -> Tuple[str, ...]:
        return (self.source,)

    def produces(self) -> Tuple[str, ...]:
        return (self.target,)


@register_step("process_list")
@dataclass(frozen=True)
class ProcessList(RewriteStep):
    """Parse ``"winword=Microsoft Word,excel"`` into process descriptors."""

    source: str
    target: str
    separator: str = ","

    def apply(self, builder: ParameterBuilder) -> None:
        if not builder.has(self.source):
            return
        value = builder.pop(self.source)
        processes: List[Dict[str, str]] = []
        for entry in _as_list(value):
            for part in str(entry).split(self.separator):
                part = part.strip()
                if not part:
                    continue
                name, _, description = part.partition("=")
                process = {"Name": name.strip()}
                if description.strip():
                    process["Description"] = description.strip()
                processes.append(process)
        builder.set(self.target, processes)

    def sources(self) -> Tuple[str, ...]:
        return (self.source,)

    def produces(self) -> Tuple[str, ...]:
        return (self.target,)


# =============================================================================
# Precondition checks
# =============================================================================


class Check:
    """A precondition on the captured legacy call."""

    keyword: str = ""

    def check(self, call: LegacyCall) -> None:
        raise NotImplementedError

    def parameters(self) -> Tuple[str, ...]:
        return ()


C = TypeVar("C", bound=Check)

CHECK_TYPES: Dict[str, Type[Check]] = {}


def register_check(name: str) -> Callable[[Type[C]], Type[C]]:
    def decorator(cls: Type[C]) -> Type[C]:
        cls.keyword = name
        CHECK_TYPES[name] = cls
        return cls

    return decorator


@register_check("required")
@dataclass(frozen=True)
class Required(Check):
    parameter: str

    def check(self, call: LegacyCall) -> None:
        if is_empty(call.get(self.parameter)):
            raise ContractViolation(
                f"Mandatory parameter '{self.parameter}' was not supplied",
                operation=call.operation,
                parameter=self.parameter,
                rule="required",
            )

    def parameters(self) -> Tuple[str, ...]:
        return (self.parameter,)


@register_check("path_exists")
@dataclass(frozen=True)
class PathExists(Check):
    """Every path in the parameter must exist (``kind``: file, directory, any)."""

    parameter: str
    kind: str = "any"

    def check(self, call: LegacyCall) -> None:
        if not call.supplied(self.parameter):
            return
        for entry in _as_list(call.get(self.parameter)):
            path = Path(str(entry))
            if self.kind == "file":
                ok = path.is_file()
            elif self.kind == "directory":
                ok = path.is_dir()
            else:
                ok = path.exists()
            if not ok:
                label = "path" if self.kind == "any" else self.kind
                raise ContractViolation(
                    f"The specified {label} '{entry}' does not exist",
                    operation=call.operation,
                    parameter=self.parameter,
                    rule=f"{label} must exist",
                )

    def parameters(self) -> Tuple[str, ...]:
        return (self.parameter,)


@register_check("pattern")
@dataclass(frozen=True)
class MatchesPattern(Check):
    parameter: str
    pattern: str

    def check(self, call: LegacyCall) -> None:
        if not call.supplied(self.parameter):
            return
        regex = resolve_pattern(self.pattern)
        for entry in _as_list(call.get(self.parameter)):
            if not regex.match(str(entry)):
                raise ContractViolation(
                    f"Value '{entry}' for parameter '{self.parameter}' does not "
                    f"match the expected format",
                    operation=call.operation,
                    parameter=self.parameter,
                    rule=f"must match {self.pattern}",
                )

    def parameters(self) -> Tuple[str, ...]:
        return (self.parameter,)


@register_check("choices")
@dataclass(frozen=True)
class Choices(Check):
    parameter: str
    values: Tuple[str, ...]

    def check(self, call: LegacyCall) -> None:
        if not call.supplied(self.parameter):
            return
        allowed = {v.lower() for v in self.values}
        value = call.get(self.parameter)
        if str(value).lower() not in allowed:
            raise ContractViolation(
                f"Value '{value}' is not valid for parameter '{self.parameter}'",
                operation=call.operation,
                parameter=self.parameter,
                rule=f"one of: {', '.join(self.values)}",
            )

    def parameters(self) -> Tuple[str, ...]:
        return (self.parameter,)


# =============================================================================
# Rule
# =============================================================================


@dataclass(frozen=True)
class TranslationRule:
    """Static mapping of one legacy operation onto its replacement."""

    legacy: str
    replacement: str
    parameters: FrozenSet[str] = frozenset()
    accepts: FrozenSet[str] = frozenset()
    aliases: Mapping[str, str] = field(default_factory=dict)
    discontinued: Tuple[str, ...] = ()
    steps: Tuple[RewriteStep, ...] = ()
    checks: Tuple[Check, ...] = ()
    returns: ReturnMode = ReturnMode.NEVER
    continue_on_error: bool = False
    pipeline: Optional[str] = None

    @property
    def facade_parameters(self) -> FrozenSet[str]:
        """Legacy parameters the facade consumes instead of forwarding."""
        consumed: Set[str] = set()
        if CONTINUE_ON_ERROR in self.parameters:
            consumed.add(CONTINUE_ON_ERROR)
        if PASSTHRU in self.parameters and PASSTHRU not in self.accepts:
            consumed.add(PASSTHRU)
        return frozenset(consumed)

    def accepts_parameter(self, name: str) -> bool:
        return name in self.parameters or name in self.aliases

    def rewrite(self, builder: ParameterBuilder) -> None:
        for step in self.steps:
            step.apply(builder)

    def validate(self, call: LegacyCall) -> None:
        for check in self.checks:
            check.check(call)

    def verify(self) -> List[str]:
        """Statically prove the forwarded set is a subset of ``accepts``.

        Returns a list of problems; empty when the rule is consistent.
        """
        problems: List[str] = []

        for alias, canonical in self.aliases.items():
            if canonical not in self.parameters:
                problems.append(f"alias '{alias}' targets unknown parameter '{canonical}'")
        for name in self.discontinued:
            if name not in self.parameters:
                problems.append(f"discontinued parameter '{name}' is not a legacy parameter")
        if self.pipeline and self.pipeline not in self.parameters:
            problems.append(f"pipeline parameter '{self.pipeline}' is not a legacy parameter")
        for check in self.checks:
            for name in check.parameters():
                if name not in self.parameters:
                    problems.append(f"{check.keyword} check names unknown parameter '{name}'")

        live: Set[str] = set(self.parameters) - set(self.discontinued) - self.facade_parameters
        known: Set[str] = set(live)
        for step in self.steps:
            for name in step.sources():
                if name not in known:
                    problems.append(f"{step.keyword} step reads unknown parameter '{name}'")
            live -= set(step.consumes())
            live |= set(step.produces())
            known |= set(step.produces())

        leaked = sorted(live - set(self.accepts))
        if leaked:
            problems.append(
                f"parameters reach {self.replacement} unmapped: {', '.join(leaked)}"
            )
        return problems


