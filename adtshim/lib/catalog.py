"""YAML loader for the translation rule catalog.

Example entry:
    Show-InstallationPrompt:
      replacement: Show-ADTInstallationPrompt
      parameters: [Message, Title, TopMost, ContinueOnError]
      accepts: [Message, Title, NotTopMost]
      steps:
        - invert: {source: TopMost, target: NotTopMost}
      returns: always

Usage:
    from adtshim.lib.catalog import load_catalog
    catalog = load_catalog()            # bundled legacy_v3.yaml
    rule = catalog["execute-msi"]       # lookups ignore case
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

import yaml

from adtshim.lib.errors import CatalogError
from adtshim.lib.rules import (
    CHECK_TYPES,
    STEP_TYPES,
    Check,
    ReturnMode,
    RewriteStep,
    TranslationRule,
)

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_CATALOG_PATH",
    "RuleCatalog",
    "build_rule",
    "load_catalog",
    "default_catalog",
]

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "catalog" / "legacy_v3.yaml"

RULE_KEYS = {
    "replacement",
    "parameters",
    "accepts",
    "aliases",
    "discontinued",
    "steps",
    "checks",
    "returns",
    "continue_on_error",
    "pipeline",
}

# Fields the YAML gives as lists but the dataclasses hold as tuples
_TUPLE_FIELDS = {"names", "values"}


class RuleCatalog(Mapping[str, TranslationRule]):
    """Case-insensitive mapping of legacy operation name to rule."""

    def __init__(self, rules: Mapping[str, TranslationRule], source: Optional[str] = None):
        self._rules: Dict[str, TranslationRule] = {}
        for rule in rules.values():
            self._rules[rule.legacy.lower()] = rule
        self.source = source

    def __getitem__(self, name: str) -> TranslationRule:
        return self._rules[name.lower()]

    def __iter__(self) -> Iterator[str]:
        return (rule.legacy for rule in self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._rules

    def names(self) -> List[str]:
        return sorted(self)

    def verify(self) -> Dict[str, List[str]]:
        """Return ``{legacy name: problems}`` for every inconsistent rule."""
        problems: Dict[str, List[str]] = {}
        for rule in self._rules.values():
            found = rule.verify()
            if found:
                problems[rule.legacy] = found
        return problems


def _fail(message: str, operation: Optional[str], path: Optional[str]) -> CatalogError:
    return CatalogError(message, operation=operation, catalog_path=path)


def _as_str_list(value: Any, field: str, operation: str, path: Optional[str]) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise _fail(f"'{field}' must be a list of names", operation, path)
    return list(value)


def _normalize_options(keyword: str, options: Any) -> Dict[str, Any]:
    if keyword in ("rename", "invert") and isinstance(options, list) and len(options) == 2:
        return {"source": options[0], "target": options[1]}
    if keyword in ("exclusive", "unsupported") and isinstance(options, list):
        return {"names": options}
    if isinstance(options, str):
        # checks accept a bare parameter name: "- required: Path"
        return {"parameter": options}
    if isinstance(options, dict):
        normalized = dict(options)
        if keyword == "switch" and "sources" in normalized:
            normalized["options"] = normalized.pop("sources")
        for name in _TUPLE_FIELDS & set(normalized):
            if isinstance(normalized[name], list):
                normalized[name] = tuple(normalized[name])
        return normalized
    raise TypeError(f"unsupported options for '{keyword}': {options!r}")


def _build_entry(
    raw: Any,
    registry: Mapping[str, type],
    label: str,
    operation: str,
    path: Optional[str],
) -> Any:
    if not isinstance(raw, dict) or len(raw) != 1:
        raise _fail(f"Each {label} must be a single-key mapping, got {raw!r}", operation, path)
    keyword, options = next(iter(raw.items()))
    cls = registry.get(keyword)
    if cls is None:
        known = ", ".join(sorted(registry))
        raise _fail(f"Unknown {label} '{keyword}' (known: {known})", operation, path)
    try:
        return cls(**_normalize_options(keyword, options))
    except TypeError as exc:
        raise _fail(f"Invalid {label} '{keyword}': {exc}", operation, path) from exc


def build_rule(
    legacy: str, config: Mapping[str, Any], path: Optional[str] = None
) -> TranslationRule:
    """Build a ``TranslationRule`` from one catalog entry."""
    if not isinstance(config, Mapping):
        raise _fail("Rule must be a mapping", legacy, path)

    unknown = set(config) - RULE_KEYS
    if unknown:
        raise _fail(f"Unknown rule keys: {', '.join(sorted(unknown))}", legacy, path)

    replacement = config.get("replacement")
    if not replacement or not isinstance(replacement, str):
        raise _fail("'replacement' is required", legacy, path)

    try:
        returns = ReturnMode(config.get("returns", "never"))
    except ValueError:
        raise _fail(
            f"'returns' must be one of: {', '.join(m.value for m in ReturnMode)}",
            legacy,
            path,
        ) from None

    aliases = config.get("aliases") or {}
    if not isinstance(aliases, dict):
        raise _fail("'aliases' must be a mapping", legacy, path)

    steps: List[RewriteStep] = [
        _build_entry(raw, STEP_TYPES, "step", legacy, path)
        for raw in config.get("steps") or []
    ]
    checks: List[Check] = [
        _build_entry(raw, CHECK_TYPES, "check", legacy, path)
        for raw in config.get("checks") or []
    ]

    for step in steps:
        unit = getattr(step, "unit", None)
        if unit is not None and unit not in ("seconds", "milliseconds"):
            raise _fail(f"Unsupported duration unit '{unit}'", legacy, path)

    return TranslationRule(
        legacy=legacy,
        replacement=replacement,
        parameters=frozenset(_as_str_list(config.get("parameters"), "parameters", legacy, path)),
        accepts=frozenset(_as_str_list(config.get("accepts"), "accepts", legacy, path)),
        aliases=dict(aliases),
        discontinued=tuple(_as_str_list(config.get("discontinued"), "discontinued", legacy, path)),
        steps=tuple(steps),
        checks=tuple(checks),
        returns=returns,
        continue_on_error=bool(config.get("continue_on_error", False)),
        pipeline=config.get("pipeline"),
    )


def load_catalog(
    path: Optional[Union[str, Path]] = None, *, verify: bool = True
) -> RuleCatalog:
    """Load a rule catalog from YAML.

    Args:
        path: Catalog file; defaults to the bundled ``legacy_v3.yaml``.
        verify: Reject rules whose forwarded parameters could escape the
            new API's accepted set.

    Raises:
        CatalogError: File missing, malformed, or inconsistent.
    """
    catalog_path = Path(path) if path else DEFAULT_CATALOG_PATH
    source = str(catalog_path)

    if not catalog_path.exists():
        raise CatalogError("Catalog file not found", catalog_path=source)

    try:
        with open(catalog_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise CatalogError(f"Invalid YAML: {exc}", catalog_path=source) from exc

    if not isinstance(data, dict):
        raise CatalogError("Catalog must be a mapping of operation names", catalog_path=source)

    operations = data.get("operations", data)
    if not isinstance(operations, dict):
        raise CatalogError("'operations' must be a mapping", catalog_path=source)

    rules = {name: build_rule(name, cfg, source) for name, cfg in operations.items()}
    catalog = RuleCatalog(rules, source=source)

    if verify:
        problems = catalog.verify()
        if problems:
            lines = [f"{name}: {'; '.join(issues)}" for name, issues in sorted(problems.items())]
            raise CatalogError(
                "Catalog rules are inconsistent:\n  " + "\n  ".join(lines),
                catalog_path=source,
            )

    logger.debug("Loaded %d translation rules from %s", len(catalog), source)
    return catalog


@lru_cache(maxsize=1)
def default_catalog() -> RuleCatalog:
    """The bundled catalog, loaded once per process."""
    return load_catalog()
