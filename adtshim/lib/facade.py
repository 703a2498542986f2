"""Compatibility facade: legacy operation names on top of the new API.

Every call goes through the same steps:

1. Deprecation notice naming the replacement (before any validation).
2. Discontinued parameters are dropped, each with its own notice.
3. The rule's rewrite steps run in order.
4. Preconditions are checked; violations never reach the new API.
5. The new API is invoked once.
6. Failures are suppressed or raised per ``ContinueOnError``; results are
   returned when the operation has pass-through semantics.

Example:
    facade = CompatibilityFacade(api)
    facade.invoke("Execute-MSI", Path="{GUID}", IgnoreExitCodes="1641,3010")
    facade.remove_file(Path=["a.txt", "b.txt"], ContinueOnError=True)
    facade.pipeline("Remove-File", paths_from_somewhere)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable as IterableABC, Mapping as MappingABC
from typing import Any, Dict, Iterable, List, Mapping, Optional

from adtshim.lib.api import DeploymentApi
from adtshim.lib.catalog import RuleCatalog, default_catalog, load_catalog
from adtshim.lib.deprecation import (
    DeprecationNotice,
    LogNoticeSink,
    NoticeSink,
    operation_notice,
    parameter_notice,
)
from adtshim.lib.errors import (
    ContractViolation,
    ExecutionFailure,
    TranslationImpossible,
    UnknownOperationError,
)
from adtshim.lib.params import (
    LegacyCall,
    ParameterBuilder,
    TranslatedCall,
    as_switch,
    is_empty,
)
from adtshim.lib.result import Failure, InvocationResult, Success
from adtshim.lib.rules import CONTINUE_ON_ERROR, PASSTHRU, ReturnMode, TranslationRule
from adtshim.lib.settings import ShimSettings

logger = logging.getLogger(__name__)

__all__ = ["CompatibilityFacade", "LegacyOperation", "python_name"]

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def python_name(legacy: str) -> str:
    """``Remove-MSIApplications`` -> ``remove_msi_applications``."""
    snake = _CAMEL_BOUNDARY.sub("_", legacy.replace("-", "_")).lower()
    return re.sub(r"_+", "_", snake)


def _as_items(items: Any) -> List[Any]:
    """A lone value (string, mapping, scalar) is one piped item, not a sequence."""
    if isinstance(items, (str, bytes, MappingABC)) or not isinstance(items, IterableABC):
        return [items]
    return list(items)


class CompatibilityFacade:
    """Expose legacy operations as thin wrappers around the new API.

    The notice suppression flag is taken from ``settings`` once, here; build
    a new facade to change it.
    """

    def __init__(
        self,
        api: DeploymentApi,
        catalog: Optional[RuleCatalog] = None,
        settings: Optional[ShimSettings] = None,
        notices: Optional[NoticeSink] = None,
    ):
        self.settings = settings or ShimSettings()
        self.api = api
        if catalog is None:
            if self.settings.catalog_path:
                catalog = load_catalog(self.settings.catalog_path)
            else:
                catalog = default_catalog()
        self.catalog = catalog
        self.notices = notices or LogNoticeSink(warn=self.settings.warn_on_notice)
        self._suppress = self.settings.suppress_deprecation_notices
        self._python_names = {python_name(name): name for name in self.catalog}

    @property
    def suppress_notices(self) -> bool:
        return self._suppress

    def operations(self) -> List[str]:
        return self.catalog.names()

    def rule(self, operation: str) -> TranslationRule:
        try:
            return self.catalog[operation]
        except KeyError:
            raise UnknownOperationError(operation) from None

    def operation(self, name: str) -> "LegacyOperation":
        return LegacyOperation(self, self.rule(name))

    def __getitem__(self, name: str) -> "LegacyOperation":
        return self.operation(name)

    def __getattr__(self, attr: str) -> "LegacyOperation":
        if attr.startswith("_"):
            raise AttributeError(attr)
        legacy = self.__dict__.get("_python_names", {}).get(attr)
        if legacy is None:
            raise AttributeError(
                f"{type(self).__name__!r} has no legacy operation {attr!r}"
            )
        return self.operation(legacy)

    # -------------------------------------------------------------------------
    # Translation (steps 1-4)
    # -------------------------------------------------------------------------

    def translate(
        self,
        operation: str,
        params: Optional[Mapping[str, Any]] = None,
        **kwargs: Any,
    ) -> TranslatedCall:
        """Translate a legacy call without invoking the new API."""
        return self._translate(self.rule(operation), params, kwargs)

    def translate_pipeline(
        self,
        operation: str,
        items: Iterable[Any],
        params: Optional[Mapping[str, Any]] = None,
        **kwargs: Any,
    ) -> TranslatedCall:
        """Translate a piped legacy call without invoking the new API."""
        return self._translate(
            self.rule(operation), params, kwargs, items=_as_items(items)
        )

    def _notify(self, notice: DeprecationNotice, emitted: List[DeprecationNotice]) -> None:
        self.notices.emit(
            notice.message,
            severity=notice.severity,
            source=notice.operation,
            suppress=self._suppress,
        )
        if not self._suppress:
            emitted.append(notice)

    def _translate(
        self,
        rule: TranslationRule,
        params: Optional[Mapping[str, Any]],
        kwargs: Mapping[str, Any],
        items: Optional[Iterable[Any]] = None,
    ) -> TranslatedCall:
        emitted: List[DeprecationNotice] = []

        # Step 1: always first, so callers hear about the replacement even
        # when the call is rejected below.
        self._notify(operation_notice(rule.legacy, rule.replacement), emitted)

        supplied: Dict[str, Any] = dict(params or {})
        duplicated = sorted(set(supplied) & set(kwargs))
        if duplicated:
            raise TranslationImpossible(
                "Parameters were supplied both as a mapping and as keywords",
                operation=rule.legacy,
                parameters=duplicated,
            )
        supplied.update(kwargs)

        unknown = sorted(name for name in supplied if not rule.accepts_parameter(name))
        if unknown:
            raise ContractViolation(
                f"{rule.legacy} does not accept parameter(s): {', '.join(unknown)}",
                operation=rule.legacy,
                parameter=unknown[0],
                rule="known parameter",
            )

        if items is not None:
            self._merge_pipeline(rule, supplied, items)

        call = LegacyCall.capture(rule.legacy, supplied, rule.aliases)
        builder = ParameterBuilder(call)

        # Step 2
        for name in rule.discontinued:
            if builder.has(name):
                builder.pop(name)
                self._notify(parameter_notice(rule.legacy, rule.replacement, name), emitted)

        continue_on_error = as_switch(
            call.get(CONTINUE_ON_ERROR, rule.continue_on_error),
            operation=rule.legacy,
            parameter=CONTINUE_ON_ERROR,
        )
        if rule.returns is ReturnMode.ALWAYS:
            passthru = True
        elif rule.returns is ReturnMode.PASSTHRU:
            passthru = as_switch(
                call.get(PASSTHRU, False), operation=rule.legacy, parameter=PASSTHRU
            )
            if builder.has(PASSTHRU):
                builder.set(PASSTHRU, passthru)
        else:
            passthru = False
        for name in rule.facade_parameters:
            builder.pop(name)

        # Step 3
        rule.rewrite(builder)

        # Step 4
        rule.validate(call)

        parameters = builder.build()
        leaked = sorted(set(parameters) - rule.accepts)
        if leaked:
            raise TranslationImpossible(
                f"Parameters have no equivalent in {rule.replacement}",
                operation=rule.legacy,
                parameters=leaked,
            )

        logger.debug(
            "Translated %s -> %s with %s", rule.legacy, rule.replacement, sorted(parameters)
        )
        return TranslatedCall(
            operation=rule.legacy,
            replacement=rule.replacement,
            parameters=parameters,
            notices=tuple(emitted),
            passthru=passthru,
            continue_on_error=continue_on_error,
        )

    def _merge_pipeline(
        self, rule: TranslationRule, supplied: Dict[str, Any], items: Iterable[Any]
    ) -> None:
        if not rule.pipeline:
            raise ContractViolation(
                f"{rule.legacy} does not accept pipeline input",
                operation=rule.legacy,
                rule="pipeline input",
            )
        collected = [item for item in items if not is_empty(item)]
        explicit = [
            name for name in supplied if rule.aliases.get(name, name) == rule.pipeline
        ]
        if not collected:
            if explicit:
                return
            raise ContractViolation(
                f"{rule.legacy} received no pipeline input",
                operation=rule.legacy,
                parameter=rule.pipeline,
                rule="non-empty pipeline input",
            )
        if explicit:
            raise TranslationImpossible(
                f"'{rule.pipeline}' was supplied both explicitly and through the pipeline",
                operation=rule.legacy,
                parameters=explicit,
            )
        supplied[rule.pipeline] = collected

    # -------------------------------------------------------------------------
    # Execution (steps 5-6)
    # -------------------------------------------------------------------------

    def execute(self, call: TranslatedCall) -> InvocationResult:
        """Invoke the new API for an already translated call."""
        try:
            value = self.api.invoke(call.replacement, call.parameters)
        except Exception as exc:
            return Failure(
                ExecutionFailure(
                    f"{call.replacement} failed: {exc}",
                    operation=call.operation,
                    replacement=call.replacement,
                    call=call,
                    cause=exc,
                )
            )
        return Success(value if call.passthru else None)

    def try_invoke(
        self,
        operation: str,
        params: Optional[Mapping[str, Any]] = None,
        **kwargs: Any,
    ) -> InvocationResult:
        """Like ``invoke`` but execution failures come back as ``Failure``.

        Contract and translation errors still raise.
        """
        return self.execute(self._translate(self.rule(operation), params, kwargs))

    def invoke(
        self,
        operation: str,
        params: Optional[Mapping[str, Any]] = None,
        **kwargs: Any,
    ) -> Any:
        """Run a legacy operation.

        Returns the new API's result for pass-through operations, otherwise
        None. With ``ContinueOnError`` an execution failure is logged and
        None is returned; without it ``ExecutionFailure`` is raised.
        """
        call = self._translate(self.rule(operation), params, kwargs)
        return self._settle(call, self.execute(call))

    def pipeline(
        self,
        operation: str,
        items: Iterable[Any],
        params: Optional[Mapping[str, Any]] = None,
        **kwargs: Any,
    ) -> Any:
        """Run a legacy operation over piped input in one batched call.

        Empty items (None, blank strings, empty collections) are skipped;
        the rest reach the new API together, in order. A single string or
        other lone value is one item.
        """
        call = self.translate_pipeline(operation, items, params, **kwargs)
        return self._settle(call, self.execute(call))

    def _settle(self, call: TranslatedCall, result: InvocationResult) -> Any:
        if isinstance(result, Success):
            return result.unwrap()

        if call.continue_on_error:
            logger.warning(
                "%s failed, continuing because ContinueOnError is set: %s",
                call.operation,
                result.message,
                extra={"error": result.error.to_dict()},
            )
            return result.unwrap_or(None)

        logger.error("%s failed: %s", call.operation, result.message)
        return result.unwrap()


class LegacyOperation:
    """A callable bound to one legacy operation."""

    def __init__(self, facade: CompatibilityFacade, rule: TranslationRule):
        self.facade = facade
        self.rule = rule

    @property
    def name(self) -> str:
        return self.rule.legacy

    @property
    def replacement(self) -> str:
        return self.rule.replacement

    def __call__(self, params: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Any:
        return self.facade.invoke(self.name, params, **kwargs)

    def pipe(
        self, items: Iterable[Any], params: Optional[Mapping[str, Any]] = None, **kwargs: Any
    ) -> Any:
        return self.facade.pipeline(self.name, items, params, **kwargs)

    def translate(self, params: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> TranslatedCall:
        return self.facade.translate(self.name, params, **kwargs)

    def __repr__(self) -> str:
        return f"<LegacyOperation {self.name} -> {self.replacement}>"
