"""The new API as seen from the compatibility facade.

The deployment engine itself lives elsewhere. The facade only needs
something that can run one named operation with a parameter mapping:

- ``ToolkitApi`` dispatches to callables registered per operation name.
- ``RecordingApi`` records calls without executing them (dry runs, tests).
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple

__all__ = ["DeploymentApi", "ToolkitApi", "RecordingApi", "OperationNotAvailable"]

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


class OperationNotAvailable(LookupError):
    """The new API has no implementation for an operation."""


class DeploymentApi(Protocol):
    def invoke(self, operation: str, parameters: Mapping[str, Any]) -> Any:
        ...


class ToolkitApi:
    """Registry of new-API operations.

    Example:
        api = ToolkitApi()

        @api.register("Remove-ADTFile")
        def remove_file(Path, Recurse=False):
            ...
    """

    def __init__(self, handlers: Optional[Dict[str, Handler]] = None):
        self._handlers: Dict[str, Handler] = {}
        for name, handler in (handlers or {}).items():
            self._handlers[name.lower()] = handler

    def register(self, operation: str) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            self._handlers[operation.lower()] = handler
            return handler

        return decorator

    def supports(self, operation: str) -> bool:
        return operation.lower() in self._handlers

    def invoke(self, operation: str, parameters: Mapping[str, Any]) -> Any:
        handler = self._handlers.get(operation.lower())
        if handler is None:
            raise OperationNotAvailable(f"No handler registered for {operation}")
        logger.debug("Invoking %s with %s", operation, sorted(parameters))
        return handler(**dict(parameters))


class RecordingApi:
    """Record every call; optionally return canned results or raise.

    ``results`` maps operation name to a return value. ``failures`` maps
    operation name to an exception instance raised on every call.
    """

    def __init__(
        self,
        results: Optional[Dict[str, Any]] = None,
        failures: Optional[Dict[str, BaseException]] = None,
    ):
        self.results = dict(results or {})
        self.failures = dict(failures or {})
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def invoke(self, operation: str, parameters: Mapping[str, Any]) -> Any:
        self.calls.append((operation, dict(parameters)))
        if operation in self.failures:
            raise self.failures[operation]
        return self.results.get(operation)

    def calls_to(self, operation: str) -> List[Dict[str, Any]]:
        return [params for name, params in self.calls if name == operation]

    @property
    def last_call(self) -> Optional[Tuple[str, Dict[str, Any]]]:
        return self.calls[-1] if self.calls else None
