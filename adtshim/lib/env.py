"""Process environment helpers for shim settings.

Settings files may reference the environment (``catalog: ${ADT_ROOT}/legacy.yaml``),
switches such as ``ADTSHIM_SUPPRESS_NOTICES`` arrive as text, and a ``.env``
file next to the deployment script can seed both. python-dotenv reads the
``.env`` file.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from dotenv import find_dotenv, load_dotenv

from adtshim.lib.errors import ConfigurationError

__all__ = ["expand_env_vars", "expand_options", "load_env_file", "parse_flag"]

# ${NAME} or $NAME
_REFERENCE = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off", ""}


def load_env_file(
    path: Optional[Union[str, Path]] = None,
    *,
    override: bool = False,
) -> bool:
    """Seed ``os.environ`` from a ``.env`` file.

    Without ``path`` the nearest ``.env`` at or above the working directory
    is used. Variables already set win unless ``override`` is given.
    Returns False when there was nothing to load.
    """
    if path is None:
        path = find_dotenv(usecwd=True)
        if not path:
            return False
    return load_dotenv(dotenv_path=path, override=override)


def expand_env_vars(value: str, *, env: Optional[Mapping[str, str]] = None) -> str:
    """Substitute ``${NAME}`` and ``$NAME`` references in ``value``.

    Names missing from ``env`` (``os.environ`` by default) keep their
    reference text, so an unset variable shows up verbatim in the catalog
    path that fails to load.
    """
    source = os.environ if env is None else env

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1) or match.group(2)
        return source.get(name, match.group(0))

    return _REFERENCE.sub(substitute, value)


def expand_options(
    options: Dict[str, Any], *, env: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """Expand references in every string of a settings section, nested included."""
    expanded: Dict[str, Any] = {}
    for key, value in options.items():
        if isinstance(value, str):
            expanded[key] = expand_env_vars(value, env=env)
        elif isinstance(value, dict):
            expanded[key] = expand_options(value, env=env)
        elif isinstance(value, list):
            expanded[key] = [
                expand_env_vars(item, env=env) if isinstance(item, str) else item
                for item in value
            ]
        else:
            expanded[key] = value
    return expanded


def parse_flag(value: Any, *, field: str) -> bool:
    """Read an on/off value given as a bool, ``1``/``0`` or a yes/no word.

    ``None`` and blank text are off.

    Raises:
        ConfigurationError: Value is not a recognised boolean.
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ConfigurationError(
        "Expected a boolean (1/0, true/false, yes/no, on/off)",
        field=field,
        value=value,
    )
