"""Settings for the compatibility facade.

Settings are read once, when a facade is built. Changing them means building
a new facade; nothing here is consulted per call.

Environment variables:
    ADTSHIM_SUPPRESS_DEPRECATION  Suppress all deprecation notices (bool)
    ADTSHIM_CATALOG               Path to an alternative rule catalog
    ADTSHIM_LOG_LEVEL             DEBUG, INFO, WARNING, ERROR
    ADTSHIM_LOG_FORMAT            "json" or "text"
    ADTSHIM_LOG_FILE              Also write logs to this file
    ADTSHIM_WARNINGS              Raise notices through ``warnings`` too (bool)

YAML (``compatibility:`` section):
    compatibility:
      suppress_deprecation_notices: true
      catalog: ${ADT_ROOT}/legacy_v3.yaml
      log_level: INFO
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from adtshim.lib.env import expand_options, load_env_file, parse_flag
from adtshim.lib.errors import ConfigurationError

logger = logging.getLogger(__name__)

__all__ = ["ShimSettings", "ENV_PREFIX"]

ENV_PREFIX = "ADTSHIM_"

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _parse_level(value: Any, field: str) -> int:
    if isinstance(value, int):
        return value
    level = LOG_LEVELS.get(str(value).strip().upper())
    if level is None:
        raise ConfigurationError(
            f"Unknown log level (expected one of: {', '.join(LOG_LEVELS)})",
            field=field,
            value=value,
        )
    return level


def _parse_format(value: Any, field: str) -> bool:
    text = str(value).strip().lower()
    if text not in ("json", "text"):
        raise ConfigurationError("Log format must be 'json' or 'text'", field=field, value=value)
    return text == "json"


@dataclass(frozen=True)
class ShimSettings:
    suppress_deprecation_notices: bool = False
    catalog_path: Optional[Path] = None
    log_level: int = logging.INFO
    json_logs: bool = False
    log_file: Optional[Path] = None
    warn_on_notice: bool = False

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        *,
        env_file: Optional[Union[str, Path]] = None,
    ) -> "ShimSettings":
        """Build settings from environment variables.

        When ``env`` is None the process environment is used, after loading
        ``env_file`` (or a .env found from the working directory).
        """
        if env is None:
            load_env_file(env_file)
            env = os.environ

        values: Dict[str, Any] = {}

        raw = env.get(f"{ENV_PREFIX}SUPPRESS_DEPRECATION")
        if raw is not None:
            values["suppress_deprecation_notices"] = parse_flag(
                raw, field=f"{ENV_PREFIX}SUPPRESS_DEPRECATION"
            )

        raw = env.get(f"{ENV_PREFIX}WARNINGS")
        if raw is not None:
            values["warn_on_notice"] = parse_flag(raw, field=f"{ENV_PREFIX}WARNINGS")

        raw = env.get(f"{ENV_PREFIX}CATALOG")
        if raw:
            values["catalog_path"] = Path(raw)

        raw = env.get(f"{ENV_PREFIX}LOG_LEVEL")
        if raw:
            values["log_level"] = _parse_level(raw, f"{ENV_PREFIX}LOG_LEVEL")

        raw = env.get(f"{ENV_PREFIX}LOG_FORMAT")
        if raw:
            values["json_logs"] = _parse_format(raw, f"{ENV_PREFIX}LOG_FORMAT")

        raw = env.get(f"{ENV_PREFIX}LOG_FILE")
        if raw:
            values["log_file"] = Path(raw)

        return cls(**values)

    @classmethod
    def from_yaml(
        cls, path: Union[str, Path], *, env: Optional[Mapping[str, str]] = None
    ) -> "ShimSettings":
        """Build settings from the ``compatibility:`` section of a YAML file.

        Relative ``catalog`` and ``log_file`` paths resolve against the
        YAML file's directory.
        """
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError("Settings file not found", field="path", value=config_path)

        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML: {exc}", value=config_path) from exc

        section = data.get("compatibility", {}) if isinstance(data, dict) else None
        if not isinstance(section, dict):
            raise ConfigurationError(
                "'compatibility' must be a mapping", field="compatibility", value=config_path
            )
        section = expand_options(section, env=env)

        base = config_path.parent
        values: Dict[str, Any] = {}
        for key, value in section.items():
            if key == "suppress_deprecation_notices":
                values[key] = parse_flag(value, field=key)
            elif key == "warn_on_notice":
                values[key] = parse_flag(value, field=key)
            elif key == "catalog":
                values["catalog_path"] = _resolve(base, value)
            elif key == "log_file":
                values["log_file"] = _resolve(base, value)
            elif key == "log_level":
                values["log_level"] = _parse_level(value, key)
            elif key == "log_format":
                values["json_logs"] = _parse_format(value, key)
            else:
                raise ConfigurationError("Unknown setting", field=f"compatibility.{key}")

        return cls(**values)

    def with_overrides(self, **changes: Any) -> "ShimSettings":
        """Return a copy with ``changes`` applied, ignoring ``None`` values."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _resolve(base: Path, value: Any) -> Path:
    candidate = Path(str(value))
    return candidate if candidate.is_absolute() else base / candidate
