"""Compatibility layer library modules.

This package contains the building blocks of the legacy facade: call
capture, translation rules, the rule catalog, notices and settings.
"""

from adtshim.lib.api import DeploymentApi, OperationNotAvailable, RecordingApi, ToolkitApi
from adtshim.lib.catalog import (
    DEFAULT_CATALOG_PATH,
    RuleCatalog,
    build_rule,
    default_catalog,
    load_catalog,
)
from adtshim.lib.deprecation import (
    DeprecationNotice,
    LegacyOperationDeprecationWarning,
    LogNoticeSink,
    MemoryNoticeSink,
    NoticeSeverity,
    NoticeSink,
)
from adtshim.lib.env import expand_env_vars, expand_options, load_env_file, parse_flag
from adtshim.lib.errors import (
    CatalogError,
    ConfigurationError,
    ContractViolation,
    ExecutionFailure,
    ShimError,
    TranslationImpossible,
    UnknownOperationError,
)
from adtshim.lib.facade import CompatibilityFacade, LegacyOperation, python_name
from adtshim.lib.observability import JSONFormatter, setup_logging
from adtshim.lib.params import (
    NOT_SUPPLIED,
    LegacyCall,
    ParameterBuilder,
    TranslatedCall,
    is_empty,
    is_supplied,
)
from adtshim.lib.result import Failure, InvocationResult, Success
from adtshim.lib.rules import ReturnMode, TranslationRule
from adtshim.lib.settings import ShimSettings

__all__ = [
    # API
    "DeploymentApi",
    "OperationNotAvailable",
    "RecordingApi",
    "ToolkitApi",
    # Catalog
    "DEFAULT_CATALOG_PATH",
    "RuleCatalog",
    "build_rule",
    "default_catalog",
    "load_catalog",
    # Notices
    "DeprecationNotice",
    "LegacyOperationDeprecationWarning",
    "LogNoticeSink",
    "MemoryNoticeSink",
    "NoticeSeverity",
    "NoticeSink",
    # Environment
    "expand_env_vars",
    "expand_options",
    "load_env_file",
    "parse_flag",
    # Errors
    "CatalogError",
    "ConfigurationError",
    "ContractViolation",
    "ExecutionFailure",
    "ShimError",
    "TranslationImpossible",
    "UnknownOperationError",
    # Facade
    "CompatibilityFacade",
    "LegacyOperation",
    "python_name",
    # Logging
    "JSONFormatter",
    "setup_logging",
    # Calls
    "NOT_SUPPLIED",
    "LegacyCall",
    "ParameterBuilder",
    "TranslatedCall",
    "is_empty",
    "is_supplied",
    # Results
    "Failure",
    "InvocationResult",
    "Success",
    # Rules
    "ReturnMode",
    "TranslationRule",
    # Settings
    "ShimSettings",
]
