"""Legacy (v3) deployment toolkit operations on top of the v4 API.

Each legacy operation is a thin wrapper: it announces its replacement,
rewrites the legacy parameters and forwards a single call.

Usage:
    from adtshim import CompatibilityFacade, ToolkitApi

    api = ToolkitApi()
    facade = CompatibilityFacade(api)
    facade.invoke("Execute-MSI", Path="setup.msi", IgnoreExitCodes="1641,3010")

    python -m adtshim list
    python -m adtshim translate Show-InstallationPrompt -p TopMost=false
"""

from adtshim.lib.api import RecordingApi, ToolkitApi
from adtshim.lib.catalog import load_catalog
from adtshim.lib.errors import (
    ContractViolation,
    ExecutionFailure,
    ShimError,
    TranslationImpossible,
)
from adtshim.lib.facade import CompatibilityFacade
from adtshim.lib.params import NOT_SUPPLIED
from adtshim.lib.settings import ShimSettings

__version__ = "1.0.0"

__all__ = [
    "CompatibilityFacade",
    "ContractViolation",
    "ExecutionFailure",
    "NOT_SUPPLIED",
    "RecordingApi",
    "ShimError",
    "ShimSettings",
    "ToolkitApi",
    "TranslationImpossible",
    "load_catalog",
]
