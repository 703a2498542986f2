"""Pytest configuration and fixtures."""

import logging
import sys
from pathlib import Path

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from adtshim.lib.api import RecordingApi  # noqa: E402
from adtshim.lib.catalog import default_catalog  # noqa: E402
from adtshim.lib.deprecation import MemoryNoticeSink  # noqa: E402
from adtshim.lib.facade import CompatibilityFacade  # noqa: E402
from adtshim.lib.settings import ShimSettings  # noqa: E402


@pytest.fixture
def api():
    """New-API double that records every call."""
    return RecordingApi()


@pytest.fixture
def notices():
    """Notice sink that keeps notices in memory."""
    return MemoryNoticeSink()


@pytest.fixture
def catalog():
    """The bundled rule catalog."""
    return default_catalog()


@pytest.fixture
def facade(api, notices, catalog):
    """Facade over the bundled catalog with notices enabled."""
    return CompatibilityFacade(api, catalog=catalog, settings=ShimSettings(), notices=notices)


@pytest.fixture
def quiet_facade(api, notices, catalog):
    """Facade with deprecation notices suppressed."""
    settings = ShimSettings(suppress_deprecation_notices=True)
    return CompatibilityFacade(api, catalog=catalog, settings=settings, notices=notices)


@pytest.fixture
def isolated_env(monkeypatch, tmp_path):
    """Clear ADTSHIM_* variables and run from an empty directory.

    Keeps a developer's own .env from leaking into settings tests.
    """
    import os

    for name in list(os.environ):
        if name.startswith("ADTSHIM_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def restore_root_logger():
    """Undo handler changes made by setup_logging."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            handler.close()
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
