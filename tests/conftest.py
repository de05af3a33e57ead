# ============================================================================
# conftest.py -- Shared Test Fixtures for the SceneVault Test Suite
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Pytest automatically loads this file before any test runs.
#   It provides:
#     1. sys.path setup so "from scenevault.core.X import Y" works from any test
#     2. Log files routed into a temporary folder (never into ./logs)
#     3. Environment overrides cleared, so a developer's SCENEVAULT_* vars
#        can't change test results (SCENEVAULT_LOG_DIR is pinned to the
#        session log folder instead)
#     4. Shared fixtures: an empty project root, a deterministic id factory
#        and a helper that creates source files to import
#
# INTERNET ACCESS: NONE
# ============================================================================

import sys
from pathlib import Path

import pytest

# -- sys.path setup --
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from scenevault.core.asset_ids import SequentialIdFactory
from scenevault.monitoring.logger import initialize_logging


ENV_OVERRIDES = ("SCENEVAULT_INGEST_MODE", "SCENEVAULT_USER")


@pytest.fixture(scope="session", autouse=True)
def log_setup(tmp_path_factory):
    """Send every app/audit log file of the session into one temp folder."""
    return initialize_logging(str(tmp_path_factory.mktemp("logs")))


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, log_setup):
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    # Config() picks this up, so engines keep logging into the session folder
    monkeypatch.setenv("SCENEVAULT_LOG_DIR", str(log_setup.log_dir))


@pytest.fixture
def project_root(tmp_path):
    """An empty project folder."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def id_factory():
    """Ids come out as id-1, id-2, ... (the first one is the transaction id)."""
    return SequentialIdFactory()


@pytest.fixture
def make_source(tmp_path):
    """
    Create a file to import: make_source("a/photo.png", b"...").

    Files live under tmp_path/incoming, outside the project root.
    """
    incoming = tmp_path / "incoming"

    def _make(relative: str, content=b"data") -> Path:
        path = incoming / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            path.write_text(content, encoding="utf-8")
        else:
            path.write_bytes(content)
        return path

    return _make
