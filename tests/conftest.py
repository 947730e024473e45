"""Pytest configuration and shared fixtures for convo-tui tests."""

import pytest

from convo_tui.app.domain_store import DomainStore
from convo_tui.tui.part_cache import PartCache
from convo_tui.tui.rendering import RenderContext, RenderFlags
from tests.harness.builders import make_session


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Settings and logs go to a per-test directory, never the real home."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("CONVO_TUI_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("CONVO_TUI_LOG_FILE", raising=False)
    return tmp_path


@pytest.fixture
def store():
    """DomainStore with the default test session active."""
    return DomainStore(make_session())


@pytest.fixture
def cache():
    return PartCache()


@pytest.fixture
def ctx():
    """Render context at a fixed width with default display flags."""
    return RenderContext(flags=RenderFlags(width=80), username="tester")
