"""Shared fixtures for the test suite."""

import sys
from pathlib import Path

import pytest

# Ensure project root is importable
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point HOME and the tool's config home at a temp dir and clear API env vars."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("MANUS_RESEARCH_HOME", str(home / ".manus-research"))
    monkeypatch.delenv("MANUS_API_KEY", raising=False)
    monkeypatch.delenv("MANUS_API_BASE", raising=False)
    return home


class FakeClock:
    """Monotonic clock that only advances when the poller sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()
