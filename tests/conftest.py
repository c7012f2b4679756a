import sys
import os
from unittest.mock import patch

import pytest

# Add project root to sys.path so tests can import top-level modules like 'platforms', 'stats', 'transport', etc.
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import settings  # noqa: E402
from settings import Settings  # noqa: E402
from tests.fakes import FakeApi  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_settings(monkeypatch):
    for var in settings.ENV_VARS.values():
        monkeypatch.delenv(var, raising=False)
    monkeypatch.delenv('REPOPULSE_CONFIG', raising=False)
    settings.reset()
    yield
    settings.reset()


@pytest.fixture
def fast_settings():
    return Settings(stats_backoff_seconds=0.0)


@pytest.fixture
def api():
    fake = FakeApi()
    with patch('transport.http.requests.get', new=fake):
        yield fake
