# tests/conftest.py
"""
Global test bootstrap
- Test-friendly env set BEFORE importing the app (no monitor, memory catalog)
- anyio runs on asyncio only
- Pulls in the shared fixtures (app, client, fakes)
"""

from __future__ import annotations

import os

os.environ.setdefault("ENV", "development")
os.environ.setdefault("HEALTH_MONITOR_ENABLED", "false")
os.environ.setdefault("MOVIES_REPOSITORY", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest


@pytest.fixture(scope="session", autouse=True)
def anyio_backend():
    return "asyncio"


from tests.fixtures.app import *      # noqa: F401,F403,E402
from tests.fixtures.uploads import *  # noqa: F401,F403,E402
