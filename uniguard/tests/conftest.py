"""
Shared fixtures for uniguard tests.

Environment variables are set BEFORE any uniguard import so that the
settings singleton is built from test values.
"""

import os

os.environ["UNIGUARD_ENVIRONMENT"] = "test"
os.environ["UNIGUARD_LOG_LEVEL"] = "DEBUG"
os.environ["UNIGUARD_REDIS_URL"] = "redis://localhost:6379/15"
os.environ["UNIGUARD_OPENAI_API_KEY"] = ""
os.environ["UNIGUARD_RATE_LIMIT_CLEANUP_PROBABILITY"] = "0"

import pytest
import pytest_asyncio

from uniguard.core.options import GenerateOptions, SecurityConfig
from uniguard.application.engines.security_plugins import (
    PluginContext,
    PluginRegistry,
)


@pytest_asyncio.fixture
async def registry():
    """A fresh plugin registry, cleared after the test."""
    registry = PluginRegistry()
    yield registry
    await registry.clear()


@pytest.fixture
def options():
    return GenerateOptions(model="test-model", prompt="Hello, world")


@pytest.fixture
def context(options):
    return PluginContext(options=options, security=SecurityConfig(), user_id="user-1")
