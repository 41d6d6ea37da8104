"""Pytest configuration and shared fixtures for the test suite."""

from typing import Callable

import pytest

from agentforge.a2a.config import RemoteAgentConfig
from agentforge.a2a.pool import EndpointPool

# Configure pytest-asyncio
pytest_plugins = ["pytest_asyncio"]


@pytest.fixture
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture
def endpoint_urls() -> list[str]:
    """Primary endpoint followed by two failover endpoints."""
    return ["http://agent-a.test", "http://agent-b.test", "http://agent-c.test"]


@pytest.fixture
def pool(endpoint_urls: list[str]) -> EndpointPool:
    """Create a pool of three endpoints with the default thresholds."""
    return EndpointPool(endpoint_urls)


@pytest.fixture
def make_config(endpoint_urls: list[str]) -> Callable[..., RemoteAgentConfig]:
    """Build a three-endpoint RemoteAgentConfig.

    Keyword arguments override failover settings; ``cache`` and
    ``health_check`` are passed through to the config.
    """

    def _make(cache: dict | None = None, health_check: dict | None = None, **failover: object):
        return RemoteAgentConfig(
            name="test-agent",
            server_url=endpoint_urls[0],
            failover={"servers": endpoint_urls[1:], **failover},
            cache=cache or {},
            health_check=health_check or {},
        )

    return _make
