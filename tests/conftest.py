"""Root conftest: settings, rule engine double, and in-process pipeline client.

Invariants:
    - Settings never read a .env file during tests
    - Every test gets a freshly built pipeline (own metrics registry)
    - The rule engine is a MagicMock, so calls and arguments are observable
"""

from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from optimus.config import Settings
from optimus.server import OptimusServer


def make_settings(**overrides) -> Settings:
    values = {
        "host": "127.0.0.1",
        "port": 0,
        "environment": "test",
        "version": "1.2.3",
        "log_format": "text",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def rule_engine():
    return MagicMock(return_value={})


@pytest.fixture
def server(settings, rule_engine):
    return OptimusServer(settings, rule_engine=rule_engine)


@pytest.fixture
def app(server):
    return server.get_instance()


@pytest.fixture
async def client(app):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c
