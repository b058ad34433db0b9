from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from cryptopulse.core.container import AppContainer
from cryptopulse.main import create_app


@pytest.fixture
def container(test_settings):
    return AppContainer(test_settings, notifications=MagicMock())


@pytest.fixture
def client(test_settings, container):
    # Entering the context runs the lifespan (thread pool, restore, graceful stop)
    with TestClient(create_app(test_settings, container=container)) as c:
        yield c
