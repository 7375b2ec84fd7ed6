import pytest
from fastapi.testclient import TestClient

from redirector import create_app
from redirector.config import Settings


@pytest.fixture
def settings():
    return Settings(host="127.0.0.1:0", redirect="https://example.com")


@pytest.fixture
def client(settings):
    """TestClient that reports redirects instead of following them."""
    with TestClient(create_app(settings), follow_redirects=False) as client:
        yield client
