"""
Shared fixtures for route tests: a TestClient over the real app with the
auth dependencies overridable per test.
"""

import pytest
from fastapi.testclient import TestClient

from src.api.app import app as fastapi_app
from src.api.auth import AuthUser, get_current_user, get_optional_user

TEST_USER = AuthUser(id="user-1", email="user@example.com")


@pytest.fixture()
def client():
    """Anonymous caller."""
    fastapi_app.dependency_overrides.clear()
    with TestClient(fastapi_app, raise_server_exceptions=False) as test_client:
        yield test_client
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def user_client():
    """Caller signed in as TEST_USER."""
    fastapi_app.dependency_overrides[get_optional_user] = lambda: TEST_USER
    fastapi_app.dependency_overrides[get_current_user] = lambda: TEST_USER
    with TestClient(fastapi_app, raise_server_exceptions=False) as test_client:
        yield test_client
    fastapi_app.dependency_overrides.clear()
