# tests/conftest.py

"""
Pytest configuration and shared fixtures.
"""

import pytest
from fastapi.testclient import TestClient
from typing import Generator

from main import create_app
from dependencies.auth import CurrentUser, get_current_user


@pytest.fixture(scope="function")
def app():
    """A fresh application per test."""
    application = create_app()
    yield application
    application.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def syndic_user():
    return CurrentUser(
        id="syndic-1",
        email="syndic@example.com",
        role="syndic",
        full_name="Karim Syndic",
        verified=True,
        onboarding_completed=True,
    )


@pytest.fixture
def resident_user():
    return CurrentUser(
        id="resident-1",
        email="resident@example.com",
        role="resident",
        full_name="Salma Resident",
        verified=True,
    )


@pytest.fixture
def guard_user():
    return CurrentUser(id="guard-1", email="guard@example.com", role="guard")


@pytest.fixture
def login_as(app):
    """login_as(user) makes every request authenticate as `user`."""
    def _login(user: CurrentUser):
        app.dependency_overrides[get_current_user] = lambda: user
        return user
    return _login


@pytest.fixture(autouse=True)
def reset_cache():
    """Reset cache and rate limit windows around each test."""
    from core.cache import cache_clear
    from core.rate_limiter import reset_rate_limits
    cache_clear()
    reset_rate_limits()
    yield
    cache_clear()
    reset_rate_limits()
