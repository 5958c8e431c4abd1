"""Shared fixtures for the activity engine tests."""

import pytest

from activity_hub.config import reset_settings_cache
from activity_hub.utils import get_app_timezone


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    """Run every test against default settings in UTC."""

    monkeypatch.setenv("APP_TIMEZONE", "UTC")
    reset_settings_cache()
    get_app_timezone.cache_clear()
    yield
    reset_settings_cache()
    get_app_timezone.cache_clear()


@pytest.fixture
def leave_record():
    return {
        "leave_id": 7,
        "employee_name": "Ana Pérez",
        "leave_type": "Sick",
        "reason": "Flu",
        "status": "pending",
        "created_at": "2024-05-01T09:00:00Z",
    }
