"""
API test fixtures.

The app is built around a CronService on tmp_path databases and the mock
clock; the scheduler stays stopped unless a test starts it.
"""

from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from billing_cron.api.main import create_app
from billing_cron.container import CronService


@pytest.fixture
def service(settings, clock) -> CronService:
    return CronService.create(settings, clock=clock)


@pytest.fixture
def client(service):
    with TestClient(create_app(service)) as test_client:
        yield test_client


@pytest.fixture
def auth_client(settings, clock):
    secured = replace(settings, api_auth_enabled=True, api_key="s3cret")
    with TestClient(create_app(CronService.create(secured, clock=clock))) as test_client:
        yield test_client
