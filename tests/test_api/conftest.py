"""Fixtures for API tests: an app wired to a mock provider, no scheduler."""

import pytest
from fastapi.testclient import TestClient

from community_pulse.api import create_app
from community_pulse.providers.mock_provider import MockProvider
from community_pulse.registry.schemas import SourceDescriptor
from community_pulse.registry.service import SourceRegistry
from community_pulse.service import PulseService


@pytest.fixture
def api_registry() -> SourceRegistry:
    return SourceRegistry([
        SourceDescriptor(id="ALPHA", display_name="Alpha", provider_id="1", role="Owner"),
        SourceDescriptor(id="BRAVO", display_name="Bravo", provider_id="2", role="Staff"),
        SourceDescriptor(
            id="SECRET", display_name="Secret", provider_id="3", visibility="private", role="Admin",
        ),
    ])


@pytest.fixture
def api_provider(make_snapshot) -> MockProvider:
    return MockProvider(snapshots={
        "1": make_snapshot(provider_id="1", voice={"v1": ["a", "b"], "v2": ["c"]}),
        "2": make_snapshot(provider_id="2", member_count=200, online_count=50),
        "3": make_snapshot(provider_id="3", member_count=50, online_count=5),
    })


@pytest.fixture
def service(test_settings, api_registry, api_provider) -> PulseService:
    return PulseService(test_settings, api_registry, api_provider)


@pytest.fixture
def client(service):
    app = create_app(service=service, run_scheduler=False)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def refreshed(client):
    """Client after one completed fetch cycle."""
    response = client.post("/sources/refresh?wait=true")
    assert response.status_code == 200
    return client
