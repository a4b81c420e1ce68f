"""
API test fixtures.

Routes run against the in-memory store and credential gateway from the
top-level conftest, wired in through dependency overrides.
"""

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from api.dependencies import (
    get_account_reconciler,
    get_assignment_tracker,
    get_credential_gateway,
    get_linking_service,
)


@pytest.fixture
def app(gateway, reconciler, linking, tracker):
    """Create a fresh app wired to the test services."""
    app = create_app()
    app.dependency_overrides[get_credential_gateway] = lambda: gateway
    app.dependency_overrides[get_account_reconciler] = lambda: reconciler
    app.dependency_overrides[get_linking_service] = lambda: linking
    app.dependency_overrides[get_assignment_tracker] = lambda: tracker
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def signup(client):
    """Sign up through the API: ``signup("a@example.com", "dependent")`` -> (account_id, headers)."""
    def _signup(email: str, role: str = "dependent", password: str = "secret1", **profile):
        response = client.post(
            "/api/accounts/signup",
            json={"email": email, "password": password, "role": role, "profile": profile},
        )
        assert response.status_code == 201, response.text
        data = response.json()
        return data["account"]["id"], {"Authorization": f"Bearer {data['access_token']}"}
    return _signup
