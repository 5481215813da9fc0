"""
Component tests for the identity provider dev mock
"""
import copy

import pytest
from fastapi.testclient import TestClient

from shoplist.identity_service import main as identity_service


@pytest.fixture
def mock_client(monkeypatch) -> TestClient:
    monkeypatch.setattr(identity_service, "USERS", copy.deepcopy(identity_service.USERS))
    return TestClient(identity_service.app)


class TestIdentityMock:

    def test_verify_known_session(self, mock_client: TestClient):
        response = mock_client.post("/sessions/verify", json={"token": "sess_pro"})

        assert response.status_code == 200
        assert response.json() == {"user_id": "user_pro"}

    def test_verify_unknown_session(self, mock_client: TestClient):
        response = mock_client.post("/sessions/verify", json={"token": "nope"})

        assert response.status_code == 401

    def test_metadata_patch_merges(self, mock_client: TestClient):
        # Act
        response = mock_client.patch(
            "/users/user_pro/metadata",
            json={"public_metadata": {"currency": "EUR"}},
        )

        # Assert
        assert response.status_code == 200
        user = mock_client.get("/users/user_pro").json()
        assert user["public_metadata"] == {"currency": "EUR", "theme": "dark"}
        assert user["private_metadata"] == {"plan": 1}

    def test_unknown_user(self, mock_client: TestClient):
        assert mock_client.get("/users/ghost").status_code == 404
