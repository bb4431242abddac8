"""Tests for authentication middleware.

Tests cover:
- Missing or malformed credentials return 401
- Expired tokens and bad signatures return 401
- Session cookie authentication
- User bootstrap on first authenticated request
- Public, webhook and optional-auth paths
"""

import logging
from uuid import UUID, uuid4

from sqlalchemy import select

from scaaf.db.models import Address, User
from tests.helpers import (
    auth_headers,
    data_of,
    error_of,
    mint_expired_token,
    mint_test_token,
    mint_token_with_bad_signature,
)


class TestAuthRequired:
    def test_missing_credentials_returns_401(self, client):
        response = client.get("/api/me")

        assert response.status_code == 401
        assert error_of(response)["code"] == "E_UNAUTHENTICATED"

    def test_non_bearer_scheme_returns_401(self, client, test_user_id):
        token = mint_test_token(test_user_id)
        response = client.get("/api/me", headers={"Authorization": f"Basic {token}"})

        assert response.status_code == 401
        assert error_of(response)["error"] == "Invalid authorization header format"

    def test_empty_bearer_returns_401(self, client):
        response = client.get("/api/me", headers={"Authorization": "Bearer "})

        assert response.status_code == 401

    def test_expired_token_returns_401(self, client, test_user_id):
        token = mint_expired_token(test_user_id)
        response = client.get("/api/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert error_of(response)["code"] == "E_UNAUTHENTICATED"

    def test_bad_signature_returns_401(self, client, test_user_id):
        token = mint_token_with_bad_signature(test_user_id)
        response = client.get("/api/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_wrong_audience_returns_401(self, client, test_user_id):
        response = client.get("/api/me", headers=auth_headers(test_user_id, audience="other"))

        assert response.status_code == 401

    def test_non_uuid_subject_returns_401(self, client):
        token = mint_test_token("not-a-uuid")
        response = client.get("/api/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401


class TestAuthenticated:
    def test_me_returns_user_id(self, client, test_user_id):
        response = client.get("/api/me", headers=auth_headers(test_user_id))

        assert response.status_code == 200
        assert data_of(response) == {"user_id": str(test_user_id)}

    def test_session_cookie_authenticates(self, client, test_user_id):
        client.cookies.set("sb-access-token", mint_test_token(test_user_id))
        try:
            response = client.get("/api/me")
        finally:
            client.cookies.clear()

        assert response.status_code == 200
        assert data_of(response)["user_id"] == str(test_user_id)

    def test_header_wins_over_cookie(self, client):
        header_user = uuid4()
        client.cookies.set("sb-access-token", mint_test_token(uuid4()))
        try:
            response = client.get("/api/me", headers=auth_headers(header_user))
        finally:
            client.cookies.clear()

        assert data_of(response)["user_id"] == str(header_user)

    def test_first_request_creates_user_row(self, client, session_factory, test_user_id):
        client.get("/api/me", headers=auth_headers(test_user_id))
        client.get("/api/me", headers=auth_headers(test_user_id))

        with session_factory() as session:
            users = session.execute(select(User).where(User.id == test_user_id)).scalars().all()
        assert len(users) == 1


class TestPublicPaths:
    def test_health_is_public(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert data_of(response) == {"status": "ok"}

    def test_inbound_webhook_is_public(self, client):
        response = client.get("/api/inbound-email")

        assert response.status_code == 200

    def test_optional_auth_path_runs_anonymously(self, client, session_factory):
        response = client.post("/api/addresses/create", json={})

        assert response.status_code == 201
        with session_factory() as session:
            address = session.get(Address, UUID(data_of(response)["id"]))
        assert address.user_id is None

    def test_optional_auth_path_ignores_bad_token(self, client, test_user_id):
        token = mint_expired_token(test_user_id)
        response = client.post(
            "/api/addresses/create", json={}, headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 201
        assert data_of(response)["claimed"] is False

    def test_optional_auth_path_links_viewer(self, client, test_user_id):
        response = client.post("/api/addresses/create", json={}, headers=auth_headers(test_user_id))

        assert data_of(response)["claimed"] is True

    def test_claim_still_requires_auth(self, client):
        response = client.post("/api/addresses/claim", json={"claim_token": "x"})

        assert response.status_code == 401


class TestAuthFailureLogging:
    def auth_failures(self, caplog) -> list[logging.LogRecord]:
        return [
            r
            for r in caplog.records
            if r.name == "scaaf.auth.middleware" and r.getMessage() == "auth_failure"
        ]

    def test_missing_credentials_logged_on_protected_path(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="scaaf.auth.middleware"):
            client.get("/api/me")

        assert [r.reason for r in self.auth_failures(caplog)] == ["missing_credentials"]

    def test_anonymous_optional_path_logs_no_failure(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="scaaf.auth.middleware"):
            created = client.post("/api/addresses/create")
            issued = client.get("/api/addresses/me")

        assert created.status_code == 201
        assert issued.status_code == 200
        assert self.auth_failures(caplog) == []
