"""Tests for error handling and response envelopes.

Verifies:
- Error envelope shape is {"ok": false, "error": "<message>", "code", "request_id"}
- Every error code maps to an HTTP status
- Unknown exceptions and database errors return E_INTERNAL with 500
- Malformed JSON and validation failures return E_INVALID_REQUEST
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from scaaf.errors import (
    ERROR_CODE_TO_STATUS,
    ApiError,
    ApiErrorCode,
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)
from scaaf.logging import clear_request_context, set_request_context
from scaaf.responses import (
    api_error_handler,
    database_error_handler,
    error_response,
    page_response,
    success_response,
    unhandled_exception_handler,
)
from tests.helpers import auth_headers, error_of


class TestErrorResponse:
    """Tests for error response envelope format."""

    def test_error_response_has_correct_shape(self):
        response = error_response(ApiErrorCode.E_NOT_FOUND, "Resource not found")

        assert response["ok"] is False
        assert response["error"] == "Resource not found"
        assert response["code"] == "E_NOT_FOUND"

    def test_error_response_code_is_string(self):
        response = error_response(ApiErrorCode.E_FORBIDDEN, "Access denied")

        assert isinstance(response["code"], str)

    def test_request_id_taken_from_context(self):
        set_request_context("req-123")
        try:
            response = error_response(ApiErrorCode.E_INTERNAL, "boom")
        finally:
            clear_request_context()

        assert response["request_id"] == "req-123"

    def test_request_id_omitted_without_context(self):
        clear_request_context()
        response = error_response(ApiErrorCode.E_INTERNAL, "boom")

        assert "request_id" not in response


class TestSuccessResponse:
    """Tests for success response envelope format."""

    def test_success_response_wraps_data(self):
        response = success_response({"id": "123"})

        assert response == {"ok": True, "data": {"id": "123"}}

    def test_success_response_with_none(self):
        assert success_response(None) == {"ok": True, "data": None}

    def test_page_response_carries_cursor(self):
        response = page_response([{"id": "1"}], "abc")

        assert response == {"ok": True, "data": [{"id": "1"}], "page": {"next_cursor": "abc"}}


class TestErrorCodeToStatus:
    """Tests for error code to HTTP status mapping."""

    def test_all_error_codes_have_status_mapping(self):
        for code in ApiErrorCode:
            assert code in ERROR_CODE_TO_STATUS, f"Missing status mapping for {code}"

    @pytest.mark.parametrize(
        "code,status",
        [
            (ApiErrorCode.E_UNAUTHENTICATED, 401),
            (ApiErrorCode.E_NOT_CIRCLE_MEMBER, 403),
            (ApiErrorCode.E_HIGHLIGHT_NOT_OWNED, 403),
            (ApiErrorCode.E_EMAIL_NOT_FOUND, 404),
            (ApiErrorCode.E_INVALID_CURSOR, 400),
            (ApiErrorCode.E_INVITE_EXHAUSTED, 409),
            (ApiErrorCode.E_INVITE_EXPIRED, 410),
            (ApiErrorCode.E_AUTH_UNAVAILABLE, 503),
            (ApiErrorCode.E_INTERNAL, 500),
        ],
    )
    def test_status_for_code(self, code, status):
        assert ApiError(code, "x").status_code == status

    def test_subclass_defaults(self):
        assert NotFoundError().status_code == 404
        assert ForbiddenError().status_code == 403
        assert InvalidRequestError().status_code == 400
        assert ConflictError(ApiErrorCode.E_INVITE_EXPIRED, "gone").status_code == 410


def _handler_app() -> FastAPI:
    app = FastAPI()
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(OperationalError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/api-error")
    def raise_api_error():
        raise NotFoundError(ApiErrorCode.E_EMAIL_NOT_FOUND, "Email not found")

    @app.get("/db-error")
    def raise_db_error():
        raise OperationalError("SELECT 1", {}, Exception("connection refused to secret-host"))

    @app.get("/crash")
    def crash():
        raise RuntimeError("secret internals")

    return app


class TestExceptionHandlers:
    """Handlers turn exceptions into envelopes without leaking details."""

    def test_api_error_uses_code_status(self):
        client = TestClient(_handler_app())
        response = client.get("/api-error")

        assert response.status_code == 404
        body = error_of(response)
        assert body["code"] == "E_EMAIL_NOT_FOUND"
        assert body["error"] == "Email not found"

    def test_database_error_is_500_without_driver_message(self):
        client = TestClient(_handler_app(), raise_server_exceptions=False)
        response = client.get("/db-error")

        assert response.status_code == 500
        body = error_of(response)
        assert body["code"] == "E_INTERNAL"
        assert "secret-host" not in response.text

    def test_unhandled_exception_is_500(self):
        client = TestClient(_handler_app(), raise_server_exceptions=False)
        response = client.get("/crash")

        assert response.status_code == 500
        assert error_of(response)["code"] == "E_INTERNAL"
        assert "secret internals" not in response.text


class TestAppErrorHandling:
    """Errors raised through the real app."""

    def test_malformed_json_returns_400(self, client, test_user_id):
        response = client.post(
            "/api/circles",
            content=b"{not json",
            headers={**auth_headers(test_user_id), "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert error_of(response)["code"] == "E_INVALID_REQUEST"

    def test_validation_error_returns_400(self, client, test_user_id):
        response = client.post(
            "/api/circles", json={"name": ""}, headers=auth_headers(test_user_id)
        )

        assert response.status_code == 400
        assert error_of(response)["code"] == "E_INVALID_REQUEST"

    def test_invalid_uuid_path_returns_400(self, client, test_user_id):
        response = client.get("/api/circles/not-a-uuid", headers=auth_headers(test_user_id))

        assert response.status_code == 400

    def test_unknown_route_returns_404_envelope(self, client, test_user_id):
        response = client.get("/api/nope", headers=auth_headers(test_user_id))

        assert response.status_code == 404
        assert error_of(response)["code"] == "E_NOT_FOUND"
