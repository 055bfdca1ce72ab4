"""Tests for error handling and response envelopes.

Verifies:
- Envelope helpers
- Every error code has an HTTP status
- Validation failures, unknown routes and wrong methods use the envelope
- Unknown exceptions return E_INTERNAL with 500
- Malformed JSON returns E_INVALID_REQUEST
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from contently.errors import (
    ERROR_CODE_TO_STATUS,
    ApiError,
    ApiErrorCode,
    AuthenticationError,
    ConflictError,
    InvalidRequestError,
    NotFoundError,
)
from contently.responses import error_response, success_response, unhandled_exception_handler
from tests.helpers import cookie_header, create_password_user, session_cookies


class TestEnvelopes:
    def test_error_envelope(self):
        body = error_response(ApiErrorCode.E_CONVERSATION_NOT_FOUND, "Conversation not found")
        assert body == {
            "error": {"code": "E_CONVERSATION_NOT_FOUND", "message": "Conversation not found"}
        }

    def test_error_envelope_with_request_id(self):
        body = error_response(ApiErrorCode.E_INTERNAL, "boom", request_id="req-1")
        assert body["error"]["request_id"] == "req-1"

    def test_success_envelope(self):
        assert success_response([1, 2]) == {"data": [1, 2]}
        assert success_response(None) == {"data": None}


class TestErrorCodes:
    def test_every_code_has_a_status(self):
        for code in ApiErrorCode:
            assert code in ERROR_CODE_TO_STATUS, f"Missing status mapping for {code}"

    @pytest.mark.parametrize(
        ("code", "status"),
        [
            (ApiErrorCode.E_UNAUTHENTICATED, 401),
            (ApiErrorCode.E_INVALID_CREDENTIALS, 401),
            (ApiErrorCode.E_IDENTITY_PROVIDER_ACCOUNT, 401),
            (ApiErrorCode.E_SESSION_EXPIRED, 401),
            (ApiErrorCode.E_FORBIDDEN, 403),
            (ApiErrorCode.E_USER_NOT_FOUND, 404),
            (ApiErrorCode.E_CONVERSATION_NOT_FOUND, 404),
            (ApiErrorCode.E_EMAIL_TAKEN, 409),
            (ApiErrorCode.E_INVALID_CURSOR, 400),
            (ApiErrorCode.E_PASSWORD_TOO_SHORT, 400),
            (ApiErrorCode.E_TITLE_INVALID, 400),
            (ApiErrorCode.E_AUTH_UNAVAILABLE, 503),
            (ApiErrorCode.E_INTERNAL, 500),
        ],
    )
    def test_status_mapping(self, code, status):
        assert ApiError(code, "x").status_code == status

    def test_subclass_defaults(self):
        assert NotFoundError().status_code == 404
        assert InvalidRequestError().code == ApiErrorCode.E_INVALID_REQUEST
        assert ConflictError().code == ApiErrorCode.E_EMAIL_TAKEN
        assert AuthenticationError().message == "Authentication required"


class TestHttpErrors:
    @pytest.fixture
    def auth(self, db_session, token_service):
        return cookie_header(session_cookies(token_service, create_password_user(db_session)))

    def test_malformed_json(self, client):
        response = client.post(
            "/auth/login",
            content="{not json",
            headers={"content-type": "application/json"},
        )
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "E_INVALID_REQUEST"
        assert error["message"] == "Malformed JSON body"

    def test_validation_error_uses_envelope(self, client, auth):
        response = client.post("/conversations", json={"title": 42, "extra": True}, headers=auth)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"

    def test_unknown_route(self, client, auth):
        response = client.get("/no-such-route", headers=auth)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "E_NOT_FOUND"

    def test_wrong_method(self, client, auth):
        response = client.delete("/conversations", headers=auth)
        assert response.status_code == 405
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"


class TestUnhandledExceptions:
    def test_unhandled_exception_returns_500(self):
        test_app = FastAPI()
        test_app.add_exception_handler(Exception, unhandled_exception_handler)

        @test_app.get("/explode")
        def explode():
            raise RuntimeError("secret detail")

        with TestClient(test_app, raise_server_exceptions=False) as client:
            response = client.get("/explode")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "E_INTERNAL"
        assert "secret detail" not in error["message"]
