"""
Unit tests for the response envelope and API errors.
"""

import json
from datetime import datetime, timezone

from userapi.api.envelope import ApiResponse, envelope_response, error_response, success_response
from userapi.api.errors import ApiError, BadRequest, NotFound
from userapi.api.routes import handles_api_errors
from userapi.http.request import HTTPRequest
from userapi.http.status_codes import HTTPStatus


FIXED = datetime(2024, 1, 1, 12, 0, 0, 500000, tzinfo=timezone.utc)


class TestApiResponse:

    def test_success_dict(self):
        envelope = ApiResponse(status="success", data={"id": 1}, timestamp=FIXED)

        assert envelope.to_dict() == {
            "status": "success",
            "data": {"id": 1},
            "timestamp": "2024-01-01T12:00:00.500Z",
        }

    def test_failure_dict(self):
        envelope = ApiResponse.failure("user not found")
        envelope.timestamp = FIXED

        assert envelope.to_dict() == {
            "status": "error",
            "data": None,
            "message": "user not found",
            "timestamp": "2024-01-01T12:00:00.500Z",
        }

    def test_key_order(self):
        assert list(ApiResponse.failure("x").to_dict()) == ["status", "data", "message", "timestamp"]
        assert list(ApiResponse.success([]).to_dict()) == ["status", "data", "timestamp"]

    def test_is_success(self):
        assert ApiResponse.success(1).is_success
        assert not ApiResponse.failure("x").is_success

    def test_timestamp_set_at_construction(self):
        before = datetime.now(timezone.utc)
        envelope = ApiResponse.success(None)
        assert before <= envelope.timestamp <= datetime.now(timezone.utc)


class TestEnvelopeResponses:

    def test_envelope_response(self):
        response = envelope_response(ApiResponse.success({"a": 1}), HTTPStatus.CREATED)

        assert response.status == HTTPStatus.CREATED
        assert response.headers["Content-Type"] == "application/json; charset=utf-8"
        assert json.loads(response.body)["data"] == {"a": 1}

    def test_success_response_defaults_to_200(self):
        assert success_response([]).status == HTTPStatus.OK

    def test_error_response(self):
        response = error_response("route not found", 404)
        body = json.loads(response.body)

        assert response.status == HTTPStatus.NOT_FOUND
        assert body["status"] == "error"
        assert body["message"] == "route not found"


class TestApiErrors:

    def test_status_codes(self):
        assert NotFound("x").status_code == 404
        assert BadRequest("x").status_code == 400
        assert ApiError("x").status_code == 500
        assert ApiError("x", status_code=409).status_code == 409

    def test_message(self):
        error = NotFound("user not found")
        assert error.message == "user not found"
        assert str(error) == "user not found"

    def test_handler_wrapper_converts_errors(self):
        @handles_api_errors
        def handler(request):
            raise BadRequest("error processing request")

        response = handler(HTTPRequest(method="POST", path="/users"))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert json.loads(response.body)["message"] == "error processing request"

    def test_handler_wrapper_keeps_name(self):
        @handles_api_errors
        def list_users(request):
            return success_response([])

        assert list_users.__name__ == "list_users"
