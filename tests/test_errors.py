import pytest

from gameteam_auth.errors import (
    CodeExpiredError,
    HttpError,
    InvalidCredentialsError,
    NetworkError,
    RateLimitedError,
    SessionExpiredError,
    ValidationError,
    classify_auth_error,
    friendly_message,
)


class TestHttpError:

    def test_problem_details(self):
        error = HttpError(404, {"code": "MVP-MATCH-001", "title": "Not found", "status": 404, "detail": "No match m1"})
        assert error.code == "MVP-MATCH-001"
        assert error.title == "Not found"
        assert str(error) == "No match m1"

    def test_non_problem_body(self):
        error = HttpError(500, "<html>boom</html>")
        assert error.code == "HTTP-500"
        assert error.detail is None
        assert str(error) == "Request failed with status 500"

    def test_message_field_is_used_as_detail(self):
        assert HttpError(400, {"message": "bad"}).detail == "bad"


class TestClassifyAuthError:

    @pytest.mark.parametrize("code, expected", [
        ("MVP-AUTH-001", InvalidCredentialsError),
        ("MVP-AUTH-002", CodeExpiredError),
        ("MVP-AUTH-003", RateLimitedError),
        ("MVP-AUTH-004", RateLimitedError),
    ])
    def test_known_codes(self, code, expected):
        classified = classify_auth_error(HttpError(400, {"code": code}))
        assert type(classified) is expected
        assert classified.code == code

    def test_plain_429_is_rate_limited(self):
        assert isinstance(classify_auth_error(HttpError(429)), RateLimitedError)

    def test_bad_request_without_code_is_validation(self):
        classified = classify_auth_error(HttpError(422, {"detail": "phoneNumber is required"}))
        assert isinstance(classified, ValidationError)
        assert str(classified) == "phoneNumber is required"

    def test_other_errors_pass_through(self):
        error = HttpError(500, {"code": "MVP-SYS-001"})
        assert classify_auth_error(error) is error


class TestFriendlyMessage:

    def test_known_code(self):
        error = HttpError(409, {"code": "MVP-MATCH-002"})
        assert friendly_message(error) == "This match is full. Try requesting as emergency player."

    def test_unknown_code_falls_back_to_detail(self):
        assert friendly_message(HttpError(409, {"code": "X", "detail": "Nope"})) == "Nope"

    def test_network(self):
        assert friendly_message(NetworkError("refused")) == "Network error. Please check your connection."

    def test_session_expired(self):
        assert friendly_message(SessionExpiredError()) == "Session expired. Please login again."
