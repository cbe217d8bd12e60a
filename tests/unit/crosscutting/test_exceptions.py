"""
Name: Core Exceptions Unit Tests

Responsibilities:
  - Test error codes, ids and default user messages
  - Test the retryable flag of gateway errors
"""

import pytest

from assistant_core.crosscutting.exceptions import (
    AuthError,
    CoreError,
    GatewayError,
    GatewayUnavailable,
    InputError,
    InvalidQueryError,
    ProtocolError,
    RateLimited,
    ServerUnavailable,
)


@pytest.mark.unit
class TestCoreError:
    def test_to_response(self):
        error = InvalidQueryError("Query must not be empty", error_id="err-1")

        assert error.to_response().to_dict() == {
            "error_code": "INVALID_QUERY",
            "message": "Query must not be empty",
            "error_id": "err-1",
        }

    def test_error_id_generated(self):
        assert InputError("a").error_id != InputError("a").error_id

    def test_hierarchy(self):
        assert issubclass(InvalidQueryError, InputError)
        assert issubclass(ServerUnavailable, GatewayUnavailable)
        assert issubclass(GatewayError, CoreError)


@pytest.mark.unit
class TestGatewayErrors:
    @pytest.mark.parametrize(
        "error_type,retryable",
        [
            (GatewayUnavailable, True),
            (ServerUnavailable, True),
            (RateLimited, True),
            (AuthError, False),
            (ProtocolError, False),
            (GatewayError, False),
        ],
    )
    def test_retryable_flag(self, error_type, retryable):
        assert error_type().retryable is retryable

    def test_default_message_and_status(self):
        error = RateLimited(status_code=429)

        assert error.user_message == "Rate limit exceeded. Please try again later."
        assert error.status_code == 429

    def test_explicit_message_wins(self):
        cause = ValueError("x")
        error = AuthError("bad key", original_error=cause)

        assert error.message == "bad key"
        assert error.original_error is cause
