"""
Unit tests for decision to hook response mapping.
"""

import pytest

from service_ratelimit.app.ratelimit import Decision, Outcome, to_hook_response
from service_ratelimit.app.ratelimit.responses import rate_limit_error_response


class TestToHookResponse:
    """Test cases for to_hook_response."""

    def test_allow_is_no_content(self):
        response = to_hook_response(Decision(Outcome.ALLOW, observed_count=0))
        assert response.status_code == 204
        assert response.body is None

    def test_rate_limited(self):
        response = to_hook_response(Decision(Outcome.DENY_RATE_LIMIT, observed_count=3))
        assert response.status_code == 400
        assert response.body == {
            "message": "Rate limit exceeded",
            "extensions": {"code": "RATE_LIMIT_EXCEEDED"},
        }

    def test_unavailable_defaults_to_500(self):
        response = to_hook_response(Decision(Outcome.DENY_UNAVAILABLE))
        assert response.status_code == 500
        assert response.body == {
            "message": "Service temporarily unavailable",
            "extensions": {"code": "REDIS_UNAVAILABLE"},
        }

    @pytest.mark.parametrize("status_code", [400, 429, 503])
    def test_unavailable_status_is_configurable(self, status_code):
        response = to_hook_response(Decision(Outcome.DENY_UNAVAILABLE), unavailable_status_code=status_code)
        assert response.status_code == status_code
        assert response.body["extensions"]["code"] == "REDIS_UNAVAILABLE"

    def test_error_fails_closed(self):
        response = to_hook_response(Decision(Outcome.ERROR))
        assert response.status_code == 500
        assert response.body == {
            "message": "Internal server error during rate limit check",
            "extensions": {"code": "RATE_LIMIT_ERROR"},
        }
        assert response == rate_limit_error_response()
