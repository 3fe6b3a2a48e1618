"""
Mapping from admission decisions to hook responses.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from shared.errors import RateLimitEvaluationError, StoreUnavailableError

from .models import Decision, Outcome

RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"


@dataclass(frozen=True)
class HookResponse:
    """``{statusCode, body?}`` returned to the engine calling the hook."""
    status_code: int
    body: Optional[Dict[str, Any]] = None


def _error_body(message: str, code: str) -> Dict[str, Any]:
    return {"message": message, "extensions": {"code": code}}


def rate_limit_error_response() -> HookResponse:
    """Fail-closed response for internal errors."""
    error = RateLimitEvaluationError()
    return HookResponse(500, _error_body(error.message, error.code))


def to_hook_response(decision: Decision, unavailable_status_code: int = 500) -> HookResponse:
    """Translate a decision into the hook's HTTP outcome."""
    if decision.outcome is Outcome.ALLOW:
        return HookResponse(204)

    if decision.outcome is Outcome.DENY_RATE_LIMIT:
        return HookResponse(400, _error_body("Rate limit exceeded", RATE_LIMIT_EXCEEDED))

    if decision.outcome is Outcome.DENY_UNAVAILABLE:
        error = StoreUnavailableError()
        return HookResponse(unavailable_status_code, _error_body(error.message, error.code))

    return rate_limit_error_response()
