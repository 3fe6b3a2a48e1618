"""
Request and decision models for the rate limit hook.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_key_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), sort_keys=True)
    return str(value)


class RawRequest(BaseModel):
    """The GraphQL request being admitted."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    query: Optional[str] = None
    variables: Dict[str, Any] = Field(default_factory=dict)
    operation_name: Optional[str] = Field(default=None, alias="operationName")


class Session(BaseModel):
    """Caller session resolved by the engine."""

    model_config = ConfigDict(extra="ignore")

    role: str
    variables: Dict[str, str] = Field(default_factory=dict)

    @field_validator("variables", mode="before")
    @classmethod
    def stringify_variables(cls, v):
        # Non-string values are rendered into the key rather than rejected
        if not isinstance(v, dict):
            return v
        return {name: _as_key_value(value) for name, value in v.items()}


class PreParseRequest(BaseModel):
    """Body posted to the hook before the engine parses the query."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    raw_request: RawRequest = Field(alias="rawRequest")
    session: Session

    def to_rate_limit_request(self) -> "RateLimitRequest":
        return RateLimitRequest(
            operation_name=self.raw_request.operation_name,
            session_role=self.session.role,
            session_variables=dict(self.session.variables),
        )


class RateLimitRequest(BaseModel):
    """The parts of an inbound call the decision depends on."""

    model_config = ConfigDict(frozen=True)

    operation_name: Optional[str] = None
    session_role: str
    session_variables: Dict[str, str] = Field(default_factory=dict)


class Outcome(str, Enum):
    """Admission outcomes."""
    ALLOW = "allow"
    DENY_RATE_LIMIT = "deny_rate_limit"
    DENY_UNAVAILABLE = "deny_unavailable"
    ERROR = "error"


@dataclass(frozen=True)
class Decision:
    """Result of one admission check. Never persisted."""
    outcome: Outcome
    observed_count: Optional[int] = None
    key: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.ALLOW
