"""
Rate limit policy model and policy file loading.

The policy is read once at startup from ``rate-limit.json`` in the plugin
config directory and is immutable afterwards. Reloading requires a restart.
"""

import json
from enum import Enum
from pathlib import Path
from typing import FrozenSet, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from shared.errors import ConfigurationError
from shared.logging import get_logger

logger = get_logger("ratelimit.policy")

POLICY_FILE_NAME = "rate-limit.json"


class FallbackMode(str, Enum):
    """Behaviour while the shared store is unreachable."""
    ALLOW = "allow"
    DENY = "deny"


class KeyFields(BaseModel):
    """Request attributes that make up a rate limit key.

    Order is significant: reordering either list changes every key and
    therefore repartitions quotas.
    """

    model_config = ConfigDict(frozen=True)

    header_names: Tuple[str, ...] = ()
    session_variable_names: Tuple[str, ...] = ()


class Policy(BaseModel):
    """Immutable rate limit policy shared by all request handlers."""

    model_config = ConfigDict(frozen=True)

    limit: int = Field(gt=0)
    window_seconds: int = Field(gt=0)
    excluded_roles: FrozenSet[str] = frozenset()
    key_fields: KeyFields = KeyFields()
    fallback_mode: FallbackMode = FallbackMode.DENY

    @field_validator("fallback_mode", mode="before")
    @classmethod
    def normalize_fallback_mode(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    def is_excluded(self, role: Optional[str]) -> bool:
        return role is not None and role in self.excluded_roles


# Wire format of rate-limit.json

class _KeyConfig(BaseModel):
    from_headers: List[str] = Field(default_factory=list)
    from_session_variables: List[str] = Field(default_factory=list)


class _UnavailableBehavior(BaseModel):
    fallback_mode: str = "deny"


class _RateLimitSection(BaseModel):
    default_limit: int
    time_window: int
    excluded_roles: List[str] = Field(default_factory=list)
    key_config: _KeyConfig = Field(default_factory=_KeyConfig)
    unavailable_behavior: _UnavailableBehavior = Field(default_factory=_UnavailableBehavior)


class PolicyFile(BaseModel):
    """Contents of ``rate-limit.json``."""

    redis_url: Optional[str] = None
    rate_limit: _RateLimitSection

    def to_policy(self) -> Policy:
        section = self.rate_limit
        return Policy(
            limit=section.default_limit,
            window_seconds=section.time_window,
            excluded_roles=frozenset(section.excluded_roles),
            key_fields=KeyFields(
                header_names=tuple(section.key_config.from_headers),
                session_variable_names=tuple(section.key_config.from_session_variables),
            ),
            fallback_mode=section.unavailable_behavior.fallback_mode,
        )


def parse_policy_file(raw: dict) -> PolicyFile:
    """Validate a decoded ``rate-limit.json`` document.

    Raises:
        ConfigurationError: if the document or the resulting policy is invalid.
    """
    try:
        policy_file = PolicyFile.model_validate(raw)
        # Validate policy invariants up front so bad limits fail at startup
        policy_file.to_policy()
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid rate limit policy",
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e
    return policy_file


def load_policy_file(config_dir: Union[str, Path]) -> PolicyFile:
    """Read and validate ``rate-limit.json`` from the plugin config directory."""
    path = Path(config_dir) / POLICY_FILE_NAME
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError("Rate limit policy file not found", details={"path": str(path)}) from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            "Rate limit policy file is not valid JSON",
            details={"path": str(path), "error": str(e)},
        ) from e

    policy_file = parse_policy_file(raw)
    policy = policy_file.to_policy()
    logger.info(
        "Loaded rate limit policy",
        path=str(path),
        limit=policy.limit,
        window_seconds=policy.window_seconds,
        excluded_roles=sorted(policy.excluded_roles),
        header_names=list(policy.key_fields.header_names),
        session_variable_names=list(policy.key_fields.session_variable_names),
        fallback_mode=policy.fallback_mode.value,
    )
    return policy_file
