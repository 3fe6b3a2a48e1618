"""
Shared fixtures for rate limit service tests.
"""

import json
from typing import Dict, List, Tuple

import pytest

from service_ratelimit.app.ratelimit import (
    AvailabilityMonitor,
    FallbackMode,
    KeyFields,
    Policy,
    RateLimitRequest,
)


class InMemoryWindowCounter:
    """Single-process stand-in for the Redis sliding window script."""

    def __init__(self):
        self.entries: Dict[str, List[Tuple[int, str]]] = {}
        self.calls: List[Tuple[str, int, int, int, str]] = []

    async def evaluate(self, key: str, limit: int, now: int, window_seconds: int, request_id: str) -> int:
        self.calls.append((key, limit, now, window_seconds, request_id))
        window_start = now - window_seconds
        live = [entry for entry in self.entries.get(key, []) if entry[0] > window_start]
        count = len(live)
        if count < limit:
            live.append((now, request_id))
        self.entries[key] = live
        return count


class FakeClock:
    """Controllable wall clock in seconds."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def policy():
    """Policy from the reference scenario: 3 requests per 60 seconds."""
    return Policy(
        limit=3,
        window_seconds=60,
        excluded_roles=frozenset({"admin"}),
        key_fields=KeyFields(
            header_names=("x-user-id", "x-client-id"),
            session_variable_names=("user.id",),
        ),
        fallback_mode=FallbackMode.DENY,
    )


@pytest.fixture
def user_request():
    return RateLimitRequest(
        operation_name="GetUsers",
        session_role="user",
        session_variables={"user.id": "test-user-123"},
    )


@pytest.fixture
def user_headers():
    return {
        "x-user-id": "test-user-123",
        "x-client-id": "test-client-456",
    }


@pytest.fixture
def ready_monitor():
    monitor = AvailabilityMonitor()
    monitor.on_ready()
    return monitor


@pytest.fixture
def counter():
    return InMemoryWindowCounter()


@pytest.fixture
def clock():
    return FakeClock(1_700_000_000.0)


@pytest.fixture
def config_dir(tmp_path):
    """Plugin config directory with a policy and hook secret."""
    (tmp_path / "rate-limit.json").write_text(json.dumps({
        "redis_url": "redis://localhost:6379",
        "rate_limit": {
            "default_limit": 3,
            "time_window": 60,
            "excluded_roles": ["admin"],
            "key_config": {
                "from_headers": ["x-user-id", "x-client-id"],
                "from_session_variables": ["user.id"],
            },
            "unavailable_behavior": {"fallback_mode": "deny"},
        },
    }))
    (tmp_path / "configuration.json").write_text(json.dumps({
        "headers": {"hasura-m-auth": "test-auth"},
    }))
    return tmp_path
