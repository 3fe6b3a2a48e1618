"""
Distributed rate decision engine.

Derives a per-client key from the request, counts attempts in a sliding
window log stored in Redis (one atomic script per request), and falls back
to the configured mode while Redis is unreachable.
"""

from .availability import AvailabilityMonitor, RedisConnectionWatcher, StoreState
from .engine import DecisionEngine
from .keys import build_key
from .models import Decision, Outcome, PreParseRequest, RateLimitRequest
from .policy import FallbackMode, KeyFields, Policy, PolicyFile, load_policy_file, parse_policy_file
from .responses import HookResponse, to_hook_response
from .sliding_window import SLIDING_WINDOW_LOG_LUA, SlidingWindowCounter

__all__ = [
    "AvailabilityMonitor",
    "Decision",
    "DecisionEngine",
    "FallbackMode",
    "HookResponse",
    "KeyFields",
    "Outcome",
    "Policy",
    "PolicyFile",
    "PreParseRequest",
    "RateLimitRequest",
    "RedisConnectionWatcher",
    "SLIDING_WINDOW_LOG_LUA",
    "SlidingWindowCounter",
    "StoreState",
    "build_key",
    "load_policy_file",
    "parse_policy_file",
    "to_hook_response",
]
