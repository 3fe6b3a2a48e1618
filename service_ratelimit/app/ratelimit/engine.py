"""
Admission decision engine.

Per request, terminal on first match:

1. store not ready  -> fallback (ALLOW or DENY_UNAVAILABLE), no key, no store call
2. excluded role    -> ALLOW, nothing counted
3. evaluate         -> ALLOW or DENY_RATE_LIMIT from the sliding window count
4. any failure in 3 -> ERROR

The engine keeps no state between calls; all counting lives in Redis.
"""

import time
import uuid
from typing import Callable, Mapping, Optional

from shared.errors import StoreUnavailableError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.tracing import add_span_attributes, add_span_event, trace_function

from .availability import AvailabilityMonitor
from .keys import build_key
from .models import Decision, Outcome, RateLimitRequest
from .policy import FallbackMode, Policy
from .sliding_window import SlidingWindowCounter


class DecisionEngine:
    """Decides whether a request is admitted under the configured policy."""

    def __init__(
        self,
        policy: Policy,
        counter: SlidingWindowCounter,
        monitor: AvailabilityMonitor,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[], uuid.UUID] = uuid.uuid4,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.policy = policy
        self.counter = counter
        self.monitor = monitor
        self.clock = clock
        self.id_factory = id_factory
        self.metrics = metrics
        self.logger = get_logger("ratelimit.engine")

    def _request_id(self, request: RateLimitRequest) -> str:
        return f"{request.operation_name or 'anonymous'}-{self.id_factory()}"

    def _fallback(self) -> Decision:
        if self.policy.fallback_mode is FallbackMode.ALLOW:
            self.logger.info("Redis unavailable - falling back to allow mode", state=self.monitor.state.value)
            add_span_event("Redis unavailable - falling back to allow mode")
            return Decision(Outcome.ALLOW)

        self.logger.warning("Redis unavailable - falling back to deny mode", state=self.monitor.state.value)
        add_span_event("Redis unavailable - falling back to deny mode")
        return Decision(Outcome.DENY_UNAVAILABLE)

    @trace_function("rate_limit.decide")
    async def decide(self, request: RateLimitRequest, headers: Mapping[str, str]) -> Decision:
        """Return the admission decision for ``request``. Never raises."""
        decision = await self._decide(request, headers)
        add_span_attributes(**{
            "rate_limit.outcome": decision.outcome.value,
            "rate_limit.count": decision.observed_count,
        })
        if self.metrics is not None:
            self.metrics.record_decision(decision.outcome.value)
        return decision

    async def _decide(self, request: RateLimitRequest, headers: Mapping[str, str]) -> Decision:
        add_span_attributes(**{
            "graphql.operation.name": request.operation_name,
            "session.role": request.session_role,
            "redis.status": self.monitor.state.value,
        })

        if not self.monitor.is_ready:
            return self._fallback()

        if self.policy.is_excluded(request.session_role):
            self.logger.debug("Request excluded due to role", role=request.session_role)
            add_span_attributes(**{"rate_limit.excluded": True})
            return Decision(Outcome.ALLOW)

        key = None
        try:
            key = build_key(self.policy, request, headers)
            now = int(self.clock())
            request_id = self._request_id(request)
            add_span_attributes(**{
                "rate_limit.key": key,
                "rate_limit.limit": self.policy.limit,
                "rate_limit.window.start": now - self.policy.window_seconds,
                "rate_limit.window.end": now,
                "rate_limit.request.id": request_id,
            })

            count = await self.counter.evaluate(
                key,
                self.policy.limit,
                now,
                self.policy.window_seconds,
                request_id,
            )
        except StoreUnavailableError as e:
            # Connection lost mid-request: same handling as a known outage
            self.monitor.on_error(e)
            return self._fallback()
        except Exception as e:
            self.logger.error(
                "Error during rate limit check",
                key=key,
                role=request.session_role,
                operation_name=request.operation_name,
                error=str(e),
                exc_info=True,
            )
            add_span_event("Rate limit check failed", error=str(e))
            return Decision(Outcome.ERROR, key=key)

        if count >= self.policy.limit:
            self.logger.info("Rate limit exceeded", key=key, count=count, limit=self.policy.limit)
            add_span_event("Rate limit exceeded")
            return Decision(Outcome.DENY_RATE_LIMIT, observed_count=count, key=key)

        self.logger.debug("Request allowed", key=key, count=count, limit=self.policy.limit)
        return Decision(Outcome.ALLOW, observed_count=count, key=key)
