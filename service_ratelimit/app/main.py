"""
Rate limit hook service.
"""

import os
import time
from typing import Callable, Dict, Optional

import redis.asyncio as redis
from fastapi import Request, Response
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import RateLimitServiceConfig, get_config
from shared.errors import AuthenticationError
from shared.logging import set_operation_context
from shared.tracing import trace_operation

from .auth import HookAuthenticator, load_hook_config
from .ratelimit import (
    AvailabilityMonitor,
    DecisionEngine,
    PreParseRequest,
    RedisConnectionWatcher,
    SlidingWindowCounter,
    load_policy_file,
    to_hook_response,
)
from .ratelimit.responses import HookResponse, rate_limit_error_response

SERVICE_NAME = "ratelimit"
DEFAULT_PORT = 3000
UNAUTHENTICATED_PATHS = frozenset({"/health", "/metrics"})


class RateLimitService(BaseService):
    """Rate limit hook service implementation."""

    def __init__(
        self,
        config: Optional[RateLimitServiceConfig] = None,
        redis_client: Optional[redis.Redis] = None,
        clock: Callable[[], float] = time.time,
    ):
        port = int(os.getenv("PORT", DEFAULT_PORT))
        super().__init__(SERVICE_NAME, port, config or get_config(SERVICE_NAME, port))

        policy_file = load_policy_file(self.config.config_path)
        self.policy = policy_file.to_policy()
        self.authenticator = HookAuthenticator.from_config(load_hook_config(self.config.config_path))

        self.redis_url = policy_file.redis_url or self.config.redis_url
        self.redis = redis_client if redis_client is not None else redis.from_url(
            self.redis_url,
            decode_responses=True,
            socket_connect_timeout=self.config.redis_socket_timeout,
            socket_timeout=self.config.redis_socket_timeout,
        )

        self.monitor = AvailabilityMonitor(metrics=self.metrics)
        self.watcher = RedisConnectionWatcher(
            self.redis,
            self.monitor,
            interval=self.config.health_check_interval,
        )
        self.counter = SlidingWindowCounter(
            self.redis,
            key_prefix=self.config.key_prefix,
            metrics=self.metrics,
        )
        self.engine = DecisionEngine(
            self.policy,
            self.counter,
            self.monitor,
            clock=clock,
            metrics=self.metrics,
        )

        self._setup_auth_middleware()
        self._setup_rate_limit_routes()

        self.app.state.rate_limit_service = self

    async def startup(self):
        await self.watcher.start()

    async def shutdown(self):
        await self.watcher.stop()
        await self.redis.aclose()

    def _render(self, hook_response: HookResponse) -> Response:
        if hook_response.body is None:
            return Response(status_code=hook_response.status_code)
        return JSONResponse(status_code=hook_response.status_code, content=hook_response.body)

    def _setup_auth_middleware(self):
        """Require the hook secret on every route except health and metrics."""

        @self.app.middleware("http")
        async def verify_hook_secret(request: Request, call_next):
            if request.url.path in UNAUTHENTICATED_PATHS:
                return await call_next(request)
            try:
                self.authenticator.verify(request.headers)
            except AuthenticationError:
                self.metrics.record_error("unauthorized")
                return JSONResponse(status_code=400, content=self.authenticator.unauthorized_body())
            return await call_next(request)

    def _setup_rate_limit_routes(self):
        """Set up hook routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Rate limit pre-parse hook",
                "version": "1.0.0"
            }

        @self.app.post("/rate-limit")
        async def rate_limit(request: Request):
            """Admit or reject one GraphQL request."""
            with trace_operation("rate-limit"):
                try:
                    body = PreParseRequest.model_validate(await request.json())
                except ValueError as e:
                    self.logger.error("Malformed rate limit request", error=str(e))
                    self.metrics.record_error("malformed_request")
                    return self._render(rate_limit_error_response())

                rate_limit_request = body.to_rate_limit_request()
                set_operation_context(rate_limit_request.operation_name)

                decision = await self.engine.decide(rate_limit_request, request.headers)
                return self._render(
                    to_hook_response(decision, self.config.unavailable_status_code)
                )

    async def _check_dependencies(self) -> Dict[str, str]:
        """Report the shared store state without a round trip."""
        return {"redis": self.monitor.state.value}


def create_app(
    config: Optional[RateLimitServiceConfig] = None,
    redis_client: Optional[redis.Redis] = None,
    clock: Callable[[], float] = time.time,
):
    """Create FastAPI application."""
    service = RateLimitService(config=config, redis_client=redis_client, clock=clock)
    return service.app


def run():
    """Console entry point."""
    RateLimitService().run()


if __name__ == "__main__":
    run()
