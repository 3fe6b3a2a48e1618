"""
Rate limit hook service.

A pre-parse hook that admits or rejects GraphQL requests, enforcing a
per-client request rate shared by every instance through Redis.

Structure:
- app.main: FastAPI app, routes, and lifecycle wiring.
- app.ratelimit: Policy, key builder, sliding window counter, availability
  monitor and decision engine.
- app.auth: Shared-secret check for hook callers.
"""
