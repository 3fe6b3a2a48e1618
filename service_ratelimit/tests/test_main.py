"""
Unit tests for the rate limit hook service.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from service_ratelimit.app.main import RateLimitService, create_app
from service_ratelimit.app.ratelimit import Decision, Outcome
from shared.config import RateLimitServiceConfig
from shared.errors import ConfigurationError

AUTH_HEADERS = {"hasura-m-auth": "test-auth"}


def _hook_body(operation_name="GetUsers", role="user"):
    return {
        "rawRequest": {
            "query": "query GetUsers { users { id } }",
            "variables": {},
            "operationName": operation_name,
        },
        "session": {"role": role, "variables": {"user.id": "test-user-123"}},
    }


class TestRateLimitService:
    """Test cases for RateLimitService."""

    @pytest.fixture
    def config(self, config_dir):
        return RateLimitServiceConfig("ratelimit", 3000, config_path=str(config_dir), log_json=False)

    @pytest.fixture
    def script(self):
        return AsyncMock(return_value=0)

    @pytest.fixture
    def redis_client(self, script):
        """Redis client whose script and ping calls are mocked."""
        client = MagicMock()
        client.ping = AsyncMock(return_value=True)
        client.aclose = AsyncMock()
        client.register_script.return_value = script
        return client

    @pytest.fixture
    def app(self, config, redis_client):
        return create_app(config=config, redis_client=redis_client)

    @pytest.fixture
    def client(self, app):
        with TestClient(app) as client:
            yield client

    def test_root_endpoint(self, client):
        response = client.get("/", headers=AUTH_HEADERS)
        assert response.status_code == 200
        assert response.json()["service"] == "ratelimit"

    @pytest.mark.parametrize("headers", [{}, {"hasura-m-auth": "wrong"}])
    def test_root_requires_hook_secret(self, client, headers):
        response = client.get("/", headers=headers)
        assert response.status_code == 400
        assert response.json() == {"error": "Unauthorized request"}

    @pytest.mark.parametrize("path", ["/health", "/metrics"])
    def test_health_and_metrics_are_open(self, client, path):
        assert client.get(path).status_code == 200

    def test_unknown_route_requires_hook_secret(self, client):
        response = client.get("/docs")
        assert response.status_code == 400
        assert response.json() == {"error": "Unauthorized request"}

    def test_health_reports_store_state(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "ratelimit"
        assert data["status"] == "healthy"
        assert data["dependencies"] == {"redis": "ready"}

    def test_metrics_endpoint(self, client):
        client.post("/rate-limit", json=_hook_body(), headers=AUTH_HEADERS)
        response = client.get("/metrics")
        assert response.status_code == 200
        assert 'rate_limit_decisions_total{outcome="allow"} 1.0' in response.text

    def test_policy_loaded_from_config_path(self, app):
        service = app.state.rate_limit_service
        assert service.policy.limit == 3
        assert service.policy.window_seconds == 60
        assert service.redis_url == "redis://localhost:6379"

    def test_missing_config_dir_fails_startup(self, tmp_path, redis_client):
        config = RateLimitServiceConfig("ratelimit", 3000, config_path=str(tmp_path))
        with pytest.raises(ConfigurationError):
            RateLimitService(config=config, redis_client=redis_client)

    def test_allowed_request(self, client, script):
        response = client.post("/rate-limit", json=_hook_body(), headers=AUTH_HEADERS)

        assert response.status_code == 204
        assert response.content == b""
        script.assert_awaited_once()
        keys = script.await_args.kwargs["keys"]
        assert keys == ["x-user-id::x-client-id::user.id:test-user-123"]

    def test_key_uses_request_headers(self, client, script):
        headers = dict(AUTH_HEADERS, **{"X-User-Id": "test-user-123", "x-client-id": "test-client-456"})
        client.post("/rate-limit", json=_hook_body(), headers=headers)

        keys = script.await_args.kwargs["keys"]
        assert keys == ["x-user-id:test-user-123:x-client-id:test-client-456:user.id:test-user-123"]

    def test_numeric_session_variable_is_keyed(self, client, script):
        body = _hook_body()
        body["session"]["variables"] = {"user.id": 5}
        response = client.post("/rate-limit", json=body, headers=AUTH_HEADERS)

        assert response.status_code == 204
        keys = script.await_args.kwargs["keys"]
        assert keys == ["x-user-id::x-client-id::user.id:5"]

    def test_rate_limited_request(self, client, script):
        script.return_value = 3
        response = client.post("/rate-limit", json=_hook_body(), headers=AUTH_HEADERS)

        assert response.status_code == 400
        assert response.json() == {
            "message": "Rate limit exceeded",
            "extensions": {"code": "RATE_LIMIT_EXCEEDED"},
        }

    def test_excluded_role_skips_store(self, client, script):
        response = client.post("/rate-limit", json=_hook_body(role="admin"), headers=AUTH_HEADERS)
        assert response.status_code == 204
        script.assert_not_awaited()

    @pytest.mark.parametrize("headers", [{}, {"hasura-m-auth": "wrong"}])
    def test_unauthorized(self, client, script, headers):
        response = client.post("/rate-limit", json=_hook_body(), headers=headers)

        assert response.status_code == 400
        assert response.json() == {"error": "Unauthorized request"}
        script.assert_not_awaited()

    def test_unauthorized_checked_before_body(self, client):
        response = client.post("/rate-limit", content=b"not json", headers={"content-type": "application/json"})
        assert response.status_code == 400
        assert response.json() == {"error": "Unauthorized request"}

    @pytest.mark.parametrize("body", [b"not json", b"[]", b'{"rawRequest": {}}'])
    def test_malformed_body_fails_closed(self, client, script, body):
        headers = dict(AUTH_HEADERS, **{"content-type": "application/json"})
        response = client.post("/rate-limit", content=body, headers=headers)

        assert response.status_code == 500
        assert response.json()["extensions"]["code"] == "RATE_LIMIT_ERROR"
        script.assert_not_awaited()

    def test_engine_error_fails_closed(self, app, client):
        service = app.state.rate_limit_service
        with patch.object(service.engine, "decide", AsyncMock(return_value=Decision(Outcome.ERROR))):
            response = client.post("/rate-limit", json=_hook_body(), headers=AUTH_HEADERS)

        assert response.status_code == 500
        assert response.json() == {
            "message": "Internal server error during rate limit check",
            "extensions": {"code": "RATE_LIMIT_ERROR"},
        }

    def test_script_failure_fails_closed(self, client, script):
        script.side_effect = RuntimeError("boom")
        response = client.post("/rate-limit", json=_hook_body(), headers=AUTH_HEADERS)
        assert response.status_code == 500

    def test_store_down_at_startup_uses_fallback(self, config, redis_client, script):
        redis_client.ping.side_effect = RedisConnectionError("refused")
        app = create_app(config=config, redis_client=redis_client)

        with TestClient(app) as client:
            health = client.get("/health")
            response = client.post("/rate-limit", json=_hook_body(), headers=AUTH_HEADERS)

        assert health.json()["dependencies"] == {"redis": "unavailable"}
        assert response.status_code == 500
        assert response.json()["extensions"]["code"] == "REDIS_UNAVAILABLE"
        script.assert_not_awaited()

    def test_custom_unavailable_status(self, config_dir, redis_client):
        redis_client.ping.side_effect = RedisConnectionError("refused")
        config = RateLimitServiceConfig(
            "ratelimit", 3000, config_path=str(config_dir), unavailable_status_code=429, log_json=False
        )

        with TestClient(create_app(config=config, redis_client=redis_client)) as client:
            response = client.post("/rate-limit", json=_hook_body(), headers=AUTH_HEADERS)

        assert response.status_code == 429

    def test_shutdown_closes_redis(self, app, redis_client):
        with TestClient(app):
            pass
        redis_client.aclose.assert_awaited_once()
