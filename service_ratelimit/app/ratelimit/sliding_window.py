"""
Sliding window log counter executed atomically in Redis.
"""

import math
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from shared.errors import RateLimitEvaluationError, StoreUnavailableError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

# KEYS[1] = sorted set holding one member per admitted attempt, scored by time
# ARGV[1] = limit
# ARGV[2] = now (seconds)
# ARGV[3] = window start, now - window (seconds); scores <= this are expired
# ARGV[4] = window length (seconds)
# ARGV[5] = unique member for this attempt
# Returns: number of unexpired entries present before this attempt
SLIDING_WINDOW_LOG_LUA = r"""
local key = KEYS[1]
local limit = tonumber(ARGV[1])
local now = tonumber(ARGV[2])
local window_start = tonumber(ARGV[3])
local window = tonumber(ARGV[4])
local member = ARGV[5]

redis.call('ZREMRANGEBYSCORE', key, '-inf', window_start)

local count = redis.call('ZCARD', key)

-- denied attempts are not logged and do not extend the key's lifetime
if count < limit then
  redis.call('ZADD', key, now, member)
  redis.call('EXPIRE', key, math.ceil(window))
end

return count
"""


class SlidingWindowCounter:
    """Records attempts per key and reports how many are still in the window."""

    def __init__(
        self,
        redis_client: redis.Redis,
        key_prefix: str = "",
        metrics: Optional[MetricsCollector] = None,
    ):
        self.redis = redis_client
        self.key_prefix = key_prefix
        self.metrics = metrics
        self.logger = get_logger("ratelimit.sliding_window")
        self._script = self.redis.register_script(SLIDING_WINDOW_LOG_LUA)

    def storage_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def evaluate(self, key: str, limit: int, now: int, window_seconds: int, request_id: str) -> int:
        """Expire old entries, count the rest, and log this attempt if under ``limit``.

        The caller admits the attempt iff the returned count is below ``limit``.

        Raises:
            StoreUnavailableError: the connection to Redis was lost.
            RateLimitEvaluationError: Redis rejected the script or replied with
                something other than an integer.
        """
        window_start = now - window_seconds
        args = [limit, now, window_start, math.ceil(window_seconds), request_id]

        try:
            if self.metrics is not None:
                with self.metrics.time_operation("rate_limit_evaluation_duration_seconds"):
                    result = await self._script(keys=[self.storage_key(key)], args=args)
            else:
                result = await self._script(keys=[self.storage_key(key)], args=args)
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StoreUnavailableError(details={"error": str(e)}) from e
        except RedisError as e:
            raise RateLimitEvaluationError(
                "Rate limit script failed",
                details={"key": key, "error": str(e)},
            ) from e

        if isinstance(result, bool) or not isinstance(result, int):
            raise RateLimitEvaluationError(
                "Unexpected reply from rate limit script",
                details={"key": key, "reply": repr(result)},
            )

        self.logger.debug(
            "Evaluated sliding window",
            key=key,
            count=result,
            limit=limit,
            window_start=window_start,
            window_end=now,
        )
        return result
