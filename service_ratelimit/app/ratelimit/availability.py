"""
Shared store availability tracking.

``AvailabilityMonitor`` holds the last known connection state and is read
synchronously on every decision. ``RedisConnectionWatcher`` is the
connection layer that feeds it: redis-py exposes no connection events, so
the watcher pings Redis on an interval and translates the outcome into
connect/ready/error events.
"""

import asyncio
from enum import Enum
from typing import Optional

import redis.asyncio as redis

from shared.logging import get_logger
from shared.metrics import MetricsCollector


class StoreState(str, Enum):
    """Shared store connection states."""
    CONNECTING = "connecting"
    READY = "ready"
    UNAVAILABLE = "unavailable"


class AvailabilityMonitor:
    """Process-scoped view of the shared store connection state."""

    def __init__(self, metrics: Optional[MetricsCollector] = None):
        self.metrics = metrics
        self.logger = get_logger("ratelimit.availability")
        self._state = StoreState.CONNECTING
        self._publish()

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is StoreState.READY

    def on_connect(self):
        """A connection attempt has started."""
        if self._state is not StoreState.READY:
            self._transition(StoreState.CONNECTING)

    def on_ready(self):
        """The store answered and can take commands."""
        self._transition(StoreState.READY)

    def on_error(self, error: Optional[BaseException] = None):
        """The connection failed or was lost."""
        self._transition(StoreState.UNAVAILABLE, error=str(error) if error else None)

    def _transition(self, new_state: StoreState, error: Optional[str] = None):
        if new_state is self._state:
            return
        previous, self._state = self._state, new_state
        if new_state is StoreState.UNAVAILABLE:
            self.logger.warning("Redis connection unavailable", previous=previous.value, error=error)
        else:
            self.logger.info("Redis connection state changed", previous=previous.value, state=new_state.value)
        self._publish()

    def _publish(self):
        if self.metrics is not None:
            self.metrics.record_store_state(self._state.value, [s.value for s in StoreState])


class RedisConnectionWatcher:
    """Background task that keeps an ``AvailabilityMonitor`` current."""

    def __init__(self, redis_client: redis.Redis, monitor: AvailabilityMonitor, interval: float = 5.0):
        self.redis = redis_client
        self.monitor = monitor
        self.interval = interval
        self.logger = get_logger("ratelimit.availability.watcher")
        self._task: Optional[asyncio.Task] = None

    async def check(self) -> bool:
        """Ping Redis once and report the result to the monitor."""
        try:
            await self.redis.ping()
        except Exception as e:
            self.monitor.on_error(e)
            return False
        self.monitor.on_ready()
        return True

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            await self.check()

    async def start(self):
        """Run a first check immediately, then keep checking in the background."""
        if self._task is not None:
            return
        self.monitor.on_connect()
        await self.check()
        self._task = asyncio.create_task(self._run(), name="redis-connection-watcher")
        self.logger.info("Redis connection watcher started", interval=self.interval)

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("Redis connection watcher stopped")
