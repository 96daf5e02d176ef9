"""
Render job queue.

Job ids go through a Redis list in production; tests and local runs use the
in-process FIFO. The database stays the source of truth for job state, the
queue only wakes workers up.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)


class RenderQueue(Protocol):
    def enqueue(self, job_id: str) -> None:
        ...

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        ...

    def pending(self) -> int:
        ...


@dataclass
class InMemoryRenderQueue:
    """Process-local FIFO for tests and dev servers."""

    items: deque = field(default_factory=deque)

    def enqueue(self, job_id: str) -> None:
        self.items.append(job_id)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        return self.items.popleft() if self.items else None

    def pending(self) -> int:
        return len(self.items)


@dataclass
class RedisRenderQueue:
    """Job ids pushed with RPUSH and popped with (B)LPOP."""

    url: str
    queue_key: str = "sevadar:render-jobs"

    def __post_init__(self):
        self._connect()

    def _connect(self) -> None:
        self.client = redis.Redis.from_url(self.url)

    def enqueue(self, job_id: str) -> None:
        self.client.rpush(self.queue_key, job_id)

    def pending(self) -> int:
        try:
            return int(self.client.llen(self.queue_key))
        except redis_exceptions.ConnectionError:
            self._connect()
            return 0

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        try:
            if block:
                popped = self.client.blpop(self.queue_key, timeout=timeout or 0)
                raw = popped[1] if popped else None
            else:
                raw = self.client.lpop(self.queue_key)
        except redis_exceptions.ConnectionError:
            # Managed Redis drops idle connections; the worker loop retries.
            logger.warning("Lost connection to Redis, reconnecting")
            self._connect()
            return None
        return raw.decode("utf-8") if raw is not None else None
