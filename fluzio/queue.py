"""
Push job queue between the notification writers and the push worker.

Each entry is a PushJob naming the stored notification and its recipient.
Jobs travel as JSON documents so the Redis list stays readable from other
tools; the in-memory queue keeps the objects as they are for tests and local
runs.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from shared.documents import from_document, to_document, utcnow
from shared.types import NotificationType

logger = logging.getLogger(__name__)


@dataclass
class PushJob:
    notification_id: str
    user_id: str
    notification_type: NotificationType
    enqueued_at: datetime = field(default_factory=utcnow)

    def to_json(self) -> str:
        return json.dumps(to_document(self), sort_keys=True)

    @classmethod
    def from_json(cls, raw: str | bytes) -> "PushJob":
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        payload = json.loads(raw)
        if not isinstance(payload, dict) or not payload.get("notification_id"):
            raise ValueError(f"Malformed push job: {raw!r}")
        return from_document(cls, payload)


class NotificationQueue(Protocol):
    def enqueue(self, job: PushJob) -> None:
        ...

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[PushJob]:
        ...


@dataclass
class InMemoryNotificationQueue:
    jobs: list[PushJob] = field(default_factory=list)

    def enqueue(self, job: PushJob) -> None:
        self.jobs.append(job)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[PushJob]:
        if not self.jobs:
            return None
        return self.jobs.pop(0)

    def pending_ids(self) -> list[str]:
        return [job.notification_id for job in self.jobs]

    def reset(self) -> None:
        self.jobs.clear()


@dataclass
class RedisNotificationQueue:
    """Redis list of JSON push jobs: rpush to enqueue, blpop/lpop to consume."""

    url: str
    queue_key: str = "fluzio:notifications"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def enqueue(self, job: PushJob) -> None:
        self.client.rpush(self.queue_key, job.to_json())

    def _pop(self, block: bool, timeout: int | None) -> Optional[bytes]:
        if not block:
            return self.client.lpop(self.queue_key)
        result = self.client.blpop(self.queue_key, timeout=timeout or 0)
        if result is None:
            return None
        _, raw = result
        return raw

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[PushJob]:
        try:
            raw = self._pop(block, timeout)
        except redis_exceptions.ConnectionError:
            # Managed Redis drops idle connections; reconnect and report empty.
            logger.warning("Lost Redis connection on %s, reconnecting", self.queue_key)
            self.client = redis.Redis.from_url(self.url)
            return None
        if raw is None:
            return None
        return PushJob.from_json(raw)
