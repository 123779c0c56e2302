"""Notification queue on Redis lists.

The API never talks to SMTP.  Auth and payment code ``enqueue`` a small
JSON job (a verification code to send, a receipt for a paid order) and
return immediately; ``shabaka.worker`` pops jobs with BRPOP and
delivers them.

LPUSH at the head and BRPOP from the tail keeps the queue FIFO.
Delivery is at-most-once: a worker that dies mid-job loses that job.
Verification codes can be re-requested, so that is tolerated.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from shabaka.core.metrics import QUEUE_DEPTH

NOTIFICATIONS_QUEUE = "notifications"


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    queue: str
    kind: str  # verification_code | payment_receipt
    payload: dict[str, Any]


@runtime_checkable
class TaskQueue(Protocol):
    async def enqueue(self, queue: str, kind: str, payload: dict[str, Any]) -> Task: ...
    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None: ...
    async def queue_length(self, queue: str) -> int: ...


class InMemoryTaskQueue:
    def __init__(self) -> None:
        self._queues: dict[str, list[Task]] = {}

    async def enqueue(self, queue: str, kind: str, payload: dict[str, Any]) -> Task:
        task = Task(id=uuid.uuid4().hex, queue=queue, kind=kind, payload=payload)
        self._queues.setdefault(queue, []).append(task)
        QUEUE_DEPTH.labels(queue_name=queue).set(len(self._queues[queue]))
        return task

    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None:
        tasks = self._queues.get(queue, [])
        if not tasks:
            return None
        task = tasks.pop(0)
        QUEUE_DEPTH.labels(queue_name=queue).set(len(tasks))
        return task

    async def queue_length(self, queue: str) -> int:
        return len(self._queues.get(queue, []))


class RedisTaskQueue:
    _PREFIX = "tasks:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def enqueue(self, queue: str, kind: str, payload: dict[str, Any]) -> Task:
        task = Task(id=uuid.uuid4().hex, queue=queue, kind=kind, payload=payload)
        body = json.dumps({"id": task.id, "queue": queue, "kind": kind, "payload": payload})
        depth = await self._redis.lpush(f"{self._PREFIX}{queue}", body)
        QUEUE_DEPTH.labels(queue_name=queue).set(depth)
        return task

    async def dequeue(self, queue: str, timeout: int = 5) -> Task | None:
        result = await self._redis.brpop(f"{self._PREFIX}{queue}", timeout=timeout)
        if result is None:
            return None
        _, body = result
        return Task(**json.loads(body))

    async def queue_length(self, queue: str) -> int:
        return await self._redis.llen(f"{self._PREFIX}{queue}")
