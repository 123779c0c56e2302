"""Notification worker process.

RUN:  python -m shabaka.worker

Same image as the API, different command:
  api:    uvicorn shabaka.main:app --host 0.0.0.0 --port 8000
  worker: python -m shabaka.worker

The API enqueues jobs on the ``notifications`` queue (see
shabaka/services/task_queue.py).  This loop pops one job at a time and
dispatches it on ``task.kind`` to a registered handler.  A handler that
raises is logged and the job is dropped; there is no retry.

Actual delivery (SMTP, an email API) is out of scope here: handlers log
what would be sent, with the recipient but never the code itself.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from shabaka.container import get_container
from shabaka.core.config import SETTINGS
from shabaka.core.logging import setup_logging
from shabaka.services.task_queue import NOTIFICATIONS_QUEUE, Task, TaskQueue

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("shabaka.worker")

HANDLERS: dict[str, TaskHandler] = {}


def register_handler(kind: str):
    """Decorator: register a coroutine as the handler for a job kind."""

    def decorator(func):
        HANDLERS[kind] = func
        return func

    return decorator


@register_handler("verification_code")
async def handle_verification_code(payload: dict) -> None:
    logger.info(
        "Sending %s code to %s",
        payload.get("purpose"),
        payload.get("email"),
    )


@register_handler("payment_receipt")
async def handle_payment_receipt(payload: dict) -> None:
    logger.info(
        "Sending receipt for order=%s user=%s amount=%s DT",
        payload.get("orderId"),
        payload.get("userId"),
        payload.get("amountDT"),
        extra={"order_id": payload.get("orderId"), "user_id": payload.get("userId")},
    )


async def process_one(queue: TaskQueue, timeout: int = 5) -> Task | None:
    """Pop and dispatch a single job.  Returns the job, or None if idle."""
    task = await queue.dequeue(NOTIFICATIONS_QUEUE, timeout=timeout)
    if task is None:
        return None

    handler = HANDLERS.get(task.kind)
    if handler is None:
        logger.warning("No handler for job kind=%s id=%s, dropping", task.kind, task.id)
        return task
    try:
        await handler(task.payload)
        logger.info("Job %s [%s] completed", task.id, task.kind)
    except Exception:
        logger.exception("Job %s [%s] failed", task.id, task.kind)
    return task


async def run_worker() -> None:
    queue = get_container().notifications
    logger.info("Worker started, listening on [%s] for kinds %s", NOTIFICATIONS_QUEUE, list(HANDLERS))
    while True:
        if await process_one(queue) is None:
            # The in-memory queue returns at once when empty.
            await asyncio.sleep(0.5)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
