"""Prometheus scrape endpoint (text exposition format, not JSON).

The notification queue is drained by the worker process, so its depth
gauge is refreshed here at scrape time; otherwise the API process would
only report the depth seen at its last enqueue.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from shabaka.container import get_notification_queue
from shabaka.core.metrics import QUEUE_DEPTH
from shabaka.services.task_queue import NOTIFICATIONS_QUEUE, TaskQueue

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics(queue: Annotated[TaskQueue, Depends(get_notification_queue)]) -> Response:
    depth = await queue.queue_length(NOTIFICATIONS_QUEUE)
    QUEUE_DEPTH.labels(queue_name=NOTIFICATIONS_QUEUE).set(depth)
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
