"""
Email notification task producer for the Ticketing service.
"""

import json
import time
import uuid
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict

import redis.asyncio as redis
from shared.logging import get_logger
from shared.errors import AccessLayerException

TASK_EMAIL_DELIVERY = "email:deliver"
QUEUE_CRITICAL = "critical"
QUEUE_DEFAULT = "default"


@dataclass(frozen=True)
class EmailPayload:
    """Who to notify and what to tell them."""
    user: str
    content: str


class EmailTaskDistributor:
    """Pushes email delivery tasks onto a Redis list for a separate worker."""

    def __init__(self, redis_url: str, queue: str = QUEUE_CRITICAL, key_prefix: str = "tasks:"):
        self.redis_url = redis_url
        self.queue = queue
        self.key_prefix = key_prefix
        self.logger = get_logger("tickets.notifications.distributor")
        self.redis: Optional[redis.Redis] = None

    async def start(self):
        """Connect to the task queue."""
        try:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5
            )
            await self.redis.ping()
            self.logger.info("Email task distributor started", queue=self.queue)

        except Exception as e:
            self.logger.error("Failed to start email task distributor", error=str(e))
            raise AccessLayerException("TASK_QUEUE_START_FAILED", str(e))

    async def stop(self):
        """Close the queue connection."""
        if self.redis:
            await self.redis.aclose()
            self.logger.info("Email task distributor stopped")

    async def enqueue_email_delivery(
        self,
        payload: EmailPayload,
        *,
        max_retry: int = 10,
        process_in_seconds: int = 10
    ) -> Dict[str, Any]:
        """Enqueue an ``email:deliver`` task and return the task envelope."""
        if self.redis is None:
            raise AccessLayerException("TASK_QUEUE_NOT_STARTED", "Task distributor not started")

        task = {
            "id": str(uuid.uuid4()),
            "type": TASK_EMAIL_DELIVERY,
            "payload": asdict(payload),
            "queue": self.queue,
            "max_retry": max_retry,
            "process_at": int(time.time()) + process_in_seconds
        }

        try:
            await self.redis.lpush(f"{self.key_prefix}{self.queue}", json.dumps(task))
        except Exception as e:
            self.logger.error("Failed to enqueue task", type=TASK_EMAIL_DELIVERY, error=str(e))
            raise AccessLayerException("TASK_ENQUEUE_FAILED", f"failed to enqueue task: {e}")

        self.logger.info(
            "Enqueued task",
            type=TASK_EMAIL_DELIVERY,
            queue=self.queue,
            max_retry=max_retry,
            user=payload.user
        )
        return task
