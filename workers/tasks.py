"""Celery task definitions for the game server."""
from celery import Task
from celery.exceptions import SoftTimeLimitExceeded
import logging
from datetime import datetime, UTC
from typing import Any, Dict
import asyncio
from functools import wraps

import config
from infrastructure import publish_once
from routes import games_helpers
from .task_helpers import run_with_store, record_announcement
from workers.celery_app import app

logger = logging.getLogger(__name__)

soft_time_limit = 30  # seconds
hard_time_limit = 90  # seconds


def celery_task(**task_kwargs):
	"""Combined decorator that registers a Celery task and adds error handling.

	Automatically:
	- Registers the function as a Celery task via @app.task()
	- Wraps execution with error handling (SoftTimeLimitExceeded, generic exceptions)
	- For retryable exceptions: logs and re-raises to allow Celery's autoretry mechanism
	- For non-retryable exceptions: logs and returns graceful failure dict

	Usage:
		@celery_task(bind=True, queue="announcements", ...)
		def my_task(self, ...):
			# business logic
	"""
	def decorator(func):
		@wraps(func)
		def wrapper(self, *args, **kwargs):
			try:
				return func(self, *args, **kwargs)
			except SoftTimeLimitExceeded:
				logger.warning(f"{func.__name__} exceeded soft time limit, graceful shutdown")
				raise
			except Exception as exc:
				# Unknown exceptions (broker, redis, sqlite busy) are retryable
				is_retryable = getattr(exc, 'retryable', True)

				if not is_retryable:
					logger.error(f"{func.__name__} failed with non-retryable error: {exc.__class__.__name__}: {exc}", exc_info=True)
					return {
						"status": "failure",
						"error": exc.__class__.__name__,
						"message": str(exc),
						"timestamp": datetime.now(UTC).isoformat(),
					}
				else:
					logger.error(f"{func.__name__} failed with retryable error: {exc.__class__.__name__}: {exc}", exc_info=True)
					raise
		return app.task(base=GameServerTask, **task_kwargs)(wrapper)
	return decorator


class GameServerTask(Task):
    """Base task class with custom error handling and logging."""

    autoretry_for = (Exception,)
    retry_kwargs = {"max_retries": 5}
    retry_backoff = True
    retry_backoff_max = 600
    retry_jitter = True

    def on_retry(self, exc: Exception, task_id: str, args: tuple, kwargs: dict, einfo: Any) -> None:
        """Log retry events."""
        logger.warning(
            f"Task {self.name} (id={task_id}) retrying after {exc}",
            extra={"task_id": task_id, "task_args": args, "task_kwargs": kwargs},
        )

    def on_failure(self, exc: Exception, task_id: str, args: tuple, kwargs: dict, einfo: Any) -> None:
        """Log task failures."""
        logger.error(
            f"Task {self.name} (id={task_id}) failed with {exc}",
            extra={"task_id": task_id, "task_args": args, "task_kwargs": kwargs},
            exc_info=einfo,
        )

    def on_success(self, result: Any, task_id: str, args: tuple, kwargs: dict) -> None:
        """Log task successes."""
        logger.info(
            f"Task {self.name} (id={task_id}) succeeded",
            extra={"task_id": task_id, "task_result": result},
        )


@celery_task(
    bind=True,
    name="workers.tasks.publish_announcement",
    queue="announcements",
    priority=6,
    soft_time_limit=soft_time_limit,
    time_limit=hard_time_limit,
)
def publish_announcement(self, event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Persist an announcement to the feed, then hand live delivery to
    `broadcast_announcement` so a Redis retry never stores it twice.

    Returns:
        dict: {"status": "success", "announcement_id": int}
    """
    announcement = run_with_store(record_announcement, event)
    broadcast_announcement.apply_async(args=[announcement], queue="announcements", priority=6)
    return {"status": "success", "announcement_id": announcement["id"]}


@celery_task(
    bind=True,
    name="workers.tasks.broadcast_announcement",
    queue="announcements",
    priority=6,
    soft_time_limit=soft_time_limit,
    time_limit=hard_time_limit,
)
def broadcast_announcement(self, announcement: Dict[str, Any]) -> Dict[str, Any]:
    """Publish a stored announcement on the Redis announcement channel."""
    receivers = asyncio.run(publish_once(config.REDIS_URL, config.ANNOUNCEMENT_CHANNEL, announcement))
    logger.info(f"Announcement {announcement.get('id')} delivered to {receivers} listener(s)")
    return {"status": "success", "receivers": receivers}


@celery_task(
    bind=True,
    name="workers.tasks.expire_stale_bounties",
    queue="maintenance",
    priority=2,
    soft_time_limit=soft_time_limit,
    time_limit=hard_time_limit,
)
def expire_stale_bounties(self) -> Dict[str, Any]:
    """
    Periodic task (every minute): deactivate the bounty once its expiry has
    passed. Reads already treat an expired bounty as inactive; this persists it.
    """
    expired = run_with_store(games_helpers.expire_bounty)
    return {"status": "success", "expired": expired}
