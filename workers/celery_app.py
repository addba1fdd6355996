"""Celery app configuration and task scheduling."""
import sys
import os
from pathlib import Path

# Add project root to Python path so imports work when celery runs this module directly
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Configure timezone BEFORE importing anything else
import pytz
os.environ['TZ'] = 'UTC'

from celery import Celery
from celery.schedules import crontab
from kombu import Exchange, Queue
import logging
import config

logger = logging.getLogger(__name__)

# Initialize Celery app
app = Celery("assassin_game", include=["workers.tasks"])

logger.info(f"[CELERY] Using broker_url: {config.CELERY_BROKER_URL}")
logger.info(f"[CELERY] Using result_backend: {config.CELERY_RESULT_BACKEND}")

app.config_from_object({
    "broker_url": config.CELERY_BROKER_URL,
    "result_backend": config.CELERY_RESULT_BACKEND,
    "task_serializer": "json",
    "accept_content": ["json"],
    "result_serializer": "json",
    "timezone": pytz.UTC,
    "enable_utc": True,
    "task_acks_late": True,
    "worker_prefetch_multiplier": 1,
})

# Define queues
default_exchange = Exchange("default", type="direct")
announcements_exchange = Exchange("announcements", type="direct")
maintenance_exchange = Exchange("maintenance", type="direct")

app.conf.task_queues = (
    Queue(
        "default",
        exchange=default_exchange,
        routing_key="default",
        queue_arguments={"x-max-priority": 10},
    ),
    Queue(
        "announcements",
        exchange=announcements_exchange,
        routing_key="announcements",
        queue_arguments={"x-max-priority": 10},
    ),
    Queue(
        "maintenance",
        exchange=maintenance_exchange,
        routing_key="maintenance",
        queue_arguments={"x-max-priority": 10},
    ),
)

# Default queue for tasks without explicit routing
app.conf.task_default_queue = "default"
app.conf.task_default_exchange = "default"
app.conf.task_default_routing_key = "default"

# Periodic task schedules (Celery Beat, default file-based scheduler)
app.conf.beat_schedule = {
    "expire-stale-bounties": {
        "task": "workers.tasks.expire_stale_bounties",
        "schedule": crontab(minute="*"),  # Every minute
        "options": {
            "queue": "maintenance",
            "priority": 2,
        },
    },
}

# Task configuration defaults
app.conf.task_default_retry_delay = 30
app.conf.task_max_retries = 5

# NOTE: Stores are NOT opened here at module import time. Each task opens its
# own store inside the event loop it runs in (see workers/task_helpers.py);
# an aiosqlite connection must not outlive the loop that created it.
