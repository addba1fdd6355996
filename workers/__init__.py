"""Workers package: Celery app and background task definitions.

Public API:
- `celery_app`: Celery application instance and configuration
- `tasks`: task implementations (`publish_announcement`, `broadcast_announcement`,
  `expire_stale_bounties`)

The worker registers the tasks through the app's `include` list, so importing
this package alone does not pull in Celery.
"""
import importlib


# Lazy imports to avoid circular dependencies
def __getattr__(name):
    if name == "celery_app":
        return importlib.import_module(f"{__name__}.celery_app").app
    elif name == "tasks":
        return importlib.import_module(f"{__name__}.tasks")
    elif name in (
        "publish_announcement",
        "broadcast_announcement",
        "expire_stale_bounties",
    ):
        return getattr(importlib.import_module(f"{__name__}.tasks"), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "celery_app",
    "tasks",
    "publish_announcement",
    "broadcast_announcement",
    "expire_stale_bounties",
]
