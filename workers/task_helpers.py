import asyncio
from typing import Any, Awaitable, Callable

import config
import stores
from stores import GameStore
from utils.time import now_utc, to_iso


async def _with_store(fn: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
    store = stores.make_game_store(config.DB_PATH)
    await store.init()
    try:
        return await fn(store, *args, **kwargs)
    finally:
        await store.close()


def run_with_store(fn: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
    """Run `await fn(store, *args, **kwargs)` to completion from synchronous task code.

    Every call gets a fresh event loop and a fresh store connection that is
    closed before returning.
    """
    return asyncio.run(_with_store(fn, *args, **kwargs))


async def record_announcement(store: GameStore, event: dict[str, Any]) -> dict[str, Any]:
    """Persist an announcement built from an event payload; returns it JSON-ready."""
    announcement = await store.add_announcement(
        event.get("kind", "info"),
        event.get("message", ""),
        event,
        now_utc(),
    )
    return {**announcement, "created_at": to_iso(announcement["created_at"])}
