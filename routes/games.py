from fastapi import APIRouter, Depends
import logging

from stores import get_game_store
from . import games_helpers

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/game")


@router.get("/state")
async def get_game_state(store = Depends(get_game_store)):
	"""Public game state: flags, the live bounty and how many players are left. Never the pin."""
	return await games_helpers.public_game_state(store)


@router.get("/announcements")
async def list_announcements(limit: int = 50, store = Depends(get_game_store)):
	limit = max(1, min(limit, 200))
	return {"announcements": await store.list_announcements(limit)}
