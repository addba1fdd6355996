from fastapi import APIRouter, HTTPException, Depends
import logging

from models import CreatePlayerRequest, JoinGameRequest, SubmitProofRequest
from stores import get_game_store
from utils.validation import is_valid_name
from . import games_helpers

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/players")


@router.post("", status_code=201)
async def create_player(req: CreatePlayerRequest, store = Depends(get_game_store)):
	if not is_valid_name(req.name):
		raise HTTPException(status_code=400, detail="Invalid name. (Use only letters, numbers, spaces, and .'-`’· characters.)")
	if not is_valid_name(req.class_name):
		raise HTTPException(status_code=400, detail="Invalid class name.")
	player = await games_helpers.create_player(
		store,
		name=req.name,
		class_name=req.class_name,
		email=req.email,
		player_id=req.player_id,
	)
	return games_helpers.public_player(player)


@router.get("")
async def list_players(store = Depends(get_game_store)):
	"""Leaderboard view: everyone in the game, most kills first."""
	players = [p for p in await store.list_players() if p.get("in_game")]
	players.sort(key=lambda p: (-p.get("kill_count", 0), p.get("name", "").casefold()))
	return {"players": [games_helpers.public_player(p) for p in players]}


@router.get("/{player_id}")
async def get_player(player_id: str, store = Depends(get_game_store)):
	return games_helpers.public_player(await store.get_player(player_id))


@router.post("/{player_id}/join")
async def join_game(player_id: str, req: JoinGameRequest, store = Depends(get_game_store)):
	return await games_helpers.join_game(store, player_id, req.pin)


@router.get("/{player_id}/target")
async def my_target(player_id: str, store = Depends(get_game_store)):
	return await games_helpers.my_target(store, player_id)


@router.post("/{player_id}/proofs", status_code=201)
async def submit_proof(player_id: str, req: SubmitProofRequest, store = Depends(get_game_store)):
	return await games_helpers.submit_proof(
		store,
		player_id,
		req.target_name,
		media_url=req.media_url,
		location=req.location,
	)
