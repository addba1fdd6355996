from fastapi import APIRouter, Depends, Header
import bcrypt
import logging

import config
from models import (
	PlayerNameRequest,
	ReviewProofRequest,
	SetBountyRequest,
	SetGamePinRequest,
	ErrorResponse,
)
from services.announcements import AnnouncementSink, CeleryAnnouncementSink
from services.verification import verify_proof as verify_proof_workflow, reject_proof as reject_proof_workflow
from stores import get_game_store
from .errors import AdminAuthError
from . import games_helpers

logger = logging.getLogger(__name__)


def require_admin(x_admin_password: str | None = Header(default=None)) -> None:
	"""Gate for every admin route: the `X-Admin-Password` header must match the configured bcrypt hash."""
	if not x_admin_password or not bcrypt.checkpw(x_admin_password.encode(), config.ADMIN_PASSWORD_HASH):
		raise AdminAuthError("Admin password required")


def get_announcer() -> AnnouncementSink:
	return CeleryAnnouncementSink()


router = APIRouter(
	prefix="/api/admin",
	dependencies=[Depends(require_admin)],
	responses={401: {"model": ErrorResponse}},
)


# --- Game lifecycle ---

@router.post("/start")
async def start_game(store = Depends(get_game_store)):
	return await games_helpers.start_game(store)


@router.post("/end")
async def end_game(store = Depends(get_game_store)):
	return await games_helpers.end_game(store)


@router.post("/purge/toggle")
async def toggle_purge_mode(store = Depends(get_game_store)):
	return await games_helpers.toggle_purge_mode(store)


@router.post("/pin")
async def set_game_pin(req: SetGamePinRequest, store = Depends(get_game_store)):
	return await games_helpers.set_game_pin(store, req.pin)


@router.get("/state")
async def get_full_state(store = Depends(get_game_store)):
	snapshot = await store.snapshot()
	return {"state": snapshot.state, "bounty": snapshot.bounty}


# --- Players ---

@router.get("/players")
async def list_players(store = Depends(get_game_store)):
	return {"players": await store.list_players()}


@router.post("/players/remove")
async def remove_player(req: PlayerNameRequest, store = Depends(get_game_store)):
	return await games_helpers.remove_player(store, req.name)


@router.post("/players/revive")
async def revive_player(req: PlayerNameRequest, store = Depends(get_game_store)):
	return await games_helpers.revive_player(store, req.name)


@router.get("/assassins")
async def assassins_for(name: str, store = Depends(get_game_store)):
	return await games_helpers.assassins_for(store, name)


@router.get("/targeting")
async def targeting_relationships(store = Depends(get_game_store)):
	return await games_helpers.targeting_relationships(store)


@router.post("/class-domination")
async def check_class_domination(store = Depends(get_game_store)):
	return await games_helpers.check_class_domination(store)


# --- Bounty ---

@router.post("/bounty")
async def set_bounty(req: SetBountyRequest, store = Depends(get_game_store)):
	return await games_helpers.set_bounty(store, req.name, req.prize, req.description)


@router.delete("/bounty")
async def remove_bounty(store = Depends(get_game_store)):
	return await games_helpers.remove_bounty(store)


# --- Proofs ---

@router.get("/proofs")
async def list_proofs(status: str | None = None, store = Depends(get_game_store)):
	return {"proofs": [proof.to_dict() for proof in await store.list_proofs(status)]}


@router.post("/proofs/{proof_id}/verify")
async def verify_proof(proof_id: str, req: ReviewProofRequest, store = Depends(get_game_store), announcer = Depends(get_announcer)):
	return await verify_proof_workflow(store, proof_id, req.admin_notes, announcer=announcer)


@router.post("/proofs/{proof_id}/reject")
async def reject_proof(proof_id: str, req: ReviewProofRequest, store = Depends(get_game_store)):
	return await reject_proof_workflow(store, proof_id, req.admin_notes)


@router.delete("/proofs/pending")
async def clear_pending_proofs(store = Depends(get_game_store)):
	return await games_helpers.clear_pending_proofs(store)
