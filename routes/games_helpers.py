"""
Game business logic helpers.

These functions encapsulate game operations and can be called from:
- HTTP routes (routes/admin.py, routes/players.py, routes/games.py)
- Celery tasks (workers/tasks.py)

They operate on domain objects and store instances, not HTTP requests.
Every mutating helper decides from one snapshot and commits one change set
through `commit_with_retry`, so a lost race is recomputed, never half-applied.
"""

from typing import Any, Dict, Optional
from datetime import timedelta
import random
import uuid

import regex as re

import config
from models.domain_models import ChangeSet, Proof, Player, Snapshot, outcome_to_dict
from services.assignment import assign_all, assignment_changes, attach_player, reassign_all_after_purge
from services.grouping import GroupingPolicy, by_class, groups_of
from services.naming import resolve_by_name
from services.reassignment import on_eliminated
from services.snapshot import commit_with_retry
from services.target_graph import assassins_of, edges_of, is_active, targeting_relationships as graph_relationships, violations
from services.verification import bounty_is_live
from stores import (
    GameStore,
    GameAlreadyStarted,
    GameNotStarted,
    InvalidBounty,
    InvalidGamePin,
    PlayerNotFound,
    PlayerNotInGame,
)
from utils.time import now_utc, to_iso
import logging

logger = logging.getLogger(__name__)

GAME_PIN_RE = re.compile(r"^\d{4,6}$")

PUBLIC_PLAYER_FIELDS = ("id", "name", "class_name", "alive", "in_game", "kill_count", "badges", "is_winner")


def public_player(player: Player) -> Dict[str, Any]:
    """Fields any player may see about another. Never includes targets."""
    return {key: player.get(key) for key in PUBLIC_PLAYER_FIELDS}


# -------------------------------------------------
# Game lifecycle
# -------------------------------------------------

async def start_game(
    store: GameStore,
    *,
    group_of: GroupingPolicy = by_class,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """
    Assign every alive, in-game player a target and mark the game started.

    Raises:
        GameAlreadyStarted: if the game is already running
        InsufficientPlayers: fewer than two players have joined
        InsufficientGroups: every joined player is in the same group
    """
    rng = rng or random.Random()

    def decide(snapshot: Snapshot):
        if snapshot.state.get("started"):
            raise GameAlreadyStarted("The game is already running; end it before starting a new one")
        now = now_utc()
        active = [p for p in snapshot.players if is_active(p)]
        assignment = assign_all(active, group_of, rng)
        changes = assignment_changes(assignment, now)
        changes.game_state.update(
            started=True,
            ended=False,
            purge_mode=False,
            started_at=now,
            ended_at=None,
            winner_id=None,
            game_over_at=None,
            class_domination=None,
        )
        return {"started": True, "players": len(active), "outcome": outcome_to_dict(assignment)}, changes

    result = await commit_with_retry(store, decide, label="start game")
    logger.info(f"Game started with {result['players']} players; {len(result['outcome']['targetless'])} targetless")
    return result


async def end_game(store: GameStore) -> Dict[str, Any]:
    """
    Reset every player, the bounty, proofs and announcements, and the game state.
    Badges survive across games.
    """
    version = await store.reset_game(now_utc())
    logger.info("Game ended and reset")
    return {"ended": True, "version": version}


async def toggle_purge_mode(
    store: GameStore,
    *,
    group_of: GroupingPolicy = by_class,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """
    Flip purge mode. Switching it off rebuilds every target edge.

    Raises:
        GameNotStarted: if the game is not running
    """
    rng = rng or random.Random()

    def decide(snapshot: Snapshot):
        if not snapshot.state.get("started"):
            raise GameNotStarted("Purge mode can only be toggled while the game is running")
        purge_mode = not snapshot.state.get("purge_mode")
        changes = ChangeSet(game_state={"purge_mode": purge_mode})
        outcome = None
        if not purge_mode:
            plan = reassign_all_after_purge(snapshot.players, group_of, rng=rng, now=now_utc())
            changes.merge(plan.changes)
            outcome = outcome_to_dict(plan.outcome)
        return {"purge_mode": purge_mode, "outcome": outcome}, changes

    result = await commit_with_retry(store, decide, label="toggle purge mode")
    logger.info(f"Purge mode {'activated' if result['purge_mode'] else 'deactivated'}")
    return result


# -------------------------------------------------
# Player management (admin)
# -------------------------------------------------

async def remove_player(
    store: GameStore,
    name: str,
    *,
    removed_by: str = "admin",
    group_of: GroupingPolicy = by_class,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """
    Take a player out of the game and repair every edge that pointed at them.

    Raises:
        VictimNotFound: nobody in the game has this name
        AmbiguousPlayerName: several players in the game have this name
    """
    rng = rng or random.Random()

    def decide(snapshot: Snapshot):
        in_game = [p for p in snapshot.players if p.get("in_game")]
        player = resolve_by_name(in_game, name)
        now = now_utc()
        state = snapshot.state
        changes = ChangeSet()
        outcome = None
        if player.get("alive") and state.get("started"):
            plan = on_eliminated(player, snapshot.players, group_of, purge_mode=bool(state.get("purge_mode")), rng=rng, now=now)
            changes.merge(plan.changes)
            outcome = outcome_to_dict(plan.outcome)
        changes.update_player(
            player["id"],
            in_game=False,
            alive=False,
            target_id=None,
            assigned_at=None,
            removed_at=now,
            removed_by=removed_by,
        )
        return {"player_id": player["id"], "name": player["name"], "outcome": outcome}, changes

    result = await commit_with_retry(store, decide, label=f"remove player {name}")
    logger.info(f"Player {result['player_id']} ({result['name']}) removed by {removed_by}")
    return result


async def revive_player(
    store: GameStore,
    name: str,
    *,
    group_of: GroupingPolicy = by_class,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """
    Bring a removed player back into the game. While the game runs outside
    purge mode they get a target straight away.

    Raises:
        VictimNotFound: no removed player has this name
        AmbiguousPlayerName: several removed players have this name
    """
    rng = rng or random.Random()

    def decide(snapshot: Snapshot):
        removed = [p for p in snapshot.players if not p.get("in_game") and not p.get("alive")]
        player = resolve_by_name(removed, name)
        now = now_utc()
        revived = {**player, "alive": True, "in_game": True}
        target_id = None
        state = snapshot.state
        if state.get("started") and not state.get("purge_mode"):
            target_id = attach_player(revived, snapshot.players, group_of, rng)
        changes = ChangeSet()
        changes.update_player(
            player["id"],
            alive=True,
            in_game=True,
            target_id=target_id,
            assigned_at=now if target_id else None,
            removed_at=None,
            removed_by=None,
            eliminated_by=None,
            eliminated_at=None,
            death_location=None,
        )
        return {"player_id": player["id"], "name": player["name"], "target_id": target_id}, changes

    result = await commit_with_retry(store, decide, label=f"revive player {name}")
    logger.info(f"Player {result['player_id']} ({result['name']}) revived")
    return result


async def create_player(
    store: GameStore,
    *,
    name: str,
    class_name: str,
    email: Optional[str] = None,
    player_id: Optional[str] = None,
) -> Player:
    """
    Register a player. Name validation is the caller's job.

    Raises:
        PlayerAlreadyExists: if the id or email is taken
    """
    return await store.create_player(player_id or uuid.uuid4().hex, name=name, class_name=class_name, email=email)


async def join_game(
    store: GameStore,
    player_id: str,
    pin: str,
    *,
    group_of: GroupingPolicy = by_class,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """
    Enter the game with the admin-issued pin. Joining a running game outside
    purge mode assigns a target immediately.

    Raises:
        InvalidGamePin: pin is malformed, unset, or wrong
        PlayerNotFound: unknown player
        PlayerNotInGame: the player was removed by an admin
    """
    rng = rng or random.Random()
    pin = (pin or "").strip()
    if not GAME_PIN_RE.match(pin):
        raise InvalidGamePin("Game pin must be 4 to 6 digits")

    def decide(snapshot: Snapshot):
        state = snapshot.state
        if not state.get("pin") or state["pin"] != pin:
            raise InvalidGamePin("Incorrect game pin")
        player = snapshot.player(player_id)
        if player is None:
            raise PlayerNotFound(f"Player {player_id} not found")
        if player.get("in_game"):
            return {"player_id": player_id, "joined": False, "target_id": player.get("target_id")}, ChangeSet()
        if player.get("removed_at"):
            raise PlayerNotInGame(f"{player['name']} was removed from the game by an admin")

        now = now_utc()
        joined = {**player, "alive": True, "in_game": True}
        target_id = None
        if state.get("started") and not state.get("purge_mode"):
            target_id = attach_player(joined, snapshot.players, group_of, rng)
        changes = ChangeSet()
        changes.update_player(
            player_id,
            alive=True,
            in_game=True,
            joined_at=now,
            target_id=target_id,
            assigned_at=now if target_id else None,
        )
        return {"player_id": player_id, "joined": True, "target_id": target_id}, changes

    result = await commit_with_retry(store, decide, label=f"join game {player_id}")
    if result["joined"]:
        logger.info(f"Player {player_id} joined the game")
    return result


# -------------------------------------------------
# Game pin
# -------------------------------------------------

def generate_pin(rng: Optional[random.Random] = None) -> str:
    """A random 4-digit pin."""
    return str((rng or random.Random()).randint(1000, 9999))


async def set_game_pin(store: GameStore, pin: Optional[str] = None) -> Dict[str, Any]:
    """
    Set (or generate, when `pin` is None) the pin players use to join.

    Raises:
        InvalidGamePin: pin is not 4 to 6 digits
    """
    pin = generate_pin() if pin is None else pin.strip()
    if not GAME_PIN_RE.match(pin):
        raise InvalidGamePin("Game pin must be 4 to 6 digits")
    await store.set_game_state({"pin": pin, "pin_updated_at": now_utc()})
    logger.info("Game pin updated")
    return {"pin": pin}


# -------------------------------------------------
# Bounty
# -------------------------------------------------

async def set_bounty(store: GameStore, name: str, prize: str, description: str = "") -> Dict[str, Any]:
    """
    Put a bounty on one alive, in-game player for `config.BOUNTY_DURATION_SECONDS`.

    Raises:
        InvalidBounty: prize missing
        VictimNotFound: no alive player in the game has this name
        AmbiguousPlayerName: several alive players in the game have this name
    """
    if not (prize or "").strip():
        raise InvalidBounty("A bounty needs a prize")

    def decide(snapshot: Snapshot):
        target = resolve_by_name([p for p in snapshot.players if is_active(p)], name)
        now = now_utc()
        expires_at = now + timedelta(seconds=config.BOUNTY_DURATION_SECONDS)
        changes = ChangeSet(bounty={
            "active": True,
            "target_name": target["name"],
            "prize": prize.strip(),
            "description": (description or "").strip(),
            "created_at": now,
            "expires_at": expires_at,
            "removed_at": None,
        })
        return {"target_id": target["id"], "target_name": target["name"], "expires_at": expires_at}, changes

    result = await commit_with_retry(store, decide, label="set bounty")
    logger.info(f"Bounty set on {result['target_name']} until {to_iso(result['expires_at'])}")
    return result


async def remove_bounty(store: GameStore) -> Dict[str, Any]:
    """
    Raises:
        InvalidBounty: there is no active bounty
    """
    def decide(snapshot: Snapshot):
        if not snapshot.bounty.get("active"):
            raise InvalidBounty("There is no active bounty to remove")
        return {"removed": snapshot.bounty.get("target_name")}, ChangeSet(bounty={"active": False, "removed_at": now_utc()})

    result = await commit_with_retry(store, decide, label="remove bounty")
    logger.info(f"Bounty on {result['removed']} removed")
    return result


async def expire_bounty(store: GameStore) -> bool:
    """Deactivate the bounty if its time is up. Returns True if it was expired now."""
    def decide(snapshot: Snapshot):
        bounty = snapshot.bounty
        now = now_utc()
        if not bounty.get("active") or bounty_is_live(bounty, now):
            return False, ChangeSet()
        return True, ChangeSet(bounty={"active": False, "removed_at": now})

    expired = await commit_with_retry(store, decide, label="expire bounty")
    if expired:
        logger.info("Bounty expired")
    return expired


# -------------------------------------------------
# Proofs
# -------------------------------------------------

async def submit_proof(
    store: GameStore,
    player_id: str,
    target_name: str,
    *,
    media_url: Optional[str] = None,
    location: Optional[str] = None,
) -> Dict[str, Any]:
    """
    File a pending elimination claim. The media URL is stored as given.

    Raises:
        PlayerNotFound: unknown submitter
        GameNotStarted: the game is not running
        PlayerNotInGame: the submitter is not an alive player in the game
    """
    player = await store.get_player(player_id)
    state = await store.get_game_state()
    if not state.get("started"):
        raise GameNotStarted("Kills can only be reported while the game is running")
    if not is_active(player):
        raise PlayerNotInGame(f"{player['name']} is not an alive player in the game")

    proof = Proof(
        id=uuid.uuid4().hex,
        submitter_id=player_id,
        submitter_name=player["name"],
        target_name=target_name.strip(),
        media_url=media_url,
        location=location,
        submitted_at=now_utc(),
    )
    await store.create_proof(proof)
    logger.info(f"Proof {proof.id} submitted by {player_id} against '{proof.target_name}'")
    return proof.to_dict()


async def clear_pending_proofs(store: GameStore) -> Dict[str, Any]:
    return {"cleared": await store.delete_pending_proofs()}


# -------------------------------------------------
# Checks and views
# -------------------------------------------------

async def check_class_domination(store: GameStore, *, group_of: GroupingPolicy = by_class) -> Dict[str, Any]:
    """
    Record whether every alive, in-game player belongs to one group.
    Independent of target repair; only ever triggered by an admin.
    """
    def decide(snapshot: Snapshot):
        groups = groups_of([p for p in snapshot.players if is_active(p)], group_of)
        if len(groups) == 1:
            group, members = next(iter(groups.items()))
            domination = {"group": group, "player_count": len(members), "at": to_iso(now_utc())}
            return {"has_winning_group": True, **domination}, ChangeSet(game_state={"class_domination": domination})
        message = "No alive players" if not groups else f"{len(groups)} groups still alive"
        return {"has_winning_group": False, "message": message}, ChangeSet(game_state={"class_domination": None})

    result = await commit_with_retry(store, decide, label="check class domination")
    logger.info(f"Class domination check: {result}")
    return result


async def assassins_for(store: GameStore, name: str, *, group_of: GroupingPolicy = by_class) -> Dict[str, Any]:
    """Who is currently hunting the player called `name`."""
    players = await store.list_players()
    target = resolve_by_name(players, name)
    by_id = {p["id"]: p for p in players}
    hunters = assassins_of(edges_of(players), target["id"])
    return {
        "target": public_player(target),
        "assassins": [{**public_player(by_id[a]), "group": group_of(by_id[a])} for a in hunters],
    }


async def targeting_relationships(store: GameStore, *, group_of: GroupingPolicy = by_class) -> Dict[str, Any]:
    players = await store.list_players()
    return {
        "relationships": graph_relationships(players, group_of),
        "violations": violations(players, group_of),
    }


async def my_target(store: GameStore, player_id: str) -> Dict[str, Any]:
    """The calling player's current target, if any."""
    player = await store.get_player(player_id)
    if not is_active(player) or not player.get("target_id"):
        return {"target": None}
    target = await store.get_player(player["target_id"])
    return {
        "target": {"id": target["id"], "name": target["name"], "class_name": target["class_name"]},
        "assigned_at": player.get("assigned_at"),
    }


async def public_game_state(store: GameStore) -> Dict[str, Any]:
    snapshot = await store.snapshot()
    state = {k: v for k, v in snapshot.state.items() if k != "pin"}
    bounty = snapshot.bounty
    live = bounty_is_live(bounty, now_utc())
    return {
        "state": state,
        "bounty": {key: bounty.get(key) for key in ("target_name", "prize", "description", "expires_at")} if live else None,
        "alive_players": sum(1 for p in snapshot.players if is_active(p)),
    }
