"""
Proof review workflow.

`verify_proof` decides everything from one snapshot: killer and victim
counters, badge awards, the graph repair and the proof transition. The whole
decision is committed as one change set guarded by the snapshot version, the
victim's `alive` flag and the proof's pending status, so two admins
verifying kills of the same victim cannot both succeed. The elimination
announcement goes out after the commit and never affects it.
"""
import logging
import random
from dataclasses import replace
from datetime import datetime
from typing import Any, Optional

from models.domain_models import (
    Bounty,
    ChangeSet,
    GameOver,
    Proof,
    Snapshot,
    outcome_to_dict,
    verify_status,
    reject_status,
)
from stores import GameStore, PlayerNotFound, GameNotStarted, InvalidProofState, VictimAlreadyEliminated
from utils.time import now_utc
from .announcements import AnnouncementSink, elimination_event, safe_publish
from .badges import context_for, eligible_badges
from .grouping import GroupingPolicy, by_class
from .naming import name_key, resolve_by_name
from .reassignment import on_eliminated
from .snapshot import commit_with_retry
from .target_graph import is_active

logger = logging.getLogger(__name__)


def bounty_is_live(bounty: Bounty, now: datetime) -> bool:
    if not bounty.get("active") or not bounty.get("target_name"):
        return False
    expires_at = bounty.get("expires_at")
    return expires_at is None or expires_at > now


def decide_verification(
    snapshot: Snapshot,
    proof: Proof,
    *,
    admin_notes: str,
    reviewer: str,
    group_of: GroupingPolicy,
    rng: random.Random,
    now: datetime,
) -> tuple[dict[str, Any], ChangeSet]:
    """Pure decision for verifying `proof` against `snapshot`.

    Raises a GameRuleError before anything is written if the proof cannot be verified.
    """
    review = verify_status(proof.review, reviewer=reviewer, at=now, notes=admin_notes)
    state = snapshot.state
    if not state.get("started"):
        raise GameNotStarted("The game has not started; kills cannot be verified")

    killer = snapshot.player(proof.submitter_id)
    if killer is None:
        raise PlayerNotFound(f"Submitter {proof.submitter_id} of proof {proof.id} not found")
    victim = resolve_by_name(snapshot.players, proof.target_name)
    if not victim.get("alive"):
        raise VictimAlreadyEliminated(f"{victim['name']} has already been eliminated")
    if victim["id"] == killer["id"]:
        raise InvalidProofState(f"Proof {proof.id} names its own submitter as the victim")

    purge_kill = bool(state.get("purge_mode"))
    bounty_kill = bounty_is_live(snapshot.bounty, now) and name_key(snapshot.bounty["target_name"]) == name_key(victim["name"])
    if not purge_kill and killer.get("target_id") != victim["id"]:
        logger.warning(f"{killer['name']} eliminated {victim['name']}, who was not their assigned target")

    changes = ChangeSet(require_alive={victim["id"]})
    changes.proofs[proof.id] = review
    changes.update_player(
        killer["id"],
        kill_count=killer.get("kill_count", 0) + 1,
        streak_count=killer.get("streak_count", 0) + 1,
        bounty_kill_count=killer.get("bounty_kill_count", 0) + int(bounty_kill),
        purge_kill_count=killer.get("purge_kill_count", 0) + int(purge_kill),
        last_kill_at=now,
    )
    changes.update_player(
        victim["id"],
        alive=False,
        target_id=None,
        assigned_at=None,
        eliminated_by=killer["id"],
        eliminated_at=now,
        death_location=proof.location,
    )
    if bounty_kill:
        changes.bounty.update(active=False, removed_at=now)

    outcome = None
    if not purge_kill:
        plan = on_eliminated(victim, snapshot.players, group_of, purge_mode=False, rng=rng, now=now)
        changes.merge(plan.changes)
        outcome = plan.outcome

    # badges are evaluated on the post-decision state, held in memory
    after = [{**p, **changes.players.get(p["id"], {})} for p in snapshot.players]
    winner_id = outcome.winner_id if isinstance(outcome, GameOver) else state.get("winner_id")
    context = context_for(after, group_of=group_of, winner_id=winner_id, now=now)
    new_badges: dict[str, list[str]] = {}
    for player in after:
        if not is_active(player):
            continue
        earned = eligible_badges(player, context)
        if earned:
            new_badges[player["id"]] = earned
            changes.update_player(player["id"], badges=[*(player.get("badges") or []), *earned])

    killer_after = next(p for p in after if p["id"] == killer["id"])
    victim_after = next(p for p in after if p["id"] == victim["id"])
    proof.review = review
    result = {
        "proof": proof.to_dict(),
        "killer_id": killer["id"],
        "victim_id": victim["id"],
        "bounty_kill": bounty_kill,
        "purge_kill": purge_kill,
        "outcome": outcome_to_dict(outcome) if outcome is not None else None,
        "badges": new_badges,
        "event": elimination_event(
            killer_after,
            victim_after,
            proof_id=proof.id,
            location=proof.location,
            bounty_kill=bounty_kill,
            purge_kill=purge_kill,
            new_badges=new_badges,
            outcome=outcome,
        ),
    }
    return result, changes


async def verify_proof(
    store: GameStore,
    proof_id: str,
    admin_notes: str = "",
    *,
    reviewer: str = "admin",
    announcer: Optional[AnnouncementSink] = None,
    group_of: GroupingPolicy = by_class,
    rng: Optional[random.Random] = None,
) -> dict[str, Any]:
    """Verify a pending proof and apply the elimination.

    Raises:
        ProofNotFound, InvalidProofState, VictimNotFound, AmbiguousPlayerName,
        VictimAlreadyEliminated, GameNotStarted, VersionConflict.
    """
    rng = rng or random.Random()
    proof = await store.get_proof(proof_id)

    def decide(snapshot: Snapshot):
        return decide_verification(
            snapshot,
            replace(proof),
            admin_notes=admin_notes,
            reviewer=reviewer,
            group_of=group_of,
            rng=rng,
            now=now_utc(),
        )

    result = await commit_with_retry(store, decide, label=f"verify proof {proof_id}")
    event = result.pop("event")
    logger.info(f"Proof {proof_id} verified: {event['message']}")

    if announcer is not None:
        safe_publish(announcer, event)
    return result


async def reject_proof(
    store: GameStore,
    proof_id: str,
    admin_notes: str = "",
    *,
    reviewer: str = "admin",
) -> dict[str, Any]:
    """Reject a pending proof. Nothing but the proof changes.

    Raises:
        ProofNotFound: unknown proof.
        InvalidProofState: the proof was already verified or rejected.
    """
    proof = await store.get_proof(proof_id)
    proof.review = reject_status(proof.review, reviewer=reviewer, at=now_utc(), notes=admin_notes)
    await store.commit(ChangeSet(proofs={proof.id: proof.review}))
    logger.info(f"Proof {proof_id} rejected by {reviewer}")
    return {"proof": proof.to_dict()}
