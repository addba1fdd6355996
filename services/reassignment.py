"""
Incremental repair of the target graph after a single player leaves it.

The victim is taken out of the graph and each of their assassins is routed to
a new target with the tiered picker from `services.assignment`. Nothing here
touches the store: the caller commits `Plan.changes` as one batch.
"""
import logging
import random
from datetime import datetime

from models.domain_models import Player, ChangeSet, GameOver, Plan, Repaired, SingleGroupRemaining
from utils.time import now_utc
from .assignment import TIERED, choose_target, winner_changes
from .grouping import GroupingPolicy, groups_of
from .target_graph import assassins_of, edges_of, is_active

logger = logging.getLogger(__name__)


def on_eliminated(
    victim: Player,
    players: list[Player],
    group_of: GroupingPolicy,
    *,
    purge_mode: bool = False,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> Plan:
    """Take `victim` out of the graph and repair every edge that pointed at them.

    `players` is the current snapshot (the victim may or may not be in it).
    Returns a Plan whose outcome is Repaired, GameOver or SingleGroupRemaining.
    """
    rng = rng or random.Random()
    now = now or now_utc()
    victim_id = victim["id"]

    edges = edges_of(players)
    assassins = [a for a in assassins_of(edges, victim_id) if a != victim_id]

    changes = ChangeSet()
    changes.update_player(victim_id, alive=False, target_id=None, assigned_at=None)

    if purge_mode:
        # free-for-all: edges are left as they are
        return Plan(Repaired(), changes)

    remaining = [p for p in players if is_active(p) and p["id"] != victim_id]

    if len(remaining) == 1:
        winner_id = remaining[0]["id"]
        logger.info(f"Player {victim_id} eliminated; {winner_id} is the last player standing")
        return Plan(GameOver(winner_id), changes.merge(winner_changes(winner_id, now)))

    if not remaining:
        logger.warning(f"Player {victim_id} eliminated with no active players left")
        return Plan(Repaired(), changes)

    groups = groups_of(remaining, group_of)
    if len(groups) == 1:
        group = next(iter(groups))
        for p in remaining:
            changes.update_player(p["id"], target_id=None, assigned_at=None)
        logger.info(f"Player {victim_id} eliminated; only group '{group}' remains, {len(remaining)} targets cleared")
        return Plan(SingleGroupRemaining(group, sorted(p["id"] for p in remaining)), changes)

    by_id = {p["id"]: p for p in remaining}
    edges.pop(victim_id, None)
    inherited = victim.get("target_id")
    outcome = Repaired()

    for assassin_id in assassins:
        assassin = by_id[assassin_id]
        own_group = group_of(assassin)
        candidates = [p["id"] for p in remaining if p["id"] != assassin_id and group_of(p) != own_group]
        choice = choose_target(assassin_id, candidates, edges, mode=TIERED, rng=rng, inherit=inherited)
        if choice is None:
            logger.warning(f"No valid targets for player {assassin_id} after {victim_id} was eliminated")
            edges[assassin_id] = None
            changes.update_player(assassin_id, target_id=None, assigned_at=None)
            outcome.targetless.append(assassin_id)
            continue
        edges[assassin_id] = choice
        changes.update_player(assassin_id, target_id=choice, assigned_at=now)
        outcome.reassigned[assassin_id] = choice

    return Plan(outcome, changes)
