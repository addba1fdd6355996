"""
Target assignment.

One target picker serves every call site:

- STRICT mode (full assignment at game start): among the valid candidates,
  drop anyone already hunting the assassin (mutual pairs are a last resort),
  keep only the candidates with the lowest in-degree and pick one at random.
- TIERED mode (incremental repair, post-purge rebuild, late joiners): after
  the same mutual-pair filter, prefer the inherited target (chain of
  succession), then any candidate nobody hunts yet, then anyone.

In-degrees are always recomputed from the working edge map, never cached.
"""
import logging
import random
from datetime import datetime
from typing import Iterable, Mapping

from models.domain_models import Player, Assignment, ChangeSet, GameOver, Plan, SingleGroupRemaining
from stores.exceptions import InsufficientPlayers, InsufficientGroups
from utils.time import now_utc
from .grouping import GroupingPolicy, groups_of
from .target_graph import in_degrees, is_active, mutual_pairs

logger = logging.getLogger(__name__)

STRICT = "strict"
TIERED = "tiered"


def choose_target(
    assassin_id: str,
    candidates: Iterable[str],
    edges: Mapping[str, str | None],
    *,
    mode: str,
    rng: random.Random,
    inherit: str | None = None,
) -> str | None:
    """Pick a target for `assassin_id` from `candidates`, or None if there are none.

    `candidates` must already exclude the assassin and their own group.
    """
    candidates = list(candidates)
    if not candidates:
        return None

    not_mutual = [c for c in candidates if edges.get(c) != assassin_id]
    pool = not_mutual or candidates
    counts = in_degrees(edges, pool)

    if mode == STRICT:
        lowest = min(counts.values())
        tied = [c for c in pool if counts[c] == lowest]
        rng.shuffle(tied)
        return tied[0]

    if mode == TIERED:
        if inherit is not None and inherit in pool:
            return inherit
        unhunted = [c for c in pool if counts[c] == 0]
        return rng.choice(unhunted or pool)

    raise ValueError(f"Unknown assignment mode: {mode}")


def _candidates_for(assassin: Player, players: list[Player], group_of: GroupingPolicy) -> list[str]:
    own_group = group_of(assassin)
    return [p["id"] for p in players if p["id"] != assassin["id"] and group_of(p) != own_group]


def _assign_in_order(
    order: list[Player],
    players: list[Player],
    group_of: GroupingPolicy,
    *,
    mode: str,
    rng: random.Random,
) -> Assignment:
    edges: dict[str, str] = {}
    targetless = []
    for assassin in order:
        choice = choose_target(
            assassin["id"],
            _candidates_for(assassin, players, group_of),
            edges,
            mode=mode,
            rng=rng,
        )
        if choice is None:
            logger.warning(f"No valid targets for player {assassin['id']} ({assassin.get('name')}); left targetless")
            targetless.append(assassin["id"])
            continue
        edges[assassin["id"]] = choice
    return Assignment(targets=edges, targetless=targetless)


def _chain_edges(edges: dict[str, str], parent: dict[str, tuple[str, str]], source: str, end: str) -> tuple[list[tuple[str, str]], dict[str, str]]:
    """Walk parent links from `end` back to `source`; return the moves and the edge map with them applied."""
    path = []
    step = end
    while step != source:
        mover, previous = parent[step]
        path.append((mover, step))
        step = previous
    trial = dict(edges)
    for assassin_id, target_id in path:
        trial[assassin_id] = target_id
    return path, trial


def _target_along_chain(edges: dict[str, str], parent: dict[str, tuple[str, str]], source: str, current: str, node: str) -> str | None:
    """Target of `node` once the chain ending at `current` has been applied."""
    step = current
    while step != source:
        mover, previous = parent[step]
        if mover == node:
            return step
        step = previous
    return edges.get(node)


def _find_balancing_path(
    edges: dict[str, str],
    counts: dict[str, int],
    group: dict[str, str],
    *,
    allow_mutual: bool = False,
) -> list[tuple[str, str]] | None:
    """Find a chain of re-targetings that moves one unit of in-degree from a
    node with in-degree d to a node with in-degree <= d - 2.

    Unless `allow_mutual` is set, every step is checked against the edge map
    with the earlier steps of the same chain applied, and a chain that would
    raise the number of mutual pairs is skipped in favour of the next one.

    Returns [(assassin_id, new_target_id), ...] or None.
    """
    nodes = sorted(group)
    hunters: dict[str, list[str]] = {node: [] for node in nodes}
    for assassin_id, target_id in sorted(edges.items()):
        hunters[target_id].append(assassin_id)

    baseline = len(mutual_pairs(edges))
    floor = min(counts.values())
    for source in sorted(nodes, key=lambda n: (-counts[n], n)):
        if counts[source] - floor < 2:
            return None
        parent: dict[str, tuple[str, str]] = {}
        visited = {source}
        queue = [source]
        while queue:
            current = queue.pop(0)
            for assassin_id in hunters[current]:
                for node in nodes:
                    if node in visited or node == assassin_id or group[node] == group[assassin_id]:
                        continue
                    if not allow_mutual and _target_along_chain(edges, parent, source, current, node) == assassin_id:
                        continue
                    visited.add(node)
                    parent[node] = (assassin_id, current)
                    if counts[node] <= counts[source] - 2:
                        path, trial = _chain_edges(edges, parent, source, node)
                        if allow_mutual or len(mutual_pairs(trial)) <= baseline:
                            return path
                    queue.append(node)
    return None


def _break_mutual_pairs(edges: dict[str, str], group: dict[str, str]) -> None:
    """Swap targets between two assassins to dissolve mutual pairs.

    A swap keeps every in-degree unchanged and is applied only when it lowers
    the number of mutual pairs.
    """
    while True:
        current = len(mutual_pairs(edges))
        if current == 0:
            return
        swapped = False
        for a, b in mutual_pairs(edges):
            for c, d in sorted(edges.items()):
                if c in (a, b) or d in (a, b):
                    continue
                if group[d] == group[a] or group[b] == group[c]:
                    continue
                trial = dict(edges)
                trial[a], trial[c] = d, b
                if len(mutual_pairs(trial)) < current:
                    edges.update(trial)
                    swapped = True
                    break
            if swapped:
                break
        if not swapped:
            return


def _rebalance(edges: dict[str, str], players: list[Player], group_of: GroupingPolicy) -> None:
    """Flatten the in-degree distribution in place.

    Each applied chain lowers the sum of squared in-degrees, so this always
    terminates. Chains that keep the mutual-pair count are preferred; a chain
    that adds one is taken only when no other chain can balance further, and
    the mutual pairs left at the end are broken up by in-degree neutral swaps.
    """
    group = {p["id"]: group_of(p) for p in players}
    while True:
        counts = in_degrees(edges, group)
        path = (
            _find_balancing_path(edges, counts, group)
            or _find_balancing_path(edges, counts, group, allow_mutual=True)
        )
        if path is None:
            break
        for assassin_id, target_id in path:
            edges[assassin_id] = target_id
    _break_mutual_pairs(edges, group)


def assign_all(players: list[Player], group_of: GroupingPolicy, rng: random.Random | None = None) -> Assignment:
    """Compute a full, balanced target assignment for every player.

    Raises:
        InsufficientPlayers: fewer than two players.
        InsufficientGroups: all players share one group.
    """
    rng = rng or random.Random()
    players = list(players)
    if len(players) < 2:
        raise InsufficientPlayers(f"At least 2 players are needed to assign targets, found {len(players)}")
    groups = groups_of(players, group_of)
    if len(groups) < 2:
        only = next(iter(groups), None)
        raise InsufficientGroups(f"All {len(players)} players are in group '{only}'; at least 2 groups are needed")

    order = list(players)
    rng.shuffle(order)
    assignment = _assign_in_order(order, players, group_of, mode=STRICT, rng=rng)
    _rebalance(assignment.targets, players, group_of)
    logger.info(f"Assigned targets for {len(assignment.targets)} players across {len(groups)} groups")
    return assignment


def assignment_changes(assignment: Assignment, now: datetime) -> ChangeSet:
    changes = ChangeSet()
    for player_id, target_id in assignment.targets.items():
        changes.update_player(player_id, target_id=target_id, assigned_at=now)
    for player_id in assignment.targetless:
        changes.update_player(player_id, target_id=None, assigned_at=None)
    return changes


def winner_changes(winner_id: str, now: datetime) -> ChangeSet:
    changes = ChangeSet()
    changes.update_player(winner_id, target_id=None, assigned_at=None, is_winner=True)
    changes.game_state.update(winner_id=winner_id, game_over_at=now)
    return changes


def reassign_all_after_purge(
    players: list[Player],
    group_of: GroupingPolicy,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> Plan:
    """Rebuild every edge once purge mode is switched off.

    Groups are processed one after another (group order sorted, members
    shuffled inside each group) with the tiered picker. Terminal conditions
    are reported instead of raised.
    """
    rng = rng or random.Random()
    now = now or now_utc()
    active = [p for p in players if is_active(p)]

    if len(active) == 1:
        winner_id = active[0]["id"]
        logger.info(f"Purge ended with a single survivor: {winner_id}")
        return Plan(GameOver(winner_id), winner_changes(winner_id, now))

    groups = groups_of(active, group_of)
    if len(groups) == 1:
        group = next(iter(groups))
        changes = ChangeSet()
        for p in active:
            changes.update_player(p["id"], target_id=None, assigned_at=None)
        logger.info(f"Purge ended with only group '{group}' alive; targets cleared")
        return Plan(SingleGroupRemaining(group, sorted(p["id"] for p in active)), changes)

    order = []
    for group in sorted(groups):
        members = list(groups[group])
        rng.shuffle(members)
        order.extend(members)

    assignment = _assign_in_order(order, active, group_of, mode=TIERED, rng=rng)
    return Plan(assignment, assignment_changes(assignment, now))


def attach_player(
    player: Player,
    players: list[Player],
    group_of: GroupingPolicy,
    rng: random.Random | None = None,
) -> str | None:
    """Target for a single player entering a running game (late join, revive)."""
    rng = rng or random.Random()
    others = [p for p in players if is_active(p) and p["id"] != player["id"]]
    edges = {p["id"]: p.get("target_id") for p in others}
    return choose_target(
        player["id"],
        _candidates_for(player, others, group_of),
        edges,
        mode=TIERED,
        rng=rng,
    )
