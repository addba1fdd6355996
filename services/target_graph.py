"""Read-only views over the assassination graph.

The graph is never cached: in-degrees and assassin lists are recomputed from
the `target_id` edges of whatever player list is passed in, so a partially
applied batch can never leave a stale counter behind.
"""
from typing import Any, Iterable, Mapping

from models.domain_models import Player
from .grouping import GroupingPolicy


def is_active(player: Player) -> bool:
    return bool(player.get("alive")) and bool(player.get("in_game"))


def edges_of(players: Iterable[Player]) -> dict[str, str | None]:
    """Map player id -> target id for active players."""
    return {p["id"]: p.get("target_id") for p in players if is_active(p)}


def in_degrees(edges: Mapping[str, str | None], nodes: Iterable[str] | None = None) -> dict[str, int]:
    """Count assassins per target. `nodes` seeds zero counts for untargeted players."""
    counts = {node: 0 for node in (nodes if nodes is not None else edges)}
    for target_id in edges.values():
        if target_id is not None and target_id in counts:
            counts[target_id] += 1
    return counts


def assassins_of(edges: Mapping[str, str | None], target_id: str) -> list[str]:
    """Ids of everyone currently hunting `target_id`, in stable id order."""
    return sorted(a for a, t in edges.items() if t == target_id)


def mutual_pairs(edges: Mapping[str, str | None]) -> list[tuple[str, str]]:
    """Every unordered pair that targets each other."""
    pairs = []
    for a, b in edges.items():
        if b is not None and a < b and edges.get(b) == a:
            pairs.append((a, b))
    return pairs


def in_degree_spread(edges: Mapping[str, str | None], nodes: Iterable[str] | None = None) -> int:
    counts = in_degrees(edges, nodes)
    if not counts:
        return 0
    return max(counts.values()) - min(counts.values())


def violations(players: Iterable[Player], group_of: GroupingPolicy) -> list[str]:
    """Describe every edge that breaks the targeting invariants.

    Used by admin diagnostics and tests; an empty list means every active
    player targets an active player from another group.
    """
    players = list(players)
    by_id = {p["id"]: p for p in players}
    problems = []
    for player in players:
        if not is_active(player) or player.get("target_id") is None:
            continue
        target = by_id.get(player["target_id"])
        if target is None or not is_active(target):
            problems.append(f"{player['id']} targets inactive player {player['target_id']}")
        elif target["id"] == player["id"]:
            problems.append(f"{player['id']} targets themselves")
        elif group_of(target) == group_of(player):
            problems.append(f"{player['id']} targets {target['id']} in their own group")
    return problems


def targeting_relationships(players: Iterable[Player], group_of: GroupingPolicy) -> list[dict[str, Any]]:
    """Flat list of active edges for the admin view."""
    players = list(players)
    by_id = {p["id"]: p for p in players}
    relationships = []
    for player in players:
        if not is_active(player) or not player.get("target_id"):
            continue
        target = by_id.get(player["target_id"], {})
        relationships.append({
            "assassin_id": player["id"],
            "assassin_name": player.get("name"),
            "assassin_group": group_of(player),
            "target_id": player["target_id"],
            "target_name": target.get("name"),
            "assigned_at": player.get("assigned_at"),
        })
    return relationships
