"""Grouping policies: pure functions mapping a player to the group that
forbids intra-group targeting."""
from typing import Callable, Iterable

from models.domain_models import Player

GroupingPolicy = Callable[[Player], str]

UNGROUPED = "unassigned"


def by_class(player: Player) -> str:
    """Group players by class name, ignoring case and surrounding whitespace."""
    class_name = (player.get("class_name") or "").strip()
    return class_name.casefold() if class_name else UNGROUPED


def groups_of(players: Iterable[Player], group_of: GroupingPolicy) -> dict[str, list[Player]]:
    """Bucket players by group, preserving input order inside each bucket."""
    grouped: dict[str, list[Player]] = {}
    for player in players:
        grouped.setdefault(group_of(player), []).append(player)
    return grouped
