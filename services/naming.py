"""Resolving free-text player names (proof targets, admin commands, bounties)."""
from typing import Iterable

from models.domain_models import Player
from stores.exceptions import AmbiguousPlayerName, VictimNotFound


def name_key(name: str | None) -> str:
    """Case-insensitive comparison key; surrounding whitespace is ignored."""
    return (name or "").strip().casefold()


def matching_players(players: Iterable[Player], name: str) -> list[Player]:
    key = name_key(name)
    return [p for p in players if name_key(p.get("name")) == key]


def resolve_by_name(players: Iterable[Player], name: str) -> Player:
    """Exactly one player whose name matches `name`.

    Raises:
        VictimNotFound: nobody has this name.
        AmbiguousPlayerName: more than one player has this name.
    """
    matches = matching_players(players, name)
    if not matches:
        raise VictimNotFound(f"No player named '{name}'")
    if len(matches) > 1:
        ids = ", ".join(p["id"] for p in matches)
        raise AmbiguousPlayerName(f"{len(matches)} players are named '{name}' ({ids}); resolve the duplicate before continuing")
    return matches[0]
