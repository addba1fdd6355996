"""
Badge catalog and eligibility.

The catalog is plain data; `eligible_badges` is side-effect free and works on
the in-memory state the verification workflow has just computed, so nothing
is re-read from the store mid-decision.
"""
from dataclasses import dataclass
from datetime import datetime

from models.domain_models import Player
from utils.time import now_utc
from .grouping import GroupingPolicy, by_class
from .target_graph import is_active

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class Badge:
    id: str
    icon: str
    title: str
    description: str
    trigger: str
    requirement: int
    category: str


BADGES: tuple[Badge, ...] = (
    Badge("thanatos_touch", "🩸", "Thanatos' Touch",
          "First blood. The god of peaceful death smiles.", "kill_count", 1, "milestone"),
    Badge("erebus_rising", "🌑", "Erebus Rising",
          "You've tasted the shadows twice. Darkness starts to recognize you.", "kill_count", 2, "milestone"),
    Badge("wrath_of_ares", "⚔️", "Wrath of Ares",
          "Your third kill. Blood follows wherever you go.", "kill_count", 3, "milestone"),
    Badge("angel_of_death", "🖤", "Angel of Death",
          "You don't hunt. You erase.", "kill_count", 5, "milestone"),
    Badge("artemis_vow", "🏹", "Artemis' Vow",
          "You hunted a marked soul.", "bounty_kill", 1, "special"),
    Badge("hades_unleashed", "🔥", "Hades Unleashed",
          "In the lawless chaos, you thrived.", "purge_kill", 1, "special"),
    Badge("jack_the_reaper", "💀", "Jack the Reaper",
          "You weren't part of the purge. You were the purge.", "purge_kill", 3, "special"),
    Badge("fury_of_the_fates", "🧵", "Fury of the Fates",
          "Thread by thread, they fall.", "kill_streak", 2, "streak"),
    Badge("poseidon_blessing", "🌊", "Poseidon's Blessing",
          "Five days alive. You float above fate.", "survival_time", 5, "survival"),
    Badge("angel_of_light", "✨", "Angel of Light",
          "Untouched. Unbroken. The last of your kind standing.", "game_winner", 1, "rare"),
)

BADGES_BY_ID = {badge.id: badge for badge in BADGES}


@dataclass
class BadgeContext:
    """Game-wide facts a badge rule may need besides the player record."""
    now: datetime
    winner_id: str | None = None
    only_group: str | None = None
    group_of: GroupingPolicy = by_class


def context_for(players: list[Player], *, group_of: GroupingPolicy = by_class,
                winner_id: str | None = None, now: datetime | None = None) -> BadgeContext:
    groups = {group_of(p) for p in players if is_active(p)}
    return BadgeContext(
        now=now or now_utc(),
        winner_id=winner_id,
        only_group=next(iter(groups)) if len(groups) == 1 else None,
        group_of=group_of,
    )


def _qualifies(badge: Badge, player: Player, context: BadgeContext) -> bool:
    trigger = badge.trigger
    if trigger == "kill_count":
        return player.get("kill_count", 0) >= badge.requirement
    if trigger == "kill_streak":
        return player.get("streak_count", 0) >= badge.requirement
    if trigger == "bounty_kill":
        return player.get("bounty_kill_count", 0) >= badge.requirement
    if trigger == "purge_kill":
        return player.get("purge_kill_count", 0) >= badge.requirement
    if trigger == "survival_time":
        joined_at = player.get("joined_at")
        if not joined_at or not player.get("alive"):
            return False
        return (context.now - joined_at).total_seconds() // SECONDS_PER_DAY >= badge.requirement
    if trigger == "game_winner":
        if player.get("id") == context.winner_id:
            return True
        return bool(player.get("alive")) and context.only_group is not None \
            and context.group_of(player) == context.only_group
    return False


def eligible_badges(player: Player, context: BadgeContext) -> list[str]:
    """Ids of badges `player` now qualifies for and does not already hold."""
    held = set(player.get("badges") or [])
    return [b.id for b in BADGES if b.id not in held and _qualifies(b, player, context)]
