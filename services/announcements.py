"""
Announcement sinks.

Publishing is fire-and-forget: a sink failure is logged and never undoes a
committed decision.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any

from models.domain_models import Player, Outcome, GameOver, SingleGroupRemaining, outcome_to_dict
from services.badges import BADGES_BY_ID
from utils.time import now_utc, to_iso

logger = logging.getLogger(__name__)


class AnnouncementSink(ABC):

    @abstractmethod
    def publish(self, event: dict[str, Any]) -> None:
        """Hand `event` off for delivery. Must not block on delivery."""


class CeleryAnnouncementSink(AnnouncementSink):
    """Queue delivery on the `announcements` Celery queue."""

    def publish(self, event: dict[str, Any]) -> None:
        # imported here: workers.tasks imports services
        from workers.tasks import publish_announcement
        publish_announcement.apply_async(args=[event], queue="announcements", priority=6)


class RecordingSink(AnnouncementSink):
    """Keeps events in memory (local runs and tests)."""

    def __init__(self):
        self.events: list[dict[str, Any]] = []

    def publish(self, event: dict[str, Any]) -> None:
        self.events.append(event)


def safe_publish(sink: AnnouncementSink, event: dict[str, Any]) -> bool:
    """Publish best-effort; returns False (after logging) if the sink raised."""
    try:
        sink.publish(event)
    except Exception:
        logger.exception(f"Failed to publish {event.get('kind')} announcement")
        return False
    return True


def elimination_event(
    killer: Player,
    victim: Player,
    *,
    proof_id: str,
    location: str | None,
    bounty_kill: bool,
    purge_kill: bool,
    new_badges: dict[str, list[str]],
    outcome: Outcome | None,
) -> dict[str, Any]:
    """Build the payload announced after a verified elimination."""
    kill_count = killer.get("kill_count", 0)
    message = f"{killer.get('name')} eliminated {victim.get('name')}"
    if bounty_kill:
        message += " and claimed the bounty"
    elif purge_kill:
        message += " during the purge"
    message += f". Kill #{kill_count}."

    killer_badges = [BADGES_BY_ID[b].title for b in new_badges.get(killer["id"], [])]
    if killer_badges:
        message += f" Earned: {', '.join(killer_badges)}."

    if isinstance(outcome, GameOver):
        message += " Only one assassin remains."
    elif isinstance(outcome, SingleGroupRemaining):
        message += f" Only {outcome.group} remains standing."

    return {
        "kind": "elimination",
        "message": message,
        "proof_id": proof_id,
        "killer_id": killer["id"],
        "killer_name": killer.get("name"),
        "victim_id": victim["id"],
        "victim_name": victim.get("name"),
        "location": location,
        "kill_count": kill_count,
        "bounty_kill": bounty_kill,
        "purge_kill": purge_kill,
        "badges": new_badges,
        "outcome": outcome_to_dict(outcome) if outcome is not None else None,
        "at": to_iso(now_utc()),
    }
