"""Services package: the target-assignment engine and verification workflow.

Everything here is pure over a player list except `snapshot`, `verification`
and `announcements`, which talk to a `GameStore` or the task queue.
"""

from .grouping import UNGROUPED, by_class, groups_of
from .assignment import (
	STRICT,
	TIERED,
	assign_all,
	assignment_changes,
	attach_player,
	choose_target,
	reassign_all_after_purge,
	winner_changes,
)
from .reassignment import on_eliminated
from .badges import BADGES, BADGES_BY_ID, context_for, eligible_badges
from .snapshot import commit_with_retry
from .verification import bounty_is_live, decide_verification, verify_proof, reject_proof

__all__ = [
	"UNGROUPED",
	"by_class",
	"groups_of",
	"STRICT",
	"TIERED",
	"assign_all",
	"assignment_changes",
	"attach_player",
	"choose_target",
	"reassign_all_after_purge",
	"winner_changes",
	"on_eliminated",
	"BADGES",
	"BADGES_BY_ID",
	"context_for",
	"eligible_badges",
	"commit_with_retry",
	"bounty_is_live",
	"decide_verification",
	"verify_proof",
	"reject_proof",
]
