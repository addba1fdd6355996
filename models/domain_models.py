"""Domain-level typed models used by services and stores.

Prefer `TypedDict` for lightweight structural typing that maps directly to
the JSON-like dicts stored in the database. Proof review status, change sets
and engine outcomes are small dataclasses because they carry behaviour.
"""
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import TypedDict, Any, ClassVar, Union
from datetime import datetime


class Player(TypedDict, total=False):
	id: str
	name: str
	email: str | None
	class_name: str
	alive: bool
	in_game: bool
	target_id: str | None
	assigned_at: datetime | None
	kill_count: int
	streak_count: int
	bounty_kill_count: int
	purge_kill_count: int
	badges: list[str]
	is_winner: bool
	joined_at: datetime | None
	eliminated_by: str | None
	eliminated_at: datetime | None
	death_location: str | None
	removed_at: datetime | None
	removed_by: str | None
	last_kill_at: datetime | None
	created_at: datetime | None


class GameState(TypedDict, total=False):
	started: bool
	ended: bool
	purge_mode: bool
	winner_id: str | None
	game_over_at: datetime | None
	started_at: datetime | None
	ended_at: datetime | None
	pin: str | None
	pin_updated_at: datetime | None
	class_domination: dict[str, Any] | None
	version: int


class Bounty(TypedDict, total=False):
	active: bool
	target_name: str | None
	prize: str | None
	description: str | None
	created_at: datetime | None
	expires_at: datetime | None
	removed_at: datetime | None


class Announcement(TypedDict, total=False):
	id: int
	kind: str
	message: str
	payload: dict[str, Any]
	created_at: datetime


# -------------------------------------------------
# Proof review status
# -------------------------------------------------

@dataclass(frozen=True)
class Pending:
	status: ClassVar[str] = "pending"


@dataclass(frozen=True)
class Verified:
	reviewer: str
	at: datetime
	notes: str = ""
	status: ClassVar[str] = "verified"


@dataclass(frozen=True)
class Rejected:
	reviewer: str
	at: datetime
	notes: str = ""
	status: ClassVar[str] = "rejected"


ProofStatus = Union[Pending, Verified, Rejected]


def verify_status(current: ProofStatus, *, reviewer: str, at: datetime, notes: str = "") -> Verified:
	"""Pending -> Verified. Any other starting state raises InvalidProofState."""
	from stores.exceptions import InvalidProofState
	if not isinstance(current, Pending):
		raise InvalidProofState(f"Cannot verify a proof that is already {current.status}")
	return Verified(reviewer=reviewer, at=at, notes=notes)


def reject_status(current: ProofStatus, *, reviewer: str, at: datetime, notes: str = "") -> Rejected:
	"""Pending -> Rejected. Any other starting state raises InvalidProofState."""
	from stores.exceptions import InvalidProofState
	if not isinstance(current, Pending):
		raise InvalidProofState(f"Cannot reject a proof that is already {current.status}")
	return Rejected(reviewer=reviewer, at=at, notes=notes)


@dataclass
class Proof:
	id: str
	submitter_id: str
	target_name: str
	submitted_at: datetime
	submitter_name: str | None = None
	media_url: str | None = None
	location: str | None = None
	review: ProofStatus = field(default_factory=Pending)

	@property
	def status(self) -> str:
		return self.review.status

	def to_dict(self) -> dict[str, Any]:
		data = {
			"id": self.id,
			"submitter_id": self.submitter_id,
			"submitter_name": self.submitter_name,
			"target_name": self.target_name,
			"media_url": self.media_url,
			"location": self.location,
			"submitted_at": self.submitted_at,
			"status": self.status,
			"reviewed_by": None,
			"reviewed_at": None,
			"admin_notes": None,
		}
		if not isinstance(self.review, Pending):
			data["reviewed_by"] = self.review.reviewer
			data["reviewed_at"] = self.review.at
			data["admin_notes"] = self.review.notes
		return data


# -------------------------------------------------
# Change sets
# -------------------------------------------------

@dataclass
class ChangeSet:
	"""Everything one operation wants to write, committed as a single batch.

	`require_alive` and the pending check on `proofs` are re-validated by the
	store inside the commit transaction.
	"""
	players: dict[str, dict[str, Any]] = field(default_factory=dict)
	game_state: dict[str, Any] = field(default_factory=dict)
	bounty: dict[str, Any] = field(default_factory=dict)
	proofs: dict[str, ProofStatus] = field(default_factory=dict)
	require_alive: set[str] = field(default_factory=set)

	def update_player(self, player_id: str, **fields: Any) -> None:
		self.players.setdefault(player_id, {}).update(fields)

	def is_empty(self) -> bool:
		return not (self.players or self.game_state or self.bounty or self.proofs)

	def merge(self, other: "ChangeSet") -> "ChangeSet":
		for player_id, fields in other.players.items():
			self.update_player(player_id, **fields)
		self.game_state.update(other.game_state)
		self.bounty.update(other.bounty)
		self.proofs.update(other.proofs)
		self.require_alive |= other.require_alive
		return self


# -------------------------------------------------
# Engine outcomes
# -------------------------------------------------

@dataclass
class Assignment:
	targets: dict[str, str] = field(default_factory=dict)
	targetless: list[str] = field(default_factory=list)


@dataclass
class Repaired:
	reassigned: dict[str, str] = field(default_factory=dict)
	targetless: list[str] = field(default_factory=list)


@dataclass
class GameOver:
	winner_id: str


@dataclass
class SingleGroupRemaining:
	group: str
	cleared: list[str] = field(default_factory=list)


Outcome = Union[Assignment, Repaired, GameOver, SingleGroupRemaining]


def outcome_to_dict(outcome: Outcome) -> dict[str, Any]:
	return {"kind": type(outcome).__name__, **asdict(outcome)}


@dataclass
class Plan:
	"""An engine decision: what happened, and the writes that make it so."""
	outcome: Outcome
	changes: ChangeSet = field(default_factory=ChangeSet)


@dataclass
class Snapshot:
	"""One consistent read of everything a decision depends on."""
	state: GameState
	bounty: Bounty
	players: list[Player]

	@property
	def version(self) -> int:
		return self.state.get("version", 0)

	def player(self, player_id: str) -> Player | None:
		return next((p for p in self.players if p["id"] == player_id), None)


__all__ = [
	"Player",
	"GameState",
	"Bounty",
	"Announcement",
	"Pending",
	"Verified",
	"Rejected",
	"ProofStatus",
	"verify_status",
	"reject_status",
	"Proof",
	"ChangeSet",
	"Assignment",
	"Repaired",
	"GameOver",
	"SingleGroupRemaining",
	"Outcome",
	"outcome_to_dict",
	"Plan",
	"Snapshot",
]
