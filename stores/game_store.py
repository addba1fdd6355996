from typing import Any, Iterable, Optional
from datetime import datetime
from abc import ABC, abstractmethod

from models.domain_models import Player, GameState, Bounty, Announcement, Proof, ChangeSet, Snapshot


# =========================
# PlayerStore Interface
# =========================

class PlayerStore(ABC):
    """Player records keyed by id."""

    @abstractmethod
    async def get_player(self, player_id: str) -> Player:
        """Return one player.

        Raises:
            PlayerNotFound: If no player has this id.
        """


    @abstractmethod
    async def list_players(self) -> list[Player]:
        """Every known player, in id order."""


    @abstractmethod
    async def query_alive_in_game(self) -> list[Player]:
        """Players with `alive` and `in_game` both set, in id order."""


    @abstractmethod
    async def find_players_by_name(self, name: str) -> list[Player]:
        """Players whose name equals `name` ignoring case and surrounding whitespace."""


    @abstractmethod
    async def create_player(
        self,
        player_id: str,
        *,
        name: str,
        class_name: str,
        email: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Player:
        """Register a player (not yet in the game).

        Raises:
            PlayerAlreadyExists: If the id or email is already taken.
        """


    @abstractmethod
    async def batch_update(
        self,
        updates: Iterable[tuple[str, dict[str, Any]]],
        expected_version: Optional[int] = None,
    ) -> int:
        """Apply `(player_id, partial_fields)` pairs atomically and return the new version.

        Raises:
            PlayerNotFound: If any id is unknown (nothing is written).
            VersionConflict: If `expected_version` is given and stale.
        """


# =========================
# GameStateStore Interface
# =========================

class GameStateStore(ABC):
    """Singleton game-wide state and the bounty record."""

    @abstractmethod
    async def get_game_state(self) -> GameState:
        """Return the game state, including its `version` generation counter."""


    @abstractmethod
    async def set_game_state(self, fields: dict[str, Any], expected_version: Optional[int] = None) -> int:
        """Patch the game state and return the new version.

        Raises:
            VersionConflict: If `expected_version` is given and stale.
        """


    @abstractmethod
    async def get_bounty(self) -> Bounty:
        """Return the bounty record (inactive when no bounty is set)."""


# =========================
# ProofStore Interface
# =========================

class ProofStore(ABC):

    @abstractmethod
    async def create_proof(self, proof: Proof) -> None:
        """Persist a new, pending proof.

        Raises:
            PlayerNotFound: If the submitter does not exist.
        """


    @abstractmethod
    async def get_proof(self, proof_id: str) -> Proof:
        """Raises:
            ProofNotFound: If no proof has this id.
        """


    @abstractmethod
    async def list_proofs(self, status: Optional[str] = None) -> list[Proof]:
        """Proofs newest first, optionally filtered by status name."""


    @abstractmethod
    async def delete_pending_proofs(self) -> int:
        """Drop every pending proof and return how many were removed."""


# =========================
# GameStore Interface
# =========================

class GameStore(PlayerStore, GameStateStore, ProofStore):
    """
    The GameStore is the sole authority over game state.

    Invariants:
    - Every multi-record write goes through `commit` and is all-or-nothing
    - `version` increases by exactly one per successful commit
    - A victim guarded by `require_alive` is eliminated at most once
    - A proof leaves `pending` at most once
    """

    # -------------------------------------------------
    # Lifecycle
    # -------------------------------------------------

    @abstractmethod
    async def init(self) -> None:
        """Open connections. Call this after construction."""


    @abstractmethod
    async def close(self) -> None:
        """Release connections."""


    # -------------------------------------------------
    # Decisions
    # -------------------------------------------------

    @abstractmethod
    async def snapshot(self) -> Snapshot:
        """Read game state, bounty and every player in one read transaction."""


    @abstractmethod
    async def commit(self, changes: ChangeSet, expected_version: Optional[int] = None) -> int:
        """Apply a change set in one transaction and return the new version.

        Raises:
            VersionConflict: If `expected_version` is given and stale.
            VictimAlreadyEliminated: If a player in `require_alive` is no longer alive.
            InvalidProofState: If a proof in `changes.proofs` is no longer pending.
            PlayerNotFound: If a patched player does not exist.
            ProofNotFound: If a patched proof does not exist.
            InvalidColumns: If a patch names an unknown or read-only column.
        """


    @abstractmethod
    async def reset_game(self, now: datetime) -> int:
        """End the game: reset every player (badges kept), clear bounty,
        proofs and announcements, and reset game state, in one transaction.
        Returns the new version."""


    # -------------------------------------------------
    # Announcements
    # -------------------------------------------------

    @abstractmethod
    async def add_announcement(self, kind: str, message: str, payload: dict[str, Any], now: datetime) -> Announcement:
        """Append to the announcement feed."""


    @abstractmethod
    async def list_announcements(self, limit: int = 50) -> list[Announcement]:
        """Newest first."""
