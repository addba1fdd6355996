import json
import asyncio
import sqlite3
import logging
from datetime import datetime
from typing import Any, Iterable, Optional

import aiosqlite

from db.connections import connect
from models.domain_models import (
    Player,
    GameState,
    Bounty,
    Announcement,
    Proof,
    Pending,
    Verified,
    Rejected,
    ProofStatus,
    ChangeSet,
    Snapshot,
)
from utils.time import now_utc, to_iso, parse_iso
from .exceptions import (
    PlayerNotFound,
    ProofNotFound,
    PlayerAlreadyExists,
    VersionConflict,
    VictimAlreadyEliminated,
    InvalidProofState,
    InvalidColumns,
    UnexpectedResult,
)
from .game_store import GameStore

logger = logging.getLogger(__name__)

REQUIRED_TABLES = {"players", "game_state", "bounty", "proofs", "announcements"}

# Column whitelists; the value is the storage codec for that column.
TEXT, INT, BOOL, DATETIME, JSON = "text", "int", "bool", "datetime", "json"

PLAYER_COLUMNS = {
    "id": TEXT,
    "name": TEXT,
    "email": TEXT,
    "class_name": TEXT,
    "alive": BOOL,
    "in_game": BOOL,
    "target_id": TEXT,
    "assigned_at": DATETIME,
    "kill_count": INT,
    "streak_count": INT,
    "bounty_kill_count": INT,
    "purge_kill_count": INT,
    "badges": JSON,
    "is_winner": BOOL,
    "joined_at": DATETIME,
    "eliminated_by": TEXT,
    "eliminated_at": DATETIME,
    "death_location": TEXT,
    "removed_at": DATETIME,
    "removed_by": TEXT,
    "last_kill_at": DATETIME,
    "created_at": DATETIME,
}

GAME_STATE_COLUMNS = {
    "started": BOOL,
    "ended": BOOL,
    "purge_mode": BOOL,
    "winner_id": TEXT,
    "game_over_at": DATETIME,
    "started_at": DATETIME,
    "ended_at": DATETIME,
    "pin": TEXT,
    "pin_updated_at": DATETIME,
    "class_domination": JSON,
    "version": INT,
}

BOUNTY_COLUMNS = {
    "active": BOOL,
    "target_name": TEXT,
    "prize": TEXT,
    "description": TEXT,
    "created_at": DATETIME,
    "expires_at": DATETIME,
    "removed_at": DATETIME,
}

# Never patched directly
READ_ONLY = {
    "players": {"id", "created_at"},
    "game_state": {"id", "version"},
    "bounty": {"id"},
}


def _encode(kind: str, value: Any) -> Any:
    if value is None:
        return None
    if kind == BOOL:
        return int(bool(value))
    if kind == DATETIME:
        return to_iso(value) if isinstance(value, datetime) else value
    if kind == JSON:
        return json.dumps(value)
    return value


def _decode(kind: str, value: Any) -> Any:
    if kind == BOOL:
        return bool(value)
    if value is None:
        return None
    if kind == DATETIME:
        return parse_iso(value)
    if kind == JSON:
        return json.loads(value)
    return value


def _from_row(row: aiosqlite.Row, columns: dict[str, str]) -> dict[str, Any]:
    return {key: _decode(columns[key], row[key]) for key in row.keys() if key in columns}


def _proof_from_row(row: aiosqlite.Row) -> Proof:
    status = row["status"]
    review: ProofStatus
    if status == Verified.status:
        review = Verified(row["reviewed_by"], parse_iso(row["reviewed_at"]), row["admin_notes"] or "")
    elif status == Rejected.status:
        review = Rejected(row["reviewed_by"], parse_iso(row["reviewed_at"]), row["admin_notes"] or "")
    else:
        review = Pending()
    return Proof(
        id=row["id"],
        submitter_id=row["submitter_id"],
        target_name=row["target_name"],
        submitted_at=parse_iso(row["submitted_at"]),
        submitter_name=row["submitter_name"],
        media_url=row["media_url"],
        location=row["location"],
        review=review,
    )


def _name_key(name: str) -> str:
    return (name or "").strip().casefold()


class SqliteGameStore(GameStore):

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.db: aiosqlite.Connection = None
        # one connection: transactions from concurrent coroutines must not interleave
        self._lock = asyncio.Lock()
        logger.info(f"[STORE] SqliteGameStore initialized with db_path: {db_path}")

    async def init(self):
        """Initialize database connection. Call this after construction."""
        # DELETE journal mode avoids WAL locking problems on shared volumes
        self.db = await connect(self.db_path, {"journal_mode": "DELETE"})
        logger.info(f"[STORE] Database connection established to {self.db_path}")

        async with self.db.execute("SELECT name FROM sqlite_master WHERE type='table'") as cursor:
            tables = {row[0] for row in await cursor.fetchall()}
        missing = REQUIRED_TABLES - tables
        if missing:
            logger.error(f"[STORE] ✗ Missing tables: {sorted(missing)}")
            raise RuntimeError(f"Database at {self.db_path} is missing tables {sorted(missing)}; run scripts/init_sqlite.py")

    async def close(self):
        """Close database connection."""
        if self.db:
            await self.db.close()
            self.db = None

    # -------------------------------------------------
    # Internal helpers (callers hold the lock)
    # -------------------------------------------------

    async def _fetchall(self, sql: str, params: Iterable[Any] = ()) -> list[aiosqlite.Row]:
        async with self.db.execute(sql, tuple(params)) as cursor:
            return list(await cursor.fetchall())

    async def _fetchone(self, sql: str, params: Iterable[Any] = ()) -> Optional[aiosqlite.Row]:
        async with self.db.execute(sql, tuple(params)) as cursor:
            return await cursor.fetchone()

    async def _patch(self, table: str, columns: dict[str, str], patch: dict[str, Any], where: str, params: tuple) -> int:
        unknown = set(patch) - (set(columns) - READ_ONLY[table])
        if unknown:
            raise InvalidColumns(f"Unknown or read-only {table} column(s): {sorted(unknown)}")
        assignments = ", ".join(f"{col} = ?" for col in patch)
        values = [_encode(columns[col], value) for col, value in patch.items()]
        cursor = await self.db.execute(f"UPDATE {table} SET {assignments} WHERE {where}", (*values, *params))
        return cursor.rowcount

    async def _read_game_state(self) -> GameState:
        row = await self._fetchone("SELECT * FROM game_state WHERE id = 1")
        if row is None:
            raise UnexpectedResult("game_state row is missing")
        return _from_row(row, GAME_STATE_COLUMNS)

    async def _read_bounty(self) -> Bounty:
        row = await self._fetchone("SELECT * FROM bounty WHERE id = 1")
        if row is None:
            raise UnexpectedResult("bounty row is missing")
        return _from_row(row, BOUNTY_COLUMNS)

    async def _read_players(self, where: str = "", params: tuple = ()) -> list[Player]:
        rows = await self._fetchall(f"SELECT * FROM players {where} ORDER BY id", params)
        return [_from_row(row, PLAYER_COLUMNS) for row in rows]

    # -------------------------------------------------
    # Players
    # -------------------------------------------------

    async def get_player(self, player_id: str) -> Player:
        async with self._lock:
            players = await self._read_players("WHERE id = ?", (player_id,))
        if not players:
            raise PlayerNotFound(f"Player {player_id} not found")
        return players[0]

    async def list_players(self) -> list[Player]:
        async with self._lock:
            return await self._read_players()

    async def query_alive_in_game(self) -> list[Player]:
        async with self._lock:
            return await self._read_players("WHERE alive = 1 AND in_game = 1")

    async def find_players_by_name(self, name: str) -> list[Player]:
        # casefold in Python; COLLATE NOCASE only folds ASCII
        key = _name_key(name)
        return [p for p in await self.list_players() if _name_key(p.get("name")) == key]

    async def create_player(
        self,
        player_id: str,
        *,
        name: str,
        class_name: str,
        email: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Player:
        created_at = to_iso(now or now_utc())
        async with self._lock:
            await self.db.execute("BEGIN IMMEDIATE")
            try:
                await self.db.execute(
                    """
                    INSERT INTO players (id, name, email, class_name, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (player_id, name.strip(), email, class_name.strip(), created_at),
                )
                await self.db.commit()
            except sqlite3.IntegrityError as exc:
                await self.db.rollback()
                raise PlayerAlreadyExists(f"Player {player_id} ({email or name}) already exists") from exc
            except Exception:
                await self.db.rollback()
                raise
        logger.info(f"[STORE] Created player {player_id} ({name}) in class '{class_name}'")
        return await self.get_player(player_id)

    async def batch_update(
        self,
        updates: Iterable[tuple[str, dict[str, Any]]],
        expected_version: Optional[int] = None,
    ) -> int:
        changes = ChangeSet()
        for player_id, fields in updates:
            changes.update_player(player_id, **fields)
        return await self.commit(changes, expected_version)

    # -------------------------------------------------
    # Game state
    # -------------------------------------------------

    async def get_game_state(self) -> GameState:
        async with self._lock:
            return await self._read_game_state()

    async def set_game_state(self, fields: dict[str, Any], expected_version: Optional[int] = None) -> int:
        return await self.commit(ChangeSet(game_state=dict(fields)), expected_version)

    async def get_bounty(self) -> Bounty:
        async with self._lock:
            return await self._read_bounty()

    async def snapshot(self) -> Snapshot:
        async with self._lock:
            await self.db.execute("BEGIN")
            try:
                state = await self._read_game_state()
                bounty = await self._read_bounty()
                players = await self._read_players()
            finally:
                await self.db.commit()
        return Snapshot(state=state, bounty=bounty, players=players)

    # -------------------------------------------------
    # Commit
    # -------------------------------------------------

    async def commit(self, changes: ChangeSet, expected_version: Optional[int] = None) -> int:
        async with self._lock:
            await self.db.execute("BEGIN IMMEDIATE")
            try:
                state = await self._read_game_state()
                version = state["version"]
                if expected_version is not None and version != expected_version:
                    raise VersionConflict(f"Game state is at version {version}, decision was made at {expected_version}")

                for player_id in sorted(changes.require_alive):
                    row = await self._fetchone("SELECT name, alive FROM players WHERE id = ?", (player_id,))
                    if row is None:
                        raise PlayerNotFound(f"Player {player_id} not found")
                    if not row["alive"]:
                        raise VictimAlreadyEliminated(f"{row['name']} has already been eliminated")

                for proof_id, review in changes.proofs.items():
                    row = await self._fetchone("SELECT status FROM proofs WHERE id = ?", (proof_id,))
                    if row is None:
                        raise ProofNotFound(f"Proof {proof_id} not found")
                    if row["status"] != Pending.status:
                        raise InvalidProofState(f"Proof {proof_id} is already {row['status']}")
                    await self.db.execute(
                        """
                        UPDATE proofs SET status = ?, reviewed_by = ?, reviewed_at = ?, admin_notes = ?
                        WHERE id = ?
                        """,
                        (review.status, review.reviewer, to_iso(review.at), review.notes, proof_id),
                    )

                for player_id, patch in changes.players.items():
                    if not patch:
                        continue
                    if await self._patch("players", PLAYER_COLUMNS, patch, "id = ?", (player_id,)) == 0:
                        raise PlayerNotFound(f"Player {player_id} not found")

                if changes.game_state:
                    await self._patch("game_state", GAME_STATE_COLUMNS, changes.game_state, "id = 1", ())
                if changes.bounty:
                    await self._patch("bounty", BOUNTY_COLUMNS, changes.bounty, "id = 1", ())

                new_version = version + 1
                await self.db.execute("UPDATE game_state SET version = ? WHERE id = 1", (new_version,))
                await self.db.commit()
            except sqlite3.IntegrityError as exc:
                await self.db.rollback()
                raise UnexpectedResult(f"Integrity error while committing changes: {exc}") from exc
            except VersionConflict:
                await self.db.rollback()
                logger.warning(f"[STORE] Version conflict: expected {expected_version}, found {version}")
                raise
            except Exception:
                await self.db.rollback()
                raise

        logger.info(
            f"[STORE] Committed {len(changes.players)} player update(s), {len(changes.proofs)} proof update(s); "
            f"version {version} -> {new_version}"
        )
        return new_version

    async def reset_game(self, now: datetime) -> int:
        stamp = to_iso(now)
        async with self._lock:
            await self.db.execute("BEGIN IMMEDIATE")
            try:
                await self.db.execute(
                    """
                    UPDATE players SET
                        alive = 1, in_game = 0, target_id = NULL, assigned_at = NULL,
                        kill_count = 0, streak_count = 0, bounty_kill_count = 0, purge_kill_count = 0,
                        is_winner = 0, joined_at = NULL, eliminated_by = NULL, eliminated_at = NULL,
                        death_location = NULL, removed_at = NULL, removed_by = NULL, last_kill_at = NULL
                    """
                )
                await self.db.execute(
                    """
                    UPDATE game_state SET
                        started = 0, ended = 1, purge_mode = 0, winner_id = NULL, game_over_at = NULL,
                        started_at = NULL, ended_at = ?, class_domination = NULL, version = version + 1
                    WHERE id = 1
                    """,
                    (stamp,),
                )
                await self.db.execute(
                    """
                    UPDATE bounty SET
                        active = 0, target_name = NULL, prize = NULL, description = NULL,
                        created_at = NULL, expires_at = NULL, removed_at = ?
                    WHERE id = 1
                    """,
                    (stamp,),
                )
                await self.db.execute("DELETE FROM proofs")
                await self.db.execute("DELETE FROM announcements")
                state = await self._read_game_state()
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise
        logger.info(f"[STORE] Game reset; version is now {state['version']}")
        return state["version"]

    # -------------------------------------------------
    # Proofs
    # -------------------------------------------------

    async def create_proof(self, proof: Proof) -> None:
        async with self._lock:
            await self.db.execute("BEGIN IMMEDIATE")
            try:
                if await self._fetchone("SELECT 1 FROM players WHERE id = ?", (proof.submitter_id,)) is None:
                    raise PlayerNotFound(f"Player {proof.submitter_id} not found")
                await self.db.execute(
                    """
                    INSERT INTO proofs (id, submitter_id, submitter_name, target_name, media_url, location, submitted_at, status)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        proof.id,
                        proof.submitter_id,
                        proof.submitter_name,
                        proof.target_name,
                        proof.media_url,
                        proof.location,
                        to_iso(proof.submitted_at),
                        proof.status,
                    ),
                )
                await self.db.commit()
            except sqlite3.IntegrityError as exc:
                await self.db.rollback()
                raise UnexpectedResult(f"Could not store proof {proof.id}: {exc}") from exc
            except Exception:
                await self.db.rollback()
                raise

    async def get_proof(self, proof_id: str) -> Proof:
        async with self._lock:
            row = await self._fetchone("SELECT * FROM proofs WHERE id = ?", (proof_id,))
        if row is None:
            raise ProofNotFound(f"Proof {proof_id} not found")
        return _proof_from_row(row)

    async def list_proofs(self, status: Optional[str] = None) -> list[Proof]:
        async with self._lock:
            if status is None:
                rows = await self._fetchall("SELECT * FROM proofs ORDER BY submitted_at DESC")
            else:
                rows = await self._fetchall("SELECT * FROM proofs WHERE status = ? ORDER BY submitted_at DESC", (status,))
        return [_proof_from_row(row) for row in rows]

    async def delete_pending_proofs(self) -> int:
        async with self._lock:
            await self.db.execute("BEGIN IMMEDIATE")
            try:
                cursor = await self.db.execute("DELETE FROM proofs WHERE status = 'pending'")
                removed = cursor.rowcount
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise
        logger.info(f"[STORE] Cleared {removed} pending proof(s)")
        return removed

    # -------------------------------------------------
    # Announcements
    # -------------------------------------------------

    async def add_announcement(self, kind: str, message: str, payload: dict[str, Any], now: datetime) -> Announcement:
        async with self._lock:
            await self.db.execute("BEGIN IMMEDIATE")
            try:
                cursor = await self.db.execute(
                    "INSERT INTO announcements (kind, message, payload, created_at) VALUES (?, ?, ?, ?)",
                    (kind, message, json.dumps(payload, default=str), to_iso(now)),
                )
                announcement_id = cursor.lastrowid
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise
        return Announcement(id=announcement_id, kind=kind, message=message, payload=payload, created_at=now)

    async def list_announcements(self, limit: int = 50) -> list[Announcement]:
        async with self._lock:
            rows = await self._fetchall("SELECT * FROM announcements ORDER BY id DESC LIMIT ?", (limit,))
        return [
            Announcement(
                id=row["id"],
                kind=row["kind"],
                message=row["message"],
                payload=json.loads(row["payload"]),
                created_at=parse_iso(row["created_at"]),
            )
            for row in rows
        ]
