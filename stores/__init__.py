# Abstractions
from .game_store import GameStore, PlayerStore, GameStateStore, ProofStore

# Exceptions
from .exceptions import (
    StoreError,
    GameStoreError,
    GameRuleError,
    PlayerNotFound,
    ProofNotFound,
    PlayerAlreadyExists,
    VersionConflict,
    InvalidColumns,
    UnexpectedResult,
    InsufficientPlayers,
    InsufficientGroups,
    AmbiguousPlayerName,
    VictimNotFound,
    VictimAlreadyEliminated,
    InvalidProofState,
    GameNotStarted,
    GameAlreadyStarted,
    PlayerNotInGame,
    InvalidGamePin,
    InvalidBounty,
)

# Concrete implementations are private; only abstract interfaces are exported.
from .sqlite_game_store import SqliteGameStore as _SqliteGameStore

__all__ = [
    # Abstractions
    "GameStore",
    "PlayerStore",
    "GameStateStore",
    "ProofStore",
    # Exceptions
    "StoreError",
    "GameStoreError",
    "GameRuleError",
    "PlayerNotFound",
    "ProofNotFound",
    "PlayerAlreadyExists",
    "VersionConflict",
    "InvalidColumns",
    "UnexpectedResult",
    "InsufficientPlayers",
    "InsufficientGroups",
    "AmbiguousPlayerName",
    "VictimNotFound",
    "VictimAlreadyEliminated",
    "InvalidProofState",
    "GameNotStarted",
    "GameAlreadyStarted",
    "PlayerNotInGame",
    "InvalidGamePin",
    "InvalidBounty",
]


# Runtime singletons and initialization helpers
from typing import Optional
import config

game_store: Optional[GameStore] = None


def make_game_store(db_path: str) -> GameStore:
    """Construct an unopened store; call `await store.init()` before use."""
    return _SqliteGameStore(db_path)


async def open_stores(db_path: Optional[str] = None) -> GameStore:
    """Open the process-wide store from inside a running event loop (FastAPI startup)."""
    global game_store
    if game_store is None:
        store = _SqliteGameStore(db_path or config.DB_PATH)
        await store.init()
        game_store = store
    return game_store


async def close_stores() -> None:
    global game_store
    if game_store is not None:
        await game_store.close()
        game_store = None


def get_game_store() -> GameStore:
    """Return the process-wide store opened by `open_stores` (FastAPI dependency)."""
    if game_store is None:
        raise RuntimeError("Game store is not open; call open_stores() during startup")
    return game_store
