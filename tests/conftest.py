import asyncio
from datetime import timedelta

import pytest

from db import init_db
from models.domain_models import ChangeSet
from stores import make_game_store
from utils.time import now_utc


def _player(player_id, class_name, **fields):
    player = {
        "id": player_id,
        "name": player_id,
        "class_name": class_name,
        "email": None,
        "alive": True,
        "in_game": True,
        "target_id": None,
        "assigned_at": None,
        "kill_count": 0,
        "streak_count": 0,
        "bounty_kill_count": 0,
        "purge_kill_count": 0,
        "badges": [],
        "is_winner": False,
        "joined_at": now_utc() - timedelta(hours=1),
    }
    player.update(fields)
    return player


@pytest.fixture
def make_player():
    """Factory for in-memory player records: make_player("a", "red", target_id="c")."""
    return _player


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "game.sqlite3")
    asyncio.run(init_db(path))
    return path


@pytest.fixture
def run_store(db_path):
    """Run `await scenario(store)` against a freshly opened store and close it afterwards."""
    def run(scenario):
        async def runner():
            store = make_game_store(db_path)
            await store.init()
            try:
                return await scenario(store)
            finally:
                await store.close()
        return asyncio.run(runner())
    return run


async def _seed(store, players, *, started=True, purge_mode=False):
    for p in players:
        await store.create_player(p["id"], name=p["name"], class_name=p["class_name"])
    changes = ChangeSet(game_state={"started": started, "purge_mode": purge_mode})
    for p in players:
        changes.update_player(
            p["id"],
            alive=p["alive"],
            in_game=p["in_game"],
            joined_at=p["joined_at"],
            target_id=p["target_id"],
            assigned_at=now_utc() if p["target_id"] else None,
        )
    await store.commit(changes)


@pytest.fixture
def seed():
    """`await seed(store, players, started=True)` writes players and their edges to the store."""
    return _seed
