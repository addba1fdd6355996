import asyncio
from datetime import timedelta

import pytest

from models.domain_models import ChangeSet, Pending, Proof, Verified
from stores import (
    InvalidColumns,
    InvalidProofState,
    PlayerAlreadyExists,
    PlayerNotFound,
    ProofNotFound,
    VersionConflict,
    VictimAlreadyEliminated,
    make_game_store,
)
from utils.time import now_utc


def _proof(proof_id, submitter_id, target_name):
    return Proof(id=proof_id, submitter_id=submitter_id, target_name=target_name, submitted_at=now_utc())


@pytest.fixture
def players(make_player):
    return [
        make_player("a1", "red", name="Alice", target_id="c1"),
        make_player("c1", "blue", name="Carol", target_id="a1"),
    ]


def test_missing_tables_are_reported(tmp_path):
    async def scenario():
        store = make_game_store(str(tmp_path / "empty.sqlite3"))
        try:
            with pytest.raises(RuntimeError):
                await store.init()
        finally:
            await store.close()

    asyncio.run(scenario())


def test_created_player_has_defaults(run_store):
    async def scenario(store):
        return await store.create_player("p1", name="  Zoë ", class_name="Blue ", email="zoe@example.com")

    player = run_store(scenario)
    assert player["name"] == "Zoë"
    assert player["class_name"] == "Blue"
    assert player["alive"] is True
    assert player["in_game"] is False
    assert player["badges"] == []
    assert player["created_at"] is not None


def test_duplicate_player_is_rejected(run_store):
    async def scenario(store):
        await store.create_player("p1", name="Zoe", class_name="blue", email="zoe@example.com")
        with pytest.raises(PlayerAlreadyExists):
            await store.create_player("p2", name="Zoe", class_name="blue", email="zoe@example.com")
        with pytest.raises(PlayerAlreadyExists):
            await store.create_player("p1", name="Other", class_name="blue")
        return await store.list_players()

    assert [p["id"] for p in run_store(scenario)] == ["p1"]


def test_names_are_matched_without_case(run_store):
    async def scenario(store):
        await store.create_player("p1", name="ÉLODIE", class_name="blue")
        await store.create_player("p2", name="Bob", class_name="blue")
        return await store.find_players_by_name(" élodie ")

    assert [p["id"] for p in run_store(scenario)] == ["p1"]


def test_commit_bumps_version(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        before = (await store.get_game_state())["version"]
        version = await store.commit(ChangeSet(players={"a1": {"kill_count": 3}}), expected_version=before)
        return before, version, await store.get_player("a1")

    before, version, alice = run_store(scenario)
    assert version == before + 1
    assert alice["kill_count"] == 3


def test_stale_version_writes_nothing(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        version = (await store.get_game_state())["version"]
        with pytest.raises(VersionConflict):
            await store.commit(ChangeSet(players={"a1": {"kill_count": 3}}), expected_version=version - 1)
        return version, await store.get_game_state(), await store.get_player("a1")

    version, state, alice = run_store(scenario)
    assert state["version"] == version
    assert alice["kill_count"] == 0


def test_dead_victim_guard_rolls_back_whole_batch(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        await store.commit(ChangeSet(players={"c1": {"alive": False}}))
        changes = ChangeSet(players={"a1": {"kill_count": 1}}, require_alive={"c1"})
        with pytest.raises(VictimAlreadyEliminated):
            await store.commit(changes)
        return await store.get_player("a1")

    assert run_store(scenario)["kill_count"] == 0


def test_reviewed_proof_cannot_be_reviewed_again(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        await store.create_proof(_proof("pr1", "a1", "Carol"))
        review = Verified(reviewer="admin", at=now_utc())
        await store.commit(ChangeSet(proofs={"pr1": review}))
        with pytest.raises(InvalidProofState):
            await store.commit(ChangeSet(proofs={"pr1": review}, players={"a1": {"kill_count": 9}}))
        return await store.get_proof("pr1"), await store.get_player("a1")

    proof, alice = run_store(scenario)
    assert proof.status == "verified"
    assert proof.review.reviewer == "admin"
    assert alice["kill_count"] == 0


def test_unknown_records_are_reported(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        with pytest.raises(PlayerNotFound):
            await store.get_player("nobody")
        with pytest.raises(ProofNotFound):
            await store.get_proof("nothing")
        with pytest.raises(PlayerNotFound):
            await store.commit(ChangeSet(players={"nobody": {"kill_count": 1}}))
        with pytest.raises(PlayerNotFound):
            await store.create_proof(_proof("pr1", "nobody", "Carol"))

    run_store(scenario)


def test_unknown_columns_are_refused(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        with pytest.raises(InvalidColumns):
            await store.commit(ChangeSet(players={"a1": {"password": "x"}}))
        with pytest.raises(InvalidColumns):
            await store.commit(ChangeSet(players={"a1": {"created_at": now_utc()}}))
        with pytest.raises(InvalidColumns):
            await store.set_game_state({"version": 99})
        with pytest.raises(InvalidColumns):
            await store.commit(ChangeSet(bounty={"id": 2}))

    run_store(scenario)


def test_pending_proofs_are_listed_and_cleared(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        await store.create_proof(_proof("pr1", "a1", "Carol"))
        await store.create_proof(_proof("pr2", "c1", "Alice"))
        await store.commit(ChangeSet(proofs={"pr2": Verified(reviewer="admin", at=now_utc())}))
        pending = await store.list_proofs(Pending.status)
        cleared = await store.delete_pending_proofs()
        return pending, cleared, await store.list_proofs()

    pending, cleared, remaining = run_store(scenario)
    assert [p.id for p in pending] == ["pr1"]
    assert cleared == 1
    assert [p.id for p in remaining] == ["pr2"]


def test_reset_keeps_badges_and_pin(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        await store.commit(ChangeSet(
            players={"a1": {"badges": ["thanatos_touch"], "kill_count": 1}, "c1": {"alive": False}},
            game_state={"pin": "2468", "winner_id": "a1"},
            bounty={"active": True, "target_name": "Alice", "prize": "cake", "expires_at": now_utc() + timedelta(minutes=5)},
        ))
        await store.create_proof(_proof("pr1", "a1", "Carol"))
        await store.add_announcement("info", "hello", {}, now_utc())
        await store.reset_game(now_utc())
        return (
            await store.snapshot(),
            await store.list_proofs(),
            await store.list_announcements(),
        )

    snapshot, proofs, announcements = run_store(scenario)
    alice, carol = snapshot.player("a1"), snapshot.player("c1")
    assert alice["badges"] == ["thanatos_touch"]
    assert alice["kill_count"] == 0
    assert alice["target_id"] is None
    assert alice["in_game"] is False
    assert carol["alive"] is True
    assert snapshot.state["started"] is False
    assert snapshot.state["ended"] is True
    assert snapshot.state["winner_id"] is None
    assert snapshot.state["pin"] == "2468"
    assert snapshot.bounty["active"] is False
    assert proofs == []
    assert announcements == []


def test_announcements_come_back_newest_first(run_store):
    async def scenario(store):
        for i in range(3):
            await store.add_announcement("info", f"message {i}", {"n": i}, now_utc())
        return await store.list_announcements(limit=2)

    announcements = run_store(scenario)
    assert [a["message"] for a in announcements] == ["message 2", "message 1"]
    assert announcements[0]["payload"] == {"n": 2}


def test_batch_update_and_alive_query(run_store, seed, players, make_player):
    players.append(make_player("z1", "green", name="Zed", in_game=False))

    async def scenario(store):
        await seed(store, players)
        version = (await store.get_game_state())["version"]
        await store.batch_update([("c1", {"alive": False}), ("a1", {"kill_count": 1})], expected_version=version)
        with pytest.raises(VersionConflict):
            await store.batch_update([("a1", {"kill_count": 5})], expected_version=version)
        return await store.query_alive_in_game(), await store.get_player("a1")

    alive, alice = run_store(scenario)
    assert [p["id"] for p in alive] == ["a1"]
    assert alice["kill_count"] == 1


def test_bounty_creation_time_is_written(run_store, seed, players):
    created = now_utc()

    async def scenario(store):
        await seed(store, players)
        await store.commit(ChangeSet(bounty={
            "active": True,
            "target_name": "Carol",
            "prize": "cake",
            "created_at": created,
            "expires_at": created + timedelta(minutes=30),
        }))
        return await store.get_bounty()

    bounty = run_store(scenario)
    assert bounty["active"] is True
    assert bounty["created_at"] == created
    assert bounty["expires_at"] == created + timedelta(minutes=30)
