import random

import pytest

from routes import games_helpers
from services.announcements import AnnouncementSink, RecordingSink
from services.verification import reject_proof, verify_proof
from stores import (
    AmbiguousPlayerName,
    GameNotStarted,
    InvalidProofState,
    VersionConflict,
    VictimAlreadyEliminated,
    VictimNotFound,
)


@pytest.fixture
def players(make_player):
    return [
        make_player("a1", "red", name="Alice", target_id="c1"),
        make_player("b1", "red", name="Bob", target_id="d1"),
        make_player("c1", "blue", name="Carol", target_id="b1"),
        make_player("d1", "blue", name="Dan", target_id="a1"),
    ]


class RacingStore:
    """Delegates to a real store but moves the version on after each snapshot."""

    def __init__(self, store, races=1):
        self.store = store
        self.races = races

    def __getattr__(self, name):
        return getattr(self.store, name)

    async def snapshot(self):
        snapshot = await self.store.snapshot()
        if self.races:
            self.races -= 1
            await self.store.set_game_state({"pin": "4321"})
        return snapshot


class BrokenSink(AnnouncementSink):
    def publish(self, event):
        raise RuntimeError("broker down")


def test_verify_eliminates_victim_and_repairs_graph(run_store, seed, players):
    sink = RecordingSink()

    async def scenario(store):
        await seed(store, players)
        proof = await games_helpers.submit_proof(store, "a1", "carol", location="Library")
        before = await store.snapshot()
        result = await verify_proof(store, proof["id"], "looks good", announcer=sink, rng=random.Random(0))
        return before, result, await store.snapshot(), await store.get_proof(proof["id"])

    before, result, after, proof = run_store(scenario)
    by_id = {p["id"]: p for p in after.players}

    assert result["killer_id"] == "a1"
    assert result["victim_id"] == "c1"
    assert result["outcome"] == {"kind": "Repaired", "reassigned": {"a1": "d1"}, "targetless": []}
    assert result["badges"] == {"a1": ["thanatos_touch"]}
    assert result["proof"]["status"] == "verified"

    carol = by_id["c1"]
    assert carol["alive"] is False
    assert carol["target_id"] is None
    assert carol["eliminated_by"] == "a1"
    assert carol["death_location"] == "Library"

    alice = by_id["a1"]
    assert alice["kill_count"] == 1
    assert alice["streak_count"] == 1
    assert alice["target_id"] == "d1"
    assert alice["badges"] == ["thanatos_touch"]
    assert alice["last_kill_at"] is not None

    assert proof.status == "verified"
    assert proof.review.notes == "looks good"
    assert after.version == before.version + 1

    assert len(sink.events) == 1
    assert sink.events[0]["kind"] == "elimination"
    assert sink.events[0]["message"].startswith("Alice eliminated Carol")


def test_ambiguous_victim_name_changes_nothing(run_store, seed, players, make_player):
    players += [
        make_player("s1", "red", name="Sam Lee"),
        make_player("s2", "blue", name="sam lee"),
    ]

    async def scenario(store):
        await seed(store, players)
        proof = await games_helpers.submit_proof(store, "a1", "Sam Lee")
        before = await store.snapshot()
        with pytest.raises(AmbiguousPlayerName):
            await verify_proof(store, proof["id"])
        return before, await store.snapshot(), await store.get_proof(proof["id"])

    before, after, proof = run_store(scenario)
    assert after == before
    assert proof.status == "pending"


def test_unknown_victim_is_reported(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        proof = await games_helpers.submit_proof(store, "a1", "Zed")
        with pytest.raises(VictimNotFound):
            await verify_proof(store, proof["id"])

    run_store(scenario)


def test_verifying_twice_fails(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        proof = await games_helpers.submit_proof(store, "a1", "Carol")
        await verify_proof(store, proof["id"])
        after_first = await store.snapshot()
        with pytest.raises(InvalidProofState):
            await verify_proof(store, proof["id"])
        return after_first, await store.snapshot()

    after_first, after_second = run_store(scenario)
    assert after_second == after_first


def test_second_claim_on_same_victim_fails(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        first = await games_helpers.submit_proof(store, "a1", "Carol")
        second = await games_helpers.submit_proof(store, "b1", "Carol")
        await verify_proof(store, first["id"])
        with pytest.raises(VictimAlreadyEliminated):
            await verify_proof(store, second["id"])
        return await store.get_player("b1"), await store.get_proof(second["id"])

    bob, second = run_store(scenario)
    assert bob["kill_count"] == 0
    assert second.status == "pending"


def test_rejecting_twice_fails_and_changes_nothing(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        proof = await games_helpers.submit_proof(store, "a1", "Carol")
        first = await reject_proof(store, proof["id"], "blurry")
        after_first = await store.snapshot()
        with pytest.raises(InvalidProofState):
            await reject_proof(store, proof["id"], "still blurry")
        return first, after_first, await store.snapshot(), await store.get_proof(proof["id"])

    first, after_first, after_second, proof = run_store(scenario)
    assert first["proof"]["status"] == "rejected"
    assert after_second == after_first
    assert proof.status == "rejected"
    assert proof.review.notes == "blurry"
    assert all(p["alive"] for p in after_second.players)


def test_rejected_proof_cannot_be_verified(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        proof = await games_helpers.submit_proof(store, "a1", "Carol")
        await reject_proof(store, proof["id"])
        with pytest.raises(InvalidProofState):
            await verify_proof(store, proof["id"])
        return await store.get_player("c1")

    assert run_store(scenario)["alive"] is True


def test_lost_race_is_recomputed(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        proof = await games_helpers.submit_proof(store, "a1", "Carol")
        await verify_proof(RacingStore(store, races=1), proof["id"])
        return await store.snapshot()

    after = run_store(scenario)
    alice = after.player("a1")
    assert alice["kill_count"] == 1
    assert after.player("c1")["alive"] is False
    assert after.state["pin"] == "4321"


def test_conflict_surfaces_after_every_attempt_loses(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        proof = await games_helpers.submit_proof(store, "a1", "Carol")
        with pytest.raises(VersionConflict):
            await verify_proof(RacingStore(store, races=10), proof["id"])
        return await store.snapshot(), await store.get_proof(proof["id"])

    after, proof = run_store(scenario)
    assert after.player("c1")["alive"] is True
    assert after.player("a1")["kill_count"] == 0
    assert proof.status == "pending"


def test_bounty_kill_is_counted_and_clears_bounty(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        await games_helpers.set_bounty(store, "carol", "Free lunch")
        proof = await games_helpers.submit_proof(store, "a1", "Carol")
        result = await verify_proof(store, proof["id"])
        return result, await store.get_player("a1"), await store.get_bounty()

    result, alice, bounty = run_store(scenario)
    assert result["bounty_kill"] is True
    assert alice["bounty_kill_count"] == 1
    assert "artemis_vow" in alice["badges"]
    assert bounty["active"] is False


def test_bounty_on_someone_else_is_not_claimed(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        await games_helpers.set_bounty(store, "Dan", "Free lunch")
        proof = await games_helpers.submit_proof(store, "a1", "Carol")
        result = await verify_proof(store, proof["id"])
        return result, await store.get_bounty()

    result, bounty = run_store(scenario)
    assert result["bounty_kill"] is False
    assert bounty["active"] is True


def test_purge_kill_skips_graph_repair(run_store, seed, players):
    async def scenario(store):
        await seed(store, players, purge_mode=True)
        proof = await games_helpers.submit_proof(store, "b1", "Carol")
        result = await verify_proof(store, proof["id"])
        return result, await store.snapshot()

    result, after = run_store(scenario)
    bob = after.player("b1")
    assert result["purge_kill"] is True
    assert result["outcome"] is None
    assert bob["purge_kill_count"] == 1
    assert bob["target_id"] == "d1"
    assert "hades_unleashed" in bob["badges"]
    # Alice still points at Carol until purge mode ends
    assert after.player("a1")["target_id"] == "c1"


def test_last_kill_declares_winner(run_store, seed, make_player):
    players = [
        make_player("a1", "red", name="Alice", target_id="c1"),
        make_player("c1", "blue", name="Carol", target_id="a1"),
    ]

    async def scenario(store):
        await seed(store, players)
        proof = await games_helpers.submit_proof(store, "a1", "Carol")
        result = await verify_proof(store, proof["id"])
        return result, await store.snapshot()

    result, after = run_store(scenario)
    alice = after.player("a1")
    assert result["outcome"] == {"kind": "GameOver", "winner_id": "a1"}
    assert alice["is_winner"] is True
    assert alice["target_id"] is None
    assert after.state["winner_id"] == "a1"
    assert set(result["badges"]["a1"]) == {"thanatos_touch", "angel_of_light"}


def test_verification_requires_a_running_game(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        proof = await games_helpers.submit_proof(store, "a1", "Carol")
        await store.set_game_state({"started": False})
        with pytest.raises(GameNotStarted):
            await verify_proof(store, proof["id"])

    run_store(scenario)


def test_self_kill_claim_is_refused(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        proof = await games_helpers.submit_proof(store, "a1", "Alice")
        with pytest.raises(InvalidProofState):
            await verify_proof(store, proof["id"])

    run_store(scenario)


def test_failed_announcement_does_not_undo_the_kill(run_store, seed, players):
    async def scenario(store):
        await seed(store, players)
        proof = await games_helpers.submit_proof(store, "a1", "Carol")
        await verify_proof(store, proof["id"], announcer=BrokenSink())
        return await store.get_player("c1")

    assert run_store(scenario)["alive"] is False
