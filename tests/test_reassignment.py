import random

import pytest

from models.domain_models import GameOver, Repaired, SingleGroupRemaining
from services.assignment import assign_all
from services.grouping import by_class
from services.reassignment import on_eliminated
from services.target_graph import assassins_of, edges_of, violations


def _apply(players, changes):
    by_id = {p["id"]: p for p in players}
    for player_id, fields in changes.players.items():
        by_id[player_id].update(fields)
    return players


@pytest.fixture
def four_players(make_player):
    # A, B in x; C, D in y; no mutual pairs
    return [
        make_player("A", "x", target_id="C"),
        make_player("B", "x", target_id="D"),
        make_player("C", "y", target_id="B"),
        make_player("D", "y", target_id="A"),
    ]


def test_hunter_of_victim_moves_to_only_remaining_candidate(four_players):
    victim = four_players[2]
    plan = on_eliminated(victim, four_players, by_class, rng=random.Random(0))

    assert plan.outcome == Repaired(reassigned={"A": "D"}, targetless=[])
    assert plan.changes.players["A"]["target_id"] == "D"
    assert plan.changes.players["C"] == {"alive": False, "target_id": None, "assigned_at": None}
    # B and D were never touched
    assert "B" not in plan.changes.players
    assert "D" not in plan.changes.players


def test_last_two_players_produce_a_winner(make_player):
    players = [make_player("A", "x", target_id="C"), make_player("C", "y", target_id="A")]
    plan = on_eliminated(players[1], players, by_class)

    assert plan.outcome == GameOver("A")
    assert plan.changes.players["A"]["is_winner"] is True
    assert plan.changes.players["A"]["target_id"] is None
    assert plan.changes.game_state["winner_id"] == "A"
    assert plan.changes.players["C"]["alive"] is False


def test_single_group_left_clears_every_target(make_player):
    players = [
        make_player("A", "x", target_id="C"),
        make_player("B", "x", target_id="C"),
        make_player("C", "y", target_id="A"),
    ]
    plan = on_eliminated(players[2], players, by_class)

    assert plan.outcome == SingleGroupRemaining("x", ["A", "B"])
    assert plan.changes.players["A"]["target_id"] is None
    assert plan.changes.players["B"]["target_id"] is None
    assert "winner_id" not in plan.changes.game_state


def test_inherited_target_is_preferred(make_player):
    players = [
        make_player("A", "x", target_id="C"),
        make_player("B", "x", target_id="D"),
        make_player("C", "y", target_id="E"),
        make_player("D", "y", target_id="F"),
        make_player("E", "z", target_id="B"),
        make_player("F", "z", target_id="A"),
    ]
    plan = on_eliminated(players[2], players, by_class, rng=random.Random(0))
    assert plan.outcome.reassigned == {"A": "E"}


def test_inherited_target_hunting_the_hunter_is_passed_over(make_player):
    # A inherits B from V, but B already hunts A
    players = [
        make_player("A", "x", target_id="V"),
        make_player("V", "y", target_id="B"),
        make_player("B", "z", target_id="A"),
        make_player("D", "y", target_id="B"),
    ]
    plan = on_eliminated(players[1], players, by_class, rng=random.Random(0))
    assert plan.outcome.reassigned == {"A": "D"}


def test_inherited_mutual_target_is_taken_when_nothing_else_is_left(make_player):
    players = [
        make_player("A", "x", target_id="V"),
        make_player("V", "y", target_id="B"),
        make_player("B", "z", target_id="A"),
        make_player("C", "x", target_id="B"),
    ]
    plan = on_eliminated(players[1], players, by_class, rng=random.Random(0))
    assert plan.outcome.reassigned == {"A": "B"}


def test_unhunted_candidate_when_inherited_target_is_in_own_group(make_player):
    players = [
        make_player("A", "x", target_id="C"),
        make_player("B", "x", target_id="D"),
        make_player("C", "y", target_id="B"),
        make_player("D", "y", target_id="E"),
        make_player("E", "z", target_id="B"),
        make_player("F", "z", target_id="D"),
    ]
    plan = on_eliminated(players[2], players, by_class, rng=random.Random(0))
    assert plan.outcome.reassigned == {"A": "F"}


def test_every_hunter_of_the_victim_is_repaired(make_player):
    players = [
        make_player("A", "x", target_id="E"),
        make_player("B", "x", target_id="E"),
        make_player("C", "y", target_id="E"),
        make_player("D", "y", target_id="A"),
        make_player("E", "z", target_id="C"),
        make_player("F", "z", target_id="B"),
    ]
    plan = on_eliminated(players[4], players, by_class, rng=random.Random(4))
    _apply(players, plan.changes)

    assert set(plan.outcome.reassigned) == {"A", "B", "C"}
    assert assassins_of(edges_of(players), "E") == []
    assert violations(players, by_class) == []


def test_purge_mode_leaves_edges_alone(four_players):
    plan = on_eliminated(four_players[2], four_players, by_class, purge_mode=True)
    assert plan.outcome == Repaired()
    assert list(plan.changes.players) == ["C"]


def test_no_survivors_is_reported_without_error(make_player):
    players = [make_player("A", "x", target_id="C"), make_player("C", "y", alive=False)]
    plan = on_eliminated(players[0], players, by_class)
    assert plan.outcome == Repaired()
    assert plan.changes.players["A"]["alive"] is False


@pytest.mark.parametrize("seed", range(10))
def test_repeated_eliminations_keep_the_graph_valid(make_player, seed):
    rng = random.Random(seed)
    players = [make_player(f"{group}{i}", group) for group in ("red", "blue", "green") for i in range(4)]
    assignment = assign_all(players, by_class, rng)
    for p in players:
        p["target_id"] = assignment.targets[p["id"]]

    while True:
        alive = [p for p in players if p["alive"]]
        victim = rng.choice(alive)
        plan = on_eliminated(victim, players, by_class, rng=rng)
        _apply(players, plan.changes)

        assert assassins_of(edges_of(players), victim["id"]) == []
        assert violations(players, by_class) == []
        if not isinstance(plan.outcome, Repaired):
            break

    survivors = [p for p in players if p["alive"]]
    if isinstance(plan.outcome, GameOver):
        assert len(survivors) == 1
        assert survivors[0]["is_winner"] is True
    else:
        assert len({by_class(p) for p in survivors}) == 1
    assert all(p["target_id"] is None for p in survivors)
