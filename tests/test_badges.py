from datetime import timedelta

from services.badges import BADGES, BADGES_BY_ID, context_for, eligible_badges
from services.grouping import by_class
from utils.time import now_utc


def test_catalog_ids_are_unique():
    assert len(BADGES_BY_ID) == len(BADGES) == 10


def test_kill_milestones_are_cumulative(make_player):
    context = context_for([], now=now_utc())
    assert eligible_badges(make_player("a", "x", kill_count=1), context) == ["thanatos_touch"]
    assert eligible_badges(make_player("a", "x", kill_count=3, streak_count=0), context) == [
        "thanatos_touch",
        "erebus_rising",
        "wrath_of_ares",
    ]


def test_badges_already_held_are_not_awarded_again(make_player):
    context = context_for([], now=now_utc())
    player = make_player("a", "x", kill_count=2, badges=["thanatos_touch"])
    assert eligible_badges(player, context) == ["erebus_rising"]


def test_streak_bounty_and_purge_badges(make_player):
    context = context_for([], now=now_utc())
    player = make_player(
        "a", "x",
        kill_count=5, streak_count=2, bounty_kill_count=1, purge_kill_count=3,
        badges=["thanatos_touch", "erebus_rising", "wrath_of_ares"],
    )
    assert eligible_badges(player, context) == [
        "angel_of_death",
        "artemis_vow",
        "hades_unleashed",
        "jack_the_reaper",
        "fury_of_the_fates",
    ]


def test_survival_counts_whole_days_alive(make_player):
    now = now_utc()
    context = context_for([], now=now)
    veteran = make_player("a", "x", joined_at=now - timedelta(days=5, minutes=1))
    newcomer = make_player("b", "x", joined_at=now - timedelta(days=4, hours=23))
    fallen = make_player("c", "x", joined_at=now - timedelta(days=9), alive=False)
    assert eligible_badges(veteran, context) == ["poseidon_blessing"]
    assert eligible_badges(newcomer, context) == []
    assert eligible_badges(fallen, context) == []


def test_winner_and_last_group_standing(make_player):
    players = [make_player("a", "Red"), make_player("b", "red"), make_player("c", "blue", alive=False)]
    context = context_for(players, group_of=by_class, now=now_utc())
    assert context.only_group == "red"
    assert eligible_badges(players[0], context) == ["angel_of_light"]
    assert eligible_badges(players[2], context) == []

    context = context_for([make_player("a", "red"), make_player("c", "blue")], winner_id="c", now=now_utc())
    assert context.only_group is None
    assert eligible_badges(make_player("c", "blue"), context) == ["angel_of_light"]
    assert eligible_badges(make_player("a", "red"), context) == []
