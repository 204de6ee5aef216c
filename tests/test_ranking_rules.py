import random

import pytest

from juryboard.models.enums import Rejection
from juryboard.models.errors import TeamNotFoundError
from juryboard.ranking import rules
from tests.conftest import make_team, make_teams


def promoted(teams, *ids):
    for team_id in ids:
        teams = rules.promote(teams, team_id).teams
    return teams


# --- promote ---


def test_promote_sets_flag(teams):
    outcome = rules.promote(teams, 1)

    assert outcome.accepted
    assert outcome.teams[1].is_top20
    assert [u.fields for u in outcome.updates] == [{"is_top20": True}]
    assert not teams[1].is_top20  # input untouched


def test_promote_is_idempotent(teams):
    once = rules.promote(teams, 1)
    twice = rules.promote(once.teams, 1)

    assert twice.accepted
    assert twice.updates == []
    assert twice.teams == once.teams


def test_twenty_first_promotion_is_rejected():
    teams = promoted(make_teams(21), *range(1, 21))
    assert rules.top20_count(teams) == 20

    outcome = rules.promote(teams, 21)

    assert not outcome.accepted
    assert outcome.rejection == Rejection.CAPACITY_EXCEEDED
    assert outcome.message == "Top 20 Full"
    assert outcome.updates == []
    assert rules.top20_count(outcome.teams) == 20
    assert not outcome.teams[21].is_top20


def test_promote_respects_custom_capacity(teams):
    teams = promoted(teams, 1, 2)
    outcome = rules.promote(teams, 3, capacity=2)
    assert outcome.rejection == Rejection.CAPACITY_EXCEEDED
    assert outcome.message == "Top 2 Full"


def test_promote_unknown_team_raises(teams):
    with pytest.raises(TeamNotFoundError) as exc_info:
        rules.promote(teams, 99)
    assert exc_info.value.team_id == 99


# --- demote ---


def test_demote_clears_rank_in_same_update(teams):
    teams = promoted(teams, 1)
    teams = rules.assign_rank(teams, 1, 2).teams

    outcome = rules.demote(teams, 1)

    assert outcome.accepted
    assert outcome.teams[1].is_top20 is False
    assert outcome.teams[1].rank is None
    assert len(outcome.updates) == 1
    assert outcome.updates[0].fields == {"is_top20": False, "rank": None}


def test_demote_is_idempotent(teams):
    outcome = rules.demote(teams, 3)
    assert outcome.accepted
    assert outcome.updates == []


def test_demote_repairs_stray_rank(teams):
    teams = dict(teams)
    teams[3] = make_team(3, rank=1)  # rank without Top 20 membership

    outcome = rules.demote(teams, 3)

    assert outcome.teams[3].rank is None
    assert outcome.changed


# --- assign_rank ---


def test_assign_rank_takes_rank_from_previous_holder(teams):
    teams = promoted(teams, 1, 2)
    teams = rules.assign_rank(teams, 1, 1).teams

    outcome = rules.assign_rank(teams, 2, 1)

    assert outcome.accepted
    assert outcome.teams[1].rank is None
    assert outcome.teams[2].rank == 1
    # previous holder is cleared first
    assert [(u.team_id, u.fields) for u in outcome.updates] == [
        (1, {"rank": None}),
        (2, {"rank": 1}),
    ]


def test_assign_rank_moves_team_between_ranks(teams):
    teams = promoted(teams, 1)
    teams = rules.assign_rank(teams, 1, 1).teams

    outcome = rules.assign_rank(teams, 1, 3)

    assert outcome.teams[1].rank == 3
    assert rules.podium(outcome.teams) == {1: None, 2: None, 3: outcome.teams[1]}


def test_assign_rank_requires_top20(teams):
    teams = promoted(teams, 1)
    teams = rules.assign_rank(teams, 1, 1).teams

    outcome = rules.assign_rank(teams, 3, 1)

    assert not outcome.accepted
    assert outcome.rejection == Rejection.PRECONDITION_FAILED
    assert outcome.updates == []
    assert outcome.teams[1].rank == 1
    assert outcome.teams[3].rank is None


@pytest.mark.parametrize("bad_rank", [0, 4, -1, True, "1", 1.0])
def test_assign_rank_rejects_invalid_rank(teams, bad_rank):
    teams = promoted(teams, 1)

    outcome = rules.assign_rank(teams, 1, bad_rank)

    assert outcome.rejection == Rejection.INVALID_RANK
    assert outcome.teams == teams


def test_assign_none_clears_only_own_rank(teams):
    teams = promoted(teams, 1, 2)
    teams = rules.assign_rank(teams, 1, 1).teams
    teams = rules.assign_rank(teams, 2, 2).teams

    outcome = rules.assign_rank(teams, 1, None)

    assert outcome.teams[1].rank is None
    assert outcome.teams[2].rank == 2
    assert len(outcome.updates) == 1


def test_assign_same_rank_is_noop(teams):
    teams = promoted(teams, 1)
    teams = rules.assign_rank(teams, 1, 2).teams

    outcome = rules.assign_rank(teams, 1, 2)

    assert outcome.accepted
    assert outcome.updates == []


def test_assign_rank_unknown_team_raises(teams):
    with pytest.raises(TeamNotFoundError):
        rules.assign_rank(teams, "missing", 1)


# --- leaderboard / podium ---


def test_leaderboard_orders_ranked_before_unranked():
    teams = {
        1: make_team(1, is_top20=True, innovation_score=10, tech_score=10),
        2: make_team(2, is_top20=True, rank=2, innovation_score=1, tech_score=1),
        3: make_team(3, is_top20=True, rank=1, innovation_score=3, tech_score=3),
        4: make_team(4, is_top20=True, innovation_score=5, tech_score=5),
        5: make_team(5, is_top20=False, innovation_score=10, tech_score=10),
    }

    order = [t.id for t in rules.leaderboard(teams)]

    assert order == [3, 2, 1, 4]


def test_leaderboard_breaks_score_ties_by_id():
    teams = {
        "b": make_team("b", is_top20=True, innovation_score=5, tech_score=5),
        10: make_team(10, is_top20=True, innovation_score=5, tech_score=5),
        "a": make_team("a", is_top20=True, innovation_score=5, tech_score=5),
        2: make_team(2, is_top20=True, innovation_score=5, tech_score=5),
    }

    assert [t.id for t in rules.leaderboard(teams)] == [2, 10, "a", "b"]


def test_leaderboard_is_independent_of_collection_order():
    teams = {
        i: make_team(i, is_top20=True, innovation_score=i % 4, tech_score=i % 3)
        for i in range(1, 15)
    }
    items = list(teams.items())
    random.Random(7).shuffle(items)

    assert rules.leaderboard(dict(items)) == rules.leaderboard(teams)


def test_podium_reports_unassigned_places(teams):
    teams = promoted(teams, 1)
    teams = rules.assign_rank(teams, 1, 2).teams

    assert rules.podium(teams) == {1: None, 2: teams[1], 3: None}


# --- invariants under arbitrary operation sequences ---


def test_random_operation_sequences_keep_invariants():
    rng = random.Random(42)
    teams = make_teams(30)

    for _ in range(2000):
        team_id = rng.randint(1, 30)
        op = rng.choice(["promote", "demote", "rank"])
        if op == "promote":
            teams = rules.promote(teams, team_id).teams
        elif op == "demote":
            teams = rules.demote(teams, team_id).teams
            assert teams[team_id].rank is None
        else:
            teams = rules.assign_rank(teams, team_id, rng.choice([1, 2, 3, None])).teams

        assert rules.check_invariants(teams) == []


def test_check_invariants_reports_violations():
    teams = {
        1: make_team(1, is_top20=True, rank=1),
        2: make_team(2, is_top20=True, rank=1),
        3: make_team(3, rank=2),
    }

    violations = rules.check_invariants(teams, capacity=1)

    assert len(violations) == 3
    assert any("capacity 1" in v for v in violations)
    assert any("Rank 1 held by 2 teams" in v for v in violations)
    assert any("without being in the Top 20" in v for v in violations)
