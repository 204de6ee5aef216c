"""
Pure Top-20 / podium rules over a snapshot of teams.

Every rule takes a mapping of team id -> Team and returns a RankingOutcome.
The input mapping is never mutated: accepted outcomes carry a fresh dict with
the changed teams replaced, rejected outcomes carry the input unchanged and
no updates. The only exception raised is TeamNotFoundError for unknown ids.
"""
from typing import Any, Dict, List, Mapping, Optional, Tuple

from loguru import logger

from juryboard.models.enums import Rejection
from juryboard.models.errors import TeamNotFoundError
from juryboard.models.outcome import RankingOutcome, TeamUpdate
from juryboard.models.team import RANKS, Team, TeamId

DEFAULT_CAPACITY = 20


def get_team(teams: Mapping[TeamId, Team], team_id: TeamId) -> Team:
    team = teams.get(team_id)
    if team is None:
        raise TeamNotFoundError(team_id)
    return team


def noop_outcome(
    teams: Mapping[TeamId, Team], message: str = ""
) -> RankingOutcome:
    return RankingOutcome(accepted=True, message=message, teams=dict(teams))


def reject_outcome(
    teams: Mapping[TeamId, Team], rejection: Rejection, message: str
) -> RankingOutcome:
    logger.debug(f"Rejected ({rejection.value}): {message}")
    return RankingOutcome(
        accepted=False, rejection=rejection, message=message, teams=dict(teams)
    )


def apply_updates(
    teams: Mapping[TeamId, Team], updates: List[TeamUpdate]
) -> Dict[TeamId, Team]:
    """Returns a new snapshot with the updates applied in order."""
    new_teams = dict(teams)
    for update in updates:
        new_teams[update.team_id] = new_teams[update.team_id].model_copy(
            update=update.fields
        )
    return new_teams


def accept_outcome(
    teams: Mapping[TeamId, Team], updates: List[TeamUpdate], message: str = ""
) -> RankingOutcome:
    return RankingOutcome(
        accepted=True,
        message=message,
        updates=updates,
        teams=apply_updates(teams, updates),
    )


def top20_count(teams: Mapping[TeamId, Team]) -> int:
    return sum(1 for t in teams.values() if t.is_top20)


def is_valid_rank(rank: Any) -> bool:
    # bool is an int subclass; True must not pass as rank 1
    if rank is None:
        return True
    return isinstance(rank, int) and not isinstance(rank, bool) and rank in RANKS


def rank_holder(
    teams: Mapping[TeamId, Team], rank: int, exclude: Optional[TeamId] = None
) -> Optional[Team]:
    for team in teams.values():
        if team.rank == rank and team.id != exclude:
            return team
    return None


def promote(
    teams: Mapping[TeamId, Team], team_id: TeamId, capacity: int = DEFAULT_CAPACITY
) -> RankingOutcome:
    """Adds a team to the Top 20 if a slot is free."""
    team = get_team(teams, team_id)
    if team.is_top20:
        return noop_outcome(teams, f"{team.name} is already in the Top 20")

    count = top20_count(teams)
    if count >= capacity:
        return reject_outcome(
            teams, Rejection.CAPACITY_EXCEEDED, f"Top {capacity} Full"
        )

    return accept_outcome(
        teams,
        [TeamUpdate(team_id=team.id, fields={"is_top20": True})],
        f"{team.name} promoted to Top 20 ({count + 1}/{capacity})",
    )


def demote(teams: Mapping[TeamId, Team], team_id: TeamId) -> RankingOutcome:
    """Removes a team from the Top 20. Its rank goes with it in the same update."""
    team = get_team(teams, team_id)
    if not team.is_top20 and team.rank is None:
        return noop_outcome(teams, f"{team.name} is not in the Top 20")

    return accept_outcome(
        teams,
        [TeamUpdate(team_id=team.id, fields={"is_top20": False, "rank": None})],
        f"{team.name} removed from Top 20",
    )


def assign_rank(
    teams: Mapping[TeamId, Team], team_id: TeamId, rank: Optional[int]
) -> RankingOutcome:
    """
    Gives a shortlisted team a final rank, taking it away from any previous holder.

    Clearing (rank=None) only touches the team itself. Setting a rank produces
    up to two updates, the previous holder's clear first, so that storage that
    enforces one holder per rank never sees two at once.
    """
    team = get_team(teams, team_id)

    if not is_valid_rank(rank):
        return reject_outcome(
            teams, Rejection.INVALID_RANK, f"Rank {rank!r} is not one of {RANKS} or None"
        )

    if rank is None:
        if team.rank is None:
            return noop_outcome(teams, f"{team.name} has no rank")
        return accept_outcome(
            teams,
            [TeamUpdate(team_id=team.id, fields={"rank": None})],
            f"Cleared rank of {team.name}",
        )

    if not team.is_top20:
        return reject_outcome(
            teams,
            Rejection.PRECONDITION_FAILED,
            f"{team.name} must be in the Top 20 before it can be ranked",
        )

    if team.rank == rank:
        return noop_outcome(teams, f"{team.name} already holds rank {rank}")

    updates = []
    holder = rank_holder(teams, rank, exclude=team.id)
    if holder is not None:
        updates.append(TeamUpdate(team_id=holder.id, fields={"rank": None}))
    updates.append(TeamUpdate(team_id=team.id, fields={"rank": rank}))

    message = f"{team.name} ranked {rank}"
    if holder is not None:
        message += f" (replacing {holder.name})"
    return accept_outcome(teams, updates, message)


def _id_sort_key(team_id: TeamId) -> Tuple[int, Any]:
    # Ints and strings are not comparable; keep ints first
    if isinstance(team_id, int):
        return (0, team_id)
    return (1, str(team_id))


def leaderboard_key(team: Team) -> Tuple:
    """Ranked teams by rank, then unranked by total score (desc), then id."""
    if team.rank is not None:
        return (0, team.rank, 0, _id_sort_key(team.id))
    return (1, 0, -team.total_score, _id_sort_key(team.id))


def leaderboard(teams: Mapping[TeamId, Team]) -> List[Team]:
    return sorted((t for t in teams.values() if t.is_top20), key=leaderboard_key)


def podium(teams: Mapping[TeamId, Team]) -> Dict[int, Optional[Team]]:
    """Holder of each rank, or None when the rank is unassigned."""
    return {r: rank_holder(teams, r) for r in RANKS}


def check_invariants(
    teams: Mapping[TeamId, Team], capacity: int = DEFAULT_CAPACITY
) -> List[str]:
    """Describes every invariant violation in the snapshot. Empty means consistent."""
    violations = []

    count = top20_count(teams)
    if count > capacity:
        violations.append(f"{count} teams in the Top 20 (capacity {capacity})")

    for r in RANKS:
        holders = [t.id for t in teams.values() if t.rank == r]
        if len(holders) > 1:
            violations.append(f"Rank {r} held by {len(holders)} teams: {holders}")

    for team in teams.values():
        if team.rank is not None and not team.is_top20:
            violations.append(
                f"Team {team.id!r} holds rank {team.rank} without being in the Top 20"
            )

    return violations
