"""Jury scoring and participant milestone rules."""
from typing import Any, Mapping, NamedTuple, Optional

from juryboard.models.enums import Rejection
from juryboard.models.outcome import RankingOutcome, TeamUpdate
from juryboard.models.team import Team, TeamId
from juryboard.ranking.rules import (
    accept_outcome,
    get_team,
    noop_outcome,
    reject_outcome,
)

MIN_SCORE = 0
MAX_SCORE = 10
MILESTONE_STEP = 25


class Milestone(NamedTuple):
    value: int
    label: str
    description: str


MILESTONES = (
    Milestone(25, "Ideation Complete", "Problem statement finalized & solution designed"),
    Milestone(50, "MVP Built", "Core prototype functional and testable"),
    Milestone(75, "Integration Done", "All features connected and working end-to-end"),
    Milestone(100, "Submission Ready", "Polished, documented, and demo-ready"),
)


def _is_valid_score(value: Any) -> bool:
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and MIN_SCORE <= value <= MAX_SCORE
    )


def record_scores(
    teams: Mapping[TeamId, Team],
    team_id: TeamId,
    innovation: Optional[int] = None,
    tech: Optional[int] = None,
) -> RankingOutcome:
    """Sets one or both jury scores of a team."""
    team = get_team(teams, team_id)

    fields = {}
    for field, value in (("innovation_score", innovation), ("tech_score", tech)):
        if value is None:
            continue
        if not _is_valid_score(value):
            return reject_outcome(
                teams,
                Rejection.INVALID_SCORE,
                f"{field} must be an integer between {MIN_SCORE} and {MAX_SCORE}, got {value!r}",
            )
        if getattr(team, field) != value:
            fields[field] = value

    if not fields:
        return noop_outcome(teams, f"Scores of {team.name} unchanged")

    return accept_outcome(
        teams,
        [TeamUpdate(team_id=team.id, fields=fields)],
        f"Scored {team.name}: "
        + ", ".join(f"{k}={v}" for k, v in sorted(fields.items())),
    )


def next_milestone(team: Team) -> Optional[Milestone]:
    for milestone in MILESTONES:
        if milestone.value == team.milestone_progress + MILESTONE_STEP:
            return milestone
    return None


def advance_milestone(
    teams: Mapping[TeamId, Team], team_id: TeamId, milestone: int
) -> RankingOutcome:
    """Marks the next milestone of a team. Only the immediate next step is accepted."""
    team = get_team(teams, team_id)

    expected = next_milestone(team)
    if expected is None or milestone != expected.value:
        return reject_outcome(
            teams,
            Rejection.INVALID_MILESTONE,
            f"{team.name} is at {team.milestone_progress}%, "
            + (
                f"next milestone is {expected.value}%"
                if expected
                else "all milestones are complete"
            ),
        )

    return accept_outcome(
        teams,
        [TeamUpdate(team_id=team.id, fields={"milestone_progress": expected.value})],
        f"{team.name} reached {expected.label} ({expected.value}%)",
    )
