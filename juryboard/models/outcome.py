from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import ChangeType, Rejection
from .team import Team, TeamId


class TeamUpdate(BaseModel):
    """A partial update for one team: the payload of applyTeamUpdate(id, fields)."""

    model_config = ConfigDict(frozen=True)

    team_id: TeamId
    fields: Dict[str, Any]


class RankingOutcome(BaseModel):
    """Result of applying a rule to a snapshot of teams."""

    model_config = ConfigDict(frozen=True)

    accepted: bool
    rejection: Optional[Rejection] = None
    message: str = ""
    updates: List[TeamUpdate] = []
    # The snapshot after the updates; identical to the input when nothing changed
    teams: Dict[TeamId, Team] = Field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.updates)


class TeamChange(BaseModel):
    """A change notification for the teams table coming from the realtime feed."""

    model_config = ConfigDict(frozen=True)

    type: ChangeType
    team: Optional[Team] = None  # New row for INSERT/UPDATE
    team_id: TeamId


class StoreWrite(BaseModel):
    """
    Result of a write the store checked against its own current rows.

    ``teams`` holds every row the write changed, as stored afterwards, in the
    order they were written. It is empty for rejections and no-ops.
    """

    model_config = ConfigDict(frozen=True)

    accepted: bool
    rejection: Optional[Rejection] = None
    message: str = ""
    teams: List[Team] = []

    @classmethod
    def from_outcome(cls, outcome: RankingOutcome) -> "StoreWrite":
        changed_ids = dict.fromkeys(u.team_id for u in outcome.updates)
        return cls(
            accepted=outcome.accepted,
            rejection=outcome.rejection,
            message=outcome.message,
            teams=[outcome.teams[team_id] for team_id in changed_ids],
        )
