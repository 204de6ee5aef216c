from typing import Dict, List, Optional

import pytest

from juryboard.models.errors import TeamStoreError
from juryboard.models.outcome import RankingOutcome, StoreWrite, TeamUpdate
from juryboard.models.team import Team, TeamId
from juryboard.ranking import rules
from juryboard.ranking.engine import RankingEngine


def make_team(team_id, **fields) -> Team:
    fields.setdefault("name", f"Team {team_id}")
    fields.setdefault("theme", "AI")
    return Team(id=team_id, **fields)


def make_teams(count: int, **fields) -> Dict[TeamId, Team]:
    return {i: make_team(i, **fields) for i in range(1, count + 1)}


class FakeTeamStore:
    """In-memory TeamStore recording every batch of updates it persists."""

    def __init__(self, teams=(), fail: bool = False):
        self.teams: Dict[TeamId, Team] = {t.id: t for t in teams}
        self.batches: List[List[TeamUpdate]] = []
        self.fail = fail

    async def fetch_teams(self) -> List[Team]:
        return list(self.teams.values())

    async def apply_updates(self, updates: List[TeamUpdate]) -> None:
        if self.fail:
            raise TeamStoreError("store unavailable")
        self.batches.append(list(updates))
        self.teams = rules.apply_updates(self.teams, updates)

    # Guarded writes decide against the store's own rows, like the
    # database functions do; there is no await between check and write.

    async def promote(self, team_id: TeamId, capacity: int) -> StoreWrite:
        return self._guarded(rules.promote(self.teams, team_id, capacity=capacity))

    async def assign_rank(self, team_id: TeamId, rank: Optional[int]) -> StoreWrite:
        return self._guarded(rules.assign_rank(self.teams, team_id, rank))

    def _guarded(self, outcome: RankingOutcome) -> StoreWrite:
        if self.fail:
            raise TeamStoreError("store unavailable")
        if outcome.accepted and outcome.changed:
            self.batches.append(list(outcome.updates))
            self.teams = dict(outcome.teams)
        return StoreWrite.from_outcome(outcome)


@pytest.fixture
def teams() -> Dict[TeamId, Team]:
    return {
        1: make_team(1, name="Route Ninjas", theme="Mobility", innovation_score=7, tech_score=8),
        2: make_team(2, name="Green Loop", theme="Sustainability", innovation_score=9, tech_score=9),
        3: make_team(3, name="CivicStack", theme="Citizen Tech", innovation_score=4, tech_score=5),
        4: make_team(4, name="Neural Nest", theme="AI", innovation_score=6, tech_score=6),
    }


@pytest.fixture
def store(teams) -> FakeTeamStore:
    return FakeTeamStore(teams.values())


@pytest.fixture
async def engine(store) -> RankingEngine:
    engine = RankingEngine(store, capacity=20)
    await engine.refresh()
    return engine
