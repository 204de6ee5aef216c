import asyncio
import inspect
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from loguru import logger

from juryboard.config.settings import settings
from juryboard.models.enums import ChangeType, Rejection
from juryboard.models.outcome import RankingOutcome, StoreWrite, TeamChange, TeamUpdate
from juryboard.models.team import RANKS, Team, TeamId
from juryboard.ranking import rules
from juryboard.scoring import rules as scoring_rules

Observer = Callable[[int, Dict[TeamId, Team]], Any]


class TeamStore(Protocol):
    """
    Storage collaborator: where accepted updates are persisted.

    ``apply_updates`` writes partial updates as they are. Promotions and rank
    assignments go through ``promote`` and ``assign_rank``, which the store
    checks and writes in one atomic step against its own rows, so jury
    sessions with separate snapshots can never push the Top 20 over capacity
    or leave two holders of a rank.
    """

    async def fetch_teams(self) -> List[Team]: ...

    async def apply_updates(self, updates: List[TeamUpdate]) -> None: ...

    async def promote(self, team_id: TeamId, capacity: int) -> StoreWrite: ...

    async def assign_rank(
        self, team_id: TeamId, rank: Optional[int]
    ) -> StoreWrite: ...


def changed_fields(old: Optional[Team], new: Team) -> Dict[str, Any]:
    """Model fields that differ between two versions of a team."""
    fields = new.model_dump(exclude={"total_score"})
    if old is None:
        return fields
    return {name: value for name, value in fields.items() if getattr(old, name) != value}


class RankingEngine:
    """
    Single owner of the shared team collection.

    Writers are serialized by an asyncio lock. Demotions, scores and
    milestones run their rule against the latest snapshot, persist the
    resulting updates and only then swap the snapshot in. Promotions and rank
    assignments are decided by the store, since other jury sessions write to
    it too; the rows it reports back are folded in. A failing store leaves
    the snapshot untouched. Observers are called with (version, snapshot) after
    every change, local or remote.
    """

    def __init__(
        self,
        store: TeamStore,
        teams: Iterable[Team] = (),
        capacity: Optional[int] = None,
    ):
        self.store = store
        self.capacity = (
            capacity if capacity is not None else settings.top20_capacity
        )
        self._teams: Dict[TeamId, Team] = {team.id: team for team in teams}
        self._lock = asyncio.Lock()
        self._observers: List[Observer] = []
        self.version = 0

    # --- Read side ---

    def snapshot(self) -> Dict[TeamId, Team]:
        return dict(self._teams)

    def get(self, team_id: TeamId) -> Team:
        return rules.get_team(self._teams, team_id)

    def leaderboard(self) -> List[Team]:
        return rules.leaderboard(self._teams)

    def podium(self) -> Dict[int, Optional[Team]]:
        return rules.podium(self._teams)

    def top20_count(self) -> int:
        return rules.top20_count(self._teams)

    # --- Observers ---

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Registers an observer; returns a callable that removes it again."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    async def _notify(self, version: int, snapshot: Dict[TeamId, Team]) -> None:
        for observer in list(self._observers):
            try:
                result = observer(version, dict(snapshot))
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Observer {observer!r} failed for version {version}")

    # --- Loading ---

    async def refresh(self) -> None:
        """Replaces the snapshot with a full fetch from the store."""
        await self.load(await self.store.fetch_teams())

    async def load(self, teams: Iterable[Team]) -> None:
        """Replaces the snapshot with the given teams."""
        async with self._lock:
            self._teams = {team.id: team for team in teams}
            self.version += 1
            version, snapshot = self.version, self.snapshot()
        violations = rules.check_invariants(snapshot, self.capacity)
        for violation in violations:
            logger.warning(f"Loaded snapshot is inconsistent: {violation}")
        logger.info(f"[v{version}] Loaded {len(snapshot)} teams")
        await self._notify(version, snapshot)

    # --- Write side ---

    async def _run(self, rule: Callable[..., RankingOutcome], *args, **kwargs):
        async with self._lock:
            outcome = rule(self._teams, *args, **kwargs)
            if not outcome.accepted:
                logger.warning(f"Rejected {rule.__name__}: {outcome.message}")
                return outcome
            if not outcome.changed:
                logger.debug(f"No-op {rule.__name__}: {outcome.message}")
                return outcome

            await self.store.apply_updates(outcome.updates)
            self._teams = dict(outcome.teams)
            self.version += 1
            version, snapshot = self.version, self.snapshot()
            logger.info(f"[v{version}] {outcome.message}")

        await self._notify(version, snapshot)
        return outcome

    async def _run_guarded(
        self, name: str, write: Callable[..., Any], *args
    ) -> RankingOutcome:
        """
        Runs a write the store checks against its own rows.

        The local snapshot may be stale, so it is not consulted: whatever
        the store accepted is folded in row by row, the same way a remote
        change is.
        """
        async with self._lock:
            result: StoreWrite = await write(*args)
            if not result.accepted:
                logger.warning(f"Rejected {name}: {result.message}")
                return RankingOutcome(
                    accepted=False,
                    rejection=result.rejection,
                    message=result.message,
                    teams=self.snapshot(),
                )
            if not result.teams:
                logger.debug(f"No-op {name}: {result.message}")
                return rules.noop_outcome(self._teams, result.message)

            teams = dict(self._teams)
            updates = []
            for team in result.teams:
                fields = changed_fields(teams.get(team.id), team)
                if fields:
                    updates.append(TeamUpdate(team_id=team.id, fields=fields))
                teams = self._fold_team(teams, team)
            self._teams = teams
            self.version += 1
            version, snapshot = self.version, self.snapshot()
            logger.info(f"[v{version}] {result.message}")

        await self._notify(version, snapshot)
        return RankingOutcome(
            accepted=True, message=result.message, updates=updates, teams=snapshot
        )

    async def promote(self, team_id: TeamId) -> RankingOutcome:
        return await self._run_guarded(
            "promote", self.store.promote, team_id, self.capacity
        )

    async def demote(self, team_id: TeamId) -> RankingOutcome:
        return await self._run(rules.demote, team_id)

    async def assign_rank(
        self, team_id: TeamId, rank: Optional[int]
    ) -> RankingOutcome:
        if not rules.is_valid_rank(rank):
            return rules.reject_outcome(
                self._teams,
                Rejection.INVALID_RANK,
                f"Rank {rank!r} is not one of {RANKS} or None",
            )
        return await self._run_guarded(
            "assign_rank", self.store.assign_rank, team_id, rank
        )

    async def record_scores(
        self,
        team_id: TeamId,
        innovation: Optional[int] = None,
        tech: Optional[int] = None,
    ) -> RankingOutcome:
        return await self._run(
            scoring_rules.record_scores, team_id, innovation=innovation, tech=tech
        )

    async def advance_milestone(
        self, team_id: TeamId, milestone: int
    ) -> RankingOutcome:
        return await self._run(scoring_rules.advance_milestone, team_id, milestone)

    # --- Remote changes ---

    @staticmethod
    def _fold_team(teams: Dict[TeamId, Team], incoming: Team) -> Dict[TeamId, Team]:
        teams = dict(teams)
        if incoming.rank is not None and not incoming.is_top20:
            logger.warning(
                f"Team {incoming.id!r} arrived with rank {incoming.rank} "
                "outside the Top 20, clearing it"
            )
            incoming = incoming.model_copy(update={"rank": None})

        # The incoming row is the latest write: it wins its rank
        if incoming.rank is not None:
            holder = rules.rank_holder(teams, incoming.rank, exclude=incoming.id)
            if holder is not None:
                logger.debug(
                    f"Rank {incoming.rank} moved from {holder.id!r} to {incoming.id!r}"
                )
                teams[holder.id] = holder.model_copy(update={"rank": None})

        teams[incoming.id] = incoming
        return teams

    def _fold_change(self, change: TeamChange) -> Dict[TeamId, Team]:
        if change.type == ChangeType.DELETE:
            teams = dict(self._teams)
            if teams.pop(change.team_id, None) is None:
                logger.debug(f"Delete for unknown team {change.team_id!r} ignored")
            return teams
        return self._fold_team(self._teams, change.team)

    async def apply_remote_change(self, change: TeamChange) -> None:
        """Folds a realtime change into the snapshot, last writer wins."""
        async with self._lock:
            self._teams = self._fold_change(change)
            self.version += 1
            version, snapshot = self.version, self.snapshot()
        logger.debug(f"[v{version}] Remote {change.type.value} for team {change.team_id!r}")

        for violation in rules.check_invariants(snapshot, self.capacity):
            logger.warning(f"Inconsistent state after remote change: {violation}")
        await self._notify(version, snapshot)
