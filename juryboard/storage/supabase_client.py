# juryboard/storage/supabase_client.py
from typing import Any, Dict, List, Mapping, Optional

from loguru import logger
from supabase import create_async_client, AsyncClient
from postgrest import APIResponse
from postgrest.exceptions import APIError

from juryboard.config.settings import settings
from juryboard.models.errors import TeamNotFoundError, TeamStoreError
from juryboard.models.outcome import StoreWrite, TeamUpdate
from juryboard.models.team import Team, TeamId
from juryboard.storage.records import fields_to_columns, team_from_row

# Postgres functions from supabase/migrations; both lock the ranking state
# for the length of their transaction
PROMOTE_FUNCTION = "jury_promote"
ASSIGN_RANK_FUNCTION = "jury_assign_rank"
NOT_FOUND = "not_found"

# Module-level storage for the async client instance
_async_supabase_client: Optional[AsyncClient] = None


async def initialize_supabase() -> Optional[AsyncClient]:
    """Initializes the global ASYNC Supabase client and returns it."""
    global _async_supabase_client
    if _async_supabase_client:
        logger.debug("Async Supabase client already initialized.")
        return _async_supabase_client

    if not settings.supabase_url or not settings.supabase_key:
        logger.critical("Supabase URL or Key not configured in settings.")
        raise SystemExit("Supabase configuration missing.")

    supabase_url = str(settings.supabase_url)
    logger.debug(
        f"Attempting to initialize Async Supabase client with URL: {supabase_url}"
    )
    key_snippet = f"{settings.supabase_key[:5]}...{settings.supabase_key[-5:]}"
    logger.debug(f"Using Supabase Key (snippet): {key_snippet}")

    try:
        client: AsyncClient = await create_async_client(
            supabase_url, settings.supabase_key
        )
        _async_supabase_client = client
        logger.success("Async Supabase client initialized successfully.")
        return client
    except Exception as e:
        logger.exception(f"Failed to initialize Async Supabase client: {e}")
        return None


class SupabaseTeamStore:
    """Reads and writes team records in the Supabase ``teams`` table."""

    def __init__(self, client: AsyncClient, table_name: Optional[str] = None):
        self.client = client
        self.table_name = table_name or settings.teams_table

    async def fetch_teams(self) -> List[Team]:
        """Fetches all teams, highest tech score first."""
        try:
            response: APIResponse = (
                await self.client.table(self.table_name)
                .select("*")
                .order("tech_score", desc=True)
                .execute()
            )
        except APIError as e:
            logger.error(f"Supabase API error fetching teams: {e.message}")
            logger.debug(f"Full APIError details: {e}")
            raise TeamStoreError(f"Failed to fetch teams: {e.message}") from e

        teams = []
        for row in response.data or []:
            try:
                teams.append(team_from_row(row))
            except ValueError as e:
                logger.warning(f"Skipping malformed team row {row.get('id')!r}: {e}")
        logger.success(f"Fetched {len(teams)} teams from {self.table_name}.")
        return teams

    async def apply_team_update(
        self, team_id: TeamId, fields: Mapping[str, Any]
    ) -> None:
        """Partial update of a single team row."""
        columns = fields_to_columns(fields)
        try:
            await (
                self.client.table(self.table_name)
                .update(columns)
                .eq("id", team_id)
                .execute()
            )
        except APIError as e:
            logger.error(f"Error updating team {team_id!r}: {e.message}")
            logger.debug(f"Full APIError details: {e}")
            raise TeamStoreError(f"Failed to update team {team_id!r}") from e
        logger.success(f"Updated team {team_id!r}: {sorted(columns)}")

    async def apply_updates(self, updates: List[TeamUpdate]) -> None:
        """Persists partial updates in order, one row at a time."""
        if not updates:
            logger.debug("No updates to persist. Skipping.")
            return

        for update in updates:
            await self.apply_team_update(update.team_id, update.fields)

    async def promote(self, team_id: TeamId, capacity: int) -> StoreWrite:
        """Top 20 promotion, capacity checked by the database."""
        return await self._guarded_write(
            PROMOTE_FUNCTION,
            {"p_team_id": str(team_id), "p_capacity": capacity},
            team_id,
        )

    async def assign_rank(self, team_id: TeamId, rank: Optional[int]) -> StoreWrite:
        """Rank assignment; the previous holder is cleared in the same transaction."""
        return await self._guarded_write(
            ASSIGN_RANK_FUNCTION,
            {"p_team_id": str(team_id), "p_rank": rank},
            team_id,
        )

    async def _guarded_write(
        self, function: str, params: Dict[str, Any], team_id: TeamId
    ) -> StoreWrite:
        try:
            response: APIResponse = await self.client.rpc(function, params).execute()
        except APIError as e:
            logger.error(f"Supabase API error calling {function}: {e.message}")
            logger.debug(f"Full APIError details: {e}")
            raise TeamStoreError(f"{function} failed for team {team_id!r}") from e

        result: Dict[str, Any] = response.data or {}
        if result.get("rejection") == NOT_FOUND:
            raise TeamNotFoundError(team_id)

        write = StoreWrite(
            accepted=bool(result.get("accepted")),
            rejection=result.get("rejection"),
            message=result.get("message") or "",
            teams=[team_from_row(row) for row in result.get("teams") or []],
        )
        if write.teams:
            logger.success(
                f"{function} wrote {[t.id for t in write.teams]}: {write.message}"
            )
        return write
