import asyncio
from typing import Any, Dict, Optional, Set

from loguru import logger
from supabase import AsyncClient

from juryboard.config.settings import settings
from juryboard.models.enums import ChangeType
from juryboard.models.outcome import TeamChange
from juryboard.ranking.engine import RankingEngine
from juryboard.storage.records import team_from_row

# Pending engine updates scheduled from the realtime callback
_pending: Set[asyncio.Task] = set()


def parse_change(payload: Dict[str, Any]) -> Optional[TeamChange]:
    """
    Turns a postgres_changes payload into a TeamChange.

    Accepts the realtime-py shape ({"data": {"type", "record", "old_record"}})
    as well as the JS client shape ({"eventType", "new", "old"}). Returns None
    for payloads that carry no usable team.
    """
    data = payload.get("data", payload)
    event = data.get("type") or data.get("eventType")
    record = data.get("record") or data.get("new") or {}
    old_record = data.get("old_record") or data.get("old") or {}

    try:
        change_type = ChangeType(str(event).upper())
    except ValueError:
        logger.debug(f"Ignoring realtime event {event!r}")
        return None

    if change_type == ChangeType.DELETE:
        team_id = old_record.get("id")
        if team_id is None:
            logger.warning("DELETE event without old record id, ignoring.")
            return None
        return TeamChange(type=change_type, team_id=team_id)

    try:
        team = team_from_row(record)
    except ValueError as e:
        logger.warning(f"Ignoring malformed {change_type.value} event: {e}")
        return None
    return TeamChange(type=change_type, team=team, team_id=team.id)


async def subscribe_team_changes(
    client: AsyncClient, engine: RankingEngine, table_name: Optional[str] = None
):
    """Subscribes the engine to INSERT/UPDATE/DELETE on the teams table."""
    table_name = table_name or settings.teams_table
    loop = asyncio.get_running_loop()

    def on_change(payload: Dict[str, Any]) -> None:
        change = parse_change(payload)
        if change is None:
            return
        task = loop.create_task(engine.apply_remote_change(change))
        _pending.add(task)
        task.add_done_callback(_pending.discard)

    channel = client.channel(settings.realtime_channel)
    channel.on_postgres_changes(
        "*", schema="public", table=table_name, callback=on_change
    )
    await channel.subscribe()
    logger.success(
        f"Subscribed to realtime changes on {table_name} ({settings.realtime_channel})."
    )
    return channel
