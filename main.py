import sys
import asyncio
from typing import Optional

import click

# --- Settings/Logging ---
from juryboard.logging.setup import setup_logging

setup_logging()

from loguru import logger

# --- End Settings/Logging ---

from juryboard.models.errors import (
    InvalidRankError,
    JuryBoardError,
    TeamNotFoundError,
)
from juryboard.models.outcome import RankingOutcome
from juryboard.ranking import rules
from juryboard.ranking.engine import RankingEngine, TeamStore
from juryboard.realtime.team_changes import subscribe_team_changes
from juryboard.storage.supabase_client import initialize_supabase, SupabaseTeamStore
from juryboard.utils.misc_utils import coerce_team_id
from juryboard.views.final_jury import parse_rank_choice, podium_lines
from juryboard.views.shortlisting import board_stats, filter_teams, promotion_label

from rich import print
from rich.panel import Panel
from rich.table import Table


async def _open_store(ctx: click.Context) -> TeamStore:
    """Store handed in by the caller (tests) or a Supabase-backed one."""
    store = (ctx.obj or {}).get("store")
    if store is not None:
        return store
    client = await initialize_supabase()
    if not client:
        logger.critical("Failed to initialize Supabase client. Exiting.")
        raise SystemExit(1)
    return SupabaseTeamStore(client)


async def _load_engine(ctx: click.Context) -> RankingEngine:
    engine = RankingEngine(await _open_store(ctx))
    await engine.refresh()
    return engine


def _teams_table(title: str, teams, action=None) -> Table:
    table = Table(title=title)
    table.add_column("Team")
    table.add_column("Name")
    table.add_column("Theme")
    table.add_column("Progress", justify="right")
    table.add_column("Innovation", justify="right")
    table.add_column("Tech", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Status")
    if action:
        table.add_column("Action")
    for team in teams:
        status = "Top 20" if team.is_top20 else "--"
        if team.rank:
            status += f" / #{team.rank}"
        cells = [
            team.display_id,
            team.name,
            team.theme,
            f"{team.milestone_progress}%",
            f"{team.innovation_score}/10",
            f"{team.tech_score}/10",
            str(team.total_score),
            status,
        ]
        if action:
            cells.append(action(team))
        table.add_row(*cells)
    return table


def _print_outcome(ctx: click.Context, outcome: RankingOutcome) -> None:
    if outcome.accepted:
        print(Panel(outcome.message or "Done.", style="green"))
        return
    print(Panel(outcome.message, title=outcome.rejection.value, style="red"))
    ctx.exit(1)


def _run(ctx: click.Context, coro):
    try:
        return asyncio.run(coro)
    except TeamNotFoundError as e:
        raise click.ClickException(str(e))
    except JuryBoardError as e:
        logger.error(f"Operation failed: {e}")
        raise click.ClickException(str(e))


@click.group()
@click.pass_context
def cli(ctx: click.Context):
    """Jury board - Top 20 shortlisting and final ranking."""
    ctx.ensure_object(dict)


@cli.command("list")
@click.option("--theme", default="All", help="Only show teams of this theme")
@click.option("--search", default="", help="Match name, theme or id")
@click.option(
    "--sort", "sort_by", type=click.Choice(["score", "name"]), default="score"
)
@click.pass_context
def list_teams(ctx: click.Context, theme: str, search: str, sort_by: str):
    """Shortlisting table with filters."""

    async def _list():
        engine = await _load_engine(ctx)
        teams = list(engine.snapshot().values())
        shown = filter_teams(teams, theme=theme, search=search, sort_by=sort_by)
        stats = board_stats(teams, shown)
        print(
            _teams_table(
                "Teams",
                shown,
                action=lambda t: promotion_label(t, stats.top20, engine.capacity),
            )
        )
        print(
            f"Total: {stats.total}  Filtered: {stats.filtered}  "
            f"Top 20: {stats.top20}/{engine.capacity}  Avg score: {stats.average_score}"
        )

    _run(ctx, _list())


@cli.command()
@click.pass_context
def leaderboard(ctx: click.Context):
    """Top 20 teams, ranked first."""

    async def _leaderboard():
        engine = await _load_engine(ctx)
        top20 = engine.leaderboard()
        if not top20:
            print("No teams in the Top 20 yet.")
            return
        print(_teams_table(f"Top 20 ({len(top20)} teams)", top20))

    _run(ctx, _leaderboard())


@cli.command()
@click.pass_context
def podium(ctx: click.Context):
    """Holders of ranks 1-3."""

    async def _podium():
        engine = await _load_engine(ctx)
        for label, description in podium_lines(engine.podium()):
            print(f"{label}: {description}")

    _run(ctx, _podium())


@cli.command()
@click.argument("team_id")
@click.pass_context
def promote(ctx: click.Context, team_id: str):
    """Promote a team to the Top 20."""

    async def _promote():
        engine = await _load_engine(ctx)
        return await engine.promote(coerce_team_id(team_id))

    _print_outcome(ctx, _run(ctx, _promote()))


@cli.command()
@click.argument("team_id")
@click.pass_context
def demote(ctx: click.Context, team_id: str):
    """Remove a team from the Top 20 (clears its rank)."""

    async def _demote():
        engine = await _load_engine(ctx)
        return await engine.demote(coerce_team_id(team_id))

    _print_outcome(ctx, _run(ctx, _demote()))


@cli.command()
@click.argument("team_id")
@click.argument("choice")
@click.pass_context
def rank(ctx: click.Context, team_id: str, choice: str):
    """Assign rank 1, 2 or 3 to a Top 20 team ("none" clears it)."""
    try:
        new_rank: Optional[int] = parse_rank_choice(choice)
    except InvalidRankError as e:
        raise click.BadParameter(str(e), param_hint="CHOICE")

    async def _rank():
        engine = await _load_engine(ctx)
        return await engine.assign_rank(coerce_team_id(team_id), new_rank)

    _print_outcome(ctx, _run(ctx, _rank()))


@cli.command()
@click.argument("team_id")
@click.option("--innovation", type=int, default=None, help="Innovation score (0-10)")
@click.option("--tech", type=int, default=None, help="Technical score (0-10)")
@click.pass_context
def score(
    ctx: click.Context, team_id: str, innovation: Optional[int], tech: Optional[int]
):
    """Record jury scores for a team."""

    async def _score():
        engine = await _load_engine(ctx)
        return await engine.record_scores(
            coerce_team_id(team_id), innovation=innovation, tech=tech
        )

    _print_outcome(ctx, _run(ctx, _score()))


@cli.command()
@click.argument("team_id")
@click.argument("value", type=int)
@click.pass_context
def milestone(ctx: click.Context, team_id: str, value: int):
    """Mark the next milestone (25, 50, 75, 100) for a team."""

    async def _milestone():
        engine = await _load_engine(ctx)
        return await engine.advance_milestone(coerce_team_id(team_id), value)

    _print_outcome(ctx, _run(ctx, _milestone()))


@cli.command()
@click.pass_context
def watch(ctx: click.Context):
    """Follow the Top 20 live through realtime change notifications."""

    async def _watch():
        client = await initialize_supabase()
        if not client:
            logger.critical("Failed to initialize Supabase client. Exiting.")
            raise SystemExit(1)
        engine = RankingEngine(SupabaseTeamStore(client))

        def render(version: int, snapshot) -> None:
            top20 = rules.leaderboard(snapshot)
            print(_teams_table(f"Top 20 (v{version}, {len(top20)} teams)", top20))

        engine.subscribe(render)
        await engine.refresh()
        await subscribe_team_changes(client, engine)
        logger.info("Watching for team changes. Press Ctrl+C to stop.")
        await asyncio.Event().wait()

    _run(ctx, _watch())


if __name__ == "__main__":
    try:
        cli(obj={})
    except KeyboardInterrupt:
        logger.info("Execution interrupted by user (KeyboardInterrupt).")
        sys.exit(0)
