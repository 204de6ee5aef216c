from typing import Iterable, List, NamedTuple, Optional, Union

from juryboard.models.enums import Theme
from juryboard.models.team import Team
from juryboard.ranking.rules import DEFAULT_CAPACITY

ALL_THEMES = "All"
SORT_BY_SCORE = "score"
SORT_BY_NAME = "name"


class BoardStats(NamedTuple):
    total: int
    filtered: int
    top20: int
    average_score: float


def filter_teams(
    teams: Iterable[Team],
    theme: Union[Theme, str] = ALL_THEMES,
    search: str = "",
    sort_by: str = SORT_BY_SCORE,
) -> List[Team]:
    """
    Teams as shown on the shortlisting table.

    ``theme`` narrows to one theme ("All" keeps every team), ``search`` matches
    name, theme or id case-insensitively, ``sort_by`` is "score" (total score,
    highest first, original order for ties) or "name".
    """
    if sort_by not in (SORT_BY_SCORE, SORT_BY_NAME):
        raise ValueError(f"Unknown sort key {sort_by!r}")

    filtered = list(teams)
    if isinstance(theme, Theme):
        theme = theme.value
    if theme != ALL_THEMES:
        filtered = [t for t in filtered if t.theme == theme]

    if search:
        q = search.lower()
        filtered = [
            t
            for t in filtered
            if q in t.name.lower() or q in t.theme.lower() or q in str(t.id)
        ]

    if sort_by == SORT_BY_SCORE:
        return sorted(filtered, key=lambda t: -t.total_score)
    return sorted(filtered, key=lambda t: t.name.lower())


def board_stats(
    teams: Iterable[Team], filtered: Optional[Iterable[Team]] = None
) -> BoardStats:
    teams = list(teams)
    top20 = sum(1 for t in teams if t.is_top20)
    average = sum(t.total_score for t in teams) / len(teams) if teams else 0.0
    return BoardStats(
        total=len(teams),
        filtered=len(list(filtered)) if filtered is not None else len(teams),
        top20=top20,
        average_score=round(average, 1),
    )


def promotion_label(
    team: Team, top20_count: int, capacity: int = DEFAULT_CAPACITY
) -> str:
    """Text of the promote/demote button for a team."""
    if team.is_top20:
        return f"Remove from Top {capacity}"
    if top20_count >= capacity:
        return f"Top {capacity} Full"
    return f"Promote to Top {capacity} ({top20_count}/{capacity})"
