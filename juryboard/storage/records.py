# juryboard/storage/records.py
"""
Row <-> model adapter for the ``teams`` table.

The table uses the columns of the database-backed dashboard (``team_name``,
``category``, ``milestone_status``, ``tech_score``, ``innovation_score``,
``isTop20``, ``rank``). Older rows and UI payloads used other spellings, so
reading accepts every known alias; writing always uses the table columns.
"""
from typing import Any, Dict, Mapping, Optional

from loguru import logger

from juryboard.models.team import MILESTONE_STEPS, RANKS, Team
from juryboard.scoring.rules import MAX_SCORE, MIN_SCORE

# model field -> table column
COLUMNS: Dict[str, str] = {
    "id": "id",
    "name": "team_name",
    "theme": "category",
    "milestone_progress": "milestone_status",
    "innovation_score": "innovation_score",
    "tech_score": "tech_score",
    "is_top20": "isTop20",
    "rank": "rank",
    "leader_email": "leader_email",
}

# model field -> accepted spellings, first match wins
ALIASES: Dict[str, tuple] = {
    "name": ("team_name", "name"),
    "theme": ("category", "theme"),
    "milestone_progress": ("milestone_status", "milestone", "milestone_progress"),
    "innovation_score": ("innovation_score", "innovationScore"),
    "tech_score": ("tech_score", "techScore"),
    "is_top20": ("isTop20", "is_top20", "istop20"),
    "rank": ("rank",),
    "leader_email": ("leader_email",),
}


def _lookup(row: Mapping[str, Any], field: str) -> Any:
    for key in ALIASES[field]:
        if key in row and row[key] is not None:
            return row[key]
    return None


def normalize_milestone(value: Any) -> int:
    """Maps stored milestone values onto 0/25/50/75/100."""
    if value is None:
        return 0
    value = int(value)
    if value in MILESTONE_STEPS:
        return value
    # Legacy rows store the step index (1..4) instead of the percentage
    if 1 <= value <= 4:
        return value * 25
    logger.warning(f"Unexpected milestone value {value}, treating as 0")
    return 0


def normalize_score(value: Any, column: str) -> int:
    """Clamps a stored score into 0..10 so the team stays on the board."""
    score = int(value or 0)
    if not MIN_SCORE <= score <= MAX_SCORE:
        clamped = min(max(score, MIN_SCORE), MAX_SCORE)
        logger.warning(f"{column} {score} out of range, reading it as {clamped}")
        return clamped
    return score


def normalize_rank(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool) and value in RANKS:
        return value
    logger.warning(f"Unexpected rank {value!r}, treating the team as unranked")
    return None


def team_from_row(row: Mapping[str, Any]) -> Team:
    """Builds a Team from a ``teams`` row (or realtime record)."""
    if row.get("id") is None:
        raise ValueError(f"Team row without id: {row}")

    return Team(
        id=row["id"],
        name=_lookup(row, "name") or "",
        theme=_lookup(row, "theme") or "",
        milestone_progress=normalize_milestone(_lookup(row, "milestone_progress")),
        innovation_score=normalize_score(
            _lookup(row, "innovation_score"), "innovation_score"
        ),
        tech_score=normalize_score(_lookup(row, "tech_score"), "tech_score"),
        is_top20=bool(_lookup(row, "is_top20") or False),
        rank=normalize_rank(_lookup(row, "rank")),
        leader_email=_lookup(row, "leader_email"),
    )


def fields_to_columns(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Translates a partial update on model fields into table columns."""
    unknown = set(fields) - set(COLUMNS)
    if unknown:
        raise ValueError(f"Unknown team fields: {sorted(unknown)}")
    return {COLUMNS[field]: value for field, value in fields.items()}

