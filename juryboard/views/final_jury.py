from typing import Dict, List, Optional, Tuple, Union

from juryboard.models.errors import InvalidRankError
from juryboard.models.team import RANKS, Team

RANK_LABELS = {1: "1st Place", 2: "2nd Place", 3: "3rd Place"}
NO_RANK = "none"


def parse_rank_choice(value: Union[str, int, None]) -> Optional[int]:
    """Rank picked in the final jury select: "none" clears, "1".."3" assigns."""
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        if value in RANKS:
            return value
        raise InvalidRankError(f"Rank must be one of {RANKS}, got {value}")

    text = str(value).strip().lower()
    if text in ("", NO_RANK):
        return None
    if text.isdigit() and int(text) in RANKS:
        return int(text)
    raise InvalidRankError(f"Cannot parse rank choice {value!r}")


def podium_lines(podium: Dict[int, Optional[Team]]) -> List[Tuple[str, str]]:
    """(label, team description) for each podium place."""
    lines = []
    for rank in RANKS:
        team = podium.get(rank)
        if team is None:
            lines.append((RANK_LABELS[rank], "unassigned"))
        else:
            lines.append(
                (RANK_LABELS[rank], f"{team.name} ({team.theme}) {team.total_score}/20")
            )
    return lines
