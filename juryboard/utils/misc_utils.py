# juryboard/utils/misc_utils.py
import re

from juryboard.models.team import TeamId

_INT_ID = re.compile(r"^-?\d+$")


def coerce_team_id(raw: str) -> TeamId:
    """Team ids typed by a user: integer-looking ids become ints, anything else stays a string."""
    raw = raw.strip()
    if _INT_ID.match(raw):
        return int(raw)
    return raw
