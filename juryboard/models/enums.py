from enum import Enum


class Theme(str, Enum):
    MOBILITY = "Mobility"
    SUSTAINABILITY = "Sustainability"
    CITIZEN_TECH = "Citizen Tech"
    AI = "AI"


class Rejection(str, Enum):
    """Why a mutation was refused. A rejected outcome never changes any team."""

    CAPACITY_EXCEEDED = "capacity_exceeded"
    INVALID_RANK = "invalid_rank"
    PRECONDITION_FAILED = "precondition_failed"
    INVALID_SCORE = "invalid_score"
    INVALID_MILESTONE = "invalid_milestone"


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
