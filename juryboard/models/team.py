# juryboard/models/team.py
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

TeamId = Union[int, str]

MILESTONE_STEPS = (0, 25, 50, 75, 100)
RANKS = (1, 2, 3)


class Team(BaseModel):
    """A team under evaluation, as seen by the jury views."""

    model_config = ConfigDict(frozen=True)  # Changes go through model_copy

    id: TeamId
    name: str
    theme: str = ""
    milestone_progress: int = 0
    innovation_score: int = Field(0, ge=0, le=10)
    tech_score: int = Field(0, ge=0, le=10)
    is_top20: bool = False
    rank: Optional[int] = None
    leader_email: Optional[str] = None

    @field_validator("milestone_progress")
    @classmethod
    def validate_milestone(cls, v):
        if v not in MILESTONE_STEPS:
            raise ValueError(f"Milestone progress must be one of {MILESTONE_STEPS}")
        return v

    @field_validator("rank")
    @classmethod
    def validate_rank(cls, v):
        if v is not None and v not in RANKS:
            raise ValueError(f"Rank must be one of {RANKS} or None")
        return v

    @computed_field  # type: ignore[misc]
    @property
    def total_score(self) -> int:
        """Combined jury score out of 20."""
        return self.innovation_score + self.tech_score

    @property
    def display_id(self) -> str:
        """Zero-padded id as shown on the jury tables (#007)."""
        return "#" + str(self.id).zfill(3)
