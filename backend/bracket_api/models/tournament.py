from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from bracket_api.models.match import Match
    from bracket_api.models.participant import Participant


TOURNAMENT_REGISTRATION_OPEN = "registration_open"
TOURNAMENT_IN_PROGRESS = "in_progress"
TOURNAMENT_COMPLETED = "completed"


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    game: Optional[str] = None
    starts_at: Optional[datetime] = Field(default=None)  # Anchors informational match times
    status: str = Field(default=TOURNAMENT_REGISTRATION_OPEN)  # registration_open | in_progress | completed

    # Bracket state (written in the same transaction as the generated matches)
    bracket_generated: bool = Field(default=False)
    round_count: Optional[int] = Field(default=None)
    winner_participant_id: Optional[int] = Field(default=None)  # Participant.id of the champion

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    participants: List["Participant"] = Relationship(back_populates="tournament")
    matches: List["Match"] = Relationship(back_populates="tournament")
