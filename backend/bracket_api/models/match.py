from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from bracket_api.models.tournament import Tournament


MATCH_SCHEDULED = "scheduled"
MATCH_IN_PROGRESS = "in_progress"
MATCH_COMPLETED = "completed"

OPEN_MATCH_STATUSES = (MATCH_SCHEDULED, MATCH_IN_PROGRESS)


class Match(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("tournament_id", "round", "bracket_position", name="uq_match_bracket_slot"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    round: int  # 1-based; the highest round is the final
    bracket_position: int  # 0-based index within the round
    match_number: int  # Global display order across the whole bracket

    # Participant slots (null = TBD, or permanently empty on a bye)
    player1_id: Optional[int] = Field(default=None, foreign_key="participant.id")
    player2_id: Optional[int] = Field(default=None, foreign_key="participant.id")

    score_player1: Optional[int] = Field(default=None)
    score_player2: Optional[int] = Field(default=None)
    winner_id: Optional[int] = Field(default=None, foreign_key="participant.id")

    status: str = Field(default=MATCH_SCHEDULED)  # scheduled | in_progress | completed
    scheduled_time: Optional[datetime] = Field(default=None)  # Informational only
    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)

    # Optimistic concurrency token, bumped on every store write
    lock_version: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    tournament: "Tournament" = Relationship(back_populates="matches")

    @property
    def is_bye(self) -> bool:
        return self.status == MATCH_COMPLETED and self.score_player1 is None and self.score_player2 is None

    @property
    def is_ready(self) -> bool:
        return self.player1_id is not None and self.player2_id is not None
