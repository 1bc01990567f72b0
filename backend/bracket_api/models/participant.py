from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from bracket_api.models.tournament import Tournament


PARTICIPANT_REGISTERED = "registered"
PARTICIPANT_WINNER = "winner"


class Participant(SQLModel, table=True):
    __table_args__ = (
        # Seeds are assigned from registration order and never reused within a tournament
        SAUniqueConstraint("tournament_id", "seed", name="uq_tournament_seed"),
        SAUniqueConstraint("tournament_id", "user_id", name="uq_tournament_user"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    user_id: str  # External account reference (opaque to the engine)
    display_name: Optional[str] = None
    seed: int  # 1-based seed (1=top seed), from registration order
    status: str = Field(default=PARTICIPANT_REGISTERED)  # registered | winner
    registered_at: datetime = Field(default_factory=datetime.utcnow)

    tournament: "Tournament" = Relationship(back_populates="participants")
