from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator
from sqlmodel import Session, select

from bracket_api.database import get_session
from bracket_api.models.tournament import Tournament
from bracket_api.services.bracket_errors import BracketError
from bracket_api.services.bracket_service import register_participant
from bracket_api.services.match_store import MatchStore

router = APIRouter()


class TournamentCreate(BaseModel):
    name: str
    game: Optional[str] = None
    starts_at: Optional[datetime] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class TournamentResponse(BaseModel):
    id: int
    name: str
    game: Optional[str]
    starts_at: Optional[datetime]
    status: str
    bracket_generated: bool
    round_count: Optional[int]
    winner_participant_id: Optional[int]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ParticipantCreate(BaseModel):
    user_id: str
    display_name: Optional[str] = None

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v):
        if not v or not v.strip():
            raise ValueError("user_id is required")
        return v.strip()


class ParticipantResponse(BaseModel):
    id: int
    tournament_id: int
    user_id: str
    display_name: Optional[str]
    seed: int
    status: str
    registered_at: datetime

    class Config:
        from_attributes = True


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments"""
    return session.exec(select(Tournament).order_by(Tournament.id)).all()


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    """Create a tournament open for registration"""
    tournament = Tournament(**tournament_data.model_dump())
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Get a tournament by ID, including bracket/completion state"""
    try:
        return MatchStore(session).load_tournament(tournament_id)
    except BracketError as exc:
        raise exc.to_http_exception()


@router.get("/tournaments/{tournament_id}/participants", response_model=List[ParticipantResponse])
def list_participants(tournament_id: int, session: Session = Depends(get_session)):
    """Participants in seed (registration) order"""
    store = MatchStore(session)
    try:
        store.load_tournament(tournament_id)
    except BracketError as exc:
        raise exc.to_http_exception()
    return store.load_participants(tournament_id)


@router.post("/tournaments/{tournament_id}/participants", response_model=ParticipantResponse, status_code=201)
def create_participant(
    tournament_id: int, participant_data: ParticipantCreate, session: Session = Depends(get_session)
):
    """Register a participant; seeds follow registration order"""
    try:
        return register_participant(
            MatchStore(session), tournament_id, participant_data.user_id, participant_data.display_name
        )
    except BracketError as exc:
        raise exc.to_http_exception()
