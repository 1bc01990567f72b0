"""
Match runtime: result submission and the optional "match started" signal.
A recorded result is final; the advancer fills the downstream slot.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, StrictInt
from sqlmodel import Session

from bracket_api.database import get_session
from bracket_api.models.match import Match
from bracket_api.services.bracket_errors import BracketError
from bracket_api.services.match_advancer import start_match, submit_result
from bracket_api.services.match_store import MatchStore

router = APIRouter()


class MatchResultSubmit(BaseModel):
    score_player1: StrictInt
    score_player2: StrictInt
    winner_id: Optional[int] = None


class MatchState(BaseModel):
    id: int
    tournament_id: int
    round: int
    bracket_position: int
    match_number: int
    player1_id: Optional[int] = None
    player2_id: Optional[int] = None
    score_player1: Optional[int] = None
    score_player2: Optional[int] = None
    winner_id: Optional[int] = None
    status: str
    is_bye: bool = False
    scheduled_time: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MatchResultResponse(BaseModel):
    match: MatchState
    downstream: Optional[MatchState] = None
    auto_advanced: List[MatchState] = []
    tournament_completed: bool = False


def match_to_state(m: Match) -> MatchState:
    return MatchState(
        id=m.id,
        tournament_id=m.tournament_id,
        round=m.round,
        bracket_position=m.bracket_position,
        match_number=m.match_number,
        player1_id=m.player1_id,
        player2_id=m.player2_id,
        score_player1=m.score_player1,
        score_player2=m.score_player2,
        winner_id=m.winner_id,
        status=m.status,
        is_bye=m.is_bye,
        scheduled_time=m.scheduled_time,
        started_at=m.started_at,
        completed_at=m.completed_at,
    )


@router.get("/matches/{match_id}", response_model=MatchState)
def get_match(match_id: int, session: Session = Depends(get_session)) -> MatchState:
    match = MatchStore(session).load_match(match_id)
    if not match:
        raise HTTPException(status_code=404, detail="MATCH_NOT_FOUND: Match not found")
    return match_to_state(match)


@router.post("/matches/{match_id}/result", response_model=MatchResultResponse)
def post_match_result(
    match_id: int,
    payload: MatchResultSubmit,
    session: Session = Depends(get_session),
) -> MatchResultResponse:
    """Record a result. Completed matches are immutable; ties are rejected.
    The winner fills player1 (even position) or player2 (odd) of the next-round match."""
    try:
        result = submit_result(
            MatchStore(session),
            match_id,
            payload.score_player1,
            payload.score_player2,
            winner_id=payload.winner_id,
        )
    except BracketError as exc:
        raise exc.to_http_exception()

    return MatchResultResponse(
        match=match_to_state(result.match),
        downstream=match_to_state(result.downstream) if result.downstream else None,
        auto_advanced=[match_to_state(m) for m in result.auto_advanced],
        tournament_completed=result.tournament_completed,
    )


@router.post("/matches/{match_id}/start", response_model=MatchState)
def post_match_start(match_id: int, session: Session = Depends(get_session)) -> MatchState:
    """Mark a ready match in progress (display only)"""
    try:
        match = start_match(MatchStore(session), match_id)
    except BracketError as exc:
        raise exc.to_http_exception()
    return match_to_state(match)
