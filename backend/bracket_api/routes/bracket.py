from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from bracket_api.database import get_session
from bracket_api.routes.runtime import MatchState, match_to_state
from bracket_api.services.bracket_errors import BracketError
from bracket_api.services.bracket_service import generate_tournament_bracket
from bracket_api.services.match_store import MatchStore

router = APIRouter()


class BracketRound(BaseModel):
    round: int
    matches: List[MatchState]


class BracketResponse(BaseModel):
    tournament_id: int
    bracket_generated: bool
    round_count: int
    rounds: List[BracketRound]


@router.post("/tournaments/{tournament_id}/bracket", response_model=List[MatchState], status_code=201)
def generate_bracket(tournament_id: int, session: Session = Depends(get_session)) -> List[MatchState]:
    """Generate the single-elimination bracket once. A second call returns 409."""
    try:
        matches = generate_tournament_bracket(MatchStore(session), tournament_id)
    except BracketError as exc:
        raise exc.to_http_exception()
    return [match_to_state(m) for m in matches]


@router.get("/tournaments/{tournament_id}/bracket", response_model=BracketResponse)
def get_bracket(tournament_id: int, session: Session = Depends(get_session)) -> BracketResponse:
    """Matches grouped by round, in bracket-position order"""
    store = MatchStore(session)
    try:
        tournament = store.load_tournament(tournament_id)
    except BracketError as exc:
        raise exc.to_http_exception()

    rounds: List[BracketRound] = []
    for match in store.load_bracket(tournament_id):
        if not rounds or rounds[-1].round != match.round:
            rounds.append(BracketRound(round=match.round, matches=[]))
        rounds[-1].matches.append(match_to_state(match))

    return BracketResponse(
        tournament_id=tournament_id,
        bracket_generated=tournament.bracket_generated,
        round_count=tournament.round_count or 0,
        rounds=rounds,
    )


@router.get("/tournaments/{tournament_id}/matches/ready", response_model=List[MatchState])
def get_ready_matches(tournament_id: int, session: Session = Depends(get_session)) -> List[MatchState]:
    """Scheduled matches with both players known, ordered by round then position"""
    store = MatchStore(session)
    try:
        store.load_tournament(tournament_id)
    except BracketError as exc:
        raise exc.to_http_exception()
    return [match_to_state(m) for m in store.load_ready_matches(tournament_id)]
