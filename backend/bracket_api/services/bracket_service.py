"""
Tournament-level bracket operations: registration and one-shot generation.
"""

import logging
from datetime import datetime
from typing import List, Optional

from bracket_api.models.match import Match
from bracket_api.models.participant import Participant
from bracket_api.services.bracket_builder import SeededEntrant, build_bracket
from bracket_api.services.bracket_errors import BracketAlreadyGenerated, DuplicateRegistration, RegistrationClosed
from bracket_api.services.match_store import MatchStore
from bracket_api.utils.bracket_math import round_count

logger = logging.getLogger(__name__)


def register_participant(
    store: MatchStore, tournament_id: int, user_id: str, display_name: Optional[str] = None
) -> Participant:
    """Add a participant at the next seed. The roster is frozen once the bracket exists."""
    tournament = store.load_tournament(tournament_id)
    if tournament.bracket_generated:
        raise RegistrationClosed(f"Bracket for tournament {tournament_id} is already generated; registration is closed")
    if store.find_participant(tournament_id, user_id) is not None:
        raise DuplicateRegistration(f"User {user_id} is already registered for tournament {tournament_id}")

    participant = store.add_participant(tournament_id, user_id, display_name)
    logger.info("Registered user %s for tournament %s at seed %d", user_id, tournament_id, participant.seed)
    return participant


def generate_tournament_bracket(
    store: MatchStore, tournament_id: int, starts_at: Optional[datetime] = None
) -> List[Match]:
    """Build and persist the bracket exactly once per tournament.

    Raises BracketAlreadyGenerated on a second call (the stored bracket is
    left as it was) and InsufficientParticipants for fewer than two entrants.
    """
    tournament = store.load_tournament(tournament_id)
    if tournament.bracket_generated:
        raise BracketAlreadyGenerated(f"Bracket for tournament {tournament_id} was already generated")

    participants = store.load_participants(tournament_id)
    entrants = [SeededEntrant(participant_id=p.id, seed=p.seed) for p in participants]
    matches = build_bracket(tournament_id, entrants, starts_at=starts_at or tournament.starts_at or datetime.utcnow())

    saved = store.save_matches(tournament_id, matches, round_count(len(entrants)))
    logger.info(
        "Generated bracket for tournament %s: %d participants, %d matches",
        tournament_id,
        len(entrants),
        len(saved),
    )
    return saved
