"""
Match Store: the persistence collaborator behind the bracket engine.

All reads and writes of tournaments, participants and matches made by the
builder/advancer services go through this class. Writes that must be atomic
relative to concurrent requests are single UPDATE ... WHERE statements whose
affected row count tells the caller whether it won.

The store never commits on its own except in save_matches (one bulk unit);
multi-step operations call commit()/rollback() themselves.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from bracket_api.models.match import MATCH_SCHEDULED, Match
from bracket_api.models.participant import PARTICIPANT_WINNER, Participant
from bracket_api.models.tournament import TOURNAMENT_COMPLETED, TOURNAMENT_IN_PROGRESS, Tournament
from bracket_api.services.bracket_errors import BracketAlreadyGenerated, DuplicateRegistration, TournamentNotFound
from bracket_api.utils.bracket_math import SLOT_PLAYER1, SLOT_PLAYER2

logger = logging.getLogger(__name__)

MATCH_SLOTS = (SLOT_PLAYER1, SLOT_PLAYER2)


class MatchStore:
    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Tournaments / participants
    # ------------------------------------------------------------------

    def load_tournament(self, tournament_id: int) -> Tournament:
        tournament = self.session.get(Tournament, tournament_id)
        if not tournament:
            raise TournamentNotFound(f"Tournament {tournament_id} not found")
        return tournament

    def load_participants(self, tournament_id: int) -> List[Participant]:
        """Registered participants in seed order"""
        return list(
            self.session.exec(
                select(Participant)
                .where(Participant.tournament_id == tournament_id)
                .order_by(Participant.seed, Participant.id)
            ).all()
        )

    def find_participant(self, tournament_id: int, user_id: str) -> Optional[Participant]:
        return self.session.exec(
            select(Participant).where(Participant.tournament_id == tournament_id, Participant.user_id == user_id)
        ).first()

    def add_participant(self, tournament_id: int, user_id: str, display_name: Optional[str] = None) -> Participant:
        """Register at the next seed (registration order). Commits."""
        last_seed = self.session.exec(
            select(Participant.seed)
            .where(Participant.tournament_id == tournament_id)
            .order_by(Participant.seed.desc())
        ).first()
        participant = Participant(
            tournament_id=tournament_id,
            user_id=user_id,
            display_name=display_name,
            seed=(last_seed or 0) + 1,
        )
        self.session.add(participant)
        try:
            self.session.commit()
        except IntegrityError:
            # uq_tournament_user or uq_tournament_seed: a concurrent registration got there first
            self.session.rollback()
            raise DuplicateRegistration(
                f"User {user_id} could not be registered for tournament {tournament_id}: already registered or seed taken"
            )
        self.session.refresh(participant)
        return participant

    def mark_tournament_complete(self, tournament_id: int, winner_id: int) -> None:
        """Flag the tournament completed and record its champion. Does not commit."""
        tournament = self.load_tournament(tournament_id)
        tournament.status = TOURNAMENT_COMPLETED
        tournament.winner_participant_id = winner_id
        tournament.updated_at = datetime.utcnow()
        self.session.add(tournament)

        winner = self.session.get(Participant, winner_id)
        if winner is not None and winner.tournament_id == tournament_id:
            winner.status = PARTICIPANT_WINNER
            self.session.add(winner)
        logger.info("Tournament %s completed, winner participant %s", tournament_id, winner_id)

    # ------------------------------------------------------------------
    # Bracket generation
    # ------------------------------------------------------------------

    def save_matches(self, tournament_id: int, matches: Iterable[Match], round_count: int) -> List[Match]:
        """Persist a freshly built bracket and set bracket_generated, all in one transaction.

        The generated flag is flipped with a conditional UPDATE after the
        matches are flushed, so of two racing generations only one commits.
        """
        self.load_tournament(tournament_id)
        match_list = list(matches)
        try:
            self.session.add_all(match_list)
            self.session.flush()

            result = self.session.connection().execute(
                update(Tournament)
                .where(Tournament.id == tournament_id, Tournament.bracket_generated == False)  # noqa: E712
                .values(
                    bracket_generated=True,
                    round_count=round_count,
                    status=TOURNAMENT_IN_PROGRESS,
                    updated_at=datetime.utcnow(),
                )
            )
            if result.rowcount == 0:
                raise BracketAlreadyGenerated(f"Bracket for tournament {tournament_id} was already generated")
            self.session.commit()
        except BracketAlreadyGenerated:
            self.session.rollback()
            raise
        except IntegrityError:
            # uq_match_bracket_slot: a concurrent generation already wrote this bracket
            self.session.rollback()
            raise BracketAlreadyGenerated(f"Bracket for tournament {tournament_id} was already generated")

        self.session.expire_all()
        for match in match_list:
            self.session.refresh(match)
        logger.info("Saved %d matches for tournament %s (%d rounds)", len(match_list), tournament_id, round_count)
        return match_list

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------

    def load_match(self, match_id: int) -> Optional[Match]:
        return self.session.get(Match, match_id)

    def load_match_at(self, tournament_id: int, round_number: int, bracket_position: int) -> Optional[Match]:
        return self.session.exec(
            select(Match).where(
                Match.tournament_id == tournament_id,
                Match.round == round_number,
                Match.bracket_position == bracket_position,
            )
        ).first()

    def load_bracket(self, tournament_id: int) -> List[Match]:
        return list(
            self.session.exec(
                select(Match)
                .where(Match.tournament_id == tournament_id)
                .order_by(Match.round, Match.bracket_position)
            ).all()
        )

    def load_ready_matches(self, tournament_id: int) -> List[Match]:
        """Scheduled matches with both players known, in play order"""
        return list(
            self.session.exec(
                select(Match)
                .where(
                    Match.tournament_id == tournament_id,
                    Match.status == MATCH_SCHEDULED,
                    Match.player1_id.is_not(None),
                    Match.player2_id.is_not(None),
                )
                .order_by(Match.round, Match.bracket_position)
            ).all()
        )

    def update_match(
        self,
        match_id: int,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None,
        expected_statuses: Optional[Iterable[str]] = None,
    ) -> bool:
        """Apply *fields* in one UPDATE statement and bump lock_version.

        expected_version / expected_statuses turn the write into a
        compare-and-swap. Returns False when no row matched. Does not commit.
        """
        stmt = update(Match).where(Match.id == match_id)
        if expected_version is not None:
            stmt = stmt.where(Match.lock_version == expected_version)
        if expected_statuses is not None:
            stmt = stmt.where(Match.status.in_(list(expected_statuses)))
        stmt = stmt.values(**fields, lock_version=Match.lock_version + 1)

        result = self.session.connection().execute(stmt)
        self.session.expire_all()
        return result.rowcount == 1

    def fill_slot(self, match_id: int, slot: str, participant_id: int) -> bool:
        """Write one player slot if it is still empty. Sibling feeders write disjoint slots."""
        if slot not in MATCH_SLOTS:
            raise ValueError(f"Unknown match slot: {slot}")
        column = getattr(Match, slot)
        result = self.session.connection().execute(
            update(Match)
            .where(Match.id == match_id, column.is_(None))
            .values(**{slot: participant_id}, lock_version=Match.lock_version + 1)
        )
        self.session.expire_all()
        return result.rowcount == 1

    def final_round(self, tournament_id: int) -> int:
        last = self.session.exec(
            select(Match.round).where(Match.tournament_id == tournament_id).order_by(Match.round.desc())
        ).first()
        return last or 0

    def has_match_at(self, tournament_id: int, round_number: int, bracket_position: int) -> bool:
        return self.load_match_at(tournament_id, round_number, bracket_position) is not None

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
