"""
Match Advancer: record a result and move the winner one slot downstream.

Every precondition is checked before the first write, so a rejected
submission leaves the stored match untouched. The result write is a
compare-and-swap on (lock_version, open status); of two concurrent
submissions for one match exactly one commits and the other gets
MatchAlreadyCompleted.

The winner of position p in round r fills player1 (p even) or player2 (p odd)
of (r + 1, p // 2). When that downstream match has no other feeder at all it
is a pass-through bye: it is completed on the spot and the winner keeps
moving until it reaches a match with a real opponent.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from bracket_api.models.match import MATCH_COMPLETED, MATCH_IN_PROGRESS, MATCH_SCHEDULED, OPEN_MATCH_STATUSES, Match
from bracket_api.services.bracket_errors import (
    InvalidScore,
    MatchAlreadyCompleted,
    MatchNotFound,
    MatchNotReady,
    StaleMatchState,
    WinnerScoreMismatch,
)
from bracket_api.services.match_store import MatchStore
from bracket_api.utils.bracket_math import (
    SLOT_PLAYER1,
    downstream_slot,
    feeder_positions,
    next_position,
)

logger = logging.getLogger(__name__)


@dataclass
class AdvanceResult:
    match: Match
    downstream: Optional[Match] = None
    auto_advanced: List[Match] = field(default_factory=list)
    tournament_completed: bool = False


def _require_open_match(store: MatchStore, match_id: int) -> Match:
    match = store.load_match(match_id)
    if match is None:
        raise MatchNotFound(f"Match {match_id} not found")
    if match.status == MATCH_COMPLETED:
        raise MatchAlreadyCompleted(f"Match {match_id} already has a recorded result")
    if not match.is_ready:
        raise MatchNotReady(f"Match {match_id} is still waiting for both players")
    return match


# Largest value the INTEGER score columns hold
MAX_SCORE = 2**31 - 1


def _is_score(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= MAX_SCORE


def decide_winner(match: Match, score_player1: int, score_player2: int) -> int:
    """Winner by strictly higher score; ties have no tiebreak and are rejected."""
    if not _is_score(score_player1) or not _is_score(score_player2):
        raise InvalidScore(
            f"Scores must be integers between 0 and {MAX_SCORE}, got {score_player1!r} and {score_player2!r}"
        )
    if score_player1 == score_player2:
        raise InvalidScore(f"Tied scores ({score_player1}-{score_player2}) are not allowed")
    return match.player1_id if score_player1 > score_player2 else match.player2_id


def submit_result(
    store: MatchStore,
    match_id: int,
    score_player1: int,
    score_player2: int,
    winner_id: Optional[int] = None,
) -> AdvanceResult:
    """Validate and persist a match result, then advance the winner.

    Raises MatchNotFound, MatchAlreadyCompleted, MatchNotReady, InvalidScore
    or WinnerScoreMismatch before touching storage. Persistence errors are
    re-raised after the unit of work is rolled back.
    """
    match = _require_open_match(store, match_id)
    computed_winner = decide_winner(match, score_player1, score_player2)
    if winner_id is not None and winner_id != computed_winner:
        raise WinnerScoreMismatch(
            f"Declared winner {winner_id} does not match scores {score_player1}-{score_player2} "
            f"(higher score belongs to participant {computed_winner})"
        )

    tournament_id = match.tournament_id
    round_number = match.round
    position = match.bracket_position
    final_round = store.load_tournament(tournament_id).round_count or store.final_round(tournament_id)

    try:
        written = store.update_match(
            match_id,
            {
                "score_player1": score_player1,
                "score_player2": score_player2,
                "winner_id": computed_winner,
                "status": MATCH_COMPLETED,
                "completed_at": datetime.utcnow(),
            },
            expected_version=match.lock_version,
            expected_statuses=OPEN_MATCH_STATUSES,
        )
        if not written:
            _raise_lost_race(store, match_id)

        result = AdvanceResult(match=match)
        if round_number >= final_round:
            store.mark_tournament_complete(tournament_id, computed_winner)
            result.tournament_completed = True
        else:
            result.downstream, result.auto_advanced = _advance_winner(
                store, tournament_id, round_number, position, computed_winner
            )

        store.commit()
    except Exception:
        store.rollback()
        raise

    result.match = store.load_match(match_id)
    if result.downstream is not None:
        result.downstream = store.load_match(result.downstream.id)
    result.auto_advanced = [store.load_match(m.id) for m in result.auto_advanced]

    logger.info(
        "Match %s (round %s, position %s) won by participant %s; downstream=%s auto_advanced=%d",
        match_id,
        round_number,
        position,
        computed_winner,
        result.downstream.id if result.downstream else None,
        len(result.auto_advanced),
    )
    return result


def _raise_lost_race(store: MatchStore, match_id: int) -> None:
    current = store.load_match(match_id)
    current_status = current.status if current is not None else None
    store.rollback()
    if current_status == MATCH_COMPLETED:
        raise MatchAlreadyCompleted(f"Match {match_id} already has a recorded result")
    raise StaleMatchState(f"Match {match_id} changed while the result was being recorded; reload and retry")


def _advance_winner(store: MatchStore, tournament_id: int, round_number: int, position: int, winner_id: int):
    """Fill the downstream slot, then walk through pass-through byes.

    Returns (first downstream match, pass-through matches completed on the way).
    """
    first_downstream: Optional[Match] = None
    auto_advanced: List[Match] = []

    while True:
        next_round, next_pos = next_position(round_number, position)
        downstream = store.load_match_at(tournament_id, next_round, next_pos)
        if downstream is None:
            # Nothing above this node: only reachable on a bracket without a final
            break

        slot = downstream_slot(position)
        if not store.fill_slot(downstream.id, slot, winner_id):
            current = store.load_match_at(tournament_id, next_round, next_pos)
            if getattr(current, slot) != winner_id:
                raise StaleMatchState(
                    f"Slot {slot} of match {downstream.id} is already taken by participant {getattr(current, slot)}"
                )

        downstream = store.load_match_at(tournament_id, next_round, next_pos)
        if first_downstream is None:
            first_downstream = downstream

        if not _is_pass_through(store, downstream, slot):
            break

        if not store.update_match(
            downstream.id,
            {"winner_id": winner_id, "status": MATCH_COMPLETED, "completed_at": datetime.utcnow()},
            expected_version=downstream.lock_version,
            expected_statuses=OPEN_MATCH_STATUSES,
        ):
            raise StaleMatchState(f"Pass-through match {downstream.id} changed while advancing")
        auto_advanced.append(downstream)
        logger.debug("Participant %s passes through bye match %s", winner_id, downstream.id)

        round_number, position = next_round, next_pos

    return first_downstream, auto_advanced


def _is_pass_through(store: MatchStore, downstream: Match, filled_slot: str) -> bool:
    """The slot opposite *filled_slot* has no feeder match, so no opponent can ever arrive."""
    first_feeder, second_feeder = feeder_positions(downstream.bracket_position)
    other_feeder = second_feeder if filled_slot == SLOT_PLAYER1 else first_feeder
    return not store.has_match_at(downstream.tournament_id, downstream.round - 1, other_feeder)


def start_match(store: MatchStore, match_id: int) -> Match:
    """Mark a ready match in progress (informational; no engine rule depends on it)."""
    match = _require_open_match(store, match_id)
    if match.status == MATCH_IN_PROGRESS:
        return match

    written = store.update_match(
        match_id,
        {"status": MATCH_IN_PROGRESS, "started_at": datetime.utcnow()},
        expected_version=match.lock_version,
        expected_statuses=(MATCH_SCHEDULED,),
    )
    if not written:
        _raise_lost_race(store, match_id)
    store.commit()
    return store.load_match(match_id)
