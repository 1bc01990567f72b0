"""
Bracket Builder: single-elimination match tree from a seeded roster.

Pure computation: no session, no commits. The caller persists the returned
matches in one transaction (see match_store.MatchStore.save_matches).

Layout:
- The roster is sorted by seed and padded to the next power of two with byes
  at the tail, then paired sequentially (seed order = registration order).
- A node (round r, position p) exists only if at least one real entrant sits
  underneath it, so bye-vs-bye pairings never become matches.
- Byes are resolved by a fixed-point pass before returning.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from bracket_api.models.match import MATCH_COMPLETED, MATCH_SCHEDULED, Match
from bracket_api.services.bracket_errors import InsufficientParticipants
from bracket_api.utils.bracket_math import (
    bracket_size,
    covered_slots,
    downstream_slot,
    feeder_positions,
    matches_in_round,
    next_position,
    round_count,
)

logger = logging.getLogger(__name__)

MIN_PARTICIPANTS = 2


@dataclass(frozen=True)
class SeededEntrant:
    """Builder input: a participant reference plus its explicit seed (1 = top seed)."""
    participant_id: int
    seed: int


def build_bracket(
    tournament_id: int,
    participants: Sequence[SeededEntrant],
    starts_at: Optional[datetime] = None,
) -> List[Match]:
    """Build every match of the bracket, byes included.

    Returns matches ordered by (round, bracket_position) with match_number
    assigned 1..N in that order. Raises InsufficientParticipants for fewer
    than two entrants.
    """
    if len(participants) < MIN_PARTICIPANTS:
        raise InsufficientParticipants(
            f"Need at least {MIN_PARTICIPANTS} participants to generate a bracket, got {len(participants)}"
        )

    ordered = sorted(participants, key=lambda e: e.seed)
    rounds = round_count(len(ordered))
    size = bracket_size(len(ordered))
    slots: List[Optional[int]] = [e.participant_id for e in ordered] + [None] * (size - len(ordered))

    by_node: Dict[Tuple[int, int], Match] = {}
    for round_number in range(1, rounds + 1):
        for position in range(matches_in_round(size, round_number)):
            if not any(slots[i] is not None for i in covered_slots(round_number, position)):
                continue
            if round_number == 1:
                match = _first_round_match(tournament_id, position, slots[2 * position], slots[2 * position + 1])
            else:
                match = Match(
                    tournament_id=tournament_id,
                    round=round_number,
                    bracket_position=position,
                    match_number=0,
                    status=MATCH_SCHEDULED,
                )
            by_node[(round_number, position)] = match

    passes = propagate_byes(by_node, rounds)

    matches = [by_node[key] for key in sorted(by_node)]
    for number, match in enumerate(matches, start=1):
        match.match_number = number
        match.scheduled_time = scheduled_time_for(starts_at, match.round, match.bracket_position)

    logger.debug(
        "Built bracket for tournament %s: %d entrants, %d rounds, %d matches, %d bye passes",
        tournament_id,
        len(ordered),
        rounds,
        len(matches),
        passes,
    )
    return matches


def _first_round_match(
    tournament_id: int, position: int, player1_id: Optional[int], player2_id: Optional[int]
) -> Match:
    match = Match(
        tournament_id=tournament_id,
        round=1,
        bracket_position=position,
        match_number=0,
        player1_id=player1_id,
        player2_id=player2_id,
        status=MATCH_SCHEDULED,
    )
    if player1_id is None or player2_id is None:
        # Bye: the lone entrant wins without scores
        match.winner_id = player1_id if player1_id is not None else player2_id
        match.status = MATCH_COMPLETED
    return match


def propagate_byes(by_node: Dict[Tuple[int, int], Match], rounds: int) -> int:
    """Push bye winners forward until nothing changes.

    Each pass (a) copies every completed match's winner into its empty
    downstream slot and (b) completes any later-round match that holds one
    player while its other feeder node does not exist. Returns the number of
    passes that changed something.
    """
    passes = 0
    changed = True
    while changed:
        changed = False
        for key in sorted(by_node):
            match = by_node[key]
            round_number, position = key

            if match.status == MATCH_COMPLETED:
                if match.winner_id is None or round_number >= rounds:
                    continue
                downstream = by_node[next_position(round_number, position)]
                slot = downstream_slot(position)
                if getattr(downstream, slot) is None:
                    setattr(downstream, slot, match.winner_id)
                    changed = True
                continue

            if round_number > 1 and _is_pass_through(by_node, match):
                match.winner_id = match.player1_id if match.player1_id is not None else match.player2_id
                match.status = MATCH_COMPLETED
                changed = True

        if changed:
            passes += 1
    return passes


def _is_pass_through(by_node: Dict[Tuple[int, int], Match], match: Match) -> bool:
    """One player present and the empty slot has no feeder match at all"""
    first_feeder, second_feeder = feeder_positions(match.bracket_position)
    previous_round = match.round - 1
    if match.player1_id is not None and match.player2_id is None:
        return (previous_round, second_feeder) not in by_node
    if match.player2_id is not None and match.player1_id is None:
        return (previous_round, first_feeder) not in by_node
    return False


def scheduled_time_for(starts_at: Optional[datetime], round_number: int, position: int) -> Optional[datetime]:
    """Informational start times: first round an hour apart, later rounds a day per round."""
    if starts_at is None:
        return None
    if round_number == 1:
        return starts_at + timedelta(hours=position + 1)
    return starts_at + timedelta(hours=round_number * 24 + position)

