"""
Single-elimination bracket arithmetic shared by the builder and the advancer.

Layout: round 1 pairs padded seed slots (2i, 2i+1) at position i. A match at
(round r, position p) feeds (r + 1, p // 2); even positions fill player1,
odd positions fill player2.
"""

from typing import Tuple

SLOT_PLAYER1 = "player1_id"
SLOT_PLAYER2 = "player2_id"


def round_count(participant_count: int) -> int:
    """ceil(log2(n)) without floating point: 2 -> 1, 3 -> 2, 5 -> 3, 8 -> 3, 9 -> 4"""
    if participant_count < 2:
        raise ValueError(f"round_count: need at least 2 participants, got {participant_count}")
    return (participant_count - 1).bit_length()


def bracket_size(participant_count: int) -> int:
    """Next power of two >= participant_count"""
    return 2 ** round_count(participant_count)


def matches_in_round(size: int, round_number: int) -> int:
    """Positions available in a round of a full bracket of *size* slots"""
    return size >> round_number


def next_position(round_number: int, bracket_position: int) -> Tuple[int, int]:
    return round_number + 1, bracket_position // 2


def downstream_slot(bracket_position: int) -> str:
    return SLOT_PLAYER1 if bracket_position % 2 == 0 else SLOT_PLAYER2


def sibling_position(bracket_position: int) -> int:
    """The other feeder of the same downstream match"""
    return bracket_position ^ 1


def feeder_positions(bracket_position: int) -> Tuple[int, int]:
    return 2 * bracket_position, 2 * bracket_position + 1


def covered_slots(round_number: int, bracket_position: int) -> range:
    """Padded seed slots that sit underneath a bracket node"""
    width = 2 ** round_number
    return range(bracket_position * width, (bracket_position + 1) * width)
