import pytest

from bracket_api.utils.bracket_math import (
    SLOT_PLAYER1,
    SLOT_PLAYER2,
    bracket_size,
    covered_slots,
    downstream_slot,
    feeder_positions,
    matches_in_round,
    next_position,
    round_count,
    sibling_position,
)


@pytest.mark.parametrize(
    "n,rounds,size",
    [(2, 1, 2), (3, 2, 4), (4, 2, 4), (5, 3, 8), (8, 3, 8), (9, 4, 16), (16, 4, 16), (17, 5, 32)],
)
def test_round_count_and_bracket_size(n, rounds, size):
    assert round_count(n) == rounds
    assert bracket_size(n) == size


def test_round_count_rejects_fewer_than_two():
    with pytest.raises(ValueError):
        round_count(1)


def test_matches_in_round_halves_each_round():
    assert [matches_in_round(8, r) for r in (1, 2, 3)] == [4, 2, 1]


def test_next_position_halves_bracket_position():
    assert next_position(1, 0) == (2, 0)
    assert next_position(1, 1) == (2, 0)
    assert next_position(1, 5) == (2, 2)
    assert next_position(3, 3) == (4, 1)


def test_even_positions_feed_player1_odd_feed_player2():
    assert downstream_slot(0) == SLOT_PLAYER1
    assert downstream_slot(1) == SLOT_PLAYER2
    assert downstream_slot(4) == SLOT_PLAYER1
    assert downstream_slot(7) == SLOT_PLAYER2


def test_feeders_and_siblings_agree_with_halving():
    for position in range(8):
        first, second = feeder_positions(position)
        assert next_position(1, first) == (2, position)
        assert next_position(1, second) == (2, position)
        assert sibling_position(first) == second
        assert sibling_position(second) == first


def test_covered_slots():
    assert list(covered_slots(1, 2)) == [4, 5]
    assert list(covered_slots(2, 1)) == [4, 5, 6, 7]
    assert list(covered_slots(3, 0)) == list(range(8))
