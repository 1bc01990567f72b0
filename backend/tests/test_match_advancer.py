"""Match Advancer: validation, one-shot results, downstream slot filling, tournament completion."""

import pytest
from sqlalchemy import update
from sqlmodel import Session

from bracket_api.models.match import MATCH_COMPLETED, MATCH_IN_PROGRESS, MATCH_SCHEDULED, Match
from bracket_api.models.participant import PARTICIPANT_REGISTERED, PARTICIPANT_WINNER, Participant
from bracket_api.models.tournament import TOURNAMENT_COMPLETED, TOURNAMENT_IN_PROGRESS, Tournament
from bracket_api.services.bracket_errors import (
    InvalidScore,
    MatchAlreadyCompleted,
    MatchNotFound,
    MatchNotReady,
    WinnerScoreMismatch,
)
from bracket_api.services.bracket_service import generate_tournament_bracket
from bracket_api.services.match_advancer import start_match, submit_result
from bracket_api.services.match_store import MatchStore


@pytest.fixture
def five_player_bracket(session: Session, make_tournament):
    tournament, players = make_tournament(5)
    store = MatchStore(session)
    generate_tournament_bracket(store, tournament.id)
    return store, tournament.id, {p.display_name: p.id for p in players}


def snapshot(match: Match):
    return (
        match.player1_id,
        match.player2_id,
        match.score_player1,
        match.score_player2,
        match.winner_id,
        match.status,
        match.lock_version,
    )


# -----------------------------------------------------------------------------
# Successful submissions
# -----------------------------------------------------------------------------

def test_winner_fills_player1_of_downstream(five_player_bracket):
    store, tid, ids = five_player_bracket
    first = store.load_match_at(tid, 1, 0)

    result = submit_result(store, first.id, 3, 1)

    assert result.match.status == MATCH_COMPLETED
    assert result.match.winner_id == ids["A"]
    assert (result.match.score_player1, result.match.score_player2) == (3, 1)
    assert result.match.completed_at is not None
    assert result.tournament_completed is False

    downstream = result.downstream
    assert (downstream.round, downstream.bracket_position) == (2, 0)
    assert downstream.player1_id == ids["A"]
    assert downstream.player2_id is None
    assert downstream.status == MATCH_SCHEDULED


def test_odd_position_fills_player2_without_clobbering_sibling(five_player_bracket):
    store, tid, ids = five_player_bracket
    submit_result(store, store.load_match_at(tid, 1, 0).id, 3, 1)

    result = submit_result(store, store.load_match_at(tid, 1, 1).id, 0, 2)

    assert result.match.winner_id == ids["D"]
    downstream = store.load_match_at(tid, 2, 0)
    assert downstream.player1_id == ids["A"]
    assert downstream.player2_id == ids["D"]
    # Both slots known, but status only changes through a result or start signal
    assert downstream.status == MATCH_SCHEDULED


def test_declared_winner_matching_scores_is_accepted(five_player_bracket):
    store, tid, ids = five_player_bracket
    match = store.load_match_at(tid, 1, 1)
    result = submit_result(store, match.id, 1, 5, winner_id=ids["D"])
    assert result.match.winner_id == ids["D"]


def test_final_completes_tournament(session: Session, make_tournament):
    tournament, (a, b) = make_tournament(2)
    store = MatchStore(session)
    [final] = generate_tournament_bracket(store, tournament.id)

    result = submit_result(store, final.id, 1, 4)

    assert result.tournament_completed is True
    assert result.downstream is None
    assert result.match.winner_id == b.id

    session.expire_all()
    stored = session.get(Tournament, tournament.id)
    assert stored.status == TOURNAMENT_COMPLETED
    assert stored.winner_participant_id == b.id
    assert session.get(Participant, b.id).status == PARTICIPANT_WINNER
    assert session.get(Participant, a.id).status == PARTICIPANT_REGISTERED


def test_winner_walks_through_pass_through_bye(session: Session, make_tournament):
    """Six entrants: (E,F) feeds a round-2 node with no other feeder, so the winner goes on to the final."""
    tournament, players = make_tournament(6)
    ids = {p.display_name: p.id for p in players}
    store = MatchStore(session)
    generate_tournament_bracket(store, tournament.id)

    result = submit_result(store, store.load_match_at(tournament.id, 1, 2).id, 2, 0)

    assert (result.downstream.round, result.downstream.bracket_position) == (2, 1)
    assert result.downstream.status == MATCH_COMPLETED
    assert result.downstream.winner_id == ids["E"]
    assert [m.id for m in result.auto_advanced] == [result.downstream.id]

    final = store.load_match_at(tournament.id, 3, 0)
    assert final.player1_id is None
    assert final.player2_id == ids["E"]
    assert final.status == MATCH_SCHEDULED


# -----------------------------------------------------------------------------
# Rejections leave the match untouched
# -----------------------------------------------------------------------------

def test_tied_scores_rejected(five_player_bracket):
    store, tid, _ = five_player_bracket
    match = store.load_match_at(tid, 1, 0)
    before = snapshot(match)

    with pytest.raises(InvalidScore):
        submit_result(store, match.id, 2, 2)

    assert snapshot(store.load_match(match.id)) == before
    assert store.load_match(match.id).status == MATCH_SCHEDULED


@pytest.mark.parametrize("scores", [(-1, 2), (3, -4), (True, 0), (1.5, 0), ("3", 1), (2**31, 0), (10**20, 1)])
def test_malformed_scores_rejected(five_player_bracket, scores):
    store, tid, _ = five_player_bracket
    match = store.load_match_at(tid, 1, 0)
    with pytest.raises(InvalidScore):
        submit_result(store, match.id, *scores)
    assert store.load_match(match.id).status == MATCH_SCHEDULED


def test_missing_player_is_not_ready(five_player_bracket):
    store, tid, _ = five_player_bracket
    submit_result(store, store.load_match_at(tid, 1, 0).id, 3, 1)
    half_filled = store.load_match_at(tid, 2, 0)
    assert half_filled.player2_id is None

    with pytest.raises(MatchNotReady):
        submit_result(store, half_filled.id, 1, 0)


def test_empty_match_is_not_ready(five_player_bracket):
    store, tid, _ = five_player_bracket
    with pytest.raises(MatchNotReady):
        submit_result(store, store.load_match_at(tid, 2, 0).id, 1, 0)


def test_unknown_match(five_player_bracket):
    store, _, _ = five_player_bracket
    with pytest.raises(MatchNotFound):
        submit_result(store, 999_999, 1, 0)


def test_resubmission_is_rejected_without_mutation(five_player_bracket):
    store, tid, ids = five_player_bracket
    match = store.load_match_at(tid, 1, 0)
    submit_result(store, match.id, 3, 1)
    before = snapshot(store.load_match(match.id))
    downstream_before = snapshot(store.load_match_at(tid, 2, 0))

    with pytest.raises(MatchAlreadyCompleted):
        submit_result(store, match.id, 0, 5)

    assert snapshot(store.load_match(match.id)) == before
    assert snapshot(store.load_match_at(tid, 2, 0)) == downstream_before
    assert store.load_match_at(tid, 2, 0).player1_id == ids["A"]


def test_bye_match_cannot_take_a_result(five_player_bracket):
    store, tid, _ = five_player_bracket
    with pytest.raises(MatchAlreadyCompleted):
        submit_result(store, store.load_match_at(tid, 1, 2).id, 1, 0)


def test_winner_score_mismatch(five_player_bracket):
    store, tid, ids = five_player_bracket
    match = store.load_match_at(tid, 1, 0)
    before = snapshot(match)

    with pytest.raises(WinnerScoreMismatch):
        submit_result(store, match.id, 3, 1, winner_id=ids["B"])

    assert snapshot(store.load_match(match.id)) == before
    assert store.load_match_at(tid, 2, 0).player1_id is None


class RacingStore(MatchStore):
    """Completes the match behind the caller's back right before its compare-and-swap."""

    def __init__(self, session, rival_winner_id):
        super().__init__(session)
        self.rival_winner_id = rival_winner_id
        self.raced = False

    def update_match(self, match_id, fields, expected_version=None, expected_statuses=None):
        if not self.raced:
            self.raced = True
            self.session.connection().execute(
                update(Match)
                .where(Match.id == match_id)
                .values(
                    status=MATCH_COMPLETED,
                    winner_id=self.rival_winner_id,
                    score_player1=0,
                    score_player2=1,
                    lock_version=Match.lock_version + 1,
                )
            )
        return super().update_match(match_id, fields, expected_version, expected_statuses)


def test_losing_a_race_reports_already_completed(session: Session, five_player_bracket):
    store, tid, ids = five_player_bracket
    match = store.load_match_at(tid, 1, 0)

    with pytest.raises(MatchAlreadyCompleted):
        submit_result(RacingStore(session, ids["B"]), match.id, 3, 1)

    # Nothing from the losing submission reached the downstream match
    assert store.load_match_at(tid, 2, 0).player1_id is None


# -----------------------------------------------------------------------------
# Match start signal
# -----------------------------------------------------------------------------

def test_start_match_marks_in_progress_and_is_idempotent(five_player_bracket):
    store, tid, _ = five_player_bracket
    match = store.load_match_at(tid, 1, 0)

    started = start_match(store, match.id)
    assert started.status == MATCH_IN_PROGRESS
    assert started.started_at is not None
    first_started_at = started.started_at

    again = start_match(store, match.id)
    assert again.status == MATCH_IN_PROGRESS
    assert again.started_at == first_started_at

    result = submit_result(store, match.id, 2, 1)
    assert result.match.status == MATCH_COMPLETED


def test_start_requires_both_players(five_player_bracket):
    store, tid, _ = five_player_bracket
    with pytest.raises(MatchNotReady):
        start_match(store, store.load_match_at(tid, 2, 0).id)


def test_start_rejects_completed(five_player_bracket):
    store, tid, _ = five_player_bracket
    with pytest.raises(MatchAlreadyCompleted):
        start_match(store, store.load_match_at(tid, 1, 2).id)


# -----------------------------------------------------------------------------
# Whole-tournament play-through
# -----------------------------------------------------------------------------

@pytest.mark.parametrize("n", [2, 3, 4, 5, 6, 7, 8, 9, 12, 13, 16, 17])
def test_play_through_produces_n_minus_one_decisive_matches(session: Session, make_tournament, n):
    tournament, players = make_tournament(n)
    store = MatchStore(session)
    generate_tournament_bracket(store, tournament.id)

    decisive = 0
    completed_tournament = False
    while True:
        ready = store.load_ready_matches(tournament.id)
        if not ready:
            break
        match = ready[0]
        # Alternate which side wins so both slot directions are exercised
        scores = (3, 1) if match.match_number % 2 else (0, 2)
        result = submit_result(store, match.id, *scores)
        decisive += 1
        completed_tournament = result.tournament_completed

    assert completed_tournament is True
    assert decisive == n - 1

    bracket = store.load_bracket(tournament.id)
    assert all(m.status == MATCH_COMPLETED for m in bracket)
    assert sum(1 for m in bracket if not m.is_bye) == n - 1

    session.expire_all()
    stored = session.get(Tournament, tournament.id)
    assert stored.status == TOURNAMENT_COMPLETED
    final = store.load_match_at(tournament.id, stored.round_count, 0)
    assert stored.winner_participant_id == final.winner_id


def test_generation_moves_tournament_in_progress(session: Session, make_tournament):
    tournament, _ = make_tournament(4)
    generate_tournament_bracket(MatchStore(session), tournament.id)
    session.expire_all()
    stored = session.get(Tournament, tournament.id)
    assert stored.status == TOURNAMENT_IN_PROGRESS
    assert stored.bracket_generated is True
    assert stored.round_count == 2
