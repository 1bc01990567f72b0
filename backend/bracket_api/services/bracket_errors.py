"""
Bracket engine error taxonomy.

Every error here is caller-recoverable. Routers translate them to HTTP
responses with ``to_http_exception``; services never catch them.
"""

from fastapi import HTTPException


class BracketError(Exception):
    """Base class for bracket engine errors"""

    code = "BRACKET_ERROR"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=f"{self.code}: {self.message}")


class TournamentNotFound(BracketError):
    code = "TOURNAMENT_NOT_FOUND"
    status_code = 404


class InsufficientParticipants(BracketError):
    code = "INSUFFICIENT_PARTICIPANTS"
    status_code = 422


class BracketAlreadyGenerated(BracketError):
    code = "BRACKET_ALREADY_GENERATED"
    status_code = 409


class RegistrationClosed(BracketError):
    code = "REGISTRATION_CLOSED"
    status_code = 409


class DuplicateRegistration(BracketError):
    code = "DUPLICATE_REGISTRATION"
    status_code = 409


class MatchNotFound(BracketError):
    code = "MATCH_NOT_FOUND"
    status_code = 404


class MatchNotReady(BracketError):
    code = "MATCH_NOT_READY"
    status_code = 409


class MatchAlreadyCompleted(BracketError):
    code = "MATCH_ALREADY_COMPLETED"
    status_code = 409


class InvalidScore(BracketError):
    code = "INVALID_SCORE"
    status_code = 422


class WinnerScoreMismatch(BracketError):
    code = "WINNER_SCORE_MISMATCH"
    status_code = 409


class StaleMatchState(BracketError):
    """The match changed between read and write for a reason other than completion."""

    code = "STALE_MATCH_STATE"
    status_code = 409
