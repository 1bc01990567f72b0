from bracket_api.models.match import Match
from bracket_api.models.participant import Participant
from bracket_api.models.tournament import Tournament

__all__ = [
    "Tournament",
    "Participant",
    "Match",
]
