# Force SQLModel table registration at test discovery time
# so create_all() in conftest sees every bracket table
from bracket_api.models.match import Match  # noqa: F401
from bracket_api.models.participant import Participant  # noqa: F401
from bracket_api.models.tournament import Tournament  # noqa: F401
