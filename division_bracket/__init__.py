"""Single-elimination division brackets."""

from .bracket import (
    advance_winner,
    bracket_size,
    champion_id,
    generate_bracket,
    parent_position,
    render_bracket,
    total_rounds,
)
from .models import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    Match,
    Participant,
    utc_now_iso,
)
from .service import TournamentService
from .storage import BracketStorage
from .validation import (
    InvalidStatusError,
    InvalidValueError,
    UnknownParticipantError,
    normalize_division,
)

__all__ = [
    "Match",
    "Participant",
    "STATUS_COMPLETED",
    "STATUS_IN_PROGRESS",
    "STATUS_PENDING",
    "utc_now_iso",
    "BracketStorage",
    "TournamentService",
    "advance_winner",
    "bracket_size",
    "champion_id",
    "generate_bracket",
    "parent_position",
    "render_bracket",
    "total_rounds",
    "InvalidStatusError",
    "InvalidValueError",
    "UnknownParticipantError",
    "normalize_division",
]
