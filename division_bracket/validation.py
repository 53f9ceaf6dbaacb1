from __future__ import annotations

import re

from .models import MATCH_STATUSES, STATUS_COMPLETED, Match


class InvalidValueError(ValueError):
    """Base exception for validation failures."""


class InvalidStatusError(InvalidValueError):
    """Raised when a match or participant status is not recognised."""


class UnknownParticipantError(InvalidValueError):
    """Raised when a winner is not one of the match's participants."""


_DIVISION_PATTERN = re.compile(r"[a-z0-9][a-z0-9_-]{0,31}$")
_STATUS_PATTERN = re.compile(r"[a-z][a-z_]{1,23}$")
_HANDLE_PATTERN = re.compile(r"[^\s]{2,64}$")

MATCH_SIDES = ("red", "black")
MATCH_UPDATE_FIELDS = frozenset(
    {"participant1_id", "participant2_id", "winner_id", "status"}
)


def normalize_division(raw: str) -> str:
    value = raw.strip().lower().replace(" ", "-")
    if not value:
        raise InvalidValueError("Division cannot be empty")
    if not _DIVISION_PATTERN.match(value):
        raise InvalidValueError(
            "Division must be 1-32 letters, digits, '-' or '_' characters"
        )
    return value


def validate_player_name(raw: str) -> str:
    name = raw.strip()
    if len(name) < 2:
        raise InvalidValueError("Player name must be at least 2 characters long")
    if len(name) > 64:
        raise InvalidValueError("Player name must be 64 characters or fewer")
    return name


def validate_handle(raw: str, *, label: str) -> str:
    handle = raw.strip()
    if not handle:
        raise InvalidValueError(f"{label} cannot be empty")
    if not _HANDLE_PATTERN.match(handle):
        raise InvalidValueError(f"{label} must be 2-64 characters without spaces")
    return handle


def validate_experience(raw: str | None) -> str | None:
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None
    if len(value) > 500:
        raise InvalidValueError("Experience note must be 500 characters or fewer")
    return value


def validate_score(score: int) -> int:
    if score < 0:
        raise InvalidValueError("Score cannot be negative")
    return score


def validate_participant_status(raw: str) -> str:
    value = raw.strip().lower()
    if not _STATUS_PATTERN.match(value):
        raise InvalidStatusError(f"Invalid participant status: {raw}")
    return value


def validate_match_status(raw: str) -> str:
    value = raw.strip().lower()
    if value not in MATCH_STATUSES:
        raise InvalidStatusError(
            f"Match status must be one of {', '.join(MATCH_STATUSES)}"
        )
    return value


def validate_side(raw: str | None) -> str | None:
    if raw is None:
        return None
    value = raw.strip().lower()
    if value not in MATCH_SIDES:
        raise InvalidValueError(f"Side must be one of {', '.join(MATCH_SIDES)}")
    return value


def validate_match_update(match: Match, fields: dict[str, object]) -> dict[str, object]:
    """Check a partial match update against the match it will be applied to.

    Only slot, winner and status fields may change. A completed match needs a
    winner, and the winner must occupy one of the two slots after the update.
    """
    unknown = set(fields) - MATCH_UPDATE_FIELDS
    if unknown:
        raise InvalidValueError(
            f"Cannot update match fields: {', '.join(sorted(unknown))}"
        )

    cleaned = dict(fields)
    if "status" in cleaned:
        cleaned["status"] = validate_match_status(str(cleaned["status"]))

    slots = (
        cleaned.get("participant1_id", match.participant1_id),
        cleaned.get("participant2_id", match.participant2_id),
    )
    winner_id = cleaned.get("winner_id", match.winner_id)
    status = cleaned.get("status", match.status)

    if status == STATUS_COMPLETED and winner_id is None:
        raise InvalidValueError("A completed match needs a winner")
    if winner_id is not None and winner_id not in slots:
        raise UnknownParticipantError(
            f"Participant {winner_id} is not playing in match {match.match_id}"
        )
    return cleaned


__all__ = [
    "InvalidStatusError",
    "InvalidValueError",
    "MATCH_SIDES",
    "UnknownParticipantError",
    "normalize_division",
    "validate_experience",
    "validate_handle",
    "validate_match_status",
    "validate_match_update",
    "validate_participant_status",
    "validate_player_name",
    "validate_score",
    "validate_side",
]
