"""Registration and result workflows wired around the bracket engine."""

from __future__ import annotations

import logging
import random
import threading
from collections import defaultdict

from .bracket import advance_winner, champion_id, generate_bracket, render_bracket
from .models import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    Match,
    Participant,
)
from .storage import BracketStorage
from .validation import (
    InvalidValueError,
    normalize_division,
    validate_experience,
    validate_handle,
    validate_match_status,
    validate_match_update,
    validate_participant_status,
    validate_player_name,
    validate_score,
    validate_side,
)

log = logging.getLogger(__name__)

PARTICIPANT_UPDATE_FIELDS = frozenset(
    {
        "player_name",
        "discord_user",
        "roblox_user",
        "division",
        "experience",
        "score",
        "status",
    }
)


def _bracket_order(match: Match) -> tuple[int, int]:
    return match.round, match.match_number


class TournamentService:
    """Keeps each division's bracket consistent with its roster and results.

    Registering a participant regenerates that division's bracket, and
    completing a match moves its winner forward. A freshly generated bracket
    leaves its byes in round 1 until their result is reported like any other
    match. Both run while holding the division's lock, so one process never
    interleaves two of them for the same division.
    """

    def __init__(
        self, storage: BracketStorage, rng: random.Random | None = None
    ) -> None:
        self._storage = storage
        self._rng = rng if rng is not None else random.Random()
        self._locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    @property
    def storage(self) -> BracketStorage:
        return self._storage

    def _division_lock(self, division: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks[division]

    def _regenerate(self, division: str) -> list[Match]:
        generate_bracket(self._storage, division, self._rng)
        return sorted(self._storage.list_matches(division), key=_bracket_order)

    # ----- Participants -----
    def register_participant(
        self,
        *,
        player_name: str,
        discord_user: str,
        roblox_user: str,
        division: str,
        experience: str | None = None,
    ) -> Participant:
        player_name = validate_player_name(player_name)
        discord_user = validate_handle(discord_user, label="Discord username")
        roblox_user = validate_handle(roblox_user, label="Roblox username")
        division = normalize_division(division)
        experience = validate_experience(experience)

        with self._division_lock(division):
            participant = self._storage.insert_participant(
                player_name=player_name,
                discord_user=discord_user,
                roblox_user=roblox_user,
                division=division,
                experience=experience,
            )
            log.info(
                "Registered %s in division %s",
                participant.display(),
                division,
            )
            self._regenerate(division)
        return participant

    def list_participants(self, division: str | None = None) -> list[Participant]:
        if division is None:
            return self._storage.list_all_participants()
        return self._storage.list_participants(normalize_division(division))

    def update_participant(self, participant_id: int, **fields) -> Participant | None:
        unknown = set(fields) - PARTICIPANT_UPDATE_FIELDS
        if unknown:
            raise InvalidValueError(
                f"Cannot update participant fields: {', '.join(sorted(unknown))}"
            )
        cleaned = dict(fields)
        if "player_name" in cleaned:
            cleaned["player_name"] = validate_player_name(cleaned["player_name"])
        if "discord_user" in cleaned:
            cleaned["discord_user"] = validate_handle(
                cleaned["discord_user"], label="Discord username"
            )
        if "roblox_user" in cleaned:
            cleaned["roblox_user"] = validate_handle(
                cleaned["roblox_user"], label="Roblox username"
            )
        if "division" in cleaned:
            cleaned["division"] = normalize_division(cleaned["division"])
        if "experience" in cleaned:
            cleaned["experience"] = validate_experience(cleaned["experience"])
        if "score" in cleaned:
            cleaned["score"] = validate_score(int(cleaned["score"]))
        if "status" in cleaned:
            cleaned["status"] = validate_participant_status(cleaned["status"])
        return self._storage.update_participant(participant_id, **cleaned)

    def delete_participant(self, participant_id: int) -> bool:
        # TODO: clear or flag matches that still reference a deleted participant.
        return self._storage.delete_participant(participant_id)

    # ----- Matches -----
    def list_matches(self, division: str | None = None) -> list[Match]:
        if division is None:
            matches = self._storage.list_all_matches()
            return sorted(
                matches, key=lambda match: (match.division, *_bracket_order(match))
            )
        return sorted(
            self._storage.list_matches(normalize_division(division)),
            key=_bracket_order,
        )

    def generate_bracket(self, division: str) -> list[Match] | None:
        """Rebuild the division's bracket.

        Returns ``None`` without touching existing matches when the division
        has fewer than two participants.
        """
        division = normalize_division(division)
        with self._division_lock(division):
            if len(self._storage.list_participants(division)) < 2:
                return None
            return self._regenerate(division)

    def create_match(
        self,
        *,
        division: str,
        round: int,
        match_number: int,
        participant1_id: int | None = None,
        participant2_id: int | None = None,
        side: str | None = None,
        status: str = STATUS_PENDING,
    ) -> Match:
        if round <= 0 or match_number <= 0:
            raise InvalidValueError("Round and match number must be positive")
        return self._storage.insert_match(
            division=normalize_division(division),
            round=round,
            match_number=match_number,
            participant1_id=participant1_id,
            participant2_id=participant2_id,
            side=validate_side(side),
            status=validate_match_status(status),
        )

    def update_match(self, match_id: int, **fields) -> Match | None:
        """Apply a partial update; completing a match advances its winner.

        Returns ``None`` for an unknown match id.
        """
        existing = self._storage.get_match(match_id)
        if existing is None:
            return None
        with self._division_lock(existing.division):
            existing = self._storage.get_match(match_id)
            if existing is None:
                return None
            cleaned = validate_match_update(existing, fields)
            updated = self._storage.update_match(match_id, **cleaned)
            if updated is None:
                return None
            completed = cleaned.get("status") == STATUS_COMPLETED
            if completed and updated.winner_id is not None:
                advance_winner(self._storage, updated)
        return updated

    def start_match(self, match_id: int) -> Match | None:
        return self.update_match(match_id, status=STATUS_IN_PROGRESS)

    def report_result(self, match_id: int, winner_id: int) -> Match | None:
        return self.update_match(
            match_id, status=STATUS_COMPLETED, winner_id=winner_id
        )

    def delete_match(self, match_id: int) -> bool:
        return self._storage.delete_match(match_id)

    # ----- Views -----
    def champion(self, division: str) -> Participant | None:
        winner = champion_id(self._storage.list_matches(normalize_division(division)))
        if winner is None:
            return None
        return self._storage.get_participant(winner)

    def bracket_text(self, division: str) -> str:
        division = normalize_division(division)
        return render_bracket(
            self._storage.list_matches(division),
            self._storage.list_participants(division),
        )


__all__ = ["PARTICIPANT_UPDATE_FIELDS", "TournamentService"]
