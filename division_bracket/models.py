from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import ClassVar

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
MATCH_STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_COMPLETED)

PARTICIPANT_ACTIVE = "active"


def utc_now_iso() -> str:
    """Return current UTC timestamp in ISO-8601 format (ms precision)."""
    return datetime.now(UTC).strftime(ISO_FORMAT)


def _optional_int(value: object) -> int | None:
    if value in (None, "", "None"):
        return None
    return int(value)  # type: ignore[arg-type]


def _optional_str(value: object) -> str | None:
    return str(value) if value is not None else None


@dataclass(slots=True)
class Participant:
    participant_id: int
    player_name: str
    discord_user: str
    roblox_user: str
    division: str
    experience: str | None = None
    score: int = 0
    status: str = PARTICIPANT_ACTIVE

    PK_TEMPLATE: ClassVar[str] = "GUILD#%s"
    SK_PREFIX: ClassVar[str] = "PARTICIPANT#"
    SK_TEMPLATE: ClassVar[str] = "PARTICIPANT#%010d"

    @classmethod
    def key(cls, guild_id: int, participant_id: int) -> dict[str, str]:
        return {
            "pk": cls.PK_TEMPLATE % guild_id,
            "sk": cls.SK_TEMPLATE % participant_id,
        }

    def to_item(self, guild_id: int) -> dict[str, object]:
        item = self.key(guild_id, self.participant_id)
        item.update(
            {
                "participant_id": self.participant_id,
                "player_name": self.player_name,
                "discord_user": self.discord_user,
                "roblox_user": self.roblox_user,
                "division": self.division,
                "score": self.score,
                "status": self.status,
            }
        )
        if self.experience is not None:
            item["experience"] = self.experience
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> Participant:
        raw_id = item.get("participant_id")
        if raw_id is None:
            raw_id = str(item["sk"]).split("#", 1)[1]
        return cls(
            participant_id=int(raw_id),  # type: ignore[arg-type]
            player_name=str(item.get("player_name", "")),
            discord_user=str(item.get("discord_user", "")),
            roblox_user=str(item.get("roblox_user", "")),
            division=str(item.get("division", "")),
            experience=_optional_str(item.get("experience")),
            score=int(item.get("score", 0)),  # type: ignore[arg-type]
            status=str(item.get("status", PARTICIPANT_ACTIVE)),
        )

    def display(self) -> str:
        return f"{self.player_name} (#{self.participant_id})"


@dataclass(slots=True)
class Match:
    match_id: int
    division: str
    round: int
    match_number: int
    participant1_id: int | None = None
    participant2_id: int | None = None
    winner_id: int | None = None
    side: str | None = None
    status: str = STATUS_PENDING
    created_at: str = ""

    PK_TEMPLATE: ClassVar[str] = "GUILD#%s"
    SK_PREFIX: ClassVar[str] = "MATCH#"
    SK_TEMPLATE: ClassVar[str] = "MATCH#%010d"

    @classmethod
    def key(cls, guild_id: int, match_id: int) -> dict[str, str]:
        return {"pk": cls.PK_TEMPLATE % guild_id, "sk": cls.SK_TEMPLATE % match_id}

    def to_item(self, guild_id: int) -> dict[str, object]:
        item = self.key(guild_id, self.match_id)
        item.update(
            {
                "match_id": self.match_id,
                "division": self.division,
                "round": self.round,
                "match_number": self.match_number,
                "status": self.status,
                "created_at": self.created_at,
            }
        )
        if self.participant1_id is not None:
            item["participant1_id"] = self.participant1_id
        if self.participant2_id is not None:
            item["participant2_id"] = self.participant2_id
        if self.winner_id is not None:
            item["winner_id"] = self.winner_id
        if self.side is not None:
            item["side"] = self.side
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> Match:
        raw_id = item.get("match_id")
        if raw_id is None:
            raw_id = str(item["sk"]).split("#", 1)[1]
        return cls(
            match_id=int(raw_id),  # type: ignore[arg-type]
            division=str(item.get("division", "")),
            round=int(item.get("round", 1)),  # type: ignore[arg-type]
            match_number=int(item.get("match_number", 1)),  # type: ignore[arg-type]
            participant1_id=_optional_int(item.get("participant1_id")),
            participant2_id=_optional_int(item.get("participant2_id")),
            winner_id=_optional_int(item.get("winner_id")),
            side=_optional_str(item.get("side")),
            status=str(item.get("status", STATUS_PENDING)),
            created_at=str(item.get("created_at", "")),
        )

    def slots(self) -> tuple[int | None, int | None]:
        return self.participant1_id, self.participant2_id

    def is_ready(self) -> bool:
        return self.participant1_id is not None and self.participant2_id is not None

    def is_bye(self) -> bool:
        return self.round == 1 and (
            (self.participant1_id is None) != (self.participant2_id is None)
        )


__all__ = [
    "ISO_FORMAT",
    "MATCH_STATUSES",
    "PARTICIPANT_ACTIVE",
    "STATUS_COMPLETED",
    "STATUS_IN_PROGRESS",
    "STATUS_PENDING",
    "Match",
    "Participant",
    "utc_now_iso",
]
