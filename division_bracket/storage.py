from __future__ import annotations

from dataclasses import replace

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from .models import (
    PARTICIPANT_ACTIVE,
    STATUS_PENDING,
    Match,
    Participant,
    utc_now_iso,
)


class BracketStorage:
    """Participant and match records for one guild, kept in a DynamoDB table.

    Every record lives under the guild partition (``pk = GUILD#<id>``). The
    table also holds one atomic counter per record kind; identifiers are only
    ever issued through :meth:`_next_id`.
    """

    COUNTER_SK_TEMPLATE = "COUNTER#%s"

    def __init__(self, table, guild_id: int) -> None:
        self._table = table
        self._guild_id = guild_id

    @property
    def guild_id(self) -> int:
        return self._guild_id

    def ensure_table(self) -> None:
        if self._table is None:
            raise RuntimeError("Tournament table is not configured")

    def _next_id(self, kind: str) -> int:
        self.ensure_table()
        resp = self._table.update_item(
            Key={
                "pk": Participant.PK_TEMPLATE % self._guild_id,
                "sk": self.COUNTER_SK_TEMPLATE % kind,
            },
            UpdateExpression="ADD current_value :inc",
            ExpressionAttributeValues={":inc": 1},
            ReturnValues="UPDATED_NEW",
        )
        return int(resp["Attributes"]["current_value"])

    def _query_prefix(self, prefix: str) -> list[dict[str, object]]:
        self.ensure_table()
        query_kwargs: dict[str, object] = {
            "KeyConditionExpression": Key("pk").eq(
                Participant.PK_TEMPLATE % self._guild_id
            )
            & Key("sk").begins_with(prefix),
            "Select": "ALL_ATTRIBUTES",
        }
        items: list[dict[str, object]] = []
        while True:
            resp = self._table.query(**query_kwargs)
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return items
            query_kwargs["ExclusiveStartKey"] = last_key

    def _delete(self, key: dict[str, str]) -> bool:
        self.ensure_table()
        try:
            self._table.delete_item(
                Key=key,
                ConditionExpression="attribute_exists(pk)",
            )
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code == "ConditionalCheckFailedException":
                return False
            raise
        return True

    # ----- Participants -----
    def get_participant(self, participant_id: int) -> Participant | None:
        self.ensure_table()
        resp = self._table.get_item(Key=Participant.key(self._guild_id, participant_id))
        item = resp.get("Item")
        if not item:
            return None
        return Participant.from_item(item)

    def list_all_participants(self) -> list[Participant]:
        participants = [
            Participant.from_item(item)
            for item in self._query_prefix(Participant.SK_PREFIX)
        ]
        participants.sort(key=lambda entry: entry.participant_id)
        return participants

    def list_participants(self, division: str) -> list[Participant]:
        return [
            participant
            for participant in self.list_all_participants()
            if participant.division == division
        ]

    def insert_participant(
        self,
        *,
        player_name: str,
        discord_user: str,
        roblox_user: str,
        division: str,
        experience: str | None = None,
    ) -> Participant:
        participant = Participant(
            participant_id=self._next_id("PARTICIPANT"),
            player_name=player_name,
            discord_user=discord_user,
            roblox_user=roblox_user,
            division=division,
            experience=experience or None,
            score=0,
            status=PARTICIPANT_ACTIVE,
        )
        self._table.put_item(Item=participant.to_item(self._guild_id))
        return participant

    def update_participant(self, participant_id: int, **fields) -> Participant | None:
        existing = self.get_participant(participant_id)
        if existing is None:
            return None
        updated = replace(existing, **fields)
        self._table.put_item(Item=updated.to_item(self._guild_id))
        return updated

    def delete_participant(self, participant_id: int) -> bool:
        return self._delete(Participant.key(self._guild_id, participant_id))

    # ----- Matches -----
    def get_match(self, match_id: int) -> Match | None:
        self.ensure_table()
        resp = self._table.get_item(Key=Match.key(self._guild_id, match_id))
        item = resp.get("Item")
        if not item:
            return None
        return Match.from_item(item)

    def list_all_matches(self) -> list[Match]:
        matches = [
            Match.from_item(item) for item in self._query_prefix(Match.SK_PREFIX)
        ]
        matches.sort(key=lambda entry: entry.match_id)
        return matches

    def list_matches(self, division: str) -> list[Match]:
        return [
            match for match in self.list_all_matches() if match.division == division
        ]

    def insert_match(
        self,
        *,
        division: str,
        round: int,
        match_number: int,
        participant1_id: int | None = None,
        participant2_id: int | None = None,
        winner_id: int | None = None,
        side: str | None = None,
        status: str = STATUS_PENDING,
    ) -> Match:
        match = Match(
            match_id=self._next_id("MATCH"),
            division=division,
            round=round,
            match_number=match_number,
            participant1_id=participant1_id,
            participant2_id=participant2_id,
            winner_id=winner_id,
            side=side,
            status=status,
            created_at=utc_now_iso(),
        )
        self._table.put_item(Item=match.to_item(self._guild_id))
        return match

    def save_match(self, match: Match) -> None:
        self.ensure_table()
        self._table.put_item(Item=match.to_item(self._guild_id))

    def update_match(self, match_id: int, **fields) -> Match | None:
        existing = self.get_match(match_id)
        if existing is None:
            return None
        updated = replace(existing, **fields)
        self._table.put_item(Item=updated.to_item(self._guild_id))
        return updated

    def delete_match(self, match_id: int) -> bool:
        return self._delete(Match.key(self._guild_id, match_id))


__all__ = ["BracketStorage"]
