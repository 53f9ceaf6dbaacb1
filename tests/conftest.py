from __future__ import annotations

import random

import pytest
from botocore.exceptions import ClientError

from division_bracket import BracketStorage, Participant, TournamentService

GUILD_ID = 42


class FakeTable:
    """In-memory stand-in for the boto3 DynamoDB ``Table`` calls we make."""

    def __init__(self, page_size: int | None = None) -> None:
        self.items: dict[tuple[str, str], dict[str, object]] = {}
        self.page_size = page_size
        self.query_calls = 0

    def get_item(self, *, Key):
        item = self.items.get((Key["pk"], Key["sk"]))
        return {"Item": dict(item) if item is not None else None}

    def put_item(self, *, Item):
        self.items[(Item["pk"], Item["sk"])] = dict(Item)

    def update_item(
        self, *, Key, UpdateExpression, ExpressionAttributeValues, ReturnValues
    ):
        assert UpdateExpression == "ADD current_value :inc"
        assert ReturnValues == "UPDATED_NEW"
        item = self.items.setdefault((Key["pk"], Key["sk"]), dict(Key))
        item["current_value"] = (
            int(item.get("current_value", 0)) + ExpressionAttributeValues[":inc"]
        )
        return {"Attributes": {"current_value": item["current_value"]}}

    def query(
        self,
        *,
        KeyConditionExpression,
        Select="COUNT",
        ExclusiveStartKey=None,
        **_kwargs,
    ):
        self.query_calls += 1
        pk_value = None
        sk_prefix = ""
        for condition in KeyConditionExpression._values:  # type: ignore[attr-defined]
            key, value = condition._values  # type: ignore[attr-defined]
            if key.name == "pk":  # pragma: no branch - helper
                pk_value = value
            elif key.name == "sk":
                sk_prefix = value
        matching_keys = [
            key
            for key in sorted(self.items)
            if key[0] == pk_value and key[1].startswith(sk_prefix)
        ]
        if ExclusiveStartKey is not None:
            start = (ExclusiveStartKey["pk"], ExclusiveStartKey["sk"])
            matching_keys = [key for key in matching_keys if key > start]
        response: dict[str, object] = {}
        if self.page_size is not None and len(matching_keys) > self.page_size:
            matching_keys = matching_keys[: self.page_size]
            last = matching_keys[-1]
            response["LastEvaluatedKey"] = {"pk": last[0], "sk": last[1]}
        items = [dict(self.items[key]) for key in matching_keys]
        response["Count"] = len(items)
        if Select != "COUNT":
            response["Items"] = items
        return response

    def delete_item(self, *, Key, ConditionExpression):
        del ConditionExpression
        item_key = (Key["pk"], Key["sk"])
        if item_key not in self.items:
            raise ClientError(
                {
                    "Error": {
                        "Code": "ConditionalCheckFailedException",
                        "Message": "Item not found",
                    }
                },
                "DeleteItem",
            )
        self.items.pop(item_key)


@pytest.fixture
def table() -> FakeTable:
    return FakeTable()


@pytest.fixture
def storage(table: FakeTable) -> BracketStorage:
    return BracketStorage(table, GUILD_ID)


@pytest.fixture
def service(storage: BracketStorage) -> TournamentService:
    return TournamentService(storage, rng=random.Random(1234))


@pytest.fixture
def make_roster(storage: BracketStorage):
    """Insert `count` participants directly, without regenerating brackets."""

    def _make(division: str, count: int, *, start: int = 1) -> list[Participant]:
        return [
            storage.insert_participant(
                player_name=f"Player{index}",
                discord_user=f"discord{index}",
                roblox_user=f"roblox{index}",
                division=division,
            )
            for index in range(start, start + count)
        ]

    return _make
