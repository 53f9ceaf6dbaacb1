import json

import pytest
from conftest import GUILD_ID, FakeTable

from division_bracket import STATUS_COMPLETED, BracketStorage
from scripts import bracket_admin


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("TOURNAMENT_TABLE_NAME", "TOURNAMENT_GUILD_ID", "BRACKET_SEED"):
        monkeypatch.delenv(name, raising=False)


def seed_roster(table: FakeTable, division: str, count: int) -> None:
    storage = BracketStorage(table, GUILD_ID)
    for index in range(1, count + 1):
        storage.insert_participant(
            player_name=f"Player{index}",
            discord_user=f"discord{index}",
            roblox_user=f"roblox{index}",
            division=division,
        )


def run(table: FakeTable, *argv: str) -> int:
    return bracket_admin.main(
        ["--guild", str(GUILD_ID), "--seed", "7", *argv], table=table
    )


def test_show_empty_division(capsys):
    assert run(FakeTable(), "show", "open") == 0
    assert "No bracket generated yet." in capsys.readouterr().out


def test_generate_prints_bracket(capsys):
    table = FakeTable()
    seed_roster(table, "open", 3)

    assert run(table, "generate", "open") == 0

    out = capsys.readouterr().out
    assert "Semifinals" in out
    assert "Final" in out
    assert len(BracketStorage(table, GUILD_ID).list_matches("open")) == 3


def test_generate_needs_two_participants():
    table = FakeTable()
    seed_roster(table, "open", 1)
    storage = BracketStorage(table, GUILD_ID)
    stray = storage.insert_match(division="open", round=1, match_number=1)

    assert run(table, "generate", "open") == 1
    assert storage.list_matches("open") == [stray]


def test_report_advances_winner(capsys):
    table = FakeTable()
    seed_roster(table, "open", 2)
    run(table, "generate", "open")
    capsys.readouterr()

    (match,) = BracketStorage(table, GUILD_ID).list_matches("open")
    assert run(table, "report", str(match.match_id), str(match.participant2_id)) == 0

    stored = BracketStorage(table, GUILD_ID).get_match(match.match_id)
    assert stored.status == STATUS_COMPLETED
    assert "Champion:" in capsys.readouterr().out


def test_report_failures_return_nonzero():
    table = FakeTable()
    seed_roster(table, "open", 2)
    run(table, "generate", "open")
    (match,) = BracketStorage(table, GUILD_ID).list_matches("open")

    assert run(table, "report", "404", "1") == 1
    assert run(table, "report", str(match.match_id), "99") == 1


def test_dump_outputs_json(capsys):
    table = FakeTable()
    seed_roster(table, "open", 2)
    seed_roster(table, "pro", 1)
    run(table, "generate", "open")
    capsys.readouterr()

    assert run(table, "dump", "--division", "open") == 0

    payload = json.loads(capsys.readouterr().out)
    assert [entry["player_name"] for entry in payload["participants"]] == [
        "Player1",
        "Player2",
    ]
    assert len(payload["matches"]) == 1
    assert payload["matches"][0]["division"] == "open"


def test_missing_table_or_guild_is_a_usage_error():
    with pytest.raises(SystemExit):
        bracket_admin.main(["--guild", "1", "show", "open"])
    with pytest.raises(SystemExit):
        bracket_admin.main(["show", "open"], table=FakeTable())
