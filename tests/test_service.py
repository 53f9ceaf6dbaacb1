import pytest

from division_bracket import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    InvalidValueError,
    TournamentService,
    UnknownParticipantError,
)


def register(service: TournamentService, division: str, count: int, start: int = 1):
    return [
        service.register_participant(
            player_name=f"Player{index}",
            discord_user=f"discord{index}",
            roblox_user=f"roblox{index}",
            division=division,
        )
        for index in range(start, start + count)
    ]


def round_matches(service: TournamentService, division: str, round_number: int):
    return [
        match for match in service.list_matches(division) if match.round == round_number
    ]


def play_until_champion(service: TournamentService, division: str):
    for match in round_matches(service, division, 1):
        if match.is_bye():
            service.report_result(match.match_id, match.participant1_id)
    for _ in range(64):
        champion = service.champion(division)
        if champion is not None:
            return champion
        ready = [
            match
            for match in service.list_matches(division)
            if match.is_ready() and match.status != STATUS_COMPLETED
        ]
        assert ready, "bracket stalled before a champion was decided"
        service.report_result(ready[0].match_id, ready[0].participant1_id)
    raise AssertionError("no champion after 64 results")


def test_first_registration_creates_no_matches(service):
    (participant,) = register(service, "lightweight", 1)
    assert participant.participant_id == 1
    assert participant.division == "lightweight"
    assert service.list_matches("lightweight") == []


def test_registration_leaves_later_rounds_empty(service):
    register(service, "lightweight", 3)

    matches = service.list_matches("lightweight")
    assert len(matches) == 3
    paired, bye = round_matches(service, "lightweight", 1)
    assert paired.is_ready()
    assert bye.status == STATUS_COMPLETED
    assert bye.winner_id == bye.participant1_id

    (final,) = round_matches(service, "lightweight", 2)
    assert final.slots() == (None, None)
    assert final.status == STATUS_PENDING


def test_reporting_a_bye_moves_its_winner_forward(service):
    register(service, "lightweight", 3)
    _, bye = round_matches(service, "lightweight", 1)

    service.report_result(bye.match_id, bye.participant1_id)

    (final,) = round_matches(service, "lightweight", 2)
    assert final.slots() == (None, bye.participant1_id)


def test_each_registration_replaces_the_bracket(service):
    register(service, "open", 3)
    old_ids = {match.match_id for match in service.list_matches("open")}

    register(service, "open", 1, start=4)
    new_ids = {match.match_id for match in service.list_matches("open")}

    assert len(new_ids) == 3
    assert not old_ids & new_ids
    assert all(service.storage.get_match(match_id) is None for match_id in old_ids)


def test_registration_validates_before_writing(service):
    with pytest.raises(InvalidValueError):
        register(service, "not a valid division!", 1)
    with pytest.raises(InvalidValueError):
        service.register_participant(
            player_name="A",
            discord_user="discord",
            roblox_user="roblox",
            division="open",
        )
    assert service.list_participants() == []


def test_registration_normalizes_fields(service):
    participant = service.register_participant(
        player_name="  Ava  ",
        discord_user="ava#0001",
        roblox_user="AvaR",
        division=" Light Weight ",
        experience="   ",
    )
    assert participant.player_name == "Ava"
    assert participant.division == "light-weight"
    assert participant.experience is None
    assert service.list_participants("LIGHT-WEIGHT") == [participant]


def test_reporting_results_advances_winners(service):
    register(service, "heavyweight", 4)
    first, second = round_matches(service, "heavyweight", 1)

    service.report_result(first.match_id, first.participant1_id)
    (final,) = round_matches(service, "heavyweight", 2)
    assert final.participant1_id == first.participant1_id
    assert final.participant2_id is None

    service.report_result(second.match_id, second.participant2_id)
    (final,) = round_matches(service, "heavyweight", 2)
    assert final.slots() == (first.participant1_id, second.participant2_id)
    assert final.status == STATUS_PENDING

    service.report_result(final.match_id, second.participant2_id)
    champion = service.champion("heavyweight")
    assert champion is not None
    assert champion.participant_id == second.participant2_id
    assert "Champion:" in service.bracket_text("heavyweight")


def test_repeated_result_does_not_move_other_winners(service):
    register(service, "open", 4)
    first, _ = round_matches(service, "open", 1)

    service.report_result(first.match_id, first.participant1_id)
    snapshot = service.list_matches("open")
    service.report_result(first.match_id, first.participant1_id)
    assert service.list_matches("open") == snapshot


@pytest.mark.parametrize("count", [2, 5, 6, 9, 12])
def test_every_roster_size_reaches_a_champion(service, count):
    roster = register(service, "open", count)
    champion = play_until_champion(service, "open")
    assert champion.participant_id in {entry.participant_id for entry in roster}


def test_start_match_does_not_advance(service):
    register(service, "open", 4)
    first, _ = round_matches(service, "open", 1)

    started = service.start_match(first.match_id)
    assert started.status == STATUS_IN_PROGRESS
    (final,) = round_matches(service, "open", 2)
    assert final.slots() == (None, None)


def test_update_match_rejects_bad_results(service):
    register(service, "open", 4)
    first, second = round_matches(service, "open", 1)

    with pytest.raises(UnknownParticipantError):
        service.report_result(first.match_id, second.participant1_id)
    with pytest.raises(InvalidValueError):
        service.update_match(first.match_id, status=STATUS_COMPLETED)
    with pytest.raises(InvalidValueError):
        service.update_match(first.match_id, round=3)
    with pytest.raises(InvalidValueError):
        service.update_match(first.match_id, status="finished")

    assert service.storage.get_match(first.match_id) == first


def test_unknown_records_report_not_found(service):
    assert service.report_result(404, 1) is None
    assert service.update_participant(404, score=1) is None
    assert service.delete_match(404) is False
    assert service.delete_participant(404) is False
    assert service.champion("open") is None


def test_generate_bracket_on_demand(service):
    register(service, "open", 2)
    (match,) = service.generate_bracket(" OPEN ")
    assert match.is_ready()
    assert service.list_matches("open") == [match]


def test_update_participant_validates_fields(service):
    (participant,) = register(service, "open", 1)

    updated = service.update_participant(
        participant.participant_id, score=12, status="Eliminated"
    )
    assert updated.score == 12
    assert updated.status == "eliminated"

    with pytest.raises(InvalidValueError):
        service.update_participant(participant.participant_id, score=-1)
    with pytest.raises(InvalidValueError):
        service.update_participant(participant.participant_id, participant_id=9)


def test_manual_match_creation_and_listing(service):
    match = service.create_match(
        division="Exhibition", round=1, match_number=1, side="Red"
    )
    assert match.division == "exhibition"
    assert match.side == "red"
    assert service.list_matches() == [match]

    with pytest.raises(InvalidValueError):
        service.create_match(division="exhibition", round=0, match_number=1)
    with pytest.raises(InvalidValueError):
        service.create_match(
            division="exhibition", round=1, match_number=2, side="green"
        )


def test_divisions_do_not_share_brackets(service):
    register(service, "alpha", 2)
    register(service, "beta", 3, start=3)

    alpha_ids = {
        slot for match in service.list_matches("alpha") for slot in match.slots()
    }
    beta_ids = {
        slot for match in service.list_matches("beta") for slot in match.slots()
    }
    assert alpha_ids - {None} == {1, 2}
    assert beta_ids - {None} == {3, 4, 5}


def test_generate_bracket_reports_short_roster_without_touching_matches(service):
    register(service, "open", 1)
    stray = service.create_match(division="open", round=1, match_number=1)

    assert service.generate_bracket("open") is None
    assert service.list_matches("open") == [stray]
