from __future__ import annotations

import logging
import random
from collections.abc import Iterable, Sequence
from math import log2

from .models import STATUS_COMPLETED, STATUS_PENDING, Match, Participant
from .storage import BracketStorage

log = logging.getLogger(__name__)


def bracket_size(participant_count: int) -> int:
    """Smallest power of two that can hold ``participant_count`` entrants."""
    if participant_count <= 0:
        raise ValueError("Participant count must be positive")
    return 1 << (participant_count - 1).bit_length()


def total_rounds(participant_count: int) -> int:
    return int(log2(bracket_size(participant_count)))


def parent_position(match_number: int) -> tuple[int, int]:
    """Return ``(next_round_match_number, slot)`` fed by ``match_number``.

    Matches ``2k - 1`` and ``2k`` of a round feed match ``k`` of the next
    round, the odd one into slot 1 and the even one into slot 2. The bracket
    tree is never stored explicitly, so match numbers must not be changed
    after generation.
    """
    if match_number <= 0:
        raise ValueError("Match number must be positive")
    return (match_number - 1) // 2 + 1, 1 if (match_number - 1) % 2 == 0 else 2


def _round_name(round_number: int, rounds: int) -> str:
    remaining = rounds - round_number + 1
    if remaining == 1:
        return "Final"
    if remaining == 2:
        return "Semifinals"
    if remaining == 3:
        return "Quarterfinals"
    return f"Round of {2**remaining}"


def generate_bracket(
    storage: BracketStorage,
    division: str,
    rng: random.Random | None = None,
) -> list[Match]:
    """Rebuild every match of ``division`` from its current roster.

    With fewer than two participants the existing matches are returned
    untouched. Otherwise all existing matches of the division are deleted and
    ``bracket_size - 1`` new ones are created: a shuffled first round (single
    entrants become completed byes) followed by empty placeholder rounds.
    """
    participants = storage.list_participants(division)
    existing = storage.list_matches(division)
    if len(participants) < 2:
        return existing

    for match in existing:
        storage.delete_match(match.match_id)

    size = bracket_size(len(participants))
    rounds = total_rounds(len(participants))

    shuffled = sorted(participants, key=lambda entry: entry.participant_id)
    (rng if rng is not None else random.Random()).shuffle(shuffled)

    first_round_matches = size // 2
    paired_matches = len(shuffled) - first_round_matches
    created: list[Match] = []
    cursor = 0
    for match_number in range(1, first_round_matches + 1):
        first = shuffled[cursor]
        if match_number <= paired_matches:
            second = shuffled[cursor + 1]
            cursor += 2
            match = storage.insert_match(
                division=division,
                round=1,
                match_number=match_number,
                participant1_id=first.participant_id,
                participant2_id=second.participant_id,
                status=STATUS_PENDING,
            )
        else:
            cursor += 1
            match = storage.insert_match(
                division=division,
                round=1,
                match_number=match_number,
                participant1_id=first.participant_id,
                winner_id=first.participant_id,
                status=STATUS_COMPLETED,
            )
        created.append(match)

    for round_number in range(2, rounds + 1):
        for match_number in range(1, size // 2**round_number + 1):
            created.append(
                storage.insert_match(
                    division=division,
                    round=round_number,
                    match_number=match_number,
                    status=STATUS_PENDING,
                )
            )

    log.info(
        "Generated %s bracket: %s participants, %s rounds, %s matches (%s replaced)",
        division,
        len(participants),
        rounds,
        len(created),
        len(existing),
    )
    return created


def advance_winner(storage: BracketStorage, completed_match: Match) -> Match | None:
    """Place the winner of ``completed_match`` into its next-round slot.

    Returns the downstream match, or ``None`` when ``completed_match`` was the
    final or has no parent. A winner whose destined slot is already occupied
    is dropped, which makes repeated calls for the same match harmless.
    """
    winner_id = completed_match.winner_id
    if winner_id is None:
        return None

    next_round = completed_match.round + 1
    candidates = [
        match
        for match in storage.list_matches(completed_match.division)
        if match.round == next_round
    ]
    if not candidates:
        log.info(
            "Division %s decided: participant %s wins match %s",
            completed_match.division,
            winner_id,
            completed_match.match_id,
        )
        return None

    # Store order is arbitrary; positions are only meaningful once sorted.
    candidates.sort(key=lambda match: match.match_number)
    target_index = (completed_match.match_number - 1) // 2
    if target_index >= len(candidates):
        return None
    target = candidates[target_index]

    _, slot = parent_position(completed_match.match_number)
    if slot == 1 and target.participant1_id is None:
        target.participant1_id = winner_id
    elif slot == 2 and target.participant2_id is None:
        target.participant2_id = winner_id
    else:
        log.debug(
            "Slot %s of match %s already filled; dropping winner %s of match %s",
            slot,
            target.match_id,
            winner_id,
            completed_match.match_id,
        )
        return target

    if target.is_ready():
        target.status = STATUS_PENDING
    storage.save_match(target)
    log.info(
        "Advanced participant %s from match %s into slot %s of match %s",
        winner_id,
        completed_match.match_id,
        slot,
        target.match_id,
    )
    return target


def champion_id(matches: Iterable[Match]) -> int | None:
    """Winner of the final round, once it has been played."""
    ordered = list(matches)
    if not ordered:
        return None
    last_round = max(match.round for match in ordered)
    finals = [match for match in ordered if match.round == last_round]
    if len(finals) != 1:
        return None
    final = finals[0]
    if final.status != STATUS_COMPLETED:
        return None
    return final.winner_id


def render_bracket(
    matches: Sequence[Match], participants: Sequence[Participant]
) -> str:
    if not matches:
        return "No bracket generated yet."

    names = {entry.participant_id: entry.display() for entry in participants}

    def label(participant_id: int | None, *, is_bye: bool) -> str:
        if participant_id is None:
            return "BYE" if is_bye else "TBD"
        return names.get(participant_id, f"Unknown (#{participant_id})")

    rounds = max(match.round for match in matches)
    lines: list[str] = []
    for round_number in range(1, rounds + 1):
        round_matches = sorted(
            (match for match in matches if match.round == round_number),
            key=lambda match: match.match_number,
        )
        lines.append(_round_name(round_number, rounds))
        for match in round_matches:
            is_bye = match.is_bye()
            competitor_one = label(match.participant1_id, is_bye=is_bye)
            competitor_two = label(match.participant2_id, is_bye=is_bye)
            lines.append(
                f"  [M{match.match_id}] {competitor_one} vs {competitor_two}"
                f" ({match.status})"
            )
            if match.winner_id is not None:
                lines.append(f"    -> Winner: {label(match.winner_id, is_bye=False)}")
            else:
                lines.append("    -> Winner: TBD")
        lines.append("")
    if lines and not lines[-1]:
        lines.pop()

    champion = champion_id(matches)
    if champion is not None:
        lines.append(f"Champion: {label(champion, is_bye=False)}")
    return "\n".join(line.rstrip() for line in lines)


__all__ = [
    "advance_winner",
    "bracket_size",
    "champion_id",
    "generate_bracket",
    "parent_position",
    "render_bracket",
    "total_rounds",
]
