#!/usr/bin/env python3
"""Discord bot running single-elimination division brackets."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Final

import boto3
import discord
from discord import app_commands
from discord.app_commands import errors as app_errors

from division_bracket import (
    BracketStorage,
    InvalidValueError,
    Match,
    Participant,
    TournamentService,
    normalize_division,
)
from division_bracket.config import configure_logging, read_settings

# ---------- Environment ----------
SETTINGS: Final = read_settings()

REQUIRED_VARS = ("DISCORD_TOKEN", "TOURNAMENT_TABLE_NAME")

# ---------- Logging ----------
configure_logging(SETTINGS.log_level)
log = logging.getLogger("bracket-bot")

# ---------- Discord Setup ----------
intents = discord.Intents.default()
intents.guilds = True

bot = discord.Client(intents=intents)
tree = app_commands.CommandTree(bot)

GUILD_OBJECT = (
    discord.Object(id=SETTINGS.guild_id) if SETTINGS.guild_id is not None else None
)


def bracket_command(*args, **kwargs):
    """Register a slash command scoped to the configured tournament guild."""

    def decorator(func):
        command_kwargs = dict(kwargs)
        if (
            GUILD_OBJECT is not None
            and "guild" not in command_kwargs
            and "guilds" not in command_kwargs
        ):
            command_kwargs["guild"] = GUILD_OBJECT
        return tree.command(*args, **command_kwargs)(func)

    return decorator


# ---------- Permission Checks ----------


def has_admin_access(member: object) -> bool:
    guild_perms = getattr(member, "guild_permissions", None)
    if getattr(guild_perms, "administrator", False):
        return True
    if SETTINGS.admin_role_id is None:
        return False
    for role in getattr(member, "roles", None) or []:
        if getattr(role, "id", None) == SETTINGS.admin_role_id:
            return True
    return False


def require_admin():
    async def predicate(interaction: discord.Interaction) -> bool:
        if has_admin_access(interaction.user):
            return True
        raise app_commands.CheckFailure(
            "You need administrator or tournament-admin role to run this command."
        )

    return app_commands.check(predicate)


# ---------- AWS Clients ----------
dynamodb = boto3.resource("dynamodb", region_name=SETTINGS.aws_region)
table = dynamodb.Table(SETTINGS.table_name) if SETTINGS.table_name else None

_rng = (
    random.Random(SETTINGS.bracket_seed)
    if SETTINGS.bracket_seed is not None
    else random.Random()
)
_services: dict[int, TournamentService] = {}


def get_service(guild_id: int) -> TournamentService:
    service = _services.get(guild_id)
    if service is None:
        service = TournamentService(BracketStorage(table, guild_id), rng=_rng)
        _services[guild_id] = service
    return service


# ---------- Helpers ----------
BRACKET_EMBED_FIRST_CHUNK_LIMIT: Final[int] = 3200
BRACKET_EMBED_CONTINUATION_LIMIT: Final[int] = 3900


def ensure_guild(interaction: discord.Interaction) -> discord.Guild:
    guild = interaction.guild
    if guild is None:
        raise RuntimeError("This command can only be used in a server")
    return guild


async def send_ephemeral(interaction: discord.Interaction, message: str) -> None:
    if interaction.response.is_done():
        await interaction.followup.send(message, ephemeral=True)
    else:
        await interaction.response.send_message(message, ephemeral=True)


def format_participant_lines(participants: Sequence[Participant]) -> list[str]:
    lines: list[str] = []
    for participant in participants:
        line = (
            f"#{participant.participant_id} {participant.player_name}"
            f" | Discord: {participant.discord_user}"
            f" | Roblox: {participant.roblox_user}"
            f" | Score: {participant.score} | {participant.status}"
        )
        if participant.experience:
            line += f"\n  - {participant.experience}"
        lines.append(line)
    return lines


def describe_match(match: Match, participants: Sequence[Participant]) -> str:
    names = {entry.participant_id: entry.player_name for entry in participants}

    def label(participant_id: int | None) -> str:
        if participant_id is None:
            return "TBD"
        return names.get(participant_id, f"#{participant_id}")

    text = (
        f"Match {match.match_id} (round {match.round}, #{match.match_number}): "
        f"{label(match.participant1_id)} vs {label(match.participant2_id)}"
        f" [{match.status}]"
    )
    if match.winner_id is not None:
        text += f" - winner {label(match.winner_id)}"
    return text


def chunk_bracket_text(graph: str) -> list[str]:
    """Split a rendered bracket into safe chunks for embed descriptions."""

    if not graph:
        return [""]

    chunks: list[str] = []
    current = ""
    limit = BRACKET_EMBED_FIRST_CHUNK_LIMIT
    for line in graph.splitlines():
        addition = ("\n" if current else "") + line
        if len(current) + len(addition) > limit:
            chunks.append(current)
            current = line
            limit = BRACKET_EMBED_CONTINUATION_LIMIT
        else:
            current += addition
    if current or not chunks:
        chunks.append(current)
    return chunks


def build_bracket_embeds(
    division: str,
    graph: str,
    *,
    champion: Participant | None,
    requested_by: object | None = None,
) -> list[discord.Embed]:
    embeds: list[discord.Embed] = []
    chunks = chunk_bracket_text(graph)
    for index, chunk in enumerate(chunks):
        title = f"{division} bracket"
        if len(chunks) > 1:
            title += f" ({index + 1}/{len(chunks)})"
        embeds.append(
            discord.Embed(
                title=title,
                description=f"```\n{chunk}\n```" if chunk else "Bracket is empty",
                color=discord.Color.blurple(),
                timestamp=datetime.now(UTC),
            )
        )
    if champion is not None:
        embeds[-1].add_field(name="Champion", value=champion.display(), inline=False)
    if requested_by is not None:
        embeds[-1].set_footer(text=f"Requested by {requested_by}")
    return embeds


# ---------- Slash Commands ----------
@app_commands.describe(
    player_name="Name shown on the bracket",
    roblox_user="Your Roblox username",
    division="Division to enter (e.g. lightweight)",
    experience="Optional note about your experience",
)
@bracket_command(name="register", description="Register for a division bracket")
async def register_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
    player_name: str,
    roblox_user: str,
    division: str,
    experience: str | None = None,
) -> None:
    guild = ensure_guild(interaction)
    service = get_service(guild.id)
    service.storage.ensure_table()
    participant = service.register_participant(
        player_name=player_name,
        discord_user=str(interaction.user),
        roblox_user=roblox_user,
        division=division,
        experience=experience,
    )
    await interaction.response.send_message(
        f"Registered {participant.display()} in {participant.division}. "
        "The division bracket has been regenerated.",
        ephemeral=True,
    )


@app_commands.describe(division="Division to list")
@bracket_command(name="participants", description="List a division's participants")
async def participants_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
    division: str,
) -> None:
    guild = ensure_guild(interaction)
    service = get_service(guild.id)
    participants = service.list_participants(division)
    if not participants:
        await send_ephemeral(interaction, "Nobody has registered for that division.")
        return
    body = "\n".join(format_participant_lines(participants))
    await interaction.response.send_message(f"```\n{body}\n```", ephemeral=True)


@app_commands.describe(division="Division to show")
@bracket_command(name="bracket", description="Show a division bracket")
async def bracket_command_handler(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
    division: str,
) -> None:
    guild = ensure_guild(interaction)
    service = get_service(guild.id)
    division_id = normalize_division(division)
    embeds = build_bracket_embeds(
        division_id,
        service.bracket_text(division_id),
        champion=service.champion(division_id),
        requested_by=interaction.user,
    )
    await interaction.response.send_message(embed=embeds[0])
    for embed in embeds[1:]:
        await interaction.followup.send(embed=embed)


@require_admin()
@app_commands.describe(division="Division to rebuild")
@bracket_command(
    name="generate-bracket", description="Rebuild a division bracket from scratch"
)
async def generate_bracket_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
    division: str,
) -> None:
    guild = ensure_guild(interaction)
    matches = get_service(guild.id).generate_bracket(division)
    if matches is None:
        await send_ephemeral(
            interaction, "At least two participants are needed to build a bracket."
        )
        return
    await send_ephemeral(
        interaction,
        f"Bracket rebuilt with {len(matches)} matches. "
        "Report each bye with /report-result to move its player forward.",
    )


@require_admin()
@app_commands.describe(match_id="Match identifier")
@bracket_command(name="start-match", description="Mark a match as in progress")
async def start_match_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
    match_id: int,
) -> None:
    guild = ensure_guild(interaction)
    service = get_service(guild.id)
    match = service.start_match(match_id)
    if match is None:
        await send_ephemeral(interaction, "Match not found.")
        return
    participants = service.list_participants(match.division)
    await send_ephemeral(interaction, describe_match(match, participants))


@require_admin()
@app_commands.describe(match_id="Match identifier", winner_id="Winning participant id")
@bracket_command(
    name="report-result",
    description="Record the winner of a match (report byes to advance them)",
)
async def report_result_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
    match_id: int,
    winner_id: int,
) -> None:
    guild = ensure_guild(interaction)
    service = get_service(guild.id)
    match = service.report_result(match_id, winner_id)
    if match is None:
        await send_ephemeral(interaction, "Match not found.")
        return
    participants = service.list_participants(match.division)
    message = describe_match(match, participants)
    champion = service.champion(match.division)
    if champion is not None:
        message += f"\n{champion.player_name} is the {match.division} champion!"
    await interaction.response.send_message(message)


@require_admin()
@app_commands.describe(participant_id="Participant identifier", score="New score")
@bracket_command(name="set-score", description="Update a participant's score")
async def set_score_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
    participant_id: int,
    score: int,
) -> None:
    guild = ensure_guild(interaction)
    participant = get_service(guild.id).update_participant(participant_id, score=score)
    if participant is None:
        await send_ephemeral(interaction, "Participant not found.")
        return
    await send_ephemeral(
        interaction, f"{participant.display()} now has {participant.score} points."
    )


@require_admin()
@app_commands.describe(participant_id="Participant identifier", status="New status")
@bracket_command(name="set-status", description="Update a participant's status")
async def set_status_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
    participant_id: int,
    status: str,
) -> None:
    guild = ensure_guild(interaction)
    participant = get_service(guild.id).update_participant(
        participant_id, status=status
    )
    if participant is None:
        await send_ephemeral(interaction, "Participant not found.")
        return
    await send_ephemeral(
        interaction, f"{participant.display()} is now {participant.status}."
    )


@require_admin()
@app_commands.describe(participant_id="Participant identifier")
@bracket_command(name="withdraw", description="Remove a participant record")
async def withdraw_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
    participant_id: int,
) -> None:
    guild = ensure_guild(interaction)
    if get_service(guild.id).delete_participant(participant_id):
        await send_ephemeral(interaction, f"Participant {participant_id} removed.")
    else:
        await send_ephemeral(interaction, "Participant not found.")


@require_admin()
@app_commands.describe(match_id="Match identifier")
@bracket_command(name="remove-match", description="Delete a single match record")
async def remove_match_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
    match_id: int,
) -> None:
    guild = ensure_guild(interaction)
    if get_service(guild.id).delete_match(match_id):
        await send_ephemeral(interaction, f"Match {match_id} removed.")
    else:
        await send_ephemeral(interaction, "Match not found.")


def describe_command_error(error: Exception) -> str | None:
    """User-facing text for an expected command failure, ``None`` otherwise."""
    original = getattr(error, "original", error)
    if isinstance(error, app_errors.CheckFailure):
        return str(error) or "You are not allowed to run this command."
    if isinstance(original, InvalidValueError):
        return str(original)
    if isinstance(original, RuntimeError):
        return str(original)
    return None


@tree.error
async def on_app_command_error(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction, error: app_commands.AppCommandError
) -> None:
    message = describe_command_error(error)
    if message is None:
        log.exception("Unhandled command error: %s", error)
        message = "An unexpected error occurred while running that command."
    await send_ephemeral(interaction, message)


# ---------- Lifecycle ----------
@bot.event
async def on_ready() -> None:  # pragma: no cover - Discord lifecycle hook
    if GUILD_OBJECT is not None and not SETTINGS.sync_global_commands:
        tree.clear_commands(guild=None)
        await tree.sync(guild=None)
        await tree.sync(guild=GUILD_OBJECT)
        log.info("Commands synced to guild %s", SETTINGS.guild_id)
    else:
        await tree.sync()
        log.info("Commands synced globally")
    log.info("Bracket bot ready as %s (%s)", bot.user, bot.user.id)


async def main() -> None:  # pragma: no cover - CLI entry point
    missing = [
        var
        for var, value in zip(
            REQUIRED_VARS, (SETTINGS.discord_token, SETTINGS.table_name), strict=True
        )
        if not value
    ]
    if missing:
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    async with bot:
        await bot.start(SETTINGS.discord_token)  # type: ignore[arg-type]


if __name__ == "__main__":
    asyncio.run(main())
