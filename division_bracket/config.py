"""Environment configuration for the bracket bot and admin tools."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def env_bool(name: str, *, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_int(name: str, *, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    table_name: str | None
    aws_region: str
    discord_token: str | None
    guild_id: int | None
    admin_role_id: int | None
    bracket_seed: int | None
    log_level: str
    sync_global_commands: bool


def read_settings() -> Settings:
    return Settings(
        table_name=os.getenv("TOURNAMENT_TABLE_NAME") or None,
        aws_region=os.getenv("AWS_REGION", "us-east-1"),
        discord_token=os.getenv("DISCORD_TOKEN") or None,
        guild_id=env_int("TOURNAMENT_GUILD_ID"),
        admin_role_id=env_int("TOURNAMENT_ADMIN_ROLE_ID"),
        bracket_seed=env_int("BRACKET_SEED"),
        log_level=os.getenv("BRACKET_LOG_LEVEL", "INFO").upper(),
        sync_global_commands=env_bool("BRACKET_SYNC_GLOBAL", default=False),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )


__all__ = [
    "LOG_FORMAT",
    "Settings",
    "configure_logging",
    "env_bool",
    "env_int",
    "read_settings",
]
