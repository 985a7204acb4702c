# fntracker/config.py
"""
Runtime settings.

Defaults live in module constants; every value can be overridden through a
FNTRACKER_* environment variable, and main.py flags override both.
"""

import os
from dataclasses import dataclass, field, replace
from typing import List, Optional
from urllib.parse import quote
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fntracker.inference import DEFAULT_INACTIVITY_MINUTES
from fntracker.models import RosterEntry
from fntracker.overlap import DEFAULT_MAX_INTERVALS

PROFILE_URL_TEMPLATE = "https://fortnitetracker.com/profile/all/{name}/matches"

DEFAULT_PLAYERS = ("Zumito Kun", "Lulau22", "Antocar69 TTV", "Cronoxis")

DEFAULT_STATE_PATH = "data/state.json"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_TZ = "Europe/Madrid"
DEFAULT_POLL_SECONDS = 60
# Above MatchScraper.worst_case_seconds() with its default timeouts.
DEFAULT_FETCH_TIMEOUT_SECONDS = 240


def profile_url(name: str) -> str:
    return PROFILE_URL_TEMPLATE.format(name=quote(name, safe=""))


def build_roster(names) -> List[RosterEntry]:
    roster = []
    seen = set()
    for raw in names:
        name = str(raw or "").strip()
        if not name or name in seen:
            continue
        seen.add(name)
        roster.append(RosterEntry(name=name, url=profile_url(name)))
    return roster


def _env_int(env, key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from exc


def _env_float(env, key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be a number, got {raw!r}") from exc


def _env_bool(env, key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    roster: List[RosterEntry] = field(default_factory=lambda: build_roster(DEFAULT_PLAYERS))
    state_path: str = DEFAULT_STATE_PATH
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    tz: str = DEFAULT_TZ
    inactivity_minutes: float = DEFAULT_INACTIVITY_MINUTES
    poll_seconds: float = DEFAULT_POLL_SECONDS
    fetch_timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS
    max_intervals: int = DEFAULT_MAX_INTERVALS
    headed: bool = False

    @classmethod
    def from_env(cls, env: Optional[dict] = None) -> "Settings":
        env = os.environ if env is None else env
        players = env.get("FNTRACKER_PLAYERS")
        roster = build_roster(players.split(",")) if players else build_roster(DEFAULT_PLAYERS)
        if not roster:
            raise ValueError("FNTRACKER_PLAYERS does not name any player")

        settings = cls(
            roster=roster,
            state_path=env.get("FNTRACKER_STATE_PATH") or DEFAULT_STATE_PATH,
            host=env.get("FNTRACKER_HOST") or DEFAULT_HOST,
            port=_env_int(env, "FNTRACKER_PORT", DEFAULT_PORT),
            tz=env.get("FNTRACKER_TZ") or DEFAULT_TZ,
            inactivity_minutes=_env_float(env, "FNTRACKER_INACTIVITY_MINUTES", DEFAULT_INACTIVITY_MINUTES),
            poll_seconds=_env_float(env, "FNTRACKER_POLL_SECONDS", DEFAULT_POLL_SECONDS),
            fetch_timeout_seconds=_env_float(env, "FNTRACKER_FETCH_TIMEOUT", DEFAULT_FETCH_TIMEOUT_SECONDS),
            max_intervals=_env_int(env, "FNTRACKER_MAX_INTERVALS", DEFAULT_MAX_INTERVALS),
            headed=_env_bool(env, "FNTRACKER_HEADED", False),
        )
        settings.validate()
        return settings

    def with_overrides(self, **overrides) -> "Settings":
        """Copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        updated = replace(self, **changes)
        updated.validate()
        return updated

    def validate(self) -> None:
        if self.inactivity_minutes <= 0:
            raise ValueError("inactivity window must be positive")
        if self.poll_seconds <= 0:
            raise ValueError("poll interval must be positive")
        if self.fetch_timeout_seconds <= 0:
            raise ValueError("fetch timeout must be positive")
        if self.max_intervals < 0:
            raise ValueError("max intervals cannot be negative")
        try:
            ZoneInfo(self.tz)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown time zone {self.tz!r}") from exc
