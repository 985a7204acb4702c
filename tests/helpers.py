# tests/helpers.py

from fntracker.config import build_roster
from fntracker.models import Observation, Player, Session
from fntracker.store import PlayerSessionStore
from fntracker.timeutil import MS_PER_MINUTE, parse_iso

DAY = "2024-05-01"


def at(clock: str, day: str = DAY) -> int:
    """at('10:15') -> epoch ms for 2024-05-01T10:15:00Z."""
    if clock.count(":") == 1:
        clock += ":00"
    return parse_iso(f"{day}T{clock}Z")


def minutes(n: float) -> int:
    return int(n * MS_PER_MINUTE)


def make_player(name: str, *sessions, last_match_id=None, last_match_at=None) -> Player:
    """make_player('A', ('10:00', '10:30'), ('11:00', None))"""
    return Player(
        name=name,
        url=f"https://example.test/{name}",
        last_match_id=last_match_id,
        last_match_at=last_match_at,
        sessions=[Session(at(start), at(end) if end else None) for start, end in sessions],
    )


def make_store(*names, state_file=None, inactivity_minutes=30) -> PlayerSessionStore:
    return PlayerSessionStore(
        build_roster(names or ("Alpha", "Bravo")),
        state_file=state_file,
        inactivity_minutes=inactivity_minutes,
    )


def obs(player: str, match_id: str, clock: str) -> Observation:
    return Observation(player=player, match_id=match_id, observed_at=at(clock))


class FakeFeed:
    """Scripted observation feed. Values may be an Observation, None or an exception."""

    def __init__(self, results=None):
        self.results = dict(results or {})
        self.calls = []

    async def fetch_latest_observation(self, entry):
        self.calls.append(entry.name)
        result = self.results.get(entry.name)
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return await result(entry)
        return result


class RecordingStateFile:
    """In-memory stand-in for StateFile that counts saves."""

    def __init__(self, data=None, fail=False):
        self.path = "memory://state.json"
        self.data = data
        self.fail = fail
        self.saves = 0

    def load(self):
        return self.data

    def save(self, state):
        self.saves += 1
        if self.fail:
            return False
        self.data = state
        return True
