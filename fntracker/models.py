# fntracker/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional


@dataclass(frozen=True)
class RosterEntry:
    name: str
    url: str


@dataclass
class Session:
    """A contiguous play period. ``end`` is None while the session is open."""

    start: int
    end: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.end is None

    def copy(self) -> "Session":
        return Session(self.start, self.end)


@dataclass
class Player:
    name: str
    url: str = ""
    last_match_id: Optional[str] = None
    last_match_at: Optional[int] = None
    sessions: List[Session] = field(default_factory=list)

    def open_session(self) -> Optional[Session]:
        """Return the open session, which can only ever be the last one."""
        if self.sessions and self.sessions[-1].is_open:
            return self.sessions[-1]
        return None

    def copy(self) -> "Player":
        return Player(
            name=self.name,
            url=self.url,
            last_match_id=self.last_match_id,
            last_match_at=self.last_match_at,
            sessions=[s.copy() for s in self.sessions],
        )


@dataclass(frozen=True)
class Observation:
    player: str
    match_id: str
    observed_at: int


@dataclass(frozen=True)
class LatestMatch:
    player: str
    match_id: str
    at: int


@dataclass(frozen=True)
class OverlapInterval:
    start: int
    end: int
    participants: FrozenSet[str]

    @property
    def duration_ms(self) -> int:
        return self.end - self.start

    @property
    def count(self) -> int:
        return len(self.participants)


@dataclass
class OverlapSummary:
    by_count: Dict[int, int] = field(default_factory=dict)

    def duration_for(self, count: int) -> int:
        return self.by_count.get(count, 0)

    @property
    def exactly2_ms(self) -> int:
        return self.duration_for(2)

    @property
    def exactly3_ms(self) -> int:
        return self.duration_for(3)

    @property
    def exactly4plus_ms(self) -> int:
        return sum(ms for count, ms in self.by_count.items() if count >= 4)

    @property
    def two_or_more_ms(self) -> int:
        return sum(self.by_count.values())


@dataclass
class OverlapReport:
    summary: OverlapSummary
    intervals: List[OverlapInterval]
    total_intervals: int = 0
