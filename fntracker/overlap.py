# fntracker/overlap.py
"""
Overlap engine: sweep line over every player's session intervals.

Each interval contributes a +1 event at its start and a -1 event at its end.
Events are processed in time order with closes before opens at the same
instant, so a hand-off between two players never counts as concurrent play.
Between two consecutive distinct instants the active set is constant; when it
holds two or more players that span becomes an ``OverlapInterval``.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Set, Tuple

from fntracker.inference import is_playing_now
from fntracker.models import OverlapInterval, OverlapReport, OverlapSummary, Player

DEFAULT_MAX_INTERVALS = 100

CLOSE = -1
OPEN = 1

Event = Tuple[int, int, str]


def session_intervals(players: Iterable[Player], now: int, inactivity_window_ms: int) -> List[Tuple[str, int, int]]:
    """Collect ``(player, start, end)`` for every interval that takes part in the sweep.

    Closed sessions are used as stored. An open session only counts while its
    player is playing now, and then it runs until ``now``. An open session of
    a player outside the activity window contributes nothing until the
    inactivity sweep closes it.
    """
    intervals = []
    for player in players:
        playing = is_playing_now(player, now, inactivity_window_ms)
        for session in player.sessions:
            if session.end is not None:
                end = session.end
            elif playing:
                end = now
            else:
                continue
            if end > session.start:
                intervals.append((player.name, session.start, end))
    return intervals


def build_events(intervals: Iterable[Tuple[str, int, int]]) -> List[Event]:
    events: List[Event] = []
    for name, start, end in intervals:
        events.append((start, OPEN, name))
        events.append((end, CLOSE, name))
    # CLOSE (-1) sorts before OPEN (+1) at equal instants.
    events.sort(key=lambda e: (e[0], e[1]))
    return events


def sweep(events: List[Event]) -> List[OverlapInterval]:
    active: Set[str] = set()
    found: List[OverlapInterval] = []
    prev_t = None

    for t, kind, name in events:
        if prev_t is not None and t > prev_t and len(active) >= 2:
            participants = frozenset(active)
            if found and found[-1].end == prev_t and found[-1].participants == participants:
                # Same set on both sides of a player's own hand-off: keep it one span.
                found[-1] = OverlapInterval(start=found[-1].start, end=t, participants=participants)
            else:
                found.append(OverlapInterval(start=prev_t, end=t, participants=participants))

        if kind == CLOSE:
            active.discard(name)
        else:
            active.add(name)
        prev_t = t

    return found


def summarize(intervals: Iterable[OverlapInterval]) -> OverlapSummary:
    by_count: Dict[int, int] = defaultdict(int)
    for interval in intervals:
        by_count[interval.count] += interval.duration_ms
    return OverlapSummary(by_count=dict(sorted(by_count.items())))


def compute_overlaps(
    players: Iterable[Player],
    now: int,
    inactivity_window_ms: int,
    max_intervals: int = DEFAULT_MAX_INTERVALS,
) -> OverlapReport:
    """Full overlap computation. The summary covers every interval; only the
    most recent ``max_intervals`` intervals are returned."""
    events = build_events(session_intervals(players, now, inactivity_window_ms))
    intervals = sweep(events)
    summary = summarize(intervals)
    recent = intervals[-max_intervals:] if max_intervals > 0 else []
    return OverlapReport(summary=summary, intervals=recent, total_intervals=len(intervals))
