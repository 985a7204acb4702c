# fntracker/projection.py
"""Read-only dashboard payload built from the store and the overlap engine."""

from typing import Any, Dict

from fntracker.overlap import DEFAULT_MAX_INTERVALS, compute_overlaps
from fntracker.store import PlayerSessionStore
from fntracker.timeutil import to_iso, to_zone_iso


def build_snapshot(
    store: PlayerSessionStore,
    now: int,
    tz: str,
    max_intervals: int = DEFAULT_MAX_INTERVALS,
) -> Dict[str, Any]:
    players = store.players()

    player_rows = []
    for p in players:
        player_rows.append({
            'name': p.name,
            'url': p.url,
            'lastMatchId': p.last_match_id,
            'lastMatchAt': to_iso(p.last_match_at),
            'lastMatchAtLocal': to_zone_iso(p.last_match_at, tz),
            'playingNow': store.is_playing_now(p.name, now),
            'sessions': [{'start': to_iso(s.start), 'end': to_iso(s.end)} for s in p.sessions],
        })

    report = compute_overlaps(players, now, store.inactivity_window_ms, max_intervals=max_intervals)
    summary = report.summary

    latest = store.latest_match
    return {
        'nowUtc': to_iso(now),
        'tz': tz,
        'latestMatch': (
            {'player': latest.player, 'matchId': latest.match_id, 'at': to_iso(latest.at)}
            if latest else None
        ),
        'players': player_rows,
        'overlaps': {
            'summary': {
                'exactly2Ms': summary.exactly2_ms,
                'exactly3Ms': summary.exactly3_ms,
                'exactly4PlusMs': summary.exactly4plus_ms,
                'twoOrMoreMs': summary.two_or_more_ms,
                'byCount': {str(count): ms for count, ms in summary.by_count.items()},
            },
            'intervals': [
                {
                    'start': to_iso(i.start),
                    'end': to_iso(i.end),
                    'durationMs': i.duration_ms,
                    'players': sorted(i.participants),
                    'count': i.count,
                }
                for i in report.intervals
            ],
            'totalIntervals': report.total_intervals,
        },
    }
