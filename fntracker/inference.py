# fntracker/inference.py
"""
Session inference rules.

Two independent rules run at different triggers:

- ``open_on_new_match`` runs for every observation of a poll cycle. A match id
  that differs from the stored one updates the player's last match and opens a
  session when none is open. Repeated match ids change nothing.
- ``close_inactive_sessions`` runs once per poll cycle for every player. An
  open session whose last match is older than the inactivity window is closed
  at the last match instant, so session length reflects play time and not
  polling latency.
"""

import logging
from typing import Iterable, List, Optional

from fntracker.models import Player, Session
from fntracker.timeutil import MS_PER_MINUTE, minutes_between, ms_between

logger = logging.getLogger(__name__)

DEFAULT_INACTIVITY_MINUTES = 30


def window_ms(inactivity_minutes: float) -> int:
    return int(inactivity_minutes * MS_PER_MINUTE)


def is_playing_now(player: Player, now: int, inactivity_window_ms: int) -> bool:
    if player.last_match_at is None:
        return False
    return ms_between(player.last_match_at, now) <= inactivity_window_ms


def open_on_new_match(player: Player, match_id: str, match_at: int) -> bool:
    """Apply an observation to a player. Returns False for a repeated match id."""
    if match_id == player.last_match_id:
        return False

    player.last_match_id = match_id
    player.last_match_at = match_at

    if player.open_session() is None:
        start = match_at
        if player.sessions and player.sessions[-1].end > start:
            # An out-of-order match must not overlap the closed log.
            start = player.sessions[-1].end
        player.sessions.append(Session(start=start))
        logger.info("Session opened for %s at match %s", player.name, match_id)
    return True


def close_if_inactive(player: Player, now: int, inactivity_window_ms: int) -> Optional[Session]:
    """Close the player's open session when it has gone stale.

    Returns the closed session, or None when nothing changed.
    """
    session = player.open_session()
    if session is None:
        return None

    if player.last_match_at is None:
        # No grounding timestamp: never keep such a session open.
        session.end = max(now, session.start)
        logger.warning("Closed session for %s with no last match at detection time", player.name)
        return session

    if ms_between(player.last_match_at, now) <= inactivity_window_ms:
        return None

    session.end = max(player.last_match_at, session.start)
    logger.info(
        "Session closed for %s after %.1f idle minutes",
        player.name,
        minutes_between(player.last_match_at, now),
    )
    return session


def close_inactive_sessions(players: Iterable[Player], now: int, inactivity_window_ms: int) -> List[str]:
    """Run the inactivity sweep over every player; returns the names closed."""
    closed = []
    for player in players:
        if close_if_inactive(player, now, inactivity_window_ms) is not None:
            closed.append(player.name)
    return closed
