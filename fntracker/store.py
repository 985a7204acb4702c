# fntracker/store.py

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from fntracker import inference
from fntracker.models import LatestMatch, Observation, Player, RosterEntry, Session
from fntracker.persistence import StateFile
from fntracker.timeutil import now_ms, parse_iso, to_iso

logger = logging.getLogger(__name__)


class StateFormatError(ValueError):
    """Raised when persisted state cannot be trusted."""


class PlayerSessionStore:
    """Authoritative per-player state: last match pointer and session log.

    All mutations go through ``record_observation`` and
    ``close_inactive_sessions``; readers get copies. Each accepted mutation is
    a durability checkpoint when a state file is attached.
    """

    def __init__(
        self,
        roster: Iterable[RosterEntry],
        state_file: Optional[StateFile] = None,
        inactivity_minutes: float = inference.DEFAULT_INACTIVITY_MINUTES,
        created_at: Optional[int] = None,
    ):
        self.state_file = state_file
        self.inactivity_window_ms = inference.window_ms(inactivity_minutes)
        self.created_at = created_at if created_at is not None else now_ms()
        self.latest_match: Optional[LatestMatch] = None
        self._roster = list(roster)
        self._players: Dict[str, Player] = {
            entry.name: Player(name=entry.name, url=entry.url) for entry in self._roster
        }

    @classmethod
    def load(
        cls,
        roster: Iterable[RosterEntry],
        state_file: StateFile,
        inactivity_minutes: float = inference.DEFAULT_INACTIVITY_MINUTES,
    ) -> "PlayerSessionStore":
        """Build the store from disk, falling back to a clean state on any problem."""
        store = cls(roster, state_file=state_file, inactivity_minutes=inactivity_minutes)
        data = state_file.load()
        if data is None:
            logger.info("No saved state at %s, starting fresh", state_file.path)
            return store
        try:
            store.apply_state(data)
        except StateFormatError as e:
            logger.warning("Saved state at %s is corrupt, starting fresh: %s", state_file.path, e)
            return cls(roster, state_file=state_file, inactivity_minutes=inactivity_minutes)
        return store

    @classmethod
    def from_state(
        cls,
        data: Dict[str, Any],
        roster: Iterable[RosterEntry],
        state_file: Optional[StateFile] = None,
        inactivity_minutes: float = inference.DEFAULT_INACTIVITY_MINUTES,
    ) -> "PlayerSessionStore":
        """Build a store from a persisted layout. Raises StateFormatError."""
        store = cls(roster, state_file=state_file, inactivity_minutes=inactivity_minutes)
        store.apply_state(data)
        return store

    # --- Read access ---

    @property
    def roster(self) -> List[RosterEntry]:
        return list(self._roster)

    def player_names(self) -> List[str]:
        return list(self._players)

    def get_player(self, name: str) -> Optional[Player]:
        player = self._players.get(name)
        return player.copy() if player else None

    def players(self) -> List[Player]:
        return [p.copy() for p in self._players.values()]

    def last_match_id(self, name: str) -> Optional[str]:
        return self._players[name].last_match_id

    def last_match_at(self, name: str) -> Optional[int]:
        return self._players[name].last_match_at

    def sessions(self, name: str) -> List[Session]:
        return [s.copy() for s in self._players[name].sessions]

    def is_playing_now(self, name: str, now: int) -> bool:
        return inference.is_playing_now(self._players[name], now, self.inactivity_window_ms)

    # --- Mutation ---

    def record_observation(self, observation: Observation) -> bool:
        """Apply a new observation. Returns True when it was a new match."""
        player = self._players.get(observation.player)
        if player is None:
            logger.warning("Ignoring observation for unknown player %s", observation.player)
            return False

        if not inference.open_on_new_match(player, observation.match_id, observation.observed_at):
            return False

        self.latest_match = LatestMatch(
            player=player.name,
            match_id=observation.match_id,
            at=observation.observed_at,
        )
        logger.info(
            "New match %s -> %s @ %s", player.name, observation.match_id, to_iso(observation.observed_at)
        )
        self.checkpoint()
        return True

    def close_inactive_sessions(self, now: Optional[int] = None) -> List[str]:
        """Run the inactivity sweep and checkpoint. Returns closed player names."""
        now = now if now is not None else now_ms()
        closed = inference.close_inactive_sessions(self._players.values(), now, self.inactivity_window_ms)
        self.checkpoint()
        return closed

    def checkpoint(self) -> bool:
        if self.state_file is None:
            return True
        return self.state_file.save(self.to_state())

    # --- Serialization ---

    def to_state(self) -> Dict[str, Any]:
        return {
            'players': {
                p.name: {
                    'name': p.name,
                    'url': p.url,
                    'lastMatchId': p.last_match_id,
                    'lastMatchAt': to_iso(p.last_match_at),
                    'sessions': [{'start': to_iso(s.start), 'end': to_iso(s.end)} for s in p.sessions],
                }
                for p in self._players.values()
            },
            'latestMatch': (
                {
                    'player': self.latest_match.player,
                    'matchId': self.latest_match.match_id,
                    'at': to_iso(self.latest_match.at),
                }
                if self.latest_match
                else None
            ),
            'createdAt': to_iso(self.created_at),
        }

    def apply_state(self, data: Dict[str, Any]) -> None:
        """Replace in-memory state with ``data``, merged against the roster.

        Roster players missing from ``data`` keep their default entry and
        known players keep the URL from the roster. Players only present in
        ``data`` are retained.
        """
        raw_players = data.get('players')
        if not isinstance(raw_players, dict):
            raise StateFormatError("'players' must be an object")

        players: Dict[str, Player] = {}
        for name, raw in raw_players.items():
            players[name] = _parse_player(name, raw)

        for entry in self._roster:
            if entry.name in players:
                players[entry.name].url = entry.url
            else:
                players[entry.name] = Player(name=entry.name, url=entry.url)

        latest = _parse_latest_match(data.get('latestMatch'))
        created_at = _parse_instant(data.get('createdAt'), 'createdAt')

        self._players = players
        self.latest_match = latest
        if created_at is not None:
            self.created_at = created_at


def _parse_instant(value: Any, label: str) -> Optional[int]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise StateFormatError(f"{label} must be an ISO timestamp, got {value!r}")
    try:
        instant = parse_iso(value)
        # Must render back, or every later checkpoint fails.
        to_iso(instant)
    except (ValueError, OverflowError) as e:
        raise StateFormatError(f"{label} is not a valid timestamp: {value!r}") from e
    return instant


def _parse_player(name: str, raw: Any) -> Player:
    if not isinstance(raw, dict):
        raise StateFormatError(f"player {name!r} must be an object")

    last_match_id = raw.get('lastMatchId')
    if last_match_id is not None and not isinstance(last_match_id, str):
        raise StateFormatError(f"player {name!r} lastMatchId must be a string")

    raw_sessions = raw.get('sessions') or []
    if not isinstance(raw_sessions, list):
        raise StateFormatError(f"player {name!r} sessions must be a list")

    sessions: List[Session] = []
    for i, raw_session in enumerate(raw_sessions):
        if not isinstance(raw_session, dict):
            raise StateFormatError(f"player {name!r} session {i} must be an object")
        start = _parse_instant(raw_session.get('start'), f"{name} session {i} start")
        end = _parse_instant(raw_session.get('end'), f"{name} session {i} end")
        if start is None:
            raise StateFormatError(f"player {name!r} session {i} has no start")
        if end is not None and end < start:
            raise StateFormatError(f"player {name!r} session {i} ends before it starts")
        if sessions:
            previous = sessions[-1]
            if previous.end is None:
                raise StateFormatError(f"player {name!r} has an open session before session {i}")
            if start < previous.end:
                raise StateFormatError(f"player {name!r} session {i} overlaps the previous one")
        sessions.append(Session(start=start, end=end))

    return Player(
        name=name,
        url=str(raw.get('url') or ''),
        last_match_id=last_match_id,
        last_match_at=_parse_instant(raw.get('lastMatchAt'), f"{name} lastMatchAt"),
        sessions=sessions,
    )


def _parse_latest_match(raw: Any) -> Optional[LatestMatch]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise StateFormatError("latestMatch must be an object or null")
    at = _parse_instant(raw.get('at'), 'latestMatch.at')
    if not raw.get('player') or not raw.get('matchId') or at is None:
        raise StateFormatError("latestMatch is missing player, matchId or at")
    return LatestMatch(player=str(raw['player']), match_id=str(raw['matchId']), at=at)
