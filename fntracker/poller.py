# fntracker/poller.py
"""
Poll-cycle driver.

A cycle fetches every roster player one after another, then applies all
observations and the inactivity sweep in one synchronous block. Dashboard
reads run on the same event loop, so they only ever see the state before or
after a whole cycle.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from fntracker.models import Observation
from fntracker.store import PlayerSessionStore
from fntracker.timeutil import now_ms

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    started_at: int
    finished_at: int = 0
    new_matches: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    closed_sessions: List[str] = field(default_factory=list)


class Poller:
    """Drive observation fetches into the store.

    ``feed`` is any object with ``async fetch_latest_observation(entry)``
    returning an ``Observation`` or None.
    """

    def __init__(
        self,
        store: PlayerSessionStore,
        feed,
        poll_seconds: float = 60,
        fetch_timeout_seconds: float = 240,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.feed = feed
        self.poll_seconds = poll_seconds
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.clock = clock
        self.last_report: Optional[CycleReport] = None
        self.last_error: Optional[str] = None
        self.cycles = 0

    async def _fetch(self, entry) -> Optional[Observation]:
        try:
            return await asyncio.wait_for(
                self.feed.fetch_latest_observation(entry),
                timeout=self.fetch_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Fetch for %s timed out after %ss", entry.name, self.fetch_timeout_seconds)
        except Exception:
            logger.exception("Fetch for %s failed", entry.name)
        return None

    async def run_cycle(self) -> CycleReport:
        report = CycleReport(started_at=self.clock())

        observations: List[Observation] = []
        for entry in self.store.roster:
            observation = await self._fetch(entry)
            if observation is None:
                report.skipped.append(entry.name)
            else:
                observations.append(observation)

        # No awaits below: the cycle's writes land together.
        for observation in observations:
            try:
                if self.store.record_observation(observation):
                    report.new_matches.append(observation.player)
            except Exception:
                logger.exception("Applying observation for %s failed", observation.player)
                report.skipped.append(observation.player)

        report.closed_sessions = self.store.close_inactive_sessions(self.clock())
        report.finished_at = self.clock()

        self.cycles += 1
        self.last_report = report
        logger.info(
            "Cycle %s: %s new, %s skipped, %s closed",
            self.cycles,
            len(report.new_matches),
            len(report.skipped),
            len(report.closed_sessions),
        )
        return report

    async def run_forever(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Run cycles every ``poll_seconds`` until ``stop_event`` is set."""
        stop_event = stop_event or asyncio.Event()
        while not stop_event.is_set():
            try:
                await self.run_cycle()
                self.last_error = None
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self.last_error = str(exc)
                logger.exception("Scan cycle failed")

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_seconds)
            except asyncio.TimeoutError:
                pass
