from contextlib import asynccontextmanager
import asyncio
import logging
import os
import sys
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fntracker.config import Settings
from fntracker.persistence import StateFile
from fntracker.poller import Poller
from fntracker.projection import build_snapshot
from fntracker.scraper import MatchScraper
from fntracker.store import PlayerSessionStore
from fntracker.timeutil import now_ms, to_iso

logger = logging.getLogger(__name__)

static_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "static")

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}


class TrackerRuntime:
    """Everything the dashboard reads, plus the background poll task."""

    def __init__(self, settings: Settings, store: PlayerSessionStore, feed=None, clock=now_ms):
        self.settings = settings
        self.store = store
        self.feed = feed
        self.clock = clock
        self.poller = None
        if feed is not None:
            self.poller = Poller(
                store,
                feed,
                poll_seconds=settings.poll_seconds,
                fetch_timeout_seconds=settings.fetch_timeout_seconds,
                clock=clock,
            )
        self.stop_event: Optional[asyncio.Event] = None
        self.task = None
        self.feed_error = None
        self.last_snapshot = None

    async def run_tracker(self) -> None:
        """Start the browser, then poll until stopped. The web side keeps
        serving saved data when the browser cannot start."""
        start = getattr(self.feed, "start", None)
        if start is not None:
            try:
                await start()
            except Exception as e:
                self.feed_error = f"Browser failed to start: {e}"
                logger.exception("Playwright could not start; dashboard stays up without scraping")
                return
        logger.info("Tracker started for %s players", len(self.store.roster))
        await self.poller.run_forever(self.stop_event)

    async def startup(self) -> None:
        # Bound to the serving loop, not the one current at import time.
        self.stop_event = asyncio.Event()
        if self.poller is not None:
            self.task = asyncio.create_task(self.run_tracker())

    async def shutdown(self) -> None:
        if self.stop_event is not None:
            self.stop_event.set()
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
        close = getattr(self.feed, "close", None)
        if close is not None:
            await close()

    def snapshot(self) -> dict:
        try:
            self.last_snapshot = build_snapshot(
                self.store,
                self.clock(),
                self.settings.tz,
                max_intervals=self.settings.max_intervals,
            )
        except Exception:
            logger.exception("Building state snapshot failed")
            if self.last_snapshot is None:
                raise
            return {**self.last_snapshot, "stale": True}
        return self.last_snapshot

    def health(self) -> dict:
        report = self.poller.last_report if self.poller else None
        return {
            "polling": self.task is not None and not self.task.done(),
            "browserRunning": bool(getattr(self.feed, "running", False)),
            "cycles": self.poller.cycles if self.poller else 0,
            "lastCycleAt": to_iso(report.finished_at) if report else None,
            "lastSkipped": report.skipped if report else [],
            "lastError": self.feed_error or (self.poller.last_error if self.poller else None),
        }


def create_app(settings: Settings = None, store: PlayerSessionStore = None, feed=None, clock=now_ms) -> FastAPI:
    settings = settings or Settings.from_env()
    if store is None:
        state_file = StateFile(settings.state_path)
        store = PlayerSessionStore.load(settings.roster, state_file, settings.inactivity_minutes)
        logger.info("Using state file at: %s", state_file.path)
    runtime = TrackerRuntime(settings, store, feed=feed, clock=clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await runtime.startup()
        try:
            yield
        finally:
            await runtime.shutdown()

    app = FastAPI(title="fntracker", lifespan=lifespan)
    app.state.runtime = runtime
    if os.path.isdir(static_dir):
        app.mount("/static", StaticFiles(directory=static_dir), name="static")

    @app.get("/")
    async def root() -> HTMLResponse:
        index_path = os.path.join(static_dir, "index.html")
        try:
            with open(index_path, encoding="utf-8") as f:
                return HTMLResponse(content=f.read(), headers=NO_CACHE_HEADERS)
        except OSError as e:
            raise HTTPException(status_code=404, detail=f"Dashboard not found: {e}")

    @app.get("/api/state")
    async def state() -> dict:
        try:
            return runtime.snapshot()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to build state: {str(e)}")

    @app.get("/api/players/{name}")
    async def player_state(name: str) -> dict:
        snapshot = await state()
        for player in snapshot["players"]:
            if player["name"] == name:
                return player
        raise HTTPException(status_code=404, detail=f"Player '{name}' is not tracked")

    @app.get("/api/health")
    async def health() -> dict:
        return runtime.health()

    return app


def create_default_app() -> FastAPI:
    settings = Settings.from_env()
    feed = MatchScraper(headless=not settings.headed)
    return create_app(settings, feed=feed)


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    settings = Settings.from_env()
    print("Starting fntracker dashboard...")
    print(f"Open http://localhost:{settings.port} in your browser")
    uvicorn.run(create_default_app(), host=settings.host, port=settings.port)
