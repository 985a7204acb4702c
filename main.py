# main.py

import argparse
import asyncio
import logging
import sys

from fntracker.config import Settings, build_roster
from fntracker.overlap import compute_overlaps
from fntracker.persistence import StateFile
from fntracker.poller import Poller
from fntracker.scraper import MatchScraper
from fntracker.store import PlayerSessionStore
from fntracker.timeutil import format_duration, format_local, now_ms


def _safe_print(message: str) -> None:
    """Print with Unicode fallback for restricted terminal encodings."""
    try:
        print(message)
    except UnicodeEncodeError:
        print(message.encode("ascii", "replace").decode("ascii"))


def _load_store(settings: Settings) -> PlayerSessionStore:
    return PlayerSessionStore.load(settings.roster, StateFile(settings.state_path), settings.inactivity_minutes)


def cmd_serve(settings: Settings) -> int:
    import uvicorn
    from web.app import create_app

    feed = MatchScraper(headless=not settings.headed)
    app = create_app(settings, feed=feed)
    _safe_print(f"Dashboard: http://{settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port)
    return 0


async def _scan_once(settings: Settings) -> int:
    store = _load_store(settings)
    async with MatchScraper(headless=not settings.headed) as scraper:
        poller = Poller(
            store,
            scraper,
            poll_seconds=settings.poll_seconds,
            fetch_timeout_seconds=settings.fetch_timeout_seconds,
        )
        report = await poller.run_cycle()

    _safe_print(f"New matches:     {', '.join(report.new_matches) or '-'}")
    _safe_print(f"Skipped:         {', '.join(report.skipped) or '-'}")
    _safe_print(f"Closed sessions: {', '.join(report.closed_sessions) or '-'}")
    return 0


def cmd_scan(settings: Settings) -> int:
    return asyncio.run(_scan_once(settings))


def cmd_report(settings: Settings) -> int:
    store = _load_store(settings)
    now = now_ms()

    _safe_print("=" * 60)
    _safe_print("PLAYERS")
    _safe_print("=" * 60)
    for player in store.players():
        status = "PLAYING" if store.is_playing_now(player.name, now) else "idle"
        _safe_print(
            f"{player.name:<20} {status:<8} last match {format_local(player.last_match_at, settings.tz)}"
            f"  sessions={len(player.sessions)}"
        )

    report = compute_overlaps(store.players(), now, store.inactivity_window_ms, settings.max_intervals)
    summary = report.summary

    _safe_print("")
    _safe_print("=" * 60)
    _safe_print("TIME TOGETHER")
    _safe_print("=" * 60)
    for count, ms in summary.by_count.items():
        _safe_print(f"  exactly {count} players: {format_duration(ms)}")
    _safe_print(f"  2 or more:          {format_duration(summary.two_or_more_ms)}")

    if report.intervals:
        _safe_print("")
        _safe_print("Most recent overlaps:")
        for interval in report.intervals[-10:]:
            _safe_print(
                f"  {format_local(interval.start, settings.tz)} -> {format_local(interval.end, settings.tz)}"
                f"  {format_duration(interval.duration_ms)}  {', '.join(sorted(interval.participants))}"
            )
    return 0


COMMANDS = {
    "serve": cmd_serve,
    "scan": cmd_scan,
    "report": cmd_report,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Track when a roster of Fortnite players is online, and when they play together",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --port 8080
  python main.py scan --players "Zumito Kun,Cronoxis"
  python main.py report --tz UTC
        """,
    )
    parser.add_argument("command", nargs="?", default="serve", choices=sorted(COMMANDS))
    parser.add_argument("--players", help="Comma-separated roster (overrides FNTRACKER_PLAYERS)")
    parser.add_argument("--state", dest="state_path", help="Path to the JSON state file")
    parser.add_argument("--host", help="Dashboard bind address")
    parser.add_argument("--port", type=int, help="Dashboard port")
    parser.add_argument("--tz", help="Display time zone, e.g. Europe/Madrid")
    parser.add_argument("--inactivity-minutes", type=float, help="Idle minutes before a session closes")
    parser.add_argument("--poll-seconds", type=float, help="Seconds between scan cycles")
    parser.add_argument("--headed", action="store_true", default=None, help="Show the browser window")
    parser.add_argument("--verbose", action="store_true", help="Verbose logging")
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    roster = build_roster(args.players.split(",")) if args.players else None
    return settings.with_overrides(
        roster=roster or None,
        state_path=args.state_path,
        host=args.host,
        port=args.port,
        tz=args.tz,
        inactivity_minutes=args.inactivity_minutes,
        poll_seconds=args.poll_seconds,
        headed=args.headed,
    )


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        settings = settings_from_args(args)
    except ValueError as e:
        _safe_print(f"Invalid configuration: {e}")
        return 2
    return COMMANDS[args.command](settings)


if __name__ == "__main__":
    sys.exit(main())
