import asyncio

from fntracker.models import Session
from fntracker.poller import Poller
from tests.helpers import FakeFeed, RecordingStateFile, at, make_store, minutes, obs


def _poller(store, feed, now, **kwargs):
    return Poller(store, feed, poll_seconds=0.01, clock=lambda: now, **kwargs)


def test_cycle_applies_observations_and_sweeps():
    recorder = RecordingStateFile()
    store = make_store("Alpha", "Bravo", "Charlie", state_file=recorder)
    feed = FakeFeed({
        "Alpha": obs("Alpha", "a1", "10:00"),
        "Bravo": None,
        "Charlie": obs("Charlie", "c1", "10:10"),
    })
    report = asyncio.run(_poller(store, feed, at("10:15")).run_cycle())

    assert feed.calls == ["Alpha", "Bravo", "Charlie"]
    assert report.new_matches == ["Alpha", "Charlie"]
    assert report.skipped == ["Bravo"]
    assert report.closed_sessions == []
    assert store.sessions("Alpha") == [Session(at("10:00"), None)]
    # one checkpoint per accepted match plus the sweep
    assert recorder.saves == 3


def test_failing_player_does_not_abort_cycle():
    store = make_store("Alpha", "Bravo")
    feed = FakeFeed({
        "Alpha": RuntimeError("browser crashed"),
        "Bravo": obs("Bravo", "b1", "10:00"),
    })
    report = asyncio.run(_poller(store, feed, at("10:05")).run_cycle())
    assert report.skipped == ["Alpha"]
    assert report.new_matches == ["Bravo"]


def test_slow_fetch_counts_as_no_observation():
    store = make_store("Alpha", "Bravo")

    async def hang(entry):
        await asyncio.sleep(5)

    feed = FakeFeed({"Alpha": hang, "Bravo": obs("Bravo", "b1", "10:00")})
    poller = _poller(store, feed, at("10:05"), fetch_timeout_seconds=0.05)
    report = asyncio.run(poller.run_cycle())
    assert report.skipped == ["Alpha"]
    assert store.last_match_id("Bravo") == "b1"


def test_writes_land_after_all_fetches():
    store = make_store("Alpha", "Bravo")
    seen_during_fetch = {}

    async def inspect_then_observe(entry):
        seen_during_fetch["alpha_match"] = store.last_match_id("Alpha")
        return obs("Bravo", "b1", "10:01")

    feed = FakeFeed({"Alpha": obs("Alpha", "a1", "10:00"), "Bravo": inspect_then_observe})
    asyncio.run(_poller(store, feed, at("10:05")).run_cycle())

    assert seen_during_fetch["alpha_match"] is None
    assert store.last_match_id("Alpha") == "a1"


def test_sweep_runs_without_new_observations():
    store = make_store("Alpha")
    store.record_observation(obs("Alpha", "a1", "10:00"))
    report = asyncio.run(_poller(store, FakeFeed(), at("10:00") + minutes(31)).run_cycle())
    assert report.closed_sessions == ["Alpha"]
    assert store.sessions("Alpha") == [Session(at("10:00"), at("10:00"))]


def test_run_forever_stops_on_event():
    store = make_store("Alpha")

    async def scenario():
        stop = asyncio.Event()
        poller = _poller(store, FakeFeed(), at("10:00"))
        task = asyncio.create_task(poller.run_forever(stop))
        while poller.cycles < 2:
            await asyncio.sleep(0.005)
        stop.set()
        await asyncio.wait_for(task, timeout=1)
        return poller

    poller = asyncio.run(scenario())
    assert poller.cycles >= 2
    assert poller.last_error is None


def test_run_forever_survives_cycle_errors():
    store = make_store("Alpha")

    async def scenario():
        stop = asyncio.Event()
        poller = _poller(store, FakeFeed(), at("10:00"))
        calls = []

        async def broken_cycle():
            calls.append(1)
            if len(calls) >= 2:
                stop.set()
            raise RuntimeError("disk on fire")

        poller.run_cycle = broken_cycle
        await asyncio.wait_for(poller.run_forever(stop), timeout=1)
        return poller, calls

    poller, calls = asyncio.run(scenario())
    assert len(calls) == 2
    assert poller.last_error == "disk on fire"
