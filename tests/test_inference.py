# tests/test_inference.py

import unittest

from fntracker import inference
from fntracker.models import Player, Session
from tests.helpers import at, make_player, minutes

WINDOW = minutes(30)


class TestOpenOnNewMatch(unittest.TestCase):

    def setUp(self):
        self.player = Player(name="Alpha")

    def test_first_match_opens_session_at_match_time(self):
        changed = inference.open_on_new_match(self.player, "m1", at("10:00"))
        self.assertTrue(changed)
        self.assertEqual(self.player.sessions, [Session(at("10:00"), None)])
        self.assertEqual(self.player.last_match_id, "m1")
        self.assertEqual(self.player.last_match_at, at("10:00"))

    def test_repeated_match_id_changes_nothing(self):
        inference.open_on_new_match(self.player, "m1", at("10:00"))
        changed = inference.open_on_new_match(self.player, "m1", at("10:20"))
        self.assertFalse(changed)
        self.assertEqual(len(self.player.sessions), 1)
        self.assertEqual(self.player.last_match_at, at("10:00"))

    def test_new_match_is_absorbed_into_open_session(self):
        inference.open_on_new_match(self.player, "m1", at("10:00"))
        changed = inference.open_on_new_match(self.player, "m2", at("10:20"))
        self.assertTrue(changed)
        self.assertEqual(self.player.sessions, [Session(at("10:00"), None)])
        self.assertEqual(self.player.last_match_at, at("10:20"))

    def test_new_match_after_close_opens_second_session(self):
        inference.open_on_new_match(self.player, "m1", at("10:00"))
        inference.close_if_inactive(self.player, at("11:00"), WINDOW)
        inference.open_on_new_match(self.player, "m2", at("12:00"))
        self.assertEqual(
            self.player.sessions,
            [Session(at("10:00"), at("10:00")), Session(at("12:00"), None)],
        )

    def test_out_of_order_match_never_overlaps_closed_log(self):
        player = make_player("Alpha", ("10:00", "10:40"), last_match_id="m2", last_match_at=at("10:40"))
        inference.open_on_new_match(player, "m0", at("10:10"))
        self.assertEqual(player.sessions[-1], Session(at("10:40"), None))


class TestCloseOnInactivity(unittest.TestCase):

    def _open_player(self, last_clock="10:30"):
        return make_player("Alpha", ("10:00", None), last_match_id="m9", last_match_at=at(last_clock))

    def test_closes_at_last_match_not_at_detection_time(self):
        player = self._open_player()
        closed = inference.close_if_inactive(player, at("10:30") + WINDOW + 1, WINDOW)
        self.assertIsNotNone(closed)
        self.assertEqual(player.sessions[-1].end, at("10:30"))

    def test_exactly_window_elapsed_stays_open(self):
        player = self._open_player()
        self.assertIsNone(inference.close_if_inactive(player, at("10:30") + WINDOW, WINDOW))
        self.assertTrue(player.sessions[-1].is_open)

    def test_open_session_without_last_match_closes_now(self):
        player = make_player("Alpha", ("10:00", None))
        inference.close_if_inactive(player, at("10:05"), WINDOW)
        self.assertEqual(player.sessions[-1].end, at("10:05"))

    def test_no_open_session_is_a_no_op(self):
        player = make_player("Alpha", ("10:00", "10:30"), last_match_at=at("10:30"))
        self.assertIsNone(inference.close_if_inactive(player, at("18:00"), WINDOW))
        self.assertEqual(player.sessions, [Session(at("10:00"), at("10:30"))])

    def test_sweep_reports_closed_players(self):
        stale = make_player("Stale", ("09:00", None), last_match_at=at("09:10"))
        fresh = make_player("Fresh", ("10:00", None), last_match_at=at("10:20"))
        closed = inference.close_inactive_sessions([stale, fresh], at("10:30"), WINDOW)
        self.assertEqual(closed, ["Stale"])
        self.assertTrue(fresh.sessions[-1].is_open)


class TestPlayingNow(unittest.TestCase):

    def test_no_match_is_not_playing(self):
        self.assertFalse(inference.is_playing_now(Player(name="Alpha"), at("10:00"), WINDOW))

    def test_within_window(self):
        player = make_player("Alpha", last_match_at=at("10:00"))
        self.assertTrue(inference.is_playing_now(player, at("10:30"), WINDOW))
        self.assertFalse(inference.is_playing_now(player, at("10:30") + 1, WINDOW))

    def test_distance_is_absolute(self):
        player = make_player("Alpha", last_match_at=at("10:10"))
        self.assertTrue(inference.is_playing_now(player, at("10:00"), WINDOW))

    def test_window_ms(self):
        self.assertEqual(inference.window_ms(30), 1_800_000)
        self.assertEqual(inference.window_ms(0.5), 30_000)


if __name__ == '__main__':
    unittest.main()
