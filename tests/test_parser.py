# tests/test_parser.py

import pytest

from fntracker.scraper.parser import extract_match_id, parse_latest_match
from tests.helpers import at

MATCHES_PAGE = """
<html><body>
  <section class="matches">
    <article class="match">
      <a href="/profile/all/Alpha/match/older-1">Solo</a>
      <time datetime="2024-05-01T09:40:00Z">1h ago</time>
    </article>
    <article class="match">
      <a href="/profile/all/Alpha/match/newest-2?source=list#stats">Duos</a>
      <time datetime="2024-05-01T10:15:00.000Z">20m ago</time>
    </article>
    <article class="match">
      <a href="/profile/all/Alpha/match/middle-3">Squads</a>
      <time datetime="2024-05-01T10:00:00Z">35m ago</time>
    </article>
  </section>
</body></html>
"""


class TestParseLatestMatch:

    def test_picks_newest_match(self):
        assert parse_latest_match(MATCHES_PAGE) == ("newest-2", at("10:15"))

    def test_time_found_through_ancestor_fallback(self):
        html = """
        <ul><li>
          <div class="row"><span><a href="/match/abc">Match</a></span></div>
          <time datetime="2024-05-01T10:30:00Z"></time>
        </li></ul>
        """
        assert parse_latest_match(html) == ("abc", at("10:30"))

    def test_links_without_timestamp_are_skipped(self):
        html = """
        <div><a href="/match/no-time">x</a></div>
        <p><a href="/match/also-no-time">y</a></p>
        """
        assert parse_latest_match(html) is None

    def test_invalid_timestamp_is_skipped(self):
        html = """
        <li><a href="/match/bad">x</a><time datetime="soon"></time></li>
        <li><a href="/match/good">y</a><time datetime="2024-05-01T08:00:00Z"></time></li>
        """
        assert parse_latest_match(html) == ("good", at("08:00"))

    def test_equal_timestamps_keep_first_link(self):
        html = """
        <tr><td><a href="/match/first">x</a><time datetime="2024-05-01T08:00:00Z"></time></td></tr>
        <tr><td><a href="/match/second">y</a><time datetime="2024-05-01T08:00:00Z"></time></td></tr>
        """
        assert parse_latest_match("<table>" + html + "</table>") == ("first", at("08:00"))

    def test_timestamp_with_offset(self):
        html = '<li><a href="/match/m">x</a><time datetime="2024-05-01T12:00:00+02:00"></time></li>'
        assert parse_latest_match(html) == ("m", at("10:00"))

    @pytest.mark.parametrize("html", ["", "<html><body>No matches</body></html>"])
    def test_empty_pages(self, html):
        assert parse_latest_match(html) is None


@pytest.mark.parametrize("href,expected", [
    ("/match/abc", "abc"),
    ("https://fortnitetracker.com/profile/all/x/match/abc?x=1", "abc"),
    ("/match/abc#top", "abc"),
    ("/match/", None),
    ("/matches", None),
    ("", None),
])
def test_extract_match_id(href, expected):
    assert extract_match_id(href) == expected
