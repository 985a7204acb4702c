# fntracker/scraper/parser.py
"""
Match-page parsing.

The profile matches page lists match links (``/match/<id>``) with a
``<time datetime="...">`` element somewhere near each link. The most recent
match is the link whose associated timestamp is the latest.
"""

from typing import Optional, Tuple

from bs4 import BeautifulSoup

from fntracker.timeutil import parse_iso

MATCH_LINK_SELECTOR = 'a[href*="/match/"]'
TIME_SELECTOR = 'time[datetime]'
CONTAINER_TAGS = ["article", "li", "tr", "div", "section"]
MAX_ANCESTOR_HOPS = 4


def extract_match_id(href: str) -> Optional[str]:
    """'/fortnite/match/abc123?x=1#top' -> 'abc123'."""
    if not href or "/match/" not in href:
        return None
    tail = href.split("/match/", 1)[1]
    for sep in ("?", "#"):
        tail = tail.split(sep, 1)[0]
    match_id = tail.strip()
    return match_id or None


def _find_time_element(link):
    container = link.find_parent(CONTAINER_TAGS) or link
    time_el = container.select_one(TIME_SELECTOR)
    if time_el is not None:
        return time_el

    parent = link.parent
    for _ in range(MAX_ANCESTOR_HOPS):
        if parent is None or not hasattr(parent, "select_one"):
            break
        time_el = parent.select_one(TIME_SELECTOR)
        if time_el is not None:
            return time_el
        parent = parent.parent
    return None


def parse_latest_match(html: str) -> Optional[Tuple[str, int]]:
    """Return ``(match_id, timestamp_ms)`` of the newest match on the page, or None."""
    soup = BeautifulSoup(html or "", "html.parser")
    best: Optional[Tuple[str, int]] = None

    for link in soup.select(MATCH_LINK_SELECTOR):
        match_id = extract_match_id(link.get("href", ""))
        time_el = _find_time_element(link)
        raw_dt = (time_el.get("datetime") or "").strip() if time_el is not None else ""
        if not match_id or not raw_dt:
            continue
        try:
            ts = parse_iso(raw_dt)
        except ValueError:
            continue
        if best is None or ts > best[1]:
            best = (match_id, ts)

    return best
