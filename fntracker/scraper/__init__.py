# fntracker/scraper/__init__.py
"""
Observation feed: Playwright scraping of fortnitetracker.com match pages.
"""

from .core import MatchScraper, ScraperBlockedError, PlayerNotFoundError
from .parser import extract_match_id, parse_latest_match

__all__ = [
    'MatchScraper',
    'ScraperBlockedError',
    'PlayerNotFoundError',
    'extract_match_id',
    'parse_latest_match',
]
