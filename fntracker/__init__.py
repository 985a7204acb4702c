"""
fntracker: session and overlap tracking for a roster of Fortnite players.

Polls each player's match history page, infers play sessions from the
newest match timestamps and reports when players were online together.
"""

__version__ = "1.0.0"
