"""
Player Sessions
===============

Live sessions and capped history per tenant.
"""

from .models import LeaveSummary, PlayerHistoryRecord, PlayerSession
from .tracker import DEFAULT_MAX_HISTORY, PlayerTracker

__all__ = [
    "LeaveSummary",
    "PlayerHistoryRecord",
    "PlayerSession",
    "PlayerTracker",
    "DEFAULT_MAX_HISTORY",
]
