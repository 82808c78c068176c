"""
Session Data Models
===================

Live player sessions and the per-tenant history ledger.
"""

from dataclasses import dataclass, field
from typing import Optional, Set


@dataclass
class PlayerSession:
    """One online period of one player."""
    gamertag: str
    xuid: str
    device: str
    joined_at: float
    uuid: Optional[str] = None
    runtime_id: Optional[int] = None
    message_count: int = 0
    death_count: int = 0
    is_first_join: bool = False


@dataclass
class PlayerHistoryRecord:
    """Everything remembered about a player across sessions."""
    xuid: str
    gamertag: str
    first_seen: float
    last_seen: float
    total_sessions: int = 0
    total_playtime: float = 0.0
    total_messages: int = 0
    total_deaths: int = 0
    devices: Set[str] = field(default_factory=set)


@dataclass
class LeaveSummary:
    """Returned when a session ends, for reporting."""
    gamertag: str
    xuid: str
    device: str
    duration: float
    duration_formatted: str
    messages: int
    deaths: int
