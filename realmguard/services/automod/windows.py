"""
Sliding Window Tracker
======================

Bounded time-window bookkeeping for the rate-based detectors.

DESIGN:
    Each tenant owns one WindowStore. Windows are keyed by (player,
    category) so chat, commands, packet anomalies and per-type packet
    counters never share state. Every read prunes first, so an idle
    window can never grow between reads; the periodic sweep only has to
    drop windows nobody has touched for a while.

    Time is always passed in by the caller. Detectors get "now" from the
    tenant's clock, which lets tests drive everything with a fake clock.
"""

from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Hashable, List, Optional, Tuple


MAX_WINDOW_ENTRIES = 1000
"""Hard cap per window, in case a caller configures a very long window."""


# =============================================================================
# Sliding Window
# =============================================================================

@dataclass
class WindowEntry:
    """One recorded event and when it happened."""
    event: Any
    timestamp: float


class SlidingWindow:
    """
    Ordered events younger than ``duration`` seconds.

    An entry is kept while ``now - timestamp < duration``, so a window
    queried exactly ``duration`` seconds after its last insert is empty.
    """

    def __init__(self, duration: float, max_entries: int = MAX_WINDOW_ENTRIES) -> None:
        self.duration = duration
        self._entries: Deque[WindowEntry] = deque(maxlen=max_entries)

    def prune(self, now: float) -> int:
        """Drop expired entries and return how many were dropped."""
        dropped = 0
        while self._entries and now - self._entries[0].timestamp >= self.duration:
            self._entries.popleft()
            dropped += 1
        return dropped

    def add(self, event: Any, now: float) -> None:
        self._entries.append(WindowEntry(event, now))
        self.prune(now)

    def entries(self, now: float) -> List[WindowEntry]:
        self.prune(now)
        return list(self._entries)

    def events(self, now: float) -> List[Any]:
        return [entry.event for entry in self.entries(now)]

    def count(self, now: float) -> int:
        self.prune(now)
        return len(self._entries)

    @property
    def last_timestamp(self) -> Optional[float]:
        return self._entries[-1].timestamp if self._entries else None


# =============================================================================
# Fixed Rate Counter
# =============================================================================

class RateCounter:
    """
    Count events in back-to-back fixed windows of ``length`` seconds.

    Tracks how many consecutive finished windows went over budget. A
    finished window at or under budget, or any fully idle window, resets
    the streak.
    """

    def __init__(self, length: float = 1.0) -> None:
        self.length = length
        self.count = 0
        self.window_start: Optional[float] = None
        self.streak = 0
        self.last_seen: Optional[float] = None

    def hit(self, now: float, budget: int) -> int:
        """Record one event and return the current window's count."""
        if self.window_start is None:
            self.window_start = now
        elif now - self.window_start >= self.length:
            if self.count > budget:
                self.streak += 1
            else:
                self.streak = 0
            if now - self.window_start >= 2 * self.length:
                self.streak = 0  # At least one empty window in between
            self.count = 0
            self.window_start = now

        self.count += 1
        self.last_seen = now
        return self.count


# =============================================================================
# Window Store
# =============================================================================

WindowKey = Tuple[Hashable, str]


class WindowStore:
    """All windows and counters of one tenant."""

    def __init__(self) -> None:
        self._windows: Dict[WindowKey, SlidingWindow] = {}
        self._counters: Dict[WindowKey, RateCounter] = {}

    def window(self, player: Hashable, category: str, duration: float) -> SlidingWindow:
        """Get or create the window, following duration changes in settings."""
        key = (player, category)
        window = self._windows.get(key)
        if window is None:
            window = SlidingWindow(duration)
            self._windows[key] = window
        elif window.duration != duration:
            window.duration = duration
        return window

    def counter(self, player: Hashable, category: str, length: float = 1.0) -> RateCounter:
        key = (player, category)
        counter = self._counters.get(key)
        if counter is None:
            counter = RateCounter(length)
            self._counters[key] = counter
        return counter

    def count(self, player: Hashable, category: str, now: float) -> int:
        window = self._windows.get((player, category))
        return window.count(now) if window else 0

    def forget_player(self, player: Hashable) -> None:
        for store in (self._windows, self._counters):
            for key in [k for k in store if k[0] == player]:
                del store[key]

    def sweep(self, now: float, max_age: float) -> int:
        """
        Drop windows and counters idle for longer than ``max_age``.

        Returns:
            Number of windows and counters removed.
        """
        removed = 0

        for key, window in list(self._windows.items()):
            window.prune(now)
            last = window.last_timestamp
            if last is None or now - last > max_age:
                del self._windows[key]
                removed += 1

        for key, counter in list(self._counters.items()):
            if counter.last_seen is None or now - counter.last_seen > max_age:
                del self._counters[key]
                removed += 1

        return removed

    def clear(self) -> None:
        self._windows.clear()
        self._counters.clear()

    def __len__(self) -> int:
        return len(self._windows) + len(self._counters)


__all__ = [
    "WindowEntry",
    "SlidingWindow",
    "RateCounter",
    "WindowStore",
    "MAX_WINDOW_ENTRIES",
]
