"""
Tests for realmguard/services/automod/windows.py

Covers sliding-window expiry, fixed-window rate counting and the
per-tenant window store sweep.
"""

import pytest

from realmguard.services.automod.windows import RateCounter, SlidingWindow, WindowStore


# =============================================================================
# SlidingWindow Tests
# =============================================================================

class TestSlidingWindow:
    """Tests for SlidingWindow."""

    def test_counts_entries_inside_window(self):
        window = SlidingWindow(duration=10)
        for i in range(4):
            window.add(f"msg{i}", 100.0 + i)
        assert window.count(103.0) == 4

    def test_empty_after_duration_elapses(self):
        window = SlidingWindow(duration=10)
        for i in range(4):
            window.add(f"msg{i}", 100.0)
        assert window.count(109.9) == 4
        assert window.count(110.0) == 0

    def test_prunes_oldest_first(self):
        window = SlidingWindow(duration=5)
        window.add("a", 0.0)
        window.add("b", 3.0)
        window.add("c", 6.0)
        assert window.events(6.0) == ["b", "c"]

    def test_max_entries_caps_memory(self):
        window = SlidingWindow(duration=1000, max_entries=3)
        for i in range(10):
            window.add(i, float(i))
        assert window.events(10.0) == [7, 8, 9]

    def test_last_timestamp(self):
        window = SlidingWindow(duration=10)
        assert window.last_timestamp is None
        window.add("x", 42.0)
        assert window.last_timestamp == 42.0


# =============================================================================
# RateCounter Tests
# =============================================================================

class TestRateCounter:
    """Tests for RateCounter."""

    def test_counts_within_one_window(self):
        counter = RateCounter(length=1.0)
        for _ in range(30):
            count = counter.hit(10.0, budget=30)
        assert count == 30
        assert counter.streak == 0

    def test_resets_on_new_window(self):
        counter = RateCounter(length=1.0)
        for _ in range(5):
            counter.hit(10.0, budget=30)
        assert counter.hit(11.0, budget=30) == 1

    def test_streak_grows_over_budget(self):
        counter = RateCounter(length=1.0)
        for second in range(4):
            for _ in range(12):
                counter.hit(100.0 + second, budget=10)
        # Three finished windows over budget before the fourth started
        assert counter.streak == 3

    def test_streak_resets_under_budget(self):
        counter = RateCounter(length=1.0)
        for _ in range(12):
            counter.hit(100.0, budget=10)
        counter.hit(101.0, budget=10)
        assert counter.streak == 1
        counter.hit(102.0, budget=10)
        assert counter.streak == 0

    def test_streak_resets_after_idle_window(self):
        counter = RateCounter(length=1.0)
        for _ in range(12):
            counter.hit(100.0, budget=10)
        counter.hit(105.0, budget=10)
        assert counter.streak == 0


# =============================================================================
# WindowStore Tests
# =============================================================================

class TestWindowStore:
    """Tests for WindowStore."""

    def test_windows_keyed_by_player_and_category(self):
        store = WindowStore()
        store.window("p1", "chat", 10).add("hi", 0.0)
        store.window("p2", "chat", 10).add("hi", 0.0)
        store.window("p1", "commands", 5).add("/tp", 0.0)

        assert store.count("p1", "chat", 1.0) == 1
        assert store.count("p2", "chat", 1.0) == 1
        assert store.count("p1", "commands", 1.0) == 1
        assert store.count("p3", "chat", 1.0) == 0

    def test_window_follows_duration_change(self):
        store = WindowStore()
        store.window("p1", "chat", 10)
        assert store.window("p1", "chat", 20).duration == 20

    def test_forget_player(self):
        store = WindowStore()
        store.window("p1", "chat", 10).add("hi", 0.0)
        store.counter("p1", "packets:move_player").hit(0.0, 30)
        store.window("p2", "chat", 10).add("hi", 0.0)

        store.forget_player("p1")
        assert len(store) == 1

    def test_sweep_drops_idle_windows(self):
        store = WindowStore()
        store.window("old", "chat", 10).add("hi", 0.0)
        store.counter("old", "packets:animate").hit(0.0, 10)
        store.window("new", "chat", 10).add("hi", 500.0)

        removed = store.sweep(now=505.0, max_age=300)
        assert removed == 2
        assert len(store) == 1
        assert store.count("new", "chat", 505.0) == 1

    def test_clear(self):
        store = WindowStore()
        store.window("p1", "chat", 10).add("hi", 0.0)
        store.clear()
        assert len(store) == 0
