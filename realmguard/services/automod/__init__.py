"""
Automod
=======

Heuristic detectors, their sliding windows, and the engine that runs them.
"""

from .engine import DetectionEngine
from .models import DetectionFlag, DetectionVerdict, PlayerProfile, Severity
from .windows import RateCounter, SlidingWindow, WindowStore

__all__ = [
    "DetectionEngine",
    "DetectionFlag",
    "DetectionVerdict",
    "PlayerProfile",
    "Severity",
    "RateCounter",
    "SlidingWindow",
    "WindowStore",
]
