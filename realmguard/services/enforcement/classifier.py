"""
Disconnect Classifier
=====================

Decides what a connection-ending signal means for the realm.
"""

import re
from enum import Enum
from typing import Optional, Pattern

from realmguard.services.game_events import SignalKind


class Classification(str, Enum):
    NORMAL_CLOSE = "normal_close"
    REALM_CLOSED = "realm_closed"
    REALM_CRASHED = "realm_crashed"
    KICKED = "kicked"


# Trigger kinds used in the attribution ban reason
TRIGGER_UNEXPECTED_DISCONNECT = "unexpected_disconnect"
TRIGGER_CONNECTION_ERROR = "connection_error"
TRIGGER_KICK_CRASH = "kick_crash"

CLOSING_PATTERN: Pattern = re.compile(
    r"world\s*closed|server\s*closed|closing|shut\s*down|shutdown|not\s*accepting|offline|closed",
    re.IGNORECASE,
)
CRASH_PATTERN: Pattern = re.compile(
    r"internal\s*error|crash|exception|server\s*error|internal",
    re.IGNORECASE,
)


def is_closing_reason(reason: Optional[str]) -> bool:
    return bool(reason) and bool(CLOSING_PATTERN.search(reason))


def is_crash_reason(reason: Optional[str]) -> bool:
    return bool(reason) and bool(CRASH_PATTERN.search(reason))


def classify(was_connected: bool, kind: SignalKind, reason: Optional[str] = None) -> Classification:
    """
    Classify a close, error or kick.

    A close or error while the session was live, without closing or
    offline phrasing, is a crash regardless of what the reason says.
    Everything else is matched on phrasing; kicks default to KICKED.
    """
    reason = reason or ""

    if kind in (SignalKind.CLOSE, SignalKind.ERROR):
        if is_closing_reason(reason):
            return Classification.REALM_CLOSED
        if was_connected:
            return Classification.REALM_CRASHED
        if is_crash_reason(reason):
            return Classification.REALM_CRASHED
        return Classification.NORMAL_CLOSE

    if kind == SignalKind.KICK:
        if is_closing_reason(reason):
            return Classification.REALM_CLOSED
        if is_crash_reason(reason):
            return Classification.REALM_CRASHED
        return Classification.KICKED

    return Classification.NORMAL_CLOSE


def trigger_kind(kind: SignalKind) -> str:
    """Name of the trigger that led to a crash classification."""
    if kind == SignalKind.ERROR:
        return TRIGGER_CONNECTION_ERROR
    if kind == SignalKind.KICK:
        return TRIGGER_KICK_CRASH
    return TRIGGER_UNEXPECTED_DISCONNECT


def attribution_reason(trigger: str) -> str:
    return f"{trigger}: crash-attributed ban"


__all__ = [
    "Classification",
    "classify",
    "trigger_kind",
    "attribution_reason",
    "is_closing_reason",
    "is_crash_reason",
    "TRIGGER_UNEXPECTED_DISCONNECT",
    "TRIGGER_CONNECTION_ERROR",
    "TRIGGER_KICK_CRASH",
]
