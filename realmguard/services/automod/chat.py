"""
Chat & Command Detectors
========================

Unicode payloads, chat flooding, command spam and advertising.

The flood and spam checks read and write the tenant's sliding windows;
the unicode and advertising checks are plain functions of the text.
"""

import re
from collections import Counter
from typing import Any, Hashable, List, Mapping, Pattern, Tuple

from realmguard.core.exceptions import MalformedEvent
from realmguard.core.settings import ChatFloodSettings, CommandSpamSettings

from .constants import (
    AD_ALLOWED_DOMAINS,
    CHAR_SPAM_MIN_LENGTH,
    CHAR_SPAM_RATIO,
    CHECK_ADVERTISING,
    CHECK_CHAT_FLOOD,
    CHECK_COMMAND_SPAM,
    CHECK_UNICODE,
    INVISIBLE_CHAR_THRESHOLD,
    RAPID_FIRE_GAP,
    RAPID_FIRE_MIN_GAPS,
    REPETITIVE_COMMAND_RATIO,
    VISIBLE_RATIO_MIN,
    VISIBLE_RATIO_MIN_LENGTH,
    WALL_OF_TEXT_LENGTH,
    ZALGO_THRESHOLD,
)
from .models import DetectionVerdict, Severity
from .windows import WindowStore


# =============================================================================
# Compiled Regex Patterns
# =============================================================================

DANGEROUS_UNICODE: List[Tuple[str, Pattern]] = [
    ("Combining mark run", re.compile(r"[\u0300-\u036f]{10,}")),
    ("Cyrillic millions signs", re.compile(r"\u0489{3,}")),
    ("Bidi override", re.compile(r"[\u202d\u202e]")),
    ("Bidi mark", re.compile(r"[\u200e\u200f]")),
    ("Bidi isolate", re.compile(r"[\u2066-\u2069]")),
    ("Null byte", re.compile(r"\x00")),
    ("Control character", re.compile(r"[\x01-\x08\x0b\x0c\x0e-\x1f\x7f]")),
    ("Object replacement", re.compile(r"\ufffc")),
    ("Replacement character run", re.compile(r"\ufffd{5,}")),
    ("Noncharacter", re.compile(r"[\ufffe\uffff]")),
    ("Zero-width run", re.compile(r"[\u200b-\u200d]{5,}")),
    ("Word joiner run", re.compile(r"\u2060{3,}")),
    ("BOM run", re.compile(r"\ufeff{2,}")),
    ("Private use run", re.compile(r"[\ue000-\uf8ff]{10,}")),
    ("Skin tone modifier run", re.compile(r"[\U0001F3FB-\U0001F3FF]{5,}")),
    ("Line separator", re.compile(r"[\u2028\u2029]")),
    ("Math alphanumeric run", re.compile(r"[\U0001D400-\U0001D7FF]{20,}")),
    ("Specials block", re.compile(r"[\ufff0-\ufff8]")),
    ("Tag characters", re.compile(r"[\U000E0000-\U000E007F]")),
]

COMBINING_MARK: Pattern = re.compile(r"[\u0300-\u036f]")
INVISIBLE_CHAR: Pattern = re.compile(r"[\u200b-\u200d\u2060\ufeff]")
HIDDEN_CHAR: Pattern = re.compile(r"[\u200b-\u200d\u2060\ufeff\u0300-\u036f]")

INVITE_PATTERNS: List[Pattern] = [
    re.compile(r"discord\.gg/[a-z0-9]+", re.IGNORECASE),
    re.compile(r"discord(?:app)?\.com/invite/[a-z0-9]+", re.IGNORECASE),
    re.compile(r"dsc\.gg/[a-z0-9]+", re.IGNORECASE),
]

PROMO_PATTERNS: List[Pattern] = [
    re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}(?::\d{1,5})?\b"),
    re.compile(r"\b[a-z0-9-]+\.(?:aternos|minehut|mc|play|server|net|pvp|hub)(?:\.[a-z]{2,})?(?::\d+)?\b", re.IGNORECASE),
    re.compile(r"join (?:my|our) (?:server|realm|discord|world)", re.IGNORECASE),
    re.compile(r"(?:server|realm) (?:ip|code|link|invite)", re.IGNORECASE),
    re.compile(r"come (?:join|play) (?:on|at)", re.IGNORECASE),
    re.compile(r"recruiting (?:for|players)", re.IGNORECASE),
    re.compile(r"looking for (?:members|players|staff)", re.IGNORECASE),
    re.compile(r"youtube\.com/(?:watch|channel|c)/?[\w-]*", re.IGNORECASE),
    re.compile(r"youtu\.be/[\w-]+", re.IGNORECASE),
    re.compile(r"twitch\.tv/\w+", re.IGNORECASE),
    re.compile(r"(?:sub(?:scribe)?|follow) (?:to )?(?:my|our) (?:channel|stream|youtube|twitch)", re.IGNORECASE),
    re.compile(r"(?:follow|add) (?:me|us) (?:on|at) (?:instagram|twitter|tiktok|snapchat)", re.IGNORECASE),
    re.compile(r"instagram\.com/[\w.]+", re.IGNORECASE),
    re.compile(r"twitter\.com/\w+", re.IGNORECASE),
    re.compile(r"tiktok\.com/@?[\w.]+", re.IGNORECASE),
    re.compile(r"(?:selling|buying|trading) (?:accounts?|ranks?|items?|coins?)", re.IGNORECASE),
    re.compile(r"(?:free|cheap) (?:accounts?|ranks?|nitro|robux)", re.IGNORECASE),
    re.compile(r"dm (?:me|for) (?:prices?|deals?|trades?)", re.IGNORECASE),
    re.compile(r"(?:check out|visit) (?:my|our) (?:website|site|store)", re.IGNORECASE),
    re.compile(r"www\.[a-z0-9-]+\.[a-z]{2,}", re.IGNORECASE),
]

ALLOWED_DOMAIN: Pattern = re.compile(
    r"\S*(?:" + "|".join(re.escape(d) for d in AD_ALLOWED_DOMAINS) + r")\S*",
    re.IGNORECASE,
)


# =============================================================================
# Unicode Payloads
# =============================================================================

def check_unicode(message: str) -> DetectionVerdict:
    """Flag text built to crash, hide or scramble other players' chat."""
    verdict = DetectionVerdict.clean(CHECK_UNICODE)
    if not message:
        return verdict

    for label, pattern in DANGEROUS_UNICODE:
        if pattern.search(message):
            verdict.add(label, Severity.HIGH)

    combining = len(COMBINING_MARK.findall(message))
    if combining > ZALGO_THRESHOLD:
        verdict.add(f"Zalgo text ({combining} combining marks)", Severity.HIGH)

    invisible = len(INVISIBLE_CHAR.findall(message))
    if invisible > INVISIBLE_CHAR_THRESHOLD:
        verdict.add(f"Invisible character spam ({invisible})", Severity.MEDIUM)

    if len(message) > VISIBLE_RATIO_MIN_LENGTH:
        visible = len(HIDDEN_CHAR.sub("", message))
        if visible < len(message) * VISIBLE_RATIO_MIN:
            verdict.add(f"Hidden text ({visible}/{len(message)} visible)", Severity.HIGH)

    return verdict


# =============================================================================
# Chat Flood
# =============================================================================

def check_chat_flood(
    windows: WindowStore,
    player: Hashable,
    message: str,
    now: float,
    settings: ChatFloodSettings,
) -> DetectionVerdict:
    """Record a chat line and flag rate, duplicate, rapid-fire and shape abuse."""
    verdict = DetectionVerdict.clean(CHECK_CHAT_FLOOD)
    window = windows.window(player, "chat", settings.time_window)
    window.add(message, now)
    recent = window.entries(now)

    if len(recent) > settings.max_messages:
        verdict.add(f"{len(recent)} messages in {settings.time_window:g}s", Severity.MEDIUM)

    duplicates = Counter(str(entry.event).lower().strip() for entry in recent)
    top_duplicate = duplicates.most_common(1)[0][1]
    if top_duplicate >= settings.duplicate_threshold:
        verdict.add(f"Same message sent {top_duplicate} times", Severity.HIGH)

    rapid = sum(
        1 for prev, cur in zip(recent, recent[1:])
        if cur.timestamp - prev.timestamp < RAPID_FIRE_GAP
    )
    if rapid >= RAPID_FIRE_MIN_GAPS:
        verdict.add(f"{rapid} rapid-fire messages", Severity.HIGH)

    if len(message) > CHAR_SPAM_MIN_LENGTH:
        top_char = Counter(message).most_common(1)[0][1]
        if top_char > len(message) * CHAR_SPAM_RATIO:
            verdict.add("Character spam", Severity.MEDIUM)

    if len(message) > WALL_OF_TEXT_LENGTH:
        verdict.add(f"Message too long ({len(message)} chars)", Severity.LOW)

    return verdict


# =============================================================================
# Command Spam
# =============================================================================

def check_command_spam(
    windows: WindowStore,
    player: Hashable,
    command: str,
    now: float,
    settings: CommandSpamSettings,
) -> DetectionVerdict:
    """Record a command and flag bursts, worse when one command dominates."""
    verdict = DetectionVerdict.clean(CHECK_COMMAND_SPAM)
    window = windows.window(player, "commands", settings.time_window)
    window.add(command, now)
    recent = window.events(now)

    if len(recent) > settings.max_commands:
        top = Counter(recent).most_common(1)[0][1]
        if top > settings.max_commands * REPETITIVE_COMMAND_RATIO:
            verdict.add(
                f"Command spam ({len(recent)} in {settings.time_window:g}s) - repetitive",
                Severity.HIGH,
            )
        else:
            verdict.add(f"Command spam ({len(recent)} in {settings.time_window:g}s)", Severity.MEDIUM)

    return verdict


def check_command_request(
    windows: WindowStore,
    player: Hashable,
    data: Mapping[str, Any],
    now: float,
    settings: CommandSpamSettings,
) -> DetectionVerdict:
    """Command spam for a decoded command_request packet."""
    command = data.get("command")
    if command is None:
        return DetectionVerdict.clean(CHECK_COMMAND_SPAM)
    if not isinstance(command, str):
        raise MalformedEvent("command", command)
    command = command.strip()
    if not command:
        return DetectionVerdict.clean(CHECK_COMMAND_SPAM)
    return check_command_spam(windows, player, command, now, settings)
    return verdict


# =============================================================================
# Advertising
# =============================================================================

def check_advertising(message: str) -> DetectionVerdict:
    """Flag invites, server addresses and solicitation, ignoring first-party links."""
    verdict = DetectionVerdict.clean(CHECK_ADVERTISING)
    if not message:
        return verdict

    text = ALLOWED_DOMAIN.sub(" ", message)

    for pattern in INVITE_PATTERNS:
        match = pattern.search(text)
        if match:
            verdict.add(f"Discord invite: {match.group(0)}", Severity.HIGH)

    for pattern in PROMO_PATTERNS:
        match = pattern.search(text)
        if match:
            verdict.add(f"Advertising: {match.group(0)}", Severity.MEDIUM)

    return verdict


__all__ = [
    "check_unicode",
    "check_chat_flood",
    "check_command_spam",
    "check_command_request",
    "check_advertising",
    "DANGEROUS_UNICODE",
]
