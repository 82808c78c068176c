"""
Chat Text Parsing
=================

Turns text packets into (sender, message) pairs and spots death messages.
"""

import json
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern


FORMATTING_CODE: Pattern = re.compile(r"\u00a7[0-9a-fk-or]", re.IGNORECASE)
RANKED_CHAT: Pattern = re.compile(r"^\[([^\]]+)\]\s*([^:]+):\s*(.+)$", re.DOTALL)
SIMPLE_CHAT: Pattern = re.compile(r"^([^:]+):\s*(.+)$", re.DOTALL)

DEATH_PREFIXES = ("death.", "entity.")
DEATH_TEXT_TYPES = ("translation", "jukebox_popup")

SYSTEM_SENDER = "System"


@dataclass
class ParsedChat:
    sender: str
    message: str
    rank: Optional[str] = None


def strip_formatting(text: str) -> str:
    """Remove colour and style codes."""
    return FORMATTING_CODE.sub("", text or "")


def parse_rawtext(payload: str) -> Optional[ParsedChat]:
    """
    Unwrap a ``{"rawtext": [...]}`` message as sent by tellraw and chat
    rank add-ons.

    Returns:
        The parsed line, or None if the payload is not rawtext JSON or
        carries no text.
    """
    try:
        data = json.loads(payload)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None

    parts = data.get("rawtext")
    if not isinstance(parts, list) or not parts:
        return None

    text = "".join(str(p.get("text", "")) for p in parts if isinstance(p, dict))
    text = strip_formatting(text)

    match = RANKED_CHAT.match(text)
    if match:
        return ParsedChat(
            sender=match.group(2).strip(),
            message=match.group(3).strip(),
            rank=match.group(1).strip(),
        )
    match = SIMPLE_CHAT.match(text)
    if match:
        return ParsedChat(sender=match.group(1).strip(), message=match.group(2).strip())
    if text.strip():
        return ParsedChat(sender=SYSTEM_SENDER, message=text.strip())
    return None


def is_death_message(text_type: str, key: str) -> bool:
    if text_type not in DEATH_TEXT_TYPES:
        return False
    key = (key or "").lower()
    return key.startswith(DEATH_PREFIXES) or ".death." in key


def death_victim(parameters: List[str], source_name: str = "") -> str:
    if parameters:
        return str(parameters[0])
    return source_name or "Unknown"


__all__ = [
    "ParsedChat",
    "strip_formatting",
    "parse_rawtext",
    "is_death_message",
    "death_victim",
    "SYSTEM_SENDER",
]
