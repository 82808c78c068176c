"""
RealmGuard - Game Events
========================

Already-decoded records the game client feeds into the lifecycle manager.
Decoding the wire protocol happens elsewhere; these only carry the fields
the detectors and trackers read.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


@dataclass
class PlayerJoin:
    """A player appeared in the player list."""
    username: str
    xuid: str
    uuid: Optional[str] = None
    runtime_id: Optional[int] = None
    platform: Optional[int] = None
    skin: Optional[Dict[str, Any]] = None
    device: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PlayerLeave:
    """A player left the player list; either id may be missing."""
    xuid: Optional[str] = None
    uuid: Optional[str] = None


@dataclass
class ChatText:
    """
    A text packet.

    ``text_type`` follows the game's text types ("chat", "raw", "json",
    "translation", "jukebox_popup", ...). For translations, ``message`` is
    the translation key and ``parameters`` its arguments.
    """
    message: str
    source_name: str = ""
    text_type: str = "chat"
    parameters: List[str] = field(default_factory=list)
    xuid: Optional[str] = None


@dataclass
class Packet:
    """Any other decoded packet, routed through the packet dispatch table."""
    packet_type: str
    data: Dict[str, Any] = field(default_factory=dict)
    xuid: Optional[str] = None


class SignalKind(str, Enum):
    SPAWN = "spawn"
    CLOSE = "close"
    ERROR = "error"
    KICK = "kick"
    DISCONNECT = "disconnect"


@dataclass
class ConnectionSignal:
    """State change of the underlying game connection."""
    kind: SignalKind
    reason: str = ""


GameEvent = Union[PlayerJoin, PlayerLeave, ChatText, Packet, ConnectionSignal]


__all__ = [
    "PlayerJoin",
    "PlayerLeave",
    "ChatText",
    "Packet",
    "SignalKind",
    "ConnectionSignal",
    "GameEvent",
]
