"""
Realm Session Models
====================

Per-tenant connection state owned by the connection manager.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Set

from realmguard.core.settings import TenantSettings
from realmguard.services.automod.engine import ProfileFetcher
from realmguard.services.automod.windows import WindowStore
from realmguard.services.enforcement.executor import BanApplier, Offender
from realmguard.services.sessions import PlayerTracker


# =============================================================================
# Status
# =============================================================================

class ConnectionStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    REALM_CLOSED = "realm_closed"
    REALM_CRASHED = "realm_crashed"
    KICKED = "kicked"
    ERROR = "error"

    @property
    def is_live(self) -> bool:
        return self in (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED)


# =============================================================================
# Capabilities
# =============================================================================

SettingsProvider = Callable[[str], TenantSettings]
CommandSender = Callable[[str, str], Awaitable[None]]


def default_settings(tenant_id: str) -> TenantSettings:
    return TenantSettings()


@dataclass
class RealmCapabilities:
    """
    Everything the manager needs from the outside world.

    Attributes:
        apply_ban: ``(tenant_id, realm, xuid)``, raises on failure.
        get_settings: ``(tenant_id) -> TenantSettings``.
        fetch_profile: ``(tenant_id, xuid) -> PlayerProfile | None``.
        send_command: ``(tenant_id, command)``, used for mode re-assertion.
    """
    apply_ban: BanApplier
    get_settings: SettingsProvider = default_settings
    fetch_profile: Optional[ProfileFetcher] = None
    send_command: Optional[CommandSender] = None


# =============================================================================
# Session State
# =============================================================================

@dataclass(frozen=True)
class RealmRef:
    id: str
    name: str = ""


@dataclass(frozen=True)
class SessionHandle:
    """Returned by ``connect``; ``generation`` changes on every reconnect."""
    tenant_id: str
    realm: RealmRef
    generation: int


@dataclass(frozen=True)
class SessionSnapshot:
    tenant_id: str
    realm: RealmRef
    status: ConnectionStatus
    generation: int
    connected_at: Optional[float]
    online_players: List[str]
    last_player_joined: Optional[str]
    incident_triggered: bool
    disconnect_reason: Optional[str]


@dataclass
class TenantSession:
    """One tenant's connection lifetime."""
    tenant_id: str
    realm: RealmRef
    credentials: Any
    generation: int
    tracker: PlayerTracker
    windows: WindowStore = field(default_factory=WindowStore)
    status: ConnectionStatus = ConnectionStatus.CONNECTING
    connected_at: Optional[float] = None
    last_player_joined: Optional[Offender] = None
    incident_triggered: bool = False
    enforced_xuids: Set[str] = field(default_factory=set)
    disconnect_reason: Optional[str] = None
    spectator_task: Optional[asyncio.Task] = None

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            tenant_id=self.tenant_id,
            realm=self.realm,
            status=self.status,
            generation=self.generation,
            connected_at=self.connected_at,
            online_players=[p.gamertag for p in self.tracker.online_players()],
            last_player_joined=self.last_player_joined.gamertag if self.last_player_joined else None,
            incident_triggered=self.incident_triggered,
            disconnect_reason=self.disconnect_reason,
        )


__all__ = [
    "ConnectionStatus",
    "RealmCapabilities",
    "RealmRef",
    "SessionHandle",
    "SessionSnapshot",
    "TenantSession",
    "SettingsProvider",
    "CommandSender",
]
