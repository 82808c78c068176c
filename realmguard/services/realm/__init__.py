"""
Realm Connections
=================

Per-tenant connection lifecycle, event routing and crash attribution.
"""

from .manager import ConnectionManager
from .models import (
    ConnectionStatus,
    RealmCapabilities,
    RealmRef,
    SessionHandle,
    SessionSnapshot,
    TenantSession,
)

__all__ = [
    "ConnectionManager",
    "ConnectionStatus",
    "RealmCapabilities",
    "RealmRef",
    "SessionHandle",
    "SessionSnapshot",
    "TenantSession",
]
