"""
RealmGuard - Exceptions
=======================

Error taxonomy shared by the lifecycle manager, detectors and enforcement.

A crash-like disconnect is not an exception; it is a classification
outcome (see realmguard.services.enforcement.classifier).
"""

from typing import Optional


class RealmGuardError(Exception):
    """Base class for all RealmGuard errors."""

    pass


class AlreadyConnected(RealmGuardError):
    """connect() was called while the tenant still has a live session."""

    def __init__(self, tenant_id: str, status: str) -> None:
        super().__init__(f"Tenant {tenant_id} already has a live session ({status})")
        self.tenant_id = tenant_id
        self.status = status


class ProfileUnavailable(RealmGuardError):
    """A player profile lookup failed; callers treat this as no evidence."""

    def __init__(self, xuid: str, reason: Optional[str] = None) -> None:
        super().__init__(f"Profile for {xuid} unavailable" + (f": {reason}" if reason else ""))
        self.xuid = xuid
        self.reason = reason


class EnforcementFailed(RealmGuardError):
    """The ban capability rejected or failed a ban request."""

    def __init__(self, xuid: str, reason: str, status: Optional[int] = None) -> None:
        super().__init__(f"Ban for {xuid} failed: {reason}")
        self.xuid = xuid
        self.reason = reason
        self.status = status


class MalformedEvent(RealmGuardError):
    """A detector could not read a field it needs from a decoded event."""

    def __init__(self, field_name: str, value: object = None) -> None:
        super().__init__(f"Malformed field '{field_name}': {value!r:.80}")
        self.field_name = field_name


__all__ = [
    "RealmGuardError",
    "AlreadyConnected",
    "ProfileUnavailable",
    "EnforcementFailed",
    "MalformedEvent",
]
