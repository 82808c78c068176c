"""
Detection Engine
================

Runs the enabled detectors for one event and shields the dispatch path
from their failures.

DESIGN:
    Detectors are plain functions. The engine decides which ones apply
    (tenant toggles, packet dispatch table), feeds them the tenant's
    windows and clock, and turns any exception into "not flagged" plus a
    logged anomaly. Only the profile lookup is awaited.
"""

import asyncio
from typing import Any, Awaitable, Callable, Hashable, List, Mapping, Optional

from realmguard.core.exceptions import MalformedEvent, ProfileUnavailable
from realmguard.core.logger import logger
from realmguard.core.settings import AutomodSettings
from realmguard.services.game_events import Packet, PlayerJoin

from .chat import check_advertising, check_chat_flood, check_command_request, check_unicode
from .constants import (
    CHECK_ADVERTISING,
    CHECK_CHAT_FLOOD,
    CHECK_COMMAND_SPAM,
    CHECK_DEVICE,
    CHECK_INVALID_PACKET,
    CHECK_INVENTORY,
    CHECK_PACKET_RATE,
    CHECK_PROFILE,
    CHECK_SKIN,
    CHECK_UNICODE,
    PACKET_CHECKS,
)
from .device import check_device
from .models import DetectionVerdict, PlayerProfile
from .packets import check_inventory, check_invalid_packet, check_packet_rate
from .profile import check_profile
from .skin import check_skin
from .windows import WindowStore


ProfileFetcher = Callable[[str, str], Awaitable[Optional[PlayerProfile]]]

# check name -> settings toggle
CHECK_TOGGLES = {
    CHECK_SKIN: "anti_unfair_skins",
    CHECK_DEVICE: "anti_device_spoof",
    CHECK_UNICODE: "anti_unicode_exploit",
    CHECK_CHAT_FLOOD: "anti_chat_flood",
    CHECK_ADVERTISING: "anti_advertising",
    CHECK_COMMAND_SPAM: "anti_command_spam",
    CHECK_INVALID_PACKET: "anti_invalid_packets",
    CHECK_PACKET_RATE: "anti_packet_flood",
    CHECK_INVENTORY: "anti_inventory_exploit",
}

PROFILE_TOGGLES = ("anti_spoof", "anti_private_profile", "anti_alts", "anti_new_accounts")


class DetectionEngine:
    """
    Evaluates join, chat and packet events against a tenant's settings.

    Attributes:
        fetch_profile: Async profile capability, ``(tenant_id, xuid)``.
    """

    def __init__(self, fetch_profile: Optional[ProfileFetcher] = None) -> None:
        self.fetch_profile = fetch_profile

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def is_enabled(settings: AutomodSettings, check_name: str) -> bool:
        if not settings.enabled:
            return False
        return bool(getattr(settings, CHECK_TOGGLES[check_name], False))

    def _run(self, check_name: str, fn: Callable[..., DetectionVerdict], *args: Any) -> DetectionVerdict:
        """Call one detector; any failure degrades to a clean verdict."""
        try:
            return fn(*args)
        except MalformedEvent as e:
            logger.warning("Detector Skipped Malformed Event", [
                ("Check", check_name),
                ("Field", e.field_name),
            ])
        except Exception as e:
            logger.error("Detector Failed", [
                ("Check", check_name),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:200]),
            ])
        return DetectionVerdict.clean(check_name)

    # =========================================================================
    # Join
    # =========================================================================

    async def on_join(self, tenant_id: str, settings: AutomodSettings, join: PlayerJoin) -> List[DetectionVerdict]:
        """Run appearance, device and profile checks for a joining player."""
        verdicts: List[DetectionVerdict] = []
        if not settings.enabled:
            return verdicts

        if self.is_enabled(settings, CHECK_SKIN):
            verdicts.append(self._run(CHECK_SKIN, check_skin, join.skin))

        if self.is_enabled(settings, CHECK_DEVICE):
            verdicts.append(self._run(CHECK_DEVICE, check_device, join.platform, join.device or {}))

        if self.fetch_profile and any(getattr(settings, t) for t in PROFILE_TOGGLES):
            verdicts.append(await self._profile_verdict(tenant_id, settings, join))

        return verdicts

    async def _profile_verdict(self, tenant_id: str, settings: AutomodSettings, join: PlayerJoin) -> DetectionVerdict:
        try:
            profile = await self.fetch_profile(tenant_id, join.xuid)
        except asyncio.CancelledError:
            raise
        except ProfileUnavailable as e:
            logger.warning("Profile Unavailable", [
                ("Tenant", tenant_id),
                ("Player", join.username),
                ("Reason", e.reason or "unknown"),
            ])
            return DetectionVerdict.clean(CHECK_PROFILE)
        except Exception as e:
            logger.warning("Profile Lookup Failed", [
                ("Tenant", tenant_id),
                ("Player", join.username),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:100]),
            ])
            return DetectionVerdict.clean(CHECK_PROFILE)

        return self._run(CHECK_PROFILE, check_profile, settings, join.username, profile)

    # =========================================================================
    # Chat
    # =========================================================================

    def on_chat(
        self,
        settings: AutomodSettings,
        windows: WindowStore,
        player: Hashable,
        message: str,
        now: float,
    ) -> Optional[DetectionVerdict]:
        """Unicode, then flood, then advertising; the first flagged verdict wins."""
        if self.is_enabled(settings, CHECK_UNICODE):
            verdict = self._run(CHECK_UNICODE, check_unicode, message)
            if verdict.flagged:
                return verdict

        if self.is_enabled(settings, CHECK_CHAT_FLOOD):
            verdict = self._run(
                CHECK_CHAT_FLOOD, check_chat_flood,
                windows, player, message, now, settings.anti_chat_flood_settings,
            )
            if verdict.flagged:
                return verdict

        if self.is_enabled(settings, CHECK_ADVERTISING):
            verdict = self._run(CHECK_ADVERTISING, check_advertising, message)
            if verdict.flagged:
                return verdict

        return None

    # =========================================================================
    # Packets
    # =========================================================================

    def on_packet(
        self,
        settings: AutomodSettings,
        windows: WindowStore,
        player: Hashable,
        packet: Packet,
        now: float,
    ) -> List[DetectionVerdict]:
        """Run the checks the dispatch table lists for this packet type."""
        verdicts: List[DetectionVerdict] = []
        data = packet_data(packet)

        for check_name in PACKET_CHECKS.get(packet.packet_type, ()):
            if not self.is_enabled(settings, check_name):
                continue

            if check_name == CHECK_INVALID_PACKET:
                verdict = self._run(
                    check_name, check_invalid_packet,
                    windows, player, packet.packet_type, data, now,
                )
            elif check_name == CHECK_PACKET_RATE:
                verdict = self._run(check_name, check_packet_rate, windows, player, packet.packet_type, now)
            elif check_name == CHECK_INVENTORY:
                verdict = self._run(check_name, check_inventory, data)
            elif check_name == CHECK_COMMAND_SPAM:
                verdict = self._run(
                    check_name, check_command_request,
                    windows, player, data, now, settings.anti_command_spam_settings,
                )
            else:
                continue

            verdicts.append(verdict)

        return verdicts


def packet_data(packet: Packet) -> Mapping[str, Any]:
    """The packet's fields, or an empty mapping when the payload is not one."""
    data = packet.data
    if isinstance(data, Mapping):
        return data
    if data is not None:
        logger.warning("Malformed Packet Payload", [
            ("Packet", str(packet.packet_type)),
            ("Payload Type", type(data).__name__),
        ])
    return {}


__all__ = ["DetectionEngine", "ProfileFetcher", "CHECK_TOGGLES", "packet_data"]
