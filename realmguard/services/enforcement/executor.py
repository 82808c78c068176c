"""
Enforcement Executor
====================

Applies one moderation action through the injected ban capability and
reports the outcome on the event bus.

DESIGN:
    ``apply`` never raises. Detector-driven enforcement goes through
    ``schedule`` so the tenant's dispatch path is not held up by the
    remote call; the crash attribution path awaits ``apply`` directly.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Set

from realmguard.core.exceptions import EnforcementFailed
from realmguard.core.logger import logger
from realmguard.services.events import EventBus, EventType
from realmguard.utils.async_utils import create_safe_task


BanApplier = Callable[[str, Any, str], Awaitable[None]]

ACTION_BAN = "ban"


@dataclass(frozen=True)
class Offender:
    """Who an action is taken against."""
    gamertag: str
    xuid: str


class EnforcementExecutor:
    """Runs bans and emits ``automod-action`` events."""

    def __init__(self, apply_ban: BanApplier, bus: Optional[EventBus] = None) -> None:
        self.apply_ban = apply_ban
        self.bus = bus or EventBus()
        self._pending: Set[asyncio.Task] = set()

    async def apply(
        self,
        tenant_id: str,
        realm: Any,
        player: Offender,
        action: str,
        reason: str,
        rule: str,
    ) -> bool:
        """
        Apply one action.

        Returns:
            True if the capability call succeeded.
        """
        error: Optional[str] = None
        try:
            if action != ACTION_BAN:
                raise EnforcementFailed(player.xuid, f"unsupported action '{action}'")
            await self.apply_ban(tenant_id, realm, player.xuid)
        except asyncio.CancelledError:
            raise
        except EnforcementFailed as e:
            error = e.reason
        except Exception as e:
            error = f"{type(e).__name__}: {str(e)[:200]}"

        success = error is None
        if success:
            logger.tree("Automod Action Applied", [
                ("Tenant", tenant_id),
                ("Player", player.gamertag),
                ("XUID", player.xuid),
                ("Action", action),
                ("Rule", rule),
                ("Reason", reason[:100]),
            ], emoji="🔨")
        else:
            logger.error("Automod Action Failed", [
                ("Tenant", tenant_id),
                ("Player", player.gamertag),
                ("XUID", player.xuid),
                ("Action", action),
                ("Rule", rule),
                ("Error", error),
            ])

        self.bus.emit(EventType.AUTOMOD_ACTION, tenant_id, {
            "player": player.gamertag,
            "xuid": player.xuid,
            "action": action,
            "reason": reason,
            "rule": rule,
            "success": success,
            "error": error,
        })
        return success

    def schedule(
        self,
        tenant_id: str,
        realm: Any,
        player: Offender,
        action: str,
        reason: str,
        rule: str,
    ) -> asyncio.Task:
        """Fire-and-forget ``apply``; the task is tracked until it finishes."""
        task = create_safe_task(
            self.apply(tenant_id, realm, player, action, reason, rule),
            f"Enforce {rule} on {player.xuid}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def wait_idle(self) -> None:
        """Wait for every scheduled action to finish."""
        while True:
            waiting = [t for t in self._pending if not t.done()]
            if not waiting:
                return
            await asyncio.gather(*waiting, return_exceptions=True)


__all__ = ["EnforcementExecutor", "Offender", "BanApplier", "ACTION_BAN"]
