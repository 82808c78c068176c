"""
RealmGuard - Connection Manager
===============================

Registry of per-tenant realm sessions. Owns their lifecycle, routes decoded
game events to tracking and detection, and runs the periodic sweep.

DESIGN:
    Every tenant has one asyncio.Lock and one PlayerTracker that outlive
    its sessions, so player history survives reconnects. connect,
    disconnect, dispatch and the sweep all take it, so one tenant's events
    are handled one at a time in arrival order while tenants run in
    parallel. A reconnect tears the old session down under the same lock
    before the new one exists.
    Bans run as executor tasks outside the lock.

    Recurring work is held as owned task handles: the spectator re-assertion
    per session and the sweep for the whole registry. Teardown cancels them.
"""

import asyncio
import time
from typing import Callable, Dict, List, Optional

from realmguard.core.config import Config, get_config
from realmguard.core.exceptions import AlreadyConnected
from realmguard.core.logger import logger
from realmguard.core.settings import TenantSettings
from realmguard.services.automod import DetectionEngine, DetectionVerdict
from realmguard.services.automod.engine import packet_data
from realmguard.services.enforcement import (
    ACTION_BAN,
    Classification,
    EnforcementExecutor,
    Offender,
    attribution_reason,
    classify,
    trigger_kind,
)
from realmguard.services.events import EventBus, EventType, Subscription
from realmguard.services.game_events import (
    ChatText,
    ConnectionSignal,
    GameEvent,
    Packet,
    PlayerJoin,
    PlayerLeave,
    SignalKind,
)
from realmguard.services.sessions import PlayerTracker
from realmguard.utils.async_utils import cancel_task, create_safe_task, safe_async_operation

from .models import (
    ConnectionStatus,
    RealmCapabilities,
    RealmRef,
    SessionHandle,
    SessionSnapshot,
    TenantSession,
)
from .text import death_victim, is_death_message, parse_rawtext, strip_formatting


SPECTATOR_COMMAND = "gamemode spectator @s"
CRASH_RULE = "Crash Attribution"

# Classification -> (status, event type)
TERMINAL_OUTCOMES = {
    Classification.REALM_CRASHED: (ConnectionStatus.REALM_CRASHED, EventType.REALM_CRASHED),
    Classification.REALM_CLOSED: (ConnectionStatus.REALM_CLOSED, EventType.REALM_CLOSED),
    Classification.KICKED: (ConnectionStatus.KICKED, EventType.KICKED),
}


class ConnectionManager:
    """
    Per-tenant realm sessions.

    Usage:
        manager = ConnectionManager(RealmCapabilities(apply_ban=client.apply_ban))
        manager.start()
        await manager.connect("guild-1", RealmRef("123", "My Realm"), creds)
        await manager.dispatch("guild-1", ConnectionSignal(SignalKind.SPAWN))
    """

    def __init__(
        self,
        capabilities: RealmCapabilities,
        bus: Optional[EventBus] = None,
        config: Optional[Config] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.capabilities = capabilities
        self.bus = bus or EventBus()
        self.config = config or get_config()
        self.clock = clock

        self.engine = DetectionEngine(fetch_profile=capabilities.fetch_profile)
        self.executor = EnforcementExecutor(capabilities.apply_ban, self.bus)

        self._sessions: Dict[str, TenantSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._trackers: Dict[str, PlayerTracker] = {}
        self._generation = 0
        self._sweep_task: Optional[asyncio.Task] = None
        self._running = False

    # =========================================================================
    # Registry
    # =========================================================================

    def _lock(self, tenant_id: str) -> asyncio.Lock:
        lock = self._locks.get(tenant_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[tenant_id] = lock
        return lock

    def _tracker(self, tenant_id: str) -> PlayerTracker:
        """The tenant's tracker; its history outlives individual connections."""
        tracker = self._trackers.get(tenant_id)
        if tracker is None:
            tracker = PlayerTracker(max_history=self.config.max_history_entries)
            self._trackers[tenant_id] = tracker
        return tracker

    def _settings(self, tenant_id: str) -> TenantSettings:
        try:
            return self.capabilities.get_settings(tenant_id)
        except Exception as e:
            logger.warning("Tenant Settings Unavailable", [
                ("Tenant", tenant_id),
                ("Error Type", type(e).__name__),
                ("Fallback", "defaults"),
            ])
            return TenantSettings()

    def subscribe(self, tenant_id: Optional[str] = None) -> Subscription:
        return self.bus.subscribe(tenant_id)

    def status(self, tenant_id: str) -> Optional[SessionSnapshot]:
        session = self._sessions.get(tenant_id)
        return session.snapshot() if session else None

    @property
    def tenants(self) -> List[str]:
        return list(self._sessions)

    # =========================================================================
    # Connect / Disconnect
    # =========================================================================

    async def connect(self, tenant_id: str, realm: RealmRef, credentials: object = None) -> SessionHandle:
        """
        Create a session for ``tenant_id`` in the Connecting state.

        Raises:
            AlreadyConnected: If the tenant already has a live session.
        """
        async with self._lock(tenant_id):
            existing = self._sessions.get(tenant_id)
            if existing is not None:
                if existing.status.is_live:
                    raise AlreadyConnected(tenant_id, existing.status.value)
                await self._teardown(existing)

            self._generation += 1
            session = TenantSession(
                tenant_id=tenant_id,
                realm=realm,
                credentials=credentials,
                generation=self._generation,
                tracker=self._tracker(tenant_id),
            )
            self._sessions[tenant_id] = session

        logger.tree("Realm Connecting", [
            ("Tenant", tenant_id),
            ("Realm", realm.name or realm.id),
            ("Generation", str(session.generation)),
        ], emoji="🔌")
        return SessionHandle(tenant_id=tenant_id, realm=realm, generation=session.generation)

    async def disconnect(self, tenant_id: str) -> bool:
        """Tear down the tenant's session. Returns False if there was none."""
        async with self._lock(tenant_id):
            session = self._sessions.pop(tenant_id, None)
            if session is None:
                return False

            was_live = session.status.is_live
            if was_live:
                session.status = ConnectionStatus.DISCONNECTED
            await self._teardown(session)

            if was_live:
                self.bus.emit(EventType.DISCONNECTED, tenant_id, {
                    "realm": session.realm.name,
                    "reason": "manual",
                    "status": session.status.value,
                })

        logger.info("Realm Disconnected", [
            ("Tenant", tenant_id),
            ("Realm", session.realm.name or session.realm.id),
        ])
        return True

    async def _teardown(self, session: TenantSession) -> None:
        """Cancel the session's timers and forget its online players."""
        task, session.spectator_task = session.spectator_task, None
        await cancel_task(task)
        cleared = session.tracker.clear()
        session.windows.clear()
        logger.debug("Session Torn Down", [
            ("Tenant", session.tenant_id),
            ("Status", session.status.value),
            ("Players Cleared", str(cleared)),
        ])

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def dispatch(self, tenant_id: str, event: GameEvent) -> None:
        """Route one decoded game event. Events of one tenant run in order."""
        async with self._lock(tenant_id):
            session = self._sessions.get(tenant_id)
            if session is None:
                logger.debug("Event For Unknown Tenant", [
                    ("Tenant", tenant_id),
                    ("Event", type(event).__name__),
                ])
                return

            try:
                await self._route(session, event)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Event Dispatch Failed", [
                    ("Tenant", tenant_id),
                    ("Event", type(event).__name__),
                    ("Error Type", type(e).__name__),
                    ("Error", str(e)[:200]),
                ])

    async def _route(self, session: TenantSession, event: GameEvent) -> None:
        tenant_id = session.tenant_id
        if isinstance(event, ConnectionSignal):
            await self._on_signal(session, event)
        elif not session.status.is_live:
            logger.debug("Event After Teardown", [
                ("Tenant", tenant_id),
                ("Event", type(event).__name__),
                ("Status", session.status.value),
            ])
        elif isinstance(event, PlayerJoin):
            await self._on_join(session, event)
        elif isinstance(event, PlayerLeave):
            self._on_leave(session, event)
        elif isinstance(event, ChatText):
            self._on_text(session, event)
        elif isinstance(event, Packet):
            self._on_packet(session, event)
        else:
            logger.warning("Unknown Game Event", [
                ("Tenant", tenant_id),
                ("Type", type(event).__name__),
            ])

    # -------------------------------------------------------------------------
    # Players
    # -------------------------------------------------------------------------

    async def _on_join(self, session: TenantSession, join: PlayerJoin) -> None:
        now = self.clock()
        player = session.tracker.on_join(join, now)
        offender = Offender(gamertag=join.username, xuid=join.xuid)
        session.last_player_joined = offender

        settings = self._settings(session.tenant_id)
        verdicts = await self.engine.on_join(session.tenant_id, settings.automod, join)
        flagged = [v for v in verdicts if v.flagged]

        logger.tree("Player Joined", [
            ("Tenant", session.tenant_id),
            ("Player", join.username),
            ("XUID", join.xuid),
            ("Device", player.device),
            ("First Join", "Yes" if player.is_first_join else "No"),
            ("Flags", ", ".join(v.check_name for v in flagged) or "None"),
        ], emoji="📥")

        self.bus.emit(EventType.JOIN, session.tenant_id, {
            "player": join.username,
            "xuid": join.xuid,
            "device": player.device,
            "is_first_join": player.is_first_join,
        })
        self._handle_verdicts(session, offender, verdicts)

    def _on_leave(self, session: TenantSession, leave: PlayerLeave) -> None:
        summary = session.tracker.on_leave(leave.xuid, leave.uuid, now=self.clock())
        if summary is None:
            logger.debug("Leave For Unknown Player", [
                ("Tenant", session.tenant_id),
                ("XUID", leave.xuid or "-"),
                ("UUID", leave.uuid or "-"),
            ])
            return

        session.windows.forget_player(summary.xuid)
        logger.tree("Player Left", [
            ("Tenant", session.tenant_id),
            ("Player", summary.gamertag),
            ("Duration", summary.duration_formatted),
            ("Messages", str(summary.messages)),
            ("Deaths", str(summary.deaths)),
        ], emoji="📤")

        self.bus.emit(EventType.LEAVE, session.tenant_id, {
            "player": summary.gamertag,
            "xuid": summary.xuid,
            "device": summary.device,
            "duration": summary.duration,
            "duration_formatted": summary.duration_formatted,
            "messages": summary.messages,
            "deaths": summary.deaths,
        })

    # -------------------------------------------------------------------------
    # Text
    # -------------------------------------------------------------------------

    def _on_text(self, session: TenantSession, text: ChatText) -> None:
        if is_death_message(text.text_type, text.message):
            victim = death_victim(text.parameters, text.source_name)
            session.tracker.record_death(victim)
            self.bus.emit(EventType.DEATH, session.tenant_id, {
                "player": victim,
                "message": text.message,
                "cause": text.message,
            })
            return

        rank = None
        if text.text_type == "json":
            parsed = parse_rawtext(text.message)
            if parsed is None:
                logger.debug("Unparsed JSON Text", [("Tenant", session.tenant_id)])
                return
            sender, message, rank = parsed.sender, parsed.message, parsed.rank
        elif text.text_type == "chat" and text.source_name:
            sender, message = text.source_name, strip_formatting(text.message)
        else:
            return

        player = session.tracker.get(text.xuid) if text.xuid else None
        if player is None:
            player = session.tracker.find_by_name(sender)

        if player is not None:
            session.tracker.record_message(player.gamertag)
            settings = self._settings(session.tenant_id)
            verdict = self.engine.on_chat(settings.automod, session.windows, player.xuid, message, self.clock())
            if verdict is not None:
                self._handle_verdicts(session, Offender(player.gamertag, player.xuid), [verdict])

        self.bus.emit(EventType.CHAT, session.tenant_id, {
            "sender": sender,
            "message": message,
            "rank": rank,
            "type": text.text_type,
        })

    # -------------------------------------------------------------------------
    # Packets
    # -------------------------------------------------------------------------

    def _packet_player(self, session: TenantSession, packet: Packet) -> Optional[Offender]:
        """The packet's sender: xuid, runtime id, origin uuid, else the last joiner."""
        tracker = session.tracker
        data = packet_data(packet)

        player = tracker.get(packet.xuid) if packet.xuid else None

        if player is None:
            runtime_id = data.get("runtime_entity_id", data.get("runtime_id"))
            transaction = data.get("transaction")
            if runtime_id is None and isinstance(transaction, dict):
                source = transaction.get("source")
                if isinstance(source, dict):
                    runtime_id = source.get("entity_runtime_id")
            if runtime_id is not None:
                player = tracker.find_by_runtime_id(runtime_id)

        if player is None:
            origin = data.get("origin")
            if isinstance(origin, dict) and origin.get("uuid"):
                player = tracker.find_by_uuid(origin["uuid"])

        if player is not None:
            return Offender(player.gamertag, player.xuid)
        return session.last_player_joined

    def _on_packet(self, session: TenantSession, packet: Packet) -> None:
        offender = self._packet_player(session, packet)
        if offender is None:
            return

        settings = self._settings(session.tenant_id)
        verdicts = self.engine.on_packet(settings.automod, session.windows, offender.xuid, packet, self.clock())
        self._handle_verdicts(session, offender, verdicts)

    # -------------------------------------------------------------------------
    # Verdicts
    # -------------------------------------------------------------------------

    def _handle_verdicts(self, session: TenantSession, offender: Offender, verdicts: List[DetectionVerdict]) -> None:
        """Schedule a ban for the first auto-ban verdict; report the rest as flags."""
        for verdict in verdicts:
            if not verdict.flagged:
                continue

            if verdict.auto_ban and offender.xuid not in session.enforced_xuids:
                session.enforced_xuids.add(offender.xuid)
                logger.warning("Automod Ban Triggered", [
                    ("Tenant", session.tenant_id),
                    ("Player", offender.gamertag),
                    ("Check", verdict.check_name),
                    ("Reason", verdict.reason[:100]),
                ])
                self.executor.schedule(
                    session.tenant_id, session.realm, offender,
                    ACTION_BAN, verdict.reason, verdict.check_name,
                )
                continue

            self.bus.emit(EventType.AUTOMOD_FLAG, session.tenant_id, {
                "player": offender.gamertag,
                "xuid": offender.xuid,
                "check": verdict.check_name,
                "severity": verdict.severity.name,
                "reason": verdict.reason,
                "auto_ban": verdict.auto_ban,
            })

    # =========================================================================
    # Lifecycle Signals
    # =========================================================================

    async def _on_signal(self, session: TenantSession, signal: ConnectionSignal) -> None:
        if signal.kind == SignalKind.DISCONNECT:
            session.disconnect_reason = (signal.reason or "unknown").lower()
            logger.debug("Disconnect Reason Received", [
                ("Tenant", session.tenant_id),
                ("Reason", session.disconnect_reason),
            ])
            return

        if signal.kind == SignalKind.SPAWN:
            self._on_spawn(session)
            return

        reason = (signal.reason or session.disconnect_reason or "unknown").lower()
        if signal.reason:
            session.disconnect_reason = reason
        was_connected = session.status == ConnectionStatus.CONNECTED
        classification = classify(was_connected, signal.kind, reason)

        if not session.status.is_live:
            logger.debug("Signal After Teardown", [
                ("Tenant", session.tenant_id),
                ("Signal", signal.kind.value),
                ("Status", session.status.value),
            ])
            if classification == Classification.REALM_CRASHED:
                self._attribute_crash(session, trigger_kind(signal.kind))
            return

        if classification in TERMINAL_OUTCOMES:
            status, event_type = TERMINAL_OUTCOMES[classification]
        elif signal.kind == SignalKind.ERROR:
            status, event_type = ConnectionStatus.ERROR, None
        else:
            status, event_type = ConnectionStatus.DISCONNECTED, None
        session.status = status

        logger.tree("Realm Connection Ended", [
            ("Tenant", session.tenant_id),
            ("Realm", session.realm.name or session.realm.id),
            ("Signal", signal.kind.value),
            ("Reason", reason[:100]),
            ("Status", status.value),
        ], emoji="🚨" if status == ConnectionStatus.REALM_CRASHED else "🔌")

        last_player = session.last_player_joined
        if event_type is not None:
            self.bus.emit(event_type, session.tenant_id, {
                "realm": session.realm.name,
                "reason": reason,
                "last_player": last_player.gamertag if last_player else None,
            })

        if classification == Classification.REALM_CRASHED:
            self._attribute_crash(session, trigger_kind(signal.kind))

        self.bus.emit(EventType.DISCONNECTED, session.tenant_id, {
            "realm": session.realm.name,
            "reason": reason,
            "status": status.value,
        })
        await self._teardown(session)

    def _on_spawn(self, session: TenantSession) -> None:
        if session.status != ConnectionStatus.CONNECTING:
            logger.debug("Spawn Ignored", [
                ("Tenant", session.tenant_id),
                ("Status", session.status.value),
            ])
            return

        session.status = ConnectionStatus.CONNECTED
        session.connected_at = self.clock()
        if self.capabilities.send_command is not None:
            session.spectator_task = create_safe_task(
                self._spectator_loop(session),
                f"Spectator Mode {session.tenant_id}",
            )

        logger.tree("Realm Connected", [
            ("Tenant", session.tenant_id),
            ("Realm", session.realm.name or session.realm.id),
        ], emoji="✅")
        self.bus.emit(EventType.CONNECTED, session.tenant_id, {
            "realm": session.realm.name,
            "realm_id": session.realm.id,
        })

    async def _spectator_loop(self, session: TenantSession) -> None:
        """Re-assert spectator mode until the task is cancelled."""
        await asyncio.sleep(self.config.spectator_initial_delay)
        while True:
            await safe_async_operation(
                "Spectator Mode",
                self.capabilities.send_command(session.tenant_id, SPECTATOR_COMMAND),
                log_level="debug",
            )
            await asyncio.sleep(self.config.spectator_interval)

    def _attribute_crash(self, session: TenantSession, trigger: str) -> None:
        """Schedule a ban of the last joiner, once per connection lifetime."""
        settings = self._settings(session.tenant_id).automod
        if not (settings.enabled and settings.ban_on_crash):
            logger.info("Crash Attribution Disabled", [("Tenant", session.tenant_id)])
            return
        if session.incident_triggered:
            logger.debug("Crash Already Attributed", [("Tenant", session.tenant_id)])
            return

        suspect = session.last_player_joined
        if suspect is None:
            logger.warning("Crash With No Suspect", [("Tenant", session.tenant_id)])
            return

        session.incident_triggered = True
        if suspect.xuid in session.enforced_xuids:
            logger.info("Crash Suspect Already Enforced", [
                ("Tenant", session.tenant_id),
                ("Player", suspect.gamertag),
            ])
            return
        session.enforced_xuids.add(suspect.xuid)

        self.executor.schedule(
            session.tenant_id, session.realm, suspect,
            ACTION_BAN, attribution_reason(trigger), CRASH_RULE,
        )

    # =========================================================================
    # Sweep
    # =========================================================================

    def start(self) -> None:
        """Start the periodic sweep."""
        if self._running:
            return
        self._running = True
        self._sweep_task = create_safe_task(self._sweep_loop(), "Session Sweep")
        logger.tree("Connection Manager Started", [
            ("Sweep Interval", f"{self.config.sweep_interval}s"),
            ("Window Max Age", f"{self.config.window_max_age}s"),
        ], emoji="🛡️")

    async def close(self) -> None:
        """Stop the sweep, tear down every session and wait for pending bans."""
        self._running = False
        task, self._sweep_task = self._sweep_task, None
        await cancel_task(task)

        for tenant_id in list(self._sessions):
            await self.disconnect(tenant_id)
        await self.executor.wait_idle()
        logger.info("Connection Manager Stopped")

    async def wait_idle(self) -> None:
        await self.executor.wait_idle()

    async def _sweep_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.config.sweep_interval)
            try:
                await self.sweep_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Session Sweep Error", [
                    ("Error Type", type(e).__name__),
                    ("Error", str(e)[:200]),
                ])

    async def sweep_once(self) -> Dict[str, int]:
        """Expire old window entries, stale sessions and excess history."""
        totals = {"tenants": 0, "window_entries": 0, "stale_sessions": 0, "history_evicted": 0}

        for tenant_id in list(self._sessions):
            async with self._lock(tenant_id):
                session = self._sessions.get(tenant_id)
                if session is None:
                    continue
                now = self.clock()
                totals["tenants"] += 1
                totals["window_entries"] += session.windows.sweep(now, self.config.window_max_age)
                cleaned = session.tracker.cleanup(now, self.config.session_max_age)
                totals["stale_sessions"] += cleaned["stale_sessions"]
                totals["history_evicted"] += cleaned["history_evicted"]

        if totals["window_entries"] or totals["stale_sessions"] or totals["history_evicted"]:
            logger.tree("Session Sweep Complete", [
                ("Tenants", str(totals["tenants"])),
                ("Window Entries", str(totals["window_entries"])),
                ("Stale Sessions", str(totals["stale_sessions"])),
                ("History Evicted", str(totals["history_evicted"])),
            ], emoji="🧹")
        return totals


__all__ = ["ConnectionManager", "SPECTATOR_COMMAND", "CRASH_RULE"]
