"""
Player Session Tracker
======================

Per-tenant map of online players plus a capped history ledger.

DESIGN:
    Owned by one tenant session and only touched from that tenant's
    dispatch path (or the sweep, under the same tenant lock), so it does
    no locking of its own. The ledger is capped: inserting past the cap
    evicts whoever was seen least recently, never the player just
    touched.
"""

from typing import Dict, List, Optional

from realmguard.core.logger import logger
from realmguard.services.automod.device import device_name
from realmguard.services.game_events import PlayerJoin
from realmguard.utils.time_format import format_duration

from .models import LeaveSummary, PlayerHistoryRecord, PlayerSession


DEFAULT_MAX_HISTORY = 1000


class PlayerTracker:
    """Online sessions and history of one tenant."""

    def __init__(self, max_history: int = DEFAULT_MAX_HISTORY) -> None:
        self.max_history = max_history
        self._online: Dict[str, PlayerSession] = {}
        self._history: Dict[str, PlayerHistoryRecord] = {}

    # =========================================================================
    # Lookups
    # =========================================================================

    def get(self, xuid: str) -> Optional[PlayerSession]:
        return self._online.get(xuid)

    def find_by_name(self, name: str) -> Optional[PlayerSession]:
        """Case-insensitive gamertag match among online players."""
        if not name:
            return None
        wanted = name.strip().lower()
        for session in self._online.values():
            if session.gamertag.lower() == wanted:
                return session
        return None

    def find_by_uuid(self, uuid: str) -> Optional[PlayerSession]:
        for session in self._online.values():
            if session.uuid == uuid:
                return session
        return None

    def find_by_runtime_id(self, runtime_id: int) -> Optional[PlayerSession]:
        for session in self._online.values():
            if session.runtime_id is not None and session.runtime_id == runtime_id:
                return session
        return None

    def history(self, xuid: str) -> Optional[PlayerHistoryRecord]:
        return self._history.get(xuid)

    def online_players(self) -> List[PlayerSession]:
        return list(self._online.values())

    @property
    def history_size(self) -> int:
        return len(self._history)

    # =========================================================================
    # Join / Leave
    # =========================================================================

    def on_join(self, join: PlayerJoin, now: float) -> PlayerSession:
        """Open a session and upsert the player's history record."""
        if join.xuid in self._online:
            # Rejoin without a leave; close the old session first
            self.on_leave(join.xuid, now=now)

        device = device_name(join.platform)
        record = self._history.get(join.xuid)
        session = PlayerSession(
            gamertag=join.username,
            xuid=join.xuid,
            device=device,
            joined_at=now,
            uuid=join.uuid,
            runtime_id=join.runtime_id,
            is_first_join=record is None,
        )
        self._online[join.xuid] = session

        if record is None:
            record = PlayerHistoryRecord(
                xuid=join.xuid,
                gamertag=join.username,
                first_seen=now,
                last_seen=now,
            )
            self._history[join.xuid] = record
        record.gamertag = join.username
        record.last_seen = now
        record.total_sessions += 1
        record.devices.add(device)

        self._evict(keep=join.xuid)
        return session

    def on_leave(
        self,
        xuid: Optional[str] = None,
        uuid: Optional[str] = None,
        now: float = 0.0,
    ) -> Optional[LeaveSummary]:
        """
        Close a session and fold its counters into history.

        Returns:
            Summary of the session, or None if no such player was online.
        """
        session = self._online.get(xuid) if xuid else None
        if session is None and uuid:
            session = self.find_by_uuid(uuid)
        if session is None:
            return None

        del self._online[session.xuid]
        duration = max(0.0, now - session.joined_at)

        record = self._history.get(session.xuid)
        if record is not None:
            record.last_seen = now
            record.total_playtime += duration
            record.total_messages += session.message_count
            record.total_deaths += session.death_count

        return LeaveSummary(
            gamertag=session.gamertag,
            xuid=session.xuid,
            device=session.device,
            duration=duration,
            duration_formatted=format_duration(duration),
            messages=session.message_count,
            deaths=session.death_count,
        )

    # =========================================================================
    # Counters
    # =========================================================================

    def record_message(self, name: str) -> bool:
        session = self.find_by_name(name)
        if session is None:
            return False
        session.message_count += 1
        return True

    def record_death(self, name: str) -> bool:
        session = self.find_by_name(name)
        if session is None:
            return False
        session.death_count += 1
        return True

    # =========================================================================
    # Stats
    # =========================================================================

    def get_player_stats(self, xuid: str, now: float) -> Optional[Dict[str, object]]:
        """History totals, including the live session if the player is online."""
        record = self._history.get(xuid)
        if record is None:
            return None

        session = self._online.get(xuid)
        playtime = record.total_playtime
        messages = record.total_messages
        deaths = record.total_deaths
        if session is not None:
            playtime += max(0.0, now - session.joined_at)
            messages += session.message_count
            deaths += session.death_count

        return {
            "xuid": record.xuid,
            "gamertag": record.gamertag,
            "first_seen": record.first_seen,
            "last_seen": record.last_seen,
            "total_sessions": record.total_sessions,
            "total_playtime": playtime,
            "total_playtime_formatted": format_duration(playtime),
            "total_messages": messages,
            "total_deaths": deaths,
            "devices": sorted(record.devices),
            "is_online": session is not None,
        }

    # =========================================================================
    # Cleanup
    # =========================================================================

    def _evict(self, keep: Optional[str] = None) -> int:
        """Drop least-recently-seen records until back at the cap."""
        evicted = 0
        while len(self._history) > self.max_history:
            candidates = [r for r in self._history.values() if r.xuid != keep]
            if not candidates:
                break
            oldest = min(candidates, key=lambda r: r.last_seen)
            del self._history[oldest.xuid]
            evicted += 1
        return evicted

    def cleanup(self, now: float, session_max_age: float) -> Dict[str, int]:
        """Drop sessions open longer than ``session_max_age`` and trim history."""
        stale = [x for x, s in self._online.items() if now - s.joined_at > session_max_age]
        for xuid in stale:
            del self._online[xuid]

        evicted = self._evict()
        if stale or evicted:
            logger.debug("Player Tracker Cleanup", [
                ("Stale Sessions", str(len(stale))),
                ("History Evicted", str(evicted)),
            ])
        return {"stale_sessions": len(stale), "history_evicted": evicted}

    def clear(self) -> int:
        """Forget every online session (connection teardown); history stays."""
        count = len(self._online)
        self._online.clear()
        return count


__all__ = ["PlayerTracker", "DEFAULT_MAX_HISTORY"]
