"""
Packet Detectors
================

Structural sanity of decoded packets, per-type packet rates and
inventory/NBT exploits.
"""

import json
import math
from typing import Any, Hashable, Iterable, List, Mapping, Optional, Tuple

from realmguard.core.exceptions import MalformedEvent

from .constants import (
    ANOMALY_WINDOW,
    CHECK_INVALID_PACKET,
    CHECK_INVENTORY,
    CHECK_PACKET_RATE,
    DEFAULT_MAX_STACK,
    DEFAULT_PACKET_RATE_LIMIT,
    ENCHANT_CAPS,
    ILLEGAL_ITEM_PREFIXES,
    ILLEGAL_ITEMS,
    MAX_ANOMALIES,
    MAX_ENCHANT_LEVEL,
    MAX_NBT_BYTES,
    MAX_PACKET_ITEM_COUNT,
    MAX_PACKET_STRING,
    MAX_PITCH,
    MAX_SLOT,
    MAX_SPEED,
    MAX_Y,
    MAX_YAW,
    MIN_SLOT,
    MIN_Y,
    PACKET_CRITICAL_MULTIPLIER,
    PACKET_FLOOD_MULTIPLIER,
    PACKET_RATE_LIMITS,
    PACKET_RATE_WINDOW,
    SUSTAINED_WINDOWS,
    WATCHED_ITEMS,
    WORLD_BORDER,
)
from .models import DetectionVerdict, Severity
from .windows import WindowStore


# =============================================================================
# Field Helpers
# =============================================================================

def _number(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise MalformedEvent(name, value)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise MalformedEvent(name, value)


def _xyz(value: Any, name: str) -> Tuple[float, float, float]:
    """Read {x, y, z} or a 3-sequence."""
    if isinstance(value, Mapping):
        return (
            _number(value.get("x", 0), name),
            _number(value.get("y", 0), name),
            _number(value.get("z", 0), name),
        )
    if isinstance(value, (list, tuple)) and len(value) == 3:
        return tuple(_number(v, name) for v in value)
    raise MalformedEvent(name, value)


def _first_present(data: Mapping[str, Any], *keys: str) -> Optional[Any]:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def rate_limit_for(packet_type: str) -> int:
    return PACKET_RATE_LIMITS.get(packet_type, DEFAULT_PACKET_RATE_LIMIT)


# =============================================================================
# Invalid Packets
# =============================================================================

def check_invalid_packet(
    windows: WindowStore,
    player: Hashable,
    packet_type: str,
    data: Mapping[str, Any],
    now: float,
) -> DetectionVerdict:
    """
    Flag field values no legitimate client produces.

    Each flag also counts as an anomaly; more than MAX_ANOMALIES within
    ANOMALY_WINDOW seconds escalates to a CRITICAL flag.
    """
    verdict = DetectionVerdict.clean(CHECK_INVALID_PACKET)
    if not data:
        return verdict

    position = _first_present(data, "position", "pos")
    if position is not None:
        x, y, z = _xyz(position, "position")
        if abs(x) > WORLD_BORDER or abs(z) > WORLD_BORDER:
            verdict.add(f"{packet_type}: position out of world bounds", Severity.HIGH)
        if y < MIN_Y or y > MAX_Y:
            verdict.add(f"{packet_type}: suspicious Y coordinate {y:g}", Severity.MEDIUM)

    velocity = _first_present(data, "velocity", "motion")
    if velocity is not None:
        speed = math.sqrt(sum(axis ** 2 for axis in _xyz(velocity, "velocity")))
        if speed > MAX_SPEED:
            verdict.add(f"{packet_type}: impossible velocity {speed:.2f}", Severity.HIGH)

    if data.get("yaw") is not None and abs(_number(data["yaw"], "yaw")) > MAX_YAW:
        verdict.add(f"{packet_type}: invalid yaw rotation", Severity.LOW)

    if data.get("pitch") is not None and abs(_number(data["pitch"], "pitch")) > MAX_PITCH:
        verdict.add(f"{packet_type}: invalid pitch rotation", Severity.MEDIUM)

    if data.get("slot") is not None:
        slot = _number(data["slot"], "slot")
        if slot < MIN_SLOT or slot > MAX_SLOT:
            verdict.add(f"{packet_type}: invalid slot {slot:g}", Severity.HIGH)

    count = _first_present(data, "count", "amount")
    if count is not None:
        count = _number(count, "count")
        if count < 0 or count > MAX_PACKET_ITEM_COUNT:
            verdict.add(f"{packet_type}: invalid item count {count:g}", Severity.HIGH)

    for key, value in data.items():
        if isinstance(value, str) and len(value) > MAX_PACKET_STRING:
            verdict.add(f"{packet_type}: oversized string in {key} ({len(value)} chars)", Severity.CRITICAL)

    if verdict.flagged:
        anomalies = windows.window(player, "anomalies", ANOMALY_WINDOW)
        for flag in verdict.flags:
            anomalies.add(flag.reason, now)
        total = anomalies.count(now)
        if total > MAX_ANOMALIES:
            verdict.add(f"Repeated invalid packets ({total} in {ANOMALY_WINDOW:g}s)", Severity.CRITICAL)

    return verdict


# =============================================================================
# Packet Rate
# =============================================================================

def check_packet_rate(
    windows: WindowStore,
    player: Hashable,
    packet_type: str,
    now: float,
) -> DetectionVerdict:
    """Count a packet against its per-second budget."""
    verdict = DetectionVerdict.clean(CHECK_PACKET_RATE)
    budget = rate_limit_for(packet_type)
    counter = windows.counter(player, f"packets:{packet_type}", PACKET_RATE_WINDOW)
    count = counter.hit(now, budget)

    if count > budget * PACKET_FLOOD_MULTIPLIER:
        severity = Severity.CRITICAL if count > budget * PACKET_CRITICAL_MULTIPLIER else Severity.HIGH
        verdict.add(f"Packet flood: {packet_type} at {count}/s (limit {budget})", severity)
    elif counter.streak >= SUSTAINED_WINDOWS:
        verdict.add(
            f"Sustained packet abuse: {packet_type} over budget {counter.streak} windows in a row",
            Severity.HIGH,
        )

    return verdict


# =============================================================================
# Inventory
# =============================================================================

def _item_id(item: Mapping[str, Any]) -> str:
    raw = str(item.get("name") or item.get("network_id") or "").lower()
    return raw.split(":", 1)[1] if raw.startswith("minecraft:") else raw


def _is_illegal(item_id: str) -> bool:
    return (
        item_id in ILLEGAL_ITEMS
        or item_id.endswith("_spawn_egg")
        or item_id.startswith(ILLEGAL_ITEM_PREFIXES)
    )


def _actions(data: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    actions = data.get("actions")
    if actions is None and isinstance(data.get("transaction"), Mapping):
        actions = data["transaction"].get("actions")
    if actions is None:
        return []
    if not isinstance(actions, Iterable) or isinstance(actions, (str, bytes)):
        raise MalformedEvent("actions", actions)
    return [a for a in actions if isinstance(a, Mapping)]


def _enchantments(item: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    enchants = item.get("enchantments")
    nbt = item.get("nbt")
    if enchants is None and isinstance(nbt, Mapping):
        enchants = nbt.get("Enchantments") or nbt.get("ench")
    return [e for e in enchants or [] if isinstance(e, Mapping)]


def check_inventory(data: Mapping[str, Any]) -> DetectionVerdict:
    """Scan the items of an inventory transaction."""
    verdict = DetectionVerdict.clean(CHECK_INVENTORY)

    for action in _actions(data):
        item = action.get("new_item") or action.get("item") or action
        if not isinstance(item, Mapping) or not (item.get("name") or item.get("network_id")):
            continue

        item_id = _item_id(item)
        if _is_illegal(item_id):
            verdict.add(f"Illegal item: {item_id}", Severity.CRITICAL)
        elif item_id in WATCHED_ITEMS:
            verdict.add(f"Watched item moved: {item_id}", Severity.LOW)

        count = _number(_first_present(item, "count", "amount") or 1, "count")
        max_stack = _number(item.get("max_stack_size") or DEFAULT_MAX_STACK, "max_stack_size")
        if count < 0:
            verdict.add(f"Negative item count: {count:g}", Severity.CRITICAL)
        elif count > max_stack and count > DEFAULT_MAX_STACK:
            verdict.add(f"Impossible stack size: {count:g}x {item_id}", Severity.HIGH)

        for enchant in _enchantments(item):
            name = str(enchant.get("name") or enchant.get("id") or "").lower()
            name = name.split(":", 1)[1] if name.startswith("minecraft:") else name
            level = _number(_first_present(enchant, "level", "lvl") or 1, "level")

            if level > MAX_ENCHANT_LEVEL or level < 0:
                verdict.add(f"Exploit enchant level: {name} {level:g}", Severity.CRITICAL)
            elif name in ENCHANT_CAPS and level > ENCHANT_CAPS[name]:
                verdict.add(f"Invalid enchant level: {name} {level:g} (max {ENCHANT_CAPS[name]})", Severity.HIGH)

        nbt = item.get("nbt")
        if nbt:
            size = len(json.dumps(nbt, default=str))
            if size > MAX_NBT_BYTES:
                verdict.add(f"Oversized item metadata: {size} bytes", Severity.CRITICAL)

    return verdict


__all__ = [
    "check_invalid_packet",
    "check_packet_rate",
    "check_inventory",
    "rate_limit_for",
]
