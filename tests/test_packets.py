"""
Tests for realmguard/services/automod/packets.py

Covers invalid-packet detection with anomaly escalation, per-type packet
rate limiting and inventory/NBT checks.
"""

import pytest

from realmguard.core.exceptions import MalformedEvent
from realmguard.services.automod.models import Severity
from realmguard.services.automod.packets import (
    check_inventory,
    check_invalid_packet,
    check_packet_rate,
    rate_limit_for,
)


# =============================================================================
# check_invalid_packet() Tests
# =============================================================================

class TestCheckInvalidPacket:
    """Tests for check_invalid_packet."""

    def test_normal_movement_is_clean(self, windows):
        data = {"position": {"x": 100.5, "y": 64.0, "z": -20.25}, "pitch": 10, "yaw": 90}
        assert not check_invalid_packet(windows, "p1", "move_player", data, 0.0).flagged

    def test_out_of_world_is_high(self, windows):
        data = {"position": {"x": 40_000_000, "y": 64, "z": 0}}
        verdict = check_invalid_packet(windows, "p1", "move_player", data, 0.0)
        assert verdict.severity == Severity.HIGH

    def test_suspicious_y_is_medium(self, windows):
        data = {"position": [0, 900, 0]}
        verdict = check_invalid_packet(windows, "p1", "move_player", data, 0.0)
        assert verdict.severity == Severity.MEDIUM

    def test_impossible_velocity(self, windows):
        data = {"velocity": {"x": 90, "y": 0, "z": 90}}
        verdict = check_invalid_packet(windows, "p1", "move_player", data, 0.0)
        assert any("velocity" in f.reason for f in verdict.flags)

    def test_rotations(self, windows):
        data = {"yaw": 720, "pitch": 120}
        severities = sorted(f.severity for f in check_invalid_packet(windows, "p1", "move_player", data, 0.0).flags)
        assert severities == [Severity.LOW, Severity.MEDIUM]

    def test_bad_slot_and_count(self, windows):
        data = {"slot": 900, "count": 10_000}
        verdict = check_invalid_packet(windows, "p1", "mob_equipment", data, 0.0)
        assert verdict.auto_ban

    def test_oversized_string_is_critical(self, windows):
        data = {"text": "x" * 10_001}
        verdict = check_invalid_packet(windows, "p1", "interact", data, 0.0)
        assert verdict.severity == Severity.CRITICAL

    def test_repeated_anomalies_escalate(self, windows):
        data = {"pitch": 120}
        verdict = None
        for i in range(11):
            verdict = check_invalid_packet(windows, "p1", "move_player", data, float(i))
        assert any("Repeated invalid packets" in f.reason for f in verdict.flags)
        assert verdict.auto_ban

    def test_anomalies_expire(self, windows):
        data = {"pitch": 120}
        for i in range(10):
            check_invalid_packet(windows, "p1", "move_player", data, float(i))
        verdict = check_invalid_packet(windows, "p1", "move_player", data, 100.0)
        assert verdict.severity == Severity.MEDIUM

    def test_malformed_field_raises(self, windows):
        with pytest.raises(MalformedEvent):
            check_invalid_packet(windows, "p1", "move_player", {"position": "somewhere"}, 0.0)


# =============================================================================
# check_packet_rate() Tests
# =============================================================================

class TestCheckPacketRate:
    """Tests for check_packet_rate."""

    def test_budget_lookup(self):
        assert rate_limit_for("move_player") == 30
        assert rate_limit_for("block_pick_request") == 5
        assert rate_limit_for("something_else") == 50

    def test_thirty_move_packets_are_clean(self, windows):
        for _ in range(30):
            verdict = check_packet_rate(windows, "p1", "move_player", 10.0)
        assert not verdict.flagged

    def test_sixty_one_move_packets_flag(self, windows):
        verdicts = [check_packet_rate(windows, "p1", "move_player", 10.0) for _ in range(61)]
        assert not any(v.flagged for v in verdicts[:60])
        assert verdicts[60].severity == Severity.HIGH

    def test_five_times_budget_is_critical(self, windows):
        verdict = None
        for _ in range(151):
            verdict = check_packet_rate(windows, "p1", "move_player", 10.0)
        assert verdict.severity == Severity.CRITICAL
        assert verdict.auto_ban

    def test_sustained_abuse(self, windows):
        verdict = None
        for second in range(4):
            for _ in range(35):
                verdict = check_packet_rate(windows, "p1", "move_player", 10.0 + second)
        assert any("Sustained" in f.reason for f in verdict.flags)

    def test_types_counted_separately(self, windows):
        for _ in range(40):
            check_packet_rate(windows, "p1", "move_player", 10.0)
        verdict = check_packet_rate(windows, "p1", "animate", 10.0)
        assert not verdict.flagged


# =============================================================================
# check_inventory() Tests
# =============================================================================

class TestCheckInventory:
    """Tests for check_inventory."""

    def test_normal_items_are_clean(self):
        data = {"actions": [
            {"new_item": {"name": "minecraft:stone_stairs", "count": 32}},
            {"new_item": {"name": "minecraft:diamond_sword", "count": 1,
                          "enchantments": [{"name": "sharpness", "level": 5}]}},
        ]}
        assert not check_inventory(data).flagged

    def test_illegal_item_is_critical(self):
        data = {"actions": [{"new_item": {"name": "minecraft:command_block", "count": 1}}]}
        assert check_inventory(data).severity == Severity.CRITICAL

    def test_spawn_egg_and_infested_blocks(self):
        data = {"transaction": {"actions": [
            {"new_item": {"name": "minecraft:zombie_spawn_egg", "count": 1}},
            {"new_item": {"name": "minecraft:infested_stone", "count": 1}},
        ]}}
        assert len(check_inventory(data).flags) == 2

    def test_watched_item_is_low(self):
        data = {"actions": [{"new_item": {"name": "minecraft:written_book", "count": 1}}]}
        assert check_inventory(data).severity == Severity.LOW

    def test_negative_count_is_critical(self):
        data = {"actions": [{"new_item": {"name": "minecraft:dirt", "count": -5}}]}
        assert check_inventory(data).severity == Severity.CRITICAL

    def test_overstacked_is_high(self):
        data = {"actions": [{"new_item": {"name": "minecraft:ender_pearl", "count": 99, "max_stack_size": 16}}]}
        assert check_inventory(data).severity == Severity.HIGH

    def test_enchant_over_cap_is_high(self):
        data = {"actions": [{"new_item": {
            "name": "minecraft:diamond_sword", "count": 1,
            "enchantments": [{"name": "minecraft:sharpness", "level": 10}],
        }}]}
        assert check_inventory(data).severity == Severity.HIGH

    def test_exploit_enchant_level_is_critical(self):
        data = {"actions": [{"new_item": {
            "name": "minecraft:diamond_sword", "count": 1,
            "nbt": {"ench": [{"id": "sharpness", "lvl": 32767}]},
        }}]}
        assert check_inventory(data).severity == Severity.CRITICAL

    def test_oversized_nbt_is_critical(self):
        data = {"actions": [{"new_item": {
            "name": "minecraft:chest", "count": 1,
            "nbt": {"Items": ["x" * 1000 for _ in range(60)]},
        }}]}
        assert check_inventory(data).severity == Severity.CRITICAL

    def test_no_actions(self):
        assert not check_inventory({}).flagged
