"""
Tests for realmguard/services/automod/engine.py and profile.py

Covers toggles, failure isolation, join/chat/packet routing and the
profile-based join checks.
"""

import pytest
from unittest.mock import AsyncMock, patch

from realmguard.core.exceptions import ProfileUnavailable
from realmguard.core.settings import AutomodSettings
from realmguard.services.automod import DetectionEngine, PlayerProfile, Severity
from realmguard.services.automod.engine import packet_data
from realmguard.services.automod.profile import check_account_age, check_profile
from realmguard.services.game_events import Packet


def _profile(**overrides):
    fields = dict(xuid="2535400000000001", gamertag="Steve", gamerscore=5000, tenure_level=3)
    fields.update(overrides)
    return PlayerProfile(**fields)


# =============================================================================
# Toggles & Isolation
# =============================================================================

class TestEngineToggles:
    """Tests for settings toggles and detector isolation."""

    @pytest.mark.asyncio
    async def test_disabled_checks_do_not_run(self, join_factory):
        engine = DetectionEngine()
        join = join_factory(platform=9)
        verdicts = await engine.on_join("t1", AutomodSettings(), join)
        assert verdicts == []

    @pytest.mark.asyncio
    async def test_master_switch(self, automod_settings, join_factory):
        engine = DetectionEngine()
        settings = automod_settings.model_copy(update={"enabled": False})
        assert await engine.on_join("t1", settings, join_factory(platform=9)) == []

    @pytest.mark.asyncio
    async def test_malformed_skin_degrades_to_clean(self, automod_settings, join_factory, skin_factory):
        engine = DetectionEngine()
        join = join_factory(skin=skin_factory(skin_image_width="wide"))
        verdicts = await engine.on_join("t1", automod_settings, join)
        assert not any(v.flagged for v in verdicts)

    def test_detector_crash_degrades_to_clean(self, automod_settings, windows):
        engine = DetectionEngine()
        with patch("realmguard.services.automod.engine.check_unicode", side_effect=RuntimeError("boom")):
            verdict = engine.on_chat(automod_settings, windows, "p1", "hello", 0.0)
        assert verdict is None


# =============================================================================
# Join
# =============================================================================

class TestEngineJoin:
    """Tests for on_join."""

    @pytest.mark.asyncio
    async def test_clean_join(self, automod_settings, join_factory):
        engine = DetectionEngine(fetch_profile=AsyncMock(return_value=_profile()))
        verdicts = await engine.on_join("t1", automod_settings, join_factory())
        assert [v.check_name for v in verdicts] == ["appearance", "device", "profile"]
        assert not any(v.flagged for v in verdicts)

    @pytest.mark.asyncio
    async def test_spoofed_name_bans(self, automod_settings, join_factory):
        engine = DetectionEngine(fetch_profile=AsyncMock(return_value=_profile(gamertag="RealOwner")))
        verdicts = await engine.on_join("t1", automod_settings, join_factory())
        profile_verdict = verdicts[-1]
        assert profile_verdict.auto_ban

    @pytest.mark.asyncio
    async def test_profile_lookup_failure_is_no_evidence(self, automod_settings, join_factory):
        fetch = AsyncMock(side_effect=ProfileUnavailable("2535400000000001", "timeout"))
        engine = DetectionEngine(fetch_profile=fetch)
        verdicts = await engine.on_join("t1", automod_settings, join_factory())
        assert not any(v.flagged for v in verdicts)

    @pytest.mark.asyncio
    async def test_hidden_profile_is_medium(self, automod_settings, join_factory):
        engine = DetectionEngine(fetch_profile=AsyncMock(return_value=None))
        verdicts = await engine.on_join("t1", automod_settings, join_factory())
        assert verdicts[-1].severity == Severity.MEDIUM
        assert not verdicts[-1].auto_ban


# =============================================================================
# Chat & Packets
# =============================================================================

class TestEngineChatAndPackets:
    """Tests for on_chat and on_packet."""

    def test_first_flagged_verdict_wins(self, automod_settings, windows):
        engine = DetectionEngine()
        verdict = engine.on_chat(automod_settings, windows, "p1", "join my server discord.gg/abc", 0.0)
        assert verdict.check_name == "advertising"

    def test_clean_chat_returns_none(self, automod_settings, windows):
        engine = DetectionEngine()
        assert engine.on_chat(automod_settings, windows, "p1", "nice house", 0.0) is None

    def test_unmonitored_packet_type(self, automod_settings, windows):
        engine = DetectionEngine()
        assert engine.on_packet(automod_settings, windows, "p1", Packet("level_chunk", {}), 0.0) == []

    def test_move_packet_runs_invalid_and_rate(self, automod_settings, windows):
        engine = DetectionEngine()
        packet = Packet("move_player", {"position": {"x": 0, "y": 64, "z": 0}})
        verdicts = engine.on_packet(automod_settings, windows, "p1", packet, 0.0)
        assert [v.check_name for v in verdicts] == ["invalid_packet", "packet_rate"]

    def test_command_request_runs_command_spam(self, automod_settings, windows):
        engine = DetectionEngine()
        verdict = None
        for i in range(11):
            verdicts = engine.on_packet(
                automod_settings, windows, "p1",
                Packet("command_request", {"command": "/give @s diamond 64"}), i * 0.4,
            )
            verdict = verdicts[-1]
        assert verdict.check_name == "command_spam"
        assert verdict.severity == Severity.HIGH

    def test_inventory_packet(self, automod_settings, windows):
        engine = DetectionEngine()
        packet = Packet("inventory_transaction", {"actions": [{"new_item": {"name": "minecraft:barrier", "count": 1}}]})
        verdicts = engine.on_packet(automod_settings, windows, "p1", packet, 0.0)
        assert verdicts[-1].auto_ban


# =============================================================================
# Profile Checks
# =============================================================================

class TestProfileChecks:
    """Tests for check_profile and check_account_age."""

    def test_spoof_is_case_insensitive(self, automod_settings):
        assert not check_profile(automod_settings, "steve", _profile()).flagged

    def test_low_gamerscore(self, automod_settings):
        settings = automod_settings.model_copy(deep=True)
        settings.anti_alts_settings.min_gamerscore = 1000
        verdict = check_profile(settings, "Steve", _profile(gamerscore=10))
        assert verdict.severity == Severity.HIGH

    def test_new_account_heuristics(self):
        assert check_account_age(_profile(tenure_level=0, gamerscore=0), 400).severity == Severity.MEDIUM
        assert check_account_age(_profile(tenure_level=0, gamerscore=0), 30).severity == Severity.LOW
        assert not check_account_age(_profile(tenure_level=0, gamerscore=500), 30).flagged
        assert not check_account_age(_profile(tenure_level=2, gamerscore=0), 400).flagged


# =============================================================================
# Malformed Packets
# =============================================================================

class TestEngineMalformedPackets:
    """Tests for packets whose payload is missing or of the wrong shape."""

    @pytest.mark.parametrize("payload", [None, "garbage", [1, 2, 3]])
    def test_non_mapping_payload_is_empty(self, automod_settings, windows, payload):
        engine = DetectionEngine()
        verdicts = engine.on_packet(automod_settings, windows, "p1", Packet("command_request", payload), 0.0)
        assert [v.check_name for v in verdicts] == ["packet_rate", "command_spam"]
        assert not any(v.flagged for v in verdicts)

    def test_bad_command_field_degrades_to_clean(self, automod_settings, windows):
        engine = DetectionEngine()
        packet = Packet("command_request", {"command": {"text": "/op me"}})
        verdicts = engine.on_packet(automod_settings, windows, "p1", packet, 0.0)
        assert not any(v.flagged for v in verdicts)

    def test_packet_data_helper(self):
        assert packet_data(Packet("move_player", None)) == {}
        assert packet_data(Packet("move_player", {"yaw": 1})) == {"yaw": 1}
