"""
RealmGuard - Test Fixtures
==========================

Shared fixtures for all tests.
"""

import os
import tempfile

# Log into a scratch directory, set before realmguard.core.logger is imported
os.environ.setdefault("REALMGUARD_LOG_DIR", tempfile.mkdtemp(prefix="realmguard-logs-"))

import pytest
from unittest.mock import AsyncMock, MagicMock

from realmguard.core.config import Config
from realmguard.core.settings import AutomodSettings, TenantSettings
from realmguard.services.automod import WindowStore
from realmguard.services.events import EventBus
from realmguard.services.game_events import PlayerJoin


# =============================================================================
# Clock
# =============================================================================

class FakeClock:
    """Manually advanced clock for windowed detectors and session timing."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


# =============================================================================
# Settings & Config
# =============================================================================

@pytest.fixture
def automod_settings():
    """Every detector switched on, stock thresholds."""
    return AutomodSettings(
        anti_spoof=True,
        anti_private_profile=True,
        anti_alts=True,
        anti_unfair_skins=True,
        anti_device_spoof=True,
        anti_new_accounts=True,
        anti_unicode_exploit=True,
        anti_command_spam=True,
        anti_chat_flood=True,
        anti_advertising=True,
        anti_invalid_packets=True,
        anti_packet_flood=True,
        anti_inventory_exploit=True,
    )


@pytest.fixture
def tenant_settings(automod_settings):
    return TenantSettings(automod=automod_settings)


@pytest.fixture
def config():
    """Fast timers so lifecycle tests never sleep for long."""
    return Config(
        spectator_interval=0.01,
        spectator_initial_delay=0,
        sweep_interval=3600,
        window_max_age=300,
        max_history_entries=1000,
        session_max_age=86400,
    )


@pytest.fixture
def windows():
    return WindowStore()


@pytest.fixture
def bus():
    return EventBus()


# =============================================================================
# Capabilities
# =============================================================================

@pytest.fixture
def apply_ban():
    return AsyncMock(return_value=None)


@pytest.fixture
def send_command():
    return AsyncMock(return_value=None)


@pytest.fixture
def get_settings(tenant_settings):
    return MagicMock(return_value=tenant_settings)


# =============================================================================
# Events
# =============================================================================

def make_skin(width=64, height=64, **overrides):
    """Opaque skin with varied colours."""
    data = bytearray()
    for i in range(width * height):
        data.extend((i % 251, (i * 7) % 253, (i * 13) % 255, 255))
    skin = {
        "skin_image_width": width,
        "skin_image_height": height,
        "skin_data": bytes(data),
        "geometry_data": "",
    }
    skin.update(overrides)
    return skin


def make_join(username="Steve", xuid="2535400000000001", **overrides):
    fields = dict(
        username=username,
        xuid=xuid,
        uuid=f"uuid-{xuid}",
        runtime_id=int(xuid[-4:]),
        platform=7,
        skin=make_skin(),
        device={
            "device_model": "Desktop PC",
            "device_id": "a1b2c3d4-e5f6-4711-8899-aabbccddeeff",
            "current_input_mode": 1,
            "default_input_mode": 1,
            "gui_scale": 0,
            "language_code": "en_US",
        },
    )
    fields.update(overrides)
    return PlayerJoin(**fields)


@pytest.fixture
def join_factory():
    return make_join


@pytest.fixture
def skin_factory():
    return make_skin
