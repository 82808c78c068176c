"""
RealmGuard - Tenant Settings
============================

Pydantic models for the read-only per-tenant automod settings object.

DESIGN:
    The settings store is an external collaborator; it hands us whatever
    it keeps for a guild. Field aliases are camelCase so stored guild
    configs validate directly, while code reads the snake_case names.
    Every toggle defaults to off except crash attribution, matching a
    freshly created guild.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# Base Model
# =============================================================================

class SettingsModel(BaseModel):
    """Shared model configuration for settings blocks."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# Threshold Blocks
# =============================================================================

class AntiAltsSettings(SettingsModel):
    min_gamerscore: int = Field(default=0, ge=0, description="Profiles below this gamerscore are flagged")


class AntiNewAccountsSettings(SettingsModel):
    min_account_age_days: int = Field(default=30, ge=0)


class CommandSpamSettings(SettingsModel):
    max_commands: int = Field(default=10, ge=1)
    time_window: float = Field(default=5, gt=0, description="Window length in seconds")


class ChatFloodSettings(SettingsModel):
    max_messages: int = Field(default=5, ge=1)
    time_window: float = Field(default=10, gt=0, description="Window length in seconds")
    duplicate_threshold: int = Field(default=3, ge=2)


# =============================================================================
# Automod Block
# =============================================================================

class AutomodSettings(SettingsModel):
    """Detector toggles and their thresholds."""

    enabled: bool = True
    ban_on_crash: bool = Field(
        default=True,
        description="Ban the last joiner when a connected session ends without a clean signal",
    )

    # Join checks
    anti_spoof: bool = False
    anti_private_profile: bool = False
    anti_alts: bool = False
    anti_unfair_skins: bool = False
    anti_device_spoof: bool = False
    anti_new_accounts: bool = False

    # Chat and command checks
    anti_unicode_exploit: bool = False
    anti_command_spam: bool = False
    anti_chat_flood: bool = False
    anti_advertising: bool = False

    # Packet checks
    anti_invalid_packets: bool = False
    anti_packet_flood: bool = False
    anti_inventory_exploit: bool = False

    anti_alts_settings: AntiAltsSettings = Field(default_factory=AntiAltsSettings)
    anti_new_accounts_settings: AntiNewAccountsSettings = Field(default_factory=AntiNewAccountsSettings)
    anti_command_spam_settings: CommandSpamSettings = Field(default_factory=CommandSpamSettings)
    anti_chat_flood_settings: ChatFloodSettings = Field(default_factory=ChatFloodSettings)


class TenantSettings(SettingsModel):
    """Everything the engine reads about one tenant."""

    automod: AutomodSettings = Field(default_factory=AutomodSettings)


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "AntiAltsSettings",
    "AntiNewAccountsSettings",
    "AutomodSettings",
    "ChatFloodSettings",
    "CommandSpamSettings",
    "TenantSettings",
]
