"""
RealmGuard - Configuration Module
=================================

Process-wide configuration loaded from environment variables.

DESIGN:
    One source of truth for timing and retention knobs, loaded once at
    startup. Per-tenant automod settings are not kept here; they come from
    the tenant settings capability (see realmguard.core.settings).

    Key patterns:
    - Singleton via get_config()
    - Validation happens once at load time
    - Out-of-range values are clamped with a warning instead of failing
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


# =============================================================================
# Configuration Dataclass
# =============================================================================

@dataclass
class Config:
    """
    Engine configuration loaded from environment variables.

    Attributes:
        spectator_interval: Seconds between spectator-mode re-assertions.
        spectator_initial_delay: Seconds after spawn before the first one.
        sweep_interval: Seconds between memory sweeps across all tenants.
        window_max_age: Sliding-window entries older than this are swept.
        max_history_entries: Cap of the per-tenant player history ledger.
        session_max_age: Live sessions older than this are considered stale.
        log_webhook_url: Optional webhook receiving error alerts.
        realms_api_url: Base URL of the Realms API.
    """

    # -------------------------------------------------------------------------
    # Timers
    # -------------------------------------------------------------------------

    spectator_interval: int = 10
    spectator_initial_delay: int = 1
    sweep_interval: int = 120

    # -------------------------------------------------------------------------
    # Retention
    # -------------------------------------------------------------------------

    window_max_age: int = 300
    max_history_entries: int = 1000
    session_max_age: int = 24 * 60 * 60

    # -------------------------------------------------------------------------
    # Optional: Integrations
    # -------------------------------------------------------------------------

    log_webhook_url: Optional[str] = None
    realms_api_url: str = "https://pocket.realms.minecraft.net"


# =============================================================================
# Validation Helpers
# =============================================================================

class ConfigValidationError(Exception):
    """Raised when configuration is missing or invalid."""

    pass


def _parse_int_with_default(
    value: Optional[str],
    default: int,
    name: str,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
) -> int:
    """
    Parse optional integer with default and range clamping.

    Args:
        value: String value from environment variable.
        default: Default value if not set or invalid.
        name: Variable name for warning messages.
        min_val: Minimum allowed value (inclusive).
        max_val: Maximum allowed value (inclusive).

    Returns:
        Parsed integer within valid range, or default.
    """
    if not value:
        return default

    from realmguard.core.logger import logger

    try:
        parsed = int(value)
    except ValueError:
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default

    if min_val is not None and parsed < min_val:
        logger.warning(f"Config {name}={parsed} below min {min_val}, using {min_val}")
        return min_val
    if max_val is not None and parsed > max_val:
        logger.warning(f"Config {name}={parsed} above max {max_val}, using {max_val}")
        return max_val
    return parsed


def _validate_url(value: Optional[str], name: str) -> Optional[str]:
    """Return the URL if it looks like http(s), otherwise None with a warning."""
    if not value:
        return None
    if not value.startswith(("https://", "http://")):
        from realmguard.core.logger import logger
        logger.warning(f"Config {name} invalid URL format, ignoring")
        return None
    return value.rstrip("/")


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    A .env file in the working directory is honoured but never overrides
    variables already present in the environment.

    Raises:
        ConfigValidationError: If the Realms API URL is set but unusable.
    """
    load_dotenv(override=False)

    realms_api_raw = os.getenv("REALMGUARD_REALMS_API_URL")
    realms_api_url = _validate_url(realms_api_raw, "REALMGUARD_REALMS_API_URL")
    if realms_api_raw and realms_api_url is None:
        raise ConfigValidationError(f"Invalid URL for REALMGUARD_REALMS_API_URL: {realms_api_raw}")

    return Config(
        spectator_interval=_parse_int_with_default(
            os.getenv("REALMGUARD_SPECTATOR_INTERVAL"), 10, "REALMGUARD_SPECTATOR_INTERVAL", 1, 3600,
        ),
        spectator_initial_delay=_parse_int_with_default(
            os.getenv("REALMGUARD_SPECTATOR_INITIAL_DELAY"), 1, "REALMGUARD_SPECTATOR_INITIAL_DELAY", 0, 60,
        ),
        sweep_interval=_parse_int_with_default(
            os.getenv("REALMGUARD_SWEEP_INTERVAL"), 120, "REALMGUARD_SWEEP_INTERVAL", 5, 3600,
        ),
        window_max_age=_parse_int_with_default(
            os.getenv("REALMGUARD_WINDOW_MAX_AGE"), 300, "REALMGUARD_WINDOW_MAX_AGE", 10, 86400,
        ),
        max_history_entries=_parse_int_with_default(
            os.getenv("REALMGUARD_MAX_HISTORY"), 1000, "REALMGUARD_MAX_HISTORY", 1, 100000,
        ),
        session_max_age=_parse_int_with_default(
            os.getenv("REALMGUARD_SESSION_MAX_AGE"), 24 * 60 * 60, "REALMGUARD_SESSION_MAX_AGE", 60, 7 * 86400,
        ),
        log_webhook_url=_validate_url(os.getenv("REALMGUARD_LOG_WEBHOOK_URL"), "REALMGUARD_LOG_WEBHOOK_URL"),
        realms_api_url=realms_api_url or "https://pocket.realms.minecraft.net",
    )


_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance, loading if needed.

    Raises:
        ConfigValidationError: On first call if config is invalid.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached instance so the next get_config() reloads."""
    global _config
    _config = None


# =============================================================================
# Config Validation & Logging
# =============================================================================

def validate_and_log_config() -> Config:
    """Load the config (raising if invalid), wire the alert webhook and log a summary."""
    from realmguard.core.logger import logger

    config = get_config()
    logger.set_webhook(config.log_webhook_url)

    logger.tree("Configuration Loaded", [
        ("Spectator Interval", f"{config.spectator_interval}s"),
        ("Sweep Interval", f"{config.sweep_interval}s"),
        ("Window Max Age", f"{config.window_max_age}s"),
        ("History Cap", str(config.max_history_entries)),
        ("Webhook Alerts", "Enabled" if config.log_webhook_url else "Disabled"),
    ], emoji="⚙️")
    return config


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "Config",
    "ConfigValidationError",
    "load_config",
    "get_config",
    "reset_config",
    "validate_and_log_config",
]
