"""
Profile Detectors
=================

Join-time checks that need the remote account profile: spoofed names,
alt accounts, hidden profiles and brand-new accounts.
"""

from typing import Optional

from realmguard.core.settings import AutomodSettings

from .constants import CHECK_PROFILE, DAYS_PER_TENURE_LEVEL, NEW_ACCOUNT_GAMERSCORE
from .models import DetectionVerdict, PlayerProfile, Severity


def check_account_age(profile: PlayerProfile, min_days_old: int) -> DetectionVerdict:
    """Estimate account age from tenure and gamerscore."""
    verdict = DetectionVerdict.clean(CHECK_PROFILE)

    if profile.tenure_level == 0 and min_days_old > DAYS_PER_TENURE_LEVEL:
        verdict.add(f"Account too new (tenure {profile.tenure_level}, under a year)", Severity.MEDIUM)
    elif profile.tenure_level == 0 and profile.gamerscore < NEW_ACCOUNT_GAMERSCORE and min_days_old > 0:
        verdict.add(f"New account suspected (tenure 0, gamerscore {profile.gamerscore})", Severity.LOW)

    return verdict


def check_profile(
    settings: AutomodSettings,
    username: str,
    profile: Optional[PlayerProfile],
) -> DetectionVerdict:
    """
    Run every enabled profile-based check for one joiner.

    Args:
        settings: Tenant automod settings.
        username: Name the client declared on join.
        profile: Fetched profile, or None when the account hides it.
    """
    verdict = DetectionVerdict.clean(CHECK_PROFILE)

    if profile is None:
        if settings.anti_private_profile:
            verdict.add("Profile is private or hidden", Severity.MEDIUM)
        return verdict

    if settings.anti_spoof and profile.gamertag and profile.gamertag.lower() != username.lower():
        verdict.add(f"Name spoof: joined as {username}, account is {profile.gamertag}", Severity.CRITICAL)

    if settings.anti_alts:
        minimum = settings.anti_alts_settings.min_gamerscore
        if profile.gamerscore < minimum:
            verdict.add(f"Gamerscore {profile.gamerscore} below required {minimum}", Severity.HIGH)

    if settings.anti_new_accounts:
        verdict.flags.extend(
            check_account_age(profile, settings.anti_new_accounts_settings.min_account_age_days).flags
        )

    return verdict


__all__ = ["check_profile", "check_account_age"]
