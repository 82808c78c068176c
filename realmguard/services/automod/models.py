"""
Automod Data Models
===================

Severity scale, flags and verdicts returned by every detector.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional

from .constants import AUTO_BAN_MIN_CRITICAL, AUTO_BAN_MIN_HIGH


class Severity(IntEnum):
    """Flag severity; comparison follows CRITICAL > HIGH > MEDIUM > LOW."""
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


@dataclass(frozen=True)
class DetectionFlag:
    """One thing a detector found."""
    check_name: str
    reason: str
    severity: Severity

    def describe(self) -> str:
        return f"[{self.severity.name}] {self.reason}"


@dataclass
class DetectionVerdict:
    """Result of one detector run."""
    check_name: str
    flags: List[DetectionFlag] = field(default_factory=list)

    @classmethod
    def clean(cls, check_name: str) -> "DetectionVerdict":
        return cls(check_name=check_name)

    def add(self, reason: str, severity: Severity, check_name: Optional[str] = None) -> None:
        self.flags.append(DetectionFlag(check_name or self.check_name, reason, severity))

    @property
    def flagged(self) -> bool:
        return bool(self.flags)

    @property
    def severity(self) -> Optional[Severity]:
        if not self.flags:
            return None
        return max(f.severity for f in self.flags)

    @property
    def auto_ban(self) -> bool:
        """True with at least one CRITICAL flag or at least two HIGH flags."""
        critical = sum(1 for f in self.flags if f.severity == Severity.CRITICAL)
        high = sum(1 for f in self.flags if f.severity == Severity.HIGH)
        return critical >= AUTO_BAN_MIN_CRITICAL or high >= AUTO_BAN_MIN_HIGH

    @property
    def reason(self) -> str:
        """Flags joined worst-first, for ban reasons and events."""
        ordered = sorted(self.flags, key=lambda f: f.severity, reverse=True)
        return " | ".join(f.describe() for f in ordered)


@dataclass
class PlayerProfile:
    """What the profile capability knows about an account."""
    xuid: str
    gamertag: str
    gamerscore: int = 0
    tenure_level: int = 0
    account_tier: Optional[str] = None
