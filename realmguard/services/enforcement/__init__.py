"""
Enforcement
===========

Disconnect classification and ban execution.
"""

from .classifier import Classification, attribution_reason, classify, trigger_kind
from .executor import ACTION_BAN, EnforcementExecutor, Offender

__all__ = [
    "Classification",
    "classify",
    "trigger_kind",
    "attribution_reason",
    "EnforcementExecutor",
    "Offender",
    "ACTION_BAN",
]
