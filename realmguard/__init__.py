"""
RealmGuard
==========

Live-session anti-abuse engine and connection lifecycle manager for
Minecraft Bedrock realms, one persistent game client per tenant.
"""

__version__ = "1.0.0"
