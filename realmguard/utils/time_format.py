"""
RealmGuard - Time Formatting Utils
==================================

Human-readable durations for session summaries and log lines.
"""


def format_duration(total_seconds: float) -> str:
    """
    Format seconds into a compact duration string.

    Examples:
        - 45 seconds: "45s"
        - 125 seconds: "2m 5s"
        - 3700 seconds: "1h 1m"
        - 90000 seconds: "1d 1h"
        - 0 or negative: "0s"
    """
    if not total_seconds or total_seconds < 0:
        return "0s"

    seconds = int(total_seconds)
    days, remaining = divmod(seconds, 86400)
    hours, remaining = divmod(remaining, 3600)
    minutes, secs = divmod(remaining, 60)

    if days > 0:
        return f"{days}d {hours}h" if hours else f"{days}d"
    if hours > 0:
        return f"{hours}h {minutes}m" if minutes else f"{hours}h"
    if minutes > 0:
        return f"{minutes}m {secs}s" if secs else f"{minutes}m"
    return f"{secs}s"


__all__ = ["format_duration"]
