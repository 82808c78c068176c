"""
RealmGuard - Async Utilities
============================

Helpers for background tasks and awaited calls that must never fail silently.

Usage:
    from realmguard.utils.async_utils import create_safe_task

    # Instead of:
    asyncio.create_task(self._sweep_loop())

    # Use:
    self._task = create_safe_task(self._sweep_loop(), "Sweep Loop")
"""

import asyncio
from typing import Any, Coroutine, Optional

from realmguard.core.logger import logger


async def safe_async_operation(
    name: str,
    coro: Coroutine[Any, Any, Any],
    default: Any = None,
    log_level: str = "warning",
) -> Any:
    """
    Run a single async operation, returning ``default`` if it raises.

    Args:
        name: Name of the operation for logging.
        coro: The coroutine to run.
        default: Value to return if the operation fails.
        log_level: Log level for errors ("debug", "warning", "error").
    """
    try:
        return await coro
    except asyncio.CancelledError:
        raise
    except Exception as e:
        error_details = [
            ("Operation", name),
            ("Error Type", type(e).__name__),
            ("Error", str(e)[:100]),
        ]

        if log_level == "debug":
            logger.debug("Async Operation Failed", error_details)
        elif log_level == "error":
            logger.error("Async Operation Failed", error_details)
        else:
            logger.warning("Async Operation Failed", error_details)

        return default


# =============================================================================
# Safe Background Tasks
# =============================================================================

def create_safe_task(
    coro: Coroutine[Any, Any, Any],
    name: str = "Background Task",
) -> asyncio.Task:
    """
    Create a background task whose exceptions are logged, not lost.

    Args:
        coro: The coroutine to run as a background task.
        name: Name for logging purposes.

    Returns:
        The created asyncio.Task.
    """
    async def wrapped():
        try:
            await coro
        except asyncio.CancelledError:
            # Cancelled on teardown
            pass
        except Exception as e:
            logger.error("Background Task Failed", [
                ("Task", name),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:200]),
            ])

    task = asyncio.create_task(wrapped(), name=name)
    task.add_done_callback(lambda t: _close_unstarted(t, coro))
    return task


def _close_unstarted(task: asyncio.Task, coro: Coroutine[Any, Any, Any]) -> None:
    # A task cancelled before its first step never awaited ``coro``
    if task.cancelled():
        coro.close()


async def cancel_task(task: Optional[asyncio.Task]) -> None:
    """Cancel a task and wait until it has actually finished."""
    if task is None or task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "safe_async_operation",
    "create_safe_task",
    "cancel_task",
]
