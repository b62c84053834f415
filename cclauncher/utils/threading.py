"""Worker sizing for the concurrent git shell-outs."""

import os
import sys
from typing import Dict, Any, Optional


def is_free_threading_enabled() -> bool:
    """Detect if Python is running with free-threading enabled.

    Returns:
        True if running on Python 3.13+ with the GIL disabled
    """
    try:
        return hasattr(sys, "_is_gil_enabled") and not sys._is_gil_enabled()
    except Exception:
        return False


def get_optimal_worker_count(user_specified: Optional[int] = None, task_count: Optional[int] = None) -> int:
    """Calculate the worker count for a batch of git shell-outs.

    The work is I/O bound (each task waits on a git process), so the pool
    is sized above the CPU count, and never above the number of tasks.

    Args:
        user_specified: User-specified worker count, if provided
        task_count: Number of tasks about to be submitted, if known

    Returns:
        Number of workers, at least 1
    """
    if user_specified is not None and user_specified > 0:
        workers = user_specified
    else:
        cpu_count = os.cpu_count() or 1
        if is_free_threading_enabled():
            workers = min(64, cpu_count * 2)
        else:
            # CPU_count + 4 matches ThreadPoolExecutor's own default
            workers = min(32, cpu_count + 4)

    if task_count is not None:
        workers = min(workers, max(task_count, 1))
    return max(workers, 1)


def get_threading_info() -> Dict[str, Any]:
    """Get information about the threading configuration, shown in debug mode."""
    return {
        "free_threading": is_free_threading_enabled(),
        "cpu_count": os.cpu_count() or 1,
        "optimal_workers": get_optimal_worker_count(),
        "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
    }
