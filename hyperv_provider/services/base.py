"""Shared plumbing for the per-resource client operations."""
from __future__ import annotations

from typing import Optional

from .script_executor import ScriptExecutor

# Default deadlines for remote operations, in seconds.
READ_TIMEOUT = 60.0
LONG_READ_TIMEOUT = 120.0
CREATE_TIMEOUT = 300.0
UPDATE_TIMEOUT = 120.0
DELETE_TIMEOUT = 120.0


class ClientOperations:
    """Base for operation mixins; the concrete client supplies the executor."""

    executor: ScriptExecutor

    def _timeout(self, default: float, override: Optional[float] = None) -> float:
        """Return the deadline for one call.

        An explicit override wins; otherwise the larger of the operation
        default and the configured session timeout.
        """

        if override is not None:
            return float(override)
        return max(float(default), self.executor.default_timeout)


__all__ = [
    "ClientOperations",
    "CREATE_TIMEOUT",
    "DELETE_TIMEOUT",
    "LONG_READ_TIMEOUT",
    "READ_TIMEOUT",
    "UPDATE_TIMEOUT",
]
