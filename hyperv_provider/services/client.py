"""Client facade combining every Hyper-V resource operation."""
from __future__ import annotations

import logging

from .dvd_service import DvdOperations
from .script_executor import ScriptExecutor
from .vhd_service import VhdOperations
from .vm_drive_service import VmDriveOperations
from .vm_network_adapter_service import VmNetworkAdapterOperations
from .vm_service import VmOperations
from .vm_settings_service import VmSettingsOperations
from .vm_status_service import VmStatusOperations
from .vm_switch_service import VmSwitchOperations

logger = logging.getLogger(__name__)


class HyperVClient(
    DvdOperations,
    VhdOperations,
    VmOperations,
    VmDriveOperations,
    VmNetworkAdapterOperations,
    VmSettingsOperations,
    VmStatusOperations,
    VmSwitchOperations,
):
    """Single entry point used by the reconciliation layer.

    Operations never retry and never reclassify errors; transport, timeout,
    script and decode failures reach the caller as raised.
    """

    def __init__(self, executor: ScriptExecutor):
        self.executor = executor

    @property
    def hostname(self) -> str:
        return self.executor.transport.hostname

    def close(self) -> None:
        """Release pooled connections held by the transport."""

        logger.debug("Closing Hyper-V client for %s", self.hostname)
        self.executor.transport.close()


__all__ = ["HyperVClient"]
