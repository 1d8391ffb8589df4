"""Power state control for Hyper-V virtual machines."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..core.models import VmStatus
from ..core.specs import VmStatusSpec
from ..core.templates import ScriptTemplate
from .base import READ_TIMEOUT, UPDATE_TIMEOUT, ClientOperations

logger = logging.getLogger(__name__)

# Time allowed for the state change itself on top of the wait for the target state.
STATE_CHANGE_ALLOWANCE = 60.0


@dataclass(frozen=True)
class _VmNameArgs:
    vm_name: str


GET_VM_STATUS = ScriptTemplate(
    "GetVmStatus",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V

$vm = Get-VM -Name {{ vm_name }} -ErrorAction SilentlyContinue
if ($vm) {
    ConvertTo-Json -InputObject @{
        Name = $vm.Name
        State = $vm.State.ToString()
        Status = $vm.Status
        UptimeSeconds = [int64]$vm.Uptime.TotalSeconds
    }
} else {
    '{}'
}
""",
    _VmNameArgs,
)


UPDATE_VM_STATUS = ScriptTemplate(
    "UpdateVmStatus",
    """
$ErrorActionPreference = 'Stop'
$ProgressPreference = 'SilentlyContinue'
Import-Module Hyper-V -ErrorAction Stop | Out-Null

$vmName = {{ vm_name }}
$targetState = {{ state }}
$timeoutSeconds = {{ wait_for_state_timeout }}
$pollPeriodSeconds = {{ wait_for_state_poll_period }}

function Invoke-StateChange($verb, [scriptblock]$action) {
    try {
        & $action | Out-Null
    } catch {
        $message = $_.Exception.Message
        if ($_.ErrorDetails -and $_.ErrorDetails.Message) {
            $message = $_.ErrorDetails.Message
        } elseif ($_.FullyQualifiedErrorId) {
            $message = "$verb failed: " + $_.FullyQualifiedErrorId
        }
        throw $message
    }
}

$vm = Get-VM -Name $vmName
$currentState = $vm.State.ToString()

if ($currentState -ne $targetState) {
    switch ($targetState) {
        'Running' {
            if ($currentState -eq 'Paused') {
                Invoke-StateChange 'Resume-VM' { Resume-VM -VM $vm -Confirm:$false }
            } else {
                Invoke-StateChange 'Start-VM' { Start-VM -VM $vm -Confirm:$false }
            }
        }
        'Off' {
            Invoke-StateChange 'Stop-VM' { Stop-VM -VM $vm -Force -Confirm:$false }
        }
        'Saved' {
            Invoke-StateChange 'Save-VM' { Save-VM -VM $vm -Confirm:$false }
        }
        'Paused' {
            Invoke-StateChange 'Suspend-VM' { Suspend-VM -VM $vm -Confirm:$false }
        }
    }
}

$deadline = (Get-Date).AddSeconds($timeoutSeconds)
while ((Get-VM -Name $vmName).State.ToString() -ne $targetState) {
    if ((Get-Date) -ge $deadline) {
        throw "VM $vmName did not reach state $targetState within $timeoutSeconds seconds"
    }
    Start-Sleep -Seconds $pollPeriodSeconds
}
""",
    VmStatusSpec,
)


class VmStatusOperations(ClientOperations):
    """Read and drive the power state of virtual machines."""

    async def get_vm_status(self, vm_name: str, *, timeout: Optional[float] = None) -> VmStatus:
        return await self.executor.run_with_result(
            GET_VM_STATUS,
            _VmNameArgs(vm_name=vm_name),
            VmStatus,
            timeout=self._timeout(READ_TIMEOUT, timeout),
        )

    async def update_vm_status(self, spec: VmStatusSpec, *, timeout: Optional[float] = None) -> None:
        """Move a VM to ``spec.state`` and wait until the host reports it."""

        logger.info(
            "Changing state of VM %s to %s (wait up to %ss)",
            spec.vm_name,
            spec.state.value,
            spec.wait_for_state_timeout,
        )
        minimum = spec.wait_for_state_timeout + STATE_CHANGE_ALLOWANCE
        await self.executor.run_fire_and_forget(
            UPDATE_VM_STATUS,
            spec,
            timeout=self._timeout(max(UPDATE_TIMEOUT, minimum), timeout),
        )
        logger.info("VM %s reached state %s", spec.vm_name, spec.state.value)


__all__ = ["GET_VM_STATUS", "STATE_CHANGE_ALLOWANCE", "UPDATE_VM_STATUS", "VmStatusOperations"]
