"""Virtual machine operations."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..core.models import Vm, VmExists
from ..core.specs import VmSpec
from ..core.templates import ScriptTemplate
from .base import CREATE_TIMEOUT, DELETE_TIMEOUT, READ_TIMEOUT, UPDATE_TIMEOUT, ClientOperations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _NameArgs:
    name: str


# Shared by create and update so both converge on the same settings.
_SET_VM = """
$memory = @{}
{% if dynamic_memory %}
$memory.DynamicMemory = $true
$memory.MemoryMinimumBytes = {{ memory_minimum_bytes }}
$memory.MemoryMaximumBytes = {{ memory_maximum_bytes }}
{% elif static_memory %}
$memory.StaticMemory = $true
{% endif %}

Set-VM -Name $name `
    -ProcessorCount {{ processor_count }} `
    -MemoryStartupBytes {{ memory_startup_bytes }} `
    -AutomaticCriticalErrorAction {{ automatic_critical_error_action }} `
    -AutomaticCriticalErrorActionTimeout {{ automatic_critical_error_action_timeout }} `
    -AutomaticStartAction {{ automatic_start_action }} `
    -AutomaticStartDelay {{ automatic_start_delay }} `
    -AutomaticStopAction {{ automatic_stop_action }} `
    -CheckpointType {{ checkpoint_type }} `
    -GuestControlledCacheTypes {{ guest_controlled_cache_types }} `
    -HighMemoryMappedIoSpace {{ high_memory_mapped_io_space }} `
    -LockOnDisconnect {{ lock_on_disconnect }} `
    -LowMemoryMappedIoSpace {{ low_memory_mapped_io_space }} `
    -Notes {{ notes }} `
{% if smart_paging_file_path %}
    -SmartPagingFilePath {{ smart_paging_file_path | winpath }} `
{% endif %}
{% if snapshot_file_location %}
    -SnapshotFileLocation {{ snapshot_file_location | winpath }} `
{% endif %}
    @memory
"""


VM_EXISTS = ScriptTemplate(
    "VmExists",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
$name = {{ name }}

$exists = [bool](Get-VM -Name $name -ErrorAction SilentlyContinue)
ConvertTo-Json -InputObject @{ Exists = $exists }
""",
    _NameArgs,
)


CREATE_VM = ScriptTemplate(
    "CreateVm",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
$name = {{ name }}

$parameters = @{
    Name = $name
    Generation = {{ generation }}
    MemoryStartupBytes = {{ memory_startup_bytes }}
    NoVHD = $true
}
{% if path %}
$parameters.Path = {{ path | winpath }}
{% endif %}
New-VM @parameters | Out-Null
"""
    + _SET_VM,
    VmSpec,
)


GET_VM = ScriptTemplate(
    "GetVm",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
$name = {{ name }}

$vm = Get-VM -Name $name -ErrorAction SilentlyContinue
if ($vm) {
    ConvertTo-Json -InputObject @{
        Name = $vm.Name
        Path = $vm.Path
        Generation = $vm.Generation
        AutomaticCriticalErrorAction = $vm.AutomaticCriticalErrorAction.ToString()
        AutomaticCriticalErrorActionTimeout = $vm.AutomaticCriticalErrorActionTimeout
        AutomaticStartAction = $vm.AutomaticStartAction.ToString()
        AutomaticStartDelay = $vm.AutomaticStartDelay
        AutomaticStopAction = $vm.AutomaticStopAction.ToString()
        CheckpointType = $vm.CheckpointType.ToString()
        DynamicMemory = $vm.DynamicMemoryEnabled
        StaticMemory = -not $vm.DynamicMemoryEnabled
        GuestControlledCacheTypes = $vm.GuestControlledCacheTypes
        HighMemoryMappedIoSpace = $vm.HighMemoryMappedIoSpace
        LockOnDisconnect = $vm.LockOnDisconnect.ToString()
        LowMemoryMappedIoSpace = $vm.LowMemoryMappedIoSpace
        MemoryMaximumBytes = $vm.MemoryMaximum
        MemoryMinimumBytes = $vm.MemoryMinimum
        MemoryStartupBytes = $vm.MemoryStartup
        Notes = $vm.Notes
        ProcessorCount = $vm.ProcessorCount
        SmartPagingFilePath = $vm.SmartPagingFilePath
        SnapshotFileLocation = $vm.SnapshotFileLocation
    }
} else {
    '{}'
}
""",
    _NameArgs,
)


UPDATE_VM = ScriptTemplate(
    "UpdateVm",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
$name = {{ name }}

Get-VM -Name $name | Out-Null
"""
    + _SET_VM,
    VmSpec,
)


DELETE_VM = ScriptTemplate(
    "DeleteVm",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
$name = {{ name }}

$vm = Get-VM -Name $name -ErrorAction SilentlyContinue
if ($vm) {
    if ($vm.State -ne 'Off') {
        Stop-VM -VM $vm -TurnOff -Force
    }
    Remove-VM -VM $vm -Force
}
""",
    _NameArgs,
)


class VmOperations(ClientOperations):
    """Create, inspect, reconfigure and delete virtual machines."""

    async def vm_exists(self, name: str, *, timeout: Optional[float] = None) -> VmExists:
        return await self.executor.run_with_result(
            VM_EXISTS, _NameArgs(name=name), VmExists, timeout=self._timeout(READ_TIMEOUT, timeout)
        )

    async def create_vm(self, spec: VmSpec, *, timeout: Optional[float] = None) -> None:
        logger.info("Creating VM %s (generation %d)", spec.name, spec.generation)
        await self.executor.run_fire_and_forget(
            CREATE_VM, spec, timeout=self._timeout(CREATE_TIMEOUT, timeout)
        )

    async def get_vm(self, name: str, *, timeout: Optional[float] = None) -> Vm:
        vm = await self.executor.run_with_result(
            GET_VM, _NameArgs(name=name), Vm, timeout=self._timeout(READ_TIMEOUT, timeout)
        )
        vm.exists = bool(vm.name)
        return vm

    async def update_vm(self, spec: VmSpec, *, timeout: Optional[float] = None) -> None:
        logger.info("Updating VM %s", spec.name)
        await self.executor.run_fire_and_forget(
            UPDATE_VM, spec, timeout=self._timeout(UPDATE_TIMEOUT, timeout)
        )

    async def delete_vm(self, name: str, *, timeout: Optional[float] = None) -> None:
        logger.info("Deleting VM %s", name)
        await self.executor.run_fire_and_forget(
            DELETE_VM, _NameArgs(name=name), timeout=self._timeout(DELETE_TIMEOUT, timeout)
        )


__all__ = ["CREATE_VM", "DELETE_VM", "GET_VM", "UPDATE_VM", "VM_EXISTS", "VmOperations"]
