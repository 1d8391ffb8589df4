"""DVD drives and hard disk drives attached to VM controllers."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..core.models import ControllerType, VmDvdDrive, VmHardDiskDrive
from ..core.specs import VmDvdDriveSpec, VmHardDiskDriveSpec
from ..core.templates import ScriptTemplate
from .base import CREATE_TIMEOUT, DELETE_TIMEOUT, READ_TIMEOUT, UPDATE_TIMEOUT, ClientOperations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _VmNameArgs:
    vm_name: str


@dataclass(frozen=True)
class _DvdSlotArgs:
    vm_name: str
    controller_number: int
    controller_location: int


@dataclass(frozen=True)
class _DiskSlotArgs:
    vm_name: str
    controller_type: ControllerType
    controller_number: int
    controller_location: int


CREATE_VM_DVD_DRIVE = ScriptTemplate(
    "CreateVmDvdDrive",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V

$parameters = @{
    VMName = {{ vm_name }}
    ControllerNumber = {{ controller_number }}
    ControllerLocation = {{ controller_location }}
}
{% if path %}
$parameters.Path = {{ path | winpath }}
{% endif %}
{% if resource_pool_name %}
$parameters.ResourcePoolName = {{ resource_pool_name }}
{% endif %}
Add-VMDvdDrive @parameters
""",
    VmDvdDriveSpec,
)


GET_VM_DVD_DRIVES = ScriptTemplate(
    "GetVmDvdDrives",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V

$drives = @(Get-VMDvdDrive -VMName {{ vm_name }} -ErrorAction SilentlyContinue | ForEach-Object {
    @{
        VmName = $_.VMName
        ControllerNumber = $_.ControllerNumber
        ControllerLocation = $_.ControllerLocation
        Path = $_.Path
        ResourcePoolName = $_.PoolName
    }
})
ConvertTo-Json -InputObject $drives
""",
    _VmNameArgs,
)


UPDATE_VM_DVD_DRIVE = ScriptTemplate(
    "UpdateVmDvdDrive",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V

$parameters = @{
    VMName = {{ vm_name }}
    ControllerNumber = {{ controller_number }}
    ControllerLocation = {{ controller_location }}
    Path = {{ path | winpath }}
}
{% if resource_pool_name %}
$parameters.ResourcePoolName = {{ resource_pool_name }}
{% endif %}
if (-not $parameters.Path) {
    $parameters.Path = $null
}
Set-VMDvdDrive @parameters
""",
    VmDvdDriveSpec,
)


DELETE_VM_DVD_DRIVE = ScriptTemplate(
    "DeleteVmDvdDrive",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V

Get-VMDvdDrive -VMName {{ vm_name }} -ControllerNumber {{ controller_number }} -ControllerLocation {{ controller_location }} -ErrorAction SilentlyContinue |
    Remove-VMDvdDrive
""",
    _DvdSlotArgs,
)


_DISK_PARAMETERS = """
$parameters = @{
    VMName = {{ vm_name }}
    ControllerType = {{ controller_type }}
    ControllerNumber = {{ controller_number }}
    ControllerLocation = {{ controller_location }}
    SupportPersistentReservations = {{ support_persistent_reservations }}
    MaximumIOPS = {{ maximum_iops }}
    MinimumIOPS = {{ minimum_iops }}
}
{% if disk_number is not none %}
$parameters.DiskNumber = {{ disk_number }}
{% elif path %}
$parameters.Path = {{ path | winpath }}
{% endif %}
{% if resource_pool_name %}
$parameters.ResourcePoolName = {{ resource_pool_name }}
{% endif %}
{% if qos_policy_id %}
$parameters.QoSPolicyID = {{ qos_policy_id }}
{% endif %}
"""


CREATE_VM_HARD_DISK_DRIVE = ScriptTemplate(
    "CreateVmHardDiskDrive",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
"""
    + _DISK_PARAMETERS
    + """
Add-VMHardDiskDrive @parameters
""",
    VmHardDiskDriveSpec,
)


GET_VM_HARD_DISK_DRIVES = ScriptTemplate(
    "GetVmHardDiskDrives",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V

$drives = @(Get-VMHardDiskDrive -VMName {{ vm_name }} -ErrorAction SilentlyContinue | ForEach-Object {
    @{
        VmName = $_.VMName
        ControllerType = $_.ControllerType.ToString()
        ControllerNumber = $_.ControllerNumber
        ControllerLocation = $_.ControllerLocation
        Path = $_.Path
        DiskNumber = $_.DiskNumber
        ResourcePoolName = $_.PoolName
        SupportPersistentReservations = $_.SupportPersistentReservations
        MaximumIops = $_.MaximumIOPS
        MinimumIops = $_.MinimumIOPS
        QosPolicyId = [string]$_.QoSPolicyID
    }
})
ConvertTo-Json -InputObject $drives
""",
    _VmNameArgs,
)


UPDATE_VM_HARD_DISK_DRIVE = ScriptTemplate(
    "UpdateVmHardDiskDrive",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
"""
    + _DISK_PARAMETERS
    + """
Set-VMHardDiskDrive @parameters
""",
    VmHardDiskDriveSpec,
)


DELETE_VM_HARD_DISK_DRIVE = ScriptTemplate(
    "DeleteVmHardDiskDrive",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V

Get-VMHardDiskDrive -VMName {{ vm_name }} -ControllerType {{ controller_type }} -ControllerNumber {{ controller_number }} -ControllerLocation {{ controller_location }} -ErrorAction SilentlyContinue |
    Remove-VMHardDiskDrive
""",
    _DiskSlotArgs,
)


class VmDriveOperations(ClientOperations):
    """Attach, inspect and detach VM DVD drives and hard disk drives."""

    async def create_vm_dvd_drive(self, spec: VmDvdDriveSpec, *, timeout: Optional[float] = None) -> None:
        logger.info(
            "Adding DVD drive to VM %s at %d:%d",
            spec.vm_name,
            spec.controller_number,
            spec.controller_location,
        )
        await self.executor.run_fire_and_forget(
            CREATE_VM_DVD_DRIVE, spec, timeout=self._timeout(CREATE_TIMEOUT, timeout)
        )

    async def get_vm_dvd_drives(self, vm_name: str, *, timeout: Optional[float] = None) -> List[VmDvdDrive]:
        return await self.executor.run_with_result_list(
            GET_VM_DVD_DRIVES,
            _VmNameArgs(vm_name=vm_name),
            VmDvdDrive,
            timeout=self._timeout(READ_TIMEOUT, timeout),
        )

    async def update_vm_dvd_drive(self, spec: VmDvdDriveSpec, *, timeout: Optional[float] = None) -> None:
        await self.executor.run_fire_and_forget(
            UPDATE_VM_DVD_DRIVE, spec, timeout=self._timeout(UPDATE_TIMEOUT, timeout)
        )

    async def delete_vm_dvd_drive(
        self,
        vm_name: str,
        controller_number: int,
        controller_location: int,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        logger.info(
            "Removing DVD drive %d:%d from VM %s", controller_number, controller_location, vm_name
        )
        await self.executor.run_fire_and_forget(
            DELETE_VM_DVD_DRIVE,
            _DvdSlotArgs(vm_name, controller_number, controller_location),
            timeout=self._timeout(DELETE_TIMEOUT, timeout),
        )

    async def create_vm_hard_disk_drive(
        self, spec: VmHardDiskDriveSpec, *, timeout: Optional[float] = None
    ) -> None:
        logger.info(
            "Adding %s hard disk drive to VM %s at %d:%d",
            spec.controller_type.value,
            spec.vm_name,
            spec.controller_number,
            spec.controller_location,
        )
        await self.executor.run_fire_and_forget(
            CREATE_VM_HARD_DISK_DRIVE, spec, timeout=self._timeout(CREATE_TIMEOUT, timeout)
        )

    async def get_vm_hard_disk_drives(
        self, vm_name: str, *, timeout: Optional[float] = None
    ) -> List[VmHardDiskDrive]:
        return await self.executor.run_with_result_list(
            GET_VM_HARD_DISK_DRIVES,
            _VmNameArgs(vm_name=vm_name),
            VmHardDiskDrive,
            timeout=self._timeout(READ_TIMEOUT, timeout),
        )

    async def update_vm_hard_disk_drive(
        self, spec: VmHardDiskDriveSpec, *, timeout: Optional[float] = None
    ) -> None:
        await self.executor.run_fire_and_forget(
            UPDATE_VM_HARD_DISK_DRIVE, spec, timeout=self._timeout(UPDATE_TIMEOUT, timeout)
        )

    async def delete_vm_hard_disk_drive(
        self,
        vm_name: str,
        controller_type: ControllerType,
        controller_number: int,
        controller_location: int,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        logger.info(
            "Removing hard disk drive %s %d:%d from VM %s",
            ControllerType.from_literal(controller_type).value,
            controller_number,
            controller_location,
            vm_name,
        )
        await self.executor.run_fire_and_forget(
            DELETE_VM_HARD_DISK_DRIVE,
            _DiskSlotArgs(
                vm_name,
                ControllerType.from_literal(controller_type),
                controller_number,
                controller_location,
            ),
            timeout=self._timeout(DELETE_TIMEOUT, timeout),
        )


__all__ = [
    "CREATE_VM_DVD_DRIVE",
    "CREATE_VM_HARD_DISK_DRIVE",
    "DELETE_VM_DVD_DRIVE",
    "DELETE_VM_HARD_DISK_DRIVE",
    "GET_VM_DVD_DRIVES",
    "GET_VM_HARD_DISK_DRIVES",
    "UPDATE_VM_DVD_DRIVE",
    "UPDATE_VM_HARD_DISK_DRIVE",
    "VmDriveOperations",
]
