"""Firmware, processor and integration service settings of a VM."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..core.models import VmFirmware, VmIntegrationService, VmProcessor
from ..core.specs import VmFirmwareSpec, VmProcessorSpec
from ..core.templates import ScriptTemplate
from .base import READ_TIMEOUT, UPDATE_TIMEOUT, ClientOperations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _VmNameArgs:
    vm_name: str


@dataclass(frozen=True)
class _IntegrationServiceArgs:
    vm_name: str
    name: str


GET_VM_FIRMWARE = ScriptTemplate(
    "GetVmFirmware",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V

$firmware = Get-VMFirmware -VMName {{ vm_name }} -ErrorAction SilentlyContinue
if ($firmware) {
    $bootOrder = @($firmware.BootOrder | ForEach-Object {
        $entry = @{
            BootType = $_.BootType.ToString()
            Description = $_.Description
            Path = [string]$_.FirmwarePath
        }
        if ($_.BootType.ToString() -eq 'Network') {
            $entry.BootType = 'NetworkAdapter'
        } elseif ($_.BootType.ToString() -eq 'Drive') {
            if ($_.Device -is [Microsoft.HyperV.PowerShell.DvdDrive]) {
                $entry.BootType = 'DvdDrive'
            } else {
                $entry.BootType = 'HardDiskDrive'
            }
        }
        if ($_.Device) {
            if ($_.Device.PSObject.Properties['ControllerNumber']) {
                $entry.ControllerNumber = $_.Device.ControllerNumber
                $entry.ControllerLocation = $_.Device.ControllerLocation
            }
            if ($entry.BootType -eq 'NetworkAdapter') {
                $entry.NetworkAdapterName = $_.Device.Name
                $entry.MacAddress = $_.Device.MacAddress
            }
        }
        $entry
    })
    ConvertTo-Json -Depth 4 -InputObject @{
        VmName = $firmware.VMName
        EnableSecureBoot = $firmware.SecureBoot.ToString()
        SecureBootTemplate = $firmware.SecureBootTemplate
        PreferredNetworkBootProtocol = $firmware.PreferredNetworkBootProtocol.ToString()
        ConsoleMode = $firmware.ConsoleMode.ToString()
        PauseAfterBootFailure = $firmware.PauseAfterBootFailure.ToString()
        BootOrder = $bootOrder
    }
} else {
    '{}'
}
""",
    _VmNameArgs,
)


UPDATE_VM_FIRMWARE = ScriptTemplate(
    "UpdateVmFirmware",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
$vmName = {{ vm_name }}
$bootOrder = {{ boot_order }}

$firmware = Get-VMFirmware -VMName $vmName
$devices = @()
foreach ($entry in $bootOrder) {
    switch ($entry.boot_type) {
        'HardDiskDrive' {
            $devices += Get-VMHardDiskDrive -VMName $vmName -ControllerNumber $entry.controller_number -ControllerLocation $entry.controller_location
        }
        'DvdDrive' {
            $devices += Get-VMDvdDrive -VMName $vmName -ControllerNumber $entry.controller_number -ControllerLocation $entry.controller_location
        }
        'NetworkAdapter' {
            $devices += Get-VMNetworkAdapter -VMName $vmName -Name $entry.network_adapter_name
        }
        'File' {
            $devices += $firmware.BootOrder | Where-Object { $_.FirmwarePath -eq $entry.path } | Select-Object -First 1
        }
    }
}

$settings = @{
    VMName = $vmName
    EnableSecureBoot = {{ enable_secure_boot }}
    PreferredNetworkBootProtocol = {{ preferred_network_boot_protocol }}
    ConsoleMode = {{ console_mode }}
    PauseAfterBootFailure = {{ pause_after_boot_failure }}
}
if ({{ enable_secure_boot }} -eq 'On' -and {{ secure_boot_template }}) {
    $settings.SecureBootTemplate = {{ secure_boot_template }}
}
if ($devices.Count -gt 0) {
    $settings.BootOrder = $devices
}
Set-VMFirmware @settings
""",
    VmFirmwareSpec,
)


GET_VM_PROCESSOR = ScriptTemplate(
    "GetVmProcessor",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V

$processor = Get-VMProcessor -VMName {{ vm_name }} -ErrorAction SilentlyContinue
if ($processor) {
    ConvertTo-Json -InputObject @{
        VmName = $processor.VMName
        Count = $processor.Count
        CompatibilityForMigrationEnabled = $processor.CompatibilityForMigrationEnabled
        CompatibilityForOlderOperatingSystemsEnabled = $processor.CompatibilityForOlderOperatingSystemsEnabled
        HwThreadCountPerCore = $processor.HwThreadCountPerCore
        Maximum = $processor.Maximum
        Reserve = $processor.Reserve
        RelativeWeight = $processor.RelativeWeight
        MaximumCountPerNumaNode = $processor.MaximumCountPerNumaNode
        MaximumCountPerNumaSocket = $processor.MaximumCountPerNumaSocket
        EnableHostResourceProtection = $processor.EnableHostResourceProtection
        ExposeVirtualizationExtensions = $processor.ExposeVirtualizationExtensions
    }
} else {
    '{}'
}
""",
    _VmNameArgs,
)


UPDATE_VM_PROCESSOR = ScriptTemplate(
    "UpdateVmProcessor",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V

$settings = @{
    VMName = {{ vm_name }}
    CompatibilityForMigrationEnabled = {{ compatibility_for_migration_enabled }}
    CompatibilityForOlderOperatingSystemsEnabled = {{ compatibility_for_older_operating_systems_enabled }}
    Maximum = {{ maximum }}
    Reserve = {{ reserve }}
    RelativeWeight = {{ relative_weight }}
    EnableHostResourceProtection = {{ enable_host_resource_protection }}
    ExposeVirtualizationExtensions = {{ expose_virtualization_extensions }}
}
{% if hw_thread_count_per_core %}
$settings.HwThreadCountPerCore = {{ hw_thread_count_per_core }}
{% endif %}
{% if maximum_count_per_numa_node %}
$settings.MaximumCountPerNumaNode = {{ maximum_count_per_numa_node }}
{% endif %}
{% if maximum_count_per_numa_socket %}
$settings.MaximumCountPerNumaSocket = {{ maximum_count_per_numa_socket }}
{% endif %}
Set-VMProcessor @settings
""",
    VmProcessorSpec,
)


GET_VM_INTEGRATION_SERVICES = ScriptTemplate(
    "GetVmIntegrationServices",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V

$services = @(Get-VMIntegrationService -VMName {{ vm_name }} -ErrorAction SilentlyContinue | ForEach-Object {
    @{ Name = $_.Name; Enabled = $_.Enabled }
})
ConvertTo-Json -InputObject $services
""",
    _VmNameArgs,
)


ENABLE_VM_INTEGRATION_SERVICE = ScriptTemplate(
    "EnableVmIntegrationService",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V

Enable-VMIntegrationService -VMName {{ vm_name }} -Name {{ name }}
""",
    _IntegrationServiceArgs,
)


DISABLE_VM_INTEGRATION_SERVICE = ScriptTemplate(
    "DisableVmIntegrationService",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V

Disable-VMIntegrationService -VMName {{ vm_name }} -Name {{ name }}
""",
    _IntegrationServiceArgs,
)


class VmSettingsOperations(ClientOperations):
    """Read and change VM firmware, processor and integration services."""

    async def get_vm_firmware(self, vm_name: str, *, timeout: Optional[float] = None) -> VmFirmware:
        return await self.executor.run_with_result(
            GET_VM_FIRMWARE,
            _VmNameArgs(vm_name=vm_name),
            VmFirmware,
            timeout=self._timeout(READ_TIMEOUT, timeout),
        )

    async def update_vm_firmware(self, spec: VmFirmwareSpec, *, timeout: Optional[float] = None) -> None:
        logger.info("Updating firmware of VM %s (%d boot entries)", spec.vm_name, len(spec.boot_order))
        # Boot entries are rendered as hashtables, so hand the template plain data.
        await self.executor.run_fire_and_forget(
            UPDATE_VM_FIRMWARE,
            spec.model_dump(mode="json"),
            timeout=self._timeout(UPDATE_TIMEOUT, timeout),
        )

    async def get_vm_processor(self, vm_name: str, *, timeout: Optional[float] = None) -> VmProcessor:
        return await self.executor.run_with_result(
            GET_VM_PROCESSOR,
            _VmNameArgs(vm_name=vm_name),
            VmProcessor,
            timeout=self._timeout(READ_TIMEOUT, timeout),
        )

    async def update_vm_processor(self, spec: VmProcessorSpec, *, timeout: Optional[float] = None) -> None:
        logger.info("Updating processor settings of VM %s", spec.vm_name)
        await self.executor.run_fire_and_forget(
            UPDATE_VM_PROCESSOR, spec, timeout=self._timeout(UPDATE_TIMEOUT, timeout)
        )

    async def get_vm_integration_services(
        self, vm_name: str, *, timeout: Optional[float] = None
    ) -> List[VmIntegrationService]:
        return await self.executor.run_with_result_list(
            GET_VM_INTEGRATION_SERVICES,
            _VmNameArgs(vm_name=vm_name),
            VmIntegrationService,
            timeout=self._timeout(READ_TIMEOUT, timeout),
        )

    async def enable_vm_integration_service(
        self, vm_name: str, name: str, *, timeout: Optional[float] = None
    ) -> None:
        logger.info("Enabling integration service %s on VM %s", name, vm_name)
        await self.executor.run_fire_and_forget(
            ENABLE_VM_INTEGRATION_SERVICE,
            _IntegrationServiceArgs(vm_name=vm_name, name=name),
            timeout=self._timeout(UPDATE_TIMEOUT, timeout),
        )

    async def disable_vm_integration_service(
        self, vm_name: str, name: str, *, timeout: Optional[float] = None
    ) -> None:
        logger.info("Disabling integration service %s on VM %s", name, vm_name)
        await self.executor.run_fire_and_forget(
            DISABLE_VM_INTEGRATION_SERVICE,
            _IntegrationServiceArgs(vm_name=vm_name, name=name),
            timeout=self._timeout(UPDATE_TIMEOUT, timeout),
        )


__all__ = [
    "DISABLE_VM_INTEGRATION_SERVICE",
    "ENABLE_VM_INTEGRATION_SERVICE",
    "GET_VM_FIRMWARE",
    "GET_VM_INTEGRATION_SERVICES",
    "GET_VM_PROCESSOR",
    "UPDATE_VM_FIRMWARE",
    "UPDATE_VM_PROCESSOR",
    "VmSettingsOperations",
]
