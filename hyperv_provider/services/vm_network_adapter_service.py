"""VM network adapter operations."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..core.models import VmNetworkAdapter
from ..core.specs import VmNetworkAdapterSpec
from ..core.templates import ScriptTemplate
from .base import CREATE_TIMEOUT, DELETE_TIMEOUT, READ_TIMEOUT, UPDATE_TIMEOUT, ClientOperations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _VmNameArgs:
    vm_name: str


@dataclass(frozen=True)
class _AdapterArgs:
    vm_name: str
    name: str


# Addresses the adapter either on a VM or on the management OS.
_TARGET = """
$target = @{ Name = {{ name }} }
{% if management_os %}
$target.ManagementOS = $true
{% else %}
$target.VMName = {{ vm_name }}
{% endif %}
"""

_SET_ADAPTER = """
$settings = @{
    MacAddressSpoofing = {{ mac_address_spoofing }}
    DhcpGuard = {{ dhcp_guard }}
    RouterGuard = {{ router_guard }}
    PortMirroring = {{ port_mirroring }}
    IeeePriorityTag = {{ ieee_priority_tag }}
    VmqWeight = {{ vmq_weight }}
    AllowTeaming = {{ allow_teaming }}
    DeviceNaming = {{ device_naming }}
}
{% if dynamic_mac_address %}
$settings.DynamicMacAddress = $true
{% elif static_mac_address %}
$settings.StaticMacAddress = {{ static_mac_address }}
{% endif %}
Set-VMNetworkAdapter @target @settings

{% if vlan_access %}
Set-VMNetworkAdapterVlan @target -Access -VlanId {{ vlan_id }}
{% else %}
Set-VMNetworkAdapterVlan @target -Untagged
{% endif %}
"""


CREATE_VM_NETWORK_ADAPTER = ScriptTemplate(
    "CreateVmNetworkAdapter",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
"""
    + _TARGET
    + """
$parameters = @{}
{% if switch_name %}
$parameters.SwitchName = {{ switch_name }}
{% endif %}
{% if is_legacy %}
$parameters.IsLegacy = $true
{% endif %}
Add-VMNetworkAdapter @target @parameters
"""
    + _SET_ADAPTER,
    VmNetworkAdapterSpec,
)


GET_VM_NETWORK_ADAPTERS = ScriptTemplate(
    "GetVmNetworkAdapters",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
$vmName = {{ vm_name }}

$adapters = @(Get-VMNetworkAdapter -VMName $vmName -ErrorAction SilentlyContinue | ForEach-Object {
    $vlan = Get-VMNetworkAdapterVlan -VMNetworkAdapter $_
    @{
        VmName = $_.VMName
        Name = $_.Name
        SwitchName = $_.SwitchName
        ManagementOs = $_.IsManagementOs
        IsLegacy = $_.IsLegacy
        DynamicMacAddress = $_.DynamicMacAddressEnabled
        StaticMacAddress = $(if ($_.DynamicMacAddressEnabled) { '' } else { $_.MacAddress })
        MacAddressSpoofing = $_.MacAddressSpoofing.ToString()
        DhcpGuard = $_.DhcpGuard.ToString()
        RouterGuard = $_.RouterGuard.ToString()
        PortMirroring = $_.PortMirroringMode.ToString()
        IeeePriorityTag = $_.IeeePriorityTag.ToString()
        VmqWeight = $_.VmqWeight
        AllowTeaming = $_.AllowTeaming.ToString()
        DeviceNaming = $_.DeviceNaming.ToString()
        VlanAccess = ($vlan.OperationMode.ToString() -eq 'Access')
        VlanId = $vlan.AccessVlanId
        IpAddresses = @($_.IPAddresses)
    }
})
ConvertTo-Json -InputObject $adapters -Depth 4
""",
    _VmNameArgs,
)


UPDATE_VM_NETWORK_ADAPTER = ScriptTemplate(
    "UpdateVmNetworkAdapter",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
"""
    + _TARGET
    + """
$adapter = Get-VMNetworkAdapter @target
{% if switch_name %}
if ($adapter.SwitchName -ne {{ switch_name }}) {
    Connect-VMNetworkAdapter -VMNetworkAdapter $adapter -SwitchName {{ switch_name }}
}
{% else %}
if ($adapter.SwitchName) {
    Disconnect-VMNetworkAdapter -VMNetworkAdapter $adapter
}
{% endif %}
"""
    + _SET_ADAPTER,
    VmNetworkAdapterSpec,
)


DELETE_VM_NETWORK_ADAPTER = ScriptTemplate(
    "DeleteVmNetworkAdapter",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V

Get-VMNetworkAdapter -VMName {{ vm_name }} -Name {{ name }} -ErrorAction SilentlyContinue |
    Remove-VMNetworkAdapter
""",
    _AdapterArgs,
)


class VmNetworkAdapterOperations(ClientOperations):
    async def create_vm_network_adapter(
        self, spec: VmNetworkAdapterSpec, *, timeout: Optional[float] = None
    ) -> None:
        logger.info("Adding network adapter %s to VM %s", spec.name, spec.vm_name)
        await self.executor.run_fire_and_forget(
            CREATE_VM_NETWORK_ADAPTER, spec, timeout=self._timeout(CREATE_TIMEOUT, timeout)
        )

    async def get_vm_network_adapters(
        self, vm_name: str, *, timeout: Optional[float] = None
    ) -> List[VmNetworkAdapter]:
        return await self.executor.run_with_result_list(
            GET_VM_NETWORK_ADAPTERS,
            _VmNameArgs(vm_name=vm_name),
            VmNetworkAdapter,
            timeout=self._timeout(READ_TIMEOUT, timeout),
        )

    async def update_vm_network_adapter(
        self, spec: VmNetworkAdapterSpec, *, timeout: Optional[float] = None
    ) -> None:
        logger.info("Updating network adapter %s on VM %s", spec.name, spec.vm_name)
        await self.executor.run_fire_and_forget(
            UPDATE_VM_NETWORK_ADAPTER, spec, timeout=self._timeout(UPDATE_TIMEOUT, timeout)
        )

    async def delete_vm_network_adapter(
        self, vm_name: str, name: str, *, timeout: Optional[float] = None
    ) -> None:
        logger.info("Removing network adapter %s from VM %s", name, vm_name)
        await self.executor.run_fire_and_forget(
            DELETE_VM_NETWORK_ADAPTER,
            _AdapterArgs(vm_name=vm_name, name=name),
            timeout=self._timeout(DELETE_TIMEOUT, timeout),
        )


__all__ = [
    "CREATE_VM_NETWORK_ADAPTER",
    "DELETE_VM_NETWORK_ADAPTER",
    "GET_VM_NETWORK_ADAPTERS",
    "UPDATE_VM_NETWORK_ADAPTER",
    "VmNetworkAdapterOperations",
]
