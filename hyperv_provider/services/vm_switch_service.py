"""Virtual switch operations."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..core.models import VmSwitch, VmSwitchExists
from ..core.specs import VmSwitchSpec
from ..core.templates import ScriptTemplate
from .base import CREATE_TIMEOUT, DELETE_TIMEOUT, READ_TIMEOUT, UPDATE_TIMEOUT, ClientOperations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _NameArgs:
    name: str


_SET_SWITCH = """
$settings = @{
    Name = $name
    Notes = {{ notes }}
    DefaultQueueVmmqEnabled = {{ default_queue_vmmq_enabled }}
    DefaultQueueVmmqQueuePairs = {{ default_queue_vmmq_queue_pairs }}
    DefaultQueueVrssEnabled = {{ default_queue_vrss_enabled }}
}
{% if minimum_bandwidth_mode == 'Weight' %}
$settings.DefaultFlowMinimumBandwidthWeight = {{ default_flow_minimum_bandwidth_weight }}
{% elif minimum_bandwidth_mode == 'Absolute' %}
$settings.DefaultFlowMinimumBandwidthAbsolute = {{ default_flow_minimum_bandwidth_absolute }}
{% endif %}
{% if switch_type == 'External' %}
$settings.AllowManagementOS = {{ allow_management_os }}
{% endif %}
Set-VMSwitch @settings
"""


VM_SWITCH_EXISTS = ScriptTemplate(
    "VmSwitchExists",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
$name = {{ name }}

$exists = [bool](Get-VMSwitch -Name $name -ErrorAction SilentlyContinue)
ConvertTo-Json -InputObject @{ Exists = $exists }
""",
    _NameArgs,
)


CREATE_VM_SWITCH = ScriptTemplate(
    "CreateVmSwitch",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
$name = {{ name }}

$parameters = @{
    Name = $name
    MinimumBandwidthMode = {{ minimum_bandwidth_mode }}
}
{% if switch_type == 'External' %}
$parameters.NetAdapterName = {{ net_adapter_names }}
$parameters.AllowManagementOS = {{ allow_management_os }}
$parameters.EnableEmbeddedTeaming = {{ enable_embedded_teaming }}
$parameters.EnableIov = {{ enable_iov }}
$parameters.EnablePacketDirect = {{ enable_packet_direct }}
{% else %}
$parameters.SwitchType = {{ switch_type }}
{% endif %}
New-VMSwitch @parameters | Out-Null
"""
    + _SET_SWITCH,
    VmSwitchSpec,
)


GET_VM_SWITCH = ScriptTemplate(
    "GetVmSwitch",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
$name = {{ name }}

$switch = Get-VMSwitch -Name $name -ErrorAction SilentlyContinue
if ($switch) {
    $adapterNames = @()
    foreach ($description in @($switch.NetAdapterInterfaceDescriptions)) {
        if ($description) {
            $adapterNames += (Get-NetAdapter -InterfaceDescription $description).Name
        }
    }
    ConvertTo-Json -InputObject @{
        Name = $switch.Name
        Notes = $switch.Notes
        AllowManagementOS = $switch.AllowManagementOS
        EnableEmbeddedTeaming = $switch.EmbeddedTeamingEnabled
        EnableIov = $switch.IovEnabled
        EnablePacketDirect = $switch.PacketDirectEnabled
        MinimumBandwidthMode = $switch.BandwidthReservationMode.ToString()
        SwitchType = $switch.SwitchType.ToString()
        NetAdapterNames = $adapterNames
        DefaultFlowMinimumBandwidthAbsolute = $switch.DefaultFlowMinimumBandwidthAbsolute
        DefaultFlowMinimumBandwidthWeight = $switch.DefaultFlowMinimumBandwidthWeight
        DefaultQueueVmmqEnabled = $switch.DefaultQueueVmmqEnabled
        DefaultQueueVmmqQueuePairs = $switch.DefaultQueueVmmqQueuePairs
        DefaultQueueVrssEnabled = $switch.DefaultQueueVrssEnabled
    }
} else {
    '{}'
}
""",
    _NameArgs,
)


UPDATE_VM_SWITCH = ScriptTemplate(
    "UpdateVmSwitch",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
$name = {{ name }}

$switch = Get-VMSwitch -Name $name
{% if switch_type == 'External' %}
$adapters = {{ net_adapter_names }}
Set-VMSwitch -Name $name -NetAdapterName $adapters -AllowManagementOS {{ allow_management_os }}
{% else %}
if ($switch.SwitchType.ToString() -ne {{ switch_type }}) {
    Set-VMSwitch -Name $name -SwitchType {{ switch_type }}
}
{% endif %}
"""
    + _SET_SWITCH,
    VmSwitchSpec,
)


DELETE_VM_SWITCH = ScriptTemplate(
    "DeleteVmSwitch",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
$name = {{ name }}

Get-VMSwitch -Name $name -ErrorAction SilentlyContinue | Remove-VMSwitch -Force
""",
    _NameArgs,
)


class VmSwitchOperations(ClientOperations):
    async def vm_switch_exists(self, name: str, *, timeout: Optional[float] = None) -> VmSwitchExists:
        return await self.executor.run_with_result(
            VM_SWITCH_EXISTS,
            _NameArgs(name=name),
            VmSwitchExists,
            timeout=self._timeout(READ_TIMEOUT, timeout),
        )

    async def create_vm_switch(self, spec: VmSwitchSpec, *, timeout: Optional[float] = None) -> None:
        logger.info("Creating %s switch %s", spec.switch_type.value, spec.name)
        await self.executor.run_fire_and_forget(
            CREATE_VM_SWITCH, spec, timeout=self._timeout(CREATE_TIMEOUT, timeout)
        )

    async def get_vm_switch(self, name: str, *, timeout: Optional[float] = None) -> VmSwitch:
        switch = await self.executor.run_with_result(
            GET_VM_SWITCH,
            _NameArgs(name=name),
            VmSwitch,
            timeout=self._timeout(READ_TIMEOUT, timeout),
        )
        switch.exists = bool(switch.name)
        return switch

    async def update_vm_switch(self, spec: VmSwitchSpec, *, timeout: Optional[float] = None) -> None:
        logger.info("Updating switch %s", spec.name)
        await self.executor.run_fire_and_forget(
            UPDATE_VM_SWITCH, spec, timeout=self._timeout(UPDATE_TIMEOUT, timeout)
        )

    async def delete_vm_switch(self, name: str, *, timeout: Optional[float] = None) -> None:
        logger.info("Deleting switch %s", name)
        await self.executor.run_fire_and_forget(
            DELETE_VM_SWITCH, _NameArgs(name=name), timeout=self._timeout(DELETE_TIMEOUT, timeout)
        )


__all__ = [
    "CREATE_VM_SWITCH",
    "DELETE_VM_SWITCH",
    "GET_VM_SWITCH",
    "UPDATE_VM_SWITCH",
    "VM_SWITCH_EXISTS",
    "VmSwitchOperations",
]
