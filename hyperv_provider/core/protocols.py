"""Capability interfaces for Hyper-V resource operations.

Resource handlers depend on these protocols rather than on the concrete
client so they can be exercised with fakes.
"""
from __future__ import annotations

from typing import List, Optional, Protocol, runtime_checkable

from .models import (
    ControllerType,
    Dvd,
    Vhd,
    VhdExists,
    Vm,
    VmDvdDrive,
    VmExists,
    VmFirmware,
    VmHardDiskDrive,
    VmIntegrationService,
    VmNetworkAdapter,
    VmProcessor,
    VmStatus,
    VmSwitch,
    VmSwitchExists,
)
from .specs import (
    DvdSpec,
    VhdSpec,
    VmDvdDriveSpec,
    VmFirmwareSpec,
    VmHardDiskDriveSpec,
    VmNetworkAdapterSpec,
    VmProcessorSpec,
    VmSpec,
    VmStatusSpec,
    VmSwitchSpec,
)


@runtime_checkable
class DvdClient(Protocol):
    async def create_dvd(self, spec: DvdSpec, *, timeout: Optional[float] = None) -> None: ...

    async def get_dvd(self, path: str, ip: str = "", *, timeout: Optional[float] = None) -> Dvd: ...

    async def delete_dvd(self, path: str, *, timeout: Optional[float] = None) -> None: ...


@runtime_checkable
class VhdClient(Protocol):
    async def vhd_exists(self, path: str, *, timeout: Optional[float] = None) -> VhdExists: ...

    async def create_or_update_vhd(self, spec: VhdSpec, *, timeout: Optional[float] = None) -> None: ...

    async def resize_vhd(self, path: str, size: int, *, timeout: Optional[float] = None) -> None: ...

    async def get_vhd(self, path: str, *, timeout: Optional[float] = None) -> Vhd: ...

    async def delete_vhd(self, path: str, *, timeout: Optional[float] = None) -> None: ...

    async def create_vhd(
        self, spec: VhdSpec, *, check_existing: bool = False, timeout: Optional[float] = None
    ) -> None: ...


@runtime_checkable
class VmClient(Protocol):
    async def vm_exists(self, name: str, *, timeout: Optional[float] = None) -> VmExists: ...

    async def create_vm(self, spec: VmSpec, *, timeout: Optional[float] = None) -> None: ...

    async def get_vm(self, name: str, *, timeout: Optional[float] = None) -> Vm: ...

    async def update_vm(self, spec: VmSpec, *, timeout: Optional[float] = None) -> None: ...

    async def delete_vm(self, name: str, *, timeout: Optional[float] = None) -> None: ...


@runtime_checkable
class VmSwitchClient(Protocol):
    async def vm_switch_exists(self, name: str, *, timeout: Optional[float] = None) -> VmSwitchExists: ...

    async def create_vm_switch(self, spec: VmSwitchSpec, *, timeout: Optional[float] = None) -> None: ...

    async def get_vm_switch(self, name: str, *, timeout: Optional[float] = None) -> VmSwitch: ...

    async def update_vm_switch(self, spec: VmSwitchSpec, *, timeout: Optional[float] = None) -> None: ...

    async def delete_vm_switch(self, name: str, *, timeout: Optional[float] = None) -> None: ...


@runtime_checkable
class VmNetworkAdapterClient(Protocol):
    async def create_vm_network_adapter(
        self, spec: VmNetworkAdapterSpec, *, timeout: Optional[float] = None
    ) -> None: ...

    async def get_vm_network_adapters(
        self, vm_name: str, *, timeout: Optional[float] = None
    ) -> List[VmNetworkAdapter]: ...

    async def update_vm_network_adapter(
        self, spec: VmNetworkAdapterSpec, *, timeout: Optional[float] = None
    ) -> None: ...

    async def delete_vm_network_adapter(
        self, vm_name: str, name: str, *, timeout: Optional[float] = None
    ) -> None: ...


@runtime_checkable
class VmDvdDriveClient(Protocol):
    async def create_vm_dvd_drive(self, spec: VmDvdDriveSpec, *, timeout: Optional[float] = None) -> None: ...

    async def get_vm_dvd_drives(self, vm_name: str, *, timeout: Optional[float] = None) -> List[VmDvdDrive]: ...

    async def update_vm_dvd_drive(self, spec: VmDvdDriveSpec, *, timeout: Optional[float] = None) -> None: ...

    async def delete_vm_dvd_drive(
        self,
        vm_name: str,
        controller_number: int,
        controller_location: int,
        *,
        timeout: Optional[float] = None,
    ) -> None: ...


@runtime_checkable
class VmHardDiskDriveClient(Protocol):
    async def create_vm_hard_disk_drive(
        self, spec: VmHardDiskDriveSpec, *, timeout: Optional[float] = None
    ) -> None: ...

    async def get_vm_hard_disk_drives(
        self, vm_name: str, *, timeout: Optional[float] = None
    ) -> List[VmHardDiskDrive]: ...

    async def update_vm_hard_disk_drive(
        self, spec: VmHardDiskDriveSpec, *, timeout: Optional[float] = None
    ) -> None: ...

    async def delete_vm_hard_disk_drive(
        self,
        vm_name: str,
        controller_type: ControllerType,
        controller_number: int,
        controller_location: int,
        *,
        timeout: Optional[float] = None,
    ) -> None: ...


@runtime_checkable
class VmFirmwareClient(Protocol):
    async def get_vm_firmware(self, vm_name: str, *, timeout: Optional[float] = None) -> VmFirmware: ...

    async def update_vm_firmware(self, spec: VmFirmwareSpec, *, timeout: Optional[float] = None) -> None: ...


@runtime_checkable
class VmProcessorClient(Protocol):
    async def get_vm_processor(self, vm_name: str, *, timeout: Optional[float] = None) -> VmProcessor: ...

    async def update_vm_processor(self, spec: VmProcessorSpec, *, timeout: Optional[float] = None) -> None: ...


@runtime_checkable
class VmIntegrationServiceClient(Protocol):
    async def get_vm_integration_services(
        self, vm_name: str, *, timeout: Optional[float] = None
    ) -> List[VmIntegrationService]: ...

    async def enable_vm_integration_service(
        self, vm_name: str, name: str, *, timeout: Optional[float] = None
    ) -> None: ...

    async def disable_vm_integration_service(
        self, vm_name: str, name: str, *, timeout: Optional[float] = None
    ) -> None: ...


@runtime_checkable
class VmStatusClient(Protocol):
    async def get_vm_status(self, vm_name: str, *, timeout: Optional[float] = None) -> VmStatus: ...

    async def update_vm_status(self, spec: VmStatusSpec, *, timeout: Optional[float] = None) -> None: ...


@runtime_checkable
class Client(
    DvdClient,
    VhdClient,
    VmClient,
    VmDvdDriveClient,
    VmFirmwareClient,
    VmHardDiskDriveClient,
    VmIntegrationServiceClient,
    VmNetworkAdapterClient,
    VmProcessorClient,
    VmStatusClient,
    VmSwitchClient,
    Protocol,
):
    """Every resource capability the provider needs from a host."""

    @property
    def hostname(self) -> str: ...

    def close(self) -> None: ...


__all__ = [
    "Client",
    "DvdClient",
    "VhdClient",
    "VmClient",
    "VmDvdDriveClient",
    "VmFirmwareClient",
    "VmHardDiskDriveClient",
    "VmIntegrationServiceClient",
    "VmNetworkAdapterClient",
    "VmProcessorClient",
    "VmStatusClient",
    "VmSwitchClient",
]
