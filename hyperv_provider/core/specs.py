"""Pydantic models for resource arguments.

These models are the schema layer in front of the client facade: they hold
the values a resource declares and enforce the rules that must hold before
any script is sent to a host (mutually exclusive sources, size alignment,
enum literals). The facade assumes a spec it receives is already valid.

Use :meth:`ResourceSpec.parse` to build a spec from raw values; it reports
problems as :class:`ArgumentValidationError`.
"""
from __future__ import annotations

import ipaddress
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ArgumentValidationError
from .models import (
    BootType,
    CheckpointType,
    ConsoleMode,
    ControllerType,
    CriticalErrorAction,
    IpProtocol,
    OnOffState,
    PortMirroring,
    StartAction,
    StopAction,
    VhdType,
    VmState,
    VmSwitchBandwidthMode,
    VmSwitchType,
)

VHD_SIZE_ALIGNMENT = 4096
SECTOR_SIZES = (0, 512, 4096)


class ResourceSpec(BaseModel):
    """Base class for resource argument models."""

    model_config = ConfigDict(extra="forbid", validate_default=True)

    @classmethod
    def parse(cls, **values: Any):
        """Validate raw values, raising ArgumentValidationError on failure."""

        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or cls.__name__}: {error['msg']}"
                for error in exc.errors()
            )
            raise ArgumentValidationError(f"Invalid {cls.__name__}: {problems}") from exc


class VhdSpec(ResourceSpec):
    """Virtual hard disk specification.

    ``source``, ``source_vm``, ``source_disk`` and ``parent_path`` are
    mutually exclusive ways of populating the disk. When none is given a new
    blank disk of ``vhd_type`` is created.
    """
    path: str = Field(..., min_length=1, description="Path of the virtual hard disk file")
    source: Optional[str] = Field(
        None,
        description="URL or path (wildcards allowed) to copy from; zip, box and 7z archives are expanded",
    )
    source_vm: Optional[str] = Field(None, description="Name of a VM whose disks are copied")
    source_disk: Optional[int] = Field(None, ge=0, description="Physical disk number to copy")
    vhd_type: VhdType = Field(VhdType.DYNAMIC, description="Allocation type of a new disk")
    parent_path: Optional[str] = Field(None, description="Parent disk for a differencing disk")
    size: int = Field(0, ge=0, description="Maximum size in bytes, divisible by 4096")
    block_size: int = Field(0, ge=0, description="Block size in bytes")
    logical_sector_size: int = Field(0, description="Logical sector size in bytes")
    physical_sector_size: int = Field(0, description="Physical sector size in bytes")

    @field_validator("logical_sector_size", "physical_sector_size")
    @classmethod
    def _check_sector_size(cls, value: int) -> int:
        if value not in SECTOR_SIZES:
            raise ValueError(f"must be one of {', '.join(str(size) for size in SECTOR_SIZES)}")
        return value

    @field_validator("size")
    @classmethod
    def _check_size_alignment(cls, value: int) -> int:
        if value % VHD_SIZE_ALIGNMENT:
            raise ValueError(f"must be divisible by {VHD_SIZE_ALIGNMENT}")
        return value

    @model_validator(mode="after")
    def _check_exclusive_sources(self) -> "VhdSpec":
        sources = {
            "source": self.source,
            "source_vm": self.source_vm,
            "source_disk": self.source_disk,
            "parent_path": self.parent_path,
        }
        provided = [name for name, value in sources.items() if value not in (None, "")]
        if len(provided) > 1:
            raise ValueError(
                f"only one of source, source_vm, source_disk, parent_path may be set (got {', '.join(provided)})"
            )

        if self.parent_path and self.size:
            raise ValueError("size conflicts with parent_path; differencing disks inherit their size")

        copies = bool(self.source or self.source_vm)
        if copies and "vhd_type" in self.model_fields_set:
            raise ValueError("vhd_type conflicts with source and source_vm")

        if (copies or self.parent_path) and (
            self.block_size or self.logical_sector_size or self.physical_sector_size
        ):
            raise ValueError(
                "block_size and sector sizes conflict with source, source_vm and parent_path"
            )

        if self.vhd_type is VhdType.DIFFERENCING and not self.parent_path:
            raise ValueError("parent_path is required for differencing disks")

        return self


class DvdSpec(ResourceSpec):
    """ISO image carrying a cloud-init network configuration."""
    path: str = Field(..., min_length=1, description="Path of the ISO file to build")
    ip: str = Field(..., description="IPv4 address assigned to the guest")
    prefix_length: int = Field(16, ge=0, le=32)
    gateway: Optional[str] = None
    nameservers: List[str] = Field(default_factory=list)
    interface: str = Field("eth0", min_length=1)

    @field_validator("ip", "gateway")
    @classmethod
    def _check_ipv4(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return str(ipaddress.IPv4Address(value.strip()))

    @field_validator("nameservers")
    @classmethod
    def _check_nameservers(cls, value: List[str]) -> List[str]:
        return [str(ipaddress.ip_address(server.strip())) for server in value]

    def network_config(self) -> Dict[str, Any]:
        """Return the cloud-init network-config (version 2) document."""

        ethernet: Dict[str, Any] = {
            "dhcp4": False,
            "addresses": [f"{self.ip}/{self.prefix_length}"],
        }
        if self.gateway:
            ethernet["gateway4"] = self.gateway
        if self.nameservers:
            ethernet["nameservers"] = {"addresses": list(self.nameservers)}

        return {"network": {"version": 2, "ethernets": {self.interface: ethernet}}}

    def network_yaml(self) -> str:
        return yaml.safe_dump(self.network_config(), sort_keys=False, default_flow_style=False)


class VmSpec(ResourceSpec):
    """Virtual machine hardware specification."""
    name: str = Field(..., min_length=1, max_length=100)
    path: str = Field("", description="Folder holding the VM configuration files")
    generation: int = Field(2, ge=1, le=2)
    automatic_critical_error_action: CriticalErrorAction = CriticalErrorAction.PAUSE
    automatic_critical_error_action_timeout: int = Field(30, ge=0)
    automatic_start_action: StartAction = StartAction.START_IF_RUNNING
    automatic_start_delay: int = Field(0, ge=0)
    automatic_stop_action: StopAction = StopAction.SAVE
    checkpoint_type: CheckpointType = CheckpointType.PRODUCTION
    dynamic_memory: bool = False
    guest_controlled_cache_types: bool = False
    high_memory_mapped_io_space: int = Field(536870912, ge=0)
    lock_on_disconnect: OnOffState = OnOffState.OFF
    low_memory_mapped_io_space: int = Field(134217728, ge=0)
    memory_maximum_bytes: int = Field(1099511627776, ge=0)
    memory_minimum_bytes: int = Field(536870912, ge=0)
    memory_startup_bytes: int = Field(536870912, ge=1)
    notes: str = ""
    processor_count: int = Field(1, ge=1, le=240)
    smart_paging_file_path: str = ""
    snapshot_file_location: str = ""
    static_memory: bool = False

    @model_validator(mode="after")
    def _check_memory(self) -> "VmSpec":
        if self.dynamic_memory and self.static_memory:
            raise ValueError("dynamic_memory and static_memory are mutually exclusive")
        if self.dynamic_memory and not (
            self.memory_minimum_bytes <= self.memory_startup_bytes <= self.memory_maximum_bytes
        ):
            raise ValueError(
                "dynamic memory requires memory_minimum_bytes <= memory_startup_bytes <= memory_maximum_bytes"
            )
        return self


class VmSwitchSpec(ResourceSpec):
    """Virtual switch specification."""
    name: str = Field(..., min_length=1)
    notes: str = ""
    allow_management_os: bool = False
    enable_embedded_teaming: bool = False
    enable_iov: bool = False
    enable_packet_direct: bool = False
    minimum_bandwidth_mode: VmSwitchBandwidthMode = VmSwitchBandwidthMode.NONE
    switch_type: VmSwitchType = VmSwitchType.INTERNAL
    net_adapter_names: List[str] = Field(default_factory=list)
    default_flow_minimum_bandwidth_absolute: int = Field(0, ge=0)
    default_flow_minimum_bandwidth_weight: int = Field(0, ge=0, le=100)
    default_queue_vmmq_enabled: bool = False
    default_queue_vmmq_queue_pairs: int = Field(16, ge=1)
    default_queue_vrss_enabled: bool = False

    @model_validator(mode="after")
    def _check_switch_type(self) -> "VmSwitchSpec":
        if self.switch_type is VmSwitchType.EXTERNAL and not self.net_adapter_names:
            raise ValueError("external switches require net_adapter_names")
        if self.switch_type is not VmSwitchType.EXTERNAL and self.net_adapter_names:
            raise ValueError("net_adapter_names is only valid for external switches")
        if (
            self.default_flow_minimum_bandwidth_weight
            and self.minimum_bandwidth_mode is not VmSwitchBandwidthMode.WEIGHT
        ):
            raise ValueError("default_flow_minimum_bandwidth_weight requires minimum_bandwidth_mode Weight")
        if (
            self.default_flow_minimum_bandwidth_absolute
            and self.minimum_bandwidth_mode is not VmSwitchBandwidthMode.ABSOLUTE
        ):
            raise ValueError(
                "default_flow_minimum_bandwidth_absolute requires minimum_bandwidth_mode Absolute"
            )
        return self


class VmNetworkAdapterSpec(ResourceSpec):
    """Network adapter attached to a VM (or to the management OS)."""
    vm_name: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    switch_name: str = ""
    management_os: bool = False
    is_legacy: bool = False
    dynamic_mac_address: bool = True
    static_mac_address: str = ""
    mac_address_spoofing: OnOffState = OnOffState.OFF
    dhcp_guard: OnOffState = OnOffState.OFF
    router_guard: OnOffState = OnOffState.OFF
    port_mirroring: PortMirroring = PortMirroring.NONE
    ieee_priority_tag: OnOffState = OnOffState.OFF
    vmq_weight: int = Field(100, ge=0, le=100)
    allow_teaming: OnOffState = OnOffState.OFF
    device_naming: OnOffState = OnOffState.OFF
    vlan_access: bool = False
    vlan_id: int = Field(0, ge=0, le=4094)

    @model_validator(mode="after")
    def _check_addressing(self) -> "VmNetworkAdapterSpec":
        if self.static_mac_address and self.dynamic_mac_address:
            raise ValueError("static_mac_address requires dynamic_mac_address to be false")
        if self.vlan_access and not self.vlan_id:
            raise ValueError("vlan_access requires a non-zero vlan_id")
        return self


class VmDvdDriveSpec(ResourceSpec):
    vm_name: str = Field(..., min_length=1)
    controller_number: int = Field(0, ge=0)
    controller_location: int = Field(0, ge=0)
    path: str = ""
    resource_pool_name: str = ""


class VmHardDiskDriveSpec(ResourceSpec):
    """Hard disk drive attached to a VM controller."""
    vm_name: str = Field(..., min_length=1)
    controller_type: ControllerType = ControllerType.SCSI
    controller_number: int = Field(0, ge=0)
    controller_location: int = Field(0, ge=0)
    path: str = ""
    disk_number: Optional[int] = Field(None, ge=0)
    resource_pool_name: str = ""
    support_persistent_reservations: bool = False
    maximum_iops: int = Field(0, ge=0)
    minimum_iops: int = Field(0, ge=0)
    qos_policy_id: str = ""

    @model_validator(mode="after")
    def _check_backing(self) -> "VmHardDiskDriveSpec":
        if self.path and self.disk_number is not None:
            raise ValueError("path and disk_number are mutually exclusive")
        if self.controller_type is ControllerType.IDE and (
            self.controller_number > 1 or self.controller_location > 1
        ):
            raise ValueError("IDE controllers only support controller_number and controller_location 0 or 1")
        if self.maximum_iops and self.minimum_iops > self.maximum_iops:
            raise ValueError("minimum_iops cannot exceed maximum_iops")
        return self


class VmBootEntrySpec(ResourceSpec):
    boot_type: BootType
    controller_number: int = Field(0, ge=0)
    controller_location: int = Field(0, ge=0)
    network_adapter_name: str = ""
    path: str = ""

    @model_validator(mode="after")
    def _check_target(self) -> "VmBootEntrySpec":
        if self.boot_type is BootType.NETWORK_ADAPTER and not self.network_adapter_name:
            raise ValueError("network adapter boot entries require network_adapter_name")
        if self.boot_type is BootType.FILE and not self.path:
            raise ValueError("file boot entries require path")
        return self


class VmFirmwareSpec(ResourceSpec):
    """Generation 2 VM firmware settings."""
    vm_name: str = Field(..., min_length=1)
    enable_secure_boot: OnOffState = OnOffState.ON
    secure_boot_template: str = "MicrosoftWindows"
    preferred_network_boot_protocol: IpProtocol = IpProtocol.IPV4
    console_mode: ConsoleMode = ConsoleMode.DEFAULT
    pause_after_boot_failure: OnOffState = OnOffState.OFF
    boot_order: List[VmBootEntrySpec] = Field(default_factory=list)


class VmProcessorSpec(ResourceSpec):
    vm_name: str = Field(..., min_length=1)
    compatibility_for_migration_enabled: bool = False
    compatibility_for_older_operating_systems_enabled: bool = False
    hw_thread_count_per_core: int = Field(0, ge=0)
    maximum: int = Field(100, ge=0, le=100)
    reserve: int = Field(0, ge=0, le=100)
    relative_weight: int = Field(100, ge=1, le=10000)
    maximum_count_per_numa_node: int = Field(0, ge=0)
    maximum_count_per_numa_socket: int = Field(0, ge=0)
    enable_host_resource_protection: bool = False
    expose_virtualization_extensions: bool = False

    @model_validator(mode="after")
    def _check_limits(self) -> "VmProcessorSpec":
        if self.reserve > self.maximum:
            raise ValueError("reserve cannot exceed maximum")
        return self


VM_TARGET_STATES = (VmState.RUNNING, VmState.OFF, VmState.SAVED, VmState.PAUSED)


class VmStatusSpec(ResourceSpec):
    """Desired power state for a VM."""
    vm_name: str = Field(..., min_length=1)
    state: VmState = VmState.RUNNING
    wait_for_state_timeout: int = Field(120, ge=1)
    wait_for_state_poll_period: int = Field(2, ge=1)

    @field_validator("state")
    @classmethod
    def _check_target_state(cls, value: VmState) -> VmState:
        if value not in VM_TARGET_STATES:
            raise ValueError(
                f"must be one of {', '.join(state.value for state in VM_TARGET_STATES)}"
            )
        return value


__all__ = [
    "ResourceSpec",
    "VhdSpec",
    "DvdSpec",
    "VmSpec",
    "VmSwitchSpec",
    "VmNetworkAdapterSpec",
    "VmDvdDriveSpec",
    "VmHardDiskDriveSpec",
    "VmBootEntrySpec",
    "VmFirmwareSpec",
    "VmProcessorSpec",
    "VmStatusSpec",
    "VM_TARGET_STATES",
]
