"""Data models for Hyper-V resources read back from a host."""
from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import ArgumentValidationError


class HyperVEnum(str, Enum):
    """Closed set of Hyper-V literals.

    Member values are the literals the Hyper-V cmdlets accept and emit.
    Lookups ignore case because PowerShell does.
    """

    @classmethod
    def _missing_(cls, value: object):
        if isinstance(value, str):
            lookup = value.strip().lower()
            for member in cls:
                if member.value.lower() == lookup:
                    return member
        return None

    @classmethod
    def from_literal(cls, value: Any) -> "HyperVEnum":
        """Decode a user or host supplied literal, rejecting unknown values."""

        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ArgumentValidationError(
                f"{value!r} is not a valid {cls.__name__}; "
                f"expected one of: {', '.join(cls.literals())}"
            ) from None

    @classmethod
    def literals(cls) -> List[str]:
        return [member.value for member in cls]


class VhdType(HyperVEnum):
    """Virtual hard disk allocation type."""
    UNKNOWN = "Unknown"
    FIXED = "Fixed"
    DYNAMIC = "Dynamic"
    DIFFERENCING = "Differencing"


class VhdFormat(HyperVEnum):
    """Virtual hard disk file format."""
    UNKNOWN = "Unknown"
    VHD = "VHD"
    VHDX = "VHDX"
    VHDSET = "VHDSet"


class VmSwitchType(HyperVEnum):
    INTERNAL = "Internal"
    PRIVATE = "Private"
    EXTERNAL = "External"


class VmSwitchBandwidthMode(HyperVEnum):
    DEFAULT = "Default"
    WEIGHT = "Weight"
    ABSOLUTE = "Absolute"
    NONE = "None"


class StartAction(HyperVEnum):
    """VM automatic start action after host recovery."""
    NOTHING = "Nothing"
    START_IF_RUNNING = "StartIfRunning"
    START = "Start"


class StopAction(HyperVEnum):
    """VM action when the host stops."""
    TURN_OFF = "TurnOff"
    SAVE = "Save"
    SHUT_DOWN = "ShutDown"


class CriticalErrorAction(HyperVEnum):
    NONE = "None"
    PAUSE = "Pause"


class CheckpointType(HyperVEnum):
    DISABLED = "Disabled"
    PRODUCTION = "Production"
    PRODUCTION_ONLY = "ProductionOnly"
    STANDARD = "Standard"


class OnOffState(HyperVEnum):
    ON = "On"
    OFF = "Off"


class PortMirroring(HyperVEnum):
    NONE = "None"
    DESTINATION = "Destination"
    SOURCE = "Source"


class ControllerType(HyperVEnum):
    IDE = "Ide"
    SCSI = "Scsi"


class ConsoleMode(HyperVEnum):
    DEFAULT = "Default"
    COM1 = "COM1"
    COM2 = "COM2"
    NONE = "None"


class IpProtocol(HyperVEnum):
    IPV4 = "IPv4"
    IPV6 = "IPv6"


class BootType(HyperVEnum):
    HARD_DISK_DRIVE = "HardDiskDrive"
    DVD_DRIVE = "DvdDrive"
    NETWORK_ADAPTER = "NetworkAdapter"
    FILE = "File"


class VmState(HyperVEnum):
    """Virtual machine state as reported by Get-VM."""
    OTHER = "Other"
    RUNNING = "Running"
    OFF = "Off"
    STOPPING = "Stopping"
    SAVED = "Saved"
    PAUSED = "Paused"
    STARTING = "Starting"
    RESET = "Reset"
    SAVING = "Saving"
    PAUSING = "Pausing"
    RESUMING = "Resuming"
    FAST_SAVED = "FastSaved"
    FAST_SAVING = "FastSaving"
    RUNNING_CRITICAL = "RunningCritical"
    OFF_CRITICAL = "OffCritical"
    STOPPING_CRITICAL = "StoppingCritical"
    SAVED_CRITICAL = "SavedCritical"
    PAUSED_CRITICAL = "PausedCritical"
    STARTING_CRITICAL = "StartingCritical"
    RESET_CRITICAL = "ResetCritical"
    SAVING_CRITICAL = "SavingCritical"
    PAUSING_CRITICAL = "PausingCritical"
    RESUMING_CRITICAL = "ResumingCritical"
    FAST_SAVED_CRITICAL = "FastSavedCritical"
    FAST_SAVING_CRITICAL = "FastSavingCritical"


def _canonical_key(key: str) -> str:
    return key.replace("_", "").lower()


class RemoteModel(BaseModel):
    """Base for results decoded from script output.

    ConvertTo-Json does not guarantee key casing, so keys are matched to
    fields ignoring case and underscores. ``null`` values fall back to the
    field default so absent data always reads as the zero value.
    """

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _match_remote_keys(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data

        lookup = {_canonical_key(name): name for name in cls.model_fields}
        matched = {}
        for key, value in data.items():
            if value is None:
                continue
            field_name = lookup.get(_canonical_key(str(key)))
            if field_name is not None:
                matched[field_name] = value
        return matched


class Vhd(RemoteModel):
    """Virtual hard disk as reported by Get-VHD."""
    path: str = ""
    block_size: int = 0
    logical_sector_size: int = 0
    physical_sector_size: int = 0
    parent_path: str = ""
    file_size: int = 0
    size: int = 0
    minimum_size: int = 0
    attached: bool = False
    disk_number: int = 0
    fragmentation_percentage: int = 0
    alignment: int = 0
    disk_identifier: str = ""
    vhd_type: VhdType = VhdType.UNKNOWN
    vhd_format: VhdFormat = VhdFormat.UNKNOWN
    exists: bool = False


class VhdExists(RemoteModel):
    exists: bool = False


class Dvd(RemoteModel):
    """ISO image built for a VM DVD drive."""
    path: str = ""
    ip: str = ""
    exists: bool = False


class Vm(RemoteModel):
    """Virtual machine settings as reported by Get-VM."""
    name: str = ""
    path: str = ""
    generation: int = 0
    automatic_critical_error_action: CriticalErrorAction = CriticalErrorAction.PAUSE
    automatic_critical_error_action_timeout: int = 0
    automatic_start_action: StartAction = StartAction.START_IF_RUNNING
    automatic_start_delay: int = 0
    automatic_stop_action: StopAction = StopAction.SAVE
    checkpoint_type: CheckpointType = CheckpointType.PRODUCTION
    dynamic_memory: bool = False
    guest_controlled_cache_types: bool = False
    high_memory_mapped_io_space: int = 0
    lock_on_disconnect: OnOffState = OnOffState.OFF
    low_memory_mapped_io_space: int = 0
    memory_maximum_bytes: int = 0
    memory_minimum_bytes: int = 0
    memory_startup_bytes: int = 0
    notes: str = ""
    processor_count: int = 0
    smart_paging_file_path: str = ""
    snapshot_file_location: str = ""
    static_memory: bool = False
    exists: bool = False


class VmExists(RemoteModel):
    exists: bool = False


class VmSwitch(RemoteModel):
    """Virtual switch as reported by Get-VMSwitch."""
    name: str = ""
    notes: str = ""
    allow_management_os: bool = False
    enable_embedded_teaming: bool = False
    enable_iov: bool = False
    enable_packet_direct: bool = False
    minimum_bandwidth_mode: VmSwitchBandwidthMode = VmSwitchBandwidthMode.NONE
    switch_type: VmSwitchType = VmSwitchType.INTERNAL
    net_adapter_names: List[str] = Field(default_factory=list)
    default_flow_minimum_bandwidth_absolute: int = 0
    default_flow_minimum_bandwidth_weight: int = 0
    default_queue_vmmq_enabled: bool = False
    default_queue_vmmq_queue_pairs: int = 0
    default_queue_vrss_enabled: bool = False
    exists: bool = False


class VmSwitchExists(RemoteModel):
    exists: bool = False


class VmNetworkAdapter(RemoteModel):
    vm_name: str = ""
    name: str = ""
    switch_name: str = ""
    management_os: bool = False
    is_legacy: bool = False
    dynamic_mac_address: bool = False
    static_mac_address: str = ""
    mac_address_spoofing: OnOffState = OnOffState.OFF
    dhcp_guard: OnOffState = OnOffState.OFF
    router_guard: OnOffState = OnOffState.OFF
    port_mirroring: PortMirroring = PortMirroring.NONE
    ieee_priority_tag: OnOffState = OnOffState.OFF
    vmq_weight: int = 0
    allow_teaming: OnOffState = OnOffState.OFF
    device_naming: OnOffState = OnOffState.OFF
    vlan_access: bool = False
    vlan_id: int = 0
    ip_addresses: List[str] = Field(default_factory=list)


class VmDvdDrive(RemoteModel):
    vm_name: str = ""
    controller_number: int = 0
    controller_location: int = 0
    path: str = ""
    resource_pool_name: str = ""


class VmHardDiskDrive(RemoteModel):
    vm_name: str = ""
    controller_type: ControllerType = ControllerType.SCSI
    controller_number: int = 0
    controller_location: int = 0
    path: str = ""
    disk_number: int = 0
    resource_pool_name: str = ""
    support_persistent_reservations: bool = False
    maximum_iops: int = 0
    minimum_iops: int = 0
    qos_policy_id: str = ""


class VmBootEntry(RemoteModel):
    """One entry of a generation 2 VM boot order."""
    boot_type: BootType = BootType.HARD_DISK_DRIVE
    controller_number: int = 0
    controller_location: int = 0
    network_adapter_name: str = ""
    mac_address: str = ""
    path: str = ""
    description: str = ""


class VmFirmware(RemoteModel):
    vm_name: str = ""
    enable_secure_boot: OnOffState = OnOffState.OFF
    secure_boot_template: str = ""
    preferred_network_boot_protocol: IpProtocol = IpProtocol.IPV4
    console_mode: ConsoleMode = ConsoleMode.DEFAULT
    pause_after_boot_failure: OnOffState = OnOffState.OFF
    boot_order: List[VmBootEntry] = Field(default_factory=list)


class VmProcessor(RemoteModel):
    vm_name: str = ""
    count: int = 0
    compatibility_for_migration_enabled: bool = False
    compatibility_for_older_operating_systems_enabled: bool = False
    hw_thread_count_per_core: int = 0
    maximum: int = 0
    reserve: int = 0
    relative_weight: int = 0
    maximum_count_per_numa_node: int = 0
    maximum_count_per_numa_socket: int = 0
    enable_host_resource_protection: bool = False
    expose_virtualization_extensions: bool = False


class VmIntegrationService(RemoteModel):
    name: str = ""
    enabled: bool = False


class VmStatus(RemoteModel):
    name: str = ""
    state: VmState = VmState.OTHER
    status: str = ""
    uptime_seconds: int = 0


__all__ = [
    "HyperVEnum",
    "VhdType",
    "VhdFormat",
    "VmSwitchType",
    "VmSwitchBandwidthMode",
    "StartAction",
    "StopAction",
    "CriticalErrorAction",
    "CheckpointType",
    "OnOffState",
    "PortMirroring",
    "ControllerType",
    "ConsoleMode",
    "IpProtocol",
    "BootType",
    "VmState",
    "RemoteModel",
    "Vhd",
    "VhdExists",
    "Dvd",
    "Vm",
    "VmExists",
    "VmSwitch",
    "VmSwitchExists",
    "VmNetworkAdapter",
    "VmDvdDrive",
    "VmHardDiskDrive",
    "VmBootEntry",
    "VmFirmware",
    "VmProcessor",
    "VmIntegrationService",
    "VmStatus",
]
