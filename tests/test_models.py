"""Tests for Hyper-V enums, result models and argument specs."""

import pytest

from hyperv_provider.core import models
from hyperv_provider.core.errors import ArgumentValidationError
from hyperv_provider.core.models import HyperVEnum, OnOffState, Vm, VhdType, VmState
from hyperv_provider.core.specs import (
    DvdSpec,
    VhdSpec,
    VmFirmwareSpec,
    VmHardDiskDriveSpec,
    VmNetworkAdapterSpec,
    VmProcessorSpec,
    VmSpec,
    VmStatusSpec,
    VmSwitchSpec,
)

ALL_ENUMS = [
    value
    for value in vars(models).values()
    if isinstance(value, type) and issubclass(value, HyperVEnum) and value is not HyperVEnum
]


def test_every_enum_is_discovered():
    assert len(ALL_ENUMS) == 15


@pytest.mark.parametrize("enum_type", ALL_ENUMS, ids=lambda enum_type: enum_type.__name__)
def test_enum_literals_round_trip_in_any_case(enum_type):
    literals = enum_type.literals()
    assert len(set(literal.lower() for literal in literals)) == len(literals)

    for member in enum_type:
        assert enum_type.from_literal(member.value) is member
        assert enum_type.from_literal(member.value.upper()) is member
        assert enum_type.from_literal(member.value.lower()) is member
        assert enum_type.from_literal(member) is member


@pytest.mark.parametrize("enum_type", ALL_ENUMS, ids=lambda enum_type: enum_type.__name__)
def test_enum_rejects_unknown_literals(enum_type):
    with pytest.raises(ArgumentValidationError) as excinfo:
        enum_type.from_literal("definitely-not-a-literal")

    assert excinfo.value.kind == "validation"
    assert enum_type.__name__ in str(excinfo.value)


def test_vhd_type_table_matches_hyperv():
    assert VhdType.literals() == ["Unknown", "Fixed", "Dynamic", "Differencing"]


def test_remote_model_defaults_are_zero_values():
    vm = Vm()

    assert vm.name == ""
    assert vm.processor_count == 0
    assert vm.exists is False


def test_remote_model_matches_keys_without_underscores():
    vm = Vm.model_validate({"MemoryStartupBytes": 1024, "LOCK_ON_DISCONNECT": "on", "Notes": None})

    assert vm.memory_startup_bytes == 1024
    assert vm.lock_on_disconnect is OnOffState.ON
    assert vm.notes == ""


class TestVhdSpec:
    def test_new_dynamic_disk(self):
        spec = VhdSpec.parse(path="C:/disks/a.vhdx", size=10 * 1024**3)

        assert spec.vhd_type is VhdType.DYNAMIC
        assert spec.parent_path is None

    def test_differencing_disk(self):
        spec = VhdSpec.parse(path="C:/disks/child.vhdx", parent_path="C:/disks/base.vhdx")

        assert spec.size == 0

    @pytest.mark.parametrize(
        "values",
        [
            {"source": "C:/a.vhdx", "source_vm": "vm01"},
            {"source_vm": "vm01", "source_disk": 1},
            {"source_disk": 0, "parent_path": "C:/base.vhdx"},
            {"source": "http://example/x.zip", "parent_path": "C:/base.vhdx"},
        ],
    )
    def test_sources_are_mutually_exclusive(self, values):
        with pytest.raises(ArgumentValidationError, match="only one of"):
            VhdSpec.parse(path="C:/disks/a.vhdx", **values)

    def test_parent_path_conflicts_with_size(self):
        with pytest.raises(ArgumentValidationError, match="size conflicts"):
            VhdSpec.parse(path="C:/a.vhdx", parent_path="C:/base.vhdx", size=4096)

    def test_vhd_type_conflicts_with_copies(self):
        with pytest.raises(ArgumentValidationError, match="vhd_type"):
            VhdSpec.parse(path="C:/a.vhdx", source="C:/b.vhdx", vhd_type="Fixed")

    def test_sector_sizes_conflict_with_parent(self):
        with pytest.raises(ArgumentValidationError, match="block_size"):
            VhdSpec.parse(path="C:/a.vhdx", parent_path="C:/base.vhdx", logical_sector_size=512)

    def test_size_must_be_aligned(self):
        with pytest.raises(ArgumentValidationError, match="4096"):
            VhdSpec.parse(path="C:/a.vhdx", size=1000)

    def test_sector_size_values(self):
        with pytest.raises(ArgumentValidationError, match="logical_sector_size"):
            VhdSpec.parse(path="C:/a.vhdx", size=4096, logical_sector_size=1024)

    def test_differencing_requires_parent(self):
        with pytest.raises(ArgumentValidationError, match="parent_path is required"):
            VhdSpec.parse(path="C:/a.vhdx", vhd_type="Differencing")

    def test_vhd_type_literal_is_case_insensitive(self):
        assert VhdSpec.parse(path="C:/a.vhdx", size=4096, vhd_type="fixed").vhd_type is VhdType.FIXED

    def test_unknown_fields_are_rejected(self):
        with pytest.raises(ArgumentValidationError, match="colour"):
            VhdSpec.parse(path="C:/a.vhdx", colour="blue")


class TestDvdSpec:
    def test_network_config_document(self):
        spec = DvdSpec.parse(
            path="C:/iso/vm01.iso",
            ip="172.16.5.10",
            gateway="172.16.1.254",
            nameservers=["172.16.14.27"],
        )

        assert spec.network_config() == {
            "network": {
                "version": 2,
                "ethernets": {
                    "eth0": {
                        "dhcp4": False,
                        "addresses": ["172.16.5.10/16"],
                        "gateway4": "172.16.1.254",
                        "nameservers": {"addresses": ["172.16.14.27"]},
                    }
                },
            }
        }
        assert "dhcp4: false" in spec.network_yaml()

    def test_rejects_invalid_ip(self):
        with pytest.raises(ArgumentValidationError, match="ip"):
            DvdSpec.parse(path="C:/iso/vm01.iso", ip="300.1.1.1")


def test_vm_spec_memory_rules():
    with pytest.raises(ArgumentValidationError, match="mutually exclusive"):
        VmSpec.parse(name="vm01", dynamic_memory=True, static_memory=True)
    with pytest.raises(ArgumentValidationError, match="memory_minimum_bytes"):
        VmSpec.parse(name="vm01", dynamic_memory=True, memory_minimum_bytes=2048, memory_startup_bytes=1024)

    assert VmSpec.parse(name="vm01", static_memory=True).generation == 2


def test_switch_spec_adapter_rules():
    with pytest.raises(ArgumentValidationError, match="external switches"):
        VmSwitchSpec.parse(name="ext", switch_type="External")
    with pytest.raises(ArgumentValidationError, match="only valid for external"):
        VmSwitchSpec.parse(name="int", net_adapter_names=["Ethernet"])
    with pytest.raises(ArgumentValidationError, match="Weight"):
        VmSwitchSpec.parse(name="int", default_flow_minimum_bandwidth_weight=10)


def test_network_adapter_spec_rules():
    with pytest.raises(ArgumentValidationError, match="static_mac_address"):
        VmNetworkAdapterSpec.parse(vm_name="vm01", name="nic", static_mac_address="00155D000001")
    with pytest.raises(ArgumentValidationError, match="vlan_id"):
        VmNetworkAdapterSpec.parse(vm_name="vm01", name="nic", vlan_access=True)


def test_hard_disk_drive_spec_rules():
    with pytest.raises(ArgumentValidationError, match="mutually exclusive"):
        VmHardDiskDriveSpec.parse(vm_name="vm01", path="C:/a.vhdx", disk_number=2)
    with pytest.raises(ArgumentValidationError, match="IDE"):
        VmHardDiskDriveSpec.parse(vm_name="vm01", controller_type="Ide", controller_number=2)


def test_firmware_spec_boot_entries():
    with pytest.raises(ArgumentValidationError, match="network_adapter_name"):
        VmFirmwareSpec.parse(vm_name="vm01", boot_order=[{"boot_type": "NetworkAdapter"}])


def test_processor_spec_limits():
    with pytest.raises(ArgumentValidationError, match="reserve"):
        VmProcessorSpec.parse(vm_name="vm01", reserve=80, maximum=50)


def test_status_spec_only_accepts_target_states():
    assert VmStatusSpec.parse(vm_name="vm01", state="off").state is VmState.OFF
    with pytest.raises(ArgumentValidationError, match="state"):
        VmStatusSpec.parse(vm_name="vm01", state="Starting")
