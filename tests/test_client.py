import pytest

from hyperv_provider.core import protocols
from hyperv_provider.core.errors import ArgumentValidationError
from hyperv_provider.core.models import BootType, ControllerType, OnOffState, VmSwitchType
from hyperv_provider.core.specs import (
    VmDvdDriveSpec,
    VmFirmwareSpec,
    VmHardDiskDriveSpec,
    VmNetworkAdapterSpec,
    VmProcessorSpec,
    VmSpec,
    VmSwitchSpec,
)


def test_client_satisfies_every_capability(client):
    for name in protocols.__all__:
        assert isinstance(client, getattr(protocols, name)), name


def test_client_close_releases_transport(client, transport):
    assert client.hostname == "hv01"

    client.close()

    assert transport.closed


@pytest.mark.anyio("asyncio")
async def test_create_vm_converges_settings(client, transport):
    spec = VmSpec.parse(name="vm01", path="D:/vms", static_memory=True, processor_count=4)

    await client.create_vm(spec)

    script = transport.scripts[0]
    assert "$name = 'vm01'" in script
    assert "Generation = 2" in script
    assert "$parameters.Path = 'D:\\vms'" in script
    assert "New-VM @parameters" in script
    assert "$memory.StaticMemory = $true" in script
    assert "-ProcessorCount 4 `" in script
    assert "-AutomaticStopAction 'Save' `" in script
    assert "-Notes '' `\n    @memory" in script


@pytest.mark.anyio("asyncio")
async def test_update_vm_does_not_recreate(client, transport):
    spec = VmSpec.parse(
        name="vm01",
        dynamic_memory=True,
        memory_minimum_bytes=512 * 1024**2,
        memory_startup_bytes=1024**3,
        memory_maximum_bytes=4 * 1024**3,
        snapshot_file_location="D:/snapshots",
    )

    await client.update_vm(spec)

    script = transport.scripts[0]
    assert "New-VM" not in script
    assert "$memory.DynamicMemory = $true" in script
    assert "$memory.MemoryMaximumBytes = 4294967296" in script
    assert "-SnapshotFileLocation 'D:\\snapshots' `\n    @memory" in script


@pytest.mark.anyio("asyncio")
async def test_get_vm_sets_exists_flag(client, transport):
    transport.respond("{}")
    transport.respond('{"Name": "vm01", "Generation": 2, "LockOnDisconnect": "On", "StaticMemory": true}')

    missing = await client.get_vm("vm01")
    found = await client.get_vm("vm01")

    assert missing.exists is False
    assert found.exists is True
    assert found.lock_on_disconnect is OnOffState.ON
    assert found.static_memory is True


@pytest.mark.anyio("asyncio")
async def test_vm_exists_and_delete(client, transport):
    transport.respond('{"Exists": true}')

    exists = await client.vm_exists("vm01")
    await client.delete_vm("vm01")

    assert exists.exists is True
    assert "Stop-VM -VM $vm -TurnOff -Force" in transport.scripts[1]
    assert "Remove-VM -VM $vm -Force" in transport.scripts[1]


@pytest.mark.anyio("asyncio")
async def test_create_external_switch_binds_adapters(client, transport):
    spec = VmSwitchSpec.parse(
        name="external",
        switch_type="External",
        net_adapter_names=["Ethernet 1", "Ethernet 2"],
        allow_management_os=True,
    )

    await client.create_vm_switch(spec)

    script = transport.scripts[0]
    assert "$parameters.NetAdapterName = @('Ethernet 1', 'Ethernet 2')" in script
    assert "$parameters.SwitchType" not in script
    assert "$settings.AllowManagementOS = $true" in script
    assert "Set-VMSwitch @settings" in script


@pytest.mark.anyio("asyncio")
async def test_create_internal_switch_with_weight_mode(client, transport):
    spec = VmSwitchSpec.parse(
        name="internal",
        minimum_bandwidth_mode="weight",
        default_flow_minimum_bandwidth_weight=20,
    )

    await client.create_vm_switch(spec)

    script = transport.scripts[0]
    assert "$parameters.SwitchType = 'Internal'" in script
    assert "MinimumBandwidthMode = 'Weight'" in script
    assert "$settings.DefaultFlowMinimumBandwidthWeight = 20" in script
    assert "NetAdapterName" not in script


@pytest.mark.anyio("asyncio")
async def test_switch_read_update_delete(client, transport):
    transport.respond('{"Name": "private", "SwitchType": "Private", "NetAdapterNames": []}')

    switch = await client.get_vm_switch("private")
    await client.update_vm_switch(VmSwitchSpec.parse(name="private", switch_type="Private"))
    await client.delete_vm_switch("private")

    assert switch.exists is True
    assert switch.switch_type is VmSwitchType.PRIVATE
    assert "-SwitchType 'Private'" in transport.scripts[1]
    assert "Remove-VMSwitch -Force" in transport.scripts[2]


@pytest.mark.anyio("asyncio")
async def test_management_os_adapter_targets_host(client, transport):
    spec = VmNetworkAdapterSpec.parse(
        vm_name="vm01",
        name="mgmt",
        management_os=True,
        switch_name="external",
        vlan_access=True,
        vlan_id=12,
    )

    await client.create_vm_network_adapter(spec)

    script = transport.scripts[0]
    assert "$target.ManagementOS = $true" in script
    assert "$target.VMName" not in script
    assert "$parameters.SwitchName = 'external'" in script
    assert "Set-VMNetworkAdapterVlan @target -Access -VlanId 12" in script


@pytest.mark.anyio("asyncio")
async def test_update_adapter_disconnects_without_switch(client, transport):
    spec = VmNetworkAdapterSpec.parse(
        vm_name="vm01", name="nic0", dynamic_mac_address=False, static_mac_address="00155D010203"
    )

    await client.update_vm_network_adapter(spec)

    script = transport.scripts[0]
    assert "$target.VMName = 'vm01'" in script
    assert "Disconnect-VMNetworkAdapter" in script
    assert "$settings.StaticMacAddress = '00155D010203'" in script
    assert "Set-VMNetworkAdapterVlan @target -Untagged" in script


@pytest.mark.anyio("asyncio")
async def test_get_and_delete_network_adapters(client, transport):
    transport.respond(
        '[{"VmName": "vm01", "Name": "nic0", "IpAddresses": ["10.0.0.5"]},'
        ' {"VmName": "vm01", "Name": "nic1", "VlanAccess": true, "VlanId": 7}]'
    )

    adapters = await client.get_vm_network_adapters("vm01")
    await client.delete_vm_network_adapter("vm01", "nic1")

    assert [adapter.name for adapter in adapters] == ["nic0", "nic1"]
    assert adapters[0].ip_addresses == ["10.0.0.5"]
    assert adapters[1].vlan_id == 7
    assert "Get-VMNetworkAdapter -VMName 'vm01' -Name 'nic1'" in transport.scripts[1]


@pytest.mark.anyio("asyncio")
async def test_dvd_drive_operations(client, transport):
    transport.respond('[{"VmName": "vm01", "ControllerNumber": 0, "ControllerLocation": 1, "Path": "C:/iso/vm01.iso"}]')

    drives = await client.get_vm_dvd_drives("vm01")
    await client.create_vm_dvd_drive(
        VmDvdDriveSpec.parse(vm_name="vm01", controller_location=1, path="C:/iso/vm01.iso")
    )
    await client.update_vm_dvd_drive(VmDvdDriveSpec.parse(vm_name="vm01", controller_location=1))
    await client.delete_vm_dvd_drive("vm01", 0, 1)

    assert drives[0].path == "C:/iso/vm01.iso"
    assert "$parameters.Path = 'C:\\iso\\vm01.iso'" in transport.scripts[1]
    assert "Add-VMDvdDrive @parameters" in transport.scripts[1]
    assert "Set-VMDvdDrive @parameters" in transport.scripts[2]
    assert "-ControllerNumber 0 -ControllerLocation 1" in transport.scripts[3]


@pytest.mark.anyio("asyncio")
async def test_hard_disk_drive_passthrough_disk(client, transport):
    spec = VmHardDiskDriveSpec.parse(vm_name="vm01", disk_number=0, controller_location=2)

    await client.create_vm_hard_disk_drive(spec)

    script = transport.scripts[0]
    assert "$parameters.DiskNumber = 0" in script
    assert "$parameters.Path" not in script
    assert "ControllerType = 'Scsi'" in script
    assert "Add-VMHardDiskDrive @parameters" in script


@pytest.mark.anyio("asyncio")
async def test_hard_disk_drive_read_update_delete(client, transport):
    transport.respond('[{"VmName": "vm01", "ControllerType": "IDE", "Path": "C:/disks/os.vhdx"}]')

    drives = await client.get_vm_hard_disk_drives("vm01")
    await client.update_vm_hard_disk_drive(VmHardDiskDriveSpec.parse(vm_name="vm01", path="C:/disks/os.vhdx"))
    await client.delete_vm_hard_disk_drive("vm01", "ide", 0, 1)

    assert drives[0].controller_type is ControllerType.IDE
    assert "Set-VMHardDiskDrive @parameters" in transport.scripts[1]
    assert "-ControllerType 'Ide' -ControllerNumber 0 -ControllerLocation 1" in transport.scripts[2]


@pytest.mark.anyio("asyncio")
async def test_delete_hard_disk_drive_rejects_unknown_controller(client, transport):
    with pytest.raises(ArgumentValidationError):
        await client.delete_vm_hard_disk_drive("vm01", "sata", 0, 0)

    assert transport.calls == []


@pytest.mark.anyio("asyncio")
async def test_firmware_boot_order(client, transport):
    transport.respond(
        '{"VmName": "vm01", "EnableSecureBoot": "On", "BootOrder": ['
        '{"BootType": "DvdDrive", "ControllerNumber": 0, "ControllerLocation": 1},'
        '{"BootType": "NetworkAdapter", "NetworkAdapterName": "nic0"}]}'
    )
    spec = VmFirmwareSpec.parse(
        vm_name="vm01",
        boot_order=[
            {"boot_type": "HardDiskDrive", "controller_number": 0, "controller_location": 0},
            {"boot_type": "NetworkAdapter", "network_adapter_name": "nic0"},
        ],
    )

    firmware = await client.get_vm_firmware("vm01")
    await client.update_vm_firmware(spec)

    assert [entry.boot_type for entry in firmware.boot_order] == [BootType.DVD_DRIVE, BootType.NETWORK_ADAPTER]
    assert firmware.boot_order[1].network_adapter_name == "nic0"

    script = transport.scripts[1]
    assert "'boot_type' = 'HardDiskDrive'" in script
    assert "'network_adapter_name' = 'nic0'" in script
    assert "EnableSecureBoot = 'On'" in script
    assert "Set-VMFirmware @settings" in script


@pytest.mark.anyio("asyncio")
async def test_processor_settings(client, transport):
    transport.respond('{"VmName": "vm01", "Count": 4, "Maximum": 100, "RelativeWeight": 100}')

    processor = await client.get_vm_processor("vm01")
    await client.update_vm_processor(
        VmProcessorSpec.parse(vm_name="vm01", expose_virtualization_extensions=True, maximum_count_per_numa_node=8)
    )

    assert processor.count == 4
    script = transport.scripts[1]
    assert "ExposeVirtualizationExtensions = $true" in script
    assert "$settings.MaximumCountPerNumaNode = 8" in script
    assert "HwThreadCountPerCore" not in script


@pytest.mark.anyio("asyncio")
async def test_integration_services(client, transport):
    transport.respond('[{"Name": "Heartbeat", "Enabled": true}, {"Name": "Guest Service Interface", "Enabled": false}]')

    services = await client.get_vm_integration_services("vm01")
    await client.enable_vm_integration_service("vm01", "Guest Service Interface")
    await client.disable_vm_integration_service("vm01", "Heartbeat")

    assert {service.name: service.enabled for service in services} == {
        "Heartbeat": True,
        "Guest Service Interface": False,
    }
    assert "Enable-VMIntegrationService -VMName 'vm01' -Name 'Guest Service Interface'" in transport.scripts[1]
    assert "Disable-VMIntegrationService -VMName 'vm01' -Name 'Heartbeat'" in transport.scripts[2]
