import pytest

from hyperv_provider.core.errors import ArgumentValidationError, RemoteScriptError
from hyperv_provider.core.models import VhdFormat, VhdType
from hyperv_provider.core.specs import VhdSpec
from hyperv_provider.services.base import CREATE_TIMEOUT, LONG_READ_TIMEOUT

GIB = 1024**3


@pytest.mark.anyio("asyncio")
async def test_create_differencing_disk_is_never_resized(client, transport):
    spec = VhdSpec.parse(path="C:/disks/child.vhdx", parent_path="C:/disks/base.vhdx")

    await client.create_vhd(spec)

    assert len(transport.scripts) == 1
    script = transport.scripts[0]
    assert "$parentPath = 'C:\\disks\\base.vhdx'" in script
    assert "New-VHD -Path $path -ParentPath $parentPath -Differencing" in script
    assert transport.calls[0]["timeout"] == CREATE_TIMEOUT


@pytest.mark.anyio("asyncio")
async def test_create_sized_disk_is_resized(client, transport):
    spec = VhdSpec.parse(path="C:/disks/data.vhdx", size=10 * GIB, vhd_type="Fixed")

    await client.create_vhd(spec)

    create, resize = transport.scripts
    assert "$vhdType = 'Fixed'" in create
    assert "$size = 10737418240" in create
    assert "Resize-VHD -Path $path -SizeBytes $size" in resize
    assert "$path = 'C:\\disks\\data.vhdx'" in resize


@pytest.mark.anyio("asyncio")
async def test_create_script_is_idempotent(client, transport):
    spec = VhdSpec.parse(path="C:/disks/data.vhdx", source="https://images.example.com/base.zip")

    await client.create_or_update_vhd(spec)

    script = transport.scripts[0]
    assert "if (Get-VHD -Path $path -ErrorAction SilentlyContinue) {\n    return\n}" in script
    assert "$source = 'https://images.example.com/base.zip'" in script
    assert "$sourceDisk = $null" in script
    assert "New-Item -ItemType Directory -Force -Path $directory" in script


@pytest.mark.anyio("asyncio")
async def test_check_existing_refuses_to_adopt_disk(client, transport):
    transport.respond('{"Exists": true}')
    spec = VhdSpec.parse(path="C:/disks/data.vhdx", size=GIB)

    with pytest.raises(ArgumentValidationError, match="already exists"):
        await client.create_vhd(spec, check_existing=True)

    assert len(transport.scripts) == 1
    assert "Get-VHD -Path $path" in transport.scripts[0]


@pytest.mark.anyio("asyncio")
async def test_check_existing_creates_missing_disk(client, transport):
    transport.respond('{"Exists": false}')
    spec = VhdSpec.parse(path="C:/disks/data.vhdx", size=GIB)

    await client.create_vhd(spec, check_existing=True)

    assert len(transport.scripts) == 3


@pytest.mark.anyio("asyncio")
async def test_get_vhd_reports_missing_disk(client, transport):
    transport.respond("{}")

    vhd = await client.get_vhd("C:/disks/missing.vhdx")

    assert vhd.exists is False
    assert vhd.path == ""
    assert transport.calls[0]["timeout"] == LONG_READ_TIMEOUT


@pytest.mark.anyio("asyncio")
async def test_get_vhd_decodes_disk(client, transport):
    transport.respond(
        '{"Path": "C:/disks/data.vhdx", "Size": 1073741824, "VhdType": "Dynamic",'
        ' "VhdFormat": "VHDX", "ParentPath": null, "Attached": false}'
    )

    vhd = await client.get_vhd("C:/disks/data.vhdx")

    assert vhd.exists is True
    assert vhd.size == GIB
    assert vhd.vhd_type is VhdType.DYNAMIC
    assert vhd.vhd_format is VhdFormat.VHDX
    assert vhd.parent_path == ""


@pytest.mark.anyio("asyncio")
async def test_delete_vhd_removes_related_files(client, transport):
    await client.delete_vhd("C:/disks/data.vhdx", timeout=15)

    script = transport.scripts[0]
    assert "$path = 'C:\\disks\\data.vhdx'" in script
    assert "GetFileNameWithoutExtension($path)" in script
    assert transport.calls[0]["timeout"] == 15.0


@pytest.mark.anyio("asyncio")
async def test_failed_create_surfaces_remote_error(client, transport):
    transport.respond(stderr="The system cannot find the path specified.", exit_code=1)
    spec = VhdSpec.parse(path="C:/disks/data.vhdx", size=GIB)

    with pytest.raises(RemoteScriptError) as excinfo:
        await client.create_vhd(spec)

    assert excinfo.value.script_name == "CreateOrUpdateVhd"
    assert len(transport.scripts) == 1
