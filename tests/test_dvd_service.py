import re

import pytest

from hyperv_provider.core.specs import DvdSpec
from hyperv_provider.services.dvd_service import NETWORK_CONFIG_FILE


def _spec(**overrides):
    values = {
        "path": "C:/iso/vm01.iso",
        "ip": "172.16.5.10",
        "gateway": "172.16.1.254",
        "nameservers": ["172.16.14.27", "172.16.14.28"],
    }
    values.update(overrides)
    return DvdSpec.parse(**values)


@pytest.mark.anyio("asyncio")
async def test_create_dvd_embeds_network_config(client, transport):
    spec = _spec()

    await client.create_dvd(spec)

    script = transport.scripts[0]
    assert "$networkYaml = '" + spec.network_yaml() + "'" in script
    assert "172.16.5.10/16" in script
    assert f"'{NETWORK_CONFIG_FILE}'" in script
    assert "oscdimg -n -d -m $tmpPath $path" in script


@pytest.mark.anyio("asyncio")
async def test_create_dvd_prepares_folder_and_replaces_image(client, transport):
    await client.create_dvd(_spec(path="C:/iso/new/vm01.iso"))

    script = transport.scripts[0]
    assert "$path = 'C:\\iso\\new\\vm01.iso'" in script
    assert "New-Item -ItemType Directory -Force -Path $folderPath" in script
    assert "if (Test-Path -LiteralPath $path) {\n        Remove-Item -LiteralPath $path -Force" in script
    assert "} finally {\n    Remove-Item -LiteralPath $tmpPath" in script


@pytest.mark.anyio("asyncio")
async def test_create_dvd_uses_a_private_staging_folder(client, transport):
    await client.create_dvd(_spec())
    await client.create_dvd(_spec())

    tokens = [re.search(r"'hyperv_dvd_' \+ '([0-9a-f]{32})'", script).group(1) for script in transport.scripts]
    assert tokens[0] != tokens[1]


@pytest.mark.anyio("asyncio")
async def test_get_dvd_reports_missing_image(client, transport):
    transport.respond("{}")

    dvd = await client.get_dvd("C:/iso/vm01.iso", ip="172.16.5.10")

    assert dvd.exists is False
    assert dvd.path == ""
    assert "$ip = '172.16.5.10'" in transport.scripts[0]


@pytest.mark.anyio("asyncio")
async def test_get_dvd_reports_existing_image(client, transport):
    transport.respond('{"Path": "C:/iso/vm01.iso", "Ip": "172.16.5.10"}')

    dvd = await client.get_dvd("C:/iso/vm01.iso", ip="172.16.5.10")

    assert dvd.exists is True
    assert dvd.ip == "172.16.5.10"


@pytest.mark.anyio("asyncio")
async def test_delete_dvd_matches_base_name(client, transport):
    await client.delete_dvd("C:/iso/vm01.iso")

    script = transport.scripts[0]
    assert "$path = 'C:\\iso\\vm01.iso'" in script
    assert "GetFileNameWithoutExtension($path)" in script
