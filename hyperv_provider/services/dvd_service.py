"""ISO images carrying cloud-init network configuration for VM DVD drives."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from ..core.models import Dvd
from ..core.specs import DvdSpec
from ..core.templates import ScriptTemplate
from .base import CREATE_TIMEOUT, DELETE_TIMEOUT, READ_TIMEOUT, ClientOperations

logger = logging.getLogger(__name__)

NETWORK_CONFIG_FILE = "network_settings.yaml"


@dataclass(frozen=True)
class _CreateDvdArgs:
    path: str
    network_yaml: str
    file_name: str
    token: str


@dataclass(frozen=True)
class _GetDvdArgs:
    path: str
    ip: str


@dataclass(frozen=True)
class _PathArgs:
    path: str


CREATE_DVD = ScriptTemplate(
    "CreateDvd",
    """
$ErrorActionPreference = 'Stop'
$path = {{ path | winpath }}
$networkYaml = {{ network_yaml }}

$folderPath = Split-Path -Path $path -Parent
if (-not (Test-Path -LiteralPath $folderPath -PathType Container)) {
    New-Item -ItemType Directory -Force -Path $folderPath | Out-Null
}

$tmpPath = Join-Path $env:TEMP ('hyperv_dvd_' + {{ token }})
New-Item -ItemType Directory -Force -Path $tmpPath | Out-Null
try {
    $encoding = New-Object System.Text.UTF8Encoding $false
    [System.IO.File]::WriteAllText((Join-Path $tmpPath {{ file_name }}), $networkYaml, $encoding)

    if (Test-Path -LiteralPath $path) {
        Remove-Item -LiteralPath $path -Force
    }

    # oscdimg reports progress on stderr; keep it out of the error stream.
    $ErrorActionPreference = 'Continue'
    $oscdimgOutput = & oscdimg -n -d -m $tmpPath $path 2>&1 | Out-String
    $oscdimgExitCode = $LASTEXITCODE
    $ErrorActionPreference = 'Stop'
    if ($oscdimgExitCode -ne 0) {
        throw "oscdimg failed with exit code ${oscdimgExitCode}: $oscdimgOutput"
    }
} finally {
    Remove-Item -LiteralPath $tmpPath -Force -Recurse -ErrorAction SilentlyContinue
}
""",
    _CreateDvdArgs,
)


GET_DVD = ScriptTemplate(
    "GetDvd",
    """
$ErrorActionPreference = 'Stop'
$path = {{ path | winpath }}
$ip = {{ ip }}

if (Test-Path -LiteralPath $path -PathType Leaf) {
    ConvertTo-Json -InputObject @{ Path = $path; Ip = $ip }
} else {
    '{}'
}
""",
    _GetDvdArgs,
)


DELETE_DVD = ScriptTemplate(
    "DeleteDvd",
    """
$ErrorActionPreference = 'Stop'
$path = {{ path | winpath }}

$targetDirectory = Split-Path -Path $path -Parent
$targetName = [System.IO.Path]::GetFileNameWithoutExtension($path)

if (Test-Path -LiteralPath $targetDirectory -PathType Container) {
    Get-ChildItem -LiteralPath $targetDirectory -File |
        Where-Object { $_.BaseName.StartsWith($targetName, [System.StringComparison]::OrdinalIgnoreCase) } |
        ForEach-Object { Remove-Item -LiteralPath $_.FullName -Force }
}
""",
    _PathArgs,
)


class DvdOperations(ClientOperations):
    """Build, inspect and delete cloud-init ISO images."""

    async def create_dvd(self, spec: DvdSpec, *, timeout: Optional[float] = None) -> None:
        """Build the ISO at ``spec.path``, replacing any image already there."""

        logger.info("Creating DVD image %s for %s", spec.path, spec.ip)
        args = _CreateDvdArgs(
            path=spec.path,
            network_yaml=spec.network_yaml(),
            file_name=NETWORK_CONFIG_FILE,
            token=uuid.uuid4().hex,
        )
        await self.executor.run_fire_and_forget(
            CREATE_DVD, args, timeout=self._timeout(CREATE_TIMEOUT, timeout)
        )

    async def get_dvd(self, path: str, ip: str = "", *, timeout: Optional[float] = None) -> Dvd:
        dvd = await self.executor.run_with_result(
            GET_DVD,
            _GetDvdArgs(path=path, ip=ip),
            Dvd,
            timeout=self._timeout(READ_TIMEOUT, timeout),
        )
        dvd.exists = bool(dvd.path)
        if not dvd.exists:
            logger.info("DVD image %s does not exist", path)
        return dvd

    async def delete_dvd(self, path: str, *, timeout: Optional[float] = None) -> None:
        logger.info("Deleting DVD image %s", path)
        await self.executor.run_fire_and_forget(
            DELETE_DVD, _PathArgs(path=path), timeout=self._timeout(DELETE_TIMEOUT, timeout)
        )


__all__ = ["CREATE_DVD", "DELETE_DVD", "GET_DVD", "DvdOperations", "NETWORK_CONFIG_FILE"]
