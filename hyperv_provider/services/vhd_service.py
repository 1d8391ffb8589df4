"""Virtual hard disk operations."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..core.errors import ArgumentValidationError
from ..core.models import Vhd, VhdExists
from ..core.specs import VhdSpec
from ..core.templates import ScriptTemplate
from .base import CREATE_TIMEOUT, DELETE_TIMEOUT, LONG_READ_TIMEOUT, UPDATE_TIMEOUT, ClientOperations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _PathArgs:
    path: str


@dataclass(frozen=True)
class _ResizeArgs:
    path: str
    size: int


VHD_EXISTS = ScriptTemplate(
    "VhdExists",
    """
$ErrorActionPreference = 'Stop'
$path = {{ path | winpath }}

$exists = [bool](Get-VHD -Path $path -ErrorAction SilentlyContinue)
ConvertTo-Json -InputObject @{ Exists = $exists }
""",
    _PathArgs,
)


CREATE_OR_UPDATE_VHD = ScriptTemplate(
    "CreateOrUpdateVhd",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
$path = {{ path | winpath }}
$source = {{ source }}
$sourceVm = {{ source_vm }}
$sourceDisk = {{ source_disk }}
$vhdType = {{ vhd_type }}
$parentPath = {{ parent_path | winpath }}
$size = {{ size }}
$blockSize = {{ block_size }}
$logicalSectorSize = {{ logical_sector_size }}
$physicalSectorSize = {{ physical_sector_size }}

function Expand-DiskArchive($archive, $destination) {
    $extension = [System.IO.Path]::GetExtension($archive).ToLowerInvariant()
    if ($extension -eq '.zip') {
        Expand-Archive -LiteralPath $archive -DestinationPath $destination -Force
        return
    }
    $sevenZip = Join-Path $env:ProgramFiles '7-Zip\\7z.exe'
    if (-not (Test-Path -LiteralPath $sevenZip)) {
        throw "7-Zip is required to expand $archive"
    }
    if ($extension -eq '.box') {
        # Vagrant boxes are gzipped tarballs.
        & $sevenZip x $archive "-o$destination" -y | Out-Null
        $tarball = Get-ChildItem -LiteralPath $destination -Filter '*.tar' | Select-Object -First 1
        if ($tarball) {
            & $sevenZip x $tarball.FullName "-o$destination" -y | Out-Null
            Remove-Item -LiteralPath $tarball.FullName -Force
        }
    } else {
        & $sevenZip x $archive "-o$destination" -y | Out-Null
    }
    if ($LASTEXITCODE -ne 0) {
        throw "7-Zip failed to expand $archive with exit code $LASTEXITCODE"
    }
}

function Move-FirstDisk($searchPath, $destination) {
    $disk = Get-ChildItem -LiteralPath $searchPath -Recurse -Include '*.vhd', '*.vhdx' |
        Where-Object { $_.FullName -ne $destination } |
        Select-Object -First 1
    if (-not $disk) {
        throw "No virtual hard disk found under $searchPath"
    }
    Move-Item -LiteralPath $disk.FullName -Destination $destination -Force
}

if (Get-VHD -Path $path -ErrorAction SilentlyContinue) {
    return
}

$directory = Split-Path -Path $path -Parent
if (-not (Test-Path -LiteralPath $directory -PathType Container)) {
    New-Item -ItemType Directory -Force -Path $directory | Out-Null
}

if ($source) {
    $staging = Join-Path $directory ([System.IO.Path]::GetRandomFileName())
    New-Item -ItemType Directory -Force -Path $staging | Out-Null
    try {
        if ($source -match '^https?://') {
            $fileName = [System.IO.Path]::GetFileName(([System.Uri]$source).AbsolutePath)
            $downloaded = Join-Path $staging $fileName
            Invoke-WebRequest -Uri $source -OutFile $downloaded -UseBasicParsing
            $items = @(Get-Item -LiteralPath $downloaded)
        } else {
            $items = @(Get-Item -Path $source)
        }
        foreach ($item in $items) {
            $extension = $item.Extension.ToLowerInvariant()
            if ($extension -in @('.zip', '.box', '.7z')) {
                Expand-DiskArchive $item.FullName $staging
            } elseif ($item.DirectoryName -ne $staging) {
                Copy-Item -LiteralPath $item.FullName -Destination $staging -Force
            }
        }
        $virtualMachines = Join-Path $staging 'Virtual Machines'
        if (Test-Path -LiteralPath $virtualMachines -PathType Container) {
            Move-FirstDisk $virtualMachines $path
        } else {
            Move-FirstDisk $staging $path
        }
    } finally {
        Remove-Item -LiteralPath $staging -Recurse -Force -ErrorAction SilentlyContinue
    }
} elseif ($sourceVm) {
    $export = Join-Path $directory ([System.IO.Path]::GetRandomFileName())
    try {
        Export-VM -Name $sourceVm -Path $export
        Move-FirstDisk $export $path
    } finally {
        Remove-Item -LiteralPath $export -Recurse -Force -ErrorAction SilentlyContinue
    }
} elseif ($sourceDisk -ne $null) {
    $parameters = @{ Path = $path; SourceDisk = $sourceDisk }
    if ($vhdType -eq 'Fixed') { $parameters.Fixed = $true } else { $parameters.Dynamic = $true }
    New-VHD @parameters | Out-Null
} elseif ($parentPath) {
    New-VHD -Path $path -ParentPath $parentPath -Differencing | Out-Null
} else {
    if (-not $size) {
        throw "size is required to create a new $vhdType disk at $path"
    }
    $parameters = @{ Path = $path; SizeBytes = $size }
    if ($vhdType -eq 'Fixed') { $parameters.Fixed = $true } else { $parameters.Dynamic = $true }
    if ($blockSize) { $parameters.BlockSizeBytes = $blockSize }
    if ($logicalSectorSize) { $parameters.LogicalSectorSizeBytes = $logicalSectorSize }
    if ($physicalSectorSize) { $parameters.PhysicalSectorSizeBytes = $physicalSectorSize }
    New-VHD @parameters | Out-Null
}
""",
    VhdSpec,
)


RESIZE_VHD = ScriptTemplate(
    "ResizeVhd",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
$path = {{ path | winpath }}
$size = {{ size }}

$vhd = Get-VHD -Path $path
if ($vhd.Size -ne $size) {
    Resize-VHD -Path $path -SizeBytes $size
}
""",
    _ResizeArgs,
)


GET_VHD = ScriptTemplate(
    "GetVhd",
    """
$ErrorActionPreference = 'Stop'
Import-Module Hyper-V
$path = {{ path | winpath }}

$vhd = Get-VHD -Path $path -ErrorAction SilentlyContinue
if ($vhd) {
    ConvertTo-Json -InputObject @{
        Path = $vhd.Path
        BlockSize = $vhd.BlockSize
        LogicalSectorSize = $vhd.LogicalSectorSize
        PhysicalSectorSize = $vhd.PhysicalSectorSize
        ParentPath = $vhd.ParentPath
        FileSize = $vhd.FileSize
        Size = $vhd.Size
        MinimumSize = $vhd.MinimumSize
        Attached = $vhd.Attached
        DiskNumber = $vhd.DiskNumber
        FragmentationPercentage = $vhd.FragmentationPercentage
        Alignment = $vhd.Alignment
        DiskIdentifier = $vhd.DiskIdentifier
        VhdType = $vhd.VhdType.ToString()
        VhdFormat = $vhd.VhdFormat.ToString()
    }
} else {
    '{}'
}
""",
    _PathArgs,
)


DELETE_VHD = ScriptTemplate(
    "DeleteVhd",
    """
$ErrorActionPreference = 'Stop'
$path = {{ path | winpath }}

$directory = Split-Path -Path $path -Parent
$baseName = [System.IO.Path]::GetFileNameWithoutExtension($path)

# Differencing children are created next to the disk with the same base name.
if (Test-Path -LiteralPath $directory -PathType Container) {
    Get-ChildItem -LiteralPath $directory -File |
        Where-Object { $_.BaseName.StartsWith($baseName, [System.StringComparison]::OrdinalIgnoreCase) } |
        ForEach-Object { Remove-Item -LiteralPath $_.FullName -Force }
}
""",
    _PathArgs,
)


class VhdOperations(ClientOperations):
    """Create, inspect, resize and delete virtual hard disks."""

    async def vhd_exists(self, path: str, *, timeout: Optional[float] = None) -> VhdExists:
        return await self.executor.run_with_result(
            VHD_EXISTS,
            _PathArgs(path=path),
            VhdExists,
            timeout=self._timeout(LONG_READ_TIMEOUT, timeout),
        )

    async def create_or_update_vhd(self, spec: VhdSpec, *, timeout: Optional[float] = None) -> None:
        logger.info("Creating or updating VHD %s", spec.path)
        await self.executor.run_fire_and_forget(
            CREATE_OR_UPDATE_VHD, spec, timeout=self._timeout(CREATE_TIMEOUT, timeout)
        )

    async def resize_vhd(self, path: str, size: int, *, timeout: Optional[float] = None) -> None:
        logger.info("Resizing VHD %s to %d bytes", path, size)
        await self.executor.run_fire_and_forget(
            RESIZE_VHD,
            _ResizeArgs(path=path, size=size),
            timeout=self._timeout(UPDATE_TIMEOUT, timeout),
        )

    async def get_vhd(self, path: str, *, timeout: Optional[float] = None) -> Vhd:
        vhd = await self.executor.run_with_result(
            GET_VHD,
            _PathArgs(path=path),
            Vhd,
            timeout=self._timeout(LONG_READ_TIMEOUT, timeout),
        )
        vhd.exists = bool(vhd.path)
        if not vhd.exists:
            logger.info("VHD %s does not exist", path)
        return vhd

    async def delete_vhd(self, path: str, *, timeout: Optional[float] = None) -> None:
        logger.info("Deleting VHD %s", path)
        await self.executor.run_fire_and_forget(
            DELETE_VHD, _PathArgs(path=path), timeout=self._timeout(DELETE_TIMEOUT, timeout)
        )

    async def create_vhd(
        self,
        spec: VhdSpec,
        *,
        check_existing: bool = False,
        timeout: Optional[float] = None,
    ) -> None:
        """Create a disk, then grow it to ``spec.size`` when one is requested.

        Differencing disks inherit their size from the parent and are never
        resized.
        """

        if check_existing:
            existing = await self.vhd_exists(spec.path)
            if existing.exists:
                raise ArgumentValidationError(
                    f"A virtual hard disk already exists at {spec.path}; "
                    "import it before managing it"
                )

        await self.create_or_update_vhd(spec, timeout=timeout)

        if spec.size > 0 and not spec.parent_path:
            await self.resize_vhd(spec.path, spec.size)


__all__ = [
    "CREATE_OR_UPDATE_VHD",
    "DELETE_VHD",
    "GET_VHD",
    "RESIZE_VHD",
    "VHD_EXISTS",
    "VhdOperations",
]
