# Vulture whitelist file
# This file contains false positives that vulture incorrectly flags as dead code.
# These are typically Pydantic validators and settings, Protocol members, pytest fixtures, etc.
#
# Usage: python3 -m vulture hyperv_provider tests vulture_whitelist.py

# =============================================================================
# Pydantic validators (registered via @field_validator / @model_validator)
# =============================================================================

_match_remote_keys  # models.py - RemoteModel key matching
_check_sector_size  # specs.py - VhdSpec
_check_size_alignment  # specs.py - VhdSpec
_check_exclusive_sources  # specs.py - VhdSpec
_check_ipv4  # specs.py - DvdSpec
_check_nameservers  # specs.py - DvdSpec
_check_memory  # specs.py - VmSpec
_check_switch_type  # specs.py - VmSwitchSpec
_check_addressing  # specs.py - VmNetworkAdapterSpec
_check_backing  # specs.py - VmHardDiskDriveSpec
_check_target  # specs.py - VmBootEntrySpec
_check_limits  # specs.py - VmProcessorSpec
_check_target_state  # specs.py - VmStatusSpec
_validate_timeout  # config.py - Settings

# =============================================================================
# Pydantic configuration attributes
# =============================================================================

model_config  # read by pydantic when the model class is built

# =============================================================================
# Enum hooks
# =============================================================================

_missing_  # models.py - HyperVEnum case-insensitive lookup

# =============================================================================
# Settings fields only read through pydantic-settings
# =============================================================================

debug  # config.py - HYPERV_DEBUG
kerberos_realm  # config.py - HYPERV_KERBEROS_REALM

# =============================================================================
# Result fields populated from remote JSON
# =============================================================================

minimum_size  # models.py - Vhd
fragmentation_percentage  # models.py - Vhd
alignment  # models.py - Vhd
disk_identifier  # models.py - Vhd
description  # models.py - VmBootEntry
status  # models.py - VmStatus

# =============================================================================
# pytest fixtures (injected by name)
# =============================================================================

isolated_environment  # conftest.py - autouse
anyio_backend  # conftest.py - selects the asyncio backend
restore_config_validation  # test_config_validation.py - autouse
