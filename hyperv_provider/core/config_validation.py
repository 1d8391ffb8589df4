"""Configuration validation utilities."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Set

from .config import (
    RANDOM_PLACEHOLDER,
    Settings,
    parse_duration,
    settings,
    set_config_validation_result,
    get_config_validation_result,
)


@dataclass
class ConfigIssue:
    """Represents a single configuration issue."""

    message: str
    hint: Optional[str] = None


@dataclass
class ConfigValidationResult:
    """Outcome of running configuration checks."""

    checked_at: datetime
    errors: List[ConfigIssue] = field(default_factory=list)
    warnings: List[ConfigIssue] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


def _warn(result: ConfigValidationResult, message: str, hint: Optional[str] = None) -> None:
    result.warnings.append(ConfigIssue(message=message, hint=hint))


def _error(result: ConfigValidationResult, message: str, hint: Optional[str] = None) -> None:
    result.errors.append(ConfigIssue(message=message, hint=hint))


def _field_was_provided(provided_fields: Set[str], field_name: str) -> bool:
    """Return True if the setting was explicitly provided via environment variables."""

    return field_name in provided_fields


def run_config_checks(
    force: bool = False, custom_settings: Optional[Settings] = None
) -> ConfigValidationResult:
    """Validate configuration combinations and cache the result.

    ``custom_settings`` validates an explicit settings object instead of the
    process-wide one; that result is not cached.
    """

    if custom_settings is not None:
        return _check(custom_settings)

    if not force:
        cached = get_config_validation_result()
        if cached is not None:
            return cached

    result = _check(settings)
    set_config_validation_result(result)
    return result


def _check(settings: Settings) -> ConfigValidationResult:
    result = ConfigValidationResult(checked_at=datetime.now(timezone.utc))
    provided_fields = settings.model_fields_set

    if not str(settings.host or "").strip():
        _error(
            result,
            "HYPERV_HOST is empty.",
            "Set HYPERV_HOST to the name or address of the Hyper-V host.",
        )
    elif not _field_was_provided(provided_fields, "host"):
        _warn(
            result,
            "HYPERV_HOST not provided; defaulting to 127.0.0.1.",
            "Set HYPERV_HOST explicitly to document which host is managed.",
        )

    auth = settings.get_auth_mode()
    if auth in ("basic", "ntlm") and (not settings.user or not settings.password):
        _error(
            result,
            f"HYPERV_USER and HYPERV_PASSWORD are required for {auth} authentication.",
            "Provide credentials or configure certificate or Kerberos authentication.",
        )

    if auth == "certificate":
        for name, value in (("HYPERV_CERT_PATH", settings.cert_path), ("HYPERV_KEY_PATH", settings.key_path)):
            if not Path(str(value)).expanduser().is_file():
                _error(
                    result,
                    f"{name} does not point to a readable file.",
                    f"Check that {value} exists and is mounted into the process.",
                )
    elif bool(settings.cert_path) != bool(settings.key_path):
        _warn(
            result,
            "Only one of HYPERV_CERT_PATH and HYPERV_KEY_PATH is set; certificate authentication is disabled.",
            "Set both paths to authenticate with a client certificate.",
        )

    if auth == "basic" and not settings.https:
        _warn(
            result,
            "Basic authentication over plain HTTP sends credentials in clear text.",
            "Enable HYPERV_HTTPS or switch to NTLM or Kerberos authentication.",
        )

    if settings.https and settings.insecure:
        _warn(
            result,
            "HYPERV_INSECURE is enabled; the host certificate will not be validated.",
            "Only disable certificate validation for lab hosts with self-signed certificates.",
        )

    if settings.cacert_path and not Path(settings.cacert_path).expanduser().is_file():
        _error(
            result,
            "HYPERV_CACERT_PATH does not point to a readable file.",
            "Provide the PEM bundle used to validate the host certificate.",
        )

    if RANDOM_PLACEHOLDER not in settings.script_path:
        _warn(
            result,
            f"HYPERV_SCRIPT_PATH does not contain {RANDOM_PLACEHOLDER}.",
            "Concurrent staged scripts will overwrite each other without a random token in the path.",
        )

    if settings.staging_chunk_size >= settings.max_inline_script_length:
        _warn(
            result,
            "HYPERV_STAGING_CHUNK_SIZE is not below HYPERV_MAX_INLINE_SCRIPT_LENGTH.",
            "Each upload call would itself exceed the inline script limit; lower the chunk size.",
        )

    try:
        timeout_seconds = parse_duration(settings.timeout)
    except ValueError as exc:
        _error(result, f"HYPERV_TIMEOUT is invalid: {exc}", "Use values like 30s, 5m or 1m30s.")
    else:
        if timeout_seconds < settings.poll_interval_seconds:
            _warn(
                result,
                "HYPERV_TIMEOUT is shorter than the poll interval.",
                "Scripts will time out before their first status poll completes.",
            )

    if settings.operation_timeout >= settings.read_timeout:
        _error(
            result,
            "HYPERV_OPERATION_TIMEOUT must be lower than HYPERV_READ_TIMEOUT.",
            "The HTTP read timeout has to outlast the WSMan operation timeout.",
        )

    return result
