"""Configuration management using Pydantic settings."""

import re
from typing import Optional, TYPE_CHECKING

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .session import RANDOM_PLACEHOLDER, WinRMSession

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_duration(value: str) -> float:
    """Parse a duration string such as ``30s``, ``5m`` or ``1m30s`` into seconds.

    A bare number is interpreted as seconds.
    """

    text = (value or "").strip().lower()
    if not text:
        raise ValueError("duration must not be empty")

    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if seconds <= 0:
            raise ValueError(f"duration must be positive, got {value!r}")
        return seconds

    position = 0
    seconds = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()

    if position != len(text):
        raise ValueError(f"invalid duration {value!r}; expected values like 30s, 5m or 1m30s")
    if seconds <= 0:
        raise ValueError(f"duration must be positive, got {value!r}")
    return seconds


class Settings(BaseSettings):
    """Provider settings loaded from HYPERV_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="HYPERV_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    debug: bool = False

    # Hyper-V host connection
    host: str = "127.0.0.1"
    port: int = 5986
    https: bool = True
    insecure: bool = False  # Skip certificate validation
    cacert_path: Optional[str] = None
    cert_path: Optional[str] = None  # Client certificate for certificate auth
    key_path: Optional[str] = None

    # Credentials
    user: Optional[str] = None
    password: Optional[str] = None
    use_ntlm: bool = True
    kerberos_realm: Optional[str] = None
    kerberos_service_principal_name: Optional[str] = None

    # Script execution
    script_path: str = f"C:/Temp/terraform_{RANDOM_PLACEHOLDER}.ps1"
    timeout: str = "30s"  # Default deadline for a single script invocation
    max_inline_script_length: int = 16000  # Longer scripts are staged on the host
    staging_chunk_size: int = 12000  # Base64 characters per upload; keep below the inline limit

    # WinRM transport
    connection_timeout: float = 30.0  # network connect timeout in seconds
    read_timeout: float = 30.0  # HTTP read timeout in seconds
    operation_timeout: float = 20.0  # WSMan operation timeout in seconds
    poll_interval_seconds: float = 1.0  # how long to wait between poll cycles
    max_idle_connections: int = 4
    idle_timeout: float = 60.0  # seconds before an idle pooled connection is stale

    @field_validator("timeout")
    @classmethod
    def _validate_timeout(cls, value: str) -> str:
        parse_duration(value)
        return value

    @property
    def timeout_seconds(self) -> float:
        return parse_duration(self.timeout)

    def get_auth_mode(self) -> str:
        """Resolve the WinRM authentication mode from the legacy flags."""

        if self.cert_path and self.key_path:
            return "certificate"
        if self.use_ntlm:
            return "ntlm"
        if self.kerberos_realm or self.kerberos_service_principal_name:
            return "kerberos"
        return "basic"

    def to_session(self) -> WinRMSession:
        """Build the immutable session description used by the transport."""

        auth = self.get_auth_mode()
        if self.insecure:
            cert_validation = False
        elif self.cacert_path:
            cert_validation = self.cacert_path
        else:
            cert_validation = True

        negotiate_service = None
        if self.kerberos_service_principal_name:
            negotiate_service = self.kerberos_service_principal_name.split("/", 1)[0]

        return WinRMSession(
            host=self.host,
            port=self.port,
            username=self.user,
            password=self.password,
            auth=auth,
            use_ssl=self.https,
            cert_validation=cert_validation,
            certificate_path=self.cert_path if auth == "certificate" else None,
            certificate_key_path=self.key_path if auth == "certificate" else None,
            negotiate_service=negotiate_service,
            script_path=self.script_path,
            timeout=self.timeout_seconds,
            connection_timeout=self.connection_timeout,
            read_timeout=self.read_timeout,
            operation_timeout=self.operation_timeout,
            poll_interval=self.poll_interval_seconds,
            max_inline_script_length=self.max_inline_script_length,
            staging_chunk_size=self.staging_chunk_size,
            max_idle_connections=self.max_idle_connections,
            idle_timeout=self.idle_timeout,
        )


settings = Settings()


if TYPE_CHECKING:  # pragma: no cover - only for type hints
    from .config_validation import ConfigValidationResult

# Cache of the configuration validation result so it can be reused across modules
_config_validation_result: Optional["ConfigValidationResult"] = None


def set_config_validation_result(result: "ConfigValidationResult") -> None:
    """Persist the configuration validation result for reuse."""

    global _config_validation_result
    _config_validation_result = result


def get_config_validation_result() -> Optional["ConfigValidationResult"]:
    """Return the cached configuration validation result, if available."""

    return _config_validation_result
