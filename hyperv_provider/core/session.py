"""Connection parameters for a single Hyper-V host."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from .errors import ArgumentValidationError

# Replaced with a per-invocation token when a script is staged on the host.
RANDOM_PLACEHOLDER = "%RAND%"

AUTH_MODES = ("basic", "ntlm", "negotiate", "kerberos", "certificate", "credssp")


@dataclass(frozen=True)
class WinRMSession:
    """Authenticated context for issuing remote script executions.

    A session is immutable; the transport may replace the underlying
    connections it builds from it, but never the parameters themselves.
    """

    host: str
    port: int = 5986
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    auth: str = "ntlm"
    use_ssl: bool = True
    cert_validation: Union[bool, str] = True
    certificate_path: Optional[str] = None
    certificate_key_path: Optional[str] = None
    negotiate_service: Optional[str] = None
    script_path: str = "C:/Temp/terraform_%RAND%.ps1"
    timeout: float = 30.0
    connection_timeout: float = 30.0
    read_timeout: float = 30.0
    operation_timeout: float = 20.0
    poll_interval: float = 1.0
    max_inline_script_length: int = 16000
    staging_chunk_size: int = 12000
    max_idle_connections: int = 4
    idle_timeout: float = 60.0

    def __post_init__(self) -> None:
        if not self.host:
            raise ArgumentValidationError("host must not be empty")
        if self.auth not in AUTH_MODES:
            raise ArgumentValidationError(f"auth must be one of {', '.join(AUTH_MODES)}, got {self.auth!r}")
        if self.timeout <= 0:
            raise ArgumentValidationError("timeout must be positive")
        if self.staging_chunk_size <= 0:
            raise ArgumentValidationError("staging_chunk_size must be positive")

    @property
    def endpoint(self) -> str:
        scheme = "https" if self.use_ssl else "http"
        return f"{scheme}://{self.host}:{self.port}/wsman"


__all__ = ["AUTH_MODES", "RANDOM_PLACEHOLDER", "WinRMSession"]
