"""Exception taxonomy shared by the transport, executor and client facade.

Every failure surfaced to the reconciliation framework is one of these
classes. The ``kind`` attribute lets callers branch on the classification
without importing every subclass; ``retryable`` marks the failures a caller
may safely retry (transport-level only).
"""
from __future__ import annotations

from typing import Optional


class HyperVError(RuntimeError):
    """Base exception for Hyper-V provider failures."""

    kind: str = "error"
    retryable: bool = False


class ArgumentValidationError(HyperVError):
    """Raised when arguments or configuration are invalid or contradictory."""

    kind = "validation"


class TemplateRenderError(HyperVError):
    """Raised when a script template is malformed or cannot be rendered."""

    kind = "template"


class WinRMTransportError(HyperVError):
    """Raised for network, connection and protocol failures reaching a host."""

    kind = "transport"
    retryable = True


class WinRMAuthenticationError(WinRMTransportError):
    """Raised when authentication to a host fails."""


class ScriptTimeoutError(HyperVError, TimeoutError):
    """Raised when a script does not finish before its deadline.

    The remote process may still be running; callers should re-read state
    before deciding what to do next.
    """

    kind = "timeout"


class ScriptCancelledError(ScriptTimeoutError):
    """Raised when the caller cancelled an invocation that was still running."""


def _preview(text: str, max_length: int = 500) -> str:
    sanitized = (text or "").replace("\r\n", "\n").strip()
    if len(sanitized) > max_length:
        return sanitized[: max_length - 3] + "..."
    return sanitized


class RemoteScriptError(HyperVError):
    """Raised when a script ran but reported an application-level failure."""

    kind = "remote_script"

    def __init__(
        self,
        hostname: str,
        exit_code: int,
        stderr: str,
        stdout: str = "",
        *,
        script_name: Optional[str] = None,
    ):
        self.hostname = hostname
        self.exit_code = exit_code
        self.stderr = stderr
        self.stdout = stdout
        self.script_name = script_name

        label = f"Script {script_name}" if script_name else "Script"
        detail = _preview(stderr) or _preview(stdout) or "no diagnostic output"
        super().__init__(
            f"{label} on {hostname} failed with exit code {exit_code}: {detail}"
        )


class ResultDecodeError(HyperVError):
    """Raised when script output cannot be decoded into the expected result."""

    kind = "decode"

    def __init__(self, message: str, payload: str):
        self.payload = payload
        super().__init__(f"{message}; raw payload: {_preview(payload) or '<empty>'}")


__all__ = [
    "HyperVError",
    "ArgumentValidationError",
    "TemplateRenderError",
    "WinRMTransportError",
    "WinRMAuthenticationError",
    "ScriptTimeoutError",
    "ScriptCancelledError",
    "RemoteScriptError",
    "ResultDecodeError",
]
