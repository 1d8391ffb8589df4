"""Test configuration for the provider test suite."""

import os
from types import SimpleNamespace
from typing import Callable, List, Optional

import pytest

# Keep host configuration from leaking into Settings() while modules import.
# This must happen before any imports that build the module-level settings.
for _name in list(os.environ):
    if _name.upper().startswith("HYPERV_"):
        del os.environ[_name]

from hyperv_provider.services.client import HyperVClient  # noqa: E402
from hyperv_provider.services.script_executor import ScriptExecutor  # noqa: E402
from hyperv_provider.services.winrm_service import ExecutionResult  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Run every test without HYPERV_* variables or a stray .env file."""

    for name in list(os.environ):
        if name.upper().startswith("HYPERV_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def anyio_backend():
    return "asyncio"


class RecordingTransport:
    """Stand-in for WinRMService that records scripts and replays canned results."""

    def __init__(self, hostname: str = "hv01", timeout: float = 30.0):
        self.hostname = hostname
        self.session = SimpleNamespace(timeout=timeout, host=hostname)
        self.calls: List[dict] = []
        self.results: List[ExecutionResult] = []
        self.handler: Optional[Callable[[str], ExecutionResult]] = None
        self.closed = False

    def respond(self, stdout: str = "", stderr: str = "", exit_code: int = 0) -> None:
        self.results.append(
            ExecutionResult(hostname=self.hostname, exit_code=exit_code, stdout=stdout, stderr=stderr)
        )

    def execute(self, script, *, timeout=None, cancel_event=None):
        self.calls.append({"script": script, "timeout": timeout, "cancel_event": cancel_event})
        if self.handler is not None:
            return self.handler(script)
        if self.results:
            return self.results.pop(0)
        return ExecutionResult(hostname=self.hostname, exit_code=0, stdout="", stderr="")

    def close(self):
        self.closed = True

    @property
    def scripts(self) -> List[str]:
        return [call["script"] for call in self.calls]


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def executor(transport):
    return ScriptExecutor(transport, default_timeout=30.0)


@pytest.fixture
def client(executor):
    return HyperVClient(executor)
