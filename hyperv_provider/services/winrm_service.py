"""WinRM service for executing PowerShell scripts on a Hyper-V host."""
from __future__ import annotations

import base64
import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from time import monotonic, perf_counter
from typing import Any, Callable, Deque, Iterable, List, Optional, Tuple

from pypsrp.complex_objects import PSInvocationState
from pypsrp.exceptions import (
    AuthenticationError,
    WinRMError,
    WinRMTransportError as PyWinRMTransportError,
)
from pypsrp.powershell import PowerShell, RunspacePool
from pypsrp.wsman import WSMan
from requests.exceptions import RequestException

from ..core.errors import (
    RemoteScriptError,
    ScriptCancelledError,
    ScriptTimeoutError,
    WinRMAuthenticationError,
    WinRMTransportError,
)
from ..core.session import RANDOM_PLACEHOLDER, WinRMSession
from ..core.templates import ps_quote

logger = logging.getLogger(__name__)

_EXIT_SENTINEL = "__HYPERV_EXIT_CODE__:"

# Failures raised while talking to the host, as opposed to script failures.
_TRANSPORT_EXCEPTIONS = (
    AuthenticationError,
    WinRMError,
    RequestException,
    OSError,
    WinRMTransportError,
)


def _stringify(item: Any) -> str:
    """Best-effort string conversion for PSRP data."""

    if item is None:
        return ""
    if isinstance(item, str):
        return item
    if isinstance(item, bytes):
        return item.decode("utf-8", errors="replace")

    formatter = getattr(item, "to_string", None)
    if callable(formatter):
        try:
            text = formatter()
        except Exception:  # pragma: no cover - defensive logging
            logger.debug("Failed to format PSRP object via to_string", exc_info=True)
            text = None
        if text:
            return str(text)
    elif isinstance(formatter, str) and formatter.strip():
        return formatter

    message = getattr(item, "message", None)
    if isinstance(message, str) and message.strip():
        return message

    return str(item)


@dataclass
class _PSRPStreamCursor:
    """Track consumption of PowerShell pipeline and error streams."""

    hostname: str
    on_chunk: Callable[[str, str], None]
    output_index: int = 0
    error_index: int = 0
    information_index: int = 0
    stdout_bytes: int = 0
    stderr_bytes: int = 0
    exit_code: Optional[int] = None

    def drain(self, ps: PowerShell) -> None:
        """Emit new output/error records as text chunks."""

        for item in ps.output[self.output_index :]:
            self._emit("stdout", item)
        self.output_index = len(ps.output)

        # Write-Host and Write-Information never reach stdout so they cannot
        # corrupt a structured payload.
        information = getattr(ps.streams, "information", [])
        for record in information[self.information_index :]:
            text = _stringify(getattr(record, "message_data", None) or record)
            if text.strip():
                logger.debug("Information from %s: %s", self.hostname, text.rstrip())
        self.information_index = len(information)

        for item in ps.streams.error[self.error_index :]:
            self._emit("stderr", item)
        self.error_index = len(ps.streams.error)

    def _emit(self, stream: str, item: Any) -> None:
        text = _stringify(item)
        if not text:
            return

        if text.startswith(_EXIT_SENTINEL):
            parsed = text[len(_EXIT_SENTINEL) :].strip()
            try:
                self.exit_code = int(parsed)
            except ValueError:
                logger.warning(
                    "Received malformed exit code sentinel '%s' from %s", parsed, self.hostname
                )
            return

        payload = text if text.endswith("\n") else text + "\n"
        size = len(payload.encode("utf-8", errors="ignore"))
        if stream == "stdout":
            self.stdout_bytes += size
        else:
            self.stderr_bytes += size
        self.on_chunk(stream, payload)


def _format_output_preview(output: str, *, max_length: int = 400) -> str:
    """Return a newline-prefixed preview of command/script output."""
    if not output:
        return ""

    sanitized = output.replace("\r\n", "\n").strip()
    if not sanitized:
        return ""

    if len(sanitized) > max_length:
        preview = sanitized[: max_length - 3] + "..."
    else:
        preview = sanitized

    return "\n" + preview


@dataclass(slots=True)
class ExecutionResult:
    """Outcome of one script invocation."""

    hostname: str
    exit_code: int
    stdout: str
    stderr: str
    duration: float = 0.0
    staged_path: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.stderr.strip()


@dataclass
class _PooledConnection:
    """An opened WSMan transport and runspace pool checked out by one caller."""

    wsman: WSMan
    pool: RunspacePool
    created_at: float = field(default_factory=monotonic)
    last_used: float = field(default_factory=monotonic)
    uses: int = 0

    def is_stale(self, idle_timeout: float) -> bool:
        return monotonic() - self.last_used > idle_timeout


class RemoteInvocation:
    """A script the host has accepted whose results have not been collected.

    Owned by the thread that started it; call :meth:`wait` exactly once.
    """

    def __init__(
        self,
        service: "WinRMService",
        connection: _PooledConnection,
        ps: PowerShell,
        deadline: float,
        staged_path: Optional[str] = None,
    ) -> None:
        self._service = service
        self._connection = connection
        self._ps = ps
        self._deadline = deadline
        self._staged_path = staged_path
        self._started = perf_counter()
        self._collected = False

    @property
    def staged_path(self) -> Optional[str]:
        return self._staged_path

    @property
    def remaining(self) -> float:
        return max(0.0, self._deadline - monotonic())

    def wait(self, cancel_event: Optional[threading.Event] = None) -> ExecutionResult:
        """Block until the script finishes, the deadline passes or the caller cancels."""

        if self._collected:
            raise RuntimeError("Invocation results were already collected")
        self._collected = True

        service = self._service
        hostname = service.hostname
        stdout_chunks: List[str] = []
        stderr_chunks: List[str] = []

        def _collect(stream: str, payload: str) -> None:
            if stream == "stdout":
                stdout_chunks.append(payload)
            else:
                stderr_chunks.append(payload)

        cursor = _PSRPStreamCursor(hostname=hostname, on_chunk=_collect)

        try:
            service._poll(self._ps, cursor, self._deadline, cancel_event)
        except ScriptTimeoutError:
            # The remote pipeline is abandoned; the connection cannot be reused.
            service._discard(self._connection, graceful=False)
            raise
        except _TRANSPORT_EXCEPTIONS as exc:
            service._discard(self._connection, graceful=False)
            error = service._translate_error(exc, "executing script")
            if error is exc:
                raise
            raise error from exc
        except BaseException:
            service._discard(self._connection, graceful=False)
            raise

        closer = getattr(self._ps, "close", None)
        if callable(closer):
            try:
                closer()
            except Exception:  # pragma: no cover - best effort cleanup
                logger.debug("Failed to close PowerShell pipeline cleanly", exc_info=True)

        if self._staged_path:
            service._remove_staged_script(self._connection, self._staged_path)
        service._release(self._connection)

        exit_code = cursor.exit_code
        if exit_code is None:
            exit_code = 0 if not getattr(self._ps, "had_errors", False) else 1

        result = ExecutionResult(
            hostname=hostname,
            exit_code=exit_code,
            stdout=WinRMService._join_chunks(stdout_chunks),
            stderr=WinRMService._join_chunks(stderr_chunks),
            duration=perf_counter() - self._started,
            staged_path=self._staged_path,
        )
        service._log_result(result)
        return result


class WinRMService:
    """Execute PowerShell scripts on one Hyper-V host over WinRM (PSRP).

    Connections are opened lazily and pooled; each invocation checks one out
    exclusively, so the service can be shared by any number of threads.
    """

    def __init__(self, session: WinRMSession) -> None:
        self._session = session
        self._idle: Deque[_PooledConnection] = deque()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def session(self) -> WinRMSession:
        return self._session

    @property
    def hostname(self) -> str:
        return self._session.host

    def execute(
        self,
        script: str,
        *,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ExecutionResult:
        """Run a script and block until it finishes or its deadline passes."""

        truncated = script.strip().replace("\n", " ")
        if len(truncated) > 120:
            truncated = f"{truncated[:117]}..."
        logger.info("Executing PowerShell script on %s: %s", self.hostname, truncated)
        logger.debug("Full PowerShell script on %s: %s", self.hostname, script)

        invocation = self.begin_execute(script, timeout=timeout)
        return invocation.wait(cancel_event)

    def begin_execute(self, script: str, *, timeout: Optional[float] = None) -> RemoteInvocation:
        """Submit a script and return as soon as the host has accepted it."""

        timeout = self._session.timeout if timeout is None else float(timeout)
        if timeout <= 0:
            raise ScriptTimeoutError(f"Deadline for script on {self.hostname} already elapsed")

        deadline = monotonic() + timeout
        token = uuid.uuid4().hex

        for attempt in (1, 2):
            connection, reused = self._acquire(fresh=attempt > 1)
            try:
                return self._start(connection, script, token, deadline)
            except RemoteScriptError:
                # The host refused a helper script; the connection itself is healthy.
                self._release(connection)
                raise
            except ScriptTimeoutError:
                # TimeoutError is an OSError; keep it out of the transport branch.
                self._discard(connection, graceful=False)
                raise
            except _TRANSPORT_EXCEPTIONS as exc:
                self._discard(connection, graceful=False)
                error = self._translate_error(exc, "starting script")
                if reused and attempt == 1 and not isinstance(error, WinRMAuthenticationError):
                    logger.warning(
                        "Pooled connection to %s failed before the script started (%s); reconnecting",
                        self.hostname,
                        error,
                    )
                    continue
                if error is exc:
                    raise
                raise error from exc
            except BaseException:
                self._discard(connection, graceful=False)
                raise

        raise AssertionError("unreachable")  # pragma: no cover

    def close(self) -> None:
        """Dispose every idle pooled connection."""

        with self._lock:
            idle = list(self._idle)
            self._idle.clear()
            self._closed = True

        for connection in idle:
            self._discard(connection, graceful=True)
        logger.debug("Closed %d pooled connection(s) to %s", len(idle), self.hostname)

    def _start(
        self, connection: _PooledConnection, script: str, token: str, deadline: float
    ) -> RemoteInvocation:
        staged_path: Optional[str] = None
        command = script
        if len(script) > self._session.max_inline_script_length:
            staged_path = self._stage_script(connection, script, token, deadline)
            command = (
                "& ([ScriptBlock]::Create([System.IO.File]::ReadAllText("
                f"{ps_quote(staged_path)})))"
            )

        ps = PowerShell(connection.pool)
        ps.add_script(self._wrap_command(command))
        ps.begin_invoke()
        logger.debug("Host %s accepted PowerShell pipeline", self.hostname)
        return RemoteInvocation(self, connection, ps, deadline, staged_path)

    def _poll(
        self,
        ps: PowerShell,
        cursor: _PSRPStreamCursor,
        deadline: float,
        cancel_event: Optional[threading.Event],
    ) -> None:
        """Poll the running pipeline until it reaches a terminal state."""

        hostname = self.hostname
        last_state = None
        last_state_log = perf_counter()

        while True:
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(
                    "Invocation on %s cancelled by caller; abandoning remote pipeline", hostname
                )
                raise ScriptCancelledError(f"Script on {hostname} was cancelled before completion")

            remaining = deadline - monotonic()
            if remaining <= 0:
                logger.error(
                    "Script on %s exceeded its deadline; remote process state is unknown", hostname
                )
                raise ScriptTimeoutError(f"Script on {hostname} did not complete within the deadline")

            poll_timeout = int(max(1.0, min(float(self._session.poll_interval), remaining)))
            ps.poll_invoke(timeout=poll_timeout)
            cursor.drain(ps)

            state = getattr(ps, "state", None)
            if state != last_state:
                logger.debug(
                    "PowerShell state for %s transitioned to %s",
                    hostname,
                    self._normalize_state(state),
                )
                last_state = state

            now = perf_counter()
            if now - last_state_log >= 5.0:
                logger.debug(
                    "PowerShell invocation on %s still running (state=%s, %.0fs left)",
                    hostname,
                    self._normalize_state(state),
                    remaining,
                )
                last_state_log = now

            if self._state_complete(state):
                break

        ps.end_invoke()
        cursor.drain(ps)

    def _stage_script(
        self, connection: _PooledConnection, script: str, token: str, deadline: float
    ) -> str:
        """Upload an oversized script to the host and return its path."""

        path = self._session.script_path.replace(RANDOM_PLACEHOLDER, token)
        encoded = base64.b64encode(script.encode("utf-8")).decode("ascii")
        # Chunks must split on base64 quanta to decode independently.
        chunk_size = max(4, self._session.staging_chunk_size - self._session.staging_chunk_size % 4)
        chunks = [encoded[i : i + chunk_size] for i in range(0, len(encoded), chunk_size)]

        logger.info(
            "Staging %d character script on %s at %s in %d chunk(s)",
            len(script),
            self.hostname,
            path,
            len(chunks),
        )

        for index, chunk in enumerate(chunks):
            if monotonic() >= deadline:
                raise ScriptTimeoutError(
                    f"Deadline elapsed while staging script on {self.hostname}"
                )

            mode = "Create" if index == 0 else "Append"
            lines = ["$ErrorActionPreference = 'Stop'", f"$path = {ps_quote(path)}"]
            if index == 0:
                lines.append(
                    "New-Item -ItemType Directory -Force -Path (Split-Path -Path $path -Parent) | Out-Null"
                )
            lines.extend(
                [
                    f"$bytes = [System.Convert]::FromBase64String({ps_quote(chunk)})",
                    f"$stream = [System.IO.File]::Open($path, [System.IO.FileMode]::{mode})",
                    "try { $stream.Write($bytes, 0, $bytes.Length) } finally { $stream.Dispose() }",
                ]
            )
            try:
                self._run_blocking(
                    connection, "\n".join(lines), f"staging chunk {index + 1}/{len(chunks)}"
                )
            except RemoteScriptError:
                if index > 0:
                    self._remove_staged_script(connection, path)
                raise

        return path

    def _remove_staged_script(self, connection: _PooledConnection, path: str) -> None:
        try:
            self._run_blocking(
                connection,
                f"Remove-Item -LiteralPath {ps_quote(path)} -Force -ErrorAction SilentlyContinue",
                "removing staged script",
            )
        except (RemoteScriptError,) + _TRANSPORT_EXCEPTIONS as exc:
            logger.warning("Failed to remove staged script %s on %s: %s", path, self.hostname, exc)

    def _run_blocking(self, connection: _PooledConnection, script: str, action: str) -> None:
        """Run a short helper script synchronously on a checked-out connection."""

        ps = PowerShell(connection.pool)
        ps.add_script(script)
        ps.invoke()
        if ps.had_errors:
            errors = "; ".join(_stringify(item).strip() for item in ps.streams.error)
            logger.warning("Helper script failed while %s on %s: %s", action, self.hostname, errors)
            raise RemoteScriptError(
                self.hostname, 1, errors or "unknown error", script_name=action
            )

    def _translate_error(self, exc: BaseException, action: str) -> WinRMTransportError:
        """Map pypsrp and requests failures onto the transport error types."""

        if isinstance(exc, WinRMTransportError):
            return exc
        if isinstance(exc, AuthenticationError):
            logger.error("Authentication failure while %s on %s: %s", action, self.hostname, exc)
            return WinRMAuthenticationError(f"Authentication to {self.hostname} failed: {exc}")

        logger.error("Transport error while %s on %s: %s", action, self.hostname, exc)
        return WinRMTransportError(f"WinRM transport failure while {action} on {self.hostname}: {exc}")

    def _acquire(self, *, fresh: bool = False) -> Tuple[_PooledConnection, bool]:
        """Check out a pooled connection, opening a new one when none is usable."""

        stale: List[_PooledConnection] = []
        connection: Optional[_PooledConnection] = None

        if not fresh:
            with self._lock:
                while self._idle:
                    candidate = self._idle.pop()
                    if candidate.is_stale(self._session.idle_timeout):
                        stale.append(candidate)
                        continue
                    connection = candidate
                    break

        for candidate in stale:
            logger.info("Connection to %s is stale, creating new connection", self.hostname)
            self._discard(candidate, graceful=True)

        if connection is not None:
            connection.uses += 1
            logger.debug(
                "Reusing pooled connection to %s (uses=%d)", self.hostname, connection.uses
            )
            return connection, True

        connection = self._connect()
        connection.uses = 1
        return connection, False

    def _release(self, connection: _PooledConnection) -> None:
        connection.last_used = monotonic()
        with self._lock:
            if not self._closed and len(self._idle) < self._session.max_idle_connections:
                self._idle.append(connection)
                return
        self._discard(connection, graceful=True)

    def _discard(self, connection: _PooledConnection, *, graceful: bool) -> None:
        """Drop a connection; only graceful discards talk to the host."""

        if graceful:
            try:
                connection.pool.close()
            except Exception:  # pragma: no cover - best effort cleanup
                logger.debug("Failed to close runspace pool cleanly", exc_info=True)
        self._dispose_session(connection.wsman)

    def _connect(self) -> _PooledConnection:
        wsman = self._create_session()
        pool = self._open_runspace_pool(wsman)
        return _PooledConnection(wsman=wsman, pool=pool)

    def _create_session(self) -> WSMan:
        """Create a new WSMan session using the configured credentials."""

        session = self._session
        connection_timeout = int(max(1.0, float(session.connection_timeout)))
        operation_timeout = int(max(1.0, float(session.operation_timeout)))
        read_timeout = int(max(operation_timeout + 1.0, float(session.read_timeout)))

        logger.info(
            "Creating WinRM (PSRP) session to %s (port=%s, transport=%s, ssl=%s, username=%s)",
            session.host,
            session.port,
            session.auth,
            session.use_ssl,
            session.username or "<unspecified>",
        )
        logger.debug(
            "WSMan timeouts for %s -> connection=%ss, operation=%ss, read=%ss",
            session.host,
            connection_timeout,
            operation_timeout,
            read_timeout,
        )

        options = {
            "port": session.port,
            "username": session.username,
            "password": session.password,
            "auth": session.auth,
            "ssl": session.use_ssl,
            "cert_validation": session.cert_validation,
            "connection_timeout": connection_timeout,
            "operation_timeout": operation_timeout,
            "read_timeout": read_timeout,
        }
        if session.auth == "certificate":
            options["certificate_pem"] = session.certificate_path
            options["certificate_key_pem"] = session.certificate_key_path
        if session.negotiate_service:
            options["negotiate_service"] = session.negotiate_service

        try:
            wsman = WSMan(session.host, **options)
        except AuthenticationError as exc:  # pragma: no cover - network heavy
            logger.error("Authentication failed while connecting to %s: %s", session.host, exc)
            raise WinRMAuthenticationError(str(exc)) from exc
        except (PyWinRMTransportError, WinRMError, ValueError) as exc:
            logger.error("Failed to create WSMan session to %s: %s", session.host, exc)
            raise WinRMTransportError(str(exc)) from exc

        logger.debug("Created WSMan session to %s", session.host)
        return wsman

    def _open_runspace_pool(self, wsman: WSMan) -> RunspacePool:
        """Open a runspace pool and translate connection errors."""

        hostname = self.hostname
        start_time = perf_counter()
        pool = RunspacePool(wsman)
        try:
            pool.open()
        except AuthenticationError as exc:
            logger.error(
                "Authentication failure while opening runspace pool on %s: %s",
                hostname,
                exc,
            )
            self._dispose_session(wsman)
            raise WinRMAuthenticationError(str(exc)) from exc
        except (PyWinRMTransportError, WinRMError, RequestException, OSError) as exc:
            logger.error(
                "Transport error while opening runspace pool on %s: %s",
                hostname,
                exc,
            )
            self._dispose_session(wsman)
            raise WinRMTransportError(str(exc)) from exc

        duration = perf_counter() - start_time
        logger.debug(
            "Runspace pool on %s opened in %.2fs (max_envelope=%s)",
            hostname,
            duration,
            getattr(pool, "max_envelope_size", "unknown"),
        )

        return pool

    def _dispose_session(self, session: WSMan) -> None:
        """Attempt to close transport resources for a WSMan session."""

        closer = getattr(session, "close", None)
        if callable(closer):
            try:
                closer()
            except Exception:  # pragma: no cover - best effort cleanup
                logger.debug("Failed to close WSMan session cleanly", exc_info=True)

    def _log_result(self, result: ExecutionResult) -> None:
        hostname = result.hostname
        logger.info(
            "Command on %s completed in %.2fs with exit code %s (stdout=%d bytes, stderr=%d bytes)",
            hostname,
            result.duration,
            result.exit_code,
            len(result.stdout.encode("utf-8")),
            len(result.stderr.encode("utf-8")),
        )

        stdout_preview = _format_output_preview(result.stdout)
        if stdout_preview:
            logger.info("Command stdout preview on %s:%s", hostname, stdout_preview)
        else:
            logger.info("Command stdout on %s was empty", hostname)

        stderr_preview = _format_output_preview(result.stderr)
        if stderr_preview:
            level = logger.warning if result.exit_code != 0 else logger.info
            level("Command stderr preview on %s:%s", hostname, stderr_preview)

        if result.exit_code != 0:
            logger.warning("Command on %s exited with non-zero status %s", hostname, result.exit_code)

    @staticmethod
    def _normalize_state(state: object) -> str:
        """Return a normalized string representation of a PS invocation state."""

        if state is None:
            return "unknown"
        for name, value in vars(PSInvocationState).items():
            if name.isupper() and value == state:
                return name.lower()
        return str(state).lower()

    @staticmethod
    def _state_complete(state: object) -> bool:
        """Return True when the invocation state indicates completion."""

        terminal_states = {
            getattr(PSInvocationState, "COMPLETED", None),
            getattr(PSInvocationState, "FAILED", None),
            getattr(PSInvocationState, "STOPPED", None),
            getattr(PSInvocationState, "DISCONNECTED", None),
        }
        normalized_terminals = {value for value in terminal_states if value is not None}
        if normalized_terminals and state in normalized_terminals:
            return True

        normalized = WinRMService._normalize_state(state)
        return normalized in {"completed", "failed", "stopped", "disconnected"}

    @staticmethod
    def _join_chunks(chunks: Iterable[str]) -> str:
        """Combine collected string chunks preserving order."""

        return "".join(chunk for chunk in chunks if chunk)

    @staticmethod
    def _wrap_command(command: str) -> str:
        """Embed the script in boilerplate that reports its exit code."""

        sentinel_line = f'Write-Output "{_EXIT_SENTINEL}$HyperVExitCode"'
        boilerplate = [
            "$ErrorActionPreference = 'Continue'",
            "$ProgressPreference = 'SilentlyContinue'",
            "$global:LASTEXITCODE = 0",
            "$HyperVExitCode = 0",
            "try {",
            # Not re-indented: multi-line string literals in the script must survive.
            "    & {",
            command,
            "    }",
            "    if ($?) {",
            "        $HyperVExitCode = $LASTEXITCODE",
            "    } else {",
            "        if ($LASTEXITCODE -ne $null -and $LASTEXITCODE -ne 0) {",
            "            $HyperVExitCode = $LASTEXITCODE",
            "        } else {",
            "            $HyperVExitCode = 1",
            "        }",
            "    }",
            "} catch {",
            "    $HyperVExitCode = 1",
            "    Write-Error $_",
            "}",
            "if ($HyperVExitCode -eq $null) { $HyperVExitCode = 0 }",
            sentinel_line,
        ]

        return "\n".join(boilerplate)


__all__ = [
    "ExecutionResult",
    "RemoteInvocation",
    "WinRMService",
]
