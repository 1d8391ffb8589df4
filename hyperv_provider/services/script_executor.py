"""Render, run and classify PowerShell scripts on the Hyper-V host."""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel

from ..core.errors import RemoteScriptError, ScriptTimeoutError
from ..core.templates import ScriptTemplate
from .result_decoder import decode_result, decode_result_list
from .winrm_service import ExecutionResult, WinRMService

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=BaseModel)

# Extra time the asyncio layer allows beyond the transport deadline before
# it gives up on the worker thread.
CANCEL_GRACE_SECONDS = 5.0


class ScriptExecutor:
    """Run templated scripts through a shared transport."""

    def __init__(self, transport: WinRMService, default_timeout: Optional[float] = None):
        self._transport = transport
        self._default_timeout = (
            float(default_timeout) if default_timeout is not None else transport.session.timeout
        )

    @property
    def transport(self) -> WinRMService:
        return self._transport

    @property
    def default_timeout(self) -> float:
        return self._default_timeout

    async def run_with_result(
        self,
        template: ScriptTemplate,
        args: Any,
        result_type: Type[ResultT],
        *,
        timeout: Optional[float] = None,
        **extra: Any,
    ) -> ResultT:
        """Run a lookup script and decode its JSON output into ``result_type``."""

        result = await self._execute(template, args, timeout, extra)
        return decode_result(result.stdout, result_type)

    async def run_with_result_list(
        self,
        template: ScriptTemplate,
        args: Any,
        item_type: Type[ResultT],
        *,
        timeout: Optional[float] = None,
        **extra: Any,
    ) -> List[ResultT]:
        result = await self._execute(template, args, timeout, extra)
        return decode_result_list(result.stdout, item_type)

    async def run_fire_and_forget(
        self,
        template: ScriptTemplate,
        args: Any,
        *,
        timeout: Optional[float] = None,
        **extra: Any,
    ) -> ExecutionResult:
        """Run a mutating script; success is a zero exit code and clean stderr."""

        return await self._execute(template, args, timeout, extra)

    async def _execute(
        self,
        template: ScriptTemplate,
        args: Any,
        timeout: Optional[float],
        extra: dict,
    ) -> ExecutionResult:
        script = template.render(args, **extra)
        deadline = self._default_timeout if timeout is None else float(timeout)
        hostname = self._transport.hostname
        cancel_event = threading.Event()

        logger.info("Running %s on %s (timeout=%.0fs)", template.name, hostname, deadline)

        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(
                    self._transport.execute,
                    script,
                    timeout=deadline,
                    cancel_event=cancel_event,
                ),
                timeout=deadline + CANCEL_GRACE_SECONDS,
            )
        except asyncio.TimeoutError as exc:
            # The worker thread is still polling; tell it to stop.
            cancel_event.set()
            if isinstance(exc, ScriptTimeoutError):
                raise
            raise ScriptTimeoutError(
                f"Script {template.name} on {hostname} did not complete within {deadline:.0f}s"
            ) from exc
        except asyncio.CancelledError:
            cancel_event.set()
            logger.warning("Script %s on %s cancelled by caller", template.name, hostname)
            raise

        self._check(template, result)
        return result

    @staticmethod
    def _check(template: ScriptTemplate, result: ExecutionResult) -> None:
        if result.succeeded:
            return

        logger.error(
            "Script %s on %s failed (exit code %s)",
            template.name,
            result.hostname,
            result.exit_code,
        )
        raise RemoteScriptError(
            result.hostname,
            result.exit_code,
            result.stderr,
            result.stdout,
            script_name=template.name,
        )


__all__ = ["CANCEL_GRACE_SECONDS", "ScriptExecutor"]
