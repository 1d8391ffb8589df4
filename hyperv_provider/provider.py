"""Entry point that builds a Hyper-V client from configuration."""
from __future__ import annotations

import logging
from typing import Optional

from .core import config as config_module
from .core.config import Settings
from .core.config_validation import run_config_checks
from .core.errors import ArgumentValidationError
from .core.protocols import Client
from .services.client import HyperVClient
from .services.script_executor import ScriptExecutor
from .services.winrm_service import WinRMService

logger = logging.getLogger(__name__)


def configure_logging(debug: Optional[bool] = None) -> None:
    """Configure root logging the way the provider process expects."""

    if debug is None:
        debug = config_module.settings.debug
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_client(settings: Optional[Settings] = None) -> Client:
    """Validate configuration and return a client bound to the configured host."""

    if settings is None:
        result = run_config_checks()
        settings = config_module.settings
    else:
        result = run_config_checks(custom_settings=settings)

    for warning in result.warnings:
        logger.warning("Configuration warning: %s %s", warning.message, warning.hint or "")

    if result.has_errors:
        for error in result.errors:
            logger.error("Configuration error: %s %s", error.message, error.hint or "")
        raise ArgumentValidationError(
            "Invalid Hyper-V provider configuration: "
            + "; ".join(error.message for error in result.errors)
        )

    session = settings.to_session()
    logger.info("Configured Hyper-V client for %s", session.endpoint)
    transport = WinRMService(session)
    return HyperVClient(ScriptExecutor(transport, session.timeout))


__all__ = ["configure_logging", "create_client"]
