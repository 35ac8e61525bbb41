"""Process-level wiring for logging, tracing and the shared HTTP client."""

import logging

from .logging_config import setup_logging
from .openrouter import close_shared_client
from .telemetry import setup_telemetry, shutdown_telemetry

logger = logging.getLogger(__name__)

_configured = False


def configure_runtime(force_logging: bool = False) -> None:
    """
    Set up logging and tracing once per process.

    Logging is configured only when the root logger has no handlers yet, so
    an embedding application's own logging setup is kept. Pass
    ``force_logging`` to replace it anyway. Later calls do nothing.
    """
    global _configured
    if _configured:
        return

    if force_logging or not logging.getLogger().handlers:
        setup_logging()
    setup_telemetry()
    _configured = True


async def shutdown_runtime() -> None:
    """Close the shared HTTP client and flush pending spans."""
    global _configured

    await close_shared_client()
    shutdown_telemetry()
    _configured = False
    logger.info("Runtime shut down")
