"""Logfire observability initialization and instrumentation."""

import logging

import logfire

from mongorepo import __version__
from mongorepo.config import Settings

logger = logging.getLogger(__name__)


def initialize_logfire(settings: Settings) -> bool:
    """
    Initialize Logfire and instrument the MongoDB driver.

    Call once at process start, before any repository is constructed, so the
    pymongo command listener is registered for every client.

    This function configures Logfire and instruments:
    - pymongo (one span per command sent to the server)
    - Python logging (bridges to Logfire)

    Args:
        settings: Application settings containing the Logfire token

    Returns:
        True when Logfire was configured, False otherwise.
    """
    if not settings.logfire_token:
        logger.warning("Logfire token not set - observability disabled")
        return False

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="mongorepo",
            service_version=__version__,
        )

        logfire.instrument_pymongo()

        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        logger.info("Logfire tracking initialized")
        return True

    except Exception as e:
        # Observability is optional
        logger.warning(f"Failed to initialize Logfire: {e}")
        return False
