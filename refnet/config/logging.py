"""
Logging configuration.

Configures loguru sinks with rotation and retention policies.
"""

import sys

from loguru import logger

from refnet.config.settings import Settings, settings


def setup_logging(config: Settings | None = None) -> None:
    """Configure logger with stderr and rotating file sinks."""
    config = config or settings

    logger.remove()
    logger.add(sys.stderr, level=config.log_level)
    logger.add(
        config.log_file,
        rotation="1 day",
        retention="7 days",
        level=config.log_level,
        encoding="utf-8",
    )

    logger.info(
        f"Logging configured (level={config.log_level}, "
        f"environment={config.environment})"
    )
