"""
biliaudio.logging - Centralized logging configuration.

Encoder diagnostics and per-part failures are reported through the package
logger; verbose mode adds request and pipeline tracing.
"""

from __future__ import annotations

import logging

logger = logging.getLogger("biliaudio")


def configure_logging(verbose: bool = False) -> None:
    """Configure logging for the biliaudio package.

    Args:
        verbose: If True, enable DEBUG level logging; otherwise WARNING level
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )
    logger.setLevel(level)
