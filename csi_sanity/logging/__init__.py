"""Logging setup for csi-sanity."""

import logging
import sys
from typing import TextIO

from csi_sanity.logging.formatters import StepFormatter

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

for _noisy_module in ["grpc", "parse", "behave"]:
    logging.getLogger(_noisy_module).setLevel(logging.WARNING)


def configure_logging(level: str = "info", stream: TextIO | None = None) -> None:
    """Route csi_sanity log records to a stream.

    Parameters
    ----------
    level : str
        Log level name (debug, info, warning, error)
    stream : TextIO | None
        Destination stream, stderr by default
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StepFormatter(DEFAULT_FORMAT))

    package_logger = logging.getLogger("csi_sanity")
    for existing in list(package_logger.handlers):
        package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.setLevel(log_level)


__all__ = ["StepFormatter", "configure_logging"]
