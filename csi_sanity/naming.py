"""Collision-free resource names for a sanity run."""

import logging
import os

logger = logging.getLogger(__name__)

SUFFIX_BYTES = 8


def new_suffix() -> str:
    """Generate a random suffix from the OS random source.

    Returns
    -------
    str
        Two 8-character upper-case hex groups joined by a hyphen, or an
        empty string if the random source is unavailable
    """
    try:
        raw = os.urandom(SUFFIX_BYTES)
    except (OSError, NotImplementedError) as e:
        logger.warning("Random source unavailable, names will carry no suffix: %s", e)
        return ""

    half = SUFFIX_BYTES // 2
    return f"{raw[:half].hex().upper()}-{raw[half:].hex().upper()}"


class UniqueNames:
    """Derives resource names from one suffix generated at construction.

    A sanity session owns exactly one instance, so every name produced
    during a run carries the same suffix.

    Parameters
    ----------
    suffix : str | None
        Suffix to use; a new random one is generated when None
    """

    def __init__(self, suffix: str | None = None) -> None:
        self.suffix = new_suffix() if suffix is None else suffix

    def unique_string(self, prefix: str) -> str:
        """Append the run's suffix to a prefix.

        Parameters
        ----------
        prefix : str
            Resource name prefix, e.g. "sanity-node-full"

        Returns
        -------
        str
            ``prefix-SUFFIX``, or ``prefix`` alone when no suffix is available
        """
        if not self.suffix:
            return prefix
        return f"{prefix}-{self.suffix}"
