"""Exceptions raised by the sanity harness."""

from __future__ import annotations


class SanityError(Exception):
    """Base class for harness errors."""

    pass


class ConfigurationError(SanityError):
    """Raised when configuration input is malformed.

    Configuration errors are fatal: the suite aborts before any scenario runs.
    """

    pass


class SecretsError(ConfigurationError):
    """Raised when the secrets file cannot be read or parsed."""

    pass


class ProvisioningError(SanityError):
    """Raised when a target or staging location cannot be created or removed.

    Parameters
    ----------
    message : str
        Description of the failure
    path : str
        Location the operation was applied to
    strategy : str
        Description of the provisioning strategy in play
    """

    def __init__(self, message: str, path: str = "", strategy: str = "") -> None:
        super().__init__(message)
        self.path = path
        self.strategy = strategy


class CommandTimeoutError(ProvisioningError):
    """Raised when an external provisioning command exceeds its deadline."""

    pass


class DialError(SanityError):
    """Raised when a connection to the plugin cannot be established.

    Parameters
    ----------
    address : str
        Endpoint address that was dialed
    reason : str
        Description of the failure
    """

    def __init__(self, address: str, reason: str) -> None:
        super().__init__(f"failed to connect to CSI driver at {address}: {reason}")
        self.address = address
        self.reason = reason


class PreconditionError(SanityError):
    """Raised when scenario setup fails; the scenario does not run.

    Parameters
    ----------
    step : str
        Setup step that failed (e.g. "connect", "create target path")
    message : str
        Description including the path or address involved
    """

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"{step}: {message}")
        self.step = step


class CleanupError(SanityError):
    """Raised after teardown when one or more removals failed.

    Every removal is attempted before this is raised.

    Parameters
    ----------
    errors : list[Exception]
        Failures in the order they occurred
    """

    def __init__(self, errors: list[Exception]) -> None:
        summary = "; ".join(str(e) for e in errors)
        super().__init__(f"teardown completed with {len(errors)} error(s): {summary}")
        self.errors = errors
