"""Creation and removal of mount target and staging locations.

A location is provisioned by one of three strategies, resolved once per
operation:

- ExternalCommand: run a command for the path; stdout is the resulting path
- Callback: call a user function with the path
- DefaultStrategy: mkdir / recursive removal on the local host

A non-blank command takes precedence over a callback; the default applies
only when neither is configured.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import stat
import subprocess
from abc import ABC, abstractmethod
from typing import Callable

from csi_sanity.constants import DEFAULT_PATH_CMD_TIMEOUT_SECONDS, DIRECTORY_MODE
from csi_sanity.exceptions import CommandTimeoutError, ProvisioningError

logger = logging.getLogger(__name__)

CreateCallback = Callable[[str], str]
RemoveCallback = Callable[[str], None]


PATH_PLACEHOLDER = "{path}"


def command_argv(command: str, path: str) -> list[str]:
    """Build the argument vector for a provisioning command.

    A command naming an existing file is run as a single executable with
    ``path`` as its only argument, even when the file name contains spaces.
    Otherwise the command line is split with shell quoting rules:

    - a bare executable gets ``path`` appended as its only argument
    - ``{path}`` in any argument is replaced with ``path``
    - a command line with arguments and no placeholder runs as given

    Parameters
    ----------
    command : str
        Configured command line
    path : str
        Location being provisioned

    Returns
    -------
    list[str]
        Argument vector for subprocess

    Raises
    ------
    ValueError
        If the command is blank or has unbalanced quotes
    """
    if os.path.isfile(command):
        return [command, path]

    words = shlex.split(command)
    if not words:
        raise ValueError("command is blank")
    if len(words) == 1:
        return [words[0], path]
    if any(PATH_PLACEHOLDER in word for word in words):
        return [word.replace(PATH_PLACEHOLDER, path) for word in words]
    return words


class ProvisioningStrategy(ABC):
    """How a location is created or removed."""

    @abstractmethod
    def create(self, path: str) -> str:
        """Create the location and return the path tests should use."""

    @abstractmethod
    def remove(self, path: str) -> None:
        """Remove a location previously returned by create."""

    @abstractmethod
    def describe(self) -> str:
        """Short description used in error messages."""


class ExternalCommand(ProvisioningStrategy):
    """Provision locations by running a command on the harness host.

    Parameters
    ----------
    command : str
        Executable or command line, see ``command_argv``
    timeout : float | None
        Hard deadline in seconds; the process is killed when it expires
    """

    def __init__(
        self, command: str, timeout: float | None = DEFAULT_PATH_CMD_TIMEOUT_SECONDS
    ) -> None:
        self.command = command
        self.timeout = timeout

    def describe(self) -> str:
        return f"command {self.command!r}"

    def _run(self, path: str, action: str) -> str:
        try:
            argv = command_argv(self.command, path)
        except ValueError as e:
            raise ProvisioningError(
                f"path {action} command {self.command!r} is invalid: {e}",
                path=path,
                strategy=self.describe(),
            ) from e
        logger.debug("Running %s command %s (timeout=%ss)", action, argv, self.timeout)

        try:
            result = subprocess.run(
                argv,
                stdout=subprocess.PIPE,
                stderr=None,
                text=True,
                timeout=self.timeout,
                check=True,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandTimeoutError(
                f"path {action} command {self.command} timed out after {self.timeout}s",
                path=path,
                strategy=self.describe(),
            ) from e
        except subprocess.CalledProcessError as e:
            raise ProvisioningError(
                f"path {action} command {self.command} failed: {e}",
                path=path,
                strategy=self.describe(),
            ) from e
        except OSError as e:
            raise ProvisioningError(
                f"path {action} command {self.command} failed: {e}",
                path=path,
                strategy=self.describe(),
            ) from e

        return result.stdout

    def create(self, path: str) -> str:
        return self._run(path, "creation").strip()

    def remove(self, path: str) -> None:
        self._run(path, "removal")


class Callback(ProvisioningStrategy):
    """Provision locations through a user-supplied function.

    The function's return value and exceptions are passed through unchanged.

    Parameters
    ----------
    fn : Callable[[str], str] | Callable[[str], None]
        Creation callback returning the new path, or removal callback
    """

    def __init__(self, fn: CreateCallback | RemoveCallback) -> None:
        self.fn = fn

    def describe(self) -> str:
        name = getattr(self.fn, "__qualname__", None) or repr(self.fn)
        return f"callback {name}"

    def create(self, path: str) -> str:
        return self.fn(path)

    def remove(self, path: str) -> None:
        self.fn(path)


class DefaultStrategy(ProvisioningStrategy):
    """Provision locations as directories on the local filesystem."""

    def describe(self) -> str:
        return "default"

    def create(self, path: str) -> str:
        try:
            file_info = os.stat(path)
        except FileNotFoundError:
            os.makedirs(path, mode=DIRECTORY_MODE, exist_ok=True)
            logger.debug("Created directory %s", path)
            return path

        if not stat.S_ISDIR(file_info.st_mode):
            raise NotADirectoryError(f"Target location {path} is not a directory")
        return path

    def remove(self, path: str) -> None:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
            return
        try:
            os.remove(path)
        except FileNotFoundError:
            pass


def resolve_strategy(
    command: str | None = None,
    callback: CreateCallback | RemoveCallback | None = None,
    timeout: float | None = DEFAULT_PATH_CMD_TIMEOUT_SECONDS,
) -> ProvisioningStrategy:
    """Pick the strategy for one operation.

    Parameters
    ----------
    command : str | None
        External command; wins when it is not blank
    callback : Callable | None
        User function; used when no command is configured
    timeout : float | None
        Deadline for the command strategy

    Returns
    -------
    ProvisioningStrategy
        ExternalCommand, Callback or DefaultStrategy
    """
    if command and command.strip():
        return ExternalCommand(command, timeout)
    if callback is not None:
        return Callback(callback)
    return DefaultStrategy()


def create_location(
    path: str,
    command: str | None = None,
    callback: CreateCallback | None = None,
    timeout: float | None = DEFAULT_PATH_CMD_TIMEOUT_SECONDS,
    strategy: ProvisioningStrategy | None = None,
) -> str:
    """Create a mount target or staging location.

    Parameters
    ----------
    path : str
        Configured location; empty disables provisioning
    command : str | None
        Creation command, see ``command_argv``
    callback : Callable[[str], str] | None
        Creation callback returning the new path
    timeout : float | None
        Deadline in seconds for the creation command
    strategy : ProvisioningStrategy | None
        Already resolved strategy; overrides command, callback and timeout

    Returns
    -------
    str
        Path the tests should use (empty when path is empty)

    Raises
    ------
    CommandTimeoutError
        If the creation command exceeds its deadline
    ProvisioningError
        If the creation command fails
    NotADirectoryError
        If the default strategy finds a non-directory at path
    """
    if not path:
        return ""

    if strategy is None:
        strategy = resolve_strategy(command, callback, timeout)
    return strategy.create(path)


def remove_location(
    path: str,
    command: str | None = None,
    callback: RemoveCallback | None = None,
    timeout: float | None = DEFAULT_PATH_CMD_TIMEOUT_SECONDS,
    strategy: ProvisioningStrategy | None = None,
) -> None:
    """Remove a location created by create_location.

    Parameters
    ----------
    path : str
        Location to remove; empty is a no-op
    command : str | None
        Removal command, see ``command_argv``; output is ignored
    callback : Callable[[str], None] | None
        Removal callback
    timeout : float | None
        Deadline in seconds for the removal command
    strategy : ProvisioningStrategy | None
        Already resolved strategy; overrides command, callback and timeout

    Raises
    ------
    CommandTimeoutError
        If the removal command exceeds its deadline
    ProvisioningError
        If the removal command fails
    OSError
        If the default removal fails
    """
    if not path:
        return

    if strategy is None:
        strategy = resolve_strategy(command, callback, timeout)
    strategy.remove(path)
