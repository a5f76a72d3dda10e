"""Sanity configuration: the Config record and its YAML loaders."""

from __future__ import annotations

import copy
import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml
from omegaconf import OmegaConf
from omegaconf.errors import OmegaConfBaseException

from csi_sanity.constants import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_FILE,
    DEFAULT_PATH_CMD_TIMEOUT_SECONDS,
    DEFAULT_STAGING_PATH,
    DEFAULT_TARGET_PATH,
    DEFAULT_TEST_VOLUME_SIZE,
)
from csi_sanity.exceptions import ConfigurationError
from csi_sanity.provisioning import ProvisioningStrategy, resolve_strategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Config:
    """Configuration for a sanity run.

    Supplied by the user before the suite starts and never mutated by the
    harness; use ``replace`` to derive a modified copy.

    Creation and removal of the target and staging locations can be
    customized per operation with a command (see ``command_argv``,
    stdout is the new path) or a callback. A command takes precedence over a
    callback; when neither is set, directories are created and removed on
    the local host.
    """

    address: str = ""
    controller_address: str = ""
    target_path: str = DEFAULT_TARGET_PATH
    staging_path: str = DEFAULT_STAGING_PATH
    secrets_file: str = ""

    test_volume_size: int = DEFAULT_TEST_VOLUME_SIZE
    test_volume_parameters_file: str = ""
    test_volume_parameters: dict[str, str] = field(default_factory=dict, hash=False)
    test_node_volume_attach_limit: bool = False

    junit_directory: str = ""

    create_target_path_cmd: str = ""
    create_staging_path_cmd: str = ""
    create_target_path_cmd_timeout: float = DEFAULT_PATH_CMD_TIMEOUT_SECONDS
    create_staging_path_cmd_timeout: float = DEFAULT_PATH_CMD_TIMEOUT_SECONDS
    create_target_dir: Callable[[str], str] | None = field(default=None, compare=False)
    create_staging_dir: Callable[[str], str] | None = field(default=None, compare=False)

    remove_target_path_cmd: str = ""
    remove_staging_path_cmd: str = ""
    remove_target_path_cmd_timeout: float = DEFAULT_PATH_CMD_TIMEOUT_SECONDS
    remove_staging_path_cmd_timeout: float = DEFAULT_PATH_CMD_TIMEOUT_SECONDS
    remove_target_path: Callable[[str], None] | None = field(default=None, compare=False)
    remove_staging_path: Callable[[str], None] | None = field(default=None, compare=False)

    def replace(self, **changes: Any) -> "Config":
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)

    def create_target_strategy(self) -> ProvisioningStrategy:
        return resolve_strategy(
            self.create_target_path_cmd,
            self.create_target_dir,
            self.create_target_path_cmd_timeout,
        )

    def create_staging_strategy(self) -> ProvisioningStrategy:
        return resolve_strategy(
            self.create_staging_path_cmd,
            self.create_staging_dir,
            self.create_staging_path_cmd_timeout,
        )

    def remove_target_strategy(self) -> ProvisioningStrategy:
        return resolve_strategy(
            self.remove_target_path_cmd,
            self.remove_target_path,
            self.remove_target_path_cmd_timeout,
        )

    def remove_staging_strategy(self) -> ProvisioningStrategy:
        return resolve_strategy(
            self.remove_staging_path_cmd,
            self.remove_staging_path,
            self.remove_staging_path_cmd_timeout,
        )

    def with_test_volume_parameters_file(self) -> "Config":
        """Merge test_volume_parameters_file into test_volume_parameters.

        Returns
        -------
        Config
            This config when no file is set, otherwise a copy with the file's
            parameters merged over the existing ones

        Raises
        ------
        ConfigurationError
            If the parameters file cannot be read or parsed
        """
        if not self.test_volume_parameters_file:
            return self

        parameters = dict(self.test_volume_parameters)
        parameters.update(load_test_volume_parameters(self.test_volume_parameters_file))
        return self.replace(test_volume_parameters=parameters)


def load_test_volume_parameters(path: str) -> dict[str, str]:
    """Load the flat parameter mapping passed to CreateVolume.

    Parameters
    ----------
    path : str
        Path to a YAML file containing a mapping of strings

    Returns
    -------
    dict[str, str]
        Parameters keyed by name

    Raises
    ------
    ConfigurationError
        If the file cannot be read, is not valid YAML, or is not a flat mapping
    """
    try:
        with open(path) as f:
            document = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"failed to read file {path!r}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"error unmarshaling yaml in {path!r}: {e}") from e

    if document is None:
        return {}

    if not isinstance(document, dict):
        raise ConfigurationError(
            f"test volume parameters in {path!r} must be a mapping, "
            f"got {type(document).__name__}"
        )

    parameters: dict[str, str] = {}
    for key, value in document.items():
        if isinstance(value, (dict, list)) or value is None:
            raise ConfigurationError(
                f"test volume parameter {key!r} in {path!r} must be a string"
            )
        parameters[str(key)] = str(value).lower() if isinstance(value, bool) else str(value)
    return parameters


_STRING_FIELDS = (
    "address",
    "controller_address",
    "target_path",
    "staging_path",
    "secrets_file",
    "test_volume_parameters_file",
    "junit_directory",
    "create_target_path_cmd",
    "create_staging_path_cmd",
    "remove_target_path_cmd",
    "remove_staging_path_cmd",
)

_TIMEOUT_FIELDS = (
    "create_target_path_cmd_timeout",
    "create_staging_path_cmd_timeout",
    "remove_target_path_cmd_timeout",
    "remove_staging_path_cmd_timeout",
)

_FILE_FIELDS = _STRING_FIELDS + _TIMEOUT_FIELDS + (
    "test_volume_size",
    "test_volume_parameters",
    "test_node_volume_attach_limit",
)


class ConfigLoader:
    """Load YAML configuration and merge it with defaults and overrides."""

    def __init__(self) -> None:
        self.BUILT_IN_DEFAULTS: dict[str, Any] = {
            "address": "",
            "controller_address": "",
            "target_path": DEFAULT_TARGET_PATH,
            "staging_path": DEFAULT_STAGING_PATH,
            "secrets_file": "",
            "test_volume_size": DEFAULT_TEST_VOLUME_SIZE,
            "test_volume_parameters_file": "",
            "test_volume_parameters": {},
            "test_node_volume_attach_limit": False,
            "junit_directory": "",
            "create_target_path_cmd": "",
            "create_staging_path_cmd": "",
            "remove_target_path_cmd": "",
            "remove_staging_path_cmd": "",
            **{name: DEFAULT_PATH_CMD_TIMEOUT_SECONDS for name in _TIMEOUT_FIELDS},
        }

    def load_config(self, config_path: str | None = None) -> dict[str, Any]:
        """Load configuration values from a YAML file.

        Parameters
        ----------
        config_path : str | None
            Path to YAML config file. If None, checks CSI_SANITY_CONFIG env
            var, then falls back to csi-sanity.yaml

        Returns
        -------
        dict[str, Any]
            Values from the file with interpolations resolved; empty when the
            file does not exist

        Raises
        ------
        ConfigurationError
            If the file is unreadable, not valid YAML, or has unresolvable
            interpolations
        """
        if config_path is None:
            config_path = os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_FILE)

        config_file = Path(config_path)

        if not config_file.exists():
            logger.debug("Config file %s not found, using defaults", config_file)
            return {}

        try:
            cfg = OmegaConf.load(config_file)
        except yaml.YAMLError as e:
            logger.error("Failed to parse YAML config file %s: %s", config_file, e)
            raise ConfigurationError(f"Invalid YAML in {config_file}: {e}") from e
        except OSError as e:
            logger.error("Failed to read config file %s: %s", config_file, e)
            raise ConfigurationError(
                f"Failed to read config file {config_file}: {e}"
            ) from e

        if cfg is None:
            return {}

        try:
            config = OmegaConf.to_container(cfg, resolve=True, throw_on_missing=True)
        except OmegaConfBaseException as e:
            logger.error("Failed to resolve configuration variables: %s", e)
            raise ConfigurationError(
                f"Configuration variable resolution error in {config_file}: {e}"
            ) from e

        if not isinstance(config, dict):
            raise ConfigurationError(f"{config_file} must contain a mapping")

        return config

    def merge(
        self, file_values: Mapping[str, Any], overrides: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        """Merge built-in defaults, file values and explicit overrides.

        Parameters
        ----------
        file_values : Mapping[str, Any]
            Values loaded from the config file
        overrides : Mapping[str, Any] | None
            Explicit values (CLI flags, behave userdata); None values are skipped

        Returns
        -------
        dict[str, Any]
            Merged values restricted to known configuration keys
        """
        merged = copy.deepcopy(self.BUILT_IN_DEFAULTS)

        for source in (file_values, overrides or {}):
            for key, value in source.items():
                if key not in _FILE_FIELDS:
                    logger.warning("Ignoring unknown configuration key %s", key)
                    continue
                if value is None:
                    continue
                merged[key] = value

        return merged

    def validate_config(self, values: Mapping[str, Any]) -> None:
        """Validate merged configuration values.

        Parameters
        ----------
        values : Mapping[str, Any]
            Merged configuration values

        Raises
        ------
        ConfigurationError
            If a value has the wrong type or is out of range
        """
        for name in _STRING_FIELDS:
            if not isinstance(values.get(name, ""), str):
                raise ConfigurationError(f"{name} must be a string")

        if not values.get("address"):
            raise ConfigurationError("address is required")

        for name in _TIMEOUT_FIELDS:
            timeout = values.get(name)
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
                raise ConfigurationError(f"{name} must be a number of seconds")
            if timeout < 0:
                raise ConfigurationError(f"{name} must not be negative")

        size = values.get("test_volume_size")
        if isinstance(size, bool) or not isinstance(size, int):
            raise ConfigurationError("test_volume_size must be an integer")
        if size <= 0:
            raise ConfigurationError("test_volume_size must be positive")

        if not isinstance(values.get("test_node_volume_attach_limit"), bool):
            raise ConfigurationError("test_node_volume_attach_limit must be a boolean")

        parameters = values.get("test_volume_parameters")
        if not isinstance(parameters, dict):
            raise ConfigurationError("test_volume_parameters must be a mapping")
        for key, value in parameters.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise ConfigurationError("test_volume_parameters entries must be strings")

    def build_config(
        self,
        config_path: str | None = None,
        overrides: Mapping[str, Any] | None = None,
        **hooks: Any,
    ) -> Config:
        """Load, merge and validate configuration into a Config.

        Parameters
        ----------
        config_path : str | None
            Config file path (see load_config for the lookup order)
        overrides : Mapping[str, Any] | None
            Explicit values taking precedence over the file
        **hooks : Any
            Callback fields (create_target_dir, remove_staging_path, ...)

        Returns
        -------
        Config
            Validated configuration with the test parameters file merged

        Raises
        ------
        ConfigurationError
            If any input is malformed
        """
        values = self.merge(self.load_config(config_path), overrides)
        self.validate_config(values)
        values["test_volume_parameters"] = dict(values["test_volume_parameters"])
        config = Config(**values, **hooks)
        return config.with_test_volume_parameters_file()

    def from_userdata(self, userdata: Mapping[str, str]) -> Config:
        """Build a Config from behave ``-D key=value`` userdata.

        Parameters
        ----------
        userdata : Mapping[str, str]
            Behave userdata; ``config`` names a config file, other known keys
            override its values

        Returns
        -------
        Config
            Validated configuration
        """
        overrides: dict[str, Any] = {}
        for key, value in userdata.items():
            if key not in _FILE_FIELDS or key == "test_volume_parameters":
                continue
            overrides[key] = coerce_text_value(key, value)
        return self.build_config(userdata.get("config"), overrides)


def coerce_text_value(key: str, value: Any) -> Any:
    """Convert a textual override to the type its configuration key expects.

    Parameters
    ----------
    key : str
        Configuration key
    value : Any
        Value, converted only when it is a string

    Returns
    -------
    Any
        Converted value

    Raises
    ------
    ConfigurationError
        If the text cannot be converted
    """
    if not isinstance(value, str):
        return value

    try:
        if key in _TIMEOUT_FIELDS:
            return float(value)
        if key == "test_volume_size":
            return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be numeric, got {value!r}") from e

    if key == "test_node_volume_attach_limit":
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off", ""):
            return False
        raise ConfigurationError(f"{key} must be a boolean, got {value!r}")

    return value
