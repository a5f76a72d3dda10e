#!/usr/bin/env python3
"""csi-sanity - conformance suite runner for CSI plugins."""

from __future__ import annotations

import os
import sys
from typing import Any

import fire

from csi_sanity import __version__
from csi_sanity.config import ConfigLoader
from csi_sanity.exceptions import ConfigurationError
from csi_sanity.logging import configure_logging
from csi_sanity.runner import run_suite


class SanityCLI:
    """Command line interface for csi-sanity."""

    def __init__(self) -> None:
        self._config_loader = ConfigLoader()

    def run(
        self,
        *features: str,
        config: str | None = None,
        address: str | None = None,
        controller_address: str | None = None,
        target_path: str | None = None,
        staging_path: str | None = None,
        secrets_file: str | None = None,
        test_volume_size: int | None = None,
        test_volume_parameters_file: str | None = None,
        test_node_volume_attach_limit: bool | None = None,
        junit_directory: str | None = None,
        create_target_path_cmd: str | None = None,
        create_staging_path_cmd: str | None = None,
        create_path_cmd_timeout: float | None = None,
        remove_target_path_cmd: str | None = None,
        remove_staging_path_cmd: str | None = None,
        remove_path_cmd_timeout: float | None = None,
        tags: str | None = None,
        log_level: str = "info",
    ) -> None:
        """Run the sanity suite and exit with its status.

        Parameters
        ----------
        *features : str
            Feature directories or files (default: features)
        config : str | None
            YAML config file (default: $CSI_SANITY_CONFIG or csi-sanity.yaml)
        address : str | None
            CSI endpoint of the plugin
        controller_address : str | None
            CSI controller endpoint, empty to reuse address
        target_path : str | None
            Mount target directory
        staging_path : str | None
            Staging directory
        secrets_file : str | None
            YAML file with CSI credentials
        test_volume_size : int | None
            Test volume capacity in bytes
        test_volume_parameters_file : str | None
            YAML file with CreateVolume parameters
        test_node_volume_attach_limit : bool | None
            Exercise the node volume attach limit
        junit_directory : str | None
            Directory for JUnit XML reports
        create_target_path_cmd : str | None
            Command creating the target path, stdout is the new path
        create_staging_path_cmd : str | None
            Command creating the staging path, stdout is the new path
        create_path_cmd_timeout : float | None
            Timeout in seconds for both creation commands
        remove_target_path_cmd : str | None
            Command removing the target path
        remove_staging_path_cmd : str | None
            Command removing the staging path
        remove_path_cmd_timeout : float | None
            Timeout in seconds for both removal commands
        tags : str | None
            Behave tag expression selecting scenarios
        log_level : str
            Log level for harness messages
        """
        configure_logging(log_level)
        debug_mode = os.environ.get("CSI_SANITY_DEBUG") == "1"

        overrides: dict[str, Any] = {
            "address": address,
            "controller_address": controller_address,
            "target_path": target_path,
            "staging_path": staging_path,
            "secrets_file": secrets_file,
            "test_volume_size": test_volume_size,
            "test_volume_parameters_file": test_volume_parameters_file,
            "test_node_volume_attach_limit": test_node_volume_attach_limit,
            "junit_directory": junit_directory,
            "create_target_path_cmd": create_target_path_cmd,
            "create_staging_path_cmd": create_staging_path_cmd,
            "create_target_path_cmd_timeout": create_path_cmd_timeout,
            "create_staging_path_cmd_timeout": create_path_cmd_timeout,
            "remove_target_path_cmd": remove_target_path_cmd,
            "remove_staging_path_cmd": remove_staging_path_cmd,
            "remove_target_path_cmd_timeout": remove_path_cmd_timeout,
            "remove_staging_path_cmd_timeout": remove_path_cmd_timeout,
        }

        try:
            sanity_config = self._config_loader.build_config(config, overrides)
            passed = run_suite(
                sanity_config,
                paths=features or ("features",),
                extra_args=["--tags", tags] if tags else (),
            )
        except ConfigurationError as e:
            if debug_mode:
                raise
            print(f"Configuration error: {e}", file=sys.stderr)
            sys.exit(2)

        sys.exit(0 if passed else 1)

    def version(self) -> str:
        """Print the csi-sanity version."""
        return __version__


def main() -> None:
    """Console script entry point."""
    fire.Fire(SanityCLI)


if __name__ == "__main__":
    main()
