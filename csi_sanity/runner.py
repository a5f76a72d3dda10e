"""Run a behave sanity suite against a plugin."""

from __future__ import annotations

import logging
from typing import Iterable

from behave.configuration import Configuration
from behave.runner import Runner

from csi_sanity.config import Config
from csi_sanity.connection import Dialer, connect
from csi_sanity.constants import SUITE_NAME, USERDATA_CONTEXT_KEY
from csi_sanity.context import SanityContext
from csi_sanity.credentials import load_secrets

logger = logging.getLogger(__name__)


def behave_arguments(
    config: Config, paths: Iterable[str], extra_args: Iterable[str] = ()
) -> list[str]:
    """Build the behave command line for a suite run.

    Parameters
    ----------
    config : Config
        Sanity configuration (junit_directory enables JUnit output)
    paths : Iterable[str]
        Feature directories or files
    extra_args : Iterable[str]
        Additional behave arguments, e.g. ``["--tags", "node"]``

    Returns
    -------
    list[str]
        Arguments for behave's Configuration
    """
    args: list[str] = []
    if config.junit_directory:
        args += ["--junit", "--junit-directory", config.junit_directory]
    args += list(extra_args)
    args += list(paths)
    return args


def prepare_config(config: Config) -> Config:
    """Apply startup-time inputs before any scenario runs.

    Merges the test volume parameters file and checks that the secrets file
    parses, so malformed input aborts the run instead of failing scenarios.

    Raises
    ------
    ConfigurationError
        If the parameters or secrets file is malformed
    """
    config = config.with_test_volume_parameters_file()
    if config.secrets_file:
        load_secrets(config.secrets_file)
    return config


def run_suite(
    config: Config,
    paths: Iterable[str] = ("features",),
    extra_args: Iterable[str] = (),
    dial: Dialer = connect,
) -> bool:
    """Run the suite with one SanityContext shared by all scenarios.

    Parameters
    ----------
    config : Config
        Sanity configuration
    paths : Iterable[str]
        Feature directories or files
    extra_args : Iterable[str]
        Additional behave arguments
    dial : Callable[[str], Any]
        Function opening connections to the plugin

    Returns
    -------
    bool
        True when every scenario passed

    Raises
    ------
    ConfigurationError
        If startup inputs are malformed; no scenario runs in that case
    """
    config = prepare_config(config)
    sanity = SanityContext(config, dial=dial)

    behave_config = Configuration(command_args=behave_arguments(config, paths, extra_args))
    behave_config.userdata[USERDATA_CONTEXT_KEY] = sanity

    logger.info("Running %s against %s", SUITE_NAME, config.address)
    try:
        failed = Runner(behave_config).run()
    finally:
        sanity.close()

    return not failed
