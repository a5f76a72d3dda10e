"""Behave environment for csi-sanity lifecycle integration scenarios.

Starts in-process gRPC servers on Unix sockets as stand-ins for the node and
controller endpoints of a plugin, then drives the lifecycle through the
csi_sanity hooks.
"""

import logging
import os
import shutil
import tempfile
from concurrent import futures
from pathlib import Path

import grpc
from behave.model import Scenario
from behave.runner import Context

from csi_sanity import hooks
from csi_sanity.config import Config
from csi_sanity.constants import USERDATA_CONTEXT_KEY
from csi_sanity.context import SanityContext

logger = logging.getLogger(__name__)

CREATE_TARGET_SCRIPT = """#!/bin/sh
mkdir -p "{target}"
echo "{target}"
"""


def start_plugin_server(socket_path: Path) -> grpc.Server:
    """Start a gRPC server with no services listening on socket_path."""
    server = grpc.server(futures.ThreadPoolExecutor(max_workers=2))
    server.add_insecure_port(f"unix://{socket_path}")
    server.start()
    return server


def before_all(context: Context) -> None:
    workdir = Path(tempfile.mkdtemp(prefix="csi-sanity-it-"))
    context.workdir = workdir
    context.suite_state = {}

    node_socket = workdir / "node.sock"
    controller_socket = workdir / "controller.sock"
    context.servers = [
        start_plugin_server(node_socket),
        start_plugin_server(controller_socket),
    ]
    context.controller_address = f"unix://{controller_socket}"
    context.command_target = str(workdir / "from-command")

    script = workdir / "create-target.sh"
    script.write_text(CREATE_TARGET_SCRIPT.format(target=context.command_target))
    os.chmod(script, 0o755)
    context.create_target_script = str(script)

    context.base_config = Config(
        address=f"unix://{node_socket}",
        target_path=str(workdir / "csi-mount"),
        staging_path=str(workdir / "csi-staging"),
    )
    context.config.userdata[USERDATA_CONTEXT_KEY] = SanityContext(context.base_config)
    hooks.before_all(context)


def before_scenario(context: Context, scenario: Scenario) -> None:
    config = context.base_config
    if "target_command" in scenario.effective_tags:
        config = config.replace(
            create_target_path_cmd=context.create_target_script,
            create_target_path_cmd_timeout=5,
        )
    if "controller_endpoint" in scenario.effective_tags:
        config = config.replace(controller_address=context.controller_address)

    context.sanity.config = config
    hooks.before_scenario(context, scenario)


def after_scenario(context: Context, scenario: Scenario) -> None:
    hooks.after_scenario(context, scenario)


def after_all(context: Context) -> None:
    hooks.after_all(context)
    context.sanity.close()

    for server in context.servers:
        server.stop(grace=None)

    shutil.rmtree(context.workdir, ignore_errors=True)
