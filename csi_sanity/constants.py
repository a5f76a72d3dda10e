"""Global constants for csi-sanity.

This module contains defaults shared by the configuration layer, the
provisioning strategies and the connection manager.
"""

import os
import tempfile
from enum import Enum

DEFAULT_TARGET_PATH = os.path.join(tempfile.gettempdir(), "csi-mount")
"""Default mount target directory handed to NodePublishVolume."""

DEFAULT_STAGING_PATH = os.path.join(tempfile.gettempdir(), "csi-staging")
"""Default staging directory handed to NodeStageVolume."""

DEFAULT_TEST_VOLUME_SIZE = 10 * 1024 * 1024 * 1024
"""Capacity in bytes requested for test volumes (10 GiB)."""

DEFAULT_PATH_CMD_TIMEOUT_SECONDS = 10
"""Timeout in seconds for external path creation and removal commands.

The deadline is hard: the command is killed when it expires and the
operation fails.
"""

CONNECT_TIMEOUT_SECONDS = 60
"""Timeout in seconds for a gRPC channel to become ready.

Plugins started next to the harness may still be binding their socket when
the first scenario runs, so the dial keeps retrying until this expires.
"""

MAX_RECONNECT_BACKOFF_MS = 1000
"""Upper bound for the gRPC reconnect backoff while waiting for readiness."""

DIRECTORY_MODE = 0o755
"""Permissions for directories created by the default strategy."""

CONFIG_ENV_VAR = "CSI_SANITY_CONFIG"
"""Environment variable naming the configuration file."""

DEFAULT_CONFIG_FILE = "csi-sanity.yaml"
"""Configuration file looked up in the working directory."""

USERDATA_CONTEXT_KEY = "csi_sanity.context"
"""Behave userdata key carrying a prebuilt SanityContext."""

SUITE_NAME = "CSI Driver Test Suite"


class CSIOperation(Enum):
    """Protocol operations that accept out-of-band credentials.

    The value is the key used for the operation in the secrets file.
    """

    CREATE_VOLUME = "CreateVolumeSecret"
    DELETE_VOLUME = "DeleteVolumeSecret"
    CONTROLLER_PUBLISH_VOLUME = "ControllerPublishVolumeSecret"
    CONTROLLER_UNPUBLISH_VOLUME = "ControllerUnpublishVolumeSecret"
    NODE_STAGE_VOLUME = "NodeStageVolumeSecret"
    NODE_PUBLISH_VOLUME = "NodePublishVolumeSecret"
    CREATE_SNAPSHOT = "CreateSnapshotSecret"
    DELETE_SNAPSHOT = "DeleteSnapshotSecret"
