"""Credentials passed to the plugin alongside protocol calls."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Any

import yaml

from csi_sanity.constants import CSIOperation
from csi_sanity.exceptions import SecretsError

logger = logging.getLogger(__name__)


def _secret_map() -> dict[str, str]:
    return {}


@dataclass
class CSISecrets:
    """Secrets used in CSI credentials, one mapping per operation.

    An instance with every mapping empty means no credentials are sent.
    """

    create_volume_secret: dict[str, str] = field(default_factory=_secret_map)
    delete_volume_secret: dict[str, str] = field(default_factory=_secret_map)
    controller_publish_volume_secret: dict[str, str] = field(default_factory=_secret_map)
    controller_unpublish_volume_secret: dict[str, str] = field(default_factory=_secret_map)
    node_stage_volume_secret: dict[str, str] = field(default_factory=_secret_map)
    node_publish_volume_secret: dict[str, str] = field(default_factory=_secret_map)
    create_snapshot_secret: dict[str, str] = field(default_factory=_secret_map)
    delete_snapshot_secret: dict[str, str] = field(default_factory=_secret_map)

    def for_operation(self, operation: CSIOperation | str) -> dict[str, str]:
        """Get the credentials for one protocol operation.

        Parameters
        ----------
        operation : CSIOperation | str
            Operation member, or its name / secrets-file key

        Returns
        -------
        dict[str, str]
            Copy of the operation's credentials (empty when none are configured)

        Raises
        ------
        KeyError
            If operation does not name one of the credentialed operations
        """
        if isinstance(operation, str):
            operation = _lookup_operation(operation)
        return dict(getattr(self, _ATTRIBUTES[operation]))

    def is_empty(self) -> bool:
        """Whether no operation carries credentials."""
        return not any(getattr(self, f.name) for f in fields(self))


_ATTRIBUTES: dict[CSIOperation, str] = {
    CSIOperation.CREATE_VOLUME: "create_volume_secret",
    CSIOperation.DELETE_VOLUME: "delete_volume_secret",
    CSIOperation.CONTROLLER_PUBLISH_VOLUME: "controller_publish_volume_secret",
    CSIOperation.CONTROLLER_UNPUBLISH_VOLUME: "controller_unpublish_volume_secret",
    CSIOperation.NODE_STAGE_VOLUME: "node_stage_volume_secret",
    CSIOperation.NODE_PUBLISH_VOLUME: "node_publish_volume_secret",
    CSIOperation.CREATE_SNAPSHOT: "create_snapshot_secret",
    CSIOperation.DELETE_SNAPSHOT: "delete_snapshot_secret",
}


def _lookup_operation(name: str) -> CSIOperation:
    for operation in CSIOperation:
        if name in (operation.name, operation.value):
            return operation
    raise KeyError(f"unknown CSI operation: {name}")


def _coerce_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_operation_secrets(key: str, raw: Any) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise SecretsError(
            f"{key} must be a mapping of strings, got {type(raw).__name__}"
        )

    parsed: dict[str, str] = {}
    for name, value in raw.items():
        if value is None or isinstance(value, (dict, list)):
            raise SecretsError(f"{key}.{name} must be a string value")
        parsed[str(name)] = _coerce_scalar(value)
    return parsed


def parse_secrets(document: Any) -> CSISecrets:
    """Build CSISecrets from a parsed YAML document.

    Parameters
    ----------
    document : Any
        Result of ``yaml.safe_load``

    Returns
    -------
    CSISecrets
        Parsed credentials; unknown top-level keys are ignored

    Raises
    ------
    SecretsError
        If the document or a known operation entry is malformed
    """
    if document is None:
        return CSISecrets()
    if not isinstance(document, dict):
        raise SecretsError(
            f"secrets document must be a mapping, got {type(document).__name__}"
        )

    known = {operation.value: operation for operation in CSIOperation}
    values: dict[str, dict[str, str]] = {}

    for key, raw in document.items():
        operation = known.get(key)
        if operation is None:
            logger.debug("Ignoring unknown secrets key %s", key)
            continue
        values[_ATTRIBUTES[operation]] = _parse_operation_secrets(key, raw)

    return CSISecrets(**values)


def load_secrets(path: str) -> CSISecrets:
    """Load credentials from a YAML secrets file.

    Parameters
    ----------
    path : str
        Path to the secrets file; never empty (callers use ``CSISecrets()``
        when no file is configured)

    Returns
    -------
    CSISecrets
        Parsed credentials

    Raises
    ------
    SecretsError
        If the file cannot be read or does not match the secrets schema
    """
    try:
        with open(path) as f:
            content = f.read()
    except OSError as e:
        raise SecretsError(f"failed to read file {path!r}: {e}") from e

    try:
        document = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SecretsError(f"error unmarshaling yaml in {path!r}: {e}") from e

    try:
        return parse_secrets(document)
    except SecretsError as e:
        raise SecretsError(f"error unmarshaling yaml in {path!r}: {e}") from e
