"""Per-scenario setup and teardown for the sanity suite."""

from __future__ import annotations

import logging
from typing import Any

from csi_sanity.config import Config
from csi_sanity.connection import Dialer, Endpoint, connect
from csi_sanity.credentials import CSISecrets, load_secrets
from csi_sanity.exceptions import CleanupError, PreconditionError, SanityError
from csi_sanity.naming import UniqueNames
from csi_sanity.provisioning import ProvisioningStrategy, create_location, remove_location

logger = logging.getLogger(__name__)


class SanityContext:
    """State every sanity scenario depends on.

    One instance lives for the whole suite. ``setup`` runs before each
    scenario and ``teardown`` after it. Connections survive teardown and are
    only redialed when the configured address changes; ``close`` releases
    them once the suite is done.

    Parameters
    ----------
    config : Config
        Sanity configuration
    dial : Callable[[str], Any]
        Function opening a connection to an address
    names : UniqueNames | None
        Name generator for the run; a new one is created when None
    """

    def __init__(
        self,
        config: Config,
        dial: Dialer = connect,
        names: UniqueNames | None = None,
    ) -> None:
        self.config = config
        self.names = names or UniqueNames()
        self.secrets = CSISecrets()
        self._secrets_file = ""
        self._node = Endpoint("CSI driver", dial=dial)
        self._controller = Endpoint("CSI driver controller", dial=dial)
        self.target_path = ""
        self.staging_path = ""

    @property
    def conn(self) -> Any:
        """Connection to the node (data-plane) endpoint."""
        return self._node.conn

    @property
    def controller_conn(self) -> Any:
        """Connection to the controller endpoint, possibly shared with conn."""
        return self._controller.conn

    @property
    def conn_address(self) -> str:
        return self._node.address

    @property
    def controller_conn_address(self) -> str:
        return self._controller.address

    def unique_string(self, prefix: str) -> str:
        """Name a resource with the run's unique suffix."""
        return self.names.unique_string(prefix)

    def setup(self) -> None:
        """Prepare secrets, connections and paths for the next scenario.

        Raises
        ------
        PreconditionError
            If any step fails; the scenario must not run
        """
        self._load_secrets()
        self._connect()

        logger.info("creating mount and staging directories", extra={"step": True})
        self.target_path = self._create(
            "create target path",
            self.config.target_path,
            self.config.create_target_strategy(),
        )
        self.staging_path = self._create(
            "create staging path",
            self.config.staging_path,
            self.config.create_staging_strategy(),
        )

    def teardown(self) -> None:
        """Remove the paths created by setup.

        Both removals are attempted even if the first fails. Connections are
        left open for the next scenario.

        Raises
        ------
        CleanupError
            If one or both removals failed
        """
        errors: list[Exception] = []

        removals = [
            ("target", self.target_path, self.config.remove_target_strategy()),
            ("staging", self.staging_path, self.config.remove_staging_strategy()),
        ]
        self.target_path = ""
        self.staging_path = ""

        for kind, path, strategy in removals:
            if not path:
                continue
            try:
                remove_location(path, strategy=strategy)
                logger.debug("Removed %s path %s", kind, path)
            except Exception as e:
                logger.warning(
                    "Failed to remove %s path %s using %s: %s",
                    kind,
                    path,
                    strategy.describe(),
                    e,
                )
                errors.append(e)

        if errors:
            raise CleanupError(errors)

    def close(self) -> None:
        """Close the connections; called once when the suite completes."""
        self._controller.close()
        self._node.close()

    def _load_secrets(self) -> None:
        secrets_file = self.config.secrets_file
        if not secrets_file:
            self.secrets = CSISecrets()
            self._secrets_file = ""
            return

        if secrets_file == self._secrets_file:
            return

        try:
            self.secrets = load_secrets(secrets_file)
        except SanityError as e:
            raise PreconditionError("load secrets", str(e)) from e
        self._secrets_file = secrets_file

    def _connect(self) -> None:
        config = self.config

        # A test may change the address between scenarios; reuse only when it
        # is still the same.
        try:
            self._node.ensure(config.address)
        except Exception as e:
            raise PreconditionError(
                "connect", f"CSI driver at {config.address!r}: {e}"
            ) from e

        if not config.controller_address:
            self._controller.alias(self._node)
            return

        try:
            self._controller.ensure(config.controller_address)
        except Exception as e:
            raise PreconditionError(
                "connect",
                f"CSI driver controller at {config.controller_address!r}: {e}",
            ) from e

    def _create(self, step: str, path: str, strategy: ProvisioningStrategy) -> str:
        try:
            return create_location(path, strategy=strategy)
        except Exception as e:
            raise PreconditionError(
                step, f"failed to create {path!r} using {strategy.describe()}: {e}"
            ) from e
