"""gRPC connections to the plugin under test.

Connections are expensive to churn across many sequential scenarios, so each
endpoint keeps its channel and only redials when the configured address
changes.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

import grpc

from csi_sanity.constants import CONNECT_TIMEOUT_SECONDS, MAX_RECONNECT_BACKOFF_MS
from csi_sanity.exceptions import DialError

logger = logging.getLogger(__name__)

Dialer = Callable[[str], Any]


def grpc_target(address: str) -> str:
    """Translate an endpoint address into a gRPC channel target.

    Parameters
    ----------
    address : str
        ``unix:///path``, a filesystem path, or a TCP target (``host:port``,
        ``dns:///host:port``)

    Returns
    -------
    str
        Target string accepted by ``grpc.insecure_channel``
    """
    if address.startswith("unix:"):
        return address
    if address.startswith("/"):
        return f"unix://{address}"
    if ":" in address:
        return address
    return f"unix:{address}"


def connect(address: str, timeout: float = CONNECT_TIMEOUT_SECONDS) -> grpc.Channel:
    """Open an insecure channel and wait until it is ready.

    Parameters
    ----------
    address : str
        Endpoint address of the plugin
    timeout : float
        Seconds to wait for the channel to become ready

    Returns
    -------
    grpc.Channel
        Ready channel

    Raises
    ------
    DialError
        If the channel does not become ready before the timeout
    """
    if not address:
        raise DialError(address, "no address configured")

    target = grpc_target(address)
    logger.debug("Dialing %s (target %s)", address, target)
    channel = grpc.insecure_channel(
        target,
        options=[("grpc.max_reconnect_backoff_ms", MAX_RECONNECT_BACKOFF_MS)],
    )

    try:
        grpc.channel_ready_future(channel).result(timeout=timeout)
    except grpc.FutureTimeoutError as e:
        channel.close()
        raise DialError(address, f"connection timed out after {timeout}s") from e

    return channel


def close_quietly(conn: Any, description: str) -> None:
    """Close a connection, logging instead of raising on failure."""
    try:
        conn.close()
    except Exception as e:
        logger.warning("Ignoring error while closing %s: %s", description, e)


def ensure_connection(
    current_conn: Any,
    current_addr: str,
    want_addr: str,
    dial: Dialer = connect,
) -> tuple[Any, str]:
    """Reuse a connection or replace it when the address changed.

    Parameters
    ----------
    current_conn : Any
        Existing connection, or None
    current_addr : str
        Address current_conn was opened against
    want_addr : str
        Address the connection should point to
    dial : Callable[[str], Any]
        Function opening a new connection

    Returns
    -------
    tuple[Any, str]
        The connection to use and the address it was opened against
    """
    if current_conn is not None and current_addr == want_addr:
        return current_conn, current_addr

    if current_conn is not None:
        close_quietly(current_conn, f"connection to {current_addr}")

    return dial(want_addr), want_addr


class Endpoint:
    """Connection state for one plugin endpoint.

    States are Unbound (no connection), Bound (owns a connection opened
    against ``address``) and Aliased (shares another endpoint's connection
    without owning it).

    Parameters
    ----------
    name : str
        Endpoint description for logs, e.g. "CSI driver controller"
    dial : Callable[[str], Any]
        Function opening a connection to an address
    """

    def __init__(self, name: str, dial: Dialer = connect) -> None:
        self.name = name
        self.dial = dial
        self.conn: Any = None
        self.address = ""
        self.owned = False

    @property
    def bound(self) -> bool:
        return self.conn is not None

    @property
    def aliased(self) -> bool:
        return self.conn is not None and not self.owned

    def ensure(self, address: str) -> Any:
        """Make sure the endpoint owns a connection to address.

        Parameters
        ----------
        address : str
            Address the endpoint should be connected to

        Returns
        -------
        Any
            The connection, reused when already bound to the same address

        Raises
        ------
        DialError
            If the connection cannot be established; the endpoint is Unbound
        """
        if self.owned and self.conn is not None and self.address == address:
            logger.info(
                "reusing connection to %s at %s",
                self.name,
                address,
                extra={"step": True},
            )
            return self.conn

        self._release()
        logger.info("connecting to %s", self.name, extra={"step": True})
        self.conn = self.dial(address)
        self.address = address
        self.owned = True
        return self.conn

    def alias(self, other: "Endpoint") -> Any:
        """Share other's connection and address without owning them.

        Parameters
        ----------
        other : Endpoint
            Endpoint whose connection is reused

        Returns
        -------
        Any
            The shared connection
        """
        if self.owned:
            self._release()
        self.conn = other.conn
        self.address = other.address
        self.owned = False
        return self.conn

    def close(self) -> None:
        """Close an owned connection and return to Unbound."""
        self._release()

    def _release(self) -> None:
        if self.owned and self.conn is not None:
            close_quietly(self.conn, f"connection to {self.name} at {self.address}")
        self.conn = None
        self.address = ""
        self.owned = False
