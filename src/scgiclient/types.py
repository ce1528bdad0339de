"""Data types used by multiple modules."""

import abc
import enum
from collections.abc import Callable
from typing import Any, Self

CompletionCallback = Callable[..., Any]
"""The type of a completion callback, which receives the callback arguments."""

EventObserver = Callable[[str], None]
"""The type of a transport event observer, which receives an event description."""


class State(enum.Enum):
    """The lifecycle state of one client connection."""

    PENDING = enum.auto()
    """The transport is being opened and the request has not been sent."""

    OPEN = enum.auto()
    """The request has been sent and the response is being received."""

    DONE = enum.auto()
    """The transport has closed and the callback has been invoked with the response."""

    FAILED = enum.auto()
    """The transport failed to open and the callback has been invoked with an error."""


class TransportStatus(enum.Enum):
    """The status of a transport as known when it is created."""

    READY = enum.auto()
    """The connection is already established and can be written to immediately."""

    CONNECTING = enum.auto()
    """The connection is in progress and its outcome will be reported as an event."""

    FAILED = enum.auto()
    """The connection is already known to have failed; the failure is still reported as
    an event."""


class ConnectionFailure:
    """
    A description of a connection that failed before it was opened.

    This is the value placed under the ``error`` key of the status mapping passed to the
    completion callback.
    """

    __slots__ = {
        "detail": "The transport’s description of the failure.",
        "host": "The target host, or None for a UNIX-domain socket target.",
        "port": "The target port, or the socket path for a UNIX-domain target.",
    }

    kind = "connection-failed"
    """The kind of error, which is always connection-failed."""

    detail: str
    host: str | None
    port: int | str | None

    def __init__(
        self: Self, detail: str, host: str | None, port: int | str | None
    ) -> None:
        """
        Construct a new ConnectionFailure.

        :param detail: The transport’s description of the failure.
        :param host: The target host.
        :param port: The target port or socket path.
        """
        self.detail = detail
        self.host = host
        self.port = port

    def __eq__(self: Self, other: object) -> bool:
        """
        Compare two failures by value.

        :param other: The other value.
        """
        if not isinstance(other, ConnectionFailure):
            return NotImplemented
        return (self.detail, self.host, self.port) == (
            other.detail,
            other.host,
            other.port,
        )

    def __hash__(self: Self) -> int:
        """Hash the failure by value."""
        return hash((self.detail, self.host, self.port))

    def __repr__(self: Self) -> str:
        """Return a representation of the failure."""
        return (
            f"ConnectionFailure({self.detail!r}, host={self.host!r}, "
            f"port={self.port!r})"
        )


class SCGIConnectionError(ConnectionError):
    """
    Raised if a connection to an SCGI responder cannot be made.

    This covers the case where the transport cannot be created at all (for example,
    because the host name does not resolve). It is also raised by fetch when a
    connection fails asynchronously, in which case detail holds the event description.
    """

    __slots__ = ()

    host: str | None
    port: int | str | None
    detail: str | None

    def __init__(
        self: Self,
        host: str | None,
        port: int | str | None,
        detail: str | None = None,
    ) -> None:
        """
        Construct a new SCGIConnectionError.

        :param host: The target host.
        :param port: The target port or socket path.
        :param detail: A description of the failure, if known.
        """
        if detail is None:
            message = f"Cannot connect to {host}:{port}"
        else:
            message = f"Cannot connect to {host}:{port}: {detail}"
        super().__init__(message)
        self.host = host
        self.port = port
        self.detail = detail


class Transport(abc.ABC):
    """
    A stream transport carrying one SCGI request and its response.

    A transport reports its lifecycle to a single observer as textual event
    descriptions. An event beginning with “open” means that an asynchronous connection
    attempt succeeded; any other event means either that the connection attempt failed
    or, once open, that the connection has ended. After the connection has ended the
    transport emits no further events.
    """

    __slots__ = ()

    @property
    @abc.abstractmethod
    def status(self: Self) -> TransportStatus:
        """The status of the transport as known when it was created."""

    @abc.abstractmethod
    def write(self: Self, data: bytes) -> None:
        """
        Queue bytes to be sent to the responder.

        :param data: The bytes to send.
        """
        raise NotImplementedError
