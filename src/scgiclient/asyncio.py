"""An I/O adapter connecting scgiclient to the Python standard library asyncio."""

from __future__ import annotations

import asyncio
import errno
import io
import logging
import os
import socket
from collections.abc import Iterable
from typing import Any, Self

from . import framing
from .connection import Connection
from .target import Target
from .types import (
    CompletionCallback,
    ConnectionFailure,
    EventObserver,
    SCGIConnectionError,
    Transport,
    TransportStatus,
)

_IN_PROGRESS = frozenset(
    (errno.EINPROGRESS, errno.EAGAIN, errno.EWOULDBLOCK, errno.EALREADY)
)
"""The connect_ex results that mean a connection attempt is still in progress."""

OPEN_EVENT = "open"
"""The event emitted when a pending connection attempt succeeds."""

CLOSED_EVENT = "connection closed by remote peer"
"""The event emitted when the responder closes the connection."""


class SocketTransport(Transport):
    """
    A transport over a non-blocking socket watched by an asyncio event loop.

    Received bytes are appended to a caller-supplied buffer. Lifecycle events are
    delivered to the observer from event loop callbacks, never from within the
    constructor or write, so the observer always sees them after the code creating the
    transport has finished setting up.
    """

    __slots__ = {
        "_buffer": """The buffer to which received bytes are appended.""",
        "_closed": """Whether the socket has been closed.""",
        "_fd": """The socket’s file descriptor, kept for unregistering after close.""",
        "_loop": """The event loop watching the socket.""",
        "_observer": """The callable receiving lifecycle events.""",
        "_outgoing": """The bytes written but not yet accepted by the kernel.""",
        "_sock": """The socket.""",
        "_status": """The status of the socket when the transport was created.""",
    }

    _buffer: bytearray
    _closed: bool
    _fd: int
    _loop: asyncio.AbstractEventLoop
    _observer: EventObserver
    _outgoing: bytearray
    _sock: socket.socket
    _status: TransportStatus

    def __init__(
        self: Self,
        loop: asyncio.AbstractEventLoop,
        sock: socket.socket,
        status: TransportStatus,
        connect_error: int,
        observer: EventObserver,
        buffer: bytearray,
    ) -> None:
        """
        Construct a new SocketTransport and start watching the socket.

        :param loop: The event loop.
        :param sock: The non-blocking socket, on which connect has been called.
        :param status: The status of the connection attempt.
        :param connect_error: The errno from the connection attempt if status is
            FAILED.
        :param observer: The callable to receive lifecycle events.
        :param buffer: The buffer to append received bytes to.
        """
        self._buffer = buffer
        self._closed = False
        self._fd = sock.fileno()
        self._loop = loop
        self._observer = observer
        self._outgoing = bytearray()
        self._sock = sock
        self._status = status
        if status is TransportStatus.READY:
            loop.add_reader(self._fd, self._on_readable)
        elif status is TransportStatus.CONNECTING:
            loop.add_writer(self._fd, self._on_connected)
        else:
            loop.call_soon(self._fail, connect_error)

    @property
    def status(self: Self) -> TransportStatus:  # noqa: D102
        return self._status

    @property
    def closed(self: Self) -> bool:
        """Whether the socket has been closed."""
        return self._closed

    def write(self: Self, data: bytes) -> None:  # noqa: D102
        if self._closed:
            logging.getLogger(__name__).debug("write called after close")
            return
        pending = bool(self._outgoing)
        self._outgoing += data
        if not pending:
            self._flush()
            if self._outgoing and not self._closed:
                self._loop.add_writer(self._fd, self._on_writable)

    def _flush(self: Self) -> None:
        """Send as much of the outgoing bytes as the kernel will accept."""
        try:
            sent = self._sock.send(self._outgoing)
        except (BlockingIOError, InterruptedError):
            return
        except OSError as exc:
            # Report the breakage from the event loop rather than from inside write.
            self._close()
            self._loop.call_soon(self._emit, f"connection broken: {exc.strerror}")
            return
        del self._outgoing[:sent]

    def _on_connected(self: Self) -> None:
        """Handle writability of a socket whose connection attempt was in progress."""
        self._loop.remove_writer(self._fd)
        error = self._sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        if error in _IN_PROGRESS:
            # Spurious wakeup; keep waiting.
            self._loop.add_writer(self._fd, self._on_connected)
        elif error:
            self._fail(error)
        else:
            self._loop.add_reader(self._fd, self._on_readable)
            self._emit(OPEN_EVENT)

    def _on_writable(self: Self) -> None:
        """Handle writability of a socket with queued outgoing bytes."""
        self._flush()
        if not self._outgoing and not self._closed:
            self._loop.remove_writer(self._fd)

    def _on_readable(self: Self) -> None:
        """Handle readability of the socket."""
        try:
            data = self._sock.recv(io.DEFAULT_BUFFER_SIZE)
        except (BlockingIOError, InterruptedError):
            return
        except OSError as exc:
            self._close()
            self._emit(f"connection broken: {exc.strerror}")
            return
        if data:
            self._buffer += data
        else:
            self._close()
            self._emit(CLOSED_EVENT)

    def _fail(self: Self, error: int) -> None:
        """
        Report a failed connection attempt.

        :param error: The errno describing the failure.
        """
        self._close()
        self._emit(f"failed with code {error}: {os.strerror(error)}")

    def _close(self: Self) -> None:
        """Stop watching and close the socket."""
        if not self._closed:
            self._closed = True
            self._loop.remove_reader(self._fd)
            self._loop.remove_writer(self._fd)
            self._outgoing.clear()
            self._sock.close()

    def _emit(self: Self, event: str) -> None:
        """
        Deliver an event to the observer.

        :param event: The event description.
        """
        try:
            self._observer(event)
        except Exception:  # pylint: disable=broad-except
            logging.getLogger(__name__).exception(
                "Uncaught exception in completion callback",
            )


def _open_socket(target: Target) -> tuple[socket.socket, int]:
    """
    Create a non-blocking socket and start connecting it to a target.

    :param target: The responder address.
    :return: The socket and the result of connect_ex.
    :raises OSError: if the address cannot be resolved or the socket cannot be created
    """
    if target.is_local:
        path = target.local_path
        assert path is not None
        family, type_, proto, address = (
            socket.AF_UNIX,
            socket.SOCK_STREAM,
            0,
            path,
        )
    else:
        # Only the first resolved address is tried.
        infos = socket.getaddrinfo(target.host, target.port, type=socket.SOCK_STREAM)
        family, type_, proto, _, address = infos[0]
    sock = socket.socket(family, type_, proto)
    try:
        sock.setblocking(False)  # noqa: FBT003
        return sock, sock.connect_ex(address)
    except OSError:
        sock.close()
        raise


def connect(
    target: Target,
    observer: EventObserver,
    buffer: bytearray,
    *,
    loop: asyncio.AbstractEventLoop | None = None,
) -> SocketTransport:
    """
    Open a transport to an SCGI responder.

    The returned transport’s status tells whether the connection is already established
    (READY), still being established (CONNECTING), or already known to have failed
    (FAILED). In the latter two cases the outcome is reported to observer as an event.

    :param target: The responder address.
    :param observer: The callable to receive lifecycle events.
    :param buffer: The buffer to append received bytes to.
    :param loop: The event loop to use, or None to use the running loop.
    :return: The transport.
    :raises SCGIConnectionError: if the transport cannot be created at all
    """
    if loop is None:
        loop = asyncio.get_running_loop()
    host, port = target.peer
    try:
        sock, result = _open_socket(target)
    except OSError as exc:
        logging.getLogger(__name__).debug(
            "Cannot create transport to %s", target, exc_info=True
        )
        raise SCGIConnectionError(host, port, str(exc)) from exc
    if result == 0:
        status = TransportStatus.READY
    elif result in _IN_PROGRESS:
        status = TransportStatus.CONNECTING
    else:
        status = TransportStatus.FAILED
    logging.getLogger(__name__).debug("Transport to %s is %s", target, status.name)
    return SocketTransport(loop, sock, status, result, observer, buffer)


def initiate(
    target: Target,
    callback: CompletionCallback,
    callback_args: Iterable[Any] = (),
    *,
    payload: bytes = b"",
    headers: Iterable[tuple[framing.HeaderText, framing.HeaderText]] = (),
    loop: asyncio.AbstractEventLoop | None = None,
) -> Connection:
    """
    Start an SCGI request.

    The callback is invoked exactly once. If the connection fails before it is opened,
    the callback receives a status mapping with an ``error`` key holding a
    ConnectionFailure as its first argument (see connection.with_error). Otherwise it
    receives callback_args unchanged once the responder has closed the connection, and
    the response is available from the returned connection’s response property.

    :param target: The responder address.
    :param callback: The completion callback.
    :param callback_args: The arguments to pass to callback.
    :param payload: The request body.
    :param headers: Additional request headers, such as REQUEST_METHOD.
    :param loop: The event loop to use, or None to use the running loop.
    :return: The connection.
    :raises TypeError: if target is not a Target
    :raises SCGIConnectionError: if the transport cannot be created at all
    """
    if not isinstance(target, Target):
        msg = f"Expected a Target, got {type(target).__name__}"
        raise TypeError(msg)
    connection = Connection(target, callback, callback_args, payload, headers)
    transport = connect(target, connection.handle_event, connection.buffer, loop=loop)
    connection.attach(transport)
    return connection


async def fetch(
    target: Target,
    payload: bytes = b"",
    headers: Iterable[tuple[framing.HeaderText, framing.HeaderText]] = (),
) -> bytes:
    """
    Perform an SCGI request and wait for the response.

    :param target: The responder address.
    :param payload: The request body.
    :param headers: Additional request headers, such as REQUEST_METHOD.
    :return: The raw response bytes.
    :raises SCGIConnectionError: if the connection cannot be made
    """
    done: asyncio.Future[ConnectionFailure | None] = (
        asyncio.get_running_loop().create_future()
    )

    def completed(status: dict[str, Any]) -> None:
        # The awaiting task may have been cancelled; the connection still completes.
        if not done.done():
            done.set_result(status.get("error"))

    connection = initiate(target, completed, ({},), payload=payload, headers=headers)
    failure = await done
    if failure is not None:
        raise SCGIConnectionError(failure.host, failure.port, failure.detail)
    return connection.response
