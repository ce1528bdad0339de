"""
The client connection state machine.

A Connection holds everything known about one request: where it is going, what to send,
whom to tell when it is finished, and the response received so far. It does no I/O of
its own. An I/O adapter creates a transport for it, attaches the transport, and then
feeds it the transport’s events; the Connection sends the request once the transport is
open and invokes the completion callback once the transport has closed or failed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Self

from . import framing
from .target import Target
from .types import (
    CompletionCallback,
    ConnectionFailure,
    State,
    Transport,
    TransportStatus,
)

OPEN_EVENT_PREFIX = "open"
"""The prefix of the event a transport emits when an asynchronous open succeeds."""


def invoke(callback: CompletionCallback, args: tuple[Any, ...]) -> None:
    """
    Invoke a completion callback.

    :param callback: The callback.
    :param args: The positional arguments to pass, unchanged.
    """
    callback(*args)


def with_error(args: tuple[Any, ...], failure: ConnectionFailure) -> tuple[Any, ...]:
    """
    Build the callback arguments reporting a failure.

    The caller’s arguments are not modified. If the first argument is a mapping (a
    status mapping), it is replaced by a new dict holding the error followed by the
    original entries; otherwise a new status mapping holding only the error is placed
    in front of the arguments.

    :param args: The callback arguments supplied when the request was initiated.
    :param failure: The failure to report.
    :return: The new callback arguments.
    """
    if args and isinstance(args[0], Mapping):
        status: dict[Any, Any] = {"error": failure}
        status.update((k, v) for k, v in args[0].items() if k != "error")
        return (status, *args[1:])
    return ({"error": failure}, *args)


class Connection:
    """
    The state of one SCGI request.

    The connection starts out PENDING. Once the transport is open it sends the framed
    request and becomes OPEN. The next event after that ends the connection (DONE), and
    an event other than an open event before that fails it (FAILED). Either terminal
    state invokes the callback exactly once; later events are discarded.
    """

    __slots__ = {
        "_buffer": """The response bytes received so far.""",
        "_callback": """The completion callback.""",
        "_callback_args": """The arguments to pass to the completion callback.""",
        "_opened": """Whether the transport has opened and the request been sent.""",
        "_request": """The framed request to send.""",
        "_state": """The lifecycle state.""",
        "_target": """The responder address.""",
        "_transport": """The transport, once attached.""",
    }

    _buffer: bytearray
    _callback: CompletionCallback
    _callback_args: tuple[Any, ...]
    _opened: bool
    _request: bytes
    _state: State
    _target: Target
    _transport: Transport | None

    def __init__(
        self: Self,
        target: Target,
        callback: CompletionCallback,
        callback_args: Iterable[Any] = (),
        payload: bytes = b"",
        headers: Iterable[tuple[framing.HeaderText, framing.HeaderText]] = (),
    ) -> None:
        """
        Construct a new Connection.

        :param target: The responder address.
        :param callback: The completion callback.
        :param callback_args: The arguments to pass to callback.
        :param payload: The request body.
        :param headers: Additional request headers.
        """
        self._buffer = bytearray()
        self._callback = callback
        self._callback_args = tuple(callback_args)
        self._opened = False
        self._request = framing.frame(payload, headers)
        self._state = State.PENDING
        self._target = target
        self._transport = None

    @property
    def target(self: Self) -> Target:
        """The responder address."""
        return self._target

    @property
    def state(self: Self) -> State:
        """The lifecycle state."""
        return self._state

    @property
    def opened(self: Self) -> bool:
        """Whether the transport has opened and the request been sent."""
        return self._opened

    @property
    def buffer(self: Self) -> bytearray:
        """
        The buffer into which the transport appends received bytes.

        This is the live buffer; use response to get a snapshot.
        """
        return self._buffer

    @property
    def response(self: Self) -> bytes:
        """The raw response bytes received so far."""
        return bytes(self._buffer)

    def attach(self: Self, transport: Transport) -> None:
        """
        Attach the transport carrying this request.

        If the transport is already connected, the request is sent immediately;
        otherwise it is sent when the transport reports that it has opened.

        :param transport: The transport, whose events must be delivered to
            handle_event.
        """
        assert self._transport is None
        self._transport = transport
        if transport.status is TransportStatus.READY:
            logging.getLogger(__name__).debug("Connected to %s", self._target)
            self._open()

    def handle_event(self: Self, event: str) -> None:
        """
        React to a transport event.

        :param event: The transport’s description of what happened.
        """
        if self._state in (State.DONE, State.FAILED):
            logging.getLogger(__name__).debug(
                "Discarding event %r on finished connection to %s", event, self._target
            )
            return
        if self._opened:
            # Once the request has been sent, the only thing left for the transport to
            # report is that the connection has ended, in whatever way.
            logging.getLogger(__name__).debug(
                "Connection to %s ended (%s) after %d bytes",
                self._target,
                event,
                len(self._buffer),
            )
            self._state = State.DONE
            invoke(self._callback, self._callback_args)
        elif event.startswith(OPEN_EVENT_PREFIX):
            logging.getLogger(__name__).debug("Connected to %s", self._target)
            self._open()
        else:
            logging.getLogger(__name__).debug(
                "Connection to %s failed: %s", self._target, event
            )
            self._state = State.FAILED
            host, port = self._target.peer
            failure = ConnectionFailure(event, host, port)
            invoke(self._callback, with_error(self._callback_args, failure))

    def _open(self: Self) -> None:
        """Send the request over the newly opened transport."""
        assert self._transport is not None
        self._opened = True
        self._state = State.OPEN
        self._transport.write(self._request)
        logging.getLogger(__name__).debug(
            "Sent %d-byte request to %s", len(self._request), self._target
        )
