"""Handling of SCGI responder addresses."""

from __future__ import annotations

import os
import urllib.parse
from typing import Self

SCHEME = "scgi"
"""The URL scheme naming an SCGI responder."""


class Target:
    """
    The address of an SCGI responder.

    A target names either a TCP endpoint (host and port) or a UNIX-domain stream socket
    (path). The path, after expansion of a leading “~”, must begin with a slash for the
    target to be a UNIX-domain socket; a target without such a path uses TCP.
    """

    __slots__ = {
        "_host": "The host part, which can be a hostname or address literal.",
        "_port": "The port number.",
        "_path": "The UNIX-domain socket path, as given.",
    }

    _host: str | None
    _port: int | None
    _path: str | None

    def __init__(
        self: Self,
        host: str | None = None,
        port: int | None = None,
        path: str | None = None,
    ) -> None:
        """
        Construct a new Target.

        :param host: The hostname or address literal to connect to over TCP.
        :param port: The TCP port number to connect to.
        :param path: The path of a UNIX-domain socket to connect to.
        :raises ValueError: if neither a UNIX-domain socket path nor both a host and a
            port are given
        """
        self._host = host or None
        self._port = port
        self._path = path or None
        if not self.is_local:
            if self._host is None or self._port is None:
                msg = "A target needs a host and port, or an absolute socket path"
                raise ValueError(msg)
            if not 0 <= self._port <= 65535:
                msg = f"Port {self._port} out of range"
                raise ValueError(msg)

    @classmethod
    def from_url(cls: type[Self], url: str) -> Self:
        """
        Build a target from an scgi URL.

        ``scgi://HOST:PORT`` names a TCP endpoint, ``scgi:///PATH`` a UNIX-domain socket
        by absolute path, and ``scgi://~/PATH`` a UNIX-domain socket relative to the
        home directory.

        :param url: The URL.
        :return: The target.
        :raises ValueError: if the URL is not an scgi URL or lacks a port
        """
        parts = urllib.parse.urlsplit(url)
        if parts.scheme != SCHEME:
            msg = f"Not an {SCHEME} URL: {url}"
            raise ValueError(msg)
        if parts.netloc.startswith("~"):
            # The home directory shorthand is parsed as (part of) the network location.
            return cls(path=parts.netloc + parts.path)
        if parts.path:
            return cls(host=parts.hostname, port=parts.port, path=parts.path)
        if parts.port is None:
            msg = f"Missing port in {url}"
            raise ValueError(msg)
        return cls(host=parts.hostname, port=parts.port)

    @classmethod
    def parse(cls: type[Self], text: str) -> Self:
        """
        Build a target from a command-line style address.

        The text may be an scgi URL, a socket path beginning with “/” or “~”, or a TCP
        address of the form ``HOST:PORT`` or ``[IPv6ADDR]:PORT``.

        :param text: The address.
        :return: The target.
        :raises ValueError: if the text is not a recognized address
        """
        if text.startswith(f"{SCHEME}://"):
            return cls.from_url(text)
        if text.startswith(("/", "~")):
            return cls(path=text)
        # The host and port part are separated by the last colon.
        parts = text.rsplit(":", 1)
        if len(parts) != 2:
            # No colon is present.
            msg = "Missing :PORT part"
            raise ValueError(msg)
        host, port = parts
        if "[" in port or "]" in port:
            # A colon is present, but not *after* the last bracket. That probably comes
            # from an IPv6 literal without a port number, in which “[a:b:c]” is split
            # into “[a:b” and “c]”.
            msg = "Missing :PORT part"
            raise ValueError(msg)
        if host and host[0] == "[" and host[-1] == "]":
            # This is an IPv6 literal with brackets to isolate it from the port number.
            # The Python stdlib doesn’t like the brackets.
            host = host[1:-1]
        return cls(host=host, port=int(port))

    @property
    def host(self: Self) -> str | None:
        """The TCP host, or None if not given."""
        return self._host

    @property
    def port(self: Self) -> int | None:
        """The TCP port, or None if not given."""
        return self._port

    @property
    def path(self: Self) -> str | None:
        """The socket path as given, before home directory expansion."""
        return self._path

    @property
    def is_local(self: Self) -> bool:
        """Whether the target is a UNIX-domain socket."""
        return self.local_path is not None

    @property
    def local_path(self: Self) -> str | None:
        """The absolute UNIX-domain socket path, or None for a TCP target."""
        if self._path is None:
            return None
        expanded = os.path.expanduser(self._path)
        return expanded if expanded.startswith("/") else None

    @property
    def peer(self: Self) -> tuple[str | None, int | str | None]:
        """
        The host and port to report in errors.

        For a UNIX-domain socket, the port is the absolute socket path.
        """
        if self.is_local:
            return self._host, self.local_path
        return self._host, self._port

    def __eq__(self: Self, other: object) -> bool:
        """
        Compare two targets by the endpoint they name.

        :param other: The other value.
        """
        if not isinstance(other, Target):
            return NotImplemented
        if self.is_local or other.is_local:
            return self.local_path == other.local_path
        return (self._host, self._port) == (other._host, other._port)

    def __hash__(self: Self) -> int:
        """Hash the target by the endpoint it names."""
        if self.is_local:
            return hash(self.local_path)
        return hash((self._host, self._port))

    def __repr__(self: Self) -> str:
        """Return a representation of the target."""
        if self.is_local:
            return f"Target(path={self._path!r})"
        return f"Target(host={self._host!r}, port={self._port!r})"

    def __str__(self: Self) -> str:
        """Return the target as an scgi URL."""
        if self.is_local:
            return f"{SCHEME}://{self._path}"
        if self._host is not None and ":" in self._host:
            return f"{SCHEME}://[{self._host}]:{self._port}"
        return f"{SCHEME}://{self._host}:{self._port}"
