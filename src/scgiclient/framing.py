"""
Encoding of SCGI requests.

An SCGI request is a netstring containing the request headers, immediately followed by
the request body. Each header is its name, a NUL, its value, and another NUL. The first
header must be CONTENT_LENGTH, giving the length of the body in bytes, and the second is
SCGI with value 1.
"""

from __future__ import annotations

from collections.abc import Iterable

HeaderText = str | bytes
"""The legal types of a header name or value."""

RESERVED_HEADERS = frozenset((b"CONTENT_LENGTH", b"SCGI"))
"""The headers that are always generated and cannot be supplied by the caller."""


def netstring(data: bytes) -> bytes:
    """
    Encode a byte string as a netstring.

    :param data: The bytes to encode.
    :return: The decimal length of data, a colon, data, and a comma.
    """
    return b"%d:%s," % (len(data), data)


def _to_bytes(text: HeaderText) -> bytes:
    """
    Convert a header name or value to bytes.

    :param text: The name or value. Strings are encoded as ISO-8859-1, like HTTP header
        text.
    :return: The encoded name or value.
    """
    if isinstance(text, str):
        return text.encode("ISO-8859-1")
    return text


def encode_headers(headers: Iterable[tuple[HeaderText, HeaderText]]) -> bytes:
    """
    Encode a sequence of headers into an SCGI header block.

    The headers are written in the order given. No netstring framing is applied.

    :param headers: The name/value pairs.
    :return: The concatenated NUL-terminated names and values.
    :raises ValueError: if a name is empty or a name or value contains a NUL
    """
    block = bytearray()
    for name, value in headers:
        name_bytes = _to_bytes(name)
        value_bytes = _to_bytes(value)
        if not name_bytes:
            msg = "Empty header name"
            raise ValueError(msg)
        if b"\x00" in name_bytes or b"\x00" in value_bytes:
            msg = f"Header {name!r} contains a NUL"
            raise ValueError(msg)
        block += name_bytes
        block += b"\x00"
        block += value_bytes
        block += b"\x00"
    return bytes(block)


def frame(
    payload: bytes, headers: Iterable[tuple[HeaderText, HeaderText]] = ()
) -> bytes:
    """
    Build the wire bytes of an SCGI request.

    :param payload: The request body.
    :param headers: Additional headers, such as REQUEST_METHOD, to send after the
        mandatory CONTENT_LENGTH and SCGI headers.
    :return: The netstring-framed header block followed by payload.
    :raises ValueError: if an additional header is malformed or reserved
    """
    extra = list(headers)
    for name, _ in extra:
        if _to_bytes(name).upper() in RESERVED_HEADERS:
            msg = f"Header {name!r} is generated automatically"
            raise ValueError(msg)
    block = encode_headers(
        [(b"CONTENT_LENGTH", b"%d" % len(payload)), (b"SCGI", b"1"), *extra]
    )
    return netstring(block) + payload
