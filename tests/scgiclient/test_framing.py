"""Tests the framing module."""

from __future__ import annotations

from typing import Self
from unittest import TestCase

import sioscgi.request

from scgiclient import framing


def split_frame(data: bytes) -> tuple[bytes, bytes]:
    """
    Split a frame into its header block and its body.

    :param data: The frame.
    :return: The header block (without netstring framing) and the body.
    """
    length, _, rest = data.partition(b":")
    header_block = rest[: int(length)]
    assert rest[int(length) : int(length) + 1] == b","
    return header_block, rest[int(length) + 1 :]


def decode_headers(block: bytes) -> list[tuple[bytes, bytes]]:
    """
    Decode an SCGI header block into name/value pairs, preserving order.

    :param block: The header block.
    :return: The headers.
    """
    assert block.endswith(b"\x00")
    fields = block[:-1].split(b"\x00")
    return list(zip(fields[::2], fields[1::2], strict=True))


class TestFrame(TestCase):
    """Tests the frame function."""

    def test_hello(self: Self) -> None:
        """Test the frame of a short body."""
        self.assertEqual(
            framing.frame(b"hello"),
            b"24:CONTENT_LENGTH\x005\x00SCGI\x001\x00,hello",
        )

    def test_empty(self: Self) -> None:
        """Test the frame of an empty body."""
        self.assertEqual(
            framing.frame(b""), b"24:CONTENT_LENGTH\x000\x00SCGI\x001\x00,"
        )

    def test_structure(self: Self) -> None:
        """Test that any body is preceded by a correct netstring header block."""
        for payload in (b"", b"x", b"\x00\x00", b"<?xml?>" * 300, bytes(range(256))):
            with self.subTest(length=len(payload)):
                data = framing.frame(payload)
                self.assertTrue(data.endswith(payload))
                block, body = split_frame(data)
                self.assertEqual(body, payload)
                self.assertEqual(
                    decode_headers(block),
                    [
                        (b"CONTENT_LENGTH", str(len(payload)).encode("ASCII")),
                        (b"SCGI", b"1"),
                    ],
                )

    def test_extra_headers(self: Self) -> None:
        """Test that extra headers follow the mandatory ones in order."""
        data = framing.frame(
            b"<methodCall/>",
            [("REQUEST_METHOD", "POST"), (b"REQUEST_URI", b"/RPC2"), ("X", "é")],
        )
        block, body = split_frame(data)
        self.assertEqual(body, b"<methodCall/>")
        self.assertEqual(
            decode_headers(block),
            [
                (b"CONTENT_LENGTH", b"13"),
                (b"SCGI", b"1"),
                (b"REQUEST_METHOD", b"POST"),
                (b"REQUEST_URI", b"/RPC2"),
                (b"X", b"\xe9"),
            ],
        )

    def test_reserved_header(self: Self) -> None:
        """Test that the generated headers cannot be supplied again."""
        with self.assertRaises(ValueError):
            framing.frame(b"", [("CONTENT_LENGTH", "4")])
        with self.assertRaises(ValueError):
            framing.frame(b"", [(b"scgi", b"1")])

    def test_malformed_header(self: Self) -> None:
        """Test that empty names and embedded NULs are rejected."""
        with self.assertRaises(ValueError):
            framing.frame(b"", [("", "value")])
        with self.assertRaises(ValueError):
            framing.frame(b"", [("NAME", "a\x00b")])
        with self.assertRaises(ValueError):
            framing.frame(b"", [(b"NA\x00ME", b"value")])

    def test_accepted_by_responder(self: Self) -> None:
        """Test that an SCGI server-side decoder accepts the frame."""
        reader = sioscgi.request.SCGIReader()
        reader.receive_data(framing.frame(b"hello", [("REQUEST_METHOD", "POST")]))
        events = []
        while True:
            event = reader.next_event()
            if event is None:
                break
            events.append(event)
            if isinstance(event, sioscgi.request.End):
                break
        headers = events[0]
        assert isinstance(headers, sioscgi.request.Headers)
        self.assertEqual(headers.environment["CONTENT_LENGTH"], b"5")
        self.assertEqual(headers.environment["REQUEST_METHOD"], b"POST")
        body = b"".join(
            i.data for i in events[1:] if isinstance(i, sioscgi.request.Body)
        )
        self.assertEqual(body, b"hello")


class TestNetstring(TestCase):
    """Tests the netstring and encode_headers functions."""

    def test_netstring(self: Self) -> None:
        """Test netstring encoding."""
        self.assertEqual(framing.netstring(b""), b"0:,")
        self.assertEqual(framing.netstring(b"hello world!"), b"12:hello world!,")

    def test_encode_headers(self: Self) -> None:
        """Test header block encoding without framing."""
        self.assertEqual(framing.encode_headers([]), b"")
        self.assertEqual(
            framing.encode_headers([("A", "1"), (b"B", b"")]), b"A\x001\x00B\x00\x00"
        )
