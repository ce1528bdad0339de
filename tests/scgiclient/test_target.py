"""Tests the target module."""

from __future__ import annotations

import os
from typing import Self
from unittest import TestCase
from unittest.mock import patch

from scgiclient.target import Target


class TestTarget(TestCase):
    """Tests the Target class."""

    def test_local(self: Self) -> None:
        """Test that an absolute path selects a UNIX-domain socket."""
        target = Target(path="/tmp/scgi.sock")
        self.assertTrue(target.is_local)
        self.assertEqual(target.local_path, "/tmp/scgi.sock")
        self.assertEqual(target.peer, (None, "/tmp/scgi.sock"))

    def test_tcp(self: Self) -> None:
        """Test that a host and port select TCP."""
        target = Target(host="localhost", port=5000)
        self.assertFalse(target.is_local)
        self.assertIsNone(target.local_path)
        self.assertEqual(target.peer, ("localhost", 5000))

    @patch.dict(os.environ, {"HOME": "/home/alice"})
    def test_home_expansion(self: Self) -> None:
        """Test that a path relative to the home directory is expanded."""
        target = Target(path="~/sock")
        self.assertTrue(target.is_local)
        self.assertEqual(target.local_path, "/home/alice/sock")
        self.assertEqual(target.local_path, Target(path="/home/alice/sock").local_path)
        self.assertEqual(target, Target(path="/home/alice/sock"))
        self.assertEqual(target.path, "~/sock")

    def test_relative_path_is_not_local(self: Self) -> None:
        """Test that a path not beginning with a slash does not select a socket."""
        target = Target(host="localhost", port=5000, path="RPC2")
        self.assertFalse(target.is_local)
        with self.assertRaises(ValueError):
            Target(path="RPC2")

    def test_incomplete(self: Self) -> None:
        """Test that a TCP target needs both host and port."""
        with self.assertRaises(ValueError):
            Target()
        with self.assertRaises(ValueError):
            Target(host="localhost")
        with self.assertRaises(ValueError):
            Target(port=5000)
        with self.assertRaises(ValueError):
            Target(host="localhost", port=65536)

    def test_str(self: Self) -> None:
        """Test conversion to a URL."""
        self.assertEqual(
            str(Target(host="localhost", port=5000)), "scgi://localhost:5000"
        )
        self.assertEqual(str(Target(host="::1", port=5000)), "scgi://[::1]:5000")
        self.assertEqual(str(Target(path="/tmp/s")), "scgi:///tmp/s")
        self.assertEqual(str(Target(path="~/s")), "scgi://~/s")


class TestFromURL(TestCase):
    """Tests building a Target from a URL."""

    def test_tcp(self: Self) -> None:
        """Test a TCP URL."""
        target = Target.from_url("scgi://localhost:5000")
        self.assertEqual(target.host, "localhost")
        self.assertEqual(target.port, 5000)
        self.assertFalse(target.is_local)

    def test_ipv6(self: Self) -> None:
        """Test a TCP URL with an IPv6 literal."""
        target = Target.from_url("scgi://[::1]:5000")
        self.assertEqual(target.host, "::1")
        self.assertEqual(target.port, 5000)

    def test_local(self: Self) -> None:
        """Test a UNIX-domain socket URL."""
        target = Target.from_url("scgi:///tmp/scgi.sock")
        self.assertTrue(target.is_local)
        self.assertEqual(target.local_path, "/tmp/scgi.sock")

    @patch.dict(os.environ, {"HOME": "/home/alice"})
    def test_home(self: Self) -> None:
        """Test a UNIX-domain socket URL relative to the home directory."""
        target = Target.from_url("scgi://~/sock")
        self.assertEqual(target.path, "~/sock")
        self.assertEqual(target.local_path, "/home/alice/sock")

    def test_bad(self: Self) -> None:
        """Test rejected URLs."""
        with self.assertRaises(ValueError):
            Target.from_url("http://localhost:5000")
        with self.assertRaises(ValueError):
            Target.from_url("scgi://localhost")


class TestParse(TestCase):
    """Tests parsing a command-line address."""

    def test_ipv4(self: Self) -> None:
        """Test an IPv4 address."""
        target = Target.parse("127.0.0.1:5000")
        self.assertEqual(target.host, "127.0.0.1")
        self.assertEqual(target.port, 5000)

    def test_ipv6(self: Self) -> None:
        """Test a bracketed IPv6 address."""
        target = Target.parse("[::1]:5000")
        self.assertEqual(target.host, "::1")
        self.assertEqual(target.port, 5000)

    def test_hostname(self: Self) -> None:
        """Test a hostname."""
        target = Target.parse("example.com:5000")
        self.assertEqual(target.host, "example.com")
        self.assertEqual(target.port, 5000)

    def test_path(self: Self) -> None:
        """Test socket paths and URLs."""
        self.assertEqual(Target.parse("/run/scgi.sock").local_path, "/run/scgi.sock")
        self.assertEqual(Target.parse("~/sock").path, "~/sock")
        self.assertEqual(Target.parse("scgi:///run/x").local_path, "/run/x")

    def test_missing_port(self: Self) -> None:
        """Test addresses without a port."""
        with self.assertRaises(ValueError):
            Target.parse("localhost")
        with self.assertRaises(ValueError):
            Target.parse("[::1]")
        with self.assertRaises(ValueError):
            Target.parse("localhost:http")
