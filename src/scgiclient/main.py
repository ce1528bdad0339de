"""The command-line entry point."""

import argparse
import asyncio
import json
import logging
import logging.config
import pathlib
import sys

from . import asyncio as scgi_asyncio
from .target import Target
from .types import SCGIConnectionError


def parse_header(text: str) -> tuple[str, str]:
    """
    Parse a NAME=VALUE header argument.

    :param text: The argument.
    :return: The name and value.
    """
    name, sep, value = text.partition("=")
    if not sep or not name:
        msg = f"Header {text!r} is not of the form NAME=VALUE"
        raise argparse.ArgumentTypeError(msg)
    return name, value


def parse_target(text: str) -> Target:
    """
    Parse a TARGET argument.

    :param text: The argument.
    :return: The target.
    """
    try:
        return Target.parse(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def make_parser() -> argparse.ArgumentParser:
    """
    Build the command-line parser.

    :return: The parser.
    """
    parser = argparse.ArgumentParser(
        description="Send a request to an SCGI responder and print the raw response."
    )
    parser.add_argument(
        "--logging",
        "-l",
        type=pathlib.Path,
        help="the JSON file containing a logging configuration dictionary per "
        "logging.config.dictConfig (default: none)",
    )
    parser.add_argument(
        "--header",
        "-H",
        action="append",
        default=[],
        type=parse_header,
        help="an extra request header to send after CONTENT_LENGTH and SCGI",
        metavar="NAME=VALUE",
    )
    body = parser.add_mutually_exclusive_group()
    body.add_argument(
        "--data",
        "-d",
        help="the request body, encoded as UTF-8 (default: empty)",
    )
    body.add_argument(
        "--data-file",
        type=pathlib.Path,
        help="the file containing the request body, or - for standard input",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=pathlib.Path,
        help="the file to write the response to (default: standard output)",
    )
    parser.add_argument(
        "target",
        type=parse_target,
        help="the SCGI responder to connect to",
        metavar="scgi://HOST:PORT | scgi:///PATH | /PATH | ~/PATH | HOST:PORT",
    )
    return parser


def read_payload(args: argparse.Namespace) -> bytes:
    """
    Find the request body requested on the command line.

    :param args: The parsed arguments.
    :return: The request body.
    """
    if args.data is not None:
        return args.data.encode("UTF-8")
    if args.data_file is None:
        return b""
    if str(args.data_file) == "-":
        return sys.stdin.buffer.read()
    return args.data_file.read_bytes()


def main() -> None:
    """Run the application."""
    try:
        # Parse and check command-line parameters.
        args = make_parser().parse_args()

        # Set up logging.
        if args.logging is not None:
            with args.logging.open("rb") as logging_config_file:
                cfg = json.load(logging_config_file)
            logging.config.dictConfig(cfg)
        else:
            logging.basicConfig(level=logging.INFO)

        # Perform the request.
        payload = read_payload(args)
        logging.getLogger(__name__).info(
            "Sending %d-byte request to %s", len(payload), args.target
        )
        try:
            response = asyncio.run(
                scgi_asyncio.fetch(args.target, payload, args.header)
            )
        except SCGIConnectionError as exc:
            logging.getLogger(__name__).error("%s", exc)  # noqa: TRY400
            sys.exit(1)
        logging.getLogger(__name__).info("Received %d-byte response", len(response))

        # Deliver the response.
        if args.output is not None:
            args.output.write_bytes(response)
        else:
            sys.stdout.buffer.write(response)
            sys.stdout.buffer.flush()
    finally:
        logging.shutdown()
