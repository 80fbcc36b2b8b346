"""
Command-line parsing for the mail client.

Usage:
    mail-client [-a ADDRESS] [-p PORT] [--token-file PATH] [--framing MODE]
                [-v] <command> [<args>]

Commands:
    register <username> <password>
    login <username> <password>
    list
    send <recipient> <subject> <body>
    fetch <id>
    logout
"""

import argparse
import base64
import ipaddress
import logging
import socket
import sys
from typing import List, Optional, Tuple

from .commands import CommandKind, CommandSpec
from .config import (
    ClientConfig,
    DEFAULT_ADDRESS,
    DEFAULT_PORT,
    DEFAULT_TOKEN_PATH,
    FRAMING_BALANCED,
    FRAMING_MODES,
)


class ClientArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports usage problems with exit status 1"""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message} , see help {{-h | --help}} for more info.\n")


def base64_encode(data: str) -> str:
    """Encode a password the way the server expects it"""
    return base64.b64encode(data.encode("utf-8")).decode("ascii")


def is_ipv4(address: str) -> bool:
    try:
        return isinstance(ipaddress.ip_address(address), ipaddress.IPv4Address)
    except ValueError:
        return False


def is_ipv6(address: str) -> bool:
    try:
        return isinstance(ipaddress.ip_address(address), ipaddress.IPv6Address)
    except ValueError:
        return False


def resolve_address(address: str) -> Tuple[str, bool]:
    """
    Turn the --address value into an address literal and family flag.

    Args:
        address: Host name, IPv4 or IPv6 literal, or ``localhost``

    Returns:
        Tuple of (address, is_v6)

    Raises:
        ValueError: If a host name cannot be resolved
    """
    if address == "localhost":
        return DEFAULT_ADDRESS, True
    if is_ipv4(address):
        return address, False
    if is_ipv6(address):
        return address, True
    try:
        resolved = socket.gethostbyname(address)
    except (OSError, UnicodeError) as e:
        raise ValueError(f"Invalid address: {address}") from e
    logging.debug(f"Resolved {address} to {resolved}")
    return resolved, False


def parse_port(value: str) -> int:
    """argparse type for the --port option"""
    if not value.isdigit() or int(value) > 65535:
        raise argparse.ArgumentTypeError(f"Invalid port: {value}")
    return int(value)


def parse_message_id(value: str) -> str:
    """argparse type for the fetch id; kept as text, sent bare"""
    if not value.isdigit():
        raise argparse.ArgumentTypeError(f"Invalid id: {value}")
    return value


def build_parser() -> ClientArgumentParser:
    parser = ClientArgumentParser(
        prog="mail-client",
        description="Client for the envelope protocol mail server",
    )
    parser.add_argument("-a", "--address", default="localhost",
                        help="Server hostname or address to connect to (default localhost)")
    parser.add_argument("-p", "--port", type=parse_port, default=DEFAULT_PORT,
                        help=f"Server port to connect to (default {DEFAULT_PORT})")
    parser.add_argument("--token-file", default=DEFAULT_TOKEN_PATH,
                        help=f"File holding the login token (default {DEFAULT_TOKEN_PATH})")
    parser.add_argument("--framing", choices=FRAMING_MODES, default=FRAMING_BALANCED,
                        help="How the end of a response is detected")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", metavar="<command>")
    commands.required = True

    register = commands.add_parser("register", help="Create a new account")
    register.add_argument("username")
    register.add_argument("password")

    login = commands.add_parser("login", help="Log in and store the login token")
    login.add_argument("username")
    login.add_argument("password")

    commands.add_parser("list", help="List messages")

    send = commands.add_parser("send", help="Send a message")
    send.add_argument("recipient")
    send.add_argument("subject")
    send.add_argument("body")

    fetch = commands.add_parser("fetch", help="Show one message")
    fetch.add_argument("id", type=parse_message_id)

    commands.add_parser("logout", help="Log out and forget the login token")
    return parser


def command_from_args(args: argparse.Namespace) -> CommandSpec:
    """Build the CommandSpec for parsed arguments"""
    kind = CommandKind(args.command)
    if kind in (CommandKind.REGISTER, CommandKind.LOGIN):
        return CommandSpec.build(kind, args.username, base64_encode(args.password))
    if kind is CommandKind.SEND:
        return CommandSpec.build(kind, args.recipient, args.subject, args.body)
    if kind is CommandKind.FETCH:
        return CommandSpec.build(kind, args.id)
    return CommandSpec.build(kind)


def parse_args(argv: Optional[List[str]] = None) -> Tuple[ClientConfig, CommandSpec, bool]:
    """
    Parse the command line.

    Returns:
        Tuple of (config, command, verbose)

    Exits with status 1 on invalid input and 0 after printing help.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        address, is_v6 = resolve_address(args.address)
    except ValueError as e:
        parser.error(str(e))

    config = ClientConfig(
        address=address,
        is_v6=is_v6,
        port=args.port,
        token_path=args.token_file,
        framing=args.framing,
    )
    return config, command_from_args(args), args.verbose
