NAME = "describe"

import argparse
from typing import Callable, Tuple

from ccview.lib.crypto import TICKET_KEY_USAGE


def entry(options: argparse.Namespace) -> None:
    from ccview.commands import describe

    describe.entry(options)


def add_subparser(subparsers: argparse._SubParsersAction) -> Tuple[str, Callable]:
    subparser = subparsers.add_parser(
        NAME, help="Describe the credentials of a ccache or kirbi file"
    )
    subparser.add_argument(
        "ticket",
        action="store",
        metavar="ticket file",
        help="ccache or kirbi file (optionally base64 encoded)",
    )
    subparser.add_argument("-debug", action="store_true", help="Turn debug output on")

    group = subparser.add_argument_group("decryption options")
    key_group = group.add_mutually_exclusive_group()
    key_group.add_argument(
        "-key",
        action="store",
        metavar="hex key",
        help="Service key for the ticket's encryption type",
    )
    key_group.add_argument(
        "-aes",
        action="store",
        metavar="hex key",
        help="AES key to use for decryption (128 or 256 bits)",
    )
    key_group.add_argument(
        "-nthash",
        action="store",
        metavar="[LMHASH:]NTHASH",
        help="NT hash to use for RC4 decryption",
    )
    group.add_argument(
        "-key-usage",
        action="store",
        type=int,
        default=TICKET_KEY_USAGE,
        metavar="number",
        help="Kerberos key usage for the ticket's encrypted part (default: %(default)s)",
    )

    group = subparser.add_argument_group("output options")
    group.add_argument(
        "-output",
        action="store",
        metavar="file",
        help="Write the report to this file instead of stdout",
    )

    return NAME, entry
