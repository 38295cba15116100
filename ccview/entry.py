# PYTHON_ARGCOMPLETE_OK
import argparse
import logging
import sys

import argcomplete

from ccview import version
from ccview.commands.parsers import ENTRY_PARSERS
from ccview.lib import logger
from ccview.lib.errors import handle_error


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ccview",
        description="Kerberos credential cache viewer and ticket decryptor",
    )
    parser.add_argument(
        "-v", "--version", action="version", version=version.BANNER.strip()
    )

    subparsers = parser.add_subparsers(help="Action", dest="action", required=True)
    for entry_parser in ENTRY_PARSERS:
        action, entry = entry_parser.add_subparser(subparsers)
        subparsers.choices[action].set_defaults(entry=entry)

    return parser


def main() -> None:
    logger.init()

    parser = build_parser()
    argcomplete.autocomplete(parser, always_complete_options=False)

    if len(sys.argv) == 1:
        parser.print_help()
        sys.exit(1)

    options = parser.parse_args()

    if options.debug:
        logger.logging.setLevel(logging.DEBUG)
    logger.set_verbose(options.debug)

    try:
        options.entry(options)
    except Exception as e:
        logger.logging.error(f"Got error: {e}")
        handle_error()


if __name__ == "__main__":
    main()
