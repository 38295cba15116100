"""
Credential cache description command.

Loads a ccache or kirbi file (optionally base64 encoded), optionally decrypts
its tickets with a supplied service key, and prints a report of every
credential, its ticket and the ticket's PAC.
"""

import argparse
from typing import Optional

from ccview.lib.ccache import CredentialCache
from ccview.lib.files import save_report
from ccview.lib.logger import logging
from ccview.lib.presenter import Presenter

# Valid AES key sizes (AES128, AES256)
AES_KEY_SIZES = (16, 32)

# NT hash size (RC4-HMAC key)
NTHASH_SIZE = 16


def parse_key(
    key: Optional[str] = None,
    aes: Optional[str] = None,
    nthash: Optional[str] = None,
) -> Optional[bytes]:
    """
    Resolve the hex key options to raw key bytes.

    Args:
        key: Raw key for the ticket's encryption type
        aes: AES128 or AES256 key
        nthash: NT hash (RC4-HMAC key)

    Returns:
        Key bytes, or None if no key was given

    Raises:
        ValueError: If the key is not hex or has the wrong size
    """
    if key is not None:
        name, value, sizes = "key", key, None
    elif aes is not None:
        name, value, sizes = "AES key", aes, AES_KEY_SIZES
    elif nthash is not None:
        # Accept LM:NT form
        if ":" in nthash:
            nthash = nthash.split(":")[-1]
        name, value, sizes = "NT hash", nthash, (NTHASH_SIZE,)
    else:
        return None

    try:
        data = bytes.fromhex(value)
    except ValueError:
        raise ValueError(f"Invalid {name}: not a hex string")

    if not data:
        raise ValueError(f"Invalid {name}: empty")

    if sizes is not None and len(data) not in sizes:
        raise ValueError(
            f"Invalid {name}: expected {' or '.join(str(s) for s in sizes)} bytes, got {len(data)}"
        )

    return data


def entry(options: argparse.Namespace) -> None:
    """
    Command-line entry point for the describe functionality.

    Args:
        options: Command line arguments
    """
    key = parse_key(options.key, options.aes, options.nthash)

    ccache = CredentialCache.from_file(options.ticket)
    logging.info(
        f"Loaded ccache v{ccache.version} with {len(ccache.credentials)} credential(s)"
    )

    if key is None:
        logging.info("No key specified. Tickets will not be decrypted")

    report = Presenter(ccache, key_usage=options.key_usage).present(key=key)

    if options.output:
        output_path = save_report(report, options.output)
        logging.info(f"Wrote report to {output_path!r}")
    else:
        print(report)
