"""
Error types and error reporting utilities for ccview.

Every failure of the decode-decrypt-dispatch pipeline is raised as a subclass
of :class:`CcacheError`, so callers rendering a batch of credentials can catch
a single type per credential and move on to the next one.
"""

import traceback

from ccview.lib.logger import is_verbose, logging


class CcacheError(Exception):
    """Base class for all credential rendering failures."""

    pass


class MalformedCredentialCache(CcacheError):
    """The input could not be loaded as a ccache or kirbi credential."""

    pass


class UnsupportedEncryptionType(CcacheError):
    """No encryption suite is registered for the ticket's etype."""

    def __init__(self, etype: int):
        super().__init__(f"Unsupported encryption type: {etype}")
        self.etype = etype


class DecryptionFailed(CcacheError):
    """The ciphertext did not decrypt under the supplied key (wrong key or corrupted data)."""

    pass


class MalformedTicketBody(CcacheError):
    """Bytes could not be decoded as a Kerberos ticket structure."""

    pass


class NoAuthorizationData(CcacheError):
    """The decrypted ticket carries no authorization data to extract a PAC from."""

    pass


class MalformedAuthData(CcacheError):
    """The first authorization data element does not have the expected PAC wrapper shape."""

    pass


class MalformedPacContainer(CcacheError):
    """The PAC blob is not a valid PACTYPE container."""

    pass


def handle_error(is_warning: bool = False) -> None:
    """
    Report the exception currently being handled.

    Prints the full traceback in verbose mode, otherwise a hint on how to
    get one.
    """
    if is_verbose():
        traceback.print_exc()
    else:
        msg = "Use -debug to print a stacktrace"
        if is_warning:
            logging.warning(msg)
        else:
            logging.error(msg)
