"""
Credential cache loading.

Wraps impacket's :class:`CCache` with the file format version it was read
from, and loads ccache files, kirbi (KRB-CRED) files and base64 encoded forms
of both.
"""

import base64
import binascii
from struct import calcsize, unpack
from typing import Any, List, Optional, Union

from impacket.krb5.ccache import (
    Address,
    AuthData,
    CCache,
    CountedOctetString,
    Credential,
    Header,
    Principal,
)

from ccview.lib.errors import MalformedCredentialCache
from ccview.lib.logger import logging

# First byte of every ccache file
CCACHE_MAGIC = 0x05

# impacket writes (and converts kirbi files to) version 4 ccaches
DEFAULT_CCACHE_VERSION = 4

# Server name prefix of ccache configuration entries, which are not credentials
CONF_DATA_PREFIX = b"krb5_ccache_conf_data"


class CacheCredential(Credential):
    """
    impacket ccache Credential that keeps its addresses and authorization
    data elements in lists.

    impacket's own parser appends authorization data to a tuple and so fails
    on any credential that carries some.
    """

    def __init__(self, data: Optional[bytes] = None, ccache_version: Optional[int] = None):
        super().__init__()
        self.addresses = []
        self.authData = []
        if data is None:
            return

        if ccache_version == 3:
            self.header = self.CredentialHeaderV3(data)
        else:
            self.header = self.CredentialHeaderV4(data)
        data = data[len(self.header) :]

        for _ in range(self.header["num_address"]):
            address = Address(data)
            data = data[len(address) :]
            self.addresses.append(address)

        num_authdata = unpack("!L", data[:4])[0]
        data = data[calcsize("!L") :]

        for _ in range(num_authdata):
            auth_data = AuthData(data)
            data = data[len(auth_data) :]
            self.authData.append(auth_data)

        self.ticket = CountedOctetString(data)
        data = data[len(self.ticket) :]
        self.secondTicket = CountedOctetString(data)


class Ccache(CCache):
    """impacket CCache that parses its credentials as :class:`CacheCredential`."""

    def __init__(self, data: Optional[bytes] = None):
        super().__init__()
        if data is None:
            return

        version = data[1]
        if version in (1, 2):
            raise NotImplementedError(f"ccache version {version} is not supported")

        # Only version 4 has a header section
        if version == 4:
            mini_header = self.MiniHeader(data)
            data = data[len(mini_header) :]

            self.headers = []
            header_len = mini_header["headerlen"]
            while header_len > 0:
                header = Header(data)
                self.headers.append(header)
                header_len -= len(header)
                data = data[len(header) :]
        else:
            data = data[2:]

        self.principal = Principal(data)
        data = data[len(self.principal) :]

        while len(data) > 0:
            credential = CacheCredential(data, version)
            if not credential["server"].prettyPrint().startswith(CONF_DATA_PREFIX):
                self.credentials.append(credential)
            data = data[len(credential.getData()) :]


class CredentialCache:
    """
    A loaded credential cache.

    Attributes:
        ccache: The impacket CCache holding the credentials
        version: ccache file format version (the second byte of the file)
    """

    def __init__(self, ccache: Ccache, version: int = DEFAULT_CCACHE_VERSION):
        self.ccache = ccache
        self.version = version

    @property
    def default_principal(self) -> str:
        return principal_to_str(self.ccache.principal)

    @property
    def credentials(self) -> List[Any]:
        return self.ccache.credentials

    @classmethod
    def from_bytes(cls, data: bytes) -> "CredentialCache":
        """
        Load a ccache or kirbi credential.

        Args:
            data: Raw ccache or KRB-CRED bytes

        Raises:
            MalformedCredentialCache: If the data is neither format
        """
        if not data:
            raise MalformedCredentialCache("Ticket data is empty")

        if data[0] == CCACHE_MAGIC:
            try:
                logging.debug("Trying to load ticket as CCache")
                ccache = Ccache(data)
                logging.debug("Loaded ticket as CCache")
                return cls(ccache, data[1])
            except Exception as e:
                raise MalformedCredentialCache(f"Invalid ccache: {e}") from e

        try:
            logging.debug("Trying to load ticket as Kirbi")
            ccache = Ccache()
            ccache.fromKRBCRED(data)
            logging.debug("Loaded ticket as Kirbi")
        except Exception as e:
            raise MalformedCredentialCache(f"Invalid kirbi: {e}") from e

        return cls(ccache)

    @classmethod
    def load(cls, ticket: Union[bytes, str]) -> "CredentialCache":
        """
        Load a credential that may be base64 encoded.

        Base64 is tried first, then the raw bytes.

        Args:
            ticket: File contents or base64 string

        Raises:
            MalformedCredentialCache: If no interpretation succeeds
        """
        if isinstance(ticket, str):
            ticket = ticket.encode()

        try:
            logging.debug("Trying to base64-decode ticket")
            decoded = base64.b64decode(ticket)
        except binascii.Error:
            logging.debug("Ticket is not base64 encoded")
        else:
            try:
                return cls.from_bytes(decoded)
            except MalformedCredentialCache as e:
                logging.debug(f"Base64-decoded ticket did not load: {e}")

        return cls.from_bytes(ticket)

    @classmethod
    def from_file(cls, path: str) -> "CredentialCache":
        """
        Load a credential from a ccache, kirbi or base64 encoded file.
        """
        logging.debug(f"Loading ticket from {path!r}")
        with open(path, "rb") as f:
            data = f.read()

        return cls.load(data)


def principal_to_str(principal: Any) -> str:
    """
    Render a ccache principal as ``component/component@REALM``.
    """
    value = principal.prettyPrint()
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return value
