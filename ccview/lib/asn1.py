"""
Generic ASN.1 value tree and PAC extraction from ticket authorization data.

Windows KDCs embed the PAC in the first authorization data element of a
ticket as::

    AD-IF-RELEVANT ::= SEQUENCE OF SEQUENCE {
        ad-type [0] INTEGER,     -- AD-WIN2K-PAC (128)
        ad-data [1] OCTET STRING -- the PAC
    }

:func:`extract_pac` walks exactly this shape over a schema-less value tree
(:class:`Asn1Node`) and fails fast on anything else.
"""

from typing import Any, List, NamedTuple, Sequence

from asn1crypto import parser

from ccview.lib.errors import MalformedAuthData, NoAuthorizationData
from ccview.lib.logger import logging

# ASN.1 tag classes
CLASS_UNIVERSAL = 0
CLASS_CONTEXT = 2

# Universal tag numbers
TAG_OCTET_STRING = 4
TAG_SEQUENCE = 16


class Asn1Node(NamedTuple):
    """
    One decoded BER/DER value without any schema applied.

    A node is either primitive (``contents`` holds the raw value) or
    constructed (``children`` decodes ``contents`` into nested nodes). The
    tag class distinguishes universal types such as SEQUENCE from
    context-specific tags such as ``[1]``.
    """

    class_: int
    constructed: bool
    tag: int
    contents: bytes

    @classmethod
    def load(cls, data: bytes) -> "Asn1Node":
        """
        Decode a single value, rejecting trailing data.

        Raises:
            MalformedAuthData: If the bytes are not a single BER value
        """
        try:
            class_, method, tag, _, contents, _ = parser.parse(data, strict=True)
        except ValueError as e:
            raise MalformedAuthData(f"Invalid ASN.1 value: {e}") from e

        return cls(class_, method == 1, tag, contents)

    @property
    def children(self) -> List["Asn1Node"]:
        """
        Decode the members of a constructed value.

        Raises:
            MalformedAuthData: If the value is primitive or a member is invalid
        """
        if not self.constructed:
            raise MalformedAuthData(
                f"Expected a constructed value, got primitive tag {self.tag}"
            )

        nodes = []
        offset = 0
        while offset < len(self.contents):
            try:
                length = parser.peek(self.contents[offset:])
            except ValueError as e:
                raise MalformedAuthData(f"Invalid ASN.1 member: {e}") from e

            nodes.append(Asn1Node.load(self.contents[offset : offset + length]))
            offset += length

        return nodes

    def is_sequence(self) -> bool:
        return (
            self.class_ == CLASS_UNIVERSAL
            and self.constructed
            and self.tag == TAG_SEQUENCE
        )

    def is_context(self, tag: int) -> bool:
        return self.class_ == CLASS_CONTEXT and self.constructed and self.tag == tag

    def is_octet_string(self) -> bool:
        return (
            self.class_ == CLASS_UNIVERSAL
            and not self.constructed
            and self.tag == TAG_OCTET_STRING
        )


def _expect(condition: bool, message: str) -> None:
    if not condition:
        raise MalformedAuthData(message)


def extract_pac(auth_data_elements: Sequence[Any]) -> bytes:
    """
    Pull the raw PAC bytes out of a ticket's authorization data.

    Only the first element is considered. Its ``ad-data`` must be an
    AD-IF-RELEVANT wrapper whose first entry carries the PAC as ``[1] OCTET
    STRING``. The path is fixed: the function does not search other elements
    or entries.

    Args:
        auth_data_elements: Decoded EncTicketPart ``authorization-data``

    Returns:
        The PAC bytes, uninterpreted

    Raises:
        NoAuthorizationData: If there are no elements
        MalformedAuthData: If the first element does not have the expected shape
    """
    if len(auth_data_elements) == 0:
        raise NoAuthorizationData("Ticket has no authorization data")

    element = auth_data_elements[0]
    logging.debug(f"Extracting PAC from authorization data type {int(element['ad-type'])}")

    outer = Asn1Node.load(bytes(element["ad-data"]))
    _expect(outer.is_sequence(), "Authorization data is not a SEQUENCE")

    entries = outer.children
    _expect(len(entries) > 0, "Authorization data wrapper is empty")

    entry = entries[0]
    _expect(entry.is_sequence(), "Authorization data entry is not a SEQUENCE")

    members = entry.children
    _expect(
        len(members) == 2,
        f"Authorization data entry has {len(members)} members, expected 2",
    )

    ad_data = members[1]
    _expect(ad_data.is_context(1), "Authorization data entry has no [1] ad-data")

    values = ad_data.children
    _expect(len(values) == 1, f"ad-data holds {len(values)} values, expected 1")
    _expect(values[0].is_octet_string(), "ad-data is not an OCTET STRING")

    return values[0].contents
