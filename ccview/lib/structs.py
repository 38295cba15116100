"""
Kerberos and PAC enumerations used by the ccache report.

This module defines the closed tables the report resolves numbers against
(flag bits, address types, authorization data types, PAC buffer types and
encryption types) together with the two lookup helpers used everywhere:

- :func:`enabled_names` turns a flag word into the names of its set bits
- :func:`label` turns an enumeration value into a display label
"""

import enum
from typing import Any, Dict, List, Type

from asn1crypto import core

# =========================================================================
# Flag words
# =========================================================================

# Width of a Kerberos flags word; bit position 0 is the most significant bit
FLAGS_WIDTH = 32


class KDCOptions(core.BitString):
    """
    Kerberos KDC request options bitmap.

    The ccache stores a credential's ticket flags as a 32-bit word; the report
    names its set bits with this table.
    """

    _map = {
        0: "reserved",
        1: "forwardable",
        2: "forwarded",
        3: "proxiable",
        4: "proxy",
        5: "allow-postdate",
        6: "postdated",
        8: "renewable",
        11: "opt-hardware-auth",
        14: "constrained-delegation",  # cname-in-addl-tkt (14)
        15: "canonicalize",
        16: "request-anonymous",
        26: "disable-transited-check",
        27: "renewable-ok",
        28: "enc-tkt-in-skey",
        30: "renew",
        31: "validate",
    }


class TicketFlags(core.BitString):
    """
    Kerberos ticket flags bitmap (RFC 4120 section 5.3).

    Used for the flags found inside a decrypted EncTicketPart.
    """

    _map = {
        0: "reserved",
        1: "forwardable",
        2: "forwarded",
        3: "proxiable",
        4: "proxy",
        5: "may-postdate",
        6: "postdated",
        7: "invalid",
        8: "renewable",
        9: "initial",
        10: "pre-authent",
        11: "hw-authent",
        12: "transited-policy-checked",
        13: "ok-as-delegate",
        15: "enc-pa-rep",
        16: "anonymous",
    }


KDC_OPTION_FLAGS: Dict[int, str] = KDCOptions._map
TICKET_FLAGS: Dict[int, str] = TicketFlags._map


def enabled_names(bitmask: int, table: Dict[int, str]) -> List[str]:
    """
    Return the names of the flags set in a 32-bit Kerberos flags word.

    Bit positions use Kerberos BIT STRING numbering, so position ``p`` is
    tested with the mask ``1 << (31 - p)``.

    Args:
        bitmask: Flags word
        table: Mapping of bit position to flag name

    Returns:
        Names of the set flags, in ascending bit position order

    Example:
        >>> enabled_names(0x40800000, TICKET_FLAGS)
        ['forwardable', 'renewable']
    """
    return [
        table[position]
        for position in sorted(table)
        if 0 <= position < FLAGS_WIDTH
        and bitmask & (1 << (FLAGS_WIDTH - 1 - position))
    ]


def bitstring_to_int(flags: Any) -> int:
    """
    Convert a decoded pyasn1 BIT STRING into a 32-bit flags word.

    Args:
        flags: pyasn1 BitString (e.g. EncTicketPart flags)

    Returns:
        Flags word with bit position 0 as the most significant bit
    """
    value = 0
    for position, bit in enumerate(flags.asBinary()[:FLAGS_WIDTH]):
        if bit == "1":
            value |= 1 << (FLAGS_WIDTH - 1 - position)
    return value


# =========================================================================
# Enumerations
# =========================================================================


class AddressType(enum.IntEnum):
    """Kerberos host address types."""

    IPV4 = 2
    DIRECTIONAL = 3
    CHAOS_NET = 5
    XNS = 6
    ISO = 7
    DECNET_PHASE_IV = 12
    APPLE_TALK_DDP = 16
    NET_BIOS = 20
    IPV6 = 24


class AuthorizationDataType(enum.IntEnum):
    """Kerberos authorization data element types."""

    IF_RELEVANT = 1
    KDC_ISSUED = 4
    AND_OR = 5
    MANDATORY_FOR_KDC = 8
    INITIAL_VERIFIED_CAS = 9
    OSF_DCE = 64
    SESAME = 65
    WIN2K_PAC = 128


class PacBufferType(enum.IntEnum):
    """PAC_INFO_BUFFER ulType values ([MS-PAC] 2.4)."""

    LOGON_INFORMATION = 1
    CREDENTIAL_INFORMATION = 2
    SERVER_CHECKSUM = 6
    PRIVILEGE_SERVER_CHECKSUM = 7
    CLIENT_INFORMATION = 10
    CONSTRAINED_DELEGATION_INFORMATION = 11
    USER_PRINCIPAL_NAME_AND_DNS_INFORMATION = 12
    CLIENT_CLAIMS_INFORMATION = 13
    DEVICE_INFORMATION = 14
    DEVICE_CLAIMS_INFORMATION = 15
    TICKET_CHECKSUM = 16
    PAC_ATTRIBUTES = 17
    PAC_REQUESTOR = 18
    FULL_PAC_CHECKSUM = 19


class EncType(enum.IntEnum):
    """Kerberos encryption types."""

    DES_CRC = 1
    DES_MD4 = 2
    DES_MD5 = 3
    DES3 = 16
    AES128 = 17
    AES256 = 18
    RC4 = 23
    RC4_EXP = 24


def _enum_labels(enum_type: Type[enum.IntEnum], separator: str = "_") -> Dict[int, str]:
    return {
        member.value: member.name.replace("_", separator) for member in enum_type
    }


ADDRESS_TYPES: Dict[int, str] = _enum_labels(AddressType, separator=" ")
AUTHORIZATION_DATA_TYPES: Dict[int, str] = _enum_labels(AuthorizationDataType)
PAC_BUFFER_TYPES: Dict[int, str] = _enum_labels(PacBufferType)
ENCRYPTION_TYPES: Dict[int, str] = _enum_labels(EncType)


def label(value: int, table: Dict[int, str]) -> str:
    """
    Resolve an enumeration value to its display label.

    Unknown values are not an error: they render as their decimal form.

    Args:
        value: Enumeration value
        table: Mapping of value to label

    Returns:
        The mapped label, or ``str(value)``
    """
    return table.get(int(value), str(int(value)))
