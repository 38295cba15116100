"""
PAC (Privilege Attribute Certificate) decoding and rendering.

:func:`decode_pac` splits a PAC blob into its info buffers using impacket's
PACTYPE structures. :func:`render_pac_info_buffer` dispatches each buffer on
its type tag to a renderer that knows the buffer's layout:

- LOGON_INFORMATION: KERB_VALIDATION_INFO (NDR encoded)
- CLIENT_INFORMATION: PAC_CLIENT_INFO
- SERVER_CHECKSUM / PRIVILEGE_SERVER_CHECKSUM: PAC_SIGNATURE_DATA
- USER_PRINCIPAL_NAME_AND_DNS_INFORMATION: UPN_DNS_INFO

Any other tag, and any buffer a renderer cannot parse, is rendered as its
type label followed by a hex dump of the payload.
"""

import struct
from typing import Any, List, NamedTuple

from impacket.krb5.pac import (
    PAC_CLIENT_INFO,
    PAC_INFO_BUFFER,
    PAC_SIGNATURE_DATA,
    PACTYPE,
    UPN_DNS_INFO,
    UPN_DNS_INFO_FULL,
    VALIDATION_INFO,
)
from impacket.ldap.ldaptypes import LDAP_SID

from ccview.lib.errors import MalformedPacContainer
from ccview.lib.formatting import indent, join_lines, to_hex, to_title
from ccview.lib.logger import logging
from ccview.lib.structs import PAC_BUFFER_TYPES, PacBufferType
from ccview.lib.time import filetime_to_str, ndr_filetime_to_int

# Size of the PACTYPE header (cBuffers + Version)
PACTYPE_HEADER_SIZE = 8

# Size of one PAC_INFO_BUFFER entry (ulType + cbBufferSize + Offset)
PAC_INFO_BUFFER_SIZE = 16

# UPN_DNS_INFO flags
UPN_DNS_INFO_UPN_CONSTRUCTED = 0x1
UPN_DNS_INFO_EXTENDED_NAMES = 0x2  # S flag: SamName and Sid are present


class PacInfoBuffer(NamedTuple):
    """A PAC info buffer: its type tag and its raw payload."""

    ul_type: int
    data: bytes


def decode_pac(data: bytes) -> List[PacInfoBuffer]:
    """
    Decode a PAC blob into its info buffers.

    Args:
        data: Raw PAC bytes as extracted from the ticket's authorization data

    Returns:
        Info buffers in the order they are listed in the PAC

    Raises:
        MalformedPacContainer: If the header or a buffer entry is truncated or
            points outside the blob
    """
    if len(data) < PACTYPE_HEADER_SIZE:
        raise MalformedPacContainer(f"PAC is too short ({len(data)} bytes)")

    try:
        pac_type = PACTYPE(data)
    except struct.error as e:
        raise MalformedPacContainer(f"Invalid PAC header: {e}") from e

    count = pac_type["cBuffers"]
    if PACTYPE_HEADER_SIZE + count * PAC_INFO_BUFFER_SIZE > len(data):
        raise MalformedPacContainer(
            f"PAC declares {count} buffers but is only {len(data)} bytes long"
        )

    logging.debug(f"PAC version {pac_type['Version']} with {count} buffers")

    buffers = []
    buff = pac_type["Buffers"]
    for _ in range(count):
        info_buffer = PAC_INFO_BUFFER(buff)
        offset = info_buffer["Offset"]
        size = info_buffer["cbBufferSize"]

        if offset < PACTYPE_HEADER_SIZE or offset + size > len(data):
            raise MalformedPacContainer(
                f"PAC buffer of type {info_buffer['ulType']} points outside the PAC"
            )

        buffers.append(PacInfoBuffer(info_buffer["ulType"], data[offset : offset + size]))

        # Move to next buffer entry
        buff = buff[len(info_buffer) :]

    return buffers


# =========================================================================
# Renderers
# =========================================================================


def _is_null(structure: Any, name: str) -> bool:
    """
    Check whether an NDR member is (or wraps) a null pointer.
    """
    value = structure.fields[name]
    if "ReferentID" not in value.fields:
        value = value.fields["Data"]
    return value["ReferentID"] == 0


def _unicode_string(structure: Any, name: str) -> str:
    """
    Render an RPC_UNICODE_STRING member, ``nil`` for a null buffer pointer.
    """
    if _is_null(structure, name):
        return "nil"
    return f"'{structure[name]}'"


def _utf16_field(data: bytes, offset: int, length: int) -> str:
    if offset + length > len(data):
        raise ValueError(f"Field at offset {offset} exceeds the buffer")
    return data[offset : offset + length].decode("utf-16-le")


def render_logon_info(data: bytes) -> str:
    """
    Render a KERB_VALIDATION_INFO buffer.
    """
    validation_info = VALIDATION_INFO()
    validation_info.fromString(data)
    validation_info.fromStringReferents(data, len(validation_info.getData()))
    info = validation_info["Data"]

    lines = [
        f"Logon Time: {filetime_to_str(ndr_filetime_to_int(info['LogonTime']))}",
        f"Logoff Time: {filetime_to_str(ndr_filetime_to_int(info['LogoffTime']))}",
        f"Kick Off Time: {filetime_to_str(ndr_filetime_to_int(info['KickOffTime']))}",
        f"Password Last Set: {filetime_to_str(ndr_filetime_to_int(info['PasswordLastSet']))}",
        f"Password Can Change: {filetime_to_str(ndr_filetime_to_int(info['PasswordCanChange']))}",
        f"Password Must Change: {filetime_to_str(ndr_filetime_to_int(info['PasswordMustChange']))}",
        f"Logon Count: {info['LogonCount']}",
        f"Bad Password Count: {info['BadPasswordCount']}",
        f"User ID: {info['UserId']}",
        f"Primary Group ID: {info['PrimaryGroupId']}",
        f"User Flags: {info['UserFlags']}",
        f"User Session Key: {to_hex(info.fields['UserSessionKey'].getData())}",
        f"User Account Control: {info['UserAccountControl']}",
        f"Sub Auth Status: {info['SubAuthStatus']}",
        f"Last Successful Interactive Logon: {filetime_to_str(ndr_filetime_to_int(info['LastSuccessfulILogon']))}",
        f"Last Failed Interactive Logon: {filetime_to_str(ndr_filetime_to_int(info['LastFailedILogon']))}",
        f"Failed Interactive Logon Count: {info['FailedILogonCount']}",
        f"SID Count: {info['SidCount']}",
        f"Resource Group Count: {info['ResourceGroupCount']}",
        f"Group Count: {info['GroupCount']}",
        "Group IDs:",
    ]

    for group in info["GroupIds"]:
        lines.append(
            indent(
                f"Relative ID: {group['RelativeId']}, Attributes: {group['Attributes']}"
            )
        )

    if _is_null(info, "LogonDomainId"):
        lines.append("Logon Domain ID: nil")
    else:
        lines.append(f"Logon Domain ID: {info['LogonDomainId'].formatCanonical()}")

    for title, name in [
        ("Effective Name", "EffectiveName"),
        ("Full Name", "FullName"),
        ("Logon Script", "LogonScript"),
        ("Profile Path", "ProfilePath"),
        ("Home Directory", "HomeDirectory"),
        ("Home Directory Drive", "HomeDirectoryDrive"),
        ("Logon Server", "LogonServer"),
        ("Logon Domain Name", "LogonDomainName"),
    ]:
        lines.append(f"{title}: {_unicode_string(info, name)}")

    return join_lines(["Validation Info:", indent(join_lines(lines))])


def render_client_info(data: bytes) -> str:
    """
    Render a PAC_CLIENT_INFO buffer.
    """
    client_info = PAC_CLIENT_INFO(data)
    name = client_info["Name"].decode("utf-16-le")

    return join_lines(
        [
            "Client Info:",
            indent(f"Name: '{name}'"),
            indent(f"Client ID: {filetime_to_str(client_info['ClientId'])}"),
        ]
    )


def _render_checksum(heading: str, data: bytes) -> str:
    signature = PAC_SIGNATURE_DATA(data)

    return join_lines(
        [
            heading,
            indent(f"Signature Type: {signature['SignatureType']}"),
            indent(f"Signature: {to_hex(signature['Signature'])}"),
        ]
    )


def render_server_checksum(data: bytes) -> str:
    return _render_checksum("Pac Server Checksum:", data)


def render_privilege_server_checksum(data: bytes) -> str:
    return _render_checksum("Pac Privilege Server Checksum:", data)


def render_upn_dns_info(data: bytes) -> str:
    """
    Render an UPN_DNS_INFO buffer.

    SAM name and SID are only present, and only rendered, when the
    extended names flag is set.
    """
    upn_dns_info = UPN_DNS_INFO(data)
    flags = upn_dns_info["Flags"]

    lines = [
        "UPN and DNS Information:",
        indent(
            "UPN: "
            + _utf16_field(data, upn_dns_info["UpnOffset"], upn_dns_info["UpnLength"])
        ),
        indent(
            "DNS Domain Name: "
            + _utf16_field(
                data,
                upn_dns_info["DnsDomainNameOffset"],
                upn_dns_info["DnsDomainNameLength"],
            )
        ),
        indent(f"Flags: {flags}"),
    ]

    if flags & UPN_DNS_INFO_EXTENDED_NAMES:
        upn_dns_info = UPN_DNS_INFO_FULL(data)
        sid_offset = upn_dns_info["SidOffset"]
        sid = LDAP_SID(data=data[sid_offset : sid_offset + upn_dns_info["SidLength"]])

        lines.append(
            indent(
                "SAM Name: "
                + _utf16_field(
                    data, upn_dns_info["SamNameOffset"], upn_dns_info["SamNameLength"]
                )
            )
        )
        lines.append(indent(f"SID: {sid.formatCanonical()}"))

    return join_lines(lines)


def render_unknown(buffer: PacInfoBuffer) -> str:
    """
    Render a buffer without a dedicated renderer: its type label and raw payload.
    """
    ul_type = buffer.ul_type
    if ul_type in PAC_BUFFER_TYPES:
        heading = to_title(PAC_BUFFER_TYPES[ul_type])
    else:
        heading = f"Unknown ul type {ul_type}"

    return join_lines([f"{heading}:", indent(to_hex(buffer.data))])


def render_pac_info_buffer(buffer: PacInfoBuffer) -> str:
    """
    Render one PAC info buffer according to its type tag.

    Never raises: a buffer the matching renderer cannot parse falls back to
    :func:`render_unknown`.

    Args:
        buffer: Decoded PAC info buffer

    Returns:
        Rendered text for the buffer
    """
    ul_type = buffer.ul_type
    logging.debug(f"Rendering PAC buffer of type {ul_type} ({len(buffer.data)} bytes)")

    try:
        if ul_type == PacBufferType.LOGON_INFORMATION:
            return render_logon_info(buffer.data)
        elif ul_type == PacBufferType.CLIENT_INFORMATION:
            return render_client_info(buffer.data)
        elif ul_type == PacBufferType.SERVER_CHECKSUM:
            return render_server_checksum(buffer.data)
        elif ul_type == PacBufferType.PRIVILEGE_SERVER_CHECKSUM:
            return render_privilege_server_checksum(buffer.data)
        elif ul_type == PacBufferType.USER_PRINCIPAL_NAME_AND_DNS_INFORMATION:
            return render_upn_dns_info(buffer.data)
        else:
            return render_unknown(buffer)
    except Exception as e:
        logging.warning(f"Failed to parse PAC buffer of type {ul_type}: {e}")
        return render_unknown(buffer)
