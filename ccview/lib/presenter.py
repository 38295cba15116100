"""
Human readable report of a credential cache.

The :class:`Presenter` renders the cache header and every credential: its
principals, session key, flags, addresses, authorization data, times and
ticket. When a key is supplied the ticket's encrypted part is decrypted and
its PAC is decoded and rendered buffer by buffer; otherwise the ciphertext is
shown base64 encoded.

Every structural level (cache, credential, ticket, PAC, buffer) is indented
by two spaces.
"""

import base64
import ipaddress
from typing import Any, List, Optional

from ccview.lib.asn1 import extract_pac
from ccview.lib.ccache import CredentialCache, principal_to_str
from ccview.lib.crypto import TICKET_KEY_USAGE, decode_ticket, decrypt_ticket
from ccview.lib.errors import CcacheError
from ccview.lib.formatting import indent, join_lines, to_hex
from ccview.lib.logger import logging
from ccview.lib.pac import decode_pac, render_pac_info_buffer
from ccview.lib.structs import (
    ADDRESS_TYPES,
    AUTHORIZATION_DATA_TYPES,
    ENCRYPTION_TYPES,
    KDC_OPTION_FLAGS,
    TICKET_FLAGS,
    AddressType,
    bitstring_to_int,
    enabled_names,
    label,
)
from ccview.lib.time import kerberos_time_to_str, timestamp_to_str


def format_flags(bitmask: int, table: dict) -> str:
    """
    Render a flags word as ``0x%08x (name, name)``.
    """
    return f"0x{bitmask:08x} ({', '.join(enabled_names(bitmask, table))})"


def format_etype(etype: int) -> str:
    return f"{int(etype)} ({label(etype, ENCRYPTION_TYPES)})"


def format_address(addr_type: int, data: bytes) -> str:
    """
    Render a host address according to its type.

    IP addresses use their usual notation, NetBIOS names are shown as text
    and anything else as hex.
    """
    addr_type = int(addr_type)
    data = bytes(data)

    if addr_type == AddressType.IPV4 and len(data) == 4:
        value = str(ipaddress.IPv4Address(data))
    elif addr_type == AddressType.IPV6 and len(data) == 16:
        value = str(ipaddress.IPv6Address(data))
    elif addr_type == AddressType.NET_BIOS:
        value = data.decode("ascii", errors="replace").rstrip()
    else:
        value = to_hex(data)

    return f"{label(addr_type, ADDRESS_TYPES)}: {value}"


def format_principal_name(principal_name: Any) -> str:
    """Render a decoded PrincipalName as its components joined by ``/``."""
    return "/".join(str(component) for component in principal_name["name-string"])


def _optional(component: Any) -> Optional[Any]:
    return component if component.isValue else None


class Presenter:
    """
    Renders a :class:`CredentialCache` as a plain-text report.

    A Presenter only reads the cache; rendering the same cache with the same
    key always produces the same text.
    """

    def __init__(self, ccache: CredentialCache, key_usage: int = TICKET_KEY_USAGE):
        """
        Args:
            ccache: Loaded credential cache
            key_usage: Key usage number used to decrypt ticket encrypted parts
        """
        self.ccache = ccache
        self.key_usage = key_usage

    def present(self, key: Optional[bytes] = None) -> str:
        """
        Render the whole cache.

        If a credential's ticket cannot be decoded or decrypted, or its PAC
        cannot be extracted, the credential's cache fields are still shown
        and the error takes the place of its ticket section. The remaining
        credentials are rendered as usual.

        Args:
            key: Key to decrypt the tickets' encrypted parts with, if any

        Returns:
            The report
        """
        credentials = self.ccache.credentials

        lines = [
            f"Primary Principal: {self.ccache.default_principal}",
            f"Ccache version: {self.ccache.version}",
            "",
            f"Creds: {len(credentials)}",
        ]

        for index, credential in enumerate(credentials):
            try:
                ticket_section = self.present_ticket(credential, key=key)
            except CcacheError as e:
                logging.error(f"Failed to present ticket of credential {index}: {e}")
                ticket_section = f"Error: {e}"

            body = join_lines([self.present_credential_header(credential), ticket_section])
            lines.append(indent(f"Credential[{index}]:\n{indent(body)}"))

        return join_lines(lines)

    def present_credential(self, credential: Any, key: Optional[bytes] = None) -> str:
        """
        Render a single ccache credential.

        Args:
            credential: impacket ccache Credential
            key: Key to decrypt the ticket's encrypted part with, if any

        Returns:
            The credential's report section

        Raises:
            CcacheError: If the ticket cannot be decoded or decrypted, or its
                PAC cannot be extracted
        """
        ticket_section = self.present_ticket(credential, key=key)
        return join_lines([self.present_credential_header(credential), ticket_section])

    def present_ticket(self, credential: Any, key: Optional[bytes] = None) -> str:
        """
        Render the ticket of a credential, decrypted if a key is given.

        Raises:
            CcacheError: If the ticket cannot be decoded or decrypted, or its
                PAC cannot be extracted
        """
        ticket = decode_ticket(credential.ticket["data"])

        if key:
            return self.present_decrypted_ticket(ticket, key)
        return self.present_encrypted_ticket(ticket)

    def present_credential_header(self, credential: Any) -> str:
        """
        Render the fields the cache stores alongside the ticket: principals,
        session key, flags, addresses, authorization data and times.
        """
        session_key = credential["key"]
        times = credential["time"]
        addresses = list(credential.addresses)
        auth_data = list(credential.authData)

        lines = [
            f"Server: {principal_to_str(credential['server'])}",
            f"Client: {principal_to_str(credential['client'])}",
            f"Ticket etype: {format_etype(session_key['keytype'])}",
            f"Key: {to_hex(session_key['keyvalue'])}",
            f"Subkey: {credential['is_skey'] == 1}",
            f"Ticket Length: {len(credential.ticket['data'])}",
            f"Ticket Flags: {format_flags(credential['tktflags'], KDC_OPTION_FLAGS)}",
            f"Addresses: {len(addresses)}",
        ]

        for address in addresses:
            lines.append(
                indent(format_address(address["addrtype"], address["addrdata"]["data"]))
            )

        lines.append(f"Authdatas: {len(auth_data)}")
        for element in auth_data:
            ad_type = label(element["authtype"], AUTHORIZATION_DATA_TYPES)
            lines.append(indent(f"{ad_type}: {to_hex(element['authdata']['data'])}"))

        lines += [
            "Times:",
            indent(f"Auth time: {timestamp_to_str(times['authtime'])}"),
            indent(f"Start time: {timestamp_to_str(times['starttime'])}"),
            indent(f"End time: {timestamp_to_str(times['endtime'])}"),
            indent(f"Renew Till: {timestamp_to_str(times['renew_till'])}"),
        ]

        return join_lines(lines)

    def _present_ticket_header(self, ticket: Any) -> List[str]:
        enc_part = ticket["enc-part"]
        kvno = _optional(enc_part["kvno"])

        return [
            "Ticket:",
            indent(f"Ticket Version Number: {ticket['tkt-vno']}"),
            indent(f"Realm: {ticket['realm']}"),
            indent(f"Server Name: {format_principal_name(ticket['sname'])}"),
            indent("Encrypted Ticket Part:"),
            indent(f"Ticket etype: {format_etype(enc_part['etype'])}", 2),
            indent(f"Key Version Number: {kvno if kvno is not None else 'nil'}", 2),
        ]

    def present_encrypted_ticket(self, ticket: Any) -> str:
        """
        Render a ticket without decrypting it: the ciphertext is base64 encoded.
        """
        cipher = bytes(ticket["enc-part"]["cipher"])

        lines = self._present_ticket_header(ticket)
        lines.append(indent("Cipher:", 2))
        lines.append(indent(base64.b64encode(cipher).decode(), 3))

        return join_lines(lines)

    def present_decrypted_ticket(self, ticket: Any, key: bytes) -> str:
        """
        Render a ticket with its encrypted part decrypted under ``key``.

        Raises:
            CcacheError: If decryption, decoding or PAC extraction fails
        """
        enc_ticket_part = decrypt_ticket(ticket, key, self.key_usage)

        lines = self._present_ticket_header(ticket)
        lines.append(indent(f"Decrypted (with key: {to_hex(key)}):", 2))
        lines.append(indent(self.present_ticket_enc_part(enc_ticket_part), 3))

        return join_lines(lines)

    def present_ticket_enc_part(self, enc_ticket_part: Any) -> str:
        """
        Render a decrypted EncTicketPart, including its PAC.

        Raises:
            CcacheError: If the PAC cannot be extracted or decoded
        """
        caddr = _optional(enc_ticket_part["caddr"])
        addresses = list(caddr) if caddr is not None else []
        transited = enc_ticket_part["transited"]
        session_key = enc_ticket_part["key"]
        flags = bitstring_to_int(enc_ticket_part["flags"])

        lines = [
            "Times:",
            indent(f"Auth time: {kerberos_time_to_str(enc_ticket_part['authtime'])}"),
            indent(f"Start time: {kerberos_time_to_str(enc_ticket_part['starttime'])}"),
            indent(f"End time: {kerberos_time_to_str(enc_ticket_part['endtime'])}"),
            indent(f"Renew Till: {kerberos_time_to_str(enc_ticket_part['renew-till'])}"),
            f"Client Addresses: {len(addresses)}",
        ]

        for address in addresses:
            lines.append(indent(format_address(address["addr-type"], address["address"])))

        lines += [
            f"Transited: tr_type: {transited['tr-type']}, Contents: {bytes(transited['contents'])!r}",
            f"Client Name: '{format_principal_name(enc_ticket_part['cname'])}'",
            f"Client Realm: '{enc_ticket_part['crealm']}'",
            f"Ticket etype: {format_etype(session_key['keytype'])}",
            f"Encryption Key: {to_hex(bytes(session_key['keyvalue']))}",
            f"Flags: {format_flags(flags, TICKET_FLAGS)}",
        ]

        authorization_data = _optional(enc_ticket_part["authorization-data"])
        pac = extract_pac(list(authorization_data) if authorization_data is not None else [])

        lines.append("PAC:")
        for buffer in decode_pac(pac):
            lines.append(indent(render_pac_info_buffer(buffer)))

        return join_lines(lines)
