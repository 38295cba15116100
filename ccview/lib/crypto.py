"""
Ticket decoding and decryption.

Thin layer over impacket's Kerberos model and encryption suites that maps
their failures onto ccview's error types, so that a wrong key
(:class:`DecryptionFailed`) can be told apart from a correctly decrypted but
undecodable ticket body (:class:`MalformedTicketBody`).
"""

from typing import Any

from impacket.krb5.asn1 import EncTicketPart, Ticket
from impacket.krb5.crypto import InvalidChecksum, Key, _enctype_table
from pyasn1.codec.der import decoder
from pyasn1.error import PyAsn1Error

from ccview.lib.errors import (
    DecryptionFailed,
    MalformedTicketBody,
    UnsupportedEncryptionType,
)
from ccview.lib.logger import logging

# Key usage 2: AS-REP Ticket and TGS-REP Ticket, encrypted with the service key
# (RFC 4120 section 7.5.1)
TICKET_KEY_USAGE = 2


def get_cipher(etype: int) -> Any:
    """
    Resolve an encryption type to impacket's encryption suite.

    Raises:
        UnsupportedEncryptionType: If impacket has no suite for ``etype``
    """
    try:
        return _enctype_table[int(etype)]
    except KeyError:
        raise UnsupportedEncryptionType(int(etype))


def decrypt(
    etype: int, ciphertext: bytes, key: bytes, key_usage: int = TICKET_KEY_USAGE
) -> bytes:
    """
    Decrypt Kerberos encrypted data with a raw key.

    Decryption is attempted exactly once.

    Args:
        etype: Encryption type of the ciphertext
        ciphertext: Encrypted bytes
        key: Raw key bytes for ``etype``
        key_usage: Kerberos key usage number

    Returns:
        Plaintext bytes

    Raises:
        UnsupportedEncryptionType: If ``etype`` is unknown
        DecryptionFailed: On integrity check failure or unusable key/ciphertext
    """
    cipher = get_cipher(etype)
    logging.debug(
        f"Decrypting {len(ciphertext)} bytes with etype {int(etype)} and key usage {key_usage}"
    )

    try:
        return cipher.decrypt(Key(int(etype), bytes(key)), key_usage, bytes(ciphertext))
    except InvalidChecksum as e:
        raise DecryptionFailed(
            "Ciphertext integrity check failed (wrong key or corrupted ticket)"
        ) from e
    except ValueError as e:
        # Wrong key length or truncated ciphertext
        raise DecryptionFailed(f"Could not decrypt ticket: {e}") from e


def decode_ticket(data: bytes) -> Any:
    """
    Decode the DER ticket stored in a ccache credential.

    Raises:
        MalformedTicketBody: If the bytes are not a Kerberos Ticket
    """
    try:
        return decoder.decode(bytes(data), asn1Spec=Ticket())[0]
    except PyAsn1Error as e:
        raise MalformedTicketBody(f"Could not decode ticket: {e}") from e


def decode_ticket_enc_part(plaintext: bytes) -> Any:
    """
    Decode a decrypted EncTicketPart.

    Raises:
        MalformedTicketBody: If the plaintext is not an EncTicketPart
    """
    try:
        return decoder.decode(plaintext, asn1Spec=EncTicketPart())[0]
    except PyAsn1Error as e:
        raise MalformedTicketBody(
            f"Decrypted ticket is not a valid EncTicketPart: {e}"
        ) from e


def decrypt_ticket(
    ticket: Any, key: bytes, key_usage: int = TICKET_KEY_USAGE
) -> Any:
    """
    Decrypt and decode a ticket's encrypted part.

    Args:
        ticket: Decoded Ticket
        key: Raw key for the ticket's etype
        key_usage: Kerberos key usage number

    Returns:
        Decoded EncTicketPart
    """
    enc_part = ticket["enc-part"]
    plaintext = decrypt(int(enc_part["etype"]), bytes(enc_part["cipher"]), key, key_usage)
    return decode_ticket_enc_part(plaintext)
