import datetime
import struct
from typing import List, Optional, Tuple

import pytest
from impacket.dcerpc.v5.ndr import NDRULONG
from impacket.dcerpc.v5.samr import (
    NULL,
    GROUP_MEMBERSHIP,
    SE_GROUP_ENABLED,
    SE_GROUP_ENABLED_BY_DEFAULT,
    SE_GROUP_MANDATORY,
)
from impacket.krb5 import types
from impacket.krb5.asn1 import AuthorizationData, EncTicketPart, Ticket
from impacket.krb5.ccache import (
    Address,
    AuthData,
    CCache,
    CountedOctetString,
    Credential,
    Header,
    KeyBlockV4,
    Principal,
    Times,
)
from impacket.krb5.constants import (
    AuthorizationDataType,
    PrincipalNameType,
    TicketFlags,
    encodeFlags,
)
from impacket.krb5.crypto import Key, _enctype_table
from impacket.krb5.pac import (
    KERB_VALIDATION_INFO,
    PAC_CLIENT_INFO,
    PAC_SIGNATURE_DATA,
    VALIDATION_INFO,
)
from impacket.krb5.types import KerberosTime
from impacket.ldap.ldaptypes import LDAP_SID
from pyasn1.codec.der import encoder
from pyasn1.type.univ import noValue

from ccview.lib import logger

AES256 = 18

SERVICE_KEY = bytes(range(32))
WRONG_KEY = bytes(range(32, 64))
SESSION_KEY = b"\x11" * 32

REALM = "CORP.LOCAL"
CLIENT = "alice"
DOMAIN_SID = "S-1-5-21-1004336348-1177238915-682003330"

# 2023-01-01 00:00:00 UTC
AUTH_TIME = datetime.datetime(2023, 1, 1, tzinfo=datetime.timezone.utc)
AUTH_TIMESTAMP = 1672531200
AUTH_FILETIME = 133170048000000000

# forwardable, renewable, pre-authent
TICKET_FLAG_BITS = [
    TicketFlags.forwardable.value,
    TicketFlags.renewable.value,
    TicketFlags.pre_authent.value,
]


@pytest.fixture(autouse=True)
def init_logger():
    logger.init()
    logger.set_verbose(False)


# =========================================================================
# PAC builders
# =========================================================================


def build_pac(buffers: List[Tuple[int, bytes]]) -> bytes:
    """Lay out a PACTYPE: header, info buffer entries, then 8-byte aligned payloads."""
    header = struct.pack("<LL", len(buffers), 0)
    offset = 8 + 16 * len(buffers)

    entries = b""
    body = b""
    for ul_type, data in buffers:
        entries += struct.pack("<LLQ", ul_type, len(data), offset + len(body))
        body += data + b"\x00" * (-len(data) % 8)

    return header + entries + body


def build_client_info(name: str = CLIENT, client_id: int = AUTH_FILETIME) -> bytes:
    client_info = PAC_CLIENT_INFO()
    client_info["ClientId"] = client_id
    client_info["Name"] = name.encode("utf-16le")
    client_info["NameLength"] = len(client_info["Name"])
    return client_info.getData()


def build_signature(signature_type: int = 16, signature: bytes = b"\xaa" * 12) -> bytes:
    checksum = PAC_SIGNATURE_DATA()
    checksum["SignatureType"] = signature_type
    checksum["Signature"] = signature
    return checksum.getData()


def build_upn_dns_info(
    upn: str = "alice@corp.local",
    dns_domain: str = REALM,
    sam_name: Optional[str] = None,
    sid: Optional[str] = None,
) -> bytes:
    """Build an UPN_DNS_INFO buffer, with the extended names when ``sam_name`` is given."""
    extended = sam_name is not None
    header_size = 20 if extended else 12

    fields = [upn.encode("utf-16le"), dns_domain.encode("utf-16le")]
    if extended:
        fields.append(sam_name.encode("utf-16le"))
        sid_obj = LDAP_SID()
        sid_obj.fromCanonical(sid)
        fields.append(sid_obj.getData())

    offsets = []
    payload = b""
    for field in fields:
        offsets.append(header_size + len(payload))
        payload += field

    header = struct.pack(
        "<HHHHL",
        len(fields[0]),
        offsets[0],
        len(fields[1]),
        offsets[1],
        2 if extended else 0,
    )
    if extended:
        header += struct.pack("<HHHH", len(fields[2]), offsets[2], len(fields[3]), offsets[3])

    return header + payload


def build_logon_info() -> bytes:
    kerbdata = KERB_VALIDATION_INFO()

    kerbdata["LogonTime"]["dwLowDateTime"] = AUTH_FILETIME & 0xFFFFFFFF
    kerbdata["LogonTime"]["dwHighDateTime"] = AUTH_FILETIME >> 32
    kerbdata["LogoffTime"]["dwLowDateTime"] = 0xFFFFFFFF
    kerbdata["LogoffTime"]["dwHighDateTime"] = 0x7FFFFFFF
    kerbdata["KickOffTime"]["dwLowDateTime"] = 0xFFFFFFFF
    kerbdata["KickOffTime"]["dwHighDateTime"] = 0x7FFFFFFF
    kerbdata["PasswordLastSet"]["dwLowDateTime"] = AUTH_FILETIME & 0xFFFFFFFF
    kerbdata["PasswordLastSet"]["dwHighDateTime"] = AUTH_FILETIME >> 32
    kerbdata["PasswordCanChange"]["dwLowDateTime"] = 0
    kerbdata["PasswordCanChange"]["dwHighDateTime"] = 0
    kerbdata["PasswordMustChange"]["dwLowDateTime"] = 0xFFFFFFFF
    kerbdata["PasswordMustChange"]["dwHighDateTime"] = 0x7FFFFFFF

    kerbdata["EffectiveName"] = CLIENT
    kerbdata["FullName"] = "Alice"
    kerbdata["LogonScript"] = ""
    kerbdata["ProfilePath"] = ""
    kerbdata["HomeDirectory"] = ""
    kerbdata["HomeDirectoryDrive"] = ""
    kerbdata["LogonCount"] = 500
    kerbdata["BadPasswordCount"] = 0
    kerbdata["UserId"] = 1104
    kerbdata["PrimaryGroupId"] = 513

    groups = [513, 512]
    kerbdata["GroupCount"] = len(groups)
    for group in groups:
        group_membership = GROUP_MEMBERSHIP()
        group_id = NDRULONG()
        group_id["Data"] = group
        group_membership["RelativeId"] = group_id
        group_membership["Attributes"] = (
            SE_GROUP_MANDATORY | SE_GROUP_ENABLED_BY_DEFAULT | SE_GROUP_ENABLED
        )
        kerbdata["GroupIds"].append(group_membership)

    kerbdata["UserFlags"] = 0
    kerbdata["UserSessionKey"] = b"\x00" * 16
    kerbdata["LogonServer"] = "DC01"
    kerbdata["LogonDomainName"] = "CORP"
    kerbdata["LogonDomainId"].fromCanonical(DOMAIN_SID)
    kerbdata["LMKey"] = b"\x00" * 8
    kerbdata["UserAccountControl"] = 0x210
    kerbdata["SubAuthStatus"] = 0
    kerbdata["LastSuccessfulILogon"]["dwLowDateTime"] = 0
    kerbdata["LastSuccessfulILogon"]["dwHighDateTime"] = 0
    kerbdata["LastFailedILogon"]["dwLowDateTime"] = 0
    kerbdata["LastFailedILogon"]["dwHighDateTime"] = 0
    kerbdata["FailedILogonCount"] = 0
    kerbdata["Reserved3"] = 0
    kerbdata["SidCount"] = 0
    kerbdata["ExtraSids"] = NULL
    kerbdata["ResourceGroupDomainSid"] = NULL
    kerbdata["ResourceGroupCount"] = 0
    kerbdata["ResourceGroupIds"] = NULL

    validation_info = VALIDATION_INFO()
    validation_info["Data"] = kerbdata

    return validation_info.getData() + validation_info.getDataReferents()


def build_default_pac() -> bytes:
    return build_pac(
        [
            (10, build_client_info()),
            (12, build_upn_dns_info()),
            (6, build_signature()),
            (7, build_signature()),
        ]
    )


# =========================================================================
# Ticket builders
# =========================================================================


def build_pac_authorization_data(pac: bytes) -> bytes:
    """Wrap a PAC in an AD-IF-RELEVANT sequence holding one AD-WIN2K-PAC element."""
    authorization_data = AuthorizationData()
    authorization_data[0] = noValue
    authorization_data[0]["ad-type"] = AuthorizationDataType.AD_WIN2K_PAC.value
    authorization_data[0]["ad-data"] = pac
    return encoder.encode(authorization_data)


def build_enc_ticket_part(pac: Optional[bytes] = None, ad_data: Optional[bytes] = None) -> bytes:
    enc_ticket_part = EncTicketPart()

    enc_ticket_part["flags"] = encodeFlags(TICKET_FLAG_BITS)
    enc_ticket_part["key"] = noValue
    enc_ticket_part["key"]["keytype"] = AES256
    enc_ticket_part["key"]["keyvalue"] = SESSION_KEY

    enc_ticket_part["crealm"] = REALM
    enc_ticket_part["cname"] = noValue
    enc_ticket_part["cname"]["name-type"] = PrincipalNameType.NT_PRINCIPAL.value
    enc_ticket_part["cname"]["name-string"] = noValue
    enc_ticket_part["cname"]["name-string"][0] = CLIENT

    enc_ticket_part["transited"] = noValue
    enc_ticket_part["transited"]["tr-type"] = 0
    enc_ticket_part["transited"]["contents"] = ""
    enc_ticket_part["authtime"] = KerberosTime.to_asn1(AUTH_TIME)
    enc_ticket_part["starttime"] = KerberosTime.to_asn1(AUTH_TIME)
    enc_ticket_part["endtime"] = KerberosTime.to_asn1(AUTH_TIME + datetime.timedelta(hours=10))
    enc_ticket_part["renew-till"] = KerberosTime.to_asn1(AUTH_TIME + datetime.timedelta(days=7))

    if ad_data is None and pac is not None:
        ad_data = build_pac_authorization_data(pac)

    if ad_data is not None:
        enc_ticket_part["authorization-data"] = noValue
        enc_ticket_part["authorization-data"][0] = noValue
        enc_ticket_part["authorization-data"][0][
            "ad-type"
        ] = AuthorizationDataType.AD_IF_RELEVANT.value
        enc_ticket_part["authorization-data"][0]["ad-data"] = ad_data

    return encoder.encode(enc_ticket_part)


def encrypt(plaintext: bytes, key: bytes = SERVICE_KEY, key_usage: int = 2) -> bytes:
    cipher = _enctype_table[AES256]
    return cipher.encrypt(Key(AES256, key), key_usage, plaintext, None)


def build_ticket(cipher_text: bytes, etype: int = AES256, kvno: int = 2) -> bytes:
    ticket = Ticket()
    ticket["tkt-vno"] = 5
    ticket["realm"] = REALM
    ticket["sname"] = noValue
    ticket["sname"]["name-type"] = PrincipalNameType.NT_SRV_INST.value
    ticket["sname"]["name-string"] = noValue
    ticket["sname"]["name-string"][0] = "krbtgt"
    ticket["sname"]["name-string"][1] = REALM
    ticket["enc-part"] = noValue
    ticket["enc-part"]["etype"] = etype
    ticket["enc-part"]["kvno"] = kvno
    ticket["enc-part"]["cipher"] = cipher_text
    return encoder.encode(ticket)


def build_default_ticket(pac: Optional[bytes] = None) -> bytes:
    return build_ticket(encrypt(build_enc_ticket_part(build_default_pac() if pac is None else pac)))


# =========================================================================
# ccache builders
# =========================================================================


def build_address(addr_type: int, data: bytes) -> Address:
    address = Address()
    address["addrtype"] = addr_type
    address["addrdata"] = CountedOctetString()
    address["addrdata"]["data"] = data
    address["addrdata"]["length"] = len(data)
    return address


def build_auth_data(ad_type: int, data: bytes) -> AuthData:
    auth_data = AuthData()
    auth_data["authtype"] = ad_type
    auth_data["authdata"] = CountedOctetString()
    auth_data["authdata"]["data"] = data
    auth_data["authdata"]["length"] = len(data)
    return auth_data


def build_credential(
    ticket_data: bytes,
    tktflags: int = 0x40E10000,
    addresses: Optional[List[Address]] = None,
    auth_data: Optional[List[AuthData]] = None,
) -> Credential:
    client = Principal()
    client.fromPrincipal(
        types.Principal(
            f"{CLIENT}@{REALM}", type=PrincipalNameType.NT_PRINCIPAL.value
        )
    )
    server = Principal()
    server.fromPrincipal(
        types.Principal(
            f"krbtgt/{REALM}@{REALM}", type=PrincipalNameType.NT_SRV_INST.value
        )
    )

    credential = Credential()
    credential["client"] = client
    credential["server"] = server
    credential["is_skey"] = 0
    credential["key"] = KeyBlockV4()
    credential["key"]["keytype"] = AES256
    credential["key"]["keyvalue"] = SESSION_KEY
    credential["key"]["keylen"] = len(SESSION_KEY)
    credential["time"] = Times()
    credential["time"]["authtime"] = AUTH_TIMESTAMP
    credential["time"]["starttime"] = AUTH_TIMESTAMP
    credential["time"]["endtime"] = AUTH_TIMESTAMP + 36000
    credential["time"]["renew_till"] = AUTH_TIMESTAMP + 604800
    credential["tktflags"] = tktflags
    credential.addresses = list(addresses or [])
    credential.authData = list(auth_data or [])
    credential["num_address"] = len(credential.addresses)
    credential.ticket = CountedOctetString()
    credential.ticket["data"] = ticket_data
    credential.ticket["length"] = len(ticket_data)
    credential.secondTicket = CountedOctetString()
    credential.secondTicket["data"] = b""
    credential.secondTicket["length"] = 0
    return credential


def build_ccache(tickets: List[bytes]) -> CCache:
    ccache = CCache()

    header = Header()
    header["tag"] = 1
    header["taglen"] = 8
    header["tagdata"] = b"\xff\xff\xff\xff\x00\x00\x00\x00"
    ccache.headers = [header]

    ccache.principal = Principal()
    ccache.principal.fromPrincipal(
        types.Principal(
            f"{CLIENT}@{REALM}", type=PrincipalNameType.NT_PRINCIPAL.value
        )
    )

    for ticket_data in tickets:
        ccache.credentials.append(build_credential(ticket_data))

    return ccache


@pytest.fixture
def ticket_data() -> bytes:
    return build_default_ticket()


@pytest.fixture
def ccache_data(ticket_data: bytes) -> bytes:
    return build_ccache([ticket_data]).getData()


@pytest.fixture
def ccache_file(tmp_path, ccache_data: bytes) -> str:
    path = tmp_path / "alice.ccache"
    path.write_bytes(ccache_data)
    return str(path)
