"""
Time Conversion Utilities

This module converts the three time representations found in a credential
cache report into display strings:

- UNIX timestamps stored in the ccache credential header
- Kerberos GeneralizedTime values inside decrypted tickets
- Windows FILETIME values inside the PAC
"""

import datetime
from typing import Any

# Windows FILETIME is in 100-nanosecond intervals since January 1, 1601 UTC
FILETIME_EPOCH = datetime.datetime(1601, 1, 1, tzinfo=datetime.timezone.utc)

# Sentinel used by the PAC for "never expires"
NEVER_EXPIRE = 0x7FFFFFFFFFFFFFFF


def timestamp_to_str(timestamp: int) -> str:
    """
    Convert a UNIX timestamp to a UTC time string.

    Args:
        timestamp: Seconds since the UNIX epoch

    Returns:
        Time string such as ``2023-01-01 00:00:00+00:00``
    """
    return str(datetime.datetime.fromtimestamp(timestamp, tz=datetime.timezone.utc))


def kerberos_time_to_str(value: Any) -> str:
    """
    Convert a decoded KerberosTime (GeneralizedTime) to a UTC time string.

    Args:
        value: pyasn1 GeneralizedTime component, possibly absent

    Returns:
        Time string, or ``nil`` for an absent optional time
    """
    if value is None or not value.isValue:
        return "nil"

    time = value.asDateTime
    if time.tzinfo is None:
        time = time.replace(tzinfo=datetime.timezone.utc)

    return str(time.astimezone(datetime.timezone.utc))


def filetime_to_datetime(filetime: int) -> datetime.datetime:
    """
    Convert a Windows FILETIME to a timezone-aware datetime.

    Args:
        filetime: 64-bit FILETIME value

    Returns:
        UTC datetime
    """
    return FILETIME_EPOCH + datetime.timedelta(microseconds=filetime // 10)


def filetime_to_str(filetime: int) -> str:
    """
    Convert a PAC FILETIME to a human-readable string.

    The two sentinels used by the PAC are rendered by name.

    Args:
        filetime: 64-bit FILETIME value

    Returns:
        ``Never Expires (inf)``, ``No Time Set (0)`` or a UTC time string

    Example:
        >>> filetime_to_str(133170048000000000)
        '2023-01-01 00:00:00+00:00'
    """
    if filetime == NEVER_EXPIRE:
        return "Never Expires (inf)"
    if filetime == 0:
        return "No Time Set (0)"

    try:
        return str(filetime_to_datetime(filetime))
    except OverflowError:
        # Out of datetime range but not the sentinel
        return f"Out of range ({filetime})"


def ndr_filetime_to_int(filetime: Any) -> int:
    """
    Combine an NDR FILETIME structure into a single 64-bit value.

    Args:
        filetime: Structure with ``dwLowDateTime`` and ``dwHighDateTime`` fields

    Returns:
        64-bit FILETIME value
    """
    return (filetime["dwHighDateTime"] << 32) | filetime["dwLowDateTime"]
