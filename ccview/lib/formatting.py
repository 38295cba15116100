"""
Formatting utilities for ccview.

Small helpers shared by the report renderers: indentation of nested report
sections and hexadecimal rendering of key material.
"""

import textwrap
from typing import Iterable, Union

# Every structural level of the report is indented by this many spaces
INDENT = 2


def indent(text: str, levels: int = 1) -> str:
    """
    Indent every non-empty line of a report fragment.

    Args:
        text: Possibly multi-line text
        levels: Number of structural levels to indent by

    Returns:
        The indented text

    Example:
        >>> indent("Key: 00\\nSubkey: False", 2)
        '    Key: 00\\n    Subkey: False'
    """
    return textwrap.indent(text, " " * (INDENT * levels))


def join_lines(lines: Iterable[str]) -> str:
    """Join report lines with newlines."""
    return "\n".join(lines)


def to_hex(data: Union[bytes, bytearray]) -> str:
    """
    Render bytes as a lowercase hex string without separators.

    Args:
        data: Binary data

    Returns:
        Lowercase hex representation
    """
    return bytes(data).hex()


def to_title(name: str) -> str:
    """
    Turn an UPPER_SNAKE_CASE constant name into a capitalized label.

    Example:
        >>> to_title("CREDENTIAL_INFORMATION")
        'Credential information'
    """
    return name.replace("_", " ").capitalize()
