"""
Report output for ccview.

Reports are written to the path given on the command line. An existing file
is never overwritten: the report is saved next to it under a unique name
instead. If the file cannot be written the report is printed to stdout so it
is not lost.
"""

import os
import uuid

from ccview.lib.errors import handle_error
from ccview.lib.logger import logging


def save_report(report: str, output_path: str, abort_on_fail: bool = False) -> str:
    """
    Write a text report to a file, falling back to stdout.

    Args:
        report: Report text
        output_path: Path of the output file
        abort_on_fail: Re-raise write errors instead of printing the report

    Returns:
        The path written to, or ``stdout``
    """
    output_path = _unique_path(output_path)
    logging.debug(f"Writing report to {output_path!r}")

    try:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(report)
            if not report.endswith("\n"):
                f.write("\n")
        return output_path
    except OSError as e:
        if abort_on_fail:
            logging.error(f"Error writing report: {e}")
            raise
        logging.error(f"Error writing report: {e}. Printing to stdout instead")
        handle_error()
        print(report)
        return "stdout"


def _unique_path(path: str) -> str:
    if not os.path.exists(path):
        return path

    base, ext = os.path.splitext(path)
    new_path = f"{base}_{uuid.uuid4()}{ext}"
    logging.warning(f"File {path!r} already exists. Saving report to {new_path!r}")
    return new_path
