from __future__ import annotations

import typing as tp
from http import HTTPStatus

HEADERS_ENCODING = "iso-8859-1"


def parse_status_line(status: str) -> tp.Tuple[int, str]:
    """
    Split a WSGI status string into its code and reason phrase.

    Example:
        ```
        parse_status_line("200 OK")  # (200, "OK")
        parse_status_line("204")  # (204, "")
        ```
    """
    code, _, reason = status.strip().partition(" ")
    return int(code), reason.strip()


def make_status_line(status_code: int, reason: str = "") -> str:
    """
    Build a WSGI status string, falling back to the standard reason phrase.

    Example:
        ```
        make_status_line(304)  # "304 Not Modified"
        make_status_line(200, "Fine")  # "200 Fine"
        ```
    """
    if not reason:
        try:
            reason = HTTPStatus(status_code).phrase
        except ValueError:
            reason = "Unknown"
    return f"{status_code} {reason}"
