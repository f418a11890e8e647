"""Helpers for ``data:`` URIs, the only image representation the app passes around."""

from __future__ import annotations

import base64
import binascii
import re

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(?:;[^;,]+)*?);base64,(?P<data>.*)$", re.DOTALL)


def to_data_uri(mime_type: str, data: bytes) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def parse_data_uri(uri: str) -> tuple[str, bytes]:
    """Split a base64 data URI into its media type and decoded payload.

    Raises:
        ValueError: If ``uri`` is not a base64 data URI or the payload is corrupt.
    """
    match = _DATA_URI_RE.match(uri.strip())
    if not match:
        raise ValueError("Not a base64 data URI")
    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except binascii.Error as e:
        raise ValueError(f"Corrupt data URI payload: {e}") from e
    return match.group("mime") or "application/octet-stream", data
