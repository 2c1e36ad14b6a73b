"""Helpers for serving files and decoding form data."""

from __future__ import annotations

import os
import re
from pathlib import Path

_CONTENT_TYPES = (
    (".html", "text/html"),
    (".htm", "text/html"),
    (".css", "text/css"),
    (".js", "application/javascript"),
    (".png", "image/png"),
    (".jpg", "image/jpeg"),
    (".jpeg", "image/jpeg"),
    (".txt", "text/plain"),
)
_DEFAULT_CONTENT_TYPE = "application/octet-stream"

_ESCAPE_PATTERN = re.compile(r"%(.{0,2})|\+|[^%+]+", re.DOTALL)
_LEADING_HEX = re.compile(r"[0-9A-Fa-f]+")


def get_content_type(path: str | os.PathLike[str]) -> str:
    """MIME type chosen from the file name's suffix."""
    name = str(path)
    for suffix, content_type in _CONTENT_TYPES:
        if name.endswith(suffix):
            return content_type
    return _DEFAULT_CONTENT_TYPE


def read_file(path: str | os.PathLike[str]) -> bytes:
    """Whole file contents, or empty bytes if it cannot be read."""
    try:
        return Path(path).read_bytes()
    except OSError:
        return b""


def decode_url_component(s: str) -> str:
    """Decode '%XX' escapes and '+' as space.

    A '%' always swallows the two characters after it; the leading hex digits
    among them give the byte. Without any hex digit the text is kept as is.
    """
    out = bytearray()
    for match in _ESCAPE_PATTERN.finditer(s):
        piece = match.group(0)
        if piece == "+":
            out += b" "
        elif piece.startswith("%"):
            digits = _LEADING_HEX.match(match.group(1))
            if digits is None:
                out += piece.encode("utf-8")
            else:
                out.append(int(digits.group(0), 16) & 0xFF)
        else:
            out += piece.encode("utf-8")
    return out.decode("utf-8", "replace")


def parse_form_urlencoded(body: str) -> dict[str, str]:
    """Decode an 'a=1&b=2' body; pairs without '=' are skipped, later keys win."""
    data: dict[str, str] = {}
    for pair in body.split("&"):
        key, sep, value = pair.partition("=")
        if sep:
            data[decode_url_component(key)] = decode_url_component(value)
    return data