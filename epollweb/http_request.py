"""HTTP request model and parsing of raw request text."""

from __future__ import annotations

import enum
import re
from collections.abc import Iterator
from dataclasses import dataclass, field

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class ParseState(enum.Enum):
    """Stages of the request parser."""

    REQUEST_LINE = enum.auto()
    HEADERS = enum.auto()
    BODY = enum.auto()
    FINISH = enum.auto()


@dataclass
class HttpRequest:
    """A parsed HTTP request."""

    method: str = ""
    path: str = ""
    version: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""


def _lines(text: str) -> Iterator[str]:
    """Yield lines split on newlines, with one trailing carriage return removed."""
    if not text:
        return
    pieces = text.split("\n")
    if pieces[-1] == "":
        pieces.pop()
    for piece in pieces:
        yield piece[:-1] if piece.endswith("\r") else piece


def _parse_length(value: str) -> int:
    """Read the leading integer of a header value, as a lenient integer parser would."""
    match = _LEADING_INT.match(value)
    if match is None:
        raise ValueError(f"invalid Content-Length: {value!r}")
    return int(match.group(1))


def parse_request_line(line: str, request: HttpRequest) -> None:
    """Fill method, path and version from a whitespace-separated request line."""
    tokens = line.split()
    if len(tokens) > 0:
        request.method = tokens[0]
    if len(tokens) > 1:
        request.path = tokens[1]
    if len(tokens) > 2:
        request.version = tokens[2]


def parse_header_line(line: str, request: HttpRequest) -> None:
    """Store a 'Key: value' header; lines without a colon are ignored."""
    key, sep, value = line.partition(":")
    if sep:
        request.headers[key] = value.lstrip(" ")


def parse_http_request(raw: str) -> HttpRequest:
    """Parse a whole request; the body is the single line after the headers."""
    request = HttpRequest()
    state = ParseState.REQUEST_LINE
    for line in _lines(raw):
        if state is ParseState.REQUEST_LINE:
            parse_request_line(line, request)
            state = ParseState.HEADERS
        elif state is ParseState.HEADERS:
            if not line:
                state = (
                    ParseState.BODY
                    if "Content-Length" in request.headers
                    else ParseState.FINISH
                )
            else:
                parse_header_line(line, request)
        elif state is ParseState.BODY:
            request.body += line
            state = ParseState.FINISH
        if state is ParseState.FINISH:
            break
    return request


def try_parse_http_request(raw: str) -> tuple[HttpRequest, int] | None:
    """Parse the first complete request in ``raw``.

    Returns the request and the number of characters it occupies, or None
    when the headers or the body have not fully arrived yet.
    """
    header_end = raw.find("\r\n\r\n")
    if header_end == -1:
        return None

    request = HttpRequest()
    state = ParseState.REQUEST_LINE
    for line in _lines(raw[: header_end + 2]):
        if state is ParseState.REQUEST_LINE:
            parse_request_line(line, request)
            state = ParseState.HEADERS
        elif state is ParseState.HEADERS:
            if not line:
                state = ParseState.BODY
            else:
                parse_header_line(line, request)

    content_length = 0
    if "Content-Length" in request.headers:
        content_length = _parse_length(request.headers["Content-Length"])
        if content_length < 0:
            return None

    body_start = header_end + 4
    total_len = body_start + content_length
    if len(raw) < total_len:
        return None
    if content_length > 0:
        request.body = raw[body_start:total_len]
    return request, total_len