"""Dependency-free extraction of audio bytes from a POST body.

WHY: The recording app posts either the raw audio file or a
multipart/form-data body with a single file part. Pulling in a general
multipart framework for one file part is overkill, and the parser must
be testable without any HTTP transport.

HOW: ``extract()`` decides between the raw path and the multipart path
from the Content-Type header. ``split_parts()`` is a pure byte scanner:
it walks successive ``--<boundary>`` delimiters, skips each part's
headers (everything up to the first CRLF CRLF) and keeps the content up
to the CRLF that precedes the next delimiter.

RULES:
- Non-multipart content type → the whole body is the single part
- multipart without a boundary parameter → the whole body (fail soft)
- multipart with a boundary that never matches → [] (caller fails the request)
- Parts whose content is empty after trimming are dropped
- Never raises on malformed input
"""

from __future__ import annotations

_HEADER_END = b"\r\n\r\n"
_CRLF = b"\r\n"


def parse_boundary(content_type: str) -> str | None:
    """Return the ``boundary=`` parameter of a Content-Type header, or None.

    Tolerates quoted values and trailing parameters
    (``multipart/form-data; boundary="abc"; charset=utf-8``).
    """
    marker = "boundary="
    idx = content_type.lower().find(marker)
    if idx == -1:
        return None
    value = content_type[idx + len(marker):].split(";", 1)[0].strip()
    value = value.strip('"')
    return value or None


def split_parts(body: bytes, boundary: str) -> list[bytes]:
    """Split a multipart body into the content spans of its parts.

    Args:
        body: The complete request body.
        boundary: The boundary token without the leading ``--``.

    Returns:
        Content of every non-empty part, in body order.
    """
    delimiter = b"--" + boundary.encode("latin-1")
    parts: list[bytes] = []

    start = body.find(delimiter)
    while start != -1:
        start += len(delimiter)
        end = body.find(delimiter, start)
        if end == -1:
            break

        section = body[start:end]
        header_end = section.find(_HEADER_END)
        if header_end != -1:
            content = section[header_end + len(_HEADER_END):]
            if content.endswith(_CRLF):
                content = content[:-len(_CRLF)]
            if content:
                parts.append(content)

        start = end

    return parts


def is_multipart(content_type: str) -> bool:
    return "multipart/form-data" in content_type.lower()


def extract(body: bytes, content_type: str) -> list[bytes]:
    """Return the candidate audio payloads contained in a request body.

    Only the first element is used today (single-file uploads); the full
    list is returned so multi-file uploads need no parser change.
    """
    if not is_multipart(content_type):
        return [body]

    boundary = parse_boundary(content_type)
    if boundary is None:
        return [body]

    return split_parts(body, boundary)
