"""Splitting multipart bodies into parts.

``MultipartReader`` is the primary, RFC 2046 conformant splitter: delimiter
lines are only recognized at the start of a line, transport padding after
the boundary is tolerated and a missing close delimiter yields a final
truncated part.  ``iter_fallback_segments`` is the permissive splitter used
when the reader cannot make sense of a container: it cuts on every literal
``--boundary`` occurrence and drops the preamble and epilogue.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from email.message import Message
from typing import Iterator

from ingestkit_mime.errors import ErrorCode, MIMEParseException
from ingestkit_mime.headers import (
    MalformedHeaderError,
    parse_headers,
    split_header_block,
)


class PartReadError(MIMEParseException):
    """One part could not be read; the reader can continue past it."""

    default_code = ErrorCode.E_MIME_PART_UNREADABLE


class MultipartStreamError(MIMEParseException):
    """The container cannot be split at all."""

    default_code = ErrorCode.E_MIME_MULTIPART_MALFORMED


@dataclass
class RawPart:
    """A part as cut out of its container."""

    index: int
    headers: Message
    body: bytes
    truncated: bool = False


@dataclass
class FallbackSegment:
    """A part recovered by the literal boundary split."""

    index: int
    body: bytes
    headers: Message = field(default_factory=Message)
    has_headers: bool = False


def _strip_line_break(data: bytes) -> bytes:
    if data.endswith(b"\r\n"):
        return data[:-2]
    if data.endswith(b"\n"):
        return data[:-1]
    return data


class MultipartReader:
    """Iterate the parts of one multipart body.

    Call ``next_part()`` until it returns ``None``.  A ``PartReadError``
    leaves the reader positioned after the bad part; a
    ``MultipartStreamError`` is final.
    """

    def __init__(self, body: bytes, boundary: str) -> None:
        self._body = body
        self._delimiter = re.compile(
            rb"^--" + re.escape(boundary.encode("utf-8", "surrogateescape"))
            + rb"(--)?[ \t]*\r?$",
            re.MULTILINE,
        )
        self._pos = 0
        self._started = False
        self._done = False
        self._count = 0
        self.closed = False
        self.truncated = False

    @property
    def done(self) -> bool:
        return self._done

    def _after_line(self, idx: int) -> int:
        nl = self._body.find(b"\n", idx)
        return len(self._body) if nl == -1 else nl + 1

    def next_part(self) -> RawPart | None:
        if self._done:
            return None

        if not self._started:
            self._started = True
            opening = self._delimiter.search(self._body)
            if opening is None:
                self._done = True
                raise MultipartStreamError(
                    "no opening boundary delimiter found",
                    stage="split",
                )
            self._pos = self._after_line(opening.end())
            if opening.group(1):
                self._done = True
                self.closed = True
                return None

        match = self._delimiter.search(self._body, self._pos)
        if match is None:
            self._done = True
            self.truncated = True
            remainder = self._body[self._pos:]
            if not remainder.strip():
                return None
            return self._make_part(_strip_line_break(remainder), truncated=True)

        raw = _strip_line_break(self._body[self._pos:match.start()])
        self._pos = self._after_line(match.end())
        if match.group(1):
            self._done = True
            self.closed = True
        return self._make_part(raw)

    def _make_part(self, raw: bytes, truncated: bool = False) -> RawPart:
        self._count += 1
        block, body = split_header_block(raw)
        try:
            headers = parse_headers(block, strict=True)
        except MalformedHeaderError as exc:
            raise PartReadError(
                f"part {self._count}: malformed header block ({exc})",
                stage="split",
                recoverable=True,
            ) from exc
        return RawPart(index=self._count, headers=headers, body=body, truncated=truncated)


def iter_fallback_segments(body: bytes, boundary: str) -> Iterator[FallbackSegment]:
    """Yield the segments between literal ``--boundary`` occurrences.

    The text before the first occurrence and after the last one is
    discarded.  Segments are trimmed; empty segments and the bare ``--`` of
    a close delimiter are skipped but still consume an index.
    """
    marker = b"--" + boundary.encode("utf-8", "surrogateescape")
    start = body.find(marker)
    if start == -1:
        return
    pos = start + len(marker)
    index = 0
    while True:
        nxt = body.find(marker, pos)
        if nxt == -1:
            return
        index += 1
        segment = body[pos:nxt].strip()
        pos = nxt + len(marker)
        if not segment or segment == b"--":
            continue
        yield _parse_segment(index, segment)


def _parse_segment(index: int, segment: bytes) -> FallbackSegment:
    if b"\r\n\r\n" not in segment and b"\n\n" not in segment:
        return FallbackSegment(index=index, body=segment)
    block, body = split_header_block(segment)
    return FallbackSegment(
        index=index,
        body=body,
        headers=parse_headers(block),
        has_headers=True,
    )
