"""Header block splitting and header/parameter parsing.

Header blocks are validated line by line before being handed to the
standard-library parser (``compat32`` policy, so nothing is decoded behind
our back).  In strict mode a line that is neither a field nor a
continuation raises ``MalformedHeaderError``; in lenient mode such lines are
dropped.
"""

from __future__ import annotations

import re
from email.message import Message
from email.parser import HeaderParser
from email.policy import compat32
from email.utils import collapse_rfc2231_value

from ingestkit_mime.errors import ContentTypeParseError

_FIELD_LINE = re.compile(r"^[!-9;-~]+[ \t]*:")
_FOLD = re.compile(r"\r?\n[ \t]+")
_TOKEN = r"[!#$%&'*+.^_`|~0-9a-z-]+"
_MEDIA_TYPE = re.compile(rf"^{_TOKEN}/{_TOKEN}$")

_parser = HeaderParser(policy=compat32)


class MalformedHeaderError(ValueError):
    """A header block contains a line that is not a header field."""

    def __init__(self, line_number: int, line: str) -> None:
        super().__init__(f"line {line_number} is not a header field")
        self.line_number = line_number
        self.line = line


def split_header_block(raw: bytes) -> tuple[bytes, bytes]:
    """Split *raw* at the first blank line into ``(headers, body)``.

    Either CRLF or bare LF line endings are accepted; the earliest blank line
    wins.  A leading blank line means there are no headers.  Without any
    blank line the whole input is the header block.
    """
    if raw.startswith(b"\r\n"):
        return b"", raw[2:]
    if raw.startswith(b"\n"):
        return b"", raw[1:]

    candidates = []
    crlf = raw.find(b"\r\n\r\n")
    if crlf != -1:
        candidates.append((crlf, 4))
    lf = raw.find(b"\n\n")
    if lf != -1:
        candidates.append((lf, 2))
    if not candidates:
        return raw, b""
    pos, width = min(candidates)
    return raw[:pos], raw[pos + width:]


def _to_str(block: bytes) -> str:
    try:
        return block.decode("utf-8")
    except UnicodeDecodeError:
        return block.decode("latin-1")


def parse_headers(block: bytes, strict: bool = False) -> Message:
    """Parse a header block into a ``Message`` holding headers only.

    Raises
    ------
    MalformedHeaderError
        In strict mode, on the first line that is neither a header field
        nor a continuation of one.
    """
    kept: list[str] = []
    have_field = False
    for number, line in enumerate(_to_str(block).splitlines(), start=1):
        if not line.strip():
            continue
        if line[0] in " \t":
            if have_field:
                kept.append(line)
                continue
        elif _FIELD_LINE.match(line):
            kept.append(line)
            have_field = True
            continue
        if strict:
            raise MalformedHeaderError(number, line)
        # a dropped line takes its continuation lines with it
        have_field = False
    return _parser.parsestr("\n".join(kept) + "\n\n", headersonly=True)


def header_value(headers: Message, name: str) -> str:
    """Return the unfolded value of the first *name* header, or ``""``."""
    value = headers.get(name)
    if value is None:
        return ""
    return _FOLD.sub(" ", str(value)).strip()


def header_dict(headers: Message) -> dict[str, str]:
    """First occurrence of every header, names as written."""
    out: dict[str, str] = {}
    seen: set[str] = set()
    for name in headers.keys():
        if name.lower() in seen:
            continue
        seen.add(name.lower())
        out[name] = header_value(headers, name)
    return out


def _split_params(value: str, header: str) -> tuple[str, dict[str, str]]:
    holder = Message()
    holder[header] = _FOLD.sub(" ", value)
    raw = holder.get_params(header=header) or []
    if not raw:
        return "", {}
    first, rest = raw[0], raw[1:]
    params: dict[str, str] = {}
    for name, val in rest:
        key = name.strip().lower()
        if key and key not in params:
            params[key] = collapse_rfc2231_value(val).strip()
    return first[0].strip().lower(), params


def parse_media_type(value: str) -> tuple[str, dict[str, str]]:
    """Parse a ``Content-Type`` value into ``(media_type, params)``.

    The media type is lowercased; parameter names are lowercased and RFC 2231
    continuations are collapsed.

    Raises
    ------
    ContentTypeParseError
        If the value does not start with a ``type/subtype`` token pair.
    """
    media_type, params = _split_params(value, "content-type")
    if not _MEDIA_TYPE.match(media_type):
        raise ContentTypeParseError(
            f"invalid media type in '{value[:80]}'",
            stage="headers",
            recoverable=True,
        )
    return media_type, params


def parse_disposition(value: str) -> tuple[str, dict[str, str]]:
    """Parse a ``Content-Disposition`` value; never raises."""
    if not value.strip():
        return "", {}
    return _split_params(value, "content-disposition")
