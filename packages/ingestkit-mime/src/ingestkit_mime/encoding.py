"""Transfer-encoding and charset decoding.

Two families of operations live here:

* strict decoders (``decode_transfer_encoding``, ``convert_charset``,
  ``decode_full``) that raise a ``MIMEParseException`` subclass on any
  unknown name or malformed data, and
* ``decode_with_fallback`` / ``decode_text`` / ``to_text``, which never raise
  and are the only entry points safe for untrusted part bodies.

Charset names resolve through ``CHARSETS``, a read-only table built once at
import time.  A decode is accepted because its codec succeeded; the output is
never compared with the input, so pure ASCII text that decodes to itself is a
valid result.
"""

from __future__ import annotations

import base64
import binascii
import logging
import quopri
import re
from email.errors import HeaderParseError
from email.header import decode_header
from types import MappingProxyType

import charset_normalizer

from ingestkit_mime.errors import (
    DecodeFailureError,
    ErrorCode,
    IngestError,
    MIMEParseException,
    UnsupportedCharsetError,
    UnsupportedEncodingError,
)

logger = logging.getLogger("ingestkit_mime")

PASSTHROUGH_ENCODINGS = frozenset({"", "7bit", "8bit", "binary"})
SUPPORTED_ENCODINGS = PASSTHROUGH_ENCODINGS | {"quoted-printable", "base64"}

_UTF8_NAMES = frozenset({"", "utf-8", "utf8"})
_BASE64_JUNK = re.compile(rb"[^A-Za-z0-9+/=]")
_BASE64_CHUNK = re.compile(rb"[^=]*=+|[^=]+")
_UTF_BOMS = (
    (b"\xef\xbb\xbf", "utf-8"),
    (b"\xff\xfe", "utf-16-le"),
    (b"\xfe\xff", "utf-16-be"),
)


def _build_charset_table() -> MappingProxyType:
    table: dict[str, str] = {
        # Unicode
        "utf-8": "utf-8",
        "utf8": "utf-8",
        "utf-16": "utf-16",
        "utf-16le": "utf-16-le",
        "utf-16be": "utf-16-be",
        # ASCII is read as its common superset
        "ascii": "cp1252",
        "us-ascii": "cp1252",
        # Western European
        "latin1": "latin-1",
        "latin-1": "latin-1",
        # Chinese
        "gb2312": "gbk",
        "gbk": "gbk",
        "gb18030": "gb18030",
        "big5": "big5",
        # Japanese
        "shift_jis": "cp932",
        "shift-jis": "cp932",
        "sjis": "cp932",
        "iso-2022-jp": "iso2022_jp",
        "euc-jp": "euc_jp",
        # Korean
        "euc-kr": "euc_kr",
        "ks_c_5601-1987": "cp949",
        # Cyrillic
        "koi8-r": "koi8_r",
        "koi8-u": "koi8_u",
    }
    # ISO-8859 parts 1-16; part 12 was never published
    for n in range(1, 17):
        if n == 12:
            continue
        codec = "latin-1" if n == 1 else f"iso8859_{n}"
        table[f"iso-8859-{n}"] = codec
        table[f"iso8859-{n}"] = codec
    for n in range(1250, 1259):
        table[f"windows-{n}"] = f"cp{n}"
        table[f"cp{n}"] = f"cp{n}"
    return MappingProxyType(table)


CHARSETS = _build_charset_table()


def normalize_charset(name: str) -> str:
    """Lowercase *name* and strip whitespace and surrounding quotes."""
    return name.strip().strip("\"'").strip().lower()


def supported_charsets() -> list[str]:
    return sorted(CHARSETS)


def supported_transfer_encodings() -> list[str]:
    return sorted(e for e in SUPPORTED_ENCODINGS if e)


# ---------------------------------------------------------------------------
# Strict decoders
# ---------------------------------------------------------------------------


def _decode_base64(data: bytes) -> bytes:
    cleaned = _BASE64_JUNK.sub(b"", data)
    try:
        return base64.b64decode(cleaned, validate=True)
    except binascii.Error:
        pass

    # Producers concatenate padded chunks or drop padding; every run of "="
    # ends a chunk, and each chunk is re-padded and decoded on its own.
    out: list[bytes] = []
    for chunk in _BASE64_CHUNK.findall(cleaned):
        core = chunk.rstrip(b"=")
        if len(core) % 4 == 1:
            raise DecodeFailureError(
                f"base64 data has an impossible length ({len(core)} symbols)",
                stage="transfer",
                recoverable=True,
            )
        try:
            out.append(base64.b64decode(core + b"=" * (-len(core) % 4)))
        except binascii.Error as exc:
            raise DecodeFailureError(
                f"base64 data could not be decoded: {exc}",
                stage="transfer",
                recoverable=True,
            ) from exc
    return b"".join(out)


def decode_transfer_encoding(data: bytes, encoding: str) -> bytes:
    """Undo a ``Content-Transfer-Encoding``.

    Parameters
    ----------
    data:
        Raw part body.
    encoding:
        Header value; case-insensitive, surrounding whitespace ignored.

    Returns
    -------
    bytes
        The decoded body.  Empty input always yields ``b""``.

    Raises
    ------
    UnsupportedEncodingError
        If *encoding* is not a recognized transfer encoding.
    DecodeFailureError
        If base64 data is damaged beyond repair.
    """
    if not data:
        return b""
    name = encoding.strip().lower()
    if name in PASSTHROUGH_ENCODINGS:
        return data
    if name == "base64":
        return _decode_base64(data)
    if name == "quoted-printable":
        return quopri.decodestring(data)
    raise UnsupportedEncodingError(
        f"unsupported transfer encoding '{encoding}'",
        stage="transfer",
        recoverable=True,
    )


def convert_charset(data: bytes, charset: str) -> bytes:
    """Re-encode *data* from *charset* to UTF-8.

    ``""``, ``utf-8`` and ``utf8`` are no-ops and return *data* untouched.

    Raises
    ------
    UnsupportedCharsetError
        If *charset* is not in ``CHARSETS``.
    DecodeFailureError
        If *data* is not valid in *charset*.
    """
    if not data:
        return b""
    name = normalize_charset(charset)
    if name in _UTF8_NAMES:
        return data
    codec = CHARSETS.get(name)
    if codec is None:
        raise UnsupportedCharsetError(
            f"unsupported charset '{charset}'",
            stage="charset",
            recoverable=True,
        )
    try:
        return data.decode(codec).encode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeFailureError(
            f"data is not valid {name}: {exc.reason} at byte {exc.start}",
            stage="charset",
            recoverable=True,
        ) from exc


def decode_full(data: bytes, encoding: str, charset: str) -> bytes:
    """Transfer-decode then charset-convert; raises on any failure."""
    return convert_charset(decode_transfer_encoding(data, encoding), charset)


# ---------------------------------------------------------------------------
# Lenient decoders
# ---------------------------------------------------------------------------


def decode_with_fallback(data: bytes, encoding: str, charset: str) -> bytes:
    """Best-effort decode that never raises.

    Tries, in order: the full decode, transfer decoding alone, charset
    conversion alone, and finally returns *data* verbatim.
    """
    try:
        return decode_full(data, encoding, charset)
    except MIMEParseException as exc:
        logger.debug(
            "ingestkit_mime | stage=decode | code=%s | detail=full decode failed",
            exc.code.value,
        )
    try:
        return decode_transfer_encoding(data, encoding)
    except MIMEParseException as exc:
        logger.debug(
            "ingestkit_mime | stage=decode | code=%s | detail=transfer decode failed",
            exc.code.value,
        )
    try:
        return convert_charset(data, charset)
    except MIMEParseException as exc:
        logger.debug(
            "ingestkit_mime | stage=decode | code=%s | detail=charset conversion failed",
            exc.code.value,
        )
    return data


def to_text(data: bytes) -> str:
    """Turn decoded bytes into ``str`` without ever raising.

    Strict UTF-8 first, then the best guess from charset detection, then
    UTF-8 with replacement characters.
    """
    if not data:
        return ""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        pass
    best = charset_normalizer.from_bytes(data).best()
    if best is not None:
        return str(best)
    return data.decode("utf-8", errors="replace")


def decode_text(
    data: bytes,
    encoding: str,
    charset: str,
    part_id: str | None = None,
) -> tuple[str, list[IngestError]]:
    """Decode a text body part to ``str``.

    Returns the text and a list of ``W_MIME_ENCODING_FALLBACK`` warnings
    describing why the strict decode was abandoned (empty on success).
    """
    warnings: list[IngestError] = []
    try:
        decoded = decode_full(data, encoding, charset)
    except MIMEParseException as exc:
        warnings.append(
            IngestError(
                code=ErrorCode.W_MIME_ENCODING_FALLBACK,
                message=f"{exc.code.value}: {exc.message}",
                stage="decode",
                recoverable=True,
                part_id=part_id,
            )
        )
        decoded = decode_with_fallback(data, encoding, charset)
    return to_text(decoded), warnings


def detect_charset(data: bytes) -> str | None:
    """Guess the charset of undeclared *data*; ``None`` if no guess."""
    if not data:
        return None
    for bom, name in _UTF_BOMS:
        if data.startswith(bom):
            return name
    try:
        data.decode("utf-8")
    except UnicodeDecodeError:
        pass
    else:
        return "utf-8"
    best = charset_normalizer.from_bytes(data).best()
    if best is None:
        return None
    return best.encoding


def _codec_for(name: str | None) -> str:
    if not name:
        return "utf-8"
    return CHARSETS.get(normalize_charset(name), normalize_charset(name))


def decode_header_words(value: str) -> str:
    """Decode RFC 2047 encoded words in *value*; never raises.

    Undecodable words are returned as written.
    """
    if not value or "=?" not in value:
        return value
    try:
        chunks = decode_header(value)
    except HeaderParseError:
        return value
    out: list[str] = []
    for chunk, enc in chunks:
        if isinstance(chunk, str):
            out.append(chunk)
            continue
        try:
            out.append(chunk.decode(_codec_for(enc), "replace"))
        except LookupError:
            out.append(chunk.decode("utf-8", "replace"))
    return "".join(out)
