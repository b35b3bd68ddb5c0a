"""Attachment classification for non-body MIME parts.

Decides regular vs. inline disposition, extracts and sanitizes the filename,
applies the allow/deny type policy and the decoded-size limit.
"""

from __future__ import annotations

import logging
import os
import re
from email.message import Message
from typing import BinaryIO, Callable

from ingestkit_mime.config import DecodeOptions
from ingestkit_mime.encoding import decode_transfer_encoding
from ingestkit_mime.errors import (
    ContentTypeParseError,
    MIMEParseException,
    SizeExceededError,
    TypeForbiddenError,
)
from ingestkit_mime.headers import header_value, parse_disposition, parse_media_type
from ingestkit_mime.models import AttachmentInfo, Disposition

logger = logging.getLogger("ingestkit_mime")

DEFAULT_CONTENT_TYPE = "application/octet-stream"
UNNAMED_ATTACHMENT = "unnamed_attachment"

_UNSAFE_SEQUENCES = ("..", "/", "\\", ":", "*", "?", '"', "<", ">", "|")
_FILENAME_SCAN = re.compile(
    r"""filename\*?\s*=\s*(?:"([^"]*)"|([^;\s]+))""",
    re.IGNORECASE,
)


def sanitize_filename(name: str) -> str:
    """Return a filename safe to use as a single path component.

    Replaces path separators, ``..`` and shell/filesystem metacharacters with
    ``_``, prefixes a leading dot with ``file`` and maps the empty name to
    ``unnamed_attachment``.  Applying it twice gives the same result as
    applying it once.
    """
    if not name:
        return UNNAMED_ATTACHMENT
    for seq in _UNSAFE_SEQUENCES:
        name = name.replace(seq, "_")
    if name.startswith("."):
        name = "file" + name
    return name


def _scan_filename(raw_disposition: str) -> str:
    match = _FILENAME_SCAN.search(raw_disposition)
    if match is None:
        return ""
    return match.group(1) if match.group(1) is not None else match.group(2)


class AttachmentClassifier:
    """Classify a non-body part into an ``AttachmentInfo``.

    ``filename_decoder`` is applied to the raw filename before the type
    policy runs; the parser passes the RFC 2047 word decoder here.
    """

    def __init__(
        self,
        options: DecodeOptions,
        filename_decoder: Callable[[str], str] | None = None,
    ) -> None:
        self.options = options
        self.filename_decoder = filename_decoder

    def classify(
        self,
        headers: Message,
        content: bytes | BinaryIO,
        part_id: str,
    ) -> AttachmentInfo | None:
        """Classify one part.

        Returns
        -------
        AttachmentInfo | None
            ``None`` when the part is inline and ``process_inline`` is off.

        Raises
        ------
        ContentTypeParseError
            If the part's ``Content-Type`` is present but unparseable.
        TypeForbiddenError
            If the type policy rejects the part.
        SizeExceededError
            If the decoded size exceeds ``max_attachment_size``; the
            exception's ``attachment`` carries the part without content.
        """
        raw_type = header_value(headers, "Content-Type")
        if raw_type:
            try:
                media_type, type_params = parse_media_type(raw_type)
            except ContentTypeParseError as exc:
                raise ContentTypeParseError(
                    exc.message, stage="classify", recoverable=True, part_id=part_id
                ) from exc
        else:
            media_type, type_params = DEFAULT_CONTENT_TYPE, {}

        raw_disposition = header_value(headers, "Content-Disposition")
        disposition_type, disposition_params = parse_disposition(raw_disposition)
        content_id = header_value(headers, "Content-Id").strip("<> \t")
        disposition = self.resolve_disposition(disposition_type, content_id)

        if disposition is Disposition.INLINE and not self.options.process_inline:
            logger.debug(
                "ingestkit_mime | part=%s | detail=inline part skipped by policy",
                part_id,
            )
            return None

        filename = self.extract_filename(
            disposition_params, type_params, raw_disposition
        )
        if filename and self.filename_decoder is not None:
            filename = self.filename_decoder(filename)

        if not self.is_type_allowed(media_type, filename):
            raise TypeForbiddenError(
                f"type '{media_type}' of '{filename}' is not allowed",
                stage="classify",
                recoverable=True,
                part_id=part_id,
            )

        body = content.read() if hasattr(content, "read") else content
        encoding = header_value(headers, "Content-Transfer-Encoding")
        decoded = self._decode(body, encoding, part_id)

        info = AttachmentInfo(
            part_id=part_id,
            filename=sanitize_filename(filename) if filename else "",
            content_type=media_type,
            content_id=content_id,
            disposition=disposition,
            transfer_encoding=encoding,
            size=len(decoded),
            content=decoded if self.options.include_content else None,
        )

        if info.size > self.options.max_attachment_size:
            raise SizeExceededError(
                f"attachment size {info.size} bytes exceeds limit of "
                f"{self.options.max_attachment_size} bytes",
                attachment=info.model_copy(update={"content": None}),
                stage="classify",
                recoverable=True,
                part_id=part_id,
            )
        return info

    @staticmethod
    def resolve_disposition(disposition_type: str, content_id: str) -> Disposition:
        """Explicit disposition wins; otherwise a Content-Id means inline."""
        if disposition_type == "inline":
            return Disposition.INLINE
        if disposition_type:
            return Disposition.ATTACHMENT
        return Disposition.INLINE if content_id else Disposition.ATTACHMENT

    @staticmethod
    def extract_filename(
        disposition_params: dict[str, str],
        type_params: dict[str, str],
        raw_disposition: str = "",
    ) -> str:
        name = (
            disposition_params.get("filename")
            or type_params.get("name")
            or _scan_filename(raw_disposition)
        )
        return name.strip().strip('"').strip()

    def is_type_allowed(self, media_type: str, filename: str = "") -> bool:
        """Check the allow/deny policy; a forbidden entry always wins."""
        ext = os.path.splitext(filename)[1].lower()
        keys = {media_type}
        if ext:
            keys.update({ext, ext.lstrip(".")})

        if keys.intersection(self.options.forbidden_types):
            return False
        if not self.options.allowed_types:
            return True
        return bool(keys.intersection(self.options.allowed_types))

    def _decode(self, body: bytes, encoding: str, part_id: str) -> bytes:
        try:
            return decode_transfer_encoding(body, encoding)
        except MIMEParseException as exc:
            logger.debug(
                "ingestkit_mime | part=%s | code=%s | detail=keeping raw attachment bytes",
                part_id,
                exc.code.value,
            )
            return body
