"""Pydantic models and enumerations for ingestkit-mime.

``ParsedMessage`` is the result of one parse call.  Its ``structure`` field
is the MIME tree stored as a flat arena: each ``MIMENode`` refers to its
parent by list index, so the tree can be walked without recursion and
serialised as-is.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from ingestkit_mime.errors import IngestError


class Disposition(str, Enum):
    """How a non-body part is meant to be presented."""

    ATTACHMENT = "attachment"
    INLINE = "inline"


class ParseStrategy(str, Enum):
    """Which splitting strategy produced a node."""

    SINGLE = "single"
    PRIMARY = "primary"
    FALLBACK = "fallback"


class PartRole(str, Enum):
    """What the parser did with a node."""

    CONTAINER = "container"
    TEXT_BODY = "text_body"
    HTML_BODY = "html_body"
    ATTACHMENT = "attachment"
    INLINE = "inline"
    IGNORED = "ignored"
    REJECTED = "rejected"


class AttachmentInfo(BaseModel):
    """A classified non-body part."""

    part_id: str
    filename: str = ""
    content_type: str = "application/octet-stream"
    content_id: str = ""
    disposition: Disposition = Disposition.ATTACHMENT
    transfer_encoding: str = ""
    size: int = 0
    content: bytes | None = None

    @property
    def is_inline(self) -> bool:
        return self.disposition is Disposition.INLINE


class MIMENode(BaseModel):
    """One entry in the MIME tree arena."""

    index: int
    parent: int | None = None
    part_id: str = ""
    depth: int = 0
    content_type: str = "text/plain"
    boundary: str | None = None
    charset: str = ""
    transfer_encoding: str = ""
    disposition: str = ""
    filename: str = ""
    content_id: str = ""
    size: int = 0
    strategy: ParseStrategy = ParseStrategy.SINGLE
    role: PartRole = PartRole.IGNORED

    @property
    def is_multipart(self) -> bool:
        return self.content_type.startswith("multipart/")


class ParsedMessage(BaseModel):
    """Normalized logical structure of one message."""

    text_body: str = ""
    html_body: str = ""
    attachments: list[AttachmentInfo] = []
    inline_attachments: list[AttachmentInfo] = []
    errors: list[IngestError] = []
    headers: dict[str, str] = {}
    structure: list[MIMENode] = []
    strategy: ParseStrategy = ParseStrategy.SINGLE

    @property
    def has_errors(self) -> bool:
        """``True`` if any fatal-class (``E_``) diagnostic was recorded."""
        return any(e.is_fatal for e in self.errors)

    @property
    def warnings(self) -> list[IngestError]:
        return [e for e in self.errors if not e.is_fatal]
