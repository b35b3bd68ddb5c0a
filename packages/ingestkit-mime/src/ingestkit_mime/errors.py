"""Error codes, structured error model and exceptions for ingestkit-mime.

``ErrorCode`` contains all MIME-specific error/warning codes plus the shared
parse codes from the core taxonomy.  ``IngestError`` extends
``BaseIngestError`` with the narrowed ``code`` type and a ``part_id``
location field.

Note: ``IngestError`` is a Pydantic model (data structure), not a Python
Exception.  Operations that fail raise ``MIMEParseException`` (or one of its
subclasses), which wraps an ``IngestError`` as the ``.error`` attribute.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from ingestkit_core.errors import BaseIngestError

if TYPE_CHECKING:
    from ingestkit_mime.models import AttachmentInfo


class ErrorCode(str, Enum):
    """Error codes for ingestkit-mime.

    Fatal codes use an ``E_`` prefix; warnings use ``W_``.
    Values equal their names for stable metric/alerting strings.
    """

    # Parse errors (reused from core taxonomy)
    E_PARSE_EMPTY = "E_PARSE_EMPTY"

    # Structural errors
    E_MIME_HEADERS_UNREADABLE = "E_MIME_HEADERS_UNREADABLE"
    E_MIME_MISSING_BOUNDARY = "E_MIME_MISSING_BOUNDARY"
    E_MIME_MULTIPART_MALFORMED = "E_MIME_MULTIPART_MALFORMED"
    E_MIME_DEPTH_EXCEEDED = "E_MIME_DEPTH_EXCEEDED"

    # Part-level errors
    E_MIME_PART_UNREADABLE = "E_MIME_PART_UNREADABLE"
    E_MIME_CONTENT_TYPE_INVALID = "E_MIME_CONTENT_TYPE_INVALID"
    E_MIME_TOO_MANY_PART_ERRORS = "E_MIME_TOO_MANY_PART_ERRORS"

    # Attachment policy errors
    E_MIME_SIZE_EXCEEDED = "E_MIME_SIZE_EXCEEDED"
    E_MIME_TYPE_FORBIDDEN = "E_MIME_TYPE_FORBIDDEN"

    # Encoding errors
    E_MIME_UNSUPPORTED_ENCODING = "E_MIME_UNSUPPORTED_ENCODING"
    E_MIME_UNSUPPORTED_CHARSET = "E_MIME_UNSUPPORTED_CHARSET"
    E_MIME_DECODE_FAILED = "E_MIME_DECODE_FAILED"

    # Warnings (non-fatal)
    W_MIME_CONTENT_TYPE_DEFAULTED = "W_MIME_CONTENT_TYPE_DEFAULTED"
    W_MIME_FALLBACK_USED = "W_MIME_FALLBACK_USED"
    W_MIME_MULTIPART_TRUNCATED = "W_MIME_MULTIPART_TRUNCATED"
    W_MIME_PART_LIMIT_REACHED = "W_MIME_PART_LIMIT_REACHED"
    W_MIME_ERROR_BUDGET_EXHAUSTED = "W_MIME_ERROR_BUDGET_EXHAUSTED"
    W_MIME_ENCODING_FALLBACK = "W_MIME_ENCODING_FALLBACK"


class IngestError(BaseIngestError):
    """Structured error for the MIME pipeline.

    Narrows the ``code`` field to ``ErrorCode`` for type safety while
    remaining serialisation-compatible with the base class.  ``part_id`` is
    the dotted part identifier the diagnostic refers to; ``None`` means the
    message as a whole.
    """

    code: ErrorCode  # type: ignore[assignment]  # narrows base str to ErrorCode
    part_id: str | None = None


class MIMEParseException(Exception):
    """Raisable exception wrapping an ``IngestError`` data model.

    Carries the structured ``IngestError`` as the ``.error`` attribute for
    inspection and serialization.  Convenience properties delegate to the
    underlying error model for common fields.
    """

    default_code: ErrorCode = ErrorCode.E_MIME_MULTIPART_MALFORMED

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("code", self.default_code)
        self.error = IngestError(message=message, **kwargs)  # type: ignore[arg-type]
        super().__init__(self.error.message)

    @classmethod
    def from_error(cls, error: IngestError) -> MIMEParseException:
        exc = cls.__new__(cls)
        exc.error = error
        Exception.__init__(exc, error.message)
        return exc

    @property
    def code(self) -> ErrorCode:
        return self.error.code

    @property
    def message(self) -> str:
        return self.error.message

    @property
    def stage(self) -> str | None:
        return self.error.stage

    @property
    def recoverable(self) -> bool:
        return self.error.recoverable

    @property
    def part_id(self) -> str | None:
        return self.error.part_id


class UnsupportedEncodingError(MIMEParseException):
    """The ``Content-Transfer-Encoding`` is not one the decoder knows."""

    default_code = ErrorCode.E_MIME_UNSUPPORTED_ENCODING


class UnsupportedCharsetError(MIMEParseException):
    """The charset name is not in the charset table."""

    default_code = ErrorCode.E_MIME_UNSUPPORTED_CHARSET


class DecodeFailureError(MIMEParseException):
    """A known transfer encoding or charset failed on malformed data."""

    default_code = ErrorCode.E_MIME_DECODE_FAILED


class ContentTypeParseError(MIMEParseException):
    """A ``Content-Type`` header value could not be parsed."""

    default_code = ErrorCode.E_MIME_CONTENT_TYPE_INVALID


class TypeForbiddenError(MIMEParseException):
    """An attachment was rejected by the allow/deny type policy."""

    default_code = ErrorCode.E_MIME_TYPE_FORBIDDEN


class SizeExceededError(MIMEParseException):
    """An attachment's decoded size exceeds ``max_attachment_size``.

    ``attachment`` holds the classified part with ``content=None`` and the
    true decoded ``size`` so callers can still report it.
    """

    default_code = ErrorCode.E_MIME_SIZE_EXCEEDED
    attachment: AttachmentInfo | None = None

    def __init__(
        self,
        message: str = "",
        attachment: AttachmentInfo | None = None,
        **kwargs: object,
    ) -> None:
        super().__init__(message, **kwargs)
        self.attachment = attachment


class StructuralError(MIMEParseException):
    """The message or a multipart container cannot be walked."""

    default_code = ErrorCode.E_MIME_HEADERS_UNREADABLE


_EXCEPTION_BY_CODE: dict[ErrorCode, type[MIMEParseException]] = {
    ErrorCode.E_MIME_UNSUPPORTED_ENCODING: UnsupportedEncodingError,
    ErrorCode.E_MIME_UNSUPPORTED_CHARSET: UnsupportedCharsetError,
    ErrorCode.E_MIME_DECODE_FAILED: DecodeFailureError,
    ErrorCode.E_MIME_CONTENT_TYPE_INVALID: ContentTypeParseError,
    ErrorCode.E_MIME_TYPE_FORBIDDEN: TypeForbiddenError,
    ErrorCode.E_MIME_SIZE_EXCEEDED: SizeExceededError,
    ErrorCode.E_PARSE_EMPTY: StructuralError,
    ErrorCode.E_MIME_HEADERS_UNREADABLE: StructuralError,
    ErrorCode.E_MIME_MISSING_BOUNDARY: StructuralError,
    ErrorCode.E_MIME_MULTIPART_MALFORMED: StructuralError,
    ErrorCode.E_MIME_DEPTH_EXCEEDED: StructuralError,
}


def exception_for(error: IngestError) -> MIMEParseException:
    """Wrap a recorded ``IngestError`` in the matching exception class."""
    exc_cls = _EXCEPTION_BY_CODE.get(error.code, MIMEParseException)
    return exc_cls.from_error(error)
