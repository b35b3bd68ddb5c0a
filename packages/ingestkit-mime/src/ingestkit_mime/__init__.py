"""ingestkit-mime -- MIME decoding and structural parsing for raw email.

Re-exports all public types: parser, config, models, errors, encoding and
attachment helpers, and structure utilities.
"""

from ingestkit_mime.classifier import AttachmentClassifier, sanitize_filename
from ingestkit_mime.config import DecodeOptions
from ingestkit_mime.encoding import (
    convert_charset,
    decode_full,
    decode_header_words,
    decode_transfer_encoding,
    decode_with_fallback,
    detect_charset,
    supported_charsets,
    supported_transfer_encodings,
    to_text,
)
from ingestkit_mime.errors import (
    ContentTypeParseError,
    DecodeFailureError,
    ErrorCode,
    IngestError,
    MIMEParseException,
    SizeExceededError,
    StructuralError,
    TypeForbiddenError,
    UnsupportedCharsetError,
    UnsupportedEncodingError,
)
from ingestkit_mime.models import (
    AttachmentInfo,
    Disposition,
    MIMENode,
    ParsedMessage,
    ParseStrategy,
    PartRole,
)
from ingestkit_mime.parser import MessageParser, parse_message
from ingestkit_mime.structure import (
    children_of,
    content_summary,
    count_parts,
    describe_structure,
    find_part_by_content_id,
    find_parts_by_type,
    validate_structure,
)

__all__ = [
    # Parser
    "MessageParser",
    "parse_message",
    # Config
    "DecodeOptions",
    # Errors
    "ErrorCode",
    "IngestError",
    "MIMEParseException",
    "UnsupportedEncodingError",
    "UnsupportedCharsetError",
    "DecodeFailureError",
    "ContentTypeParseError",
    "TypeForbiddenError",
    "SizeExceededError",
    "StructuralError",
    # Models
    "AttachmentInfo",
    "Disposition",
    "MIMENode",
    "ParsedMessage",
    "ParseStrategy",
    "PartRole",
    # Encoding
    "decode_transfer_encoding",
    "convert_charset",
    "decode_full",
    "decode_with_fallback",
    "decode_header_words",
    "detect_charset",
    "to_text",
    "supported_charsets",
    "supported_transfer_encodings",
    # Attachments
    "AttachmentClassifier",
    "sanitize_filename",
    # Structure
    "children_of",
    "count_parts",
    "find_part_by_content_id",
    "find_parts_by_type",
    "describe_structure",
    "validate_structure",
    "content_summary",
]
