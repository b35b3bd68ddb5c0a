"""Unified structural parser: raw message bytes to ``ParsedMessage``.

The parser walks the multipart tree top-down.  Each container is split by
``MultipartReader`` first; only when that yields no readable part at all is
the container re-split with the literal boundary fallback.  Leaves are
either claimed as the text/HTML body (first non-empty one wins) or handed to
``AttachmentClassifier``.

Per-part failures are recorded in ``ParsedMessage.errors`` and never abort
sibling parts.  In strict mode the first recorded ``E_*`` error is raised
instead.  Every walk is bounded by ``max_parts``, ``max_consecutive_errors``,
``max_nesting_depth`` and ``max_errors``.
"""

from __future__ import annotations

import logging
from email.message import Message
from typing import BinaryIO

from ingestkit_mime.classifier import AttachmentClassifier
from ingestkit_mime.config import DecodeOptions
from ingestkit_mime.encoding import decode_header_words, decode_text
from ingestkit_mime.errors import (
    ContentTypeParseError,
    ErrorCode,
    IngestError,
    MIMEParseException,
    SizeExceededError,
    StructuralError,
    TypeForbiddenError,
    exception_for,
)
from ingestkit_mime.headers import (
    header_dict,
    header_value,
    parse_disposition,
    parse_headers,
    parse_media_type,
    split_header_block,
)
from ingestkit_mime.models import (
    AttachmentInfo,
    MIMENode,
    ParsedMessage,
    ParseStrategy,
    PartRole,
)
from ingestkit_mime.multipart import (
    MultipartReader,
    MultipartStreamError,
    PartReadError,
    iter_fallback_segments,
)

logger = logging.getLogger("ingestkit_mime")

_SAMPLE_BYTES = 128


class _BudgetExhausted(Exception):
    """Internal signal that the error budget was used up."""


class _ParseState:
    """Everything that lives for exactly one ``parse()`` call."""

    def __init__(self) -> None:
        self.result = ParsedMessage()
        self.fatal_count = 0
        self.saw_multipart = False
        self.fallback_used = False


def child_part_id(parent_id: str, index: int) -> str:
    """IMAP-style section number of the *index*-th child (1-based)."""
    return str(index) if not parent_id else f"{parent_id}.{index}"


class MessageParser:
    """Parse raw RFC 5322 messages into ``ParsedMessage`` results.

    The parser holds only its immutable options and classifier, so one
    instance may be shared between threads.
    """

    def __init__(self, options: DecodeOptions | None = None) -> None:
        self.options = options or DecodeOptions()
        self.classifier = AttachmentClassifier(
            self.options,
            filename_decoder=decode_header_words if self.options.decode_filenames else None,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse(self, data: bytes | BinaryIO) -> ParsedMessage:
        """Parse one message.

        Parameters
        ----------
        data:
            The raw message, as bytes or a binary file object.

        Returns
        -------
        ParsedMessage
            Bodies, attachments, the MIME tree and all diagnostics.

        Raises
        ------
        StructuralError
            If the input is empty or its top-level header block holds no
            header field.  Raised in every mode.
        MIMEParseException
            In strict mode, for the first ``E_*`` error encountered.
        """
        raw = data.read() if hasattr(data, "read") else bytes(data)
        if not raw.strip():
            logger.warning("ingestkit_mime | code=%s | detail=empty input", ErrorCode.E_PARSE_EMPTY.value)
            raise StructuralError(
                "message is empty", code=ErrorCode.E_PARSE_EMPTY, stage="headers"
            )

        block, body = split_header_block(raw)
        headers = parse_headers(block)
        if not headers.keys():
            logger.warning(
                "ingestkit_mime | code=%s | detail=no header fields in %d byte header block",
                ErrorCode.E_MIME_HEADERS_UNREADABLE.value,
                len(block),
            )
            raise StructuralError(
                "top-level header block contains no header field",
                code=ErrorCode.E_MIME_HEADERS_UNREADABLE,
                stage="headers",
            )

        state = _ParseState()
        state.result.headers = header_dict(headers)
        try:
            self._walk(
                state,
                headers,
                body,
                part_id="",
                parent=None,
                depth=0,
                strategy=ParseStrategy.SINGLE,
                lenient_type=True,
            )
        except _BudgetExhausted:
            logger.warning(
                "ingestkit_mime | code=%s | detail=stopped after %d errors",
                ErrorCode.W_MIME_ERROR_BUDGET_EXHAUSTED.value,
                state.fatal_count,
            )

        result = state.result
        if state.fallback_used:
            result.strategy = ParseStrategy.FALLBACK
        elif state.saw_multipart:
            result.strategy = ParseStrategy.PRIMARY

        logger.debug(
            "ingestkit_mime | parsed | parser=%s | strategy=%s | parts=%d | attachments=%d | inline=%d | errors=%d",
            self.options.parser_version,
            result.strategy.value,
            len(result.structure),
            len(result.attachments),
            len(result.inline_attachments),
            len(result.errors),
        )
        return result

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def _record(
        self,
        state: _ParseState,
        error: IngestError,
        sample: bytes | None = None,
    ) -> None:
        state.result.errors.append(error)
        logger.warning(
            "ingestkit_mime | part=%s | code=%s | detail=%s",
            error.part_id,
            error.code.value,
            error.message,
        )
        if sample and self.options.log_sample_data:
            logger.debug(
                "ingestkit_mime | part=%s | sample=%r",
                error.part_id,
                sample[:_SAMPLE_BYTES],
            )

        if not error.is_fatal:
            return
        if self.options.strict_mode:
            raise exception_for(error)
        state.fatal_count += 1
        if state.fatal_count >= self.options.max_errors:
            state.result.errors.append(
                IngestError(
                    code=ErrorCode.W_MIME_ERROR_BUDGET_EXHAUSTED,
                    message=f"stopped after {state.fatal_count} errors",
                    stage="parse",
                    recoverable=True,
                )
            )
            raise _BudgetExhausted

    def _note(
        self,
        state: _ParseState,
        code: ErrorCode,
        message: str,
        part_id: str | None,
        stage: str,
        sample: bytes | None = None,
    ) -> None:
        self._record(
            state,
            IngestError(
                code=code,
                message=message,
                stage=stage,
                recoverable=True,
                part_id=part_id or None,
            ),
            sample,
        )

    def _record_exception(
        self,
        state: _ParseState,
        exc: MIMEParseException,
        part_id: str,
    ) -> None:
        error = exc.error
        if error.part_id is None and part_id:
            error = error.model_copy(update={"part_id": part_id})
        self._record(state, error)

    # ------------------------------------------------------------------
    # Tree walk
    # ------------------------------------------------------------------

    def _add_node(self, state: _ParseState, **fields: object) -> MIMENode:
        structure = state.result.structure
        node = MIMENode(index=len(structure), **fields)  # type: ignore[arg-type]
        structure.append(node)
        return node

    def _walk(
        self,
        state: _ParseState,
        headers: Message,
        body: bytes,
        part_id: str,
        parent: int | None,
        depth: int,
        strategy: ParseStrategy,
        lenient_type: bool = False,
    ) -> None:
        """Dispatch one entity: recurse into containers, classify leaves."""
        raw_type = header_value(headers, "Content-Type")
        media_type, params = "text/plain", {}
        if raw_type:
            try:
                media_type, params = parse_media_type(raw_type)
            except ContentTypeParseError as exc:
                if not lenient_type:
                    self._add_node(
                        state,
                        parent=parent,
                        part_id=part_id,
                        depth=depth,
                        content_type="",
                        size=len(body),
                        strategy=strategy,
                        role=PartRole.REJECTED,
                    )
                    self._record_exception(state, exc, part_id)
                    return
                self._note(
                    state,
                    ErrorCode.W_MIME_CONTENT_TYPE_DEFAULTED,
                    f"{exc.message}; treating as text/plain",
                    part_id,
                    stage="headers",
                    sample=raw_type.encode("utf-8", "replace"),
                )

        if not media_type.startswith("multipart/"):
            self._dispatch_leaf(
                state,
                headers,
                body,
                part_id or "1",
                media_type,
                params,
                parent,
                depth,
                strategy,
            )
            return

        state.saw_multipart = True
        boundary = params.get("boundary", "")
        node = self._add_node(
            state,
            parent=parent,
            part_id=part_id,
            depth=depth,
            content_type=media_type,
            boundary=boundary or None,
            size=len(body),
            strategy=strategy,
            role=PartRole.CONTAINER,
        )

        if depth >= self.options.max_nesting_depth:
            self._note(
                state,
                ErrorCode.E_MIME_DEPTH_EXCEEDED,
                f"multipart nesting deeper than {self.options.max_nesting_depth} levels; subtree skipped",
                part_id,
                stage="walk",
            )
            return
        if not boundary:
            self._note(
                state,
                ErrorCode.E_MIME_MISSING_BOUNDARY,
                f"{media_type} has no boundary parameter",
                part_id,
                stage="headers",
            )
            return

        self._split_primary(state, node, body, boundary)

    def _split_primary(
        self,
        state: _ParseState,
        node: MIMENode,
        body: bytes,
        boundary: str,
    ) -> None:
        reader = MultipartReader(body, boundary)
        max_parts = self.options.max_parts
        index = 0
        dispatched = 0
        consecutive = 0
        failure: str | None = None

        while True:
            if index >= max_parts:
                if not reader.done:
                    self._note(
                        state,
                        ErrorCode.W_MIME_PART_LIMIT_REACHED,
                        f"stopped after {max_parts} parts",
                        node.part_id,
                        stage="split",
                    )
                break
            try:
                part = reader.next_part()
            except PartReadError as exc:
                index += 1
                consecutive += 1
                self._record_exception(state, exc, child_part_id(node.part_id, index))
                if consecutive >= self.options.max_consecutive_errors:
                    failure = f"{consecutive} consecutive unreadable parts"
                    self._note(
                        state,
                        ErrorCode.E_MIME_TOO_MANY_PART_ERRORS,
                        f"{failure}; container abandoned",
                        node.part_id,
                        stage="split",
                    )
                    break
                continue
            except MultipartStreamError as exc:
                failure = exc.message
                break
            if part is None:
                break

            index += 1
            consecutive = 0
            dispatched += 1
            self._walk(
                state,
                part.headers,
                part.body,
                child_part_id(node.part_id, index),
                node.index,
                node.depth + 1,
                ParseStrategy.PRIMARY,
            )

        logger.debug(
            "ingestkit_mime | part=%s | split=primary | parts=%d | dispatched=%d | closed=%s",
            node.part_id,
            index,
            dispatched,
            reader.closed,
        )
        if dispatched == 0 and (failure is not None or index > 0):
            self._split_fallback(state, node, body, boundary, failure or "no readable part")
        elif reader.truncated:
            self._note(
                state,
                ErrorCode.W_MIME_MULTIPART_TRUNCATED,
                "close delimiter missing",
                node.part_id,
                stage="split",
            )

    def _split_fallback(
        self,
        state: _ParseState,
        node: MIMENode,
        body: bytes,
        boundary: str,
        reason: str,
    ) -> None:
        state.fallback_used = True
        node.strategy = ParseStrategy.FALLBACK
        self._note(
            state,
            ErrorCode.W_MIME_FALLBACK_USED,
            f"primary split failed ({reason}); using literal boundary split",
            node.part_id,
            stage="split",
            sample=body[:_SAMPLE_BYTES],
        )

        recovered = 0
        for segment in iter_fallback_segments(body, boundary):
            if recovered >= self.options.max_parts:
                self._note(
                    state,
                    ErrorCode.W_MIME_PART_LIMIT_REACHED,
                    f"stopped after {self.options.max_parts} fallback segments",
                    node.part_id,
                    stage="split",
                )
                break
            recovered += 1
            part_id = child_part_id(node.part_id, segment.index)
            if segment.has_headers:
                self._walk(
                    state,
                    segment.headers,
                    segment.body,
                    part_id,
                    node.index,
                    node.depth + 1,
                    ParseStrategy.FALLBACK,
                    lenient_type=True,
                )
                continue
            media_type = "text/html" if b"<html" in segment.body.lower() else "text/plain"
            self._dispatch_leaf(
                state,
                Message(),
                segment.body,
                part_id,
                media_type,
                {},
                node.index,
                node.depth + 1,
                ParseStrategy.FALLBACK,
            )

        if recovered == 0:
            self._note(
                state,
                ErrorCode.E_MIME_MULTIPART_MALFORMED,
                f"no part could be recovered ({reason})",
                node.part_id,
                stage="split",
            )

    # ------------------------------------------------------------------
    # Leaves
    # ------------------------------------------------------------------

    def _dispatch_leaf(
        self,
        state: _ParseState,
        headers: Message,
        body: bytes,
        part_id: str,
        media_type: str,
        params: dict[str, str],
        parent: int | None,
        depth: int,
        strategy: ParseStrategy,
    ) -> None:
        raw_disposition = header_value(headers, "Content-Disposition")
        disposition_type, _ = parse_disposition(raw_disposition)
        encoding = header_value(headers, "Content-Transfer-Encoding")
        charset = params.get("charset", "")
        node = self._add_node(
            state,
            parent=parent,
            part_id=part_id,
            depth=depth,
            content_type=media_type,
            charset=charset,
            transfer_encoding=encoding,
            disposition=disposition_type,
            content_id=header_value(headers, "Content-Id").strip("<> \t"),
            size=len(body),
            strategy=strategy,
        )

        if media_type in ("text/plain", "text/html") and disposition_type != "attachment":
            self._claim_body(state, node, body, encoding, charset)
            return

        result = state.result
        try:
            info = self.classifier.classify(headers, body, part_id)
        except SizeExceededError as exc:
            if exc.attachment is not None:
                self._file_attachment(state, node, exc.attachment)
            else:
                node.role = PartRole.REJECTED
            self._record_exception(state, exc, part_id)
            return
        except (TypeForbiddenError, ContentTypeParseError) as exc:
            node.role = PartRole.REJECTED
            self._record_exception(state, exc, part_id)
            return

        if info is None:
            return
        self._file_attachment(state, node, info)
        logger.debug(
            "ingestkit_mime | part=%s | type=%s | disposition=%s | size=%d | attachments=%d",
            part_id,
            info.content_type,
            info.disposition.value,
            info.size,
            len(result.attachments) + len(result.inline_attachments),
        )

    def _file_attachment(
        self,
        state: _ParseState,
        node: MIMENode,
        info: AttachmentInfo,
    ) -> None:
        node.filename = info.filename
        if info.is_inline:
            node.role = PartRole.INLINE
            state.result.inline_attachments.append(info)
        else:
            node.role = PartRole.ATTACHMENT
            state.result.attachments.append(info)

    def _claim_body(
        self,
        state: _ParseState,
        node: MIMENode,
        body: bytes,
        encoding: str,
        charset: str,
    ) -> None:
        result = state.result
        is_html = node.content_type == "text/html"
        slot = "html_body" if is_html else "text_body"
        if getattr(result, slot):
            logger.debug(
                "ingestkit_mime | part=%s | detail=%s already set; part ignored",
                node.part_id,
                slot,
            )
            return

        text, warnings = decode_text(body, encoding, charset, part_id=node.part_id)
        for warning in warnings:
            self._record(state, warning, body)
        if not text.strip():
            return
        setattr(result, slot, text)
        node.role = PartRole.HTML_BODY if is_html else PartRole.TEXT_BODY


def parse_message(
    data: bytes | BinaryIO,
    options: DecodeOptions | None = None,
) -> ParsedMessage:
    """Parse *data* with a fresh ``MessageParser`` built from *options*."""
    return MessageParser(options).parse(data)
