"""Tests for the literal-boundary fallback strategy of the parser."""

from __future__ import annotations

from conftest import BASE_HEADERS, make_multipart, make_part, text_part
from ingestkit_mime.config import DecodeOptions
from ingestkit_mime.errors import ErrorCode
from ingestkit_mime.models import ParseStrategy, PartRole
from ingestkit_mime.parser import parse_message


def _indented_delimiters(parts: list[bytes], boundary: str = "b1") -> bytes:
    """A container whose delimiter lines do not start at column 0."""
    head = "\r\n".join(BASE_HEADERS).encode() + (
        f'\r\nContent-Type: multipart/alternative; boundary="{boundary}"\r\n\r\n'.encode()
    )
    body = b"".join(b" --" + boundary.encode() + b"\r\n" + p + b"\r\n" for p in parts)
    return head + body + b" --" + boundary.encode() + b"--\r\n"


class TestFallbackActivation:
    def test_recovers_text_and_html(self):
        raw = _indented_delimiters([
            text_part("plain recovered"),
            text_part("<html><body>html recovered</body></html>", "html"),
        ])
        result = parse_message(raw)
        assert result.text_body == "plain recovered"
        assert result.html_body == "<html><body>html recovered</body></html>"
        assert result.strategy is ParseStrategy.FALLBACK
        assert [e.code for e in result.errors] == [ErrorCode.W_MIME_FALLBACK_USED]

        container = result.structure[0]
        assert container.strategy is ParseStrategy.FALLBACK
        leaves = result.structure[1:]
        assert [n.part_id for n in leaves] == ["1", "2"]
        assert all(n.strategy is ParseStrategy.FALLBACK for n in leaves)

    def test_not_fatal_in_strict_mode(self):
        raw = _indented_delimiters([text_part("plain recovered")])
        result = parse_message(raw, DecodeOptions(strict_mode=True))
        assert result.text_body == "plain recovered"

    def test_headerless_segments_sniffed(self):
        raw = make_part(
            list(BASE_HEADERS) + ['Content-Type: multipart/alternative; boundary="zz"'],
            b"junk --zz just words --zz <HTML><p>markup</p></HTML> --zz-- tail",
        )
        result = parse_message(raw)
        assert result.text_body == "just words"
        assert result.html_body == "<HTML><p>markup</p></HTML>"

    def test_unparseable_segment_content_type_is_text(self):
        raw = _indented_delimiters([make_part(["Content-Type: ???"], "odd type")])
        result = parse_message(raw)
        assert result.text_body == "odd type"
        codes = [e.code for e in result.errors]
        assert ErrorCode.W_MIME_CONTENT_TYPE_DEFAULTED in codes

    def test_attachment_in_fallback_segment(self):
        attachment = make_part(
            ["Content-Type: application/zip", 'Content-Disposition: attachment; filename="a.zip"'],
            b"PK\x03\x04",
        )
        raw = _indented_delimiters([text_part("body"), attachment])
        result = parse_message(raw)
        assert result.attachments[0].filename == "a.zip"
        assert result.attachments[0].part_id == "2"
        assert result.attachments[0].content == b"PK\x03\x04"

    def test_nested_container_in_fallback_segment(self):
        inner = (
            b'Content-Type: multipart/related; boundary="in"\r\n\r\n'
            b"--in\r\nContent-Type: text/plain\r\n\r\nnested text\r\n--in--"
        )
        raw = _indented_delimiters([inner])
        result = parse_message(raw)
        assert result.text_body == "nested text"
        text_node = next(n for n in result.structure if n.role is PartRole.TEXT_BODY)
        assert text_node.part_id == "1.1"
        assert text_node.strategy is ParseStrategy.PRIMARY

    def test_all_parts_unreadable_triggers_fallback(self):
        raw = make_multipart([b"no header separator in this part"])
        result = parse_message(raw)
        assert result.text_body == "no header separator in this part"
        codes = [e.code for e in result.errors]
        assert codes == [ErrorCode.E_MIME_PART_UNREADABLE, ErrorCode.W_MIME_FALLBACK_USED]

    def test_boundary_absent_everywhere(self):
        raw = make_part(
            list(BASE_HEADERS) + ['Content-Type: multipart/mixed; boundary="nowhere"'],
            "plain text without any delimiter",
        )
        result = parse_message(raw)
        assert result.text_body == ""
        codes = [e.code for e in result.errors]
        assert codes == [ErrorCode.W_MIME_FALLBACK_USED, ErrorCode.E_MIME_MULTIPART_MALFORMED]

    def test_fallback_part_limit(self):
        raw = _indented_delimiters([text_part("x")] * 150)
        result = parse_message(raw, DecodeOptions(max_parts=100))
        assert len(result.structure) == 1 + 100
        assert ErrorCode.W_MIME_PART_LIMIT_REACHED in [e.code for e in result.errors]

    def test_primary_success_never_falls_back(self):
        raw = make_multipart([text_part("fine")])
        result = parse_message(raw)
        assert result.strategy is ParseStrategy.PRIMARY
        assert result.errors == []
