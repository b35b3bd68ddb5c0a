"""Tests for ingestkit_mime.headers."""

from __future__ import annotations

import pytest

from ingestkit_mime.errors import ContentTypeParseError
from ingestkit_mime.headers import (
    MalformedHeaderError,
    header_dict,
    header_value,
    parse_disposition,
    parse_headers,
    parse_media_type,
    split_header_block,
)


class TestSplitHeaderBlock:
    def test_crlf(self):
        assert split_header_block(b"A: 1\r\nB: 2\r\n\r\nbody\r\n") == (b"A: 1\r\nB: 2", b"body\r\n")

    def test_lf(self):
        assert split_header_block(b"A: 1\n\nbody") == (b"A: 1", b"body")

    def test_earliest_separator_wins(self):
        raw = b"A: 1\n\nbody with\r\n\r\nmore"
        assert split_header_block(raw) == (b"A: 1", b"body with\r\n\r\nmore")

    def test_leading_blank_line_means_no_headers(self):
        assert split_header_block(b"\r\nbody") == (b"", b"body")
        assert split_header_block(b"\nbody") == (b"", b"body")

    def test_no_separator(self):
        assert split_header_block(b"A: 1\r\nB: 2") == (b"A: 1\r\nB: 2", b"")


class TestParseHeaders:
    def test_basic(self):
        headers = parse_headers(b"Content-Type: text/plain\r\nX-Test: yes")
        assert header_value(headers, "content-type") == "text/plain"
        assert header_value(headers, "X-TEST") == "yes"

    def test_folded_value_unfolded(self):
        headers = parse_headers(b"Subject: first\r\n second\r\n\tthird")
        assert header_value(headers, "Subject") == "first second third"

    def test_missing_header_is_empty(self):
        assert header_value(parse_headers(b"A: 1"), "B") == ""

    def test_lenient_drops_garbage_lines(self):
        headers = parse_headers(b"A: 1\r\nthis is not a header\r\n continuation\r\nB: 2")
        assert header_value(headers, "A") == "1"
        assert header_value(headers, "B") == "2"
        assert len(headers.keys()) == 2

    def test_strict_rejects_garbage_line(self):
        with pytest.raises(MalformedHeaderError) as exc_info:
            parse_headers(b"A: 1\r\nnot a header", strict=True)
        assert exc_info.value.line_number == 2

    def test_strict_rejects_leading_continuation(self):
        with pytest.raises(MalformedHeaderError):
            parse_headers(b" orphan\r\nA: 1", strict=True)

    def test_empty_block(self):
        assert parse_headers(b"").keys() == []

    def test_non_ascii_value(self):
        headers = parse_headers("Subject: Grüße".encode())
        assert header_value(headers, "Subject") == "Grüße"

    def test_header_dict_first_occurrence(self):
        headers = parse_headers(b"Received: a\r\nreceived: b\r\nSubject: s")
        assert header_dict(headers) == {"Received": "a", "Subject": "s"}


class TestParseMediaType:
    def test_simple(self):
        assert parse_media_type("text/plain") == ("text/plain", {})

    def test_lowercased_with_params(self):
        media, params = parse_media_type('Multipart/Mixed; Boundary="abc 123"; charset=UTF-8')
        assert media == "multipart/mixed"
        assert params == {"boundary": "abc 123", "charset": "UTF-8"}

    def test_rfc2231_name(self):
        media, params = parse_media_type(
            "application/pdf; name*=utf-8''r%C3%A9sum%C3%A9.pdf"
        )
        assert media == "application/pdf"
        assert params["name"] == "résumé.pdf"

    @pytest.mark.parametrize("value", ["", "text", "/plain", "text/", "text plain", "text/pla in; x=1"])
    def test_invalid(self, value: str):
        with pytest.raises(ContentTypeParseError):
            parse_media_type(value)


class TestParseDisposition:
    def test_empty(self):
        assert parse_disposition("") == ("", {})

    def test_attachment_with_filename(self):
        assert parse_disposition('Attachment; filename="a b.pdf"') == (
            "attachment",
            {"filename": "a b.pdf"},
        )

    def test_inline(self):
        assert parse_disposition("inline")[0] == "inline"
