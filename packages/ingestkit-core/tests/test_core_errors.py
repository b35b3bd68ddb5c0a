"""Tests for ingestkit_core.errors -- shared error codes and base error model."""

from __future__ import annotations

import pytest

from ingestkit_core.errors import BaseIngestError, CoreErrorCode, is_fatal_code


class TestSharedErrorCodes:
    """Verify the shared error codes and their values."""

    def test_parse_empty_exists(self):
        assert CoreErrorCode.E_PARSE_EMPTY.value == "E_PARSE_EMPTY"

    def test_only_codes_in_use(self):
        assert [m.name for m in CoreErrorCode] == ["E_PARSE_EMPTY"]


class TestErrorCodeProperties:
    """Structural properties of the CoreErrorCode enum."""

    def test_all_str_enum(self):
        for member in CoreErrorCode:
            assert isinstance(member, str)
            assert isinstance(member.value, str)

    def test_all_have_prefix(self):
        for member in CoreErrorCode:
            assert member.value.startswith("E_") or member.value.startswith("W_"), (
                f"{member.name} missing E_/W_ prefix"
            )

    def test_value_equals_name(self):
        for member in CoreErrorCode:
            assert member.value == member.name


class TestIsFatalCode:
    @pytest.mark.parametrize("code,expected", [
        (CoreErrorCode.E_PARSE_EMPTY, True),
        ("E_SOMETHING_ELSE", True),
        ("W_SOMETHING_ELSE", False),
        ("", False),
    ])
    def test_prefix_decides(self, code, expected: bool):
        assert is_fatal_code(code) is expected


class TestBaseIngestError:
    """Tests for the base IngestError model (shared fields only)."""

    def test_minimal_construction(self):
        e = BaseIngestError(
            code=CoreErrorCode.E_PARSE_EMPTY,
            message="Message is empty",
        )
        assert e.code == CoreErrorCode.E_PARSE_EMPTY
        assert e.message == "Message is empty"
        assert e.stage is None
        assert e.recoverable is False
        assert e.is_fatal is True

    def test_full_construction(self):
        e = BaseIngestError(
            code="W_MIME_PART_LIMIT_REACHED",
            message="Part limit reached",
            stage="split",
            recoverable=True,
        )
        assert e.stage == "split"
        assert e.recoverable is True
        assert e.is_fatal is False

    def test_serialization_round_trip(self):
        e = BaseIngestError(
            code="E_MIME_DEPTH_EXCEEDED",
            message="Nesting too deep",
            stage="walk",
        )
        e2 = BaseIngestError.model_validate(e.model_dump())
        assert e2 == e

    def test_unicode_message(self):
        e = BaseIngestError(
            code=CoreErrorCode.E_PARSE_EMPTY,
            message="Nachricht ist beschädigt",
        )
        assert "beschädigt" in e.message
