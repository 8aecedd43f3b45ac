"""Unit tests for correlation ID resolution."""

import pytest

from iac_index.middleware.correlation import (
    GENERATED_ID_LENGTH,
    new_correlation_id,
    resolve_correlation_id,
)


class TestResolveCorrelationId:
    """Tests for accepting or replacing caller-supplied IDs."""

    @pytest.mark.parametrize("value", ["trace-abc", "build.42", "ci:run/7_a", "x" * 64])
    def test_well_formed_ids_are_kept(self, value):
        assert resolve_correlation_id(value) == value

    def test_surrounding_whitespace_is_stripped(self):
        assert resolve_correlation_id("  trace-abc  ") == "trace-abc"

    @pytest.mark.parametrize("value", ["", "   ", "x" * 65, "has space", "line\nbreak", "quote\"d"])
    def test_malformed_ids_are_replaced(self, value):
        resolved = resolve_correlation_id(value)
        assert resolved != value.strip()
        assert len(resolved) == GENERATED_ID_LENGTH

    def test_missing_header_generates(self):
        assert len(resolve_correlation_id(None)) == GENERATED_ID_LENGTH

    def test_generated_ids_differ(self):
        assert new_correlation_id() != new_correlation_id()
