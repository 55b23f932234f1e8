"""
Unit tests for record kinds, validation and timestamp helpers.

Tests cover:
- Required fields per docType
- Field suggestions for typos
- JSON argument parsing
- created_at / expires_at renderings
"""

from datetime import datetime, timezone

import pytest

from chaincode.asset_registry.contract.clock import (
    FixedClock,
    SystemClock,
    format_created_at,
    format_epoch,
    parse_created_at,
)
from chaincode.asset_registry.contract.records import (
    LIST_FIELDS,
    PROFILE_FIELDS,
    SEARCH_FIELDS,
    DocType,
    ensure_valid,
    parse_json,
    parse_json_object,
    validate_record,
)
from chaincode.asset_registry.errors import ValidationError


class TestValidateRecord:
    """Tests for validate_record()."""

    def test_minimal_asset_is_valid(self):
        """An asset only needs an id."""
        valid, errors = validate_record({"id": "p1"}, DocType.ASSET)

        assert valid
        assert errors == []

    def test_extra_fields_allowed(self):
        """Records are open-ended."""
        valid, _ = validate_record({"id": "p1", "anything": {"x": 1}}, DocType.ASSET)

        assert valid

    def test_missing_id(self):
        """A record without id is invalid."""
        valid, errors = validate_record({"first_name": "Ann"}, DocType.ASSET)

        assert not valid
        assert "Field 'id' is required" in errors[0]

    def test_non_string_id(self):
        """Ids must be strings."""
        valid, errors = validate_record({"id": 7}, DocType.ASSET)

        assert not valid
        assert errors == ["Field 'id' must be a string"]

    def test_wrong_doc_type(self):
        """A record of another kind is rejected."""
        valid, errors = validate_record({"id": "g1", "docType": "asset"}, DocType.PAYMENT_DETAILS)

        assert not valid
        assert any("docType" in e for e in errors)

    def test_grant_fields_with_suggestion(self):
        """A likely typo gets a suggestion."""
        valid, errors = validate_record(
            {"id": "g1", "payer_id": "c1", "resume_id": "p1"}, DocType.PAYMENT_DETAILS
        )

        assert not valid
        assert "Did you mean: ['payer_id']" in errors[0]

    def test_ensure_valid_raises_with_errors(self):
        """ensure_valid() raises ValidationError carrying each problem."""
        with pytest.raises(ValidationError) as exc_info:
            ensure_valid({}, DocType.PAYMENT_DETAILS)

        assert len(exc_info.value.errors) == 3


class TestProjections:
    """Projection field lists."""

    def test_contact_details_only_in_profile(self):
        """Listings never expose email or phone."""
        for name in ("email", "phone"):
            assert name not in LIST_FIELDS
            assert name not in SEARCH_FIELDS
            assert name in PROFILE_FIELDS

    def test_listing_includes_wallet(self):
        """The wallet token is part of every listing."""
        assert "metaMask_token" in LIST_FIELDS


class TestParseJson:
    """Tests for JSON argument parsing."""

    def test_parses_text(self):
        """JSON text is parsed."""
        assert parse_json('[1, 2]', "assets") == [1, 2]

    def test_passes_through_decoded_values(self):
        """Already decoded values pass through."""
        value = {"id": "a1"}

        assert parse_json(value, "asset") is value

    def test_invalid_json(self):
        """Invalid JSON names the argument."""
        with pytest.raises(ValidationError) as exc_info:
            parse_json("{oops", "asset")

        assert exc_info.value.field_name == "asset"

    def test_object_required(self):
        """parse_json_object() rejects non-objects."""
        with pytest.raises(ValidationError):
            parse_json_object("[1]", "asset")


class TestTimestamps:
    """Tests for the clock and timestamp renderings."""

    def test_created_at_format(self):
        """created_at is DD/MM/YYYY HH:mm:ss."""
        moment = datetime(2024, 3, 5, 7, 8, 9, tzinfo=timezone.utc)

        assert format_created_at(moment) == "05/03/2024 07:08:09"

    def test_created_at_round_trip(self):
        """parse_created_at() inverts format_created_at()."""
        moment = datetime(2024, 12, 31, 23, 59, 59, tzinfo=timezone.utc)

        assert parse_created_at(format_created_at(moment)) == moment

    def test_epoch_whole_seconds(self):
        """expires_at renderings drop sub-second precision."""
        moment = datetime(2024, 3, 1, 12, 0, 0, 900000, tzinfo=timezone.utc)

        assert format_epoch(moment) == "1709294400"

    def test_fixed_clock_advance(self):
        """FixedClock moves only when told to."""
        clock = FixedClock(datetime(2024, 3, 1, 12, 0, 0))

        assert clock.now().tzinfo is timezone.utc
        clock.advance(minutes=10)

        assert format_created_at(clock.now()) == "01/03/2024 12:10:00"

    def test_system_clock_is_aware(self):
        """SystemClock returns timezone-aware UTC times."""
        assert SystemClock().now().tzinfo is timezone.utc


class TestDocTypePresence:
    """An explicit null docType is not a valid discriminant."""

    def test_null_doc_type_rejected(self):
        """docType: null fails validation."""
        valid, errors = validate_record({"id": "p1", "docType": None}, DocType.ASSET)

        assert not valid
        assert any("docType" in e for e in errors)
