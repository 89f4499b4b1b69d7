"""
Tests for utility functions.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from storebroker.exceptions import ValidationError
from storebroker.utils import (
    load_submission_data,
    normalize_publish_date,
    truncate_string,
    validate_flight_id,
    validate_product_id,
    validate_submission_id,
)


class TestValidation:
    """Identifier validation."""

    def test_product_id(self):
        assert validate_product_id(" 9nblggh4r315 ") == "9NBLGGH4R315"

    @pytest.mark.parametrize("value", ["", "9NBLGGH4R31", "9NBLGGH4R31-"])
    def test_invalid_product_id(self, value):
        with pytest.raises(ValidationError):
            validate_product_id(value)

    def test_flight_id(self):
        assert (
            validate_flight_id("1A2B3C4D-0000-1111-2222-333344445555")
            == "1a2b3c4d-0000-1111-2222-333344445555"
        )
        with pytest.raises(ValidationError, match="GUID"):
            validate_flight_id("beta")

    def test_submission_id(self):
        assert validate_submission_id(" 1152921504621243600 ") == "1152921504621243600"
        with pytest.raises(ValidationError):
            validate_submission_id("abc")


class TestPublishDates:
    """normalize_publish_date."""

    def test_zulu_string(self):
        assert normalize_publish_date("2026-12-31T10:00:00Z") == datetime(
            2026, 12, 31, 10, 0, tzinfo=timezone.utc
        )

    def test_offset_converted_to_utc(self):
        result = normalize_publish_date("2026-12-31T10:00:00+02:00")
        assert result == datetime(2026, 12, 31, 8, 0, tzinfo=timezone.utc)
        assert result.utcoffset() == timedelta(0)

    def test_seven_digit_fraction(self):
        assert normalize_publish_date("2026-12-31T10:00:00.1234567Z") == datetime(
            2026, 12, 31, 10, 0, 0, 123456, tzinfo=timezone.utc
        )
        assert normalize_publish_date("2026-12-31T10:00:00.0000000Z") == datetime(
            2026, 12, 31, 10, 0, tzinfo=timezone.utc
        )

    def test_short_fraction(self):
        assert normalize_publish_date("2026-12-31T10:00:00.5+00:00") == datetime(
            2026, 12, 31, 10, 0, 0, 500000, tzinfo=timezone.utc
        )

    def test_naive_and_date(self):
        assert normalize_publish_date(datetime(2026, 1, 1)).tzinfo is not None
        assert normalize_publish_date(date(2026, 1, 1)) == datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_invalid(self):
        with pytest.raises(ValidationError):
            normalize_publish_date("next tuesday")
        with pytest.raises(ValidationError):
            normalize_publish_date(12)


class TestLoadSubmissionData:
    def test_reads_bom_file(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_bytes('{"appId": "9NBLGGH4R315"}'.encode("utf-8-sig"))

        assert load_submission_data(path) == {"appId": "9NBLGGH4R315"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationError, match="not found"):
            load_submission_data(tmp_path / "nope.json")

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text("[1, 2]")

        with pytest.raises(ValidationError, match="JSON object"):
            load_submission_data(path)


def test_truncate_string():
    assert truncate_string("short", 10) == "short"
    assert truncate_string("a" * 20, 10) == "aaaaaaa..."
