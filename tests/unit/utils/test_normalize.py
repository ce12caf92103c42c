"""Unit tests for value normalisation and timestamp parsing."""

from datetime import datetime, timezone

import pytest
from src.utils.normalize import (
    clamp01,
    normalise_list,
    normalise_token,
    parse_timestamp,
    to_iso,
)


class TestParseTimestamp:
    def test_zulu_suffix(self):
        assert parse_timestamp("2025-03-01T12:00:00Z") == datetime(
            2025, 3, 1, 12, tzinfo=timezone.utc
        )

    def test_naive_is_utc(self):
        assert parse_timestamp(datetime(2025, 3, 1)).tzinfo == timezone.utc

    def test_offsets_are_converted(self):
        parsed = parse_timestamp("2025-03-01T19:00:00+07:00")
        assert parsed == datetime(2025, 3, 1, 12, tzinfo=timezone.utc)

    def test_database_fractional_seconds(self):
        # Postgres trims trailing zeros from microseconds
        parsed = parse_timestamp("2025-03-01T12:00:00.12+00:00")
        assert parsed == datetime(2025, 3, 1, 12, 0, 0, 120000, tzinfo=timezone.utc)

    def test_epoch_seconds(self):
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "soon", True, {"at": 1}])
    def test_unparseable(self, value):
        assert parse_timestamp(value) is None

    def test_to_iso_round_trips_to_utc(self):
        moment = datetime(2025, 3, 1, 19, tzinfo=timezone.utc)
        assert to_iso(moment) == "2025-03-01T19:00:00+00:00"


def test_normalise_list_drops_blank_and_non_strings():
    assert normalise_list([" Yoga ", "", None, 3, "RUN"]) == ["yoga", "run"]


def test_normalise_token_ignores_non_strings():
    assert normalise_token("  Padel ") == "padel"
    assert normalise_token(7) == ""


@pytest.mark.parametrize("value,expected", [(-0.5, 0.0), (0.4, 0.4), (3, 1.0)])
def test_clamp01(value, expected):
    assert clamp01(value) == expected
