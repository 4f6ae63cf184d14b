"""
Tests for building AnalyticsFilter values from raw query parameters.
"""

import datetime
import sys

import pytest

from visit_tracker.filters import build_date_range, build_filter, describe_filter, parse_date_bound


def dt(*args):
    return datetime.datetime(*args)


class TestParseDateBound:
    def test_date_only_start_is_midnight(self):
        assert parse_date_bound("2024-01-15") == dt(2024, 1, 15, 0, 0, 0)

    def test_date_only_end_is_end_of_day(self):
        assert parse_date_bound("2024-01-15", end_of_day=True) == dt(2024, 1, 15, 23, 59, 59)

    @pytest.mark.parametrize("value, expected", [
        ("2024-01-15 10:30:00", dt(2024, 1, 15, 10, 30, 0)),
        ("2024-01-15T10:30:00", dt(2024, 1, 15, 10, 30, 0)),
        ("2024-01-15 10:30", dt(2024, 1, 15, 10, 30, 0)),
        ("2024-01-15T10:30:00Z", dt(2024, 1, 15, 10, 30, 0)),
        ("2024-01-15T12:30:00+02:00", dt(2024, 1, 15, 10, 30, 0)),
        ("  2024-01-15  ", dt(2024, 1, 15, 0, 0, 0)),
    ])
    def test_date_times(self, value, expected):
        assert parse_date_bound(value) == expected

    def test_explicit_time_is_not_widened_for_end_bound(self):
        assert parse_date_bound("2024-01-15 08:00:00", end_of_day=True) == dt(2024, 1, 15, 8, 0, 0)

    @pytest.mark.skipif(sys.version_info < (3, 11), reason="compact ISO dates need Python 3.11")
    def test_compact_date_only_end_is_end_of_day(self):
        assert parse_date_bound("20240131", end_of_day=True) == dt(2024, 1, 31, 23, 59, 59)
        assert parse_date_bound("20240131") == dt(2024, 1, 31, 0, 0, 0)

    @pytest.mark.parametrize("value", ["invalid-date", "2024-13-01", "2024-02-30", "yesterday", "15/01/2024"])
    def test_unparseable_values(self, value):
        assert parse_date_bound(value) is None


class TestBuildFilter:
    def test_no_parameters_means_no_filter(self):
        analytics_filter = build_filter()

        assert not analytics_filter.has_any_filter()
        assert analytics_filter.date_range is None
        assert analytics_filter.domain is None

    def test_both_dates(self):
        analytics_filter = build_filter("2024-01-01", "2024-01-31")

        assert analytics_filter.has_date_filter()
        assert analytics_filter.date_range.start_date == dt(2024, 1, 1, 0, 0, 0)
        assert analytics_filter.date_range.end_date == dt(2024, 1, 31, 23, 59, 59)

    def test_same_day_range(self):
        analytics_filter = build_filter("2024-01-15", "2024-01-15")

        assert analytics_filter.date_range.duration_in_days == 1

    def test_start_only_extends_to_far_future(self):
        analytics_filter = build_filter("2024-01-01", None)

        assert analytics_filter.date_range.start_date == dt(2024, 1, 1)
        assert analytics_filter.date_range.end_date == dt(2099, 12, 31, 23, 59, 59)

    def test_end_only_starts_in_2020(self):
        analytics_filter = build_filter(None, "2024-01-31")

        assert analytics_filter.date_range.start_date == dt(2020, 1, 1, 0, 0, 0)
        assert analytics_filter.date_range.end_date == dt(2024, 1, 31, 23, 59, 59)

    def test_blank_bound_counts_as_missing(self):
        analytics_filter = build_filter("2024-01-01", "   ")

        assert analytics_filter.date_range.end_date == dt(2099, 12, 31, 23, 59, 59)

    @pytest.mark.parametrize("start, end", [
        ("invalid-date", "2024-01-31"),
        ("2024-01-01", "invalid-date"),
        ("invalid-date", None),
        (None, "invalid-date"),
        ("2024-02-01", "2024-01-01"),
        (None, "2019-06-01"),
        ("2100-01-01", None),
    ])
    def test_bad_or_inverted_dates_drop_date_filter(self, start, end):
        assert not build_filter(start, end, None).has_date_filter()

    def test_bad_dates_keep_domain_filter(self):
        analytics_filter = build_filter("invalid", "also-invalid", "example.com")

        assert not analytics_filter.has_date_filter()
        assert analytics_filter.domain == "example.com"

    def test_domain_is_trimmed(self):
        assert build_filter(domain="  example.com ").domain == "example.com"

    @pytest.mark.parametrize("domain", ["", "   ", "\t", None])
    def test_blank_domain_means_no_domain_filter(self, domain):
        assert not build_filter(domain=domain).has_domain_filter()

    def test_domain_case_is_preserved(self):
        assert build_filter(domain="Example.COM").domain == "Example.COM"

    def test_combined_filter(self):
        analytics_filter = build_filter("2024-01-01", "2024-01-31", "example.com")

        assert analytics_filter.has_date_filter()
        assert analytics_filter.has_domain_filter()
        assert analytics_filter.has_any_filter()


def test_build_date_range_none_for_missing_bounds():
    assert build_date_range(None, None) is None
    assert build_date_range("", " ") is None


def test_describe_filter():
    assert describe_filter(build_filter()) == (None, None, None)
    assert describe_filter(build_filter("2024-01-01", "2024-01-02", "example.com")) == (
        "2024-01-01 00:00:00", "2024-01-02 23:59:59", "example.com"
    )


def test_early_year_start_bound_still_matches_recent_visits(aggregator, sample_visits):
    analytics_filter = build_filter("0999-01-01", "2030-01-01")

    assert analytics_filter.date_range.start_date == dt(999, 1, 1, 0, 0, 0)
    assert len(aggregator.query(analytics_filter)) == 3
