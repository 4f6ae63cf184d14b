"""
Turns the raw query-string parameters of an analytics request into an
AnalyticsFilter.

Building a filter never fails. Dates that cannot be parsed, or that describe
an inverted range, simply drop the date filter. A lone start or end bound is
widened with OPEN_RANGE_END / OPEN_RANGE_START.
"""

import datetime
import logging
from typing import Optional, Tuple

from .config import OPEN_RANGE_END, OPEN_RANGE_START
from .db_utils import to_utc_naive
from .models import AnalyticsFilter, DateRange

log = logging.getLogger("VisitTracker.Filters")

END_OF_DAY = datetime.time(23, 59, 59)


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def parse_date_bound(value: str, end_of_day: bool = False) -> Optional[datetime.datetime]:
    """
    Parse an ISO-8601 date or date-time.

    A bare date means midnight, or 23:59:59 when `end_of_day` is set so that an
    end bound covers the whole day. Offsets are converted to naive UTC.

    Returns:
        The parsed moment, or None when the value is not a recognizable date
    """
    value = value.strip()
    # date.fromisoformat accepts every date-only form (including compact ones
    # on newer interpreters) and never a time of day
    try:
        day = datetime.date.fromisoformat(value)
    except ValueError:
        day = None
    if day is not None:
        return datetime.datetime.combine(day, END_OF_DAY if end_of_day else datetime.time.min)

    if value.endswith(('Z', 'z')):
        value = value[:-1] + '+00:00'
    try:
        return to_utc_naive(datetime.datetime.fromisoformat(value))
    except ValueError:
        return None


def build_date_range(start_date: Optional[str], end_date: Optional[str]) -> Optional[DateRange]:
    has_start = not _blank(start_date)
    has_end = not _blank(end_date)
    if not has_start and not has_end:
        return None

    start = parse_date_bound(start_date) if has_start else OPEN_RANGE_START
    end = parse_date_bound(end_date, end_of_day=True) if has_end else OPEN_RANGE_END
    if start is None or end is None:
        log.debug(f"Ignoring unparseable date filter: start={start_date!r}, end={end_date!r}")
        return None

    try:
        return DateRange(start, end)
    except ValueError:
        log.debug(f"Ignoring inverted date filter: {start} > {end}")
        return None


def build_filter(start_date: Optional[str] = None, end_date: Optional[str] = None,
                 domain: Optional[str] = None) -> AnalyticsFilter:
    domain = None if _blank(domain) else domain.strip()
    return AnalyticsFilter(date_range=build_date_range(start_date, end_date), domain=domain)


def describe_filter(analytics_filter: AnalyticsFilter) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """(start, end, domain) of a filter as display strings, for logging and the report output."""
    if analytics_filter.has_date_filter():
        start = analytics_filter.date_range.start_date.isoformat(sep=' ')
        end = analytics_filter.date_range.end_date.isoformat(sep=' ')
    else:
        start = end = None
    return start, end, analytics_filter.domain
