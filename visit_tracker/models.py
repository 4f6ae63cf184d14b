import calendar
import datetime
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from .config import TIMESTAMP_FORMAT


@dataclass(frozen=True)
class Visit:
    """One recorded page view. Never mutated once stored."""
    ip_address: str
    url: str
    domain: str
    path: str
    created_at: datetime.datetime


@dataclass(frozen=True)
class DateRange:
    """Inclusive [start_date, end_date] window on a visit's creation time."""
    start_date: datetime.datetime
    end_date: datetime.datetime

    def __post_init__(self):
        if self.start_date > self.end_date:
            raise ValueError("Start date must be before or equal to end date")

    @classmethod
    def last_days(cls, days: int, today: Optional[datetime.date] = None) -> "DateRange":
        """The last `days` calendar days, today included."""
        if days < 1:
            raise ValueError("Days must be at least 1")
        today = today or datetime.date.today()
        end = datetime.datetime.combine(today, datetime.time(23, 59, 59))
        start = datetime.datetime.combine(today - datetime.timedelta(days=days - 1), datetime.time.min)
        return cls(start, end)

    @classmethod
    def current_month(cls, today: Optional[datetime.date] = None) -> "DateRange":
        today = today or datetime.date.today()
        last_day = calendar.monthrange(today.year, today.month)[1]
        start = datetime.datetime(today.year, today.month, 1)
        end = datetime.datetime(today.year, today.month, last_day, 23, 59, 59)
        return cls(start, end)

    def contains(self, moment: datetime.datetime) -> bool:
        return self.start_date <= moment <= self.end_date

    @property
    def duration_in_days(self) -> int:
        return (self.end_date.date() - self.start_date.date()).days + 1


@dataclass(frozen=True)
class AnalyticsFilter:
    """Optional date-range and exact-domain predicates, combined with AND."""
    date_range: Optional[DateRange] = None
    domain: Optional[str] = None

    def __post_init__(self):
        # Blank domains mean "no domain filter"
        if self.domain is not None and not self.domain.strip():
            object.__setattr__(self, 'domain', None)

    @classmethod
    def all(cls) -> "AnalyticsFilter":
        return cls()

    def has_date_filter(self) -> bool:
        return self.date_range is not None

    def has_domain_filter(self) -> bool:
        return self.domain is not None

    def has_any_filter(self) -> bool:
        return self.has_date_filter() or self.has_domain_filter()

    def with_date_range(self, date_range: DateRange) -> "AnalyticsFilter":
        return replace(self, date_range=date_range)

    def with_domain(self, domain: str) -> "AnalyticsFilter":
        return replace(self, domain=domain)

    def without_date_range(self) -> "AnalyticsFilter":
        return replace(self, date_range=None)

    def without_domain(self) -> "AnalyticsFilter":
        return replace(self, domain=None)


@dataclass(frozen=True)
class PageAnalytics:
    """Visit counts for one (domain, path) page within a filter scope."""
    url: str
    domain: str
    path: str
    unique_visits: int
    total_visits: int
    first_visit: Optional[datetime.datetime] = None
    last_visit: Optional[datetime.datetime] = None

    def __post_init__(self):
        if self.unique_visits < 0 or self.total_visits < 0:
            raise ValueError("Visit counts cannot be negative")
        if self.unique_visits > self.total_visits:
            raise ValueError("Unique visits cannot exceed total visits")
        if self.first_visit and self.last_visit and self.first_visit > self.last_visit:
            raise ValueError("First visit cannot be after last visit")

    @property
    def unique_ratio(self) -> float:
        if self.total_visits == 0:
            return 0.0
        return self.unique_visits / self.total_visits

    def to_dict(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'domain': self.domain,
            'path': self.path,
            'unique_visits': self.unique_visits,
            'total_visits': self.total_visits,
            'first_visit': self.first_visit.strftime(TIMESTAMP_FORMAT) if self.first_visit else None,
            'last_visit': self.last_visit.strftime(TIMESTAMP_FORMAT) if self.last_visit else None,
        }


@dataclass(frozen=True)
class TotalStatistics:
    unique_visits: int = 0
    total_visits: int = 0
    pages: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {'unique_visits': self.unique_visits, 'total_visits': self.total_visits, 'pages': self.pages}


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'page': self.page,
            'limit': self.limit,
            'total': self.total,
            'total_pages': self.total_pages,
            'has_next_page': self.has_next_page,
            'has_previous_page': self.has_previous_page,
        }
