"""
Analytics Engine for Visit Tracker
Aggregates stored visits into per-page and site-wide statistics.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from .config import DEFAULT_TOP_DOMAINS
from .database import FilterPredicates, VisitStorage
from .db_utils import parse_timestamp
from .models import AnalyticsFilter, DateRange, PageAnalytics, TotalStatistics

log = logging.getLogger("VisitTracker.Analytics")


def row_to_page_analytics(row: Dict[str, Any]) -> PageAnalytics:
    return PageAnalytics(
        url=row['page_url'],
        domain=row['page_domain'],
        path=row['page_path'],
        unique_visits=int(row['unique_visits']),
        total_visits=int(row['total_visits']),
        first_visit=parse_timestamp(row.get('first_visit')),
        last_visit=parse_timestamp(row.get('last_visit')),
    )


class AnalyticsAggregator:
    """
    Read-only view over the visits table.

    Pages are identified by the (domain, path) pair stored at ingestion time;
    URLs are never re-parsed here. Every call reads fresh data and any
    StorageError from the storage client is left to propagate.
    """

    def __init__(self, storage: VisitStorage):
        self.storage = storage

    def query(self, analytics_filter: AnalyticsFilter, offset: int = 0,
              limit: Optional[int] = None) -> List[PageAnalytics]:
        """
        Per-page analytics, busiest page first.

        Args:
            analytics_filter: Date range and domain restrictions
            offset: Number of leading pages to skip
            limit: Maximum number of pages to return (None for all)

        Returns:
            PageAnalytics ordered by total visits, then unique visits, descending
        """
        predicates = FilterPredicates.from_filter(analytics_filter)
        rows = self.storage.query_aggregated_visits(predicates, offset=offset, limit=limit)
        log.debug(f"Aggregated {len(rows)} page(s) (offset={offset}, limit={limit})")
        return [row_to_page_analytics(row) for row in rows]

    def query_page(self, analytics_filter: AnalyticsFilter, offset: int,
                   limit: int) -> Tuple[int, List[PageAnalytics]]:
        """Total page count and one slice of query() results, taken from the same snapshot."""
        predicates = FilterPredicates.from_filter(analytics_filter)
        total, rows = self.storage.query_aggregated_page(predicates, offset, limit)
        log.debug(f"Aggregated {len(rows)} of {total} page(s) (offset={offset}, limit={limit})")
        return total, [row_to_page_analytics(row) for row in rows]

    def count_pages(self, analytics_filter: AnalyticsFilter) -> int:
        """Number of distinct (domain, path) pages with at least one matching visit."""
        return self.storage.count_distinct_pages(FilterPredicates.from_filter(analytics_filter))

    def top_domains(self, analytics_filter: Optional[AnalyticsFilter] = None,
                    limit: int = DEFAULT_TOP_DOMAINS) -> List[str]:
        if limit < 1:
            return []
        rows = self.storage.query_top_domains(FilterPredicates.from_filter(analytics_filter), limit)
        return [row['page_domain'] for row in rows]

    def total_statistics(self, analytics_filter: Optional[AnalyticsFilter] = None) -> TotalStatistics:
        totals = self.storage.query_totals(FilterPredicates.from_filter(analytics_filter))
        return TotalStatistics(
            unique_visits=totals['unique_visits'],
            total_visits=totals['total_visits'],
            pages=totals['pages'],
        )

    def page_analytics_by_url(self, url: str, date_range: Optional[DateRange] = None) -> Optional[PageAnalytics]:
        """Analytics for visits recorded with exactly this URL, or None if it was never visited."""
        predicates = FilterPredicates.from_filter(AnalyticsFilter(date_range=date_range))
        row = self.storage.query_page_by_url(url, predicates)
        return row_to_page_analytics(row) if row else None
