import datetime
import logging
import sqlite3
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .config import DB_CONNECTION_TIMEOUT
from .db_utils import format_timestamp, get_optimized_connection
from .models import AnalyticsFilter

log = logging.getLogger("VisitTracker.Database")


class StorageError(Exception):
    """Raised when the underlying SQLite database cannot complete an operation."""


@dataclass(frozen=True)
class FilterPredicates:
    """SQL translation of an AnalyticsFilter: a WHERE clause and its bound parameters."""
    conditions: tuple = ()
    params: tuple = ()

    @classmethod
    def from_filter(cls, analytics_filter: Optional[AnalyticsFilter]) -> "FilterPredicates":
        if analytics_filter is None:
            return cls()

        conditions = []
        params = []
        if analytics_filter.has_date_filter():
            conditions.append("created_at >= ?")
            conditions.append("created_at <= ?")
            params.append(format_timestamp(analytics_filter.date_range.start_date))
            params.append(format_timestamp(analytics_filter.date_range.end_date))
        if analytics_filter.has_domain_filter():
            conditions.append("page_domain = ?")
            params.append(analytics_filter.domain)
        return cls(tuple(conditions), tuple(params))

    def and_where(self, condition: str, *params: Any) -> "FilterPredicates":
        return FilterPredicates(self.conditions + (condition,), self.params + params)

    @property
    def where_clause(self) -> str:
        if not self.conditions:
            return ""
        return " WHERE " + " AND ".join(self.conditions)


PAGE_AGGREGATE_COLUMNS = """
    MIN(page_url) AS page_url,
    page_domain,
    page_path,
    COUNT(DISTINCT ip_address) AS unique_visits,
    COUNT(*) AS total_visits,
    MIN(created_at) AS first_visit,
    MAX(created_at) AS last_visit
"""


class VisitStorage:
    """
    SQLite-backed storage for the append-only `visits` table.

    Every operation opens its own connection, so one instance can be shared by
    all worker threads of the database executor.
    """

    def __init__(self, db_path: str, timeout: float = DB_CONNECTION_TIMEOUT):
        self.db_path = db_path
        self.timeout = timeout

    def _connect(self) -> sqlite3.Connection:
        try:
            return get_optimized_connection(self.db_path, timeout=self.timeout)
        except sqlite3.Error as e:
            raise StorageError(f"Could not open database '{self.db_path}': {e}") from e

    def _fetch_all(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        conn = self._connect()
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Query failed: {e}") from e
        finally:
            conn.close()

    def _fetch_one(self, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        rows = self._fetch_all(sql, params)
        return rows[0] if rows else None

    def init_db(self):
        log.info(f"Connecting to database '{self.db_path}' and checking schema...")
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute('PRAGMA journal_mode;')
            mode = cursor.fetchone()
            if mode and mode[0].lower() == 'wal':
                log.info("Database journal mode is set to WAL.")
            else:
                log.warning(f"Database journal mode is not WAL. Current mode: {mode[0] if mode else 'unknown'}")

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS visits (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    ip_address TEXT NOT NULL,
                    page_url TEXT NOT NULL,
                    page_domain TEXT NOT NULL,
                    page_path TEXT NOT NULL,
                    created_at DATETIME NOT NULL
                )
            ''')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_visits_created_at ON visits (created_at);')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_visits_page ON visits (page_domain, page_path);')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_visits_domain_time ON visits (page_domain, created_at);')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_visits_url ON visits (page_url);')
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Schema initialization failed: {e}") from e
        finally:
            conn.close()
        log.info("Database schema is ready.")

    def append_visit(self, ip_address: str, url: str, domain: str, path: str,
                     created_at: datetime.datetime):
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    'INSERT INTO visits (ip_address, page_url, page_domain, page_path, created_at) '
                    'VALUES (?, ?, ?, ?, ?)',
                    (ip_address, url, domain, path, format_timestamp(created_at))
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to insert visit: {e}") from e
        finally:
            conn.close()
        log.debug(f"Stored visit {domain}{path} from {ip_address}")

    @staticmethod
    def _aggregate_sql(predicates: FilterPredicates, offset: int = 0,
                       limit: Optional[int] = None) -> Tuple[str, tuple]:
        sql = (f"SELECT {PAGE_AGGREGATE_COLUMNS} FROM visits{predicates.where_clause} "
               "GROUP BY page_domain, page_path "
               "ORDER BY total_visits DESC, unique_visits DESC, page_domain ASC, page_path ASC")
        params = predicates.params
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params = params + (limit, offset)
        elif offset:
            sql += " LIMIT -1 OFFSET ?"
            params = params + (offset,)
        return sql, params

    @staticmethod
    def _count_pages_sql(predicates: FilterPredicates) -> str:
        return (f"SELECT COUNT(*) AS total FROM ("
                f"SELECT 1 FROM visits{predicates.where_clause} GROUP BY page_domain, page_path)")

    def query_aggregated_visits(self, predicates: FilterPredicates, offset: int = 0,
                                limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Per-page aggregates ordered by total then unique visits, busiest first.

        Pages that tie on both counts are ordered by domain and path so that
        consecutive pages of results never overlap.

        Args:
            predicates: Filter applied to visit rows before grouping
            offset: Number of leading pages to skip
            limit: Maximum number of pages to return (None for all)

        Returns:
            List of row dicts with page_url, page_domain, page_path,
            unique_visits, total_visits, first_visit, last_visit
        """
        sql, params = self._aggregate_sql(predicates, offset, limit)
        return [dict(row) for row in self._fetch_all(sql, params)]

    def query_aggregated_page(self, predicates: FilterPredicates, offset: int,
                              limit: int) -> Tuple[int, List[Dict[str, Any]]]:
        """
        Count of matching pages and one slice of them, read in a single transaction.

        The slice query is skipped when the offset lies past the last page, so
        offsets too large for an SQLite integer never reach the database.

        Returns:
            (total pages, row dicts as returned by query_aggregated_visits)
        """
        conn = self._connect()
        try:
            conn.execute("BEGIN")
            row = conn.execute(self._count_pages_sql(predicates), predicates.params).fetchone()
            total = int(row['total']) if row else 0
            rows = []
            if offset < total:
                sql, params = self._aggregate_sql(predicates, offset, limit)
                rows = [dict(r) for r in conn.execute(sql, params).fetchall()]
            conn.rollback()
        except sqlite3.Error as e:
            raise StorageError(f"Query failed: {e}") from e
        finally:
            conn.close()
        return total, rows

    def count_distinct_pages(self, predicates: FilterPredicates) -> int:
        row = self._fetch_one(self._count_pages_sql(predicates), predicates.params)
        return int(row['total']) if row else 0

    def query_top_domains(self, predicates: FilterPredicates, limit: int) -> List[Dict[str, Any]]:
        sql = (f"SELECT page_domain, COUNT(*) AS total_visits FROM visits{predicates.where_clause} "
               "GROUP BY page_domain ORDER BY total_visits DESC, page_domain ASC LIMIT ?")
        return [dict(row) for row in self._fetch_all(sql, predicates.params + (limit,))]

    def query_totals(self, predicates: FilterPredicates) -> Dict[str, int]:
        where = predicates.where_clause
        sql = (f"SELECT COUNT(DISTINCT ip_address) AS unique_visits, COUNT(*) AS total_visits, "
               f"(SELECT COUNT(*) FROM (SELECT 1 FROM visits{where} GROUP BY page_domain, page_path)) AS pages "
               f"FROM visits{where}")
        row = self._fetch_one(sql, predicates.params + predicates.params)
        if row is None:
            return {'unique_visits': 0, 'total_visits': 0, 'pages': 0}
        return {key: int(row[key] or 0) for key in ('unique_visits', 'total_visits', 'pages')}

    def query_page_by_url(self, url: str, predicates: FilterPredicates) -> Optional[Dict[str, Any]]:
        scoped = predicates.and_where("page_url = ?", url)
        sql = (f"SELECT {PAGE_AGGREGATE_COLUMNS} FROM visits{scoped.where_clause} "
               "GROUP BY page_domain, page_path ORDER BY total_visits DESC LIMIT 1")
        row = self._fetch_one(sql, scoped.params)
        return dict(row) if row else None

    def count_visits(self) -> int:
        row = self._fetch_one("SELECT COUNT(*) AS total FROM visits")
        return int(row['total']) if row else 0

    def ping(self):
        """Raise StorageError unless the visits table can be read."""
        self._fetch_one("SELECT 1 FROM visits LIMIT 1")
