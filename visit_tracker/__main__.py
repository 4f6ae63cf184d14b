import argparse
import dataclasses
import json
import logging
import os
import sys

# This boilerplate allows the script to be run directly (e.g., `uv run visit_tracker`)
# by adding the project root to the Python path so the absolute imports below resolve.
if __package__ is None or __package__ == '':
    script_dir = os.path.dirname(os.path.abspath(__file__))
    project_root = os.path.dirname(script_dir)
    sys.path.insert(0, project_root)

from visit_tracker import server
from visit_tracker.analytics_engine import AnalyticsAggregator
from visit_tracker.config import DEFAULT_PAGE, DEFAULT_PAGE_LIMIT, DEFAULT_TOP_DOMAINS, TrackerConfig
from visit_tracker.database import StorageError, VisitStorage
from visit_tracker.filters import build_filter, describe_filter
from visit_tracker.pagination import paginate

# --- Centralized Logging Configuration ---
log = logging.getLogger("VisitTracker")


def build_report(storage: VisitStorage, start_date=None, end_date=None, domain=None,
                 page: int = DEFAULT_PAGE, limit: int = DEFAULT_PAGE_LIMIT,
                 top: int = DEFAULT_TOP_DOMAINS) -> dict:
    """
    One page of per-page analytics plus site-wide totals, as a JSON-ready dict.

    Raises:
        ValueError: If page or limit is out of range
        StorageError: If the database cannot be read
    """
    analytics_filter = build_filter(start_date, end_date, domain)
    aggregator = AnalyticsAggregator(storage)

    paginated = paginate(aggregator.query(analytics_filter), page, limit)
    if not paginated.ok:
        raise ValueError(paginated.error)

    start, end, domain_filter = describe_filter(analytics_filter)
    return {
        "filter": {"start_date": start, "end_date": end, "domain": domain_filter},
        "totals": aggregator.total_statistics(analytics_filter).to_dict(),
        "top_domains": aggregator.top_domains(analytics_filter, top),
        "data": [page_analytics.to_dict() for page_analytics in paginated.value.items],
        "pagination": paginated.value.pagination.to_dict(),
    }


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Visit Tracker - page view collection and analytics service",
        epilog="""
Examples:
  # Run the collection and analytics API
  %(prog)s --db /var/lib/visit_tracker/visits.db --port 8888

  # Create the database schema and exit
  %(prog)s --init-db

  # Print the busiest pages of a domain for January
  %(prog)s --report --domain example.com --start-date 2024-01-01 --end-date 2024-01-31
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument('--init-db', action='store_true',
                            help="Create the database schema and exit.")
    mode_group.add_argument('--report', action='store_true',
                            help="REPORT MODE: print one page of analytics as JSON and exit.")

    parser.add_argument('--db', metavar='PATH', help="SQLite database file (overrides VISIT_TRACKER_DB_PATH).")
    parser.add_argument('--host', help="Address to listen on (overrides VISIT_TRACKER_HOST).")
    parser.add_argument('--port', type=int, help="Port to listen on (overrides VISIT_TRACKER_PORT).")

    report_group = parser.add_argument_group('report options')
    report_group.add_argument('--domain', help="Only count visits to this exact domain.")
    report_group.add_argument('--start-date', help="Inclusive start (YYYY-MM-DD or ISO date-time).")
    report_group.add_argument('--end-date', help="Inclusive end (YYYY-MM-DD or ISO date-time).")
    report_group.add_argument('--page', type=int, default=DEFAULT_PAGE)
    report_group.add_argument('--limit', type=int, default=DEFAULT_PAGE_LIMIT)
    report_group.add_argument('--top', type=int, default=DEFAULT_TOP_DOMAINS,
                              help="Number of top domains to include.")

    parser.add_argument('--debug', action='store_true', help="Enable debug logging.")
    return parser.parse_args(argv)


def load_config(args) -> TrackerConfig:
    config = TrackerConfig.from_env()
    overrides = {}
    if args.db:
        overrides['database_path'] = args.db
    if args.host:
        overrides['server_host'] = args.host
    if args.port:
        overrides['server_port'] = args.port
    return dataclasses.replace(config, **overrides)


def main(argv=None):
    args = parse_args(argv)

    log_level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(level=log_level, format='%(asctime)s [%(levelname)s] [%(name)s] %(message)s',
                        datefmt='%Y-%m-%d %H:%M:%S')

    try:
        config = load_config(args)
    except ValueError as e:
        log.critical(f"Invalid configuration: {e}")
        sys.exit(1)

    storage = VisitStorage(config.database_path, timeout=config.db_connection_timeout)
    try:
        storage.init_db()
    except StorageError as e:
        log.critical(f"Could not initialize database: {e}")
        sys.exit(1)

    if args.init_db:
        log.info("Database initialized. Exiting.")
        sys.exit(0)

    if args.report:
        try:
            report = build_report(storage, args.start_date, args.end_date, args.domain,
                                  page=args.page, limit=args.limit, top=args.top)
        except ValueError as e:
            log.critical(f"Invalid report options: {e}")
            sys.exit(1)
        except StorageError as e:
            log.critical(f"Could not read analytics: {e}")
            sys.exit(1)
        print(json.dumps(report, indent=2))
        sys.exit(0)

    server.run_server(config, storage)


if __name__ == "__main__":
    main()
