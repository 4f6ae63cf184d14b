"""
Database Utilities

Connection setup and timestamp conversion shared by the SQLite storage client.
"""

import datetime
import logging
import os
import sqlite3
from typing import Optional

from .config import TIMESTAMP_FORMAT

log = logging.getLogger("VisitTracker.DbUtils")


def get_optimized_connection(
    db_path: str, timeout: float = 30.0, read_only: bool = False
) -> sqlite3.Connection:
    """
    Create a SQLite connection tuned for many short concurrent requests.

    Args:
        db_path: Path to database file
        timeout: Busy timeout in seconds
        read_only: Open the file read-only (fails if it does not exist)

    Returns:
        Configured SQLite connection with rows addressable by column name
    """
    if read_only:
        abs_path = os.path.abspath(db_path)
        conn = sqlite3.connect(f"file:{abs_path}?mode=ro", timeout=timeout, uri=True)
    else:
        conn = sqlite3.connect(db_path, timeout=timeout)
    conn.row_factory = sqlite3.Row

    try:
        cursor = conn.cursor()
        if not read_only:
            # WAL lets readers proceed while an insert is being committed (persistent setting)
            cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA synchronous=NORMAL;")
        cursor.execute("PRAGMA temp_store=MEMORY;")
        cursor.execute(f"PRAGMA busy_timeout={int(timeout * 1000)};")
    except sqlite3.Error:
        conn.close()
        raise

    log.debug(f"Opened SQLite connection to '{db_path}' (timeout={timeout}s, read_only={read_only})")
    return conn


def to_utc_naive(moment: datetime.datetime) -> datetime.datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed to be UTC already."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return moment.replace(microsecond=0)


def format_timestamp(moment: datetime.datetime) -> str:
    """Stored text form; the year is always four digits so values compare correctly as strings."""
    return to_utc_naive(moment).isoformat(sep=' ')


def parse_timestamp(value: Optional[str]) -> Optional[datetime.datetime]:
    if value is None:
        return None
    return datetime.datetime.strptime(value, TIMESTAMP_FORMAT)


def utc_now() -> datetime.datetime:
    return to_utc_naive(datetime.datetime.now(datetime.timezone.utc))
