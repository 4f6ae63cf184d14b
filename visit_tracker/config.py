import datetime
import os
from dataclasses import dataclass
from typing import Mapping, Optional

# --- Configuration ---
# The database file path.
# This is a relative path by default, so it will be created in the current
# working directory. It can be overridden with the VISIT_TRACKER_DB_PATH
# environment variable or the --db command-line flag.
DATABASE_FILE = 'visits.db'

SERVER_HOST = "0.0.0.0"
SERVER_PORT = 8888

# --- Database Concurrency Configuration ---
DB_THREAD_POOL_SIZE = 10  # Workers running blocking SQLite calls off the event loop
DB_CONNECTION_TIMEOUT = 30.0  # Busy timeout for database operations (seconds)

# --- Ingestion ---
MAX_URL_LENGTH = 2048
DEFAULT_CLIENT_IP = "0.0.0.0"  # Recorded when no proxy header or peer address is usable

# --- Analytics ---
DEFAULT_PAGE = 1
DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100
DEFAULT_TOP_DOMAINS = 10
# Bounds used when only one side of a date filter is supplied
OPEN_RANGE_START = datetime.datetime(2020, 1, 1, 0, 0, 0)
OPEN_RANGE_END = datetime.datetime(2099, 12, 31, 23, 59, 59)

# Storage and wire format for timestamps (UTC, second precision)
TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'

# --- HTTP ---
CORS_MAX_AGE_SECONDS = 86400
SERVICE_NAME = "visit-tracker"
SERVICE_VERSION = "1.0.0"


@dataclass(frozen=True)
class TrackerConfig:
    """Runtime settings, built once at startup and handed to the components that need them."""
    database_path: str = DATABASE_FILE
    server_host: str = SERVER_HOST
    server_port: int = SERVER_PORT
    db_connection_timeout: float = DB_CONNECTION_TIMEOUT
    db_thread_pool_size: int = DB_THREAD_POOL_SIZE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TrackerConfig":
        """
        Build a config from environment-style variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Returns:
            TrackerConfig with every unset or empty variable left at its default.

        Raises:
            ValueError: If a numeric variable cannot be parsed.
        """
        if environ is None:
            environ = os.environ

        def _get(name: str) -> Optional[str]:
            value = environ.get(name)
            if value is None or not value.strip():
                return None
            return value.strip()

        kwargs = {}
        if _get('VISIT_TRACKER_DB_PATH'):
            kwargs['database_path'] = _get('VISIT_TRACKER_DB_PATH')
        if _get('VISIT_TRACKER_HOST'):
            kwargs['server_host'] = _get('VISIT_TRACKER_HOST')
        if _get('VISIT_TRACKER_PORT'):
            kwargs['server_port'] = int(_get('VISIT_TRACKER_PORT'))
        if _get('VISIT_TRACKER_DB_TIMEOUT'):
            kwargs['db_connection_timeout'] = float(_get('VISIT_TRACKER_DB_TIMEOUT'))
        if _get('VISIT_TRACKER_DB_THREADS'):
            kwargs['db_thread_pool_size'] = int(_get('VISIT_TRACKER_DB_THREADS'))

        config = cls(**kwargs)
        if not 1 <= config.server_port <= 65535:
            raise ValueError(f"Invalid server port: {config.server_port}")
        if config.db_thread_pool_size < 1:
            raise ValueError(f"Database thread pool size must be at least 1, got {config.db_thread_pool_size}")
        return config
