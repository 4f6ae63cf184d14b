import datetime
import logging
from typing import Callable, Optional

from .database import StorageError, VisitStorage
from .db_utils import utc_now
from .ip_extractor import is_valid_ip
from .models import Visit
from .results import ErrorKind, Result
from .url_parser import parse_url

log = logging.getLogger("VisitTracker.Recorder")


class VisitRecorder:
    """Validates a page view and appends it to storage as a single row."""

    def __init__(self, storage: VisitStorage, clock: Optional[Callable[[], datetime.datetime]] = None):
        self.storage = storage
        self.clock = clock or utc_now

    def record(self, ip_address: str, page_url: str) -> Result[Visit]:
        """
        Record one visit.

        Validation happens before storage is touched, so a failed result never
        leaves a partial row behind. Storage failures are not retried.

        Args:
            ip_address: Visitor address, already extracted from the request
            page_url: Full URL of the visited page

        Returns:
            Result holding the stored Visit, an INVALID_ARGUMENT failure for bad
            input, or an INTERNAL failure when the insert did not succeed
        """
        if not is_valid_ip(ip_address):
            log.debug(f"Rejected visit with invalid IP address: {ip_address!r}")
            return Result.failure(f"Invalid IP address: {ip_address}")

        parsed = parse_url(page_url)
        if not parsed.ok:
            log.debug(f"Rejected visit: {parsed.error}")
            return Result.failure(parsed.error, parsed.kind)

        url, domain, path = parsed.value
        visit = Visit(
            ip_address=ip_address,
            url=url,
            domain=domain,
            path=path,
            created_at=self.clock(),
        )

        try:
            self.storage.append_visit(visit.ip_address, visit.url, visit.domain, visit.path, visit.created_at)
        except StorageError as e:
            log.error(f"Failed to store visit to {visit.url}:", exc_info=True)
            return Result.failure(str(e), ErrorKind.INTERNAL)

        return Result.success(visit)
