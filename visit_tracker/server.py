import asyncio
import concurrent.futures
import functools
import json
import logging
import os
import time
from typing import Optional

from aiohttp import web

from .analytics_engine import AnalyticsAggregator
from .config import (CORS_MAX_AGE_SECONDS, DEFAULT_PAGE, DEFAULT_PAGE_LIMIT, DEFAULT_TOP_DOMAINS,
                     MAX_PAGE_LIMIT, SERVICE_NAME, SERVICE_VERSION, TrackerConfig)
from .database import StorageError, VisitStorage
from .filters import build_filter, describe_filter
from .ip_extractor import extract_client_ip
from .pagination import build_pagination, validate_page_request
from .results import Result
from .visit_recorder import VisitRecorder

log = logging.getLogger("VisitTracker.Server")

TRACK_PATH = "/api/v1/track"
ANALYTICS_PATH = "/api/v1/analytics"
SUMMARY_PATH = "/api/v1/analytics/summary"
HEALTH_PATH = "/api/v1/health"

ALLOWED_METHODS = {
    TRACK_PATH: "POST, OPTIONS",
    ANALYTICS_PATH: "GET, OPTIONS",
    SUMMARY_PATH: "GET, OPTIONS",
    HEALTH_PATH: "GET, OPTIONS",
}

INTERNAL_ERROR_MESSAGE = "Internal server error"


def _error(message: str, status: int = 400) -> web.Response:
    return web.json_response({"error": message}, status=status)


def _method_not_allowed(path: str) -> web.Response:
    response = _error("Method not allowed", status=405)
    response.headers["Allow"] = ALLOWED_METHODS[path]
    return response


def _result_error(result: Result) -> web.Response:
    """Render a failed Result: validation messages go to the client, internal ones do not."""
    if result.is_invalid_argument:
        return _error(result.error, status=400)
    return _error(INTERNAL_ERROR_MESSAGE, status=500)


def _parse_int(value: Optional[str], default: int) -> int:
    """Integer query parameter; anything non-numeric becomes 0 so range checks reject it."""
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError:
        return 0


async def _run_blocking(request: web.Request, func, *args, **kwargs):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(request.app["db_executor"], functools.partial(func, *args, **kwargs))


@web.middleware
async def cors_middleware(request, handler):
    """Add CORS headers to every API response so the snippet can post from any site."""
    response = await handler(request)

    if request.path in ALLOWED_METHODS:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS[request.path]
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        response.headers["Access-Control-Max-Age"] = str(CORS_MAX_AGE_SECONDS)

    return response


async def handle_track(request):
    if request.method == "OPTIONS":
        return web.Response(status=204)
    if request.method != "POST":
        return _method_not_allowed(TRACK_PATH)

    try:
        data = json.loads(await request.text())
    except ValueError:
        return _error("Invalid JSON")
    if not isinstance(data, dict):
        return _error("Request body must be a JSON object")

    url = data.get("url")
    if url is None or url == "":
        return _error("URL is required")
    if not isinstance(url, str):
        return _error("URL must be a string")

    ip_address = extract_client_ip(request.headers, request.remote)
    result = await _run_blocking(request, request.app["recorder"].record, ip_address, url)
    if not result.ok:
        return _result_error(result)

    return web.Response(status=204)


async def handle_analytics(request):
    if request.method == "OPTIONS":
        return web.Response(status=204)
    if request.method != "GET":
        return _method_not_allowed(ANALYTICS_PATH)

    params = request.query
    page_request = validate_page_request(
        _parse_int(params.get("page"), DEFAULT_PAGE),
        _parse_int(params.get("limit"), DEFAULT_PAGE_LIMIT),
    )
    if not page_request.ok:
        return _result_error(page_request)
    page, limit = page_request.value.page, page_request.value.limit

    analytics_filter = build_filter(params.get("start_date"), params.get("end_date"), params.get("domain"))
    aggregator = request.app["aggregator"]
    try:
        total, pages = await _run_blocking(request, aggregator.query_page, analytics_filter,
                                           page_request.value.offset, limit)
    except StorageError:
        log.error(f"Analytics query failed for filter {describe_filter(analytics_filter)}:", exc_info=True)
        return _error(INTERNAL_ERROR_MESSAGE, status=500)

    return web.json_response({
        "data": [page_analytics.to_dict() for page_analytics in pages],
        "pagination": build_pagination(page, limit, total).to_dict(),
    })


async def handle_summary(request):
    if request.method == "OPTIONS":
        return web.Response(status=204)
    if request.method != "GET":
        return _method_not_allowed(SUMMARY_PATH)

    params = request.query
    top = _parse_int(params.get("top"), DEFAULT_TOP_DOMAINS)
    if top < 1 or top > MAX_PAGE_LIMIT:
        return _error(f"Top must be between 1 and {MAX_PAGE_LIMIT}")

    analytics_filter = build_filter(params.get("start_date"), params.get("end_date"), params.get("domain"))
    aggregator = request.app["aggregator"]
    try:
        totals = await _run_blocking(request, aggregator.total_statistics, analytics_filter)
        domains = await _run_blocking(request, aggregator.top_domains, analytics_filter, top)
    except StorageError:
        log.error(f"Summary query failed for filter {describe_filter(analytics_filter)}:", exc_info=True)
        return _error(INTERNAL_ERROR_MESSAGE, status=500)

    return web.json_response({"totals": totals.to_dict(), "top_domains": domains})


async def handle_health(request):
    if request.method == "OPTIONS":
        return web.Response(status=204)
    if request.method != "GET":
        return _method_not_allowed(HEALTH_PATH)

    try:
        await _run_blocking(request, request.app["storage"].ping)
    except StorageError:
        log.warning("Health check failed: database is not reachable.", exc_info=True)
        return web.json_response({"status": "unhealthy", "service": SERVICE_NAME}, status=503)

    return web.json_response({
        "status": "healthy",
        "timestamp": int(time.time()),
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
    })


async def handle_tracker_script(request):
    """Serve the tracking snippet with the collection endpoint of this server filled in."""
    script_path = os.path.join(os.path.dirname(__file__), "static", "tracker.js")

    with open(script_path, "r") as f:
        content = f.read()

    endpoint = f"{request.scheme}://{request.host}{TRACK_PATH}"
    content = content.replace("__TRACK_ENDPOINT__", endpoint)

    response = web.Response(text=content, content_type="application/javascript")
    response.headers["Cache-Control"] = "public, max-age=3600"
    return response


async def start_db_executor(app):
    app["db_executor"] = concurrent.futures.ThreadPoolExecutor(max_workers=app["config"].db_thread_pool_size)
    log.info(f"Database thread pool initialized with {app['config'].db_thread_pool_size} workers")


async def shutdown_db_executor(app):
    executor = app.get("db_executor")
    if executor:
        executor.shutdown(wait=True)
        log.info("db_executor shut down.")


def create_app(config: TrackerConfig, storage: Optional[VisitStorage] = None) -> web.Application:
    """
    Build the aiohttp application.

    The storage client is created here unless one is passed in; the recorder
    and aggregator share it. The schema is expected to exist already.
    """
    if storage is None:
        storage = VisitStorage(config.database_path, timeout=config.db_connection_timeout)

    app = web.Application(middlewares=[cors_middleware])
    app["config"] = config
    app["storage"] = storage
    app["recorder"] = VisitRecorder(storage)
    app["aggregator"] = AnalyticsAggregator(storage)

    app.on_startup.append(start_db_executor)
    app.on_cleanup.append(shutdown_db_executor)

    app.router.add_route("*", TRACK_PATH, handle_track)
    app.router.add_route("*", ANALYTICS_PATH, handle_analytics)
    app.router.add_route("*", SUMMARY_PATH, handle_summary)
    app.router.add_route("*", HEALTH_PATH, handle_health)
    app.router.add_get("/tracker.js", handle_tracker_script)
    return app


def run_server(config: TrackerConfig, storage: Optional[VisitStorage] = None):
    app = create_app(config, storage)
    log.info(f"Server starting on http://{config.server_host}:{config.server_port}")
    log.info(f"Recording visits to database '{config.database_path}'")
    web.run_app(app, host=config.server_host, port=config.server_port)
