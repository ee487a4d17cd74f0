"""
HTTP API over :class:`ChangelogService` (aiohttp.web).

Routes::

    GET  /api/data                       all stored records
    GET  /api/scrape?source=<id>|all     refresh one source or all of them
    POST /api/scrape  {"sources": [...]} refresh a list of sources
    GET  /api/sources                    registered sources
    GET  /api/runs                       rolling run log
    GET  /health

Every JSON body carries ``success`` and ``timestamp``; failures add ``error``.
"""

import json
import logging
from typing import Optional

from aiohttp import web

from .errors import UnknownSourceError
from .models import ApiResponse
from .service import ChangelogService

logger = logging.getLogger(__name__)

SERVICE_KEY = web.AppKey("service", ChangelogService)

_TRUTHY = {"1", "true", "yes", "on"}


def _reply(response: ApiResponse, status: Optional[int] = None) -> web.Response:
    if status is None:
        status = 200 if response.success else 500
    return web.json_response(response.to_json_dict(), status=status)


def _force(request: web.Request) -> bool:
    return request.query.get("force", "").lower() in _TRUTHY


async def handle_data(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    try:
        records = await service.read_all()
    except Exception as e:
        logger.error(f"Reading stored records failed: {e}")
        return _reply(ApiResponse(success=False, error=str(e)))
    return _reply(
        ApiResponse(
            success=True,
            data=[r.to_json_dict() for r in records],
            from_cache=True,
        )
    )


async def handle_scrape_get(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    source = request.query.get("source", "").strip()
    if not source:
        return _reply(ApiResponse(success=False, error="Missing 'source' query parameter"), 400)

    try:
        if source.lower() == "all":
            result = await service.refresh_all(force=_force(request))
        else:
            result = await service.refresh_one(source, force=_force(request))
    except UnknownSourceError as e:
        return _reply(ApiResponse(success=False, error=str(e)), 404)
    except Exception as e:
        logger.error(f"Scrape request for {source} failed: {e}")
        return _reply(ApiResponse(success=False, error=str(e)))
    return _reply(result)


async def handle_scrape_post(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    try:
        body = await request.json()
    except json.JSONDecodeError:
        return _reply(ApiResponse(success=False, error="Request body must be JSON"), 400)

    sources = body.get("sources") if isinstance(body, dict) else None
    if not isinstance(sources, list) or not all(isinstance(s, str) for s in sources):
        return _reply(ApiResponse(success=False, error="'sources' must be a list of source ids"), 400)

    try:
        result = await service.refresh_many(sources, force=bool(body.get("force", False)))
    except UnknownSourceError as e:
        return _reply(ApiResponse(success=False, error=str(e)), 404)
    except Exception as e:
        logger.error(f"Scrape request for {sources} failed: {e}")
        return _reply(ApiResponse(success=False, error=str(e)))
    return _reply(result)


async def handle_sources(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    return _reply(ApiResponse(success=True, data=service.list_sources()))


async def handle_runs(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    try:
        runs = await service.list_runs()
    except Exception as e:
        logger.error(f"Reading run log failed: {e}")
        return _reply(ApiResponse(success=False, error=str(e)))
    return _reply(ApiResponse(success=True, data=[r.to_json_dict() for r in runs]))


async def handle_health(request: web.Request) -> web.Response:
    return web.json_response({"status": "healthy"})


def create_app(service: ChangelogService) -> web.Application:
    app = web.Application()
    app[SERVICE_KEY] = service
    app.router.add_get("/api/data", handle_data)
    app.router.add_get("/api/scrape", handle_scrape_get)
    app.router.add_post("/api/scrape", handle_scrape_post)
    app.router.add_get("/api/sources", handle_sources)
    app.router.add_get("/api/runs", handle_runs)
    app.router.add_get("/health", handle_health)
    return app


class ApiServer:
    """Runs the app on the current event loop next to the scheduler."""

    def __init__(self, service: ChangelogService, host: str = "0.0.0.0", port: int = 8080):
        self._service = service
        self._host = host
        self._port = port
        self._runner: Optional[web.AppRunner] = None

    async def start(self) -> None:
        if self._runner:
            return
        self._runner = web.AppRunner(create_app(self._service))
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        logger.info(f"API listening on http://{self._host}:{self._port}")

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("API stopped")
