import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sportsfeed.api.v1.router import api_router
from sportsfeed.config import settings
from sportsfeed.errors import CircuitOpenError, PersistenceError, UpstreamTerminalError, UpstreamTransientError
from sportsfeed.services.aggregator import SportsDataService, build_service

logger = logging.getLogger(__name__)


async def circuit_open_handler(request: Request, exc: CircuitOpenError) -> JSONResponse:
    headers = {}
    if exc.retry_after_seconds is not None:
        headers["Retry-After"] = str(max(int(exc.retry_after_seconds), 1))
    return JSONResponse(
        status_code=503,
        content={"detail": "service degraded, try again shortly", "upstream": exc.upstream},
        headers=headers,
    )


async def upstream_transient_handler(request: Request, exc: UpstreamTransientError) -> JSONResponse:
    logger.warning("upstream unavailable: path=%s upstream=%s error=%s", request.url.path, exc.upstream, exc.message)
    return JSONResponse(status_code=502, content={"detail": exc.message, "upstream": exc.upstream})


async def upstream_terminal_handler(request: Request, exc: UpstreamTerminalError) -> JSONResponse:
    status_code = 404 if exc.status_code == 404 else 400
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "upstream": exc.upstream})


async def persistence_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error("storage unavailable: path=%s error=%s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "storage unavailable, try again shortly"})


def create_app(service: SportsDataService | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.service = service or build_service()
        await app.state.service.startup()
        try:
            yield
        finally:
            await app.state.service.shutdown()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_exception_handler(CircuitOpenError, circuit_open_handler)
    app.add_exception_handler(UpstreamTransientError, upstream_transient_handler)
    app.add_exception_handler(UpstreamTerminalError, upstream_terminal_handler)
    app.add_exception_handler(PersistenceError, persistence_handler)
    app.include_router(api_router, prefix="/api/v1")
    return app


app = create_app()
