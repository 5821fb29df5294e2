"""
FastAPI application for the PLAYScanner availability service.

``create_app`` wires the service container into ``app.state`` through
the lifespan; tests pass their own settings or container.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from playscanner.config import VERSION, Settings
from playscanner.errors import PlayScannerError
from playscanner.rate_limit import limiter
from playscanner.routers import admin, collect, health, search, test
from playscanner.services.container import Services, build_services

logger = logging.getLogger(__name__)


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    if settings is None:
        settings = services.settings if services is not None else Settings.from_env()
    _configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        svc = services if services is not None else build_services(settings)
        missing = settings.missing_configuration()
        if missing:
            logger.warning("Missing configuration: %s", ", ".join(missing))
        await svc.start()
        app.state.services = svc
        try:
            yield
        finally:
            await svc.stop()

    app = FastAPI(
        title="PLAYScanner API",
        description="Court availability cache and search across booking providers",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.limiter = limiter

    # ── Error handlers ────────────────────────────────────────────────

    @app.exception_handler(PlayScannerError)
    async def playscanner_error_handler(request: Request, exc: PlayScannerError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: [%s] %s", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body") or "request"
        return JSONResponse(
            {"error": f"Invalid {where}: {first.get('msg', 'invalid value')}", "code": "VALIDATION_ERROR"},
            status_code=400,
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        return JSONResponse(
            {"error": f"Rate limit exceeded: {exc.detail}", "code": "RATE_LIMITED"},
            status_code=429,
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        body = {"error": "Internal server error", "code": "INTERNAL_ERROR"}
        if settings.debug and not settings.is_production:
            body["message"] = str(exc)
        return JSONResponse(body, status_code=500)

    # ── Routers ───────────────────────────────────────────────────────

    for module in (search, collect, health, admin, test):
        app.include_router(module.router)

    return app


app = create_app()
