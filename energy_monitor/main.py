"""
FastAPI application entry point for the energy monitor.

Builds the app, registers the routers and error handlers, and owns the
process-scoped resources through the lifespan:

Startup:
1. Configure structured JSON logging.
2. Open the reading store and create the schema.
3. Build the Tuya cloud client.
4. Start the collector ticker (unless ``COLLECTOR_ENABLED`` is false).

Shutdown:
1. Stop the ticker and wait for in-flight ticks.
2. Close the HTTP client.
3. Dispose of the database engine.

Every error body has the shape ``{"error": message}``.

CHANGELOG:
- 2026-10-05: Initial creation (STORY-006)
- 2026-10-08: Register status router and CORS middleware (STORY-008, STORY-012)
- 2026-10-09: Register control router (STORY-010)
- 2026-10-10: Uniform {"error": ...} bodies for validation and HTTP errors

TODO:
- None
"""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from energy_monitor.api.control import router as control_router
from energy_monitor.api.readings import router as readings_router
from energy_monitor.api.status import router as status_router
from energy_monitor.api.usage import router as usage_router
from energy_monitor.config import get_settings
from energy_monitor.db.store import ReadingStore
from energy_monitor.device.tuya_client import TuyaCloudClient
from energy_monitor.errors import DeviceApiError, StoreError, ValidationError
from energy_monitor.logging_config import setup_logging
from energy_monitor.services.collector import Collector, Ticker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the store, start the collector, and tear both down on exit."""
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    store = ReadingStore(settings.DATABASE_URL)
    await store.init()

    client = TuyaCloudClient(
        access_id=settings.TUYA_ACCESS_ID,
        access_key=settings.TUYA_ACCESS_KEY,
        device_id=settings.TUYA_DEVICE_ID,
        region=settings.TUYA_REGION,
        timeout=settings.DEVICE_API_TIMEOUT_S,
    )
    app.state.store = store
    app.state.device_client = client

    ticker: Ticker | None = None
    if settings.COLLECTOR_ENABLED:
        collector = Collector(store, client)
        ticker = Ticker(settings.COLLECT_INTERVAL_S, collector.tick)
        ticker.start()
    else:
        logger.info("Collector disabled by configuration")

    logger.info(
        "Energy monitor starting -- collect every %.3fs, unit price %.4f/kWh",
        settings.COLLECT_INTERVAL_S,
        settings.UNIT_PRICE_PER_KWH,
    )
    try:
        yield
    finally:
        if ticker is not None:
            await ticker.stop()
        await client.aclose()
        await store.close()
        logger.info("Energy monitor shut down cleanly")


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------


async def _validation_error_handler(_request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc)})


async def _request_validation_handler(
    _request: Request, exc: RequestValidationError,
) -> JSONResponse:
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{location}: {err.get('msg')}" if location else err.get("msg"))
    return JSONResponse(
        status_code=400,
        content={"error": "; ".join(messages) or "Invalid request"},
    )


async def _http_exception_handler(
    _request: Request, exc: StarletteHTTPException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def _service_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.error("Request failed: %s", exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


def create_app() -> FastAPI:
    """Build the FastAPI application.

    Returns:
        FastAPI: App with routers, CORS and error handlers registered.
    """
    app = FastAPI(
        title="Energy Monitor API",
        description="Smart-plug energy telemetry, usage and cost API.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_settings().cors_origin_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationError, _validation_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(StoreError, _service_error_handler)
    app.add_exception_handler(DeviceApiError, _service_error_handler)

    app.include_router(readings_router)
    app.include_router(usage_router)
    app.include_router(status_router)
    app.include_router(control_router)
    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    settings = get_settings()
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_config=None)


if __name__ == "__main__":
    run()
