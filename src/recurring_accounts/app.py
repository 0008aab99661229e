"""
FastAPI application exposing the recurring accounts job over HTTP.

POST /generate-recurring-accounts - run one projection pass
GET  /health                      - liveness check
"""

import time
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from recurring_accounts.clients.backing_store import BackingStore, RestStoreClient
from recurring_accounts.config import Settings, configure_logging, get_settings
from recurring_accounts.projector import (
    ProjectionOptions,
    RecurrenceProjector,
    failure_response,
)

log = structlog.get_logger(__name__)


def create_app(settings: Settings | None = None, store: BackingStore | None = None) -> FastAPI:
    """Build the application.

    ``settings`` and ``store`` are resolved at startup when not given; a
    store created here is closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.projector = None
        app.state.startup_error = None
        owned_store: RestStoreClient | None = None
        try:
            resolved = settings or get_settings()
        except ValidationError as e:
            # Requests answer with the failure body until settings are fixed
            configure_logging()
            log.error("settings_invalid", error=str(e))
            app.state.startup_error = e
            yield
            return

        configure_logging(resolved.log_level, resolved.log_format)
        backing = store
        if backing is None:
            owned_store = RestStoreClient.from_settings(resolved)
            backing = owned_store
        app.state.projector = RecurrenceProjector(
            backing, ProjectionOptions.from_settings(resolved)
        )
        log.info("application_starting", store_url=resolved.supabase_url)

        yield

        if owned_store is not None:
            await owned_store.close()
        log.info("application_stopped")

    app = FastAPI(
        title="Recurring Accounts",
        description="Generates upcoming payables and receivables from recurring templates",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.api_route("/generate-recurring-accounts", methods=["GET", "POST"])
    async def generate_recurring_accounts(request: Request):
        started = time.monotonic()
        projector: RecurrenceProjector | None = request.app.state.projector
        try:
            if projector is None:
                raise RuntimeError(
                    f"Service not configured: {request.app.state.startup_error}"
                )
            summary = await projector.run_projection()
        except Exception as e:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            log.error("projection_failed", error=str(e), execution_time_ms=elapsed_ms)
            return JSONResponse(status_code=500, content=failure_response(e, elapsed_ms))

        return JSONResponse(status_code=200, content=summary.to_response())

    return app


app = create_app()

# Run with: uvicorn recurring_accounts.app:app --host 0.0.0.0 --port 8000
