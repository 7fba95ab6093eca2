#main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.automation.amount import build_amount_policy
from app.automation.engine import AutomationEngine
from app.automation.repository import AutomationLogStore
from app.automation.scheduler import build_scheduler
from app.providers.base import PayoutProvider
from app.providers.factory import get_payout_provider
from app.providers.nhonga import NhongaClient
from app.webhooks.ingest import WebhookIngestor
from db import close_pool, db_enabled, get_conn
from middleware import RequestContextMiddleware
from rate_limit import RateLimitMiddleware
from routes.automation import router as automation_router
from routes.health import router as health_router
from routes.metrics import router as metrics_router
from routes.webhooks import router as webhooks_router
from settings import settings, validate_env_settings

logger = logging.getLogger("umapesa")


def _configure_logging() -> None:
    logging.basicConfig(
        level=(settings.LOG_LEVEL or "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_engine(
    provider: Optional[PayoutProvider] = None,
    *,
    inbound_client: Any = None,
    **engine_kwargs: Any,
) -> AutomationEngine:
    if provider is None:
        provider = get_payout_provider(settings.PAYOUT_PROVIDER)
        if provider is None:
            raise RuntimeError(f"Unsupported PAYOUT_PROVIDER={settings.PAYOUT_PROVIDER!r}")

    if inbound_client is None and settings.NHONGA_API_KEY.strip():
        inbound_client = NhongaClient()

    return AutomationEngine(
        provider,
        build_amount_policy(settings),
        currency=settings.TRANSFER_CURRENCY,
        max_attempts=settings.MAX_RETRY_ATTEMPTS,
        retry_delay_ms=settings.RETRY_DELAY_MS,
        inbound_client=inbound_client,
        **engine_kwargs,
    )


def create_app(
    *,
    engine: Optional[AutomationEngine] = None,
    log_store: Optional[AutomationLogStore] = None,
    start_scheduler: Optional[bool] = None,
) -> FastAPI:
    _configure_logging()
    validate_env_settings()

    engine = engine or build_engine()
    if log_store is None:
        log_store = AutomationLogStore(get_conn if db_enabled() else None)
    if start_scheduler is None:
        start_scheduler = settings.SCHEDULER_ENABLED
    tasks = build_scheduler(engine, settings) if start_scheduler else []

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Relay starting env=%s payout_provider=%s max_retry_attempts=%s retry_delay_ms=%s log_store=%s",
            settings.ENV,
            engine.provider.name,
            engine.max_attempts,
            settings.RETRY_DELAY_MS,
            "enabled" if log_store.enabled else "disabled",
        )
        for task in tasks:
            task.start()
        try:
            yield
        finally:
            for task in tasks:
                task.stop()
            close_pool()
            logger.info("Relay shutdown complete")

    app = FastAPI(title="UmaPesa Relay", version="1.0.0", lifespan=lifespan)
    app.state.engine = engine
    app.state.ingestor = WebhookIngestor(
        source_currency=settings.SOURCE_CURRENCY,
        target_currency=settings.TRANSFER_CURRENCY,
    )
    app.state.log_store = log_store
    app.state.tasks = tasks

    # -----------------------------
    # MIDDLEWARE (last added runs first)
    # -----------------------------
    if settings.RATE_LIMIT_ENABLED:
        app.add_middleware(RateLimitMiddleware, limit=settings.API_RATE_LIMIT)
    app.add_middleware(RequestContextMiddleware)

    # -----------------------------
    # ROUTERS
    # -----------------------------
    app.include_router(health_router)
    app.include_router(webhooks_router)
    app.include_router(automation_router)
    app.include_router(metrics_router)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled server error method=%s path=%s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error"},
        )

    return app


app = create_app()


def _resolve_port() -> int:
    return int(settings.PORT)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=_resolve_port())
