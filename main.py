# main.py
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from openai import AsyncOpenAI

from config.logging_config import configure_logging
from config.settings import InsightSettings
from middleware.request_logging import RequestLoggingMiddleware
from routers.insight_routes import router as insight_router
from services.ai.llm_service import build_openai_client
from services.finnhub.client import build_http_client
from services.insight.errors import ConfigurationError, InsightError
from services.insight.insight_service import InsightService, build_insight_service

logger = logging.getLogger(__name__)


def create_app(
    *,
    settings: Optional[InsightSettings] = None,
    service: Optional[InsightService] = None,
    http: Optional[httpx.AsyncClient] = None,
    openai_client: Optional[AsyncOpenAI] = None,
) -> FastAPI:
    """
    Build the app. Clients are created once per process in the lifespan and
    injected into the service; tests pass their own service or clients.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if service is not None:
            app.state.insight_service = service
            yield
            return

        cfg = settings or InsightSettings.from_env()
        own_http = http is None
        client = http or build_http_client(cfg.finnhub_timeout_s)
        own_openai = openai_client is None and bool(cfg.openai_api_key.strip())
        llm = openai_client
        if own_openai:
            llm = build_openai_client(cfg.openai_api_key, timeout_s=cfg.openai_timeout_s)

        app.state.insight_service = None
        try:
            app.state.insight_service = build_insight_service(cfg, http=client, openai_client=llm)
            logger.info("insight_service_ready model=%s", cfg.openai_model)
        except ConfigurationError as e:
            # keep serving so every request gets a descriptive 500
            logger.error("insight_service_unconfigured error=%s", e)
            app.state.insight_error = e

        try:
            yield
        finally:
            if own_http:
                await client.aclose()
            if own_openai and llm is not None:
                await llm.close()

    app = FastAPI(title="Stock Insight", lifespan=lifespan)

    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(InsightError)
    async def insight_error_handler(request: Request, exc: InsightError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    app.include_router(insight_router, prefix="/api/insight")
    return app


configure_logging()
app = create_app()
