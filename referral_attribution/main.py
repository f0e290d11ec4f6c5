from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from referral_attribution.api.middleware import (
    correlation_id_middleware,
    unhandled_exception_handler,
)
from referral_attribution.api.routes.health import router as health_router
from referral_attribution.api.routes.referrals import router as referrals_router
from referral_attribution.core.attribution_tokens import AttributionTokenCodec
from referral_attribution.core.config import Settings, get_settings
from referral_attribution.core.logging import configure_logging
from referral_attribution.referrals.service import ReferralService
from referral_attribution.referrals.short_links import MockShortLinkProvider
from referral_attribution.store.base import ReferralStore
from referral_attribution.store.factory import build_store
from referral_attribution.store.sql import SqlReferralStore

logger = structlog.get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    store: ReferralStore | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    store = store if store is not None else build_store(settings)
    service = ReferralService(
        store,
        short_links=MockShortLinkProvider(settings.short_link_base_url),
        codec=AttributionTokenCodec(settings.attribution_token_secret),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if isinstance(store, SqlReferralStore) and settings.database_auto_create:
            await store.create_schema()
        logger.info("referral_api_started", store=type(store).__name__, env=settings.app_env)
        yield
        if isinstance(store, SqlReferralStore):
            await store.dispose()

    app = FastAPI(
        title="Referral Attribution API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.referral_service = service
    app.middleware("http")(correlation_id_middleware)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.include_router(health_router)
    app.include_router(referrals_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "referral_attribution.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
