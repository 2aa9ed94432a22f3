"""FastAPI application factory for the mobile verification service."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from lmsmobile.api.host import HostLMS
from lmsmobile.api.routes_iap import router as iap_router
from lmsmobile.api.routes_push import router as push_router
from lmsmobile.api.routes_social import router as social_router
from lmsmobile.core.http import build_http_client
from lmsmobile.core.settings import VerificationSettings
from lmsmobile.db.engine import create_schema, dispose_engine, get_session_factory
from lmsmobile.verify.audit import AuditSink, DatabaseAuditSink, VerificationAuditor
from lmsmobile.verify.services import VerificationServices


def create_app(
    settings: VerificationSettings | None = None,
    host: HostLMS | None = None,
    http_client: httpx.AsyncClient | None = None,
    audit_sink: AuditSink | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application."""
    settings = settings or VerificationSettings()
    logging.getLogger("lmsmobile").setLevel(settings.log_level.upper())

    owns_http = http_client is None
    http = http_client or build_http_client(settings)
    if audit_sink is None and settings.audit_persist:
        audit_sink = DatabaseAuditSink(get_session_factory())
    services = VerificationServices.from_settings(
        settings, http, VerificationAuditor(audit_sink)
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if settings.audit_persist:
            await create_schema()
        yield
        if owns_http:
            await http.aclose()
        if settings.audit_persist:
            await dispose_engine()

    app = FastAPI(
        title="LMS Mobile Verification",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services
    app.state.host = host

    app.include_router(social_router)
    app.include_router(iap_router)
    app.include_router(push_router)

    return app
