"""FastAPI application factory and startup configuration.

Authentication is applied per router (`dependencies=[RequireApiKey]`) rather
than by a global middleware so that /api/health, /docs and the placeholder
page stay public.

The traffic gate runs as HTTP middleware on every request. A gated request
keeps its visible URL; only the ASGI path is rewritten to the placeholder
route before routing.
"""
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vantera.config import settings
from vantera.core.exceptions import AppException
from vantera.core.gate import GATE_HEADER, HOST_HEADER, classify_request
from vantera.core.logging import get_logger, set_correlation_id, setup_logging
from vantera.database import async_session_factory
from vantera.api.v1.attom import router as attom_router
from vantera.api.v1.realtor import router as realtor_router
from vantera.api.v1.operations import router as operations_router
from vantera.api.v1.site import router as site_router
from vantera.api.deps import RequireApiKey
from vantera.api.responses import error
from vantera.services.import_run_store import build_import_run_store

logger = get_logger(__name__)


def diagnostic_headers(request: Request) -> dict:
    """Gate and trace headers recorded on the request by the middlewares."""
    headers = {}
    decision = getattr(request.state, "gate", None)
    if decision is not None:
        headers[GATE_HEADER] = decision.tag
        headers[HOST_HEADER] = decision.host
    trace_id = getattr(request.state, "trace_id", None)
    if trace_id:
        headers["X-Trace-Id"] = trace_id
    return headers


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown events."""
    setup_logging()
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)

    if not settings.api_key:
        logger.warning("API_KEY not configured: ingestion and operations endpoints will answer 500.")
    if not settings.attom_api_key:
        logger.warning("ATTOM_API_KEY not configured: ATTOM ingestion is disabled.")
    if not settings.apify_token:
        logger.warning("APIFY_TOKEN not configured: Realtor ingestion is disabled.")

    yield

    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Vantera backend — traffic gate, property ingestion and operations API.",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Built here, not in lifespan, so that it exists for ASGI transports that
    # skip lifespan events.
    application.state.import_runs = build_import_run_store(settings.import_run_store, async_session_factory)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.middleware("http")
    async def traffic_gate(request: Request, call_next):
        decision = classify_request(
            request.headers,
            request.url.path,
            dev_hosts=settings.gate_dev_hosts,
            placeholder=settings.coming_soon_path,
        )
        request.state.gate = decision
        if decision.rewritten:
            logger.debug(
                "Serving placeholder for %s", request.url.path, extra={"gate": decision.tag, "host": decision.host}
            )
            request.scope["path"] = decision.rewrite_to
            request.scope["raw_path"] = decision.rewrite_to.encode()
        response = await call_next(request)
        response.headers[GATE_HEADER] = decision.tag
        response.headers[HOST_HEADER] = decision.host
        return response

    @application.middleware("http")
    async def add_trace_id(request: Request, call_next):
        request.state.trace_id = set_correlation_id(str(uuid4()))
        response = await call_next(request)
        response.headers["X-Trace-Id"] = request.state.trace_id
        return response

    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        trace_id = getattr(request.state, "trace_id", None)
        logger.exception("Unhandled exception [trace_id=%s]", trace_id, exc_info=exc)
        # runs outside the http middlewares, so their headers are set here
        response = error("Internal server error", 500, request)
        response.headers.update(diagnostic_headers(request))
        return response

    @application.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        run_id = exc.detail.get("runId") if isinstance(exc.detail, dict) else None
        if exc.status_code >= 500:
            logger.error("%s [trace_id=%s]", exc.message, getattr(request.state, "trace_id", None))
        return error(exc.message, exc.status_code, request, run_id=run_id)

    _auth = [RequireApiKey]

    application.include_router(attom_router, prefix="/api/v1/attom/ingest", tags=["attom"], dependencies=_auth)
    application.include_router(realtor_router, prefix="/api/v1/realtor/ingest", tags=["realtor"], dependencies=_auth)
    application.include_router(operations_router, prefix="/api/v1/ops", tags=["operations"], dependencies=_auth)
    application.include_router(site_router, tags=["site"])

    @application.get("/api/health", tags=["system"])
    async def health_check():
        from sqlalchemy import text

        db_status = "ok"
        try:
            async with async_session_factory() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            db_status = f"error: {str(e)}"

        payload = {
            "ok": db_status == "ok",
            "status": "healthy" if db_status == "ok" else "unhealthy",
            "version": settings.app_version,
            "database": db_status,
            "importRunStore": settings.import_run_store,
        }
        return JSONResponse(status_code=200 if payload["ok"] else 503, content=payload)

    return application


app = create_app()
