"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal.core.config import settings
from portal.core.providers import build_integrations
from portal.core.structured_logging import configure_logging
from portal.db.session import engine

configure_logging()
logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Client data must not reach Sentry
    )
    logger.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from portal.core.rate_limit import limiter


# ============================================================================
# FastAPI App
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """One provider container (HTTP client, token services, health cache) per process."""
    app.state.integrations = build_integrations()
    try:
        yield
    finally:
        await app.state.integrations.aclose()


app = FastAPI(
    title="Portal API",
    description="Law firm case management and client portal API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    expose_headers=["Content-Disposition"],
)


# ============================================================================
# Error Handlers
# ============================================================================

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """``{"message": detail}``; structured details (e.g. 428 TOTP codes) pass through."""
    body = exc.detail if isinstance(exc.detail, dict) else {"message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"message": "Validation failed", "errors": errors})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


# ============================================================================
# Routers
# ============================================================================

from portal.routers import (
    admins,
    auth_admin,
    auth_client,
    client_portal,
    client_settings,
    clients,
    dashboard,
    demandes,
    documents,
    dossiers,
    evenements,
    favoris,
    google,
    integrations,
    jobs,
    microsoft,
    notes,
    notifications,
    parametres,
    responsables,
    search,
    tasks,
)

# Auth (one router per realm)
app.include_router(auth_admin.router, prefix="/api/admin/auth", tags=["auth"])
app.include_router(auth_client.router, prefix="/api/client/auth", tags=["client-auth"])

# Case management
app.include_router(clients.router, prefix="/api/admin/clients", tags=["clients"])
app.include_router(dossiers.router, prefix="/api/admin/dossiers", tags=["dossiers"])
app.include_router(notes.router, prefix="/api/admin", tags=["notes"])  # Mixed paths
app.include_router(tasks.router, prefix="/api/admin", tags=["tasks"])  # Mixed paths
app.include_router(documents.router, prefix="/api/admin", tags=["documents"])  # Mixed paths
app.include_router(evenements.router, prefix="/api/admin/evenements", tags=["evenements"])
app.include_router(demandes.router, prefix="/api/admin/demandes-rdv", tags=["demandes-rdv"])

# Admin workspace
app.include_router(favoris.router, prefix="/api/admin/favoris", tags=["favoris"])
app.include_router(notifications.router, prefix="/api/admin/notifications", tags=["notifications"])
app.include_router(responsables.router, prefix="/api/admin/responsables", tags=["admins"])
app.include_router(admins.router, prefix="/api/admin/admins", tags=["admins"])
app.include_router(dashboard.router, prefix="/api/admin/dashboard", tags=["dashboard"])
app.include_router(search.router, prefix="/api/admin/search", tags=["search"])
app.include_router(parametres.router, prefix="/api/admin/parametres", tags=["parametres"])

# Integrations
app.include_router(integrations.router, prefix="/api/admin/integrations", tags=["integrations"])
app.include_router(google.router, prefix="/api/admin/google", tags=["google"])
app.include_router(microsoft.router, prefix="/api/admin/microsoft", tags=["microsoft"])
app.include_router(jobs.router, prefix="/api/admin/jobs", tags=["jobs"])

# Client portal
app.include_router(client_portal.router, prefix="/api/client", tags=["client-portal"])
app.include_router(client_settings.router, prefix="/api/client/settings", tags=["client-settings"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
