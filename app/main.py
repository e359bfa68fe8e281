"""
TableBook - Restaurant Reservations API
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
import structlog

from app.config import settings
from app.core.errors import ReservationError, error_body
from app.api import auth, tenants, reservations, time_slots, tables, waitlist, public

# Configure structured logging
logging.basicConfig(format="%(message)s", stream=sys.stdout, level=settings.log_level.upper())

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        (
            structlog.processors.JSONRenderer()
            if settings.log_format == "json"
            else structlog.dev.ConsoleRenderer()
        ),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting TableBook API", version="1.0.0")
    if not settings.nova_api_base_url:
        logger.warning("NOVA_API_BASE_URL is not set; Nova-backed operations will fail")
    yield
    logger.info("Shutting down TableBook API")


# Create FastAPI application
app = FastAPI(
    title="TableBook",
    description="Multi-tenant restaurant reservations, seating and waitlist API",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ReservationError)
async def reservation_error_handler(request: Request, exc: ReservationError):
    """Domain errors become {"detail", "error", ...extra} with the kind's status"""
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            path=request.url.path,
            error=exc.kind.value,
            detail=exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(error_body(exc)))


# Health check endpoints
@app.get("/health")
async def health():
    """Basic health check"""
    return {"status": "healthy", "service": "api", "version": "1.0.0"}


@app.get("/health/ready")
async def ready():
    """Readiness check with dependency verification"""
    from app.database import SessionLocal

    checks = {}

    # Check database
    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"failed: {str(e)}"

    checks["nova"] = "ok" if settings.nova_api_base_url else "not_configured"

    all_ok = checks["database"] == "ok"

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
    }


# Include API routers
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(tenants.router, prefix="/tenants", tags=["Tenants"])
app.include_router(reservations.router, prefix="/tenants/{tenant_id}/reservations", tags=["Reservations"])
app.include_router(time_slots.router, prefix="/tenants/{tenant_id}/time_slots", tags=["Time Slots"])
app.include_router(tables.router, prefix="/tenants/{tenant_id}/tables", tags=["Tables"])
app.include_router(waitlist.router, prefix="/tenants/{tenant_id}/waitlist", tags=["Waitlist"])

# Guest routes: tenant from host/path hint, or explicitly from the URL
app.include_router(public.router, prefix="/public", tags=["Public"])
app.include_router(public.router, prefix="/public/r/{tenant_ref}", tags=["Public"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
