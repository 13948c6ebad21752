# ============================================================
# sppbilling/main.py
#
# The entry point for the entire backend.
# This is where FastAPI is created and configured.
#
# What this file does:
# - Builds the app with its own SchoolStore (create_app)
# - Loads the demo school on startup when SEED_DEMO_DATA is on
# - Adds CORS middleware (allows the React console to call us)
# - Registers all routes under /api/v1
# - Adds a /health endpoint for Docker healthchecks
# - Turns domain errors into clean JSON responses
#
# Run locally:
#   uvicorn sppbilling.main:app --reload   (from backend/)
# ============================================================

from collections import defaultdict, deque
from contextlib import asynccontextmanager
from typing import Optional
import logging
import time

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from sppbilling.api.v1.router import api_router
from sppbilling.core.config import settings
from sppbilling.core.errors import SPPError
from sppbilling.core.store import SchoolStore
from sppbilling.seed import seed_demo_data

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.is_production else logging.DEBUG,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

# passlib logs every backend probe at DEBUG
logging.getLogger("passlib").setLevel(logging.WARNING)


def create_app(store: Optional[SchoolStore] = None, seed: Optional[bool] = None) -> FastAPI:
    """
    Build a console app around `store`. Tests pass their own store
    (and usually seed=False); uvicorn uses the module-level `app`.
    """
    if seed is None:
        seed = settings.SEED_DEMO_DATA

    # ── Startup / Shutdown ───────────────────────────────────
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Runs on startup and shutdown."""
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        logger.info(f"Environment: {settings.ENVIRONMENT} | Timezone: {settings.TIMEZONE}")
        if seed and not app.state.store.all("operators"):
            seed_demo_data(app.state.store)
        yield
        logger.info(f"Shutting down {settings.APP_NAME}")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        description=(
            "SPP Billing Console: academic years, classes, students, fee structures, "
            "payments and collection reports for Indonesian schools."
        ),
        docs_url="/docs" if not settings.is_production else None,   # Hide Swagger in prod
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.store = store if store is not None else SchoolStore()
    app.state.login_ip_attempts = defaultdict(deque)
    app.state.login_username_attempts = defaultdict(deque)

    # ── CORS Middleware ──────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Request timing middleware ────────────────────────────
    @app.middleware("http")
    async def add_request_timing(request: Request, call_next):
        """Logs how long each request takes. Useful for finding slow endpoints."""
        start = time.time()
        response = await call_next(request)
        duration = (time.time() - start) * 1000
        logger.info(f"{request.method} {request.url.path} → {response.status_code} ({duration:.1f}ms)")
        return response

    # ── Global error handlers ────────────────────────────────
    @app.exception_handler(SPPError)
    async def domain_error_handler(request: Request, exc: SPPError):
        """
        ValidationError / InvalidAmount → 422, OverpaymentRejected / Conflict → 409,
        NotFound → 404. The body always names the error kind.
        """
        logger.info(f"{exc.error} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "message": exc.message,
                "error": exc.error,
                "detail": exc.context or None,
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """
        When Pydantic validation fails (e.g. missing required field,
        non-numeric amount), return a clean JSON error.
        """
        errors = []
        for error in exc.errors():
            field = " → ".join(str(e) for e in error["loc"])
            errors.append(f"{field}: {error['msg']}")

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "success": False,
                "message": "Validation error",
                "error": "ValidationError",
                "detail": errors,
            },
        )

    @app.exception_handler(Exception)
    async def global_error_handler(request: Request, exc: Exception):
        """Catch-all for unexpected errors. Never expose stack traces."""
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "message": "An unexpected error occurred. Please try again.",
            },
        )

    # ── Routes ───────────────────────────────────────────────
    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Docker uses this endpoint to know if the container is healthy."""
        store = request.app.state.store
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "billing_records": len(store.all("billings")),
        }

    @app.get("/", tags=["Health"])
    async def root():
        return {
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": "/docs",
        }

    return app


app = create_app()
