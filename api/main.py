import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded

from common.core.config import settings
from common.core.exceptions import (
    AppException,
    ExternalServiceError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from api.v1.routes.router import api_router
from common.db.session import init_db
from common.providers.rate_limiter.limiter import limiter

# Initialize Axiom OpenTelemetry exporter (must be first)
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.asgi import OpenTelemetryMiddleware
from common.core.otel_axiom_exporter import (
    _initialize_telemetry,
    get_logger,
)  # noqa


_initialize_telemetry()
# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = get_logger(__name__)

# Most specific first; anything else is a 500
_APP_EXCEPTION_STATUS = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ExternalServiceError, status.HTTP_502_BAD_GATEWAY),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for exc_type, code in _APP_EXCEPTION_STATUS:
        if isinstance(exc, exc_type):
            status_code = code
            break
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.url.path}: {exc}",
        extra={"path": request.url.path, "status_code": status_code},
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Starting {settings.app_name} billing service...")
    await init_db()
    logger.info(
        "Database initialized",
        extra={
            "grace_days": settings.usage_grace_days,
            "environment": settings.environment.value,
        },
    )
    yield
    # Shutdown
    logger.info("Shutting down application...")


# Only expose OpenAPI docs in local development
expose_docs = settings.environment.exposes_docs

app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs" if expose_docs else None,
    redoc_url="/redoc" if expose_docs else None,
    openapi_url="/openapi.json" if expose_docs else None,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(AppException, app_exception_handler)
app.add_middleware(SlowAPIMiddleware)


# Instrument FastAPI with OpenTelemetry
FastAPIInstrumentor.instrument_app(app)
# Add ASGI middleware for context propagation
app.add_middleware(OpenTelemetryMiddleware)

# Add gzip compression middleware
app.add_middleware(GZipMiddleware, minimum_size=1000)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Webhooks verify their own signatures; cron routes require the cron secret
app.include_router(api_router, prefix="/api/v1")


# Probe endpoint outside /api/v1 so the gateway's webhook traffic and probes stay apart
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"status": "ok"}
