"""
FastAPI main application for the APSIM builds registry.

Provides REST API endpoints for registering builds, allocating revisions and
listing releases of APSIM Next Generation and APSIM Classic.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from apsim_builds.config import get_settings
from apsim_builds.database import get_db, init_db
from apsim_builds.errors import BuildsError

# Configure logging from settings
settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper()),
    format=settings.LOG_FORMAT,
    handlers=[
        logging.StreamHandler(),  # Console output
    ]
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting APSIM Builds API")
    settings = get_settings()
    logger.info(f"Database: {settings.DATABASE_URL}")
    logger.info(f"Installers: {settings.INSTALLERS_PATH}, documentation: {settings.DOCUMENTATION_PATH}")
    if not settings.HMAC_SECRET_KEY:
        logger.warning("HMAC_SECRET_KEY not set: webhook signatures will not be verified")

    # Create tables if they don't exist (for development)
    # In production, use Alembic migrations instead
    init_db()

    yield

    # Shutdown
    logger.info("Shutting down APSIM Builds API")


# Create FastAPI application
app = FastAPI(
    title="APSIM Builds API",
    description="""
    Registry of APSIM builds and releases.

    ## Authentication

    Endpoints which write to the registries require an API key when `API_KEY`
    is set. Provide the key in the `X-API-Key` request header.

    Webhook endpoints verify github's `X-Hub-Signature-256` header when
    `HMAC_SECRET_KEY` is set.
    """,
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure rate limiting
if settings.RATE_LIMIT_ENABLED:
    # Create limiter with default limits
    rate_limit_string = f"{settings.RATE_LIMIT_PER_MINUTE}/minute"
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[rate_limit_string]
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    logger.info(f"Rate limiting enabled: {rate_limit_string}")
else:
    # Create limiter without limits (disabled)
    limiter = Limiter(key_func=get_remote_address, enabled=False)
    app.state.limiter = limiter
    logger.info("Rate limiting disabled")

# Configure CORS with specific allowed origins
allowed_origins = settings.ALLOWED_ORIGINS.split(",") if settings.ALLOWED_ORIGINS else []
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,  # Specific origins only
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],  # Specific methods
    allow_headers=["Content-Type", "Authorization", "X-API-Key"],  # Specific headers
)

# Add SlowAPI middleware for rate limiting
if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(SlowAPIMiddleware)


# Global exception handlers
@app.exception_handler(BuildsError)
async def builds_error_handler(request: Request, exc: BuildsError):
    """Report registry and resolver failures with their taxonomy kind."""
    if exc.status_code >= 500:
        logger.error(f"{exc.kind}: {exc.detail}")
    else:
        logger.warning(f"{exc.kind}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.kind,
            "detail": exc.detail
        }
    )


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle SQLAlchemy database errors."""
    logger.error(f"Database error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Database error",
            "detail": "An error occurred while accessing the database"
        }
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions (often from invalid input)."""
    logger.warning(f"Value error: {exc}")
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid input",
            "detail": str(exc)
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred"
        }
    )


# Health check endpoints
@app.get("/health", tags=["System"])
async def health_check():
    """
    Basic health check endpoint - returns minimal status.
    """
    return {
        "status": "healthy",
        "version": API_VERSION
    }


@app.get("/health/ready", tags=["System"])
def readiness_check(db: Session = Depends(get_db)):
    """
    Readiness check endpoint.

    Returns 200 if the database is reachable, 503 if not.
    """
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ready"}
    except SQLAlchemyError as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "reason": "database unavailable"}
        )


# Import and register routers
from apsim_builds.routers import nextgen, oldapsim

app.include_router(nextgen.router, prefix="/api/nextgen", tags=["Next Gen"])
app.include_router(oldapsim.router, prefix="/api/oldapsim", tags=["APSIM Classic"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "apsim_builds.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
