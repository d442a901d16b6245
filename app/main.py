from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.core.database import session_manager
from app.core.exceptions import AssessmentServiceError, BackendError, ReportRenderError
from app.core.limiter import limiter
from app.services.AssessmentStore import AssessmentStore, UnconfiguredAssessmentStore, get_assessment_store

from app.api.v1.endpoints.assessment import router as assessment_router
from app.api.v1.endpoints.download import router as download_router
from app.api.v1.endpoints.emailtracking import router as email_tracking_router
from app.api.v1.endpoints.quota import router as quota_router
from app.api.v1.endpoints.admin import router as admin_router

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import logging
from contextlib import asynccontextmanager
from app.core.config import settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Async context manager for app lifespan events"""

    try:
        logger.info("🚀 Starting CCPM360 assessment service...")

        if settings.DATABASE_URL:
            logger.info("🔌 Initializing database connection pool...")
            await session_manager.init()
            logger.info("✅ Database connection pool ready")
        else:
            logger.warning("⚠️ DATABASE_URL not set, running with the unconfigured assessment store")

        if not settings.MAIL_CONFIGURED:
            logger.warning("⚠️ Microsoft Graph credentials not set, emails will not be sent")

    except Exception as e:
        logger.critical(f"🔥 Application startup failed: {str(e)}")
        raise

    try:
        logger.info("🏁 CCPM360 assessment service startup complete")
        yield
    finally:
        try:
            logger.info("🛑 Beginning application shutdown...")
            logger.info("🔌 Closing database connections...")
            await session_manager.close()
            logger.info("✅ Database connections closed cleanly")
        except Exception as e:
            logger.error(f"⚠️ Error during shutdown: {str(e)}")
            raise
        finally:
            logger.info("👋 Application shutdown complete")


app = FastAPI(
    title="CCPM360 Assessment API",
    description="API for the CCPM360 project management self-assessment",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"Request: {request.method} {request.url.path}")
    response = await call_next(request)
    logger.info(f"Response status: {response.status_code}")
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation Error: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors()},
    )


@app.exception_handler(AssessmentServiceError)
async def assessment_exception_handler(request: Request, exc: AssessmentServiceError):
    if isinstance(exc, (BackendError, ReportRenderError)):
        logger.error(f"❌ {request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
    )


@app.get("/", tags=["Health Check"])
async def health_check(store: AssessmentStore = Depends(get_assessment_store)):
    if isinstance(store, UnconfiguredAssessmentStore):
        return {
            "status": "degraded",
            "service": "CCPM360 Assessment API",
            "database": "unconfigured",
        }
    try:
        await store.ping()
        return {
            "status": "healthy",
            "service": "CCPM360 Assessment API",
            "database": "connected",
        }
    except BackendError as e:
        logger.error(f"Health check failed: {str(e)}")
        return {
            "status": "unhealthy",
            "service": "CCPM360 Assessment API",
            "database": "disconnected",
        }


app.include_router(assessment_router, prefix="/api/v1", tags=["Assessment"])
app.include_router(download_router, prefix="/api/v1", tags=["Download"])
app.include_router(email_tracking_router, prefix="/api/v1", tags=["Email Tracking"])
app.include_router(quota_router, prefix="/api/v1", tags=["Quota"])
app.include_router(admin_router, prefix="/api/v1", tags=["Admin"])

logger.info(f"✅ Loaded {len(app.routes)} routes")
