from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.cors import CORSMiddleware

from app.core.config import app_logger, settings
from app.core.dependencies import get_async_session
from app.core.exceptions.handlers import EXCEPTION_HANDLERS, exception_schema
from app.core.exceptions.types import AppException
from app.core.routers import admin_router, auth_router, sessions_router, user_router
from app.core.services import BrevoService, EmailManagerService, Renderer
from app.infrastructure.scheduler import initialize_scheduler, scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    app_logger.info("Starting application...")

    # Initialize Brevo Service
    app_logger.info("Initializing Brevo service...")
    await BrevoService.init(
        api_key=settings.BREVO_API_KEY,
        sender_email=settings.BREVO_SENDER_EMAIL,
        sender_name=settings.BREVO_SENDER_NAME,
    )
    app_logger.info("Brevo service initialized successfully.")

    # Initialize template renderer and email manager
    app_logger.info("Initializing template renderer...")
    Renderer.initialize()
    EmailManagerService.init()
    app_logger.info("Template renderer initialized successfully.")

    # Start the scheduler (only if enabled)
    if settings.ENABLE_SCHEDULER:
        app_logger.info("Starting scheduler...")
        scheduler.start()
        initialize_scheduler()  # Jobs are added after the scheduler starts
        app_logger.info("Scheduler started successfully.")
    else:
        app_logger.info("Scheduler disabled via ENABLE_SCHEDULER setting.")

    yield

    app_logger.info("Shutting down application...")

    if settings.ENABLE_SCHEDULER and scheduler.running:
        app_logger.info("Stopping scheduler...")
        scheduler.shutdown(wait=True)
        app_logger.info("Scheduler stopped successfully.")

    await BrevoService.aclose()
    app_logger.info("Application shutdown complete.")


app = FastAPI(
    lifespan=lifespan,
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=settings.APP_DESCRIPTION,
    debug=settings.DEBUG,
    openapi_url="/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    responses=exception_schema,
    root_path_in_servers=False,
    servers=[
        {
            "url": f"{settings.API_DOMAIN}",
        },
    ],
)

# Register exception handlers (order matters - more specific first)
for exc_class, handler in EXCEPTION_HANDLERS:
    app.add_exception_handler(exc_class, handler)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router, prefix="/auth", tags=["Authentication"])
app.include_router(sessions_router, prefix="/auth", tags=["Sessions"])
app.include_router(user_router, prefix="/user", tags=["Subscription"])
app.include_router(admin_router, prefix="/admin", tags=["Admin"])


@app.get("/", include_in_schema=False)
async def root(request: Request):
    base_url = str(request.base_url).rstrip("/")
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "documentations": {
            "swagger": f"{base_url}/docs",
            "redoc": f"{base_url}/redoc",
        },
        "version": settings.APP_VERSION,
    }


@app.head("/health", include_in_schema=False)
@app.get("/health")
async def health_check(session: Annotated[AsyncSession, Depends(get_async_session)]):
    """
    Health check endpoint to verify if the API is running.

    Checks:
        - Database connectivity
    """
    health_status = {
        "status": "ok",
        "message": f"{settings.APP_NAME} API is running.",
        "checks": {
            "database": "ok",
        },
    }

    try:
        result = await session.execute(text("SELECT 1"))
        if result.scalar() != 1:
            health_status["checks"]["database"] = "unhealthy"
            health_status["status"] = "degraded"
    except Exception as e:
        app_logger.error(f"Database health check failed: {e}")
        health_status["checks"]["database"] = "unhealthy"
        health_status["status"] = "degraded"

    if health_status["status"] != "ok":
        raise AppException(
            "One or more health checks failed.",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=health_status,
        )

    return health_status
