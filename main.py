"""
Follow-up Tracker - FastAPI Application Entry Point

Staff API for observation periods, question catalogs, alerts and tasks, plus
the WhatsApp webhooks that feed patient answers in.
"""

from contextlib import asynccontextmanager
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from celery.app.control import Inspect

from core.config import settings
from core.database import dispose_engine
from core.exceptions import AppError
from core.logging import setup_logging, log_request_middleware
from api.v1 import alerts, answers, integrations, periods, questions, tasks, webhooks
from celery_app import celery_app
from services.integration_service import IntegrationService

# Setup logging
logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting Follow-up Tracker application...", env=settings.ENV)

    try:
        IntegrationService().sync()
    except Exception as e:
        logger.error("Failed to load saved integration credentials", error=str(e))

    # Catch up on slots due before the first beat tick
    try:
        celery_app.send_task("run_schedule_sweep")
        logger.info("Startup schedule sweep queued")
    except Exception as e:
        logger.error("Failed to queue startup sweep", error=str(e))

    yield

    logger.info("Shutting down Follow-up Tracker application...")
    await dispose_engine()


# Create FastAPI application
app = FastAPI(
    title="Follow-up Tracker API",
    description="Post-treatment patient follow-up over WhatsApp",
    version=settings.VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan,
)


# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=["*"]
)

if settings.ENABLE_REQUEST_LOGGING:
    app.middleware("http")(log_request_middleware)


def _client_host(request: Request):
    return request.client.host if request.client else None


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Typed domain errors keep their status and code."""
    logger.warning(
        "Application error",
        code=exc.code,
        message=exc.message,
        path=request.url.path,
        method=request.method,
        **exc.details,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.message,
            "code": exc.code,
        }
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation exceptions."""
    logger.error(
        "Validation Exception",
        errors=str(exc.errors()),
        path=request.url.path,
        method=request.method,
        client=_client_host(request),
    )
    user_message = exc.errors()[0].get("msg", "Invalid input data") if exc.errors() else "Invalid input data"

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "message": user_message,
            "code": "VALIDATION_ERROR",
            "detail": str(exc.errors())
        }
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger.error(
        "HTTP Exception",
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
        client=_client_host(request),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.detail,
            "detail": str(exc)
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Server Exception",
        error=str(exc),
        path=request.url.path,
        method=request.method,
        client=_client_host(request),
    )
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Internal server error",
            "code": "INTERNAL_ERROR",
        }
    )


@app.get("/health")
async def health():
    return {"status": "ok", "version": settings.VERSION}


@app.get("/admin/celery/tasks/")
async def list_tasks():
    inspector = Inspect(app=celery_app)

    active = inspector.active()
    reserved = inspector.reserved()
    scheduled = inspector.scheduled()

    return {
        "active": active or {},
        "reserved": reserved or {},
        "scheduled": scheduled or {}
    }


# Include API routers
app.include_router(periods.router, prefix="/api/v1/periods", tags=["Periods"])
app.include_router(questions.router, prefix="/api/v1/questions", tags=["Questions"])
app.include_router(answers.router, prefix="/api/v1/answers", tags=["Answers"])
app.include_router(alerts.router, prefix="/api/v1/alerts", tags=["Alerts"])
app.include_router(tasks.router, prefix="/api/v1/tasks", tags=["Tasks"])
app.include_router(webhooks.router, prefix="/api/v1/webhooks", tags=["Webhooks"])
app.include_router(integrations.router, prefix="/api/v1/integrations", tags=["Integrations"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
