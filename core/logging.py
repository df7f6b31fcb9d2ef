"""
Logging configuration for the Follow-up Tracker backend.

Uses structlog for structured logging with JSON output. The API process and
the Celery workers share this setup so job logs carry the same entity keys
(period_id, answer_id, alert_id) as request logs.
"""

import logging
import sys
import os
from datetime import datetime
import structlog
from structlog.stdlib import LoggerFactory

from core.config import settings

_configured = False


def setup_logging(component: str = "api") -> structlog.stdlib.BoundLogger:
    """Setup structured logging for the API or a worker process."""
    global _configured

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
            structlog.processors.JSONRenderer() if not settings.DEBUG else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = logging.Formatter('%(message)s')

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if settings.ENABLE_FILE_LOGGING:
        logs_dir = "logs"
        os.makedirs(logs_dir, exist_ok=True)
        stamp = datetime.now().strftime('%Y%m%d')

        app_file_handler = logging.FileHandler(
            os.path.join(logs_dir, f"{component}_{stamp}.log"), encoding='utf-8'
        )
        app_file_handler.setFormatter(formatter)
        app_file_handler.setLevel(logging.INFO)
        root_logger.addHandler(app_file_handler)

        error_file_handler = logging.FileHandler(
            os.path.join(logs_dir, f"error_{stamp}.log"), encoding='utf-8'
        )
        error_file_handler.setFormatter(formatter)
        error_file_handler.setLevel(logging.ERROR)
        root_logger.addHandler(error_file_handler)

    logger = structlog.get_logger(component)

    if not _configured and settings.SENTRY_DSN and settings.SENTRY_DSN.strip():
        import sentry_sdk
        from sentry_sdk.integrations.celery import CeleryIntegration
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.SENTRY_ENVIRONMENT,
            integrations=[
                FastApiIntegration(),
                CeleryIntegration(),
                SqlalchemyIntegration(),
            ],
            traces_sample_rate=0.1 if settings.ENV == "production" else 1.0,
        )

        logger.info("Sentry integration enabled", environment=settings.SENTRY_ENVIRONMENT)

    _configured = True
    return logger


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)


async def log_request_middleware(request, call_next):
    """Log incoming requests."""
    logger = get_logger("request")

    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        client_ip=request.client.host if request.client else None,
    )

    response = await call_next(request)

    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
    )

    return response
