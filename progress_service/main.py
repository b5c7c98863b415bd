from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from progress_service.api.health import router as health_router
from progress_service.api.metrics_endpoint import router as metrics_router
from progress_service.api.progress import router as progress_router
from progress_service.api.quizzes import router as quizzes_router
from progress_service.core.config import SETTINGS
from progress_service.core.logging import setup_logging
from progress_service.db.engine import lifespan_db
from progress_service.db.redis import lifespan_redis
from progress_service.middleware.metrics import MetricsMiddleware
from progress_service.middleware.request_context import RequestContextMiddleware
from progress_service.services.errors import ServiceError

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # teardown runs in reverse order
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="progress-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last added runs first: RequestContext -> Metrics -> CORS -> route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


# ---------------------------------------------------------------------------
# Error rendering: every failure body is {"error": <reason>, "detail": ...}
# ---------------------------------------------------------------------------


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    logger.info(
        "%s %s rejected: %s (%s)",
        request.method,
        request.url.path,
        exc.reason,
        exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.reason, "detail": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "validation_error",
            "detail": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        "Storage failure on %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "storage_error", "detail": "Storage operation failed"},
    )


app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(progress_router)
app.include_router(quizzes_router)

logger.info(
    "progress-service started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
