"""
Crew Testing Platform - FastAPI Application Entry Point.

This is the main application module that:
1. Initializes the FastAPI app with CORS middleware
2. Sets up structured JSON logging
3. Implements request ID middleware (X-Request-ID header)
4. Maps domain errors to HTTP responses
5. Registers all API route handlers and the health check

The application follows a modular architecture:
- routes/: API endpoint handlers (admin, seafarer, reference data)
- models/: SQLAlchemy ORM models
- services/: Business logic (assembly, scoring, import, statistics)
- logging_config.py: Structured logging configuration
- database.py: Database connection management
"""

import time
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crewtest.config import DATABASE_URL
from crewtest.database import create_tables
from crewtest.exceptions import CrewTestError, ImportFailed
from crewtest.logging_config import (
    setup_logging, get_logger, log_with_context,
    request_id_var, generate_request_id
)
from crewtest.routes import admin_questions, admin_tests, reference_data, seafarer_tests

# Import all models so they are registered with Base.metadata
import crewtest.models  # noqa: F401

# ──────────────────────────────────────────────────────────────
# Initialize structured logging BEFORE anything else
# ──────────────────────────────────────────────────────────────
setup_logging()
logger = get_logger("http")

# Auto-create tables for SQLite local development
if DATABASE_URL.startswith("sqlite"):
    logger.info("Using SQLite, creating tables directly")
    create_tables()

app = FastAPI(
    title="Crew Testing Platform",
    description=(
        "Competency testing for ship crews: question bank management, fixed and "
        "randomly assembled tests, automatic scoring and spreadsheet import."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],                # Allow all origins for development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"]
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """
    Generate a request ID per HTTP request, expose it as X-Request-ID and
    log request start and completion with latency.
    """
    req_id = generate_request_id()
    request_id_var.set(req_id)

    start_time = time.time()

    log_with_context(logger, "INFO",
        f"Request started: {request.method} {request.url.path}",
        context={"request_id": req_id},
        extra_data={
            "ip": request.client.host if request.client else "unknown",
            "user_agent": request.headers.get("user-agent", ""),
            "query_params": dict(request.query_params)
        })

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000
    response.headers["X-Request-ID"] = req_id

    log_with_context(logger, "INFO",
        f"Request completed: {request.method} {request.url.path} → {response.status_code}",
        context={"request_id": req_id},
        extra_data={
            "duration_ms": round(duration_ms, 2),
            "status_code": response.status_code
        })

    return response


# ──────────────────────────────────────────────────────────────
# Error mapping
# ──────────────────────────────────────────────────────────────
@app.exception_handler(CrewTestError)
async def crew_test_error_handler(request: Request, exc: CrewTestError):
    log_with_context(logger, "WARNING" if exc.status_code < 500 else "ERROR",
        f"{type(exc).__name__}: {exc.message}",
        context={k: str(v) for k, v in exc.context.items()},
        extra_data={"path": request.url.path, "status_code": exc.status_code})
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
        headers={"X-Request-ID": request_id_var.get("")},
    )


@app.exception_handler(ImportFailed)
async def import_failed_handler(request: Request, exc: ImportFailed):
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), **exc.summary},
        headers={"X-Request-ID": request_id_var.get("")},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    log_with_context(logger, "ERROR", f"Unhandled error: {type(exc).__name__}",
        extra_data={"path": request.url.path, "method": request.method},
        exc_info=(type(exc), exc, exc.__traceback__))
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred"},
        headers={"X-Request-ID": request_id_var.get("")},
    )


# ──────────────────────────────────────────────────────────────
# Register API routes
# ──────────────────────────────────────────────────────────────
app.include_router(reference_data.router, tags=["Reference data"])
app.include_router(admin_questions.router, tags=["Admin: questions"])
app.include_router(admin_tests.router, tags=["Admin: tests"])
app.include_router(seafarer_tests.router, tags=["Seafarer"])


@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint for container health checks and monitoring."""
    return {"status": "healthy", "service": "crew-testing-backend", "version": "1.0.0"}


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information."""
    return {
        "service": "Crew Testing Platform",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "questions": "GET/POST /api/admin/questions",
            "question_import": "POST /api/admin/questions/import",
            "tests": "GET/POST /api/admin/tests",
            "test_statistics": "GET /api/admin/tests/{id}/statistics",
            "available_tests": "GET /api/tests",
            "start": "POST /api/tests/{id}/start",
            "submit": "POST /api/attempts/{id}/submit",
            "result": "GET /api/attempts/{id}/result"
        }
    }
