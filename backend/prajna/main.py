"""
Prajna Exam Backend - FastAPI Application Entry Point.

This module:
1. Initializes the FastAPI app with CORS middleware
2. Sets up structured JSON logging
3. Implements request ID middleware (X-Request-ID header)
4. Maps domain errors to JSON error responses
5. Registers the exam and credit routes

Layout:
- routes/: API endpoint handlers
- models/: SQLAlchemy ORM models
- services/: Business logic (exam lifecycle, scoring, evaluator, credits)
- logging_config.py: Structured logging configuration
- database.py: Database connection management
"""

import time
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from prajna import config
from prajna.errors import PrajnaError
from prajna.logging_config import (
    setup_logging, get_logger, log_with_context,
    request_id_var, generate_request_id
)
from prajna.routes import exams, credits
from prajna.database import create_tables

# Register all models with Base.metadata
from prajna.models import Exam, Credit  # noqa: F401

setup_logging()
logger = get_logger("http")

if config.DATABASE_URL.startswith("sqlite"):
    logger.info("Using SQLite, creating tables directly")
    create_tables()

app = FastAPI(
    title="Prajna Exam Backend",
    description=(
        "Exam creation, retrieval and scoring for the Prajna study assistant. "
        "Multiple-choice and true/false answers are scored deterministically; "
        "short answers are graded by Gemini on a 0-5 scale."
    ),
    version=config.SERVICE_VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"]
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """
    Tag every request with a UUID.

    The ID is stored in a context variable for the log formatter, returned
    in the X-Request-ID header, and the request is logged with its latency.
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


@app.exception_handler(PrajnaError)
async def prajna_error_handler(request: Request, exc: PrajnaError):
    level = "ERROR" if exc.status_code >= 500 else "WARNING"
    log_with_context(logger, level, "{}: {}".format(type(exc).__name__, exc.message),
                     extra_data={"path": request.url.path, "status_code": exc.status_code})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Body/query validation failures are reported as 400 with per-field detail."""
    details = [
        {"loc": list(err.get("loc", [])), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    log_with_context(logger, "WARNING", "Request validation failed",
                     extra_data={"path": request.url.path, "errors": details})
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request data", "type": "validation_error", "details": details}
    )


app.include_router(exams.router, tags=["Exams"])
app.include_router(credits.router, tags=["Credits"])


@app.get("/health", tags=["Health"])
def health_check():
    """Liveness probe for Docker health checks and monitoring."""
    return {"status": "healthy", "service": config.SERVICE_NAME, "version": config.SERVICE_VERSION}


@app.get("/", tags=["Root"])
def root():
    return {
        "service": "Prajna Exam Backend",
        "version": config.SERVICE_VERSION,
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "create_exam": "POST /exam",
            "list_exams": "GET /exam?userId=&subjectId=",
            "exam_questions": "GET /exam/main/{id}",
            "exam_record": "GET /exam/{id}",
            "attach_questions": "PUT /exam/{id}/questions",
            "evaluate": "POST /exam/eval",
            "credits": "GET|POST|PATCH /credit/{user_id}",
            "credit_check": "GET /credit/{user_id}/check"
        }
    }
