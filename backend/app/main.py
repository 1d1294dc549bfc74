"""
Campus Analytics API - FastAPI Application Entry Point.

This is the main application module that:
1. Initializes the FastAPI app with CORS middleware
2. Sets up structured JSON logging
3. Implements request ID middleware (X-Request-ID header)
4. Registers the error handler and API route handlers
5. Provides health check endpoint

The application follows a modular architecture:
- routes/: API endpoint handlers
- models/: SQLAlchemy ORM models (read-only snapshots)
- services/: Ranking engine (filters, duration codec, sources, aggregators)
- errors.py: Error taxonomy and JSON error rendering
- logging_config.py: Structured logging configuration
- database.py: Database connection management
"""

import time
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.logging_config import (
    setup_logging, get_logger, log_with_context,
    request_id_var, generate_request_id
)
from app.errors import CampusAnalyticsError, campus_analytics_error_handler
from app.routes import students
from app.database import DATABASE_URL, create_tables

# Import all models so they are registered with Base.metadata
from app.models.student import Student
from app.models.project import Project
from app.models.location import LocationStats, LocationSession
from app.models.feedback import Feedback
from app.models.patronage import Patronage, PatronageEdge

# ──────────────────────────────────────────────────────────────
# Initialize structured logging BEFORE anything else
# ──────────────────────────────────────────────────────────────
setup_logging()
logger = get_logger("http")

# Auto-create tables for SQLite local development
if DATABASE_URL.startswith("sqlite"):
    logger.info("Using SQLite: creating tables directly")
    create_tables()

# ──────────────────────────────────────────────────────────────
# Create FastAPI application
# ──────────────────────────────────────────────────────────────
app = FastAPI(
    title="Campus Analytics API",
    description=(
        "Analytics backend for a 42 campus: a student directory ranked by raw "
        "or derived fields (project, cheat, patronage, log time and feedback "
        "counts), pool overviews and per-student detail views."
    ),
    version="1.0.0",
    docs_url="/docs",        # Swagger UI at /docs
    redoc_url="/redoc"       # ReDoc at /redoc
)

# Adapters are detected on demand and kept once every family is settled
app.state.sources = None

# ──────────────────────────────────────────────────────────────
# CORS Middleware
#
# Allows the dashboard frontend to call the backend from another origin.
# The API is read-only, so only GET and preflight requests are allowed.
# In production, restrict origins to the actual frontend domain.
# ──────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],                # Allow all origins for development
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],   # Read-only API
    allow_headers=["*"],                # Allow all headers
    expose_headers=["X-Request-ID"]     # Expose request ID header to frontend
)

# Taxonomy errors render as {"error", "message"} with their status code
app.add_exception_handler(CampusAnalyticsError, campus_analytics_error_handler)


# ──────────────────────────────────────────────────────────────
# Request ID Middleware
#
# Generates a unique UUID per incoming request and:
# 1. Stores it in a context variable (available to all log entries)
# 2. Returns it in the X-Request-ID response header
# 3. Logs request start/end with latency measurement
# ──────────────────────────────────────────────────────────────
@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """
    Middleware that generates a unique request ID for every HTTP request.

    This enables end-to-end request tracing across all log entries, including
    the ranking and source-detection logs written from worker threads.
    The request ID is:
    - Generated as a UUID v4
    - Stored in a context variable (accessible from any log call)
    - Included in the X-Request-ID response header
    - Logged at request start and completion
    """
    # Generate and set request ID
    req_id = generate_request_id()
    request_id_var.set(req_id)

    # Record request start time for latency calculation
    start_time = time.time()

    # Log incoming request
    log_with_context(logger, "INFO",
        f"Request started: {request.method} {request.url.path}",
        context={"request_id": req_id},
        extra_data={
            "ip": request.client.host if request.client else "unknown",
            "user_agent": request.headers.get("user-agent", ""),
            "query_params": dict(request.query_params)
        })

    # Process the request
    response = await call_next(request)

    # Calculate request duration
    duration_ms = (time.time() - start_time) * 1000

    # Add request ID to response headers
    response.headers["X-Request-ID"] = req_id

    # Log request completion with latency
    log_with_context(logger, "INFO",
        f"Request completed: {request.method} {request.url.path} → {response.status_code}",
        context={"request_id": req_id},
        extra_data={
            "duration_ms": round(duration_ms, 2),
            "status_code": response.status_code
        })

    return response


# ──────────────────────────────────────────────────────────────
# Register API routes
# ──────────────────────────────────────────────────────────────
app.include_router(students.router, tags=["Students"])


# ──────────────────────────────────────────────────────────────
# Health check endpoint
# ──────────────────────────────────────────────────────────────
@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint for Docker health checks and monitoring.

    Returns a simple status response to verify the application is running.
    It does not touch the store.
    """
    return {"status": "healthy", "service": "campus-analytics-backend", "version": "1.0.0"}


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information."""
    return {
        "service": "Campus Analytics API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "students": "GET /api/students",
            "pools": "GET /api/students/pools",
            "student_detail": "GET /api/students/{login}"
        }
    }
