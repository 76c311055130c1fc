# app/main.py
"""
FastAPI application entry point.
Includes session middleware, global error handlers, and all routers.
"""

import os
import time

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware
from app.routers import auth, vehicles, requests, admin, users, profile, health
from app.database import create_tables
from app.config import settings
from app.services.errors import ServiceError
from app.utils.logger import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="TamVems Vehicle Booking API",
    description="Official-vehicle booking: availability, requests, approvals and returns.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS + session cookie ────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SECRET_KEY,
    session_cookie="tamvems_session",
    max_age=settings.SESSION_MAX_AGE_SECONDS,
    same_site="lax",
)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"[REQUEST] {request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Exception Handlers ───────────────────────────────────────────────────────
@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(p) for p in err["loc"] if p not in ("body", "query", "path", "form")),
         "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid data", "error_code": "VALIDATION_ERROR", "details": details},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(auth.router,     prefix="/api/v1", tags=["Auth"])
app.include_router(vehicles.router, prefix="/api/v1", tags=["Vehicles"])
app.include_router(requests.router, prefix="/api/v1", tags=["Requests"])
app.include_router(admin.router,    prefix="/api/v1", tags=["Admin"])
app.include_router(users.router,    prefix="/api/v1", tags=["Users"])
app.include_router(profile.router,  prefix="/api/v1", tags=["Profile"])
app.include_router(health.router,   prefix="/api/v1", tags=["Health"])

# Locally stored documents and vehicle photos
if settings.STORAGE_BACKEND == "local":
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("TamVems backend starting up...")
    create_tables()
    logger.info("Database tables ready")
    if settings.EXPIRY_SWEEP_INTERVAL_SECONDS > 0:
        from app.services.expiry_sweeper import start_expiry_sweeper
        app.state.expiry_task = start_expiry_sweeper(settings.EXPIRY_SWEEP_INTERVAL_SECONDS)
    logger.info("API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    task = getattr(app.state, "expiry_task", None)
    if task:
        task.cancel()
    logger.info("TamVems backend shutting down...")
