"""
RedBoat Hotel API - Main Application
====================================

HYBRID MONOLITH ARCHITECTURE:
- FastAPI layer in /api/ folder
- Imports services from root services.py (Single Source of Truth)
- Imports schemas from root schemas.py
- Streamlit dashboard (app.py) talks to this API through client/

Run with: python -m uvicorn api.main:app --reload --port 8000
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import CORS_ORIGINS, ENVIRONMENT
from database import init_db
from errors import ServiceError
from logging_config import get_logger

# Import routers
from api.v1.endpoints import (
    activity, auth, backup, bookings, calendar, feedback, navigation,
    notifications, payments, reports, roles, rooms, users,
)

logger = get_logger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info(f"RedBoat API iniciada ({ENVIRONMENT})")
    yield


# ==========================================
# APP CONFIGURATION
# ==========================================

app = FastAPI(
    title="RedBoat Hotel API",
    version="1.0.0",
    description="""
## RedBoat Hotel Management API - Hybrid Monolith

### Architecture
- **Single Source of Truth**: All business logic in root modules
- **Shared Schemas**: Root `schemas.py` used by the API and the dashboard
- **Smart Decorator**: `@with_db` detects if session is injected or needs creation

### Endpoints
- **Auth / Users / Roles**: cookie session, profiles, RBAC
- **Rooms / Calendar**: availability, housekeeping, occupancy
- **Bookings / Payments**: lifecycle, check-in/out, Stripe Checkout
- **Notifications**: history and live SSE stream
- **Reports / Activity / Backup**: admin tooling
""",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# ==========================================
# MIDDLEWARE
# ==========================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==========================================
# ERROR HANDLERS
# ==========================================

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Route {request.method} {request.url.path} not found"
    else:
        message = exc.detail
    return JSONResponse(status_code=exc.status_code, content={"message": message}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return JSONResponse(status_code=400, content={"message": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Error no controlado en {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"message": "Server error"})


# ==========================================
# ROUTERS
# ==========================================

app.include_router(auth.router, prefix=f"{API_PREFIX}/auth", tags=["Authentication"])
app.include_router(users.router, prefix=API_PREFIX, tags=["Users"])
app.include_router(roles.router, prefix=f"{API_PREFIX}/roles", tags=["Roles"])
app.include_router(rooms.router, prefix=f"{API_PREFIX}/rooms", tags=["Rooms"])
app.include_router(calendar.router, prefix=f"{API_PREFIX}/calendar", tags=["Calendar"])
app.include_router(bookings.router, prefix=f"{API_PREFIX}/bookings", tags=["Bookings"])
app.include_router(payments.router, prefix=f"{API_PREFIX}/payments", tags=["Payments"])
app.include_router(feedback.router, prefix=f"{API_PREFIX}/feedback", tags=["Feedback"])
app.include_router(notifications.router, prefix=f"{API_PREFIX}/notifications", tags=["Notifications"])
app.include_router(reports.router, prefix=f"{API_PREFIX}/reports", tags=["Reports"])
app.include_router(activity.router, prefix=f"{API_PREFIX}/activity", tags=["Activity"])
app.include_router(backup.router, prefix=f"{API_PREFIX}/backup", tags=["Backup"])
app.include_router(navigation.router, prefix=f"{API_PREFIX}/navigation", tags=["Navigation"])


# ==========================================
# HEALTH ENDPOINTS
# ==========================================

@app.get("/", tags=["Health"])
def root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "api": "RedBoat Hotel API",
        "version": "1.0.0",
        "architecture": "Hybrid Monolith",
        "docs": "/docs",
    }


@app.get("/health", tags=["Health"])
def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "environment": ENVIRONMENT,
        "cors_origins": CORS_ORIGINS,
    }
