import logging
import sys
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from starlette.middleware.sessions import SessionMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from app.config import settings
from app.api.v1 import auth, bills, dashboard, meters, readings, settings as settings_routes, user
from app.auth.session import SessionContext
from app.core.exceptions import AuthenticationError, DashboardError, InvalidCredentialsError
from app.middleware.logging import LoggingMiddleware
from app.middleware.monitoring import MonitoringMiddleware
from app.middleware.request_id import RequestIDMiddleware
from app.middleware.security import SecurityHeadersMiddleware
from app.monitoring import metrics

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="""
    **Electricity Billing Dashboard** - role based administration for the billing service

    ## Roles
		* **ADMIN** manages users, meters, bills and the tariff rate
		* **TECHNICIAN** records meter readings with photo evidence
		* **LANDLORD** follows bills and payment status of their meters

    ## Documentation
		* [Interactive API Docs](/docs)
		* [Health Check](/health)
    """,
    version=settings.APP_VERSION,
    openapi_tags=[
        {"name": "auth", "description": "Login and session"},
        {"name": "dashboard", "description": "Role specific summary"},
        {"name": "users", "description": "User management"},
        {"name": "meters", "description": "Meter management"},
        {"name": "readings", "description": "Meter readings"},
        {"name": "bills", "description": "Bills and payments"},
        {"name": "settings", "description": "Tariff rate"},
        {"name": "monitoring", "description": "System monitoring"},
    ],
    docs_url="/docs",
    redoc_url="/redoc" if settings.DEBUG else None,
)


# =====================================
# Error handling
# =====================================
@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    """Any authentication failure ends the session and sends the user to login"""
    if isinstance(exc, InvalidCredentialsError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    SessionContext(request.session).teardown(f"{request.method} {request.url.path}: {exc.message}")
    return RedirectResponse(url=settings.LOGIN_PATH, status_code=status.HTTP_303_SEE_OTHER)


@app.exception_handler(DashboardError)
async def dashboard_error_handler(request: Request, exc: DashboardError):
    """Surface the error message verbatim at the point of action"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


# =====================================
# Configure Middleware Stack
# =====================================
app.add_middleware(MonitoringMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(LoggingMiddleware)

# Session cookie holding the backend credential
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET,
    session_cookie=settings.SESSION_COOKIE,
    max_age=settings.SESSION_MAX_AGE,
    https_only=not settings.DEBUG,
    same_site="strict"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
    max_age=3600,
)

# Trusted Host validation (production only)
if not settings.DEBUG:
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.ALLOWED_HOSTS
    )

app.add_middleware(RequestIDMiddleware)

# Include routers
app.include_router(auth.router, prefix=settings.API_V1_PREFIX, tags=["auth"])
app.include_router(dashboard.router, prefix=f"{settings.API_V1_PREFIX}/dashboard", tags=["dashboard"])
app.include_router(user.router, prefix=f"{settings.API_V1_PREFIX}/users", tags=["users"])
app.include_router(meters.router, prefix=f"{settings.API_V1_PREFIX}/meters", tags=["meters"])
app.include_router(readings.router, prefix=f"{settings.API_V1_PREFIX}/readings", tags=["readings"])
app.include_router(bills.router, prefix=f"{settings.API_V1_PREFIX}/bills", tags=["bills"])
app.include_router(settings_routes.router, prefix=f"{settings.API_V1_PREFIX}/settings", tags=["settings"])

# Monitoring endpoints (internal use)
if settings.EXPOSE_METRICS:
    app.include_router(
        metrics.router,
        prefix="/internal",
        tags=["monitoring"]
    )


@app.get("/", include_in_schema=False)
async def root():
    return RedirectResponse(url=f"{settings.API_V1_PREFIX}/dashboard/", status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.APP_VERSION,
        "backend": settings.BACKEND_API_URL,
    }
