from dotenv import load_dotenv
import os

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
load_dotenv(os.path.join(BASE_DIR, ".env"))

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware
from starlette.status import HTTP_422_UNPROCESSABLE_ENTITY

from app.core.config import settings
from app.core.logging_config import setup_logging

# mappers resolve relationships by class name, every model must be loaded
from app.models import audit_log, document_request, document_type, otp_code, request_log, user  # noqa: F401

# ───────────────── ROUTER IMPORTS ─────────────────
from app.routes.auth import router as auth_router
from app.routes.document_types import router as document_types_router
from app.routes.request_flow import router as request_flow_router
from app.routes.tracking import router as tracking_router
from app.routes.dashboard import router as dashboard_router
from app.routes.admin_requests import router as admin_requests_router
from app.routes.admin_users import router as admin_users_router
from app.routes.admin_document_types import router as admin_document_types_router
from app.routes.audit_logs import router as audit_logs_router

setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)

app = FastAPI(
    title=settings.APP_NAME,
    description="Document request portal: OTP-verified applicant requests and the registrar back office",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# ───────── SAFE VALIDATION HANDLER (no raw bytes in 422 bodies) ─────────

def _sanitize(obj):
    if isinstance(obj, (bytes, bytearray)):
        return f"<bytes:{len(obj)}>"
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_sanitize(v) for v in obj]
    if isinstance(obj, Exception):
        return str(obj)
    return obj


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    safe_errors = _sanitize(exc.errors())
    return JSONResponse(
        status_code=HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": safe_errors},
    )

# ───────────────── SESSION + CORS ─────────────────
# The session cookie carries the applicant's email verification stamps.

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    session_cookie=settings.SESSION_COOKIE_NAME,
    max_age=settings.SESSION_MAX_AGE_SECONDS,
    same_site="lax",
    https_only=settings.APP_ENV == "production",
)

origins = settings.origins_list or [
    "http://localhost:3000",
    "http://localhost:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ───────────────── ROUTES ─────────────────

# Applicant side
app.include_router(document_types_router, prefix="/api")
app.include_router(request_flow_router, prefix="/api")
app.include_router(tracking_router, prefix="/api")
app.include_router(dashboard_router, prefix="/api")

# Back office
app.include_router(auth_router, prefix="/api")
app.include_router(admin_requests_router, prefix="/api")
app.include_router(admin_users_router, prefix="/api")
app.include_router(admin_document_types_router, prefix="/api")
app.include_router(audit_logs_router, prefix="/api")

# ───────────────── HEALTH ─────────────────

@app.get("/", tags=["Health"])
async def root():
    return {
        "status": "ok",
        "app": settings.APP_NAME,
        "env": settings.APP_ENV,
    }


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "healthy"}
