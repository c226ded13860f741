import logging
import os
from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
import db
from errors import AssetNotFound, ConnectionFailure, InvalidInput, LandingError, PersistenceFailure
from observability import setup_logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# Verbs advertised to browsers, per endpoint. The landing page and the API may
# be served from different origins during development.
ENDPOINT_METHODS = {
    "/api/signup": "POST, OPTIONS",
    "/api/download": "GET, OPTIONS",
    "/api/recent-signups": "GET, OPTIONS",
}


def _cors_headers(path: str) -> dict:
    methods = ENDPOINT_METHODS.get(path)
    if not methods:
        return {}
    return {
        "Access-Control-Allow-Origin": config.CORS_ALLOW_ORIGIN,
        "Access-Control-Allow-Methods": methods,
        "Access-Control-Allow-Headers": "Content-Type",
    }


async def add_cors_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.update(_cors_headers(request.url.path))
    return response


# ─── Error handlers ─────────────────────────────────────────────
# Every error body is {"error": "<message>"}, the shape the landing page reads.

async def landing_error_handler(request: Request, exc: LandingError):
    log = logger.warning if exc.http_status < 500 else logger.error
    log(f"{type(exc).__name__}: {exc.message}", extra={"error_code": exc.code, "path": request.url.path})
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405:
        message = "Method not allowed"
    elif exc.status_code == 404:
        message = "Not found"
    else:
        message = str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"error": message}, headers=exc.headers)


async def generic_error_handler(request: Request, exc: Exception):
    """Catch-all. Runs outside the middleware stack, so CORS headers are added here."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "An unexpected error occurred"},
        headers=_cors_headers(request.url.path),
    )


# ─── Landing endpoints ──────────────────────────────────────────

class SignupRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    timestamp: Optional[str] = None  # client clock, display only


# Characters JavaScript's encodeURIComponent leaves alone (besides alphanumerics and "-_.").
URI_COMPONENT_SAFE = "!~*'()"


def download_url_for(email: str) -> str:
    """Download link carrying the email for tracking (encoded like encodeURIComponent)."""
    return f"{config.DOWNLOAD_API_PATH}?email={quote(email, safe=URI_COMPONENT_SAFE)}"


@router.options("/signup")
@router.options("/download")
@router.options("/recent-signups")
def preflight():
    return Response(status_code=200)


@router.post("/signup")
def signup(body: SignupRequest):
    name = (body.name or "").strip()
    email = (body.email or "").strip()
    if not name or not email:
        raise InvalidInput("Signup without name or email", "Name and email are required")

    try:
        db.insert_signup(db.get_handle(), name, email, body.timestamp)
    except PersistenceFailure as e:
        raise PersistenceFailure(e.message, e.operation, "An error occurred while saving your information") from e

    return {
        "success": True,
        "message": "Signup successful",
        "downloadUrl": download_url_for(email),
    }


@router.get("/download")
def download(request: Request, email: Optional[str] = None):
    """
    Serve the APK. When `email` is given, a download event is recorded first;
    failing to record it never blocks the download.
    """
    file_path = config.asset_path()
    if not os.path.isfile(file_path):
        raise AssetNotFound(f"APK file not found at path: {file_path}")

    if email:
        db.record_download(email, request.headers.get("user-agent"))

    return FileResponse(
        file_path,
        media_type=config.ASSET_CONTENT_TYPE,
        headers={"Content-Disposition": f"attachment; filename={config.ASSET_NAME}"},
    )


@router.get("/recent-signups")
def get_recent_signups():
    try:
        signups = db.recent_signups(db.get_handle(), config.RECENT_SIGNUPS_LIMIT)
    except PersistenceFailure as e:
        raise PersistenceFailure(e.message, e.operation, "An error occurred while fetching recent signups") from e
    logger.info(f"Retrieved {len(signups)} recent signups", extra={"count": len(signups)})
    return signups


# ─── Operations ─────────────────────────────────────────────────

@router.get("/health")
def health_check():
    """Liveness: the function is up."""
    return {"status": "healthy", "service": "insta-detoxify-landing"}


@router.get("/health/ready")
def readiness_check():
    """Readiness: a database handle can be obtained."""
    try:
        db.get_handle()
    except ConnectionFailure:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "reason": "database_unavailable"},
        )
    return {"status": "ready", "checks": {"database": "healthy"}}


@router.get("/debug/config")
def debug_config():
    """
    Debug helper: shows which settings are in effect (without exposing secrets).
    """
    return {
        "aws": {
            "region": config.AWS_REGION,
            "hasEndpointOverride": bool(config.DYNAMODB_ENDPOINT_URL),
            "hasAccessKey": bool(os.getenv("AWS_ACCESS_KEY_ID")),
            "signupsTable": config.DYNAMODB_SIGNUPS_TABLE,
            "downloadsTable": config.DYNAMODB_DOWNLOADS_TABLE,
            "connected": db.manager.connected,
        },
        "asset": {
            "name": config.ASSET_NAME,
            "present": os.path.isfile(config.asset_path()),
        },
        "recentSignupsLimit": config.RECENT_SIGNUPS_LIMIT,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(config.LOG_LEVEL, config.LOG_FORMAT)
    logger.info("Landing API started")
    yield


def create_app() -> FastAPI:
    """
    Build the API app. The dev server builds its own instance so it can mount
    the static landing page after the API routes.
    """
    app = FastAPI(title="Insta Detoxify Landing API", lifespan=lifespan)
    app.middleware("http")(add_cors_headers)
    app.add_exception_handler(LandingError, landing_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)
    app.include_router(router)
    return app


app = create_app()
