"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from filegate.blobs.routes import router as blobs_router
from filegate.config import get_settings
from filegate.db.session import close_db, init_db
from filegate.errors import GatewayError
from filegate.files.routes import inline_router, router as files_router
from filegate.folders.routes import router as folders_router
from filegate.legacy.migrator import LegacyUrlMiddleware
from filegate.limiter import limiter
from filegate.shares.routes import router as shares_router
from filegate.uploads.routes import router as uploads_router

log = logging.getLogger(__name__)


def _setup_logging() -> None:
    """Configure logging from settings (stderr always; optional file)."""
    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    root = logging.getLogger("filegate")
    root.setLevel(level)
    root.handlers.clear()
    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(fmt)
    root.addHandler(sh)
    if settings.log_file and str(settings.log_file).strip():
        try:
            fh = logging.FileHandler(settings.log_file, encoding="utf-8")
            fh.setLevel(level)
            fh.setFormatter(fmt)
            root.addHandler(fh)
            root.info("Logging to file %s", settings.log_file)
        except OSError as e:
            root.warning("Could not open log file %s: %s", settings.log_file, e)
    else:
        root.debug("Logging to stderr only (no log_file set)")


_setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and the blob directory on startup."""
    settings = get_settings()
    log.info("Startup: initializing metadata store and blob directory")
    await init_db()
    settings.storage_base_path.mkdir(parents=True, exist_ok=True)
    if not settings.session_secret:
        log.warning("FILEGATE_SESSION_SECRET is empty; gallery session cookies are not secure")
    log.info("Startup complete")
    yield
    await close_db()
    log.info("Shutdown")


app = FastAPI(title="Filegate", version="0.1.0", lifespan=lifespan)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["*"],
)
app.add_middleware(LegacyUrlMiddleware, direct_files=settings.legacy_direct_redirect)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers.setdefault("X-Frame-Options", "DENY")
    return response


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    """Expected failures as JSON {"error": message} with their own status."""
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Return generic 500 without leaking stack trace or internals."""
    if isinstance(exc, HTTPException):
        raise exc
    log.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Interner Serverfehler"},
    )


app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.get("/health")
@limiter.exempt
def health() -> JSONResponse:
    """Health check for Docker and tunnel. Exempt from rate limiting."""
    return JSONResponse(content={"status": "ok"})


app.include_router(shares_router)
app.include_router(uploads_router)
app.include_router(folders_router)
app.include_router(blobs_router)
app.include_router(files_router)
# Must stay last: /{folder_id}/{file_name} matches any two-segment path
app.include_router(inline_router)
