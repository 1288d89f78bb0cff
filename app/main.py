"""
FastAPI application for code and file sharing.
Security-hardened with rate limiting, CORS, and trusted hosts.
"""
import asyncio
import base64
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from cleanup import cleanup_loop
from config import Settings
from database import ShareRepository, create_repository
from errors import InternalError, ShareError
from models import (
    CodeShareCreate,
    CodeShareUpdate,
    FileContentRequest,
    FileContentResponse,
    FileShareCreate,
    ShareCredentials,
    SlugAvailability,
)
from security import content_disposition, sanitize_filename
from service import ShareService

logger = logging.getLogger(__name__)

# Rate limiter setup
limiter = Limiter(key_func=get_remote_address)

router = APIRouter()


def get_service(request: Request) -> ShareService:
    return request.app.state.service


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        # Prevent content type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Control referrer info
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # JSON API only, nothing to load
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        # HSTS - enforce HTTPS in production
        if not self.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


async def share_error_handler(request: Request, exc: ShareError):
    """Map share errors to a status code and a short message."""
    if isinstance(exc, InternalError):
        logger.exception(f"Internal error on {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse({"detail": "Internal server error"}, status_code=500)
    return JSONResponse({"detail": exc.message}, status_code=exc.status_code)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed or missing fields are a 400, not FastAPI's default 422."""
    fields = [".".join(str(part) for part in err["loc"] if part not in ("body", "query")) for err in exc.errors()]
    fields = [field for field in fields if field]
    message = "Missing or invalid fields"
    if fields:
        message += ": " + ", ".join(fields)
    return JSONResponse({"detail": message}, status_code=400)


# ============ CODE SHARE ENDPOINTS ============

@router.post("/shares/code", status_code=201)
@limiter.limit("10/minute")  # Rate limit: 10 shares per minute
async def create_code_share(
    request: Request,
    body: CodeShareCreate,
    service: ShareService = Depends(get_service),
):
    """Create a new code share."""
    return await service.create_code_share(
        code=body.code,
        title=body.title,
        language=body.language,
        password=body.password,
    )


@router.get("/shares/code")
async def get_code_share(slug: str = Query(...), service: ShareService = Depends(get_service)):
    """Fetch a code share."""
    return await service.get_code_share(slug)


@router.put("/shares/code")
@limiter.limit("30/minute")
async def update_code_share(
    request: Request,
    body: CodeShareUpdate,
    service: ShareService = Depends(get_service),
):
    """Edit a password-protected code share."""
    return await service.update_code_share(
        slug=body.slug,
        code=body.code,
        password=body.password,
        language=body.language,
    )


@router.delete("/shares/code")
@limiter.limit("30/minute")
async def delete_code_share(
    request: Request,
    body: ShareCredentials,
    service: ShareService = Depends(get_service),
):
    """Delete a code share."""
    await service.delete_code_share(body.slug, body.password)
    return {"message": "Code share deleted successfully"}


@router.post("/shares/code/auth")
@limiter.limit("30/minute")  # Rate limit: 30 password attempts per minute
async def authenticate_code_share(
    request: Request,
    body: ShareCredentials,
    service: ShareService = Depends(get_service),
):
    """Check an edit password without changing the share."""
    await service.verify_code_share_password(body.slug, body.password)
    return {"success": True}


# ============ FILE SHARE ENDPOINTS ============

@router.post("/shares/file", status_code=201)
@limiter.limit("10/minute")
async def create_file_share(
    request: Request,
    body: FileShareCreate,
    service: ShareService = Depends(get_service),
):
    """Upload a file share (base64 content)."""
    return await service.create_file_share(
        content=body.content,
        file_name=body.file_name,
        file_size=body.file_size,
        title=body.title,
        mime_type=body.mime_type,
        description=body.description,
        password=body.password,
    )


@router.get("/shares/file")
async def get_file_share(slug: str = Query(...), service: ShareService = Depends(get_service)):
    """Fetch file share metadata, without the content."""
    return await service.get_file_share(slug)


@router.put("/shares/file")
@limiter.limit("30/minute")
async def retrieve_file_content(
    request: Request,
    body: FileContentRequest,
    service: ShareService = Depends(get_service),
):
    """Download or view a file share's content."""
    file = await service.retrieve_file_content(body.slug, body.password, body.action)
    return FileContentResponse(
        file_name=file.file_name,
        mime_type=file.mime_type,
        content=base64.b64encode(file.content).decode("ascii"),
    ).model_dump(by_alias=True)


@router.delete("/shares/file")
@limiter.limit("30/minute")
async def delete_file_share(
    request: Request,
    body: ShareCredentials,
    service: ShareService = Depends(get_service),
):
    """Delete a file share."""
    await service.delete_file_share(body.slug, body.password)
    return {"message": "File share deleted successfully"}


@router.get("/download/{slug}")
@limiter.limit("60/minute")  # Rate limit file downloads
async def download_file(request: Request, slug: str, service: ShareService = Depends(get_service)):
    """Direct download of a file share created without a password."""
    file = await service.retrieve_public_file(slug)
    filename = sanitize_filename(file.file_name)
    return Response(
        content=file.content,
        media_type=file.mime_type,
        headers={"Content-Disposition": content_disposition(filename)},
    )


# ============ SLUG ENDPOINTS ============

@router.get("/slug-availability")
async def slug_availability(
    candidate: str = Query(""),
    service: ShareService = Depends(get_service),
):
    """Check whether a title is free to use."""
    slug, available = await service.check_slug_availability(candidate)
    return SlugAvailability(slug=slug, available=available).model_dump()


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[ShareRepository] = None,
) -> FastAPI:
    """Build the application with one repository shared by all requests."""
    settings = settings or Settings.from_env()
    repository = repository or create_repository(settings)

    # Configure structured logging
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    # basicConfig is a no-op once the root logger has handlers
    logging.getLogger().setLevel(log_level)

    @asynccontextmanager
    async def lifespan(app):
        """Start the periodic sweep, close storage on shutdown."""
        cleanup_task = None
        if settings.cleanup_interval_seconds > 0:
            cleanup_task = asyncio.create_task(
                cleanup_loop(repository, settings.cleanup_interval_seconds)
            )
        logger.info(f"Codedrop started with {settings.storage_backend} storage")
        yield
        if cleanup_task:
            cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await cleanup_task
        await repository.close()
        logger.info("Codedrop shutting down")

    app = FastAPI(title="Codedrop", docs_url=None, redoc_url=None, lifespan=lifespan)
    app.state.settings = settings
    app.state.service = ShareService(repository)

    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(ShareError, share_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # CORS Configuration - production origins only
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware, debug=settings.debug)
    # Trusted Host Middleware - prevent host header attacks
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_hosts)

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
