"""
Extender API - Main Application
Build server: extension sources in, engine executable out.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.routers import extender
from extender import EXTENDER_VERSION  # type: ignore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
_log = logging.getLogger(__name__)


# =============================================================================
# Lifespan Event Handler
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the build configuration once so a broken file fails at startup."""
    config = app.dependency_overrides.get(
        extender.get_configuration, extender.get_configuration
    )()
    _log.info(
        "Build configuration loaded: %d platform(s) [%s]",
        len(config.platforms), ", ".join(sorted(config.platforms)),
    )
    yield


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title=settings.API_TITLE,
    description="Native extension build server: Scan → Compile → Archive → Link",
    version=settings.API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Extender-Extensions",
                    "X-Extender-Symbols", "X-Extender-Sha256"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return 422 with structured error details."""
    _log.warning(
        "422 on %s %s  errors=%s",
        request.method, request.url.path, exc.errors()[:3],
    )
    return JSONResponse(status_code=422, content={"detail": exc.errors()})


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "extender-api",
        "version": settings.API_VERSION,
        "extender_version": EXTENDER_VERSION,
    }


@app.get("/")
async def root():
    """Service index"""
    return {
        "message": "Extender API - Native Extension Build Server",
        "platforms": "/extender/platforms",
        "build": "/extender/build/{platform}",
        "docs": "/docs",
        "health": "/health",
    }


# =============================================================================
# Register Routers
# =============================================================================

app.include_router(extender.router, prefix="/extender", tags=["extender"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
    )
