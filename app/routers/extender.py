"""
Extender Router
Build an engine executable from uploaded extension sources.

The request carries the source tree as a list of files; the response is the
linked executable.  Each request gets its own source directory and build
workspace, both removed before the response is sent.
"""
import logging
import tempfile
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import List
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from app.config import Settings
from extender import EXTENDER_VERSION, PACKAGE_NAME  # type: ignore
from extender.core.pipeline import EngineBuilder  # type: ignore
from extender.errors import ConfigurationError, ExtenderError  # type: ignore
from extender.policy.profile import Configuration, load_configuration  # type: ignore

logger = logging.getLogger(__name__)


# =============================================================================
# Dependencies
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get application settings."""
    return Settings()


@lru_cache(maxsize=1)
def get_configuration() -> Configuration:
    """Load the build configuration once; it is read-only afterwards."""
    settings = get_settings()
    if settings.EXTENDER_CONFIG:
        return load_configuration(Path(settings.EXTENDER_CONFIG))
    return Configuration.default()


# =============================================================================
# Request / Response Models
# =============================================================================

class SourceFileInput(BaseModel):
    """A single file of the extension source tree."""
    filename: str = Field(
        ...,
        description="Path relative to the source root (e.g. 'myext/ext.manifest')",
    )
    content: str = Field(..., description="File content")


class EngineBuildRequest(BaseModel):
    """Extension source tree to build into the engine."""
    files: List[SourceFileInput] = Field(
        default_factory=list,
        description="Files of the source root; may be empty (engine only)",
    )


class PlatformsResponse(BaseModel):
    package_name: str = PACKAGE_NAME
    extender_version: str = EXTENDER_VERSION
    platforms: List[str]


# =============================================================================
# Helpers
# =============================================================================

def _safe_relative(filename: str) -> PurePosixPath:
    """Reject absolute paths and parent-directory escapes."""
    rel = PurePosixPath(filename.replace("\\", "/"))
    if not filename or rel.is_absolute() or ".." in rel.parts or rel == PurePosixPath("."):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid filename: {filename!r}",
        )
    return rel


def _write_sources(files: List[SourceFileInput], source_root: Path):
    for f in files:
        dest = source_root.joinpath(*_safe_relative(f.filename).parts)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(f.content, encoding="utf-8")


# =============================================================================
# Router
# =============================================================================

router = APIRouter()


@router.get("/platforms", response_model=PlatformsResponse)
def list_platforms(config: Configuration = Depends(get_configuration)):
    """List the platforms the build configuration knows about."""
    return PlatformsResponse(platforms=sorted(config.platforms))


@router.post(
    "/build/{platform}",
    response_class=Response,
    responses={200: {"content": {"application/octet-stream": {}}}},
    summary="Build the engine with the uploaded extensions",
)
def build_engine(
    platform: str,
    request: EngineBuildRequest,
    config: Configuration = Depends(get_configuration),
    settings: Settings = Depends(get_settings),
):
    """
    Compile every extension in the uploaded tree, link the engine for
    **platform**, and return the executable.

    On failure the response is HTTP 400 and ``detail`` is the raw error
    message, for toolchain failures the compiler/linker output verbatim.
    ``X-Extender-Symbols`` is the comma-joined symbol set, percent-encoded
    as UTF-8 so any extension name survives the Latin-1 header encoding.
    """
    if platform not in config.platforms:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown platform: {platform}",
        )

    for f in request.files:
        _safe_relative(f.filename)

    workspace_root = Path(settings.workspace_root) if settings.workspace_root else None

    with tempfile.TemporaryDirectory(prefix="extender-src-") as tmp:
        source_root = Path(tmp)
        try:
            _write_sources(request.files, source_root)
        except OSError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot write uploaded sources: {e}",
            )

        try:
            with EngineBuilder(
                config,
                platform,
                source_root,
                timeout=settings.toolchain_timeout,
                jobs=settings.COMPILE_JOBS,
                workspace_root=workspace_root,
            ) as builder:
                exe = builder.build()
                payload = exe.read_bytes()
                receipt = builder.receipt
        except ConfigurationError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except ExtenderError as e:
            logger.warning("Build failed for %s: %s", platform, e.kind.value)
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(
        "Built %s for %s (%d extension(s), %d bytes)",
        exe.name, platform, len(receipt.extensions), len(payload),
    )
    return Response(
        content=payload,
        media_type="application/octet-stream",
        headers={
            "Content-Disposition": f'attachment; filename="{exe.name}"',
            "X-Extender-Extensions": str(len(receipt.extensions)),
            "X-Extender-Symbols": quote(",".join(receipt.symbols), safe=","),
            "X-Extender-Sha256": receipt.artifact.sha256 if receipt.artifact else "",
        },
    )
