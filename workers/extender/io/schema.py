"""
BuildReceipt schema — one JSON record per build invocation.

Records what was discovered, every toolchain command that ran, the symbol
set baked into the stub, the resulting executable, and, on failure, the
error kind and its raw message.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from extender import EXTENDER_VERSION, PACKAGE_NAME, SCHEMA_VERSION


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Enums
# =============================================================================

class PipelineState(str, Enum):
    """Build pipeline states; FAILED and COMPLETE are terminal."""
    INITIALIZED = "INITIALIZED"
    SCANNING = "SCANNING"
    COMPILING = "COMPILING"
    ARCHIVING = "ARCHIVING"
    STUB_GENERATING = "STUB_GENERATING"
    LINKING = "LINKING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


# =============================================================================
# Entries
# =============================================================================

class StateTransition(BaseModel):
    state: PipelineState
    detail: Optional[str] = None  # e.g. "2/3" while compiling extensions
    at: str = Field(default_factory=now_iso)


class ToolInvocationEntry(BaseModel):
    stage: str                    # compile | archive | link
    command: List[str]
    exit_code: int
    duration_ms: int


class ExtensionEntry(BaseModel):
    """One discovered extension and what was built from it."""
    name: str
    manifest: str
    sources: List[str] = Field(default_factory=list)
    objects: List[str] = Field(default_factory=list)
    library: Optional[str] = None


class ElfMeta(BaseModel):
    elf_class: int                # 32 or 64
    machine: str                  # e.g. "EM_X86_64"
    elf_type: str                 # e.g. "ET_EXEC", "ET_DYN"
    endianness: str
    build_id: Optional[str] = None


class ArtifactMeta(BaseModel):
    """The linked engine executable."""
    path: str
    sha256: str
    size_bytes: int
    elf: Optional[ElfMeta] = None


class BuildError(BaseModel):
    kind: str
    message: str


# =============================================================================
# Receipt
# =============================================================================

class BuildReceipt(BaseModel):
    """Single authoritative record of one build invocation."""

    package_name: str = PACKAGE_NAME
    extender_version: str = EXTENDER_VERSION
    schema_version: str = SCHEMA_VERSION

    platform: str
    source_root: str
    workspace: Optional[str] = None

    status: PipelineState = PipelineState.INITIALIZED
    transitions: List[StateTransition] = Field(default_factory=list)

    extensions: List[ExtensionEntry] = Field(default_factory=list)
    symbols: List[str] = Field(default_factory=list)
    stub_objects: List[str] = Field(default_factory=list)
    invocations: List[ToolInvocationEntry] = Field(default_factory=list)

    artifact: Optional[ArtifactMeta] = None
    error: Optional[BuildError] = None

    created_at: str = Field(default_factory=now_iso)
    finished_at: Optional[str] = None
