"""
Pipeline — build one engine executable for one platform from one source root.

    INITIALIZED → SCANNING → COMPILING(i/N) → ARCHIVING(i/N)
                → STUB_GENERATING → LINKING → COMPLETE

Any error moves the pipeline to FAILED, which is terminal: a builder runs
at most once, and a retry needs a fresh EngineBuilder (and so a fresh
workspace).  The caller owns the workspace lifetime, either via ``with``
or by calling ``dispose()``.
"""
import logging
from pathlib import Path
from typing import List, Optional

from extender.core.artifact import inspect_executable
from extender.core.compiler import ExtensionCompiler, ExtensionLibrary
from extender.core.linker import link_engine
from extender.core.manifest import ExtensionDescriptor, scan_extensions
from extender.core.process import ProcessExecutor
from extender.core.stub import collect_symbols, generate_stub
from extender.core.workspace import BuildWorkspace
from extender.errors import ExtenderError, FilesystemError
from extender.io.schema import (
    BuildError,
    BuildReceipt,
    ExtensionEntry,
    PipelineState,
    StateTransition,
    ToolInvocationEntry,
    now_iso,
)
from extender.policy.profile import Configuration

logger = logging.getLogger(__name__)


class EngineBuilder:
    """
    One build invocation.

    Usage::

        with EngineBuilder(config, "x86_64-linux", src_root) as builder:
            exe = builder.build()
            ...  # exe is valid until the block exits

    Args:
        config: Immutable build configuration, shared freely between builders.
        platform: Key into ``config.platforms``.
        source_root: Directory scanned for extension manifests.
        timeout: Per-tool timeout in seconds (None = unbounded).
        jobs: Concurrent compile processes per extension.
        workspace_root: Parent directory for the workspace (None = system temp).
    """

    def __init__(
        self,
        config: Configuration,
        platform: str,
        source_root: Path,
        timeout: Optional[float] = None,
        jobs: int = 1,
        workspace_root: Optional[Path] = None,
    ):
        self.config = config
        self.platform = platform
        self.profile = config.platform(platform)
        self.source_root = Path(source_root).resolve()

        self.workspace = BuildWorkspace(parent=workspace_root)
        self.executor = ProcessExecutor(timeout=timeout)
        self.compiler = ExtensionCompiler(
            config, self.profile, self.workspace, self.executor,
            jobs=jobs, source_root=self.source_root,
        )

        self.state = PipelineState.INITIALIZED
        self.extensions: List[ExtensionDescriptor] = []
        self.libraries: List[ExtensionLibrary] = []
        self.symbols: List[str] = []
        self.executable: Optional[Path] = None

        self.receipt = BuildReceipt(
            platform=platform,
            source_root=str(self.source_root),
            workspace=str(self.workspace.path),
        )
        self._transition(PipelineState.INITIALIZED)

    # -- context manager -------------------------------------------------------

    def __enter__(self) -> "EngineBuilder":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.dispose()
        return False

    # -----------------------------------------------------------------
    # State
    # -----------------------------------------------------------------

    def _transition(self, state: PipelineState, detail: Optional[str] = None):
        self.state = state
        self.receipt.status = state
        self.receipt.transitions.append(StateTransition(state=state, detail=detail))
        if detail:
            logger.info(f"[{self.platform}] {state.value} {detail}")
        else:
            logger.info(f"[{self.platform}] {state.value}")

    def _finalize_receipt(self):
        self.receipt.invocations = [
            ToolInvocationEntry(
                stage=inv.stage,
                command=inv.command,
                exit_code=inv.exit_code,
                duration_ms=inv.duration_ms,
            )
            for inv in self.executor.invocations
        ]
        self.receipt.finished_at = now_iso()

    def _fail(self, error: ExtenderError):
        self.receipt.error = BuildError(kind=error.kind.value, message=str(error))
        self._transition(PipelineState.FAILED)
        self._finalize_receipt()
        logger.error(f"Build failed for {self.platform} ({error.kind.value}):\n{error}")

    # -----------------------------------------------------------------
    # Build
    # -----------------------------------------------------------------

    def build(self) -> Path:
        """Run the whole pipeline and return the executable path."""
        if self.state != PipelineState.INITIALIZED:
            raise ExtenderError(
                f"Builder already ran (state {self.state.value}); "
                f"start a new build with a fresh builder"
            )

        try:
            exe = self._run()
        except ExtenderError as e:
            self._fail(e)
            raise
        except OSError as e:
            err = FilesystemError(str(e))
            self._fail(err)
            raise err from e
        except Exception as e:
            err = ExtenderError(f"{type(e).__name__}: {e}")
            self._fail(err)
            raise err from e

        self.executable = exe
        self._transition(PipelineState.COMPLETE)
        self._finalize_receipt()
        return exe

    def _run(self) -> Path:
        # ── 1. Discover extensions ───────────────────────────────────────
        self._transition(PipelineState.SCANNING)
        self.extensions = scan_extensions(self.source_root, self.config.manifest_name)
        self.receipt.extensions = [
            ExtensionEntry(name=ext.name, manifest=str(ext.manifest))
            for ext in self.extensions
        ]

        # ── 2. Compile + archive each extension ─────────────────────────
        total = len(self.extensions)
        for i, ext in enumerate(self.extensions):
            progress = f"{i + 1}/{total}"
            self._transition(PipelineState.COMPILING, progress)
            sources, objects = self.compiler.compile_extension(ext, i)

            self._transition(PipelineState.ARCHIVING, progress)
            lib = self.compiler.archive_extension(ext, sources, objects)
            self.libraries.append(lib)

            entry = self.receipt.extensions[i]
            entry.sources = [str(s) for s in lib.sources]
            entry.objects = [str(o) for o in lib.objects]
            entry.library = str(lib.path)

        # ── 3. Symbols + stub ────────────────────────────────────────────
        self._transition(PipelineState.STUB_GENERATING)
        self.symbols = collect_symbols(self.extensions, self.config.exported_symbols)
        self.receipt.symbols = list(self.symbols)

        stub = generate_stub(self.symbols, self.workspace.subdir("stub"))
        stub_objects = self.compiler.compile_sources(
            stub.as_list(),
            self.workspace.subdir("obj", "stub"),
            self.compiler.include_paths(),
        )
        self.receipt.stub_objects = [str(o) for o in stub_objects]

        # ── 4. Link ──────────────────────────────────────────────────────
        self._transition(PipelineState.LINKING)
        exe = link_engine(
            self.config,
            self.profile,
            self.executor,
            stub_objects,
            self.libraries,
            self.workspace.root,
        )
        if not exe.is_file():
            raise FilesystemError(f"Linker exited cleanly but produced no {exe}")
        self.receipt.artifact = inspect_executable(exe)
        return exe

    def dispose(self):
        """Release the workspace and every artifact in it."""
        self.workspace.dispose()
