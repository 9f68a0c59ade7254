"""
Extension compiler — sources → objects → one static library per extension.

Every file below ``<extension>/src`` is a compilation unit, whatever its
suffix.  Each object is named ``<basename>_<index>.o`` after the source's
position in the (sorted) enumeration, inside an object directory private
to the extension.  Compilation is fail-fast: the first toolchain error
aborts the extension and, with it, the build.
"""
import logging
import os
import tempfile
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from extender.core.manifest import ExtensionDescriptor
from extender.core.process import ProcessExecutor
from extender.core.template import render_args, render_each
from extender.core.workspace import BuildWorkspace
from extender.errors import FilesystemError
from extender.policy.profile import Configuration, PlatformProfile

logger = logging.getLogger(__name__)


@dataclass
class ExtensionLibrary:
    """The static library built for one extension."""

    name: str
    path: Path
    sources: List[Path] = field(default_factory=list)
    objects: List[Path] = field(default_factory=list)


def list_sources(src_dir: Path) -> List[Path]:
    """Every file below *src_dir*, sorted; empty if the directory is absent."""
    if not src_dir.is_dir():
        return []
    try:
        return sorted(p for p in src_dir.rglob("*") if p.is_file())
    except OSError as e:
        raise FilesystemError(f"Cannot list sources in {src_dir}: {e}") from e


def object_name(source: Path, index: int) -> str:
    return f"{source.name}_{index}.o"


class ExtensionCompiler:
    """
    Compiles and archives extensions for one platform profile.

    ``jobs`` bounds the number of concurrent compile processes per
    extension; ``1`` compiles strictly one file at a time.
    """

    def __init__(
        self,
        config: Configuration,
        profile: PlatformProfile,
        workspace: BuildWorkspace,
        executor: ProcessExecutor,
        jobs: int = 1,
        source_root: Optional[Path] = None,
    ):
        self.config = config
        self.profile = profile
        self.workspace = workspace
        self.executor = executor
        self.jobs = max(1, jobs)
        self.source_root = Path(source_root).resolve() if source_root else None

    # -----------------------------------------------------------------
    # Contexts
    # -----------------------------------------------------------------

    def include_paths(self, extension: Optional[ExtensionDescriptor] = None) -> List[str]:
        """
        Platform includes rendered against the global context, then the
        extension's own ``include``, then ``<source_root>/include`` last.
        """
        includes = render_each(self.profile.includes, self.config.context)
        if extension is not None:
            includes.append(str(extension.include_dir))
        if self.source_root is not None:
            includes.append(str(self.source_root / "include"))
        return includes

    def _context(self, **values: Any) -> Dict[str, Any]:
        ctx: Dict[str, Any] = dict(self.config.context)
        ctx.update(values)
        return ctx

    # -----------------------------------------------------------------
    # Compile
    # -----------------------------------------------------------------

    def compile_file(self, source: Path, target: Path, includes: List[str]) -> Path:
        """Compile one source file into *target*."""
        args = render_args(
            self.profile.compile,
            self._context(src=source, tgt=target, includes=includes),
        )
        self.executor.run(args, stage="compile")
        return target

    def compile_sources(
        self,
        sources: List[Path],
        obj_dir: Path,
        includes: List[str],
    ) -> List[Path]:
        """Compile *sources* into *obj_dir*; objects are returned in source order."""
        units: List[Tuple[Path, Path]] = [
            (src, obj_dir / object_name(src, i)) for i, src in enumerate(sources)
        ]

        if self.jobs == 1 or len(units) <= 1:
            for src, obj in units:
                self.compile_file(src, obj, includes)
            return [obj for _, obj in units]

        with ThreadPoolExecutor(max_workers=self.jobs) as pool:
            futures = [
                pool.submit(self.compile_file, src, obj, includes)
                for src, obj in units
            ]
            _, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for f in pending:
                f.cancel()

        for f in futures:
            if not f.cancelled() and f.exception() is not None:
                raise f.exception()
        return [obj for _, obj in units]

    # -----------------------------------------------------------------
    # Archive
    # -----------------------------------------------------------------

    def _allocate_library(self, lib_dir: Path) -> Path:
        try:
            fd, path = tempfile.mkstemp(prefix="lib", suffix=".a", dir=str(lib_dir))
            os.close(fd)
            # Archivers refuse to update an empty non-archive file
            os.unlink(path)
        except OSError as e:
            raise FilesystemError(f"Cannot allocate library path in {lib_dir}: {e}") from e
        return Path(path)

    def archive(self, objects: List[Path], lib_dir: Path) -> Path:
        """Archive *objects* into a freshly allocated static library."""
        lib = self._allocate_library(lib_dir)
        args = render_args(
            self.profile.lib,
            self._context(tgt=lib, objs=[str(o) for o in objects]),
        )
        self.executor.run(args, stage="archive")
        return lib

    # -----------------------------------------------------------------
    # Extension
    # -----------------------------------------------------------------

    def compile_extension(
        self,
        extension: ExtensionDescriptor,
        index: int,
    ) -> Tuple[List[Path], List[Path]]:
        """
        Compile every source of *extension*.

        Returns (sources, objects).  An extension without a ``src``
        directory yields two empty lists.
        """
        sources = list_sources(extension.src_dir)
        obj_dir = self.workspace.subdir("obj", f"{index}_{extension.name}")
        logger.info(
            f"Compiling extension '{extension.name}' ({len(sources)} source(s))"
        )
        objects = self.compile_sources(sources, obj_dir, self.include_paths(extension))
        return sources, objects

    def archive_extension(
        self,
        extension: ExtensionDescriptor,
        sources: List[Path],
        objects: List[Path],
    ) -> ExtensionLibrary:
        """Archive the objects of *extension* into its static library."""
        lib = self.archive(objects, self.workspace.subdir("lib"))
        logger.info(f"Archived extension '{extension.name}' -> {lib.name}")
        return ExtensionLibrary(
            name=extension.name,
            path=lib,
            sources=sources,
            objects=objects,
        )
