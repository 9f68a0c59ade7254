"""
Engine linker — stub objects + extension libraries → the engine executable.

The link template receives:

  tgt         the executable path, ``<workspace>/<binary_name><exe_ext>``
  objs        stub object files
  ext_libs    one static library per extension, in discovery order
  lib_paths   platform library search paths (rendered against the context)
  libs        platform engine / third-party libraries
  frameworks  platform frameworks
"""
import logging
from pathlib import Path
from typing import List

from extender.core.compiler import ExtensionLibrary
from extender.core.process import ProcessExecutor
from extender.core.template import render_args, render_each
from extender.policy.profile import Configuration, PlatformProfile

logger = logging.getLogger(__name__)


def executable_path(workspace_root: Path, config: Configuration, profile: PlatformProfile) -> Path:
    return workspace_root / f"{config.binary_name}{profile.exe_ext}"


def link_engine(
    config: Configuration,
    profile: PlatformProfile,
    executor: ProcessExecutor,
    stub_objects: List[Path],
    libraries: List[ExtensionLibrary],
    workspace_root: Path,
) -> Path:
    """Render the link template, run it, and return the executable path."""
    exe = executable_path(workspace_root, config, profile)

    context = dict(config.context)
    context.update(
        tgt=exe,
        objs=[str(o) for o in stub_objects],
        ext_libs=[str(lib.path) for lib in libraries],
        lib_paths=render_each(profile.lib_paths, config.context),
        libs=list(profile.libs),
        frameworks=list(profile.frameworks),
    )

    args = render_args(profile.link, context)
    logger.info(
        f"Linking {exe.name} ({len(stub_objects)} stub object(s), "
        f"{len(libraries)} extension librar{'y' if len(libraries) == 1 else 'ies'})"
    )
    executor.run(args, stage="link")
    return exe
