"""
Build workspace — disposable directory owning every artifact of one build.

Usage::

    with BuildWorkspace() as ws:
        ...  # objects, libraries and the executable live under ws.root

The directory is removed recursively when the block exits, whether it
exits normally or by exception.  ``dispose()`` may also be called directly
and is idempotent.
"""
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from extender.errors import FilesystemError

logger = logging.getLogger(__name__)


class BuildWorkspace:
    """A freshly created temporary directory for one build invocation."""

    def __init__(self, parent: Optional[Path] = None, prefix: str = "engine"):
        try:
            if parent is not None:
                Path(parent).mkdir(parents=True, exist_ok=True)
            self._root: Optional[Path] = Path(
                tempfile.mkdtemp(prefix=prefix, dir=str(parent) if parent else None)
            )
        except OSError as e:
            raise FilesystemError(f"Cannot create build workspace: {e}") from e
        self._path = self._root
        logger.debug(f"Created workspace {self._root}")

    # -- context manager -------------------------------------------------------

    def __enter__(self) -> "BuildWorkspace":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.dispose()
        return False

    # -- public API ------------------------------------------------------------

    @property
    def root(self) -> Path:
        if self._root is None:
            raise FilesystemError(f"Workspace {self._path} was disposed")
        return self._root

    @property
    def path(self) -> Path:
        """Location of the workspace, still valid after disposal."""
        return self._path

    @property
    def disposed(self) -> bool:
        return self._root is None

    def subdir(self, *parts: str) -> Path:
        """Return (and create) a directory below the workspace root."""
        d = self.root.joinpath(*parts)
        try:
            d.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Cannot create {d}: {e}") from e
        return d

    def dispose(self):
        """Remove the workspace and everything in it."""
        if self._root is None:
            return
        root = self._root
        try:
            shutil.rmtree(root)
        except FileNotFoundError:
            pass
        except OSError as e:
            # still marked live so a later dispose() retries
            raise FilesystemError(f"Cannot remove workspace {root}: {e}") from e
        self._root = None
        logger.info(f"Cleaned up workspace: {root}")
