"""
Manifest scanner — discover extensions under a source root.

An extension is any directory holding a manifest file (``ext.manifest`` by
default).  The manifest is YAML; only ``name`` (the registration symbol) is
read, other keys are ignored.  Sources live in ``<extension>/src`` and
headers in ``<extension>/include``; both are optional.

Manifests are returned sorted by path so the symbol order, and therefore
the generated stub, is the same on every filesystem.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

import yaml

from extender import MANIFEST_NAME
from extender.errors import FilesystemError, ManifestDecodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtensionDescriptor:
    """One discovered extension."""

    name: str          # registration symbol
    root: Path         # absolute directory containing the manifest
    manifest: Path

    @property
    def src_dir(self) -> Path:
        return self.root / "src"

    @property
    def include_dir(self) -> Path:
        return self.root / "include"


def find_manifests(source_root: Path, manifest_name: str = MANIFEST_NAME) -> List[Path]:
    """Return every file named *manifest_name* below *source_root*, at any depth."""
    source_root = Path(source_root)
    if not source_root.is_dir():
        raise FilesystemError(f"Source root is not a directory: {source_root}")
    try:
        return sorted(
            p for p in source_root.rglob(manifest_name)
            if p.is_file() and p.name == manifest_name
        )
    except OSError as e:
        raise FilesystemError(f"Cannot list {source_root}: {e}") from e


def read_manifest(path: Path) -> ExtensionDescriptor:
    """Decode one manifest into an ExtensionDescriptor."""
    path = Path(path).resolve()
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ManifestDecodeError(path, f"not valid UTF-8: {e}") from e
    except OSError as e:
        raise FilesystemError(f"Cannot read manifest {path}: {e}") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ManifestDecodeError(path, f"invalid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ManifestDecodeError(path, "manifest must be a mapping")

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ManifestDecodeError(path, "missing or empty 'name'")

    return ExtensionDescriptor(name=name.strip(), root=path.parent, manifest=path)


def scan_extensions(
    source_root: Path,
    manifest_name: str = MANIFEST_NAME,
) -> List[ExtensionDescriptor]:
    """Find and decode every manifest under *source_root*, in path order."""
    manifests = find_manifests(source_root, manifest_name)
    logger.info(f"Found {len(manifests)} manifest(s) under {source_root}")
    return [read_manifest(m) for m in manifests]
