"""
Artifact inspection — hash the linked executable and read its ELF header.

Non-ELF outputs (Mach-O, PE) are not an error: they simply carry no ELF
metadata.  No symbol or DWARF parsing happens here.
"""
import hashlib
import logging
from pathlib import Path
from typing import Optional

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile

from extender.io.schema import ArtifactMeta, ElfMeta

logger = logging.getLogger(__name__)


def hash_file(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            h.update(chunk)
    return h.hexdigest()


def _read_build_id(elffile: ELFFile) -> Optional[str]:
    """Read GNU build-id from .note.gnu.build-id section."""
    section = elffile.get_section_by_name(".note.gnu.build-id")
    if section is None:
        return None
    for note in section.iter_notes():
        if note["n_type"] == "NT_GNU_BUILD_ID":
            return note["n_desc"]
    return None


def read_elf_meta(path: Path) -> Optional[ElfMeta]:
    """ELF header facts for *path*, or None if it is not an ELF file."""
    with open(path, "rb") as f:
        if f.read(4) != b"\x7fELF":
            return None
        f.seek(0)
        try:
            elffile = ELFFile(f)
            return ElfMeta(
                elf_class=elffile.elfclass,
                machine=str(elffile.header["e_machine"]),
                elf_type=str(elffile.header["e_type"]),
                endianness="little" if elffile.little_endian else "big",
                build_id=_read_build_id(elffile),
            )
        except ELFError as e:
            logger.warning(f"ELF validation failed for {path}: {e}")
            return None


def inspect_executable(path: Path) -> ArtifactMeta:
    """Describe the linked executable for the build receipt."""
    path = Path(path)
    return ArtifactMeta(
        path=str(path),
        sha256=hash_file(path),
        size_bytes=path.stat().st_size,
        elf=read_elf_meta(path),
    )
