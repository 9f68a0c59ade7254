"""
Symbols + stub — collect registration symbols and emit the stub sources.

The symbol set is the extension symbols in discovery order followed by the
configured engine symbols in configuration order.  Nothing is
de-duplicated: a repeated name produces a repeated registration call and
is left for the linker to reject.
"""
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List

from extender.core.manifest import ExtensionDescriptor
from extender.core.template import render_text
from extender.errors import FilesystemError
from extender.policy.profile import RESOURCES_DIR

logger = logging.getLogger(__name__)

MAIN_TEMPLATE = RESOURCES_DIR / "main.cpp"
EXPORTED_TEMPLATE = RESOURCES_DIR / "exported_symbols.cpp"


def collect_symbols(
    extensions: Iterable[ExtensionDescriptor],
    exported_symbols: Iterable[str],
) -> List[str]:
    """Extension symbols first, then the global engine symbols."""
    symbols = [ext.name for ext in extensions]
    symbols.extend(exported_symbols)
    return symbols


@dataclass(frozen=True)
class StubSources:
    main: Path
    exported: Path

    def as_list(self) -> List[Path]:
        return [self.main, self.exported]


def generate_stub(symbols: List[str], stub_dir: Path) -> StubSources:
    """
    Write ``main.cpp`` (verbatim copy) and ``exported_symbols.cpp``
    (one registration call per symbol, in order) into *stub_dir*.
    """
    main_path = stub_dir / MAIN_TEMPLATE.name
    exported_path = stub_dir / EXPORTED_TEMPLATE.name

    try:
        shutil.copyfile(MAIN_TEMPLATE, main_path)
        template = EXPORTED_TEMPLATE.read_text(encoding="utf-8")
    except OSError as e:
        raise FilesystemError(f"Cannot prepare stub sources in {stub_dir}: {e}") from e

    exported = render_text(template, {"symbols": list(symbols)})

    try:
        exported_path.write_text(exported, encoding="utf-8")
    except OSError as e:
        raise FilesystemError(f"Cannot write {exported_path}: {e}") from e

    logger.info(f"Generated stub with {len(symbols)} symbol(s)")
    return StubSources(main=main_path, exported=exported_path)
