"""
Runner — top-level build orchestration from paths / CLI.

Wraps EngineBuilder with the receipt writer and artifact export so a build
can be driven from the command line.  The workspace is always disposed
before ``run_build`` returns; the executable survives only if an output
directory was given.
"""
from __future__ import annotations

import argparse
import logging
import shutil
import sys
from pathlib import Path
from typing import Optional, Tuple

from extender.core.pipeline import EngineBuilder
from extender.errors import ExtenderError, FilesystemError
from extender.io.schema import BuildReceipt
from extender.io.writer import write_receipt
from extender.policy.profile import Configuration, load_configuration

logger = logging.getLogger(__name__)


def run_build(
    config: Configuration,
    platform: str,
    source_root: Path,
    output_dir: Optional[Path] = None,
    timeout: Optional[float] = None,
    jobs: int = 1,
    workspace_root: Optional[Path] = None,
) -> Tuple[BuildReceipt, Optional[Path]]:
    """
    Build the engine for *platform* from *source_root*.

    Parameters
    ----------
    config : Configuration
        Build configuration (platform profiles, context, symbols).
    platform : str
        Platform key in ``config.platforms``.
    source_root : Path
        Directory scanned for extension manifests.
    output_dir : Path, optional
        Where to copy the executable and write build_receipt.json.  If
        None, nothing is written and the executable is discarded with the
        workspace.
    timeout : float, optional
        Per-tool timeout in seconds.
    jobs : int
        Concurrent compile processes per extension.
    workspace_root : Path, optional
        Parent directory for the temporary workspace.

    Returns
    -------
    (BuildReceipt, exported executable path or None)

    Raises
    ------
    ExtenderError
        On any pipeline failure, after the failed receipt was written.
    """
    with EngineBuilder(
        config,
        platform,
        source_root,
        timeout=timeout,
        jobs=jobs,
        workspace_root=workspace_root,
    ) as builder:
        try:
            exe = builder.build()
        except ExtenderError:
            if output_dir:
                write_receipt(builder.receipt, output_dir)
            raise

        exported: Optional[Path] = None
        if output_dir:
            output_dir.mkdir(parents=True, exist_ok=True)
            exported = output_dir / exe.name
            try:
                shutil.copy2(exe, exported)
            except OSError as e:
                raise FilesystemError(f"Cannot export {exe} to {output_dir}: {e}") from e
            write_receipt(builder.receipt, output_dir)
            logger.info(f"Engine written to {exported}")

        return builder.receipt, exported


# ── CLI ──────────────────────────────────────────────────────────────────────

def main():
    """CLI entry point for extender."""
    parser = argparse.ArgumentParser(
        description="extender — build an engine executable with native extensions",
    )
    parser.add_argument("platform", help="Target platform (key in the configuration)")
    parser.add_argument("source_root", type=Path, help="Directory containing extensions")
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Build configuration YAML (default: bundled build.yml)",
    )
    parser.add_argument(
        "-o", "--output-dir",
        type=Path,
        default=None,
        help="Directory to receive the executable and build_receipt.json",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-tool timeout in seconds",
    )
    parser.add_argument(
        "-j", "--jobs",
        type=int,
        default=1,
        help="Concurrent compile processes per extension",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_configuration(args.config) if args.config else Configuration.default()
        receipt, exported = run_build(
            config,
            args.platform,
            args.source_root,
            output_dir=args.output_dir,
            timeout=args.timeout,
            jobs=args.jobs,
        )
    except ExtenderError as e:
        # Raw toolchain output is the diagnostic
        print(str(e), file=sys.stderr)
        sys.exit(1)

    print(f"Extensions: {len(receipt.extensions)}")
    print(f"Symbols: {len(receipt.symbols)}")
    print(f"Tool invocations: {len(receipt.invocations)}")
    if exported:
        print(f"Engine written to: {exported}")


if __name__ == "__main__":
    main()
