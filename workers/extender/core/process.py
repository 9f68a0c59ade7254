"""
Process executor — run one external toolchain command.

stdout and stderr are merged into a single capture.  Exit code zero is
success and returns the capture; anything else raises ToolchainError whose
message is the capture, verbatim.
"""
import logging
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from extender.errors import ToolchainError, ToolchainTimeoutError

logger = logging.getLogger(__name__)


@dataclass
class ToolInvocation:
    """Record of a single toolchain run."""

    stage: str
    command: List[str]
    exit_code: int
    duration_ms: int


@dataclass
class ProcessExecutor:
    """
    Spawns toolchain processes one at a time and records each run.

    ``timeout`` is in seconds; ``None`` blocks until the tool exits.
    """

    timeout: Optional[float] = None
    cwd: Optional[Path] = None
    invocations: List[ToolInvocation] = field(default_factory=list)

    def run(self, args: Sequence[str], stage: str = "tool") -> str:
        """Execute *args* and return the merged output on exit code zero."""
        cmd = [str(a) for a in args]
        if not cmd:
            raise ToolchainError(f"Empty command line for stage '{stage}'", cmd)

        logger.debug(f"[{stage}] {cmd}")

        t0 = time.monotonic()
        try:
            result = subprocess.run(
                cmd,
                cwd=str(self.cwd) if self.cwd else None,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.timeout,
                text=True,
                errors="replace",
            )
        except subprocess.TimeoutExpired as e:
            duration = int((time.monotonic() - t0) * 1000)
            self._record(stage, cmd, -1, duration)
            partial = e.output or ""
            if isinstance(partial, bytes):
                partial = partial.decode(errors="replace")
            raise ToolchainTimeoutError(
                f"{partial}TIMEOUT after {self.timeout}s: {cmd[0]}",
                cmd,
                None,
            ) from e
        except OSError as e:
            duration = int((time.monotonic() - t0) * 1000)
            self._record(stage, cmd, -1, duration)
            raise ToolchainError(f"Cannot execute {cmd[0]}: {e}", cmd, None) from e

        duration = int((time.monotonic() - t0) * 1000)
        self._record(stage, cmd, result.returncode, duration)

        output = result.stdout or ""
        if result.returncode != 0:
            raise ToolchainError(output, cmd, result.returncode)

        if output:
            logger.debug(f"[{stage}] output:\n{output}")
        return output

    def _record(self, stage: str, cmd: List[str], exit_code: int, duration_ms: int):
        self.invocations.append(ToolInvocation(
            stage=stage,
            command=cmd,
            exit_code=exit_code,
            duration_ms=duration_ms,
        ))
