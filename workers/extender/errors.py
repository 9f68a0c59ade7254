"""
Errors — the failure kinds a build invocation can end in.

Every error is fatal to the current invocation.  The message is the only
diagnostic payload: for toolchain failures it is the captured compiler /
archiver / linker output, verbatim.
"""
from enum import Enum, unique
from pathlib import Path
from typing import List, Optional


@unique
class ErrorKind(str, Enum):
    CONFIGURATION = "CONFIGURATION"
    MANIFEST_DECODE = "MANIFEST_DECODE"
    TEMPLATE_RESOLUTION = "TEMPLATE_RESOLUTION"
    FILESYSTEM = "FILESYSTEM"
    TOOLCHAIN = "TOOLCHAIN"
    TOOLCHAIN_TIMEOUT = "TOOLCHAIN_TIMEOUT"
    INTERNAL = "INTERNAL"


class ExtenderError(Exception):
    """Base class for all build pipeline errors."""

    kind = ErrorKind.INTERNAL


class ConfigurationError(ExtenderError):
    """Configuration file is missing, malformed, or names no such platform."""

    kind = ErrorKind.CONFIGURATION


class ManifestDecodeError(ExtenderError):
    """An extension manifest could not be decoded into a descriptor."""

    kind = ErrorKind.MANIFEST_DECODE

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class TemplateResolutionError(ExtenderError):
    """A template referenced a variable missing from the context."""

    kind = ErrorKind.TEMPLATE_RESOLUTION


class FilesystemError(ExtenderError):
    """Workspace creation/removal, file copy, or directory listing failed."""

    kind = ErrorKind.FILESYSTEM


class ToolchainError(ExtenderError):
    """
    An external tool exited nonzero (or could not be started).

    ``str(err)`` is exactly the merged stdout/stderr of the tool.
    """

    kind = ErrorKind.TOOLCHAIN

    def __init__(
        self,
        output: str,
        args: Optional[List[str]] = None,
        exit_code: Optional[int] = None,
    ):
        self.output = output
        self.command = list(args or [])
        self.exit_code = exit_code
        super().__init__(output)


class ToolchainTimeoutError(ToolchainError):
    """An external tool ran longer than the configured timeout and was killed."""

    kind = ErrorKind.TOOLCHAIN_TIMEOUT
