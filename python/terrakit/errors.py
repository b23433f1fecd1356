"""
terrakit/errors.py

Exception hierarchy shared by the decoders, the command runner and the
Terraform client. Every error raised on purpose by this package derives from
TerraformError so callers can catch the whole family at once.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class TerraformError(Exception):
    """Base class for all terrakit errors."""


class DecodeErrorKind(str, Enum):
    """Sub-kinds of DecodeError."""

    TYPE_MISMATCH = "type_mismatch"
    UNKNOWN_TYPE = "unknown_type"
    MALFORMED = "malformed"


class DecodeError(TerraformError):
    """A JSON document did not have the expected shape.

    Attributes:
        kind (DecodeErrorKind): What went wrong.
        path (str): Dotted location of the offending key, or "" for the document root.
    """

    def __init__(self, message: str, kind: DecodeErrorKind, path: str = "") -> None:
        """
        Initialize a DecodeError.

        Args:
            message (str): Human readable description.
            kind (DecodeErrorKind): The decode failure category.
            path (str): Dotted path into the document, if known.
        """
        super().__init__(f"{path}: {message}" if path else message)
        self.kind = kind
        self.path = path


class ProcessError(TerraformError):
    """Represents a failure when executing a command.

    Attributes:
        return_code (Optional[int]): The exit code, or None if the process never started.
        stdout (bytes): Whatever stdout was buffered before the failure.
        stderr (bytes): Whatever stderr was buffered before the failure.
    """

    def __init__(
        self,
        message: str,
        return_code: Optional[int] = None,
        stdout: bytes = b"",
        stderr: bytes = b"",
    ) -> None:
        """
        Initialize a ProcessError.

        Args:
            message (str): The error message describing the command failure.
            return_code (Optional[int]): The exit code if known.
            stdout (bytes): Captured stdout, empty unless the stream was buffered.
            stderr (bytes): Captured stderr, empty unless the stream was buffered.
        """
        super().__init__(message)
        self.return_code = return_code
        self.stdout = stdout
        self.stderr = stderr


class UnexpectedOutput(TerraformError):
    """Plain-text command output did not match the expected line grammar."""

    def __init__(self, message: str, output: str) -> None:
        super().__init__(message)
        self.output = output


class WorkingDirectoryError(TerraformError):
    """Creating, writing or removing the working directory failed."""


class DownloadError(TerraformError):
    """Fetching or unpacking the terraform release archive failed."""
