"""Structured error types with recovery hints for gpg operations.

Every failure surfaced by the adapter carries an ``ErrorKind`` so callers can
branch on a stable name instead of gpg's raw, version-dependent text. The raw
text is kept alongside for diagnostics.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from .types import ErrorKind


@dataclass
class RecoveryHint:
    """A suggested recovery action for an error."""

    action: str
    command: str | None = None
    documentation_url: str | None = None

    def __str__(self) -> str:
        result = self.action
        if self.command:
            result += f"\n  Command: {self.command}"
        if self.documentation_url:
            result += f"\n  See: {self.documentation_url}"
        return result


@dataclass
class GPGAdapterError(Exception):
    """Base error type with recovery hints."""

    message: str
    kind: ErrorKind
    recovery_hints: list[RecoveryHint] = field(default_factory=list)
    cause: Exception | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __str__(self) -> str:
        return self.message

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def format_full(self) -> str:
        """Format error with all recovery hints."""
        lines = [f"Error: {self.message}"]

        if self.cause:
            lines.append(f"Caused by: {self.cause}")

        if self.recovery_hints:
            lines.append("\nRecovery options:")
            for i, hint in enumerate(self.recovery_hints, 1):
                lines.append(f"  {i}. {hint}")

        return "\n".join(lines)


class GPGOperationError(GPGAdapterError):
    """A gpg invocation the classifier judged as failed."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        operation: str | None = None,
        gpg_output: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        hints = list(KIND_HINTS.get(kind, []))
        if gpg_output:
            hints.extend(get_recovery_hints_for_message(gpg_output))

        super().__init__(
            message=message,
            kind=kind,
            recovery_hints=hints,
            cause=cause,
        )
        self.operation = operation
        self.gpg_output = gpg_output


class MissingFileError(GPGAdapterError):
    """A referenced input path does not exist."""

    def __init__(self, path: Path | str, cause: Exception | None = None) -> None:
        super().__init__(
            message=f'File "{path}" does not exist',
            kind=ErrorKind.FILE_NOT_FOUND,
            recovery_hints=[RecoveryHint(f"Check the path {path}")],
            cause=cause,
        )
        self.path = path


class InvalidArgumentsError(GPGAdapterError):
    """Operation parameters failed their precondition checks."""

    def __init__(self, message: str = "Invalid args", operation: str | None = None) -> None:
        super().__init__(message=message, kind=ErrorKind.INVALID_ARGUMENTS)
        self.operation = operation


class ToolNotFoundError(GPGAdapterError):
    """The gpg executable could not be started."""

    def __init__(self, binary: str, cause: Exception | None = None) -> None:
        super().__init__(
            message=f"{binary} not found in PATH",
            kind=ErrorKind.UNKNOWN,
            recovery_hints=[
                RecoveryHint(
                    "Install GnuPG",
                    command=(
                        "brew install gnupg" if sys.platform == "darwin" else "apt install gnupg2"
                    ),
                    documentation_url="https://gnupg.org/download/",
                ),
                RecoveryHint(
                    "Point the adapter at a gpg binary", command="--gpg-binary /path/to/gpg"
                ),
            ],
            cause=cause,
        )
        self.binary = binary


KIND_HINTS: dict[ErrorKind, list[RecoveryHint]] = {
    ErrorKind.FILE_NOT_FOUND: [RecoveryHint("Check that the input file exists and is readable")],
    ErrorKind.NO_PGP_DATA: [
        RecoveryHint("Make sure the input is an armored or binary OpenPGP key or message"),
    ],
    ErrorKind.NO_SECRET_KEY: [
        RecoveryHint("List available secret keys", command="gpg --list-secret-keys"),
        RecoveryHint("Import the matching secret key before decrypting"),
    ],
}

# Exit status the CLI returns for each kind of failure
EXIT_CODES: dict[ErrorKind, int] = {
    ErrorKind.UNKNOWN: 1,
    ErrorKind.INVALID_ARGUMENTS: 2,
    ErrorKind.FILE_NOT_FOUND: 3,
    ErrorKind.NO_PGP_DATA: 4,
    ErrorKind.NO_SECRET_KEY: 5,
}


# Error logging


class ErrorLogger:
    """Logger for structured error tracking."""

    def __init__(self, log_path: Path | None = None) -> None:
        self._log_path = log_path or Path.home() / ".gpg-adapter" / "errors.log"
        self._logger = logging.getLogger("gpg-adapter.errors")
        self._setup_logging()

    def _setup_logging(self) -> None:
        """Configure file logging."""
        self._log_path.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.FileHandler(self._log_path)
        handler.setLevel(logging.WARNING)
        formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
        handler.setFormatter(formatter)

        self._logger.addHandler(handler)
        self._logger.setLevel(logging.WARNING)

    def log_error(self, error: GPGAdapterError) -> None:
        """Log an error with full context."""
        context = {
            "kind": error.kind.name,
            "error_message": error.message,
            "timestamp": error.timestamp.isoformat(),
        }
        if error.cause:
            context["cause"] = str(error.cause)

        self._logger.error(
            f"[{error.kind.name}] {error.format_full()}",
            extra=context,
        )


# Common gpg messages and their solutions

COMMON_ERROR_PATTERNS: dict[str, list[RecoveryHint]] = {
    "permission denied": [
        RecoveryHint("Check GNUPGHOME directory permissions"),
    ],
    "inappropriate ioctl for device": [
        RecoveryHint("Allow loopback pinentry", command="gpg-adapter setup-home"),
    ],
    "bad passphrase": [
        RecoveryHint("Check the passphrase for this key"),
    ],
    "agent": [
        RecoveryHint("Restart GPG agent", command="gpgconf --kill gpg-agent"),
    ],
    "not found": [
        RecoveryHint("List keys in the keyring", command="gpg-adapter list"),
    ],
}


def get_recovery_hints_for_message(error_message: str) -> list[RecoveryHint]:
    """Get recovery hints based on error message patterns."""
    hints = []
    lower_message = error_message.lower()

    for pattern, pattern_hints in COMMON_ERROR_PATTERNS.items():
        if pattern in lower_message:
            hints.extend(pattern_hints)

    return hints


def wrap_exception(
    exception: Exception,
    kind: ErrorKind = ErrorKind.UNKNOWN,
) -> GPGAdapterError:
    """Wrap a generic exception in a GPGAdapterError with recovery hints."""
    if isinstance(exception, GPGAdapterError):
        return exception

    message = str(exception)
    hints = get_recovery_hints_for_message(message)

    return GPGAdapterError(
        message=message,
        kind=kind,
        recovery_hints=hints,
        cause=exception,
    )
