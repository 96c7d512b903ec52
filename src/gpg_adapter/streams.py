from __future__ import annotations

import io
import os
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any

from .errors import MissingFileError

# Longer strings are treated as payload without touching the filesystem
FILE_NAME_LENGTH_LIMIT = 200

InputValue = str | bytes | Path | IO[Any] | None


def is_stream(value: Any) -> bool:
    return value is not None and callable(getattr(value, "read", None))


def file_exists(path: str | Path | None, should_raise: bool = False) -> bool:
    """Check whether path names an existing regular file.

    Strings over FILE_NAME_LENGTH_LIMIT are never probed; they are payloads.
    """
    if not path:
        if should_raise:
            raise MissingFileError(str(path))
        return False

    exists = False
    if isinstance(path, Path) or len(path) <= FILE_NAME_LENGTH_LIMIT:
        try:
            exists = os.path.isfile(path)
        except (ValueError, OSError):
            # Embedded NUL bytes and similar make it text, not a path
            exists = False

    if not exists and should_raise:
        raise MissingFileError(path)

    return exists


def assert_file_exists(path: str | Path) -> bool:
    return file_exists(path, should_raise=True)


@contextmanager
def open_input(value: InputValue) -> Generator[IO[Any] | None, None, None]:
    """Normalize a payload, path or stream into a readable binary stream.

    Files opened here are closed when the context exits; streams handed in by
    the caller are left open.
    """
    if value is None or (isinstance(value, str | bytes) and not value):
        yield None
        return

    if is_stream(value):
        yield value  # type: ignore[misc]
        return

    if isinstance(value, Path):
        assert_file_exists(value)
        with open(value, "rb") as f:
            yield f
        return

    if isinstance(value, bytes):
        yield io.BytesIO(value)
        return

    if file_exists(value):
        with open(value, "rb") as f:
            yield f
        return

    yield io.BytesIO(str(value).encode("utf-8"))
