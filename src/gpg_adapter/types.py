from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from .errors import GPGAdapterError

T = TypeVar("T")
U = TypeVar("U")


class ErrorKind(Enum):
    FILE_NOT_FOUND = "file_not_found"
    NO_PGP_DATA = "no_pgp_data"
    NO_SECRET_KEY = "no_secret_key"
    UNKNOWN = "unknown"
    INVALID_ARGUMENTS = "invalid_arguments"


class ListType(Enum):
    PUB = "pub"
    SEC = "sec"
    ALL = "all"


class KeyKind(Enum):
    PRIMARY = "primary"
    SUB = "sub"


@dataclass(frozen=True)
class ProcessOutcome:
    """Fully drained output of one finished gpg process."""

    primary_text: str
    secondary_text: str
    exit_code: int


@dataclass(frozen=True)
class ClassifiedResult:
    ok: bool
    output: str
    error_kind: ErrorKind | None = None
    error_message: str = ""
    exit_code: int = 0
    # Set when gpg could not be started at all
    error: GPGAdapterError | None = field(default=None, compare=False)

    def to_error(self, operation: str | None = None) -> GPGAdapterError:
        from .errors import GPGOperationError

        if self.error is not None:
            return self.error
        return GPGOperationError(
            self.error_message or "gpg reported an error",
            kind=self.error_kind or ErrorKind.UNKNOWN,
            operation=operation,
            gpg_output=self.output,
        )

    def to_result(self, operation: str | None = None) -> Result[str]:
        if self.ok:
            return Result.ok(self.output)
        return Result.err(self.to_error(operation))


@dataclass(frozen=True)
class UserId:
    username: str
    comment: str
    email: str


@dataclass(frozen=True)
class KeyRecord:
    kind: KeyKind
    fingerprint: str = ""
    user_id: str = ""
    subkey_line: str = ""
    key_line: str = ""

    def text_fields(self) -> tuple[str, ...]:
        return (self.key_line, self.fingerprint, self.user_id, self.subkey_line)

    def parsed_user_id(self) -> UserId:
        from .listing import parse_user_id

        return parse_user_id(self.user_id)


KeyListing = list[KeyRecord]


@dataclass(frozen=True)
class ListedKeys:
    pub: KeyListing = field(default_factory=list)
    sec: KeyListing = field(default_factory=list)

    def for_type(self, list_type: ListType) -> KeyListing:
        if list_type == ListType.PUB:
            return list(self.pub)
        if list_type == ListType.SEC:
            return list(self.sec)
        return list(self.pub) + list(self.sec)


@dataclass(frozen=True)
class GeneratedKey:
    fingerprint: str
    output: str


class SecureString:
    __slots__ = ("_value",)

    def __init__(self, value: str) -> None:
        self._value = value

    def get(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return "SecureString(****)"

    def __str__(self) -> str:
        return "****"

    def __len__(self) -> int:
        return len(self._value)

    def clear(self) -> None:
        self._value = ""


class Result(Generic[T]):
    __slots__ = ("_value", "_error", "_is_ok")

    def __init__(self, value: T | None, error: Exception | None, is_ok: bool) -> None:
        self._value = value
        self._error = error
        self._is_ok = is_ok

    @staticmethod
    def ok(value: T) -> Result[T]:
        return Result(value, None, True)

    @staticmethod
    def err(error: Exception) -> Result[T]:
        return Result(None, error, False)

    def is_ok(self) -> bool:
        return self._is_ok

    def is_err(self) -> bool:
        return not self._is_ok

    def unwrap(self) -> T:
        if not self._is_ok:
            raise self._error if self._error else RuntimeError("Result is error but no error set")
        return self._value  # type: ignore

    def unwrap_err(self) -> Exception:
        if self._is_ok:
            raise RuntimeError("Called unwrap_err on Ok result")
        return self._error  # type: ignore

    def unwrap_or(self, default: T) -> T:
        return self._value if self._is_ok else default  # type: ignore

    def map(self, fn: Callable[[T], U]) -> Result[U]:
        if self._is_ok:
            try:
                return Result.ok(fn(self._value))  # type: ignore
            except Exception as e:
                return Result.err(e)
        return Result.err(self._error)  # type: ignore
