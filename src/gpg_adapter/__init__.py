"""Typed results for gpg key management, encryption and decryption.

gpg is run as a subprocess; its loosely structured output is classified into
success or a named error kind, and key listings are parsed into records.
"""

from .classifier import OutputClassifier, classify
from .config import AdapterSettings, ensure_gnupg_dir, get_gnupghome, setup_home
from .environment import (
    CheckResult,
    EnvironmentReport,
    detect_gpg_version,
    parse_gpg_version,
    rules_for_installed_gpg,
    verify_environment,
)
from .errors import (
    EXIT_CODES,
    ErrorLogger,
    GPGAdapterError,
    GPGOperationError,
    InvalidArgumentsError,
    MissingFileError,
    RecoveryHint,
    ToolNotFoundError,
    get_recovery_hints_for_message,
    wrap_exception,
)
from .gpg_ops import GPGOperations
from .keyconfig import build_batch_parameters, build_user_id
from .listing import (
    KEY_BLOCK_WINDOW,
    ColonListingStrategy,
    LinePatterns,
    ListingStrategy,
    WindowedListingStrategy,
    parse_key_listing,
    parse_keys,
    parse_user_id,
)
from .main import run
from .matcher import find_all, find_first, key_exists
from .patterns import (
    DEFAULT_RULE_SET,
    GNUPG_2_2,
    GNUPG_2_4,
    RULE_SETS,
    PatternRule,
    RuleSet,
    get_rule_set,
    rule_set_for_version,
)
from .process import ProcessAdapter
from .prompts import MockPrompts, Prompts
from .streams import FILE_NAME_LENGTH_LIMIT, file_exists, is_stream, open_input
from .types import (
    ClassifiedResult,
    ErrorKind,
    GeneratedKey,
    KeyKind,
    KeyListing,
    KeyRecord,
    ListedKeys,
    ListType,
    ProcessOutcome,
    Result,
    SecureString,
    UserId,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    "OutputClassifier",
    "classify",
    "parse_key_listing",
    "parse_keys",
    "parse_user_id",
    "find_all",
    "find_first",
    "key_exists",
    # Listing strategies
    "KEY_BLOCK_WINDOW",
    "ColonListingStrategy",
    "LinePatterns",
    "ListingStrategy",
    "WindowedListingStrategy",
    # Rules
    "DEFAULT_RULE_SET",
    "GNUPG_2_2",
    "GNUPG_2_4",
    "RULE_SETS",
    "PatternRule",
    "RuleSet",
    "get_rule_set",
    "rule_set_for_version",
    # Operations
    "GPGOperations",
    "ProcessAdapter",
    "build_batch_parameters",
    "build_user_id",
    "FILE_NAME_LENGTH_LIMIT",
    "file_exists",
    "is_stream",
    "open_input",
    # Config and environment
    "AdapterSettings",
    "ensure_gnupg_dir",
    "get_gnupghome",
    "setup_home",
    "CheckResult",
    "EnvironmentReport",
    "detect_gpg_version",
    "parse_gpg_version",
    "rules_for_installed_gpg",
    "verify_environment",
    # Errors
    "EXIT_CODES",
    "ErrorLogger",
    "GPGAdapterError",
    "GPGOperationError",
    "InvalidArgumentsError",
    "MissingFileError",
    "RecoveryHint",
    "ToolNotFoundError",
    "get_recovery_hints_for_message",
    "wrap_exception",
    # Prompts and CLI
    "MockPrompts",
    "Prompts",
    "run",
    # Types
    "ClassifiedResult",
    "ErrorKind",
    "GeneratedKey",
    "KeyKind",
    "KeyListing",
    "KeyRecord",
    "ListedKeys",
    "ListType",
    "ProcessOutcome",
    "Result",
    "SecureString",
    "UserId",
]
