"""Known gpg output patterns, grouped into versioned rule sets.

gpg has no single reliable failure signal: some operations report success on
stderr, and some failures leak onto stdout. A ``RuleSet`` captures what is
known for a range of gpg versions:

- ``stderr_benign``: stderr text that is informational, not an error.
- ``error_signatures``: text that means failure even when it shows up on the
  channel gpg uses for results.

Rule sets are immutable and passed to the classifier explicitly, so tests and
callers can swap them per gpg version.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .types import ErrorKind

Pattern = str | re.Pattern[str]


@dataclass(frozen=True)
class PatternRule:
    pattern: Pattern
    kind: ErrorKind | None = None
    message: str = ""

    def matches(self, text: str) -> bool:
        if isinstance(self.pattern, str):
            return self.pattern in text
        return self.pattern.search(text) is not None

    @property
    def source(self) -> str:
        return self.pattern if isinstance(self.pattern, str) else self.pattern.pattern


@dataclass(frozen=True)
class RuleSet:
    name: str
    min_version: tuple[int, ...]
    stderr_benign: tuple[PatternRule, ...] = ()
    error_signatures: tuple[PatternRule, ...] = ()

    def is_benign(self, text: str) -> bool:
        return any(rule.matches(text) for rule in self.stderr_benign)

    def match_signature(self, text: str) -> PatternRule | None:
        for rule in self.error_signatures:
            if rule.matches(text):
                return rule
        return None

    def extend(
        self,
        name: str,
        min_version: tuple[int, ...],
        stderr_benign: tuple[PatternRule, ...] = (),
        error_signatures: tuple[PatternRule, ...] = (),
    ) -> RuleSet:
        """Derive a newer rule set that adds to this one."""
        return RuleSet(
            name=name,
            min_version=min_version,
            stderr_benign=self.stderr_benign + stderr_benign,
            error_signatures=self.error_signatures + error_signatures,
        )


ERROR_SIGNATURES: tuple[PatternRule, ...] = (
    PatternRule(
        "No such file or directory",
        ErrorKind.FILE_NOT_FOUND,
        "Referenced file does not exist",
    ),
    PatternRule(
        "no valid OpenPGP data found",
        ErrorKind.NO_PGP_DATA,
        "Input does not contain valid OpenPGP data",
    ),
    PatternRule(
        "No secret key",
        ErrorKind.NO_SECRET_KEY,
        "No matching secret key found",
    ),
    PatternRule(
        "[don't know]: invalid packet",
        ErrorKind.NO_PGP_DATA,
        "Input contains an invalid OpenPGP packet",
    ),
    # Symmetric decryption with the wrong passphrase; stderr also carries
    # the benign "encrypted with N passphrase" notice
    PatternRule(
        "Bad session key",
        ErrorKind.UNKNOWN,
        "Wrong passphrase or damaged session key",
    ),
    PatternRule(
        "Bad passphrase",
        ErrorKind.UNKNOWN,
        "Wrong passphrase",
    ),
    PatternRule(
        "decryption failed",
        ErrorKind.UNKNOWN,
        "Decryption failed",
    ),
)

STDERR_BENIGN: tuple[PatternRule, ...] = (
    # Printed after encrypting or decrypting
    PatternRule(re.compile(r"encrypted with.+created \d{4}-\d{2}-\d{2}")),
    PatternRule(re.compile(r"encrypted with \d+ passphrase")),
    # Banner printed around key generation
    PatternRule("gpg (GnuPG) 2.2.26; Copyright (C) 2020 Free Software Foundation, Inc."),
    PatternRule("This is free software: you are free to change and redistribute it."),
    PatternRule("There is NO WARRANTY, to the extent permitted by law."),
    PatternRule("usage: gpg"),
    PatternRule("marked as ultimately trusted"),
    PatternRule("revocation certificate stored as"),
    # Import summaries
    PatternRule(re.compile(r"key [0-9A-Fx]+: (public|secret) key .*imported")),
    PatternRule(re.compile(r"key [0-9A-Fx]+: .*not changed")),
    PatternRule("Total number processed"),
    # First use of a fresh GNUPGHOME, and trustdb upkeep
    PatternRule(re.compile(r"keybox '.+' created")),
    PatternRule("trustdb created"),
    PatternRule(re.compile(r"directory '.+' created")),
    PatternRule("checking the trustdb"),
)

GNUPG_2_2 = RuleSet(
    name="gnupg-2.2",
    min_version=(2, 2),
    stderr_benign=STDERR_BENIGN,
    error_signatures=ERROR_SIGNATURES,
)

GNUPG_2_4 = GNUPG_2_2.extend(
    name="gnupg-2.4",
    min_version=(2, 4),
    stderr_benign=(
        PatternRule(re.compile(r"gpg \(GnuPG\) \d+\.\d+\.\d+; Copyright")),
        PatternRule("next trustdb check due at"),
        PatternRule(re.compile(r"marginals needed: \d+")),
    ),
)

RULE_SETS: tuple[RuleSet, ...] = (GNUPG_2_2, GNUPG_2_4)

DEFAULT_RULE_SET = GNUPG_2_4


def get_rule_set(name: str) -> RuleSet:
    for rule_set in RULE_SETS:
        if rule_set.name == name:
            return rule_set
    known = ", ".join(r.name for r in RULE_SETS)
    raise KeyError(f"Unknown rule set {name!r} (known: {known})")


def rule_set_for_version(
    version: tuple[int, ...] | None,
    rule_sets: tuple[RuleSet, ...] = RULE_SETS,
) -> RuleSet:
    """Pick the newest rule set that applies to the given gpg version."""
    if version is None:
        return DEFAULT_RULE_SET

    candidates = [r for r in rule_sets if r.min_version <= version]
    if not candidates:
        # Older than anything we know about; the oldest table is the closest fit
        return min(rule_sets, key=lambda r: r.min_version)
    return max(candidates, key=lambda r: r.min_version)
