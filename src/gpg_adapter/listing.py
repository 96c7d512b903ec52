"""Parsing of gpg key listings into ``KeyRecord`` values.

Two strategies share the same record model:

``WindowedListingStrategy`` reads the human-readable ``--list-keys`` output.
gpg 2.x prints each key as a short block::

    pub   ed25519 2024-01-01 [SC]
          ABCDEF0123456789ABCDEF0123456789ABCDEF01
    uid           [ultimate] Alice <alice@example.com>
    sub   cv25519 2024-01-01 [E]

Every ``pub``/``sec`` line starts a block, and the fields are looked up in a
fixed window of lines from there. Windows may run into the next block; that
key is still picked up by its own start line.

``ColonListingStrategy`` reads the ``--with-colons`` format instead and needs
no window.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

from .types import KeyKind, KeyListing, KeyRecord, ListedKeys, ListType, UserId

# Lines per key block in gpg 2.x output: start, fingerprint, uid, subkey
KEY_BLOCK_WINDOW = 4


@dataclass(frozen=True)
class LinePatterns:
    key_start: re.Pattern[str] = re.compile(r"^pub|^sec")
    fingerprint: re.Pattern[str] = re.compile(r"\b[0-9A-Fa-f]{40}\b")
    uid: re.Pattern[str] = re.compile(r"^uid")
    subkey: re.Pattern[str] = re.compile(r"^sub|^ssb")


class ListingStrategy(Protocol):
    list_args: tuple[str, ...]

    def parse(self, raw: str) -> KeyListing: ...


def _first_line(lines: list[str], pattern: re.Pattern[str]) -> str:
    for line in lines:
        if pattern.search(line):
            return line.strip()
    return ""


def _first_match(lines: list[str], pattern: re.Pattern[str]) -> str:
    for line in lines:
        match = pattern.search(line)
        if match:
            return match.group(0).strip()
    return ""


class WindowedListingStrategy:
    list_args: tuple[str, ...] = ()

    def __init__(
        self,
        patterns: LinePatterns | None = None,
        window: int = KEY_BLOCK_WINDOW,
    ) -> None:
        self.patterns = patterns or LinePatterns()
        self.window = window

    def block_starts(self, lines: list[str]) -> list[int]:
        return [i for i, line in enumerate(lines) if self.patterns.key_start.search(line)]

    def extract(self, block: list[str]) -> KeyRecord:
        return KeyRecord(
            kind=KeyKind.PRIMARY,
            key_line=_first_line(block, self.patterns.key_start),
            fingerprint=_first_match(block, self.patterns.fingerprint),
            user_id=_first_line(block, self.patterns.uid),
            subkey_line=_first_line(block, self.patterns.subkey),
        )

    def parse(self, raw: str) -> KeyListing:
        lines = raw.split("\n")
        return [
            self.extract(lines[start : start + self.window]) for start in self.block_starts(lines)
        ]


class ColonListingStrategy:
    """Parser for ``gpg --with-colons`` listings."""

    list_args: tuple[str, ...] = ("--with-colons", "--fixed-list-mode")

    def parse(self, raw: str) -> KeyListing:
        records: KeyListing = []
        current: dict[str, str] | None = None

        def flush() -> None:
            if current is not None:
                records.append(KeyRecord(kind=KeyKind.PRIMARY, **current))

        for line in raw.split("\n"):
            fields = line.strip().split(":")
            record_type = fields[0]

            if record_type in ("pub", "sec"):
                flush()
                current = {
                    "key_line": line.strip(),
                    "fingerprint": "",
                    "user_id": "",
                    "subkey_line": "",
                }
            elif current is None:
                continue
            elif record_type == "fpr" and not current["fingerprint"] and not current["subkey_line"]:
                current["fingerprint"] = fields[9] if len(fields) > 9 else ""
            elif record_type == "uid" and not current["user_id"]:
                current["user_id"] = fields[9] if len(fields) > 9 else ""
            elif record_type in ("sub", "ssb") and not current["subkey_line"]:
                current["subkey_line"] = line.strip()

        flush()
        return records


DEFAULT_STRATEGY = WindowedListingStrategy()


def parse_key_listing(raw: str | None, strategy: ListingStrategy | None = None) -> KeyListing:
    """Parse one listing payload; malformed text degrades to empty fields."""
    if not raw:
        return []
    return (strategy or DEFAULT_STRATEGY).parse(raw)


def parse_keys(
    list_type: ListType | None,
    pub_output: str | None,
    sec_output: str | None,
    strategy: ListingStrategy | None = None,
) -> ListedKeys:
    if list_type == ListType.PUB:
        return ListedKeys(pub=parse_key_listing(pub_output, strategy))
    if list_type == ListType.SEC:
        return ListedKeys(sec=parse_key_listing(sec_output, strategy))
    return ListedKeys(
        pub=parse_key_listing(pub_output, strategy),
        sec=parse_key_listing(sec_output, strategy),
    )


def _between(text: str, start: str, end: str) -> str:
    begin = text.find(start)
    finish = text.find(end)
    if begin == -1 or finish == -1 or finish <= begin:
        return ""
    return text[begin + 1 : finish]


def parse_user_id(raw: str) -> UserId:
    """Split a uid line into username, comment and email.

    The username follows the ``[validity]`` marker when there is one, then
    runs up to the comment or the email, whichever comes first.
    """
    text = raw.strip()
    if text.startswith("uid"):
        text = text[3:]
    if "]" in text:
        text = text[text.index("]") + 1 :]
    text = text.strip()

    email = _between(text, "<", ">")
    comment = _between(text, "(", ")")

    cut = len(text)
    for marker in ("(", "<"):
        position = text.find(marker)
        if position != -1:
            cut = min(cut, position)

    return UserId(username=text[:cut].strip(), comment=comment, email=email)
