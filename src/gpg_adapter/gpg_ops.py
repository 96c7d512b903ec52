from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any

from .classifier import OutputClassifier
from .errors import GPGOperationError, InvalidArgumentsError, MissingFileError, ToolNotFoundError
from .keyconfig import build_batch_parameters, build_user_id, write_batch_file
from .listing import ListingStrategy, WindowedListingStrategy, parse_key_listing
from .matcher import find_all, find_first
from .patterns import DEFAULT_RULE_SET, RuleSet
from .process import ProcessAdapter
from .streams import InputValue, file_exists, is_stream
from .types import (
    ClassifiedResult,
    ErrorKind,
    GeneratedKey,
    KeyListing,
    KeyRecord,
    ListedKeys,
    ListType,
    Result,
    SecureString,
)

logger = logging.getLogger("gpg-adapter.ops")

Password = SecureString | str | None

# stderr text gpg prints when a listing simply has nothing to show
NOT_FOUND_MARKERS = ("No public key", "No secret key")


def _secret(password: Password) -> str | None:
    if isinstance(password, SecureString):
        return password.get() or None
    return password or None


def _passphrase_args(password: Password) -> list[str]:
    value = _secret(password)
    if not value:
        return []
    return ["--pinentry-mode", "loopback", "--passphrase", value]


def _list_type(value: ListType | str | None) -> ListType | None:
    if isinstance(value, ListType):
        return value
    try:
        return ListType(value)
    except ValueError:
        return None


def _is_file_source(src: Any) -> bool:
    if is_stream(src) or not isinstance(src, str | Path):
        return False
    return file_exists(src)


class GPGOperations:
    def __init__(
        self,
        gnupghome: Path | None = None,
        binary: str = "gpg",
        rules: RuleSet | None = None,
        strategy: ListingStrategy | None = None,
        adapter: ProcessAdapter | None = None,
    ) -> None:
        self._gnupghome = gnupghome
        self._env = os.environ.copy()
        if gnupghome:
            self._env["GNUPGHOME"] = str(gnupghome)
        self._adapter = adapter or ProcessAdapter(binary, self._env)
        self._classifier = OutputClassifier(rules or DEFAULT_RULE_SET)
        self._strategy = strategy or WindowedListingStrategy()

    @property
    def gnupghome(self) -> Path:
        if self._gnupghome:
            return self._gnupghome
        return Path(os.environ.get("GNUPGHOME", Path.home() / ".gnupg"))

    @property
    def classifier(self) -> OutputClassifier:
        return self._classifier

    def _run(self, args: list[str], src: InputValue = None) -> ClassifiedResult:
        try:
            outcome = self._adapter.run(args, src=src)
        except (MissingFileError, ToolNotFoundError) as e:
            # Nothing was spawned, so there is no exit status to report
            return ClassifiedResult(
                ok=False,
                output="",
                error_kind=e.kind,
                error_message=e.message,
                exit_code=-1,
                error=e,
            )
        return self._classifier.classify(outcome)

    def _extract_fingerprint(self, output: str) -> str | None:
        patterns = [
            r"openpgp-revocs\.d[/\\]([A-F0-9]{40})\.rev",
            r"key ([A-F0-9]{40}) marked as ultimately trusted",
            r"\b([A-F0-9]{40})\b",
        ]
        for pattern in patterns:
            match = re.search(pattern, output, re.IGNORECASE)
            if match:
                return match.group(1).upper()
        return None

    def gen_keys(
        self,
        name: str,
        password: Password = None,
        comment: str | None = None,
        email: str | None = None,
    ) -> Result[GeneratedKey]:
        """Generate an ed25519/cv25519 key pair from a batch parameter file."""
        if not name:
            return Result.err(InvalidArgumentsError("A name is required", "gen_keys"))

        params = build_batch_parameters(name, _secret(password), comment, email)

        with tempfile.TemporaryDirectory(prefix="gpg-adapter-") as tmpdir:
            batch_file = write_batch_file(Path(tmpdir), params)
            result = self._run(
                ["--batch", "--pinentry-mode", "loopback", "--gen-key", str(batch_file)]
            )

        if not result.ok:
            return Result.err(result.to_error("gen_keys"))

        fingerprint = self._extract_fingerprint(result.output)
        if not fingerprint:
            record = self.first_key(build_user_id(name, comment, email), ListType.SEC)
            if record is None or not record.fingerprint:
                return Result.err(
                    GPGOperationError(
                        "Could not determine generated key fingerprint",
                        operation="gen_keys",
                        gpg_output=result.output,
                    )
                )
            fingerprint = record.fingerprint

        logger.info("generated key %s", fingerprint)
        return Result.ok(GeneratedKey(fingerprint=fingerprint, output=result.output))

    def delete_keys(
        self,
        fingerprint: str,
        list_type: ListType | str,
        password: Password = None,
    ) -> Result[bool]:
        """Delete keys by fingerprint.

        gpg refuses to delete a public key while its secret key is present, so
        the secret key goes first. Unlike listing, deleting everything needs
        an explicit ``all``.
        """
        kind = _list_type(list_type)
        if not fingerprint or kind is None:
            return Result.err(InvalidArgumentsError(operation="delete_keys"))

        if kind in (ListType.SEC, ListType.ALL):
            args = ["--batch", "--yes", *_passphrase_args(password)]
            result = self._run([*args, "--delete-secret-key", fingerprint])
            missing_secret = kind == ListType.ALL and result.error_kind == ErrorKind.NO_SECRET_KEY
            if not result.ok and not missing_secret:
                return Result.err(result.to_error("delete_keys"))

        if kind in (ListType.PUB, ListType.ALL):
            result = self._run(["--batch", "--yes", "--delete-key", fingerprint])
            if not result.ok:
                return Result.err(result.to_error("delete_keys"))

        return Result.ok(True)

    def import_key(
        self,
        key_path_or_string: str | Path,
        list_type: ListType | str = ListType.PUB,
        password: Password = None,
    ) -> Result[str]:
        kind = _list_type(list_type)
        if not key_path_or_string or kind not in (ListType.PUB, ListType.SEC):
            return Result.err(InvalidArgumentsError(operation="import_key"))

        source: str | Path = key_path_or_string
        if isinstance(source, str):
            source = re.sub(r"['\"]+", "", source)

        args = ["--batch"]
        if kind == ListType.SEC:
            args += _passphrase_args(password)
        args.append("--import")

        if _is_file_source(source):
            return self._run(args + [str(source)]).to_result("import_key")
        return self._run(args, src=source).to_result("import_key")

    def export_key(
        self,
        identifier: str,
        list_type: ListType | str | None = ListType.PUB,
        save_path: Path | str | None = None,
        password: Password = None,
    ) -> Result[str]:
        # None is treated as a request for the public key
        kind = _list_type(list_type or ListType.PUB)
        if not identifier or kind not in (ListType.PUB, ListType.SEC):
            return Result.err(InvalidArgumentsError(operation="export_key"))

        args = ["--batch", "--yes"]
        if save_path:
            args += ["-o", str(save_path)]
        args += _passphrase_args(password)
        args.append("--export-secret-key" if kind == ListType.SEC else "--export")
        args += ["--armor", identifier]

        return self._run(args).to_result("export_key")

    def _parse(self, raw: str) -> KeyListing:
        return parse_key_listing(raw, self._strategy)

    def _list(self, command: str, identifier: str | None) -> Result[str]:
        args = [*self._strategy.list_args, command]
        if identifier:
            args.append(identifier)

        result = self._run(args)
        if result.ok:
            return Result.ok(result.output)

        # gpg fails the listing when nothing matches; that is just an empty list
        if result.error_kind == ErrorKind.NO_SECRET_KEY or any(
            marker in result.error_message for marker in NOT_FOUND_MARKERS
        ):
            return Result.ok("")
        return Result.err(result.to_error("list_keys"))

    def list_keys(
        self,
        identifier: str | None = None,
        list_type: ListType | str | None = ListType.ALL,
    ) -> Result[ListedKeys]:
        kind = _list_type(list_type or ListType.ALL)
        if kind is None:
            return Result.err(InvalidArgumentsError(operation="list_keys"))

        pub: KeyListing = []
        sec: KeyListing = []

        if kind in (ListType.PUB, ListType.ALL):
            listed = self._list("--list-keys", identifier).map(self._parse)
            if listed.is_err():
                return Result.err(listed.unwrap_err())
            pub = listed.unwrap()

        if kind in (ListType.SEC, ListType.ALL):
            listed = self._list("--list-secret-keys", identifier).map(self._parse)
            if listed.is_err():
                return Result.err(listed.unwrap_err())
            sec = listed.unwrap()

        return Result.ok(ListedKeys(pub=pub, sec=sec))

    def search_keys(
        self,
        identifier: str,
        list_type: ListType | str | None = ListType.ALL,
    ) -> Result[KeyListing]:
        """Find listed keys with any field containing identifier."""
        kind = _list_type(list_type or ListType.ALL)
        if kind is None:
            return Result.err(InvalidArgumentsError(operation="search_keys"))

        return self.list_keys(list_type=kind).map(
            lambda listed: find_all(identifier, listed.for_type(kind))
        )

    def first_key(
        self,
        identifier: str,
        list_type: ListType | str | None = ListType.ALL,
    ) -> KeyRecord | None:
        kind = _list_type(list_type or ListType.ALL)
        if kind is None:
            return None

        return (
            self.list_keys(list_type=kind)
            .map(lambda listed: find_first(identifier, listed.for_type(kind)))
            .unwrap_or(None)
        )

    def key_exists(
        self,
        identifier: str,
        list_type: ListType | str | None = ListType.ALL,
    ) -> bool:
        return self.first_key(identifier, list_type) is not None

    def encrypt(
        self,
        identifier: str | None,
        src: InputValue,
        dest_file: Path | str | None = None,
        symmetric: bool = False,
        password: Password = None,
    ) -> Result[str]:
        """Encrypt a payload, file path or stream to a recipient or a passphrase."""
        if (not symmetric and not identifier) or not src:
            return Result.err(InvalidArgumentsError(operation="encrypt"))

        src_is_file = _is_file_source(src)

        # "-" sends the ciphertext to stdout
        args = ["--batch", "--yes", "--output", str(dest_file) if dest_file else "-"]

        if symmetric:
            args += _passphrase_args(password)
            args.append("--symmetric")
        else:
            args.append("--encrypt")

        args.append("--armor")

        if not symmetric and identifier:
            args += ["--recipient", identifier]

        args += ["--trust-model", "always"]

        if src_is_file:
            args.append(str(src))

        result = self._run(args, src=None if src_is_file else src)
        if not result.ok:
            return Result.err(result.to_error("encrypt"))
        return Result.ok(result.output or "Success")

    def decrypt(
        self,
        src: InputValue,
        dest_file: Path | str | None = None,
        password: Password = None,
    ) -> Result[str]:
        if not src:
            return Result.err(InvalidArgumentsError(operation="decrypt"))

        src_is_file = _is_file_source(src)

        args = ["--batch", "--yes", "--pinentry-mode", "loopback"]

        secret = _secret(password)
        if secret:
            args += ["--passphrase", secret]

        if dest_file:
            args += ["--output", str(dest_file)]

        args.append("--decrypt")

        if src_is_file:
            args.append(str(src))

        return self._run(args, src=None if src_is_file else src).to_result("decrypt")
