"""Tests for the output classifier."""

from __future__ import annotations

import re

from gpg_adapter.classifier import UNKNOWN_FAILURE_MESSAGE, OutputClassifier, classify
from gpg_adapter.patterns import GNUPG_2_2, GNUPG_2_4, PatternRule, RuleSet
from gpg_adapter.types import ErrorKind, ProcessOutcome

ENCRYPTED_NOTICE = (
    "gpg: encrypted with 256-bit ECDH key, ID 0x1234ABCD5678EF90, created 2024-01-01\n"
    '      "Alice <alice@example.com>"\n'
)


def outcome(primary: str = "", secondary: str = "", code: int = 0) -> ProcessOutcome:
    return ProcessOutcome(primary_text=primary, secondary_text=secondary, exit_code=code)


class TestChannelSelection:
    """Which channel becomes the result output."""

    def test_primary_output_is_used(self) -> None:
        result = classify(outcome(primary="hello"))
        assert result.ok
        assert result.output == "hello"
        assert result.error_kind is None

    def test_secondary_output_used_when_primary_empty(self) -> None:
        """Imports report on stderr, so stderr becomes the output."""
        text = 'gpg: key 1234ABCD5678EF90: public key "Alice <alice@example.com>" imported\n'
        result = classify(outcome(secondary=text))
        assert result.ok
        assert result.output == text

    def test_primary_preferred_when_both_present(self) -> None:
        result = classify(outcome(primary="plaintext", secondary=ENCRYPTED_NOTICE))
        assert result.output == "plaintext"

    def test_all_empty_and_zero_exit_is_ok(self) -> None:
        result = classify(outcome())
        assert result.ok
        assert result.output == ""


class TestBenignSuppression:
    """stderr text listed as benign is not an error."""

    def test_encryption_notice_is_benign(self) -> None:
        result = classify(outcome(primary="plaintext", secondary=ENCRYPTED_NOTICE))
        assert result.ok
        assert result.error_kind is None

    def test_key_generation_messages_are_benign(self) -> None:
        stderr = (
            "gpg: key 0x1234ABCD5678EF90 marked as ultimately trusted\n"
            "gpg: revocation certificate stored as "
            "'/tmp/g/openpgp-revocs.d/ABCDEF0123456789ABCDEF0123456789ABCDEF01.rev'\n"
        )
        result = classify(outcome(secondary=stderr))
        assert result.ok
        assert "revocation certificate" in result.output

    def test_banner_lines_are_benign(self) -> None:
        for line in (
            "gpg (GnuPG) 2.2.26; Copyright (C) 2020 Free Software Foundation, Inc.",
            "This is free software: you are free to change and redistribute it.",
            "There is NO WARRANTY, to the extent permitted by law.",
            "usage: gpg [options] [files]",
        ):
            assert classify(outcome(primary="x", secondary=line), GNUPG_2_2).ok, line

    def test_newer_banner_needs_newer_rules(self) -> None:
        banner = "gpg (GnuPG) 2.4.3; Copyright (C) 2023 g10 Code GmbH"
        assert not classify(outcome(primary="x", secondary=banner), GNUPG_2_2).ok
        assert classify(outcome(primary="x", secondary=banner), GNUPG_2_4).ok

    def test_unknown_stderr_is_error(self) -> None:
        result = classify(outcome(primary="x", secondary="gpg: something broke\n"))
        assert not result.ok
        assert result.error_kind == ErrorKind.UNKNOWN
        assert result.error_message == "gpg: something broke"


class TestErrorSignatures:
    """Known error text on the result channel."""

    def test_signature_on_primary_output(self) -> None:
        result = classify(outcome(primary="gpg: no valid OpenPGP data found.\n"))
        assert not result.ok
        assert result.error_kind == ErrorKind.NO_PGP_DATA
        assert result.error_message == "Input does not contain valid OpenPGP data"

    def test_signature_in_redirected_output_after_benign_clear(self) -> None:
        """Benign summary clears stderr, but the redirected text still fails."""
        stderr = "gpg: no valid OpenPGP data found.\ngpg: Total number processed: 0\n"
        result = classify(outcome(secondary=stderr, code=2))
        assert not result.ok
        assert result.error_kind == ErrorKind.NO_PGP_DATA
        assert result.output == stderr

    def test_missing_file_signature(self) -> None:
        result = classify(outcome(primary="gpg: can't open 'x.asc': No such file or directory"))
        assert result.error_kind == ErrorKind.FILE_NOT_FOUND

    def test_no_secret_key_on_stderr_gets_stable_kind(self) -> None:
        result = classify(outcome(secondary="gpg: decryption failed: No secret key\n", code=2))
        assert not result.ok
        assert result.error_kind == ErrorKind.NO_SECRET_KEY
        assert result.error_message == "gpg: decryption failed: No secret key"

    def test_invalid_packet_is_literal_not_regex(self) -> None:
        result = classify(outcome(primary="gpg: [don't know]: invalid packet (ctb=2d)"))
        assert result.error_kind == ErrorKind.NO_PGP_DATA
        # A bare "d" would match if the brackets were read as a character class
        assert classify(outcome(primary="d")).ok

    def test_signature_match_is_case_sensitive(self) -> None:
        assert classify(outcome(primary="NO SECRET KEY")).ok

    def test_wrong_passphrase_after_benign_notice(self) -> None:
        """The passphrase notice clears stderr; the failure line still counts."""
        stderr = (
            "gpg: AES256.CFB encrypted data\n"
            "gpg: encrypted with 1 passphrase\n"
            "gpg: decryption failed: Bad session key\n"
        )
        result = classify(outcome(secondary=stderr, code=2))
        assert not result.ok
        assert result.error_kind == ErrorKind.UNKNOWN
        assert result.error_message == "Wrong passphrase or damaged session key"

    def test_symmetric_decrypt_success_stays_ok(self) -> None:
        stderr = "gpg: AES256.CFB encrypted data\ngpg: encrypted with 1 passphrase\n"
        result = classify(outcome(primary="plaintext", secondary=stderr))
        assert result.ok
        assert result.output == "plaintext"


class TestPrecedence:
    def test_secondary_error_wins_over_signature(self) -> None:
        result = classify(
            outcome(
                primary="gpg: no valid OpenPGP data found.",
                secondary="gpg: decryption failed: No secret key",
            )
        )
        assert not result.ok
        assert result.error_kind == ErrorKind.NO_SECRET_KEY
        assert result.error_message == "gpg: decryption failed: No secret key"

    def test_secondary_unknown_error_wins_over_signature(self) -> None:
        result = classify(
            outcome(primary="gpg: no valid OpenPGP data found.", secondary="gpg: agent died")
        )
        assert result.error_kind == ErrorKind.UNKNOWN
        assert result.error_message == "gpg: agent died"


class TestExitCode:
    def test_nonzero_exit_without_output_is_unknown(self) -> None:
        result = classify(outcome(code=2))
        assert not result.ok
        assert result.output == ""
        assert result.error_kind == ErrorKind.UNKNOWN
        assert result.error_message == UNKNOWN_FAILURE_MESSAGE.format(code=2)
        assert result.exit_code == 2

    def test_nonzero_exit_with_benign_text_is_ok(self) -> None:
        """Patterns decide, the exit status is only advisory."""
        result = classify(outcome(primary="listing", secondary=ENCRYPTED_NOTICE, code=2))
        assert result.ok
        assert result.exit_code == 2

    def test_zero_exit_with_error_text_fails(self) -> None:
        result = classify(outcome(secondary="gpg: WARNING: nothing exported", code=0))
        assert not result.ok


class TestPurity:
    def test_same_input_gives_identical_result(self) -> None:
        classifier = OutputClassifier()
        item = outcome(primary="gpg: no valid OpenPGP data found.", secondary="", code=2)
        assert classifier.classify(item) == classifier.classify(item)

    def test_injected_rules_are_used(self) -> None:
        rules = RuleSet(
            name="test",
            min_version=(9,),
            stderr_benign=(PatternRule(re.compile(r"^note:")),),
            error_signatures=(PatternRule("boom", ErrorKind.NO_PGP_DATA, "Boom"),),
        )
        classifier = OutputClassifier(rules)
        assert classifier.rules is rules
        assert classifier.classify(outcome(primary="x", secondary="note: fine")).ok
        result = classifier.classify(outcome(primary="boom"))
        assert result.error_kind == ErrorKind.NO_PGP_DATA
        assert result.error_message == "Boom"

    def test_signature_without_message_uses_pattern(self) -> None:
        rules = RuleSet(
            name="bare",
            min_version=(1,),
            error_signatures=(PatternRule("kaput"),),
        )
        result = OutputClassifier(rules).classify(outcome(primary="it went kaput"))
        assert result.error_kind == ErrorKind.UNKNOWN
        assert result.error_message == "kaput"


class TestToResult:
    def test_ok_result(self) -> None:
        result = classify(outcome(primary="data")).to_result("export_key")
        assert result.is_ok()
        assert result.unwrap() == "data"

    def test_error_result_carries_kind_and_output(self) -> None:
        result = classify(outcome(secondary="gpg: decryption failed: No secret key")).to_result(
            "decrypt"
        )
        assert result.is_err()
        error = result.unwrap_err()
        assert error.kind == ErrorKind.NO_SECRET_KEY  # type: ignore[attr-defined]
        assert error.operation == "decrypt"  # type: ignore[attr-defined]
        assert "No secret key" in error.gpg_output  # type: ignore[attr-defined]
