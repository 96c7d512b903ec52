"""Tests for prompts module."""

from __future__ import annotations

import io
from unittest.mock import patch

from rich.console import Console

from gpg_adapter.errors import GPGOperationError, MissingFileError
from gpg_adapter.prompts import MockPrompts, Prompts
from gpg_adapter.types import ErrorKind, SecureString


def console_prompts() -> tuple[Prompts, io.StringIO]:
    buffer = io.StringIO()
    return Prompts(Console(file=buffer, width=120)), buffer


class TestMockPrompts:
    """Test MockPrompts class."""

    def test_get_passphrase_returns_configured_value(self) -> None:
        result = MockPrompts(passphrase="my-secret").get_passphrase("Passphrase", confirm=True)
        assert isinstance(result, SecureString)
        assert result.get() == "my-secret"

    def test_confirm_returns_configured_value(self) -> None:
        assert MockPrompts(confirmations=True).confirm("Delete?", dangerous=True)
        assert not MockPrompts(confirmations=False).confirm("Delete?")

    def test_output_is_silent(self) -> None:
        MockPrompts().show_success("done")


class TestGetPassphrase:
    def test_single_entry(self) -> None:
        prompts, _ = console_prompts()
        with patch("gpg_adapter.prompts.getpass.getpass", return_value="pw") as getpass:
            assert prompts.get_passphrase("Passphrase").get() == "pw"
        getpass.assert_called_once_with("Passphrase: ")

    def test_confirm_retries_on_mismatch(self) -> None:
        """Test mismatched entries are asked again."""
        prompts, buffer = console_prompts()
        answers = ["one", "two", "same", "same"]
        with patch("gpg_adapter.prompts.getpass.getpass", side_effect=answers):
            assert prompts.get_passphrase("Passphrase", confirm=True).get() == "same"
        assert "do not match" in buffer.getvalue()


class TestConfirm:
    def test_plain_confirm(self) -> None:
        prompts, _ = console_prompts()
        with patch("gpg_adapter.prompts.Confirm.ask", return_value=True) as ask:
            assert prompts.confirm("Delete key?", default=True)
        ask.assert_called_once_with("Delete key?", default=True)

    def test_dangerous_confirm_shows_warning(self) -> None:
        prompts, buffer = console_prompts()
        with patch("gpg_adapter.prompts.Confirm.ask", return_value=False) as ask:
            assert not prompts.confirm("Delete secret key?", dangerous=True)
        assert "Secret key material will be removed" in buffer.getvalue()
        assert "Delete secret key?" in buffer.getvalue()
        ask.assert_called_once_with("Delete anyway?", default=False)


class TestShowError:
    """Test error display."""

    def test_hints_shown(self) -> None:
        prompts, buffer = console_prompts()
        prompts.show_error(GPGOperationError("decrypt failed", kind=ErrorKind.NO_SECRET_KEY))
        output = buffer.getvalue()
        assert "decrypt failed" in output
        assert "Recovery" in output
        assert "gpg --list-secret-keys" in output

    def test_gpg_output_only_when_verbose(self) -> None:
        error = GPGOperationError("failed", gpg_output="gpg: raw diagnostic")
        prompts, buffer = console_prompts()
        prompts.show_error(error)
        assert "raw diagnostic" not in buffer.getvalue()

        prompts, buffer = console_prompts()
        prompts.show_error(error, verbose=True)
        assert "raw diagnostic" in buffer.getvalue()

    def test_plain_exception(self) -> None:
        prompts, buffer = console_prompts()
        prompts.show_error(ValueError("bad value"))
        assert "bad value" in buffer.getvalue()
        assert "Recovery" not in buffer.getvalue()

    def test_missing_file(self) -> None:
        prompts, buffer = console_prompts()
        prompts.show_error(MissingFileError("/tmp/nope.asc"))
        assert "/tmp/nope.asc" in buffer.getvalue()

    def test_show_success(self) -> None:
        prompts, buffer = console_prompts()
        prompts.show_success("Import finished")
        assert "Import finished" in buffer.getvalue()
