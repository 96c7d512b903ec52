from __future__ import annotations

import getpass

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm

from .errors import GPGAdapterError
from .types import SecureString


class Prompts:
    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def get_passphrase(self, prompt: str, confirm: bool = False) -> SecureString:
        """Read a passphrase without echoing it.

        Args:
            prompt: The prompt message to display
            confirm: Whether to require the passphrase twice

        Returns:
            SecureString containing the passphrase
        """
        while True:
            value = getpass.getpass(f"{prompt}: ")

            if confirm:
                confirm_value = getpass.getpass(f"{prompt} (confirm): ")
                if value != confirm_value:
                    self._console.print("[red]Passphrases do not match[/red]")
                    continue

            return SecureString(value)

    def confirm(
        self,
        message: str,
        default: bool = False,
        dangerous: bool = False,
    ) -> bool:
        if dangerous:
            self._console.print(
                Panel(
                    f"[bold red]Secret key material will be removed[/bold red]\n\n{message}\n\n"
                    "Without a backup this cannot be undone.",
                    border_style="red",
                )
            )
            return Confirm.ask("Delete anyway?", default=False)

        return Confirm.ask(message, default=default)

    def show_success(self, message: str) -> None:
        self._console.print(f"[green]✓[/green] {message}")

    def show_error(self, error: Exception, verbose: bool = False) -> None:
        self._console.print()
        self._console.print(f"[bold red]✗[/bold red] {error}")

        if isinstance(error, GPGAdapterError) and error.recovery_hints:
            hints = "\n".join(f"{i}. {hint}" for i, hint in enumerate(error.recovery_hints, 1))
            self._console.print()
            self._console.print(Panel(hints, title="Recovery", border_style="yellow"))

        gpg_output = getattr(error, "gpg_output", None)
        if verbose and gpg_output:
            self._console.print(Panel(gpg_output.rstrip(), title="gpg output", border_style="dim"))


class MockPrompts(Prompts):
    """Non-interactive prompts returning fixed answers."""

    def __init__(
        self,
        passphrase: str = "test-passphrase",
        confirmations: bool = True,
    ) -> None:
        super().__init__(Console(quiet=True))
        self._passphrase = passphrase
        self._confirmations = confirmations

    def get_passphrase(self, prompt: str, confirm: bool = False) -> SecureString:
        return SecureString(self._passphrase)

    def confirm(
        self,
        message: str,
        default: bool = False,
        dangerous: bool = False,
    ) -> bool:
        return self._confirmations
