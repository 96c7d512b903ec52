from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import AdapterSettings, setup_home
from .environment import EnvironmentReport, rules_for_installed_gpg, verify_environment
from .errors import EXIT_CODES, ErrorLogger, GPGAdapterError, wrap_exception
from .gpg_ops import GPGOperations
from .listing import ColonListingStrategy
from .patterns import RULE_SETS, get_rule_set
from .prompts import Prompts
from .streams import InputValue
from .types import ErrorKind, KeyListing, ListType, SecureString

# Data (keys, ciphertext, plaintext) goes to stdout, everything else to stderr
console = Console()
err_console = Console(stderr=True)

STDIN_MARKER = "-"


def get_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gpg-adapter",
        description="Run gpg key, encryption and decryption operations with typed results",
    )
    parser.add_argument(
        "--gnupghome",
        type=Path,
        default=None,
        help="Custom GnuPG home directory",
    )
    parser.add_argument(
        "--gpg-binary",
        default=None,
        help="gpg executable to run (default: gpg)",
    )
    parser.add_argument(
        "--rules",
        choices=[r.name for r in RULE_SETS],
        default=None,
        help="Output rule set to use (default: detected from gpg --version)",
    )
    parser.add_argument(
        "--colons",
        action="store_true",
        help="Read key listings in gpg's machine-readable colon format",
    )
    parser.add_argument(
        "--error-log",
        type=Path,
        default=None,
        help="Append failures to this log file",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log gpg invocations and show raw gpg output on failure",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    gen_parser = subparsers.add_parser("gen-key", help="Generate an ed25519/cv25519 key pair")
    gen_parser.add_argument("name", help="Real name for the user id")
    gen_parser.add_argument("--email", default=None, help="Email for the user id")
    gen_parser.add_argument("--comment", default=None, help="Comment for the user id")
    gen_parser.add_argument(
        "--ask-password", action="store_true", help="Protect the key with a passphrase"
    )

    delete_parser = subparsers.add_parser("delete", help="Delete keys by fingerprint")
    delete_parser.add_argument("fingerprint", help="Fingerprint of the key to delete")
    delete_parser.add_argument(
        "--type", dest="list_type", choices=["pub", "sec", "all"], default="all"
    )
    delete_parser.add_argument("--ask-password", action="store_true")
    delete_parser.add_argument(
        "--yes", "-y", action="store_true", help="Do not ask for confirmation"
    )

    import_parser = subparsers.add_parser("import", help="Import a key from a file or stdin")
    import_parser.add_argument("source", help="Key file, armored key text, or - for stdin")
    import_parser.add_argument("--type", dest="list_type", choices=["pub", "sec"], default="pub")
    import_parser.add_argument("--ask-password", action="store_true")

    export_parser = subparsers.add_parser("export", help="Export an armored key")
    export_parser.add_argument("identifier", help="Fingerprint, key id or user id")
    export_parser.add_argument("--type", dest="list_type", choices=["pub", "sec"], default="pub")
    export_parser.add_argument("--output", "-o", type=Path, default=None)
    export_parser.add_argument("--ask-password", action="store_true")

    list_parser = subparsers.add_parser("list", help="List keys in the keyring")
    list_parser.add_argument("identifier", nargs="?", default=None)
    list_parser.add_argument(
        "--type", dest="list_type", choices=["pub", "sec", "all"], default="all"
    )

    find_parser = subparsers.add_parser("find", help="Find keys with any field containing text")
    find_parser.add_argument("identifier", help="Text to look for (case-sensitive)")
    find_parser.add_argument(
        "--type", dest="list_type", choices=["pub", "sec", "all"], default="all"
    )

    encrypt_parser = subparsers.add_parser("encrypt", help="Encrypt a file, text, or stdin")
    encrypt_parser.add_argument("source", help="File path, text, or - for stdin")
    encrypt_parser.add_argument("--recipient", "-r", default=None)
    encrypt_parser.add_argument("--symmetric", action="store_true")
    encrypt_parser.add_argument("--output", "-o", type=Path, default=None)
    encrypt_parser.add_argument("--ask-password", action="store_true")

    decrypt_parser = subparsers.add_parser("decrypt", help="Decrypt a file, text, or stdin")
    decrypt_parser.add_argument("source", help="File path, armored text, or - for stdin")
    decrypt_parser.add_argument("--output", "-o", type=Path, default=None)
    decrypt_parser.add_argument("--ask-password", action="store_true")

    subparsers.add_parser("doctor", help="Check gpg installation and GnuPG home")

    home_parser = subparsers.add_parser(
        "setup-home", help="Create GnuPG home and allow loopback pinentry"
    )
    home_parser.add_argument(
        "--no-backup", action="store_true", help="Overwrite gpg-agent.conf without a backup"
    )

    return parser


def configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def resolve_settings(ns: argparse.Namespace) -> AdapterSettings:
    return AdapterSettings.from_env().override(
        binary=ns.gpg_binary,
        gnupghome=ns.gnupghome,
        rule_set=ns.rules,
        log_path=ns.error_log,
    )


def build_operations(ns: argparse.Namespace, settings: AdapterSettings) -> GPGOperations:
    if settings.rule_set:
        rules = get_rule_set(settings.rule_set)
    else:
        rules = rules_for_installed_gpg(settings.binary)

    return GPGOperations(
        gnupghome=settings.gnupghome,
        binary=settings.binary,
        rules=rules,
        strategy=ColonListingStrategy() if ns.colons else None,
    )


def read_password(
    ns: argparse.Namespace, prompts: Prompts, confirm: bool = False
) -> SecureString | None:
    if not getattr(ns, "ask_password", False):
        return None
    return prompts.get_passphrase("Passphrase", confirm=confirm)


@contextmanager
def held_password(
    ns: argparse.Namespace, prompts: Prompts, confirm: bool = False, wanted: bool = True
) -> Iterator[SecureString | None]:
    """Read the passphrase for one gpg call and wipe it afterwards."""
    password = read_password(ns, prompts, confirm=confirm) if wanted else None
    try:
        yield password
    finally:
        if password is not None:
            password.clear()


def read_source(source: str) -> InputValue:
    if source == STDIN_MARKER:
        return sys.stdin.buffer
    return source


def report_failure(error: Exception, ns: argparse.Namespace, prompts: Prompts) -> int:
    error_logger: ErrorLogger | None = getattr(ns, "error_logger", None)
    if error_logger is not None and isinstance(error, GPGAdapterError):
        error_logger.log_error(error)

    prompts.show_error(error, verbose=getattr(ns, "verbose", False))

    if isinstance(error, GPGAdapterError):
        return EXIT_CODES.get(error.kind, 1)
    return EXIT_CODES[ErrorKind.UNKNOWN]


def write_data(text: str) -> None:
    if text:
        console.out(text.rstrip("\n"), highlight=False)


def cmd_gen_key(gpg: GPGOperations, ns: argparse.Namespace, prompts: Prompts) -> int:
    with held_password(ns, prompts, confirm=True) as password:
        result = gpg.gen_keys(ns.name, password=password, comment=ns.comment, email=ns.email)
    if result.is_err():
        return report_failure(result.unwrap_err(), ns, prompts)

    key = result.unwrap()
    prompts.show_success(f"Generated key {key.fingerprint}")
    write_data(key.fingerprint)
    return 0


def cmd_delete(gpg: GPGOperations, ns: argparse.Namespace, prompts: Prompts) -> int:
    if not ns.yes and not prompts.confirm(
        f"Delete {ns.list_type} key(s) {ns.fingerprint}?", dangerous=ns.list_type != "pub"
    ):
        err_console.print("[yellow]Aborted.[/yellow]")
        return 1

    with held_password(ns, prompts) as password:
        result = gpg.delete_keys(ns.fingerprint, ns.list_type, password=password)
    if result.is_err():
        return report_failure(result.unwrap_err(), ns, prompts)

    prompts.show_success(f"Deleted {ns.list_type} key(s) {ns.fingerprint}")
    return 0


def cmd_import(gpg: GPGOperations, ns: argparse.Namespace, prompts: Prompts) -> int:
    with held_password(ns, prompts) as password:
        result = gpg.import_key(read_source(ns.source), ns.list_type, password=password)
    if result.is_err():
        return report_failure(result.unwrap_err(), ns, prompts)

    err_console.print(result.unwrap().rstrip(), markup=False, highlight=False)
    prompts.show_success("Import finished")
    return 0


def cmd_export(gpg: GPGOperations, ns: argparse.Namespace, prompts: Prompts) -> int:
    with held_password(ns, prompts) as password:
        result = gpg.export_key(
            ns.identifier, ns.list_type, save_path=ns.output, password=password
        )
    if result.is_err():
        return report_failure(result.unwrap_err(), ns, prompts)

    if ns.output:
        prompts.show_success(f"Exported {ns.list_type} key to {ns.output}")
    else:
        write_data(result.unwrap())
    return 0


def cmd_list(gpg: GPGOperations, ns: argparse.Namespace, prompts: Prompts) -> int:
    list_type = ListType(ns.list_type)
    result = gpg.list_keys(ns.identifier, list_type)
    if result.is_err():
        return report_failure(result.unwrap_err(), ns, prompts)

    listed = result.unwrap()
    if list_type in (ListType.PUB, ListType.ALL):
        show_listing("Public keys", listed.pub)
    if list_type in (ListType.SEC, ListType.ALL):
        show_listing("Secret keys", listed.sec)
    return 0


def cmd_find(gpg: GPGOperations, ns: argparse.Namespace, prompts: Prompts) -> int:
    result = gpg.search_keys(ns.identifier, ns.list_type)
    if result.is_err():
        return report_failure(result.unwrap_err(), ns, prompts)

    matches = result.unwrap()
    if not matches:
        err_console.print(f"[yellow]No keys match {ns.identifier!r}.[/yellow]")
        return 1

    show_listing(f"Keys matching {ns.identifier!r}", matches)
    return 0


def show_listing(title: str, keys: KeyListing) -> None:
    if not keys:
        console.print(f"[yellow]{title}: none[/yellow]")
        return

    table = Table(title=title)
    table.add_column("Fingerprint", style="cyan")
    table.add_column("User ID")
    table.add_column("Subkey", style="dim")
    for key in keys:
        table.add_row(key.fingerprint, key.user_id, key.subkey_line)
    console.print(table)


def cmd_encrypt(gpg: GPGOperations, ns: argparse.Namespace, prompts: Prompts) -> int:
    with held_password(ns, prompts, confirm=True, wanted=ns.symmetric) as password:
        result = gpg.encrypt(
            ns.recipient,
            read_source(ns.source),
            dest_file=ns.output,
            symmetric=ns.symmetric,
            password=password,
        )
    if result.is_err():
        return report_failure(result.unwrap_err(), ns, prompts)

    if ns.output:
        prompts.show_success(f"Encrypted to {ns.output}")
    else:
        write_data(result.unwrap())
    return 0


def cmd_decrypt(gpg: GPGOperations, ns: argparse.Namespace, prompts: Prompts) -> int:
    with held_password(ns, prompts) as password:
        result = gpg.decrypt(read_source(ns.source), dest_file=ns.output, password=password)
    if result.is_err():
        return report_failure(result.unwrap_err(), ns, prompts)

    if ns.output:
        prompts.show_success(f"Decrypted to {ns.output}")
    else:
        write_data(result.unwrap())
    return 0


def show_environment_report(report: EnvironmentReport) -> None:
    for check in report.checks:
        if check.passed:
            console.print(f"[green]✓[/green] {check.name}: {check.message}")
        elif check.critical:
            console.print(f"[red]✗[/red] {check.name}: {check.message}")
        else:
            console.print(f"[yellow]![/yellow] {check.name}: {check.message}")
        if not check.passed and check.fix_hint:
            console.print(f"    [dim]{check.fix_hint}[/dim]")

    version = ".".join(str(part) for part in report.version) if report.version else "unknown"
    console.print(f"\ngpg version: {version}")
    console.print(f"Output rules: {report.rule_set}")


def cmd_doctor(settings: AdapterSettings) -> int:
    home = settings.gnupghome or Path.home() / ".gnupg"
    report = verify_environment(settings.binary, home)
    show_environment_report(report)
    return 0 if report.all_passed else 1


def cmd_setup_home(ns: argparse.Namespace, settings: AdapterSettings, prompts: Prompts) -> int:
    result = setup_home(settings.gnupghome, backup_existing=not ns.no_backup)
    if result.is_err():
        err_console.print(f"[red]Setup failed: {result.unwrap_err()}[/red]")
        return 1

    prompts.show_success(f"Wrote {result.unwrap()}")
    err_console.print("Restart the agent to apply: gpgconf --kill gpg-agent")
    return 0


OPERATION_COMMANDS: dict[str, Callable[[GPGOperations, argparse.Namespace, Prompts], int]] = {
    "gen-key": cmd_gen_key,
    "delete": cmd_delete,
    "import": cmd_import,
    "export": cmd_export,
    "list": cmd_list,
    "find": cmd_find,
    "encrypt": cmd_encrypt,
    "decrypt": cmd_decrypt,
}


def run(args: list[str]) -> int:
    """Main entry point."""
    parser = get_parser()
    ns = parser.parse_args(args)

    if not ns.command:
        parser.print_help()
        return 1

    configure_logging(ns.verbose)
    settings = resolve_settings(ns)
    prompts = Prompts(err_console)

    if ns.command == "doctor":
        return cmd_doctor(settings)
    elif ns.command == "setup-home":
        return cmd_setup_home(ns, settings, prompts)

    try:
        gpg = build_operations(ns, settings)
    except KeyError as e:
        err_console.print(f"[red]Error:[/red] {e.args[0]}")
        return EXIT_CODES[ErrorKind.INVALID_ARGUMENTS]

    ns.error_logger = ErrorLogger(settings.log_path) if settings.log_path else None

    try:
        return OPERATION_COMMANDS[ns.command](gpg, ns, prompts)
    except GPGAdapterError as e:
        return report_failure(e, ns, prompts)
    except OSError as e:
        # Unreadable input, unwritable output and the like
        return report_failure(wrap_exception(e), ns, prompts)
