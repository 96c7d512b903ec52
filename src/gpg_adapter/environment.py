from __future__ import annotations

import re
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from .patterns import DEFAULT_RULE_SET, RuleSet, rule_set_for_version

_VERSION_LINE = re.compile(r"gpg \(GnuPG[^)]*\) (\d+)\.(\d+)(?:\.(\d+))?")


@dataclass
class CheckResult:
    """Result of an environment check."""

    name: str
    passed: bool
    message: str
    critical: bool = True
    fix_hint: str | None = None


@dataclass
class EnvironmentReport:
    """Complete environment verification report."""

    checks: list[CheckResult] = field(default_factory=list)
    version: tuple[int, ...] | None = None
    rule_set: str = DEFAULT_RULE_SET.name

    @property
    def all_passed(self) -> bool:
        return all(c.passed for c in self.checks if c.critical)

    @property
    def critical_failures(self) -> list[CheckResult]:
        return [c for c in self.checks if c.critical and not c.passed]


def parse_gpg_version(text: str) -> tuple[int, ...] | None:
    """Extract the version from the first line of ``gpg --version``."""
    match = _VERSION_LINE.search(text)
    if not match:
        return None
    return tuple(int(part) for part in match.groups() if part is not None)


def detect_gpg_version(binary: str = "gpg") -> tuple[int, ...] | None:
    try:
        result = subprocess.run(
            [binary, "--version"],
            capture_output=True,
            text=True,
        )
    except OSError:
        return None
    if result.returncode != 0:
        return None
    return parse_gpg_version(result.stdout)


def rules_for_installed_gpg(binary: str = "gpg") -> RuleSet:
    """Pick the rule set for the gpg on PATH, or the default if it can't be run."""
    return rule_set_for_version(detect_gpg_version(binary))


def check_gpg_installed(binary: str = "gpg") -> CheckResult:
    """Check if GnuPG is installed and accessible."""
    gpg_path = shutil.which(binary)
    if gpg_path:
        try:
            result = subprocess.run(
                [binary, "--version"],
                capture_output=True,
                text=True,
            )
            if result.returncode == 0:
                version_line = result.stdout.split("\n")[0]
                return CheckResult(
                    name="GnuPG",
                    passed=True,
                    message=f"Found: {version_line}",
                )
        except OSError as e:
            return CheckResult(
                name="GnuPG",
                passed=False,
                message=f"Error checking {binary}: {e}",
                fix_hint="Reinstall GnuPG",
            )

    return CheckResult(
        name="GnuPG",
        passed=False,
        message=f"{binary} not found in PATH",
        fix_hint="Install GnuPG: brew install gnupg (macOS) or apt install gnupg (Debian/Ubuntu)",
    )


def check_gnupghome(gnupghome: Path) -> CheckResult:
    if not gnupghome.exists():
        return CheckResult(
            name="GnuPG home",
            passed=False,
            message=f"{gnupghome} does not exist",
            critical=False,
            fix_hint="Run: gpg-adapter setup-home",
        )

    agent_conf = gnupghome / "gpg-agent.conf"
    if not agent_conf.exists() or "allow-loopback-pinentry" not in agent_conf.read_text():
        return CheckResult(
            name="GnuPG home",
            passed=False,
            message="gpg-agent.conf does not allow loopback pinentry",
            critical=False,
            fix_hint="Run: gpg-adapter setup-home",
        )

    return CheckResult(name="GnuPG home", passed=True, message=str(gnupghome))


def verify_environment(binary: str = "gpg", gnupghome: Path | None = None) -> EnvironmentReport:
    report = EnvironmentReport()
    report.checks.append(check_gpg_installed(binary))
    if gnupghome is not None:
        report.checks.append(check_gnupghome(gnupghome))

    report.version = detect_gpg_version(binary)
    report.rule_set = rule_set_for_version(report.version).name
    return report
