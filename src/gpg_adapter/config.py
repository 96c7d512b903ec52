from __future__ import annotations

import os
import platform
from dataclasses import dataclass
from pathlib import Path

from .types import Result

DEFAULT_BINARY = "gpg"

ENV_BINARY = "GPG_ADAPTER_BINARY"
ENV_RULES = "GPG_ADAPTER_RULES"
ENV_ERROR_LOG = "GPG_ADAPTER_ERROR_LOG"


class ConfigError(Exception):
    pass


# Passphrases are handed to gpg on the command line, which needs loopback pinentry
LOOPBACK_GPG_AGENT_CONF = """\
# Accept passphrases from gpg --pinentry-mode loopback
allow-loopback-pinentry

# Cache TTL (in seconds)
default-cache-ttl 600
max-cache-ttl 7200
"""


@dataclass(frozen=True)
class AdapterSettings:
    binary: str = DEFAULT_BINARY
    gnupghome: Path | None = None
    rule_set: str | None = None
    log_path: Path | None = None

    @classmethod
    def from_env(cls) -> AdapterSettings:
        home = os.environ.get("GNUPGHOME")
        log_path = os.environ.get(ENV_ERROR_LOG)
        return cls(
            binary=os.environ.get(ENV_BINARY) or DEFAULT_BINARY,
            gnupghome=Path(home) if home else None,
            rule_set=os.environ.get(ENV_RULES) or None,
            log_path=Path(log_path) if log_path else None,
        )

    def override(
        self,
        binary: str | None = None,
        gnupghome: Path | None = None,
        rule_set: str | None = None,
        log_path: Path | None = None,
    ) -> AdapterSettings:
        """Return settings with any non-empty argument taking precedence."""
        return AdapterSettings(
            binary=binary or self.binary,
            gnupghome=gnupghome or self.gnupghome,
            rule_set=rule_set or self.rule_set,
            log_path=log_path or self.log_path,
        )


def get_gnupghome() -> Path:
    """Get the GnuPG home directory."""
    env_home = os.environ.get("GNUPGHOME")
    if env_home:
        return Path(env_home)
    return Path.home() / ".gnupg"


def ensure_gnupg_dir(gnupghome: Path | None = None) -> Result[Path]:
    """Ensure the GnuPG directory exists with correct permissions."""
    home = gnupghome or get_gnupghome()

    try:
        home.mkdir(parents=True, exist_ok=True)

        # Set restrictive permissions (0700)
        if platform.system() != "Windows":
            home.chmod(0o700)

        return Result.ok(home)
    except OSError as e:
        return Result.err(ConfigError(f"Could not create GnuPG directory: {e}"))


def write_gpg_agent_conf(
    gnupghome: Path | None = None,
    content: str | None = None,
    backup_existing: bool = True,
) -> Result[Path]:
    """Write a gpg-agent.conf that allows loopback pinentry."""
    home = gnupghome or get_gnupghome()
    conf_path = home / "gpg-agent.conf"

    try:
        if backup_existing and conf_path.exists():
            backup_path = conf_path.with_suffix(".conf.bak")
            conf_path.rename(backup_path)

        conf_path.write_text(content or LOOPBACK_GPG_AGENT_CONF)

        if platform.system() != "Windows":
            conf_path.chmod(0o600)

        return Result.ok(conf_path)
    except OSError as e:
        return Result.err(ConfigError(f"Could not write gpg-agent.conf: {e}"))


def setup_home(gnupghome: Path | None = None, backup_existing: bool = True) -> Result[Path]:
    """Create the GnuPG home and configure the agent for loopback passphrases."""
    home = gnupghome or get_gnupghome()

    result = ensure_gnupg_dir(home)
    if result.is_err():
        return Result.err(result.unwrap_err())

    return write_gpg_agent_conf(home, backup_existing=backup_existing)
