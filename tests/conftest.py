from __future__ import annotations

import contextlib
import os
import shutil
import subprocess
from collections.abc import Generator
from pathlib import Path

import pytest

from gpg_adapter.gpg_ops import GPGOperations
from gpg_adapter.prompts import MockPrompts
from gpg_adapter.types import KeyKind, KeyRecord

ALICE_FPR = "ABCDEF0123456789ABCDEF0123456789ABCDEF01"
BOB_FPR = "0123456789ABCDEF0123456789ABCDEF01234567"

TWO_KEY_LISTING = f"""\
/home/user/.gnupg/pubring.kbx
-----------------------------
pub   ed25519 2024-01-01 [SC]
      {ALICE_FPR}
uid           [ultimate] Alice <alice@example.com>
sub   cv25519 2024-01-01 [E]

pub   ed25519 2024-02-01 [SC]
      {BOB_FPR}
uid           [ unknown] Bob (work) <bob@example.com>
sub   cv25519 2024-02-01 [E]
"""


@pytest.fixture
def two_key_listing() -> str:
    return TWO_KEY_LISTING


@pytest.fixture
def alice() -> KeyRecord:
    return KeyRecord(
        kind=KeyKind.PRIMARY,
        fingerprint=ALICE_FPR,
        user_id="uid           [ultimate] Alice <alice@example.com>",
        subkey_line="sub   cv25519 2024-01-01 [E]",
        key_line="pub   ed25519 2024-01-01 [SC]",
    )


@pytest.fixture
def bob() -> KeyRecord:
    return KeyRecord(
        kind=KeyKind.PRIMARY,
        fingerprint=BOB_FPR,
        user_id="uid           [ unknown] Bob (work) <bob@example.com>",
        subkey_line="sub   cv25519 2024-02-01 [E]",
        key_line="pub   ed25519 2024-02-01 [SC]",
    )


def _gpg_agent_can_start() -> bool:
    """Check if gpg-agent can be started in a temp directory."""
    import tempfile
    import time

    if shutil.which("gpg-agent") is None:
        return False

    with tempfile.TemporaryDirectory() as tmpdir:
        gnupghome = Path(tmpdir)
        (gnupghome / "gpg-agent.conf").write_text("allow-loopback-pinentry\n")
        env = os.environ.copy()
        env["GNUPGHOME"] = str(gnupghome)
        try:
            subprocess.Popen(
                ["gpg-agent", "--daemon"],
                env=env,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            # Wait briefly for agent to start and create socket
            time.sleep(0.5)
            started = (gnupghome / "S.gpg-agent").exists()
            subprocess.run(
                ["gpgconf", "--kill", "gpg-agent"],
                env=env,
                capture_output=True,
                timeout=5,
            )
            return started
        except Exception:
            return False


# Cache the result
_GPG_AGENT_AVAILABLE: bool | None = None


def gpg_agent_available() -> bool:
    """Check if gpg-agent can be started (cached)."""
    global _GPG_AGENT_AVAILABLE
    if _GPG_AGENT_AVAILABLE is None:
        _GPG_AGENT_AVAILABLE = _gpg_agent_can_start()
    return _GPG_AGENT_AVAILABLE


@pytest.fixture
def gpg_home() -> Generator[Path, None, None]:
    """Create an isolated GNUPGHOME with gpg-agent configured for testing.

    Note: Uses /tmp directly instead of pytest's tmp_path because Unix domain
    sockets have a maximum path length (~104 chars on macOS). Pytest's temp
    paths are often too long for gpg-agent's socket files.
    """
    import tempfile

    tmpdir = tempfile.mkdtemp(prefix="gpg_")
    gnupghome = Path(tmpdir)
    gnupghome.chmod(0o700)

    agent_conf = gnupghome / "gpg-agent.conf"
    agent_conf.write_text("allow-loopback-pinentry\n")
    agent_conf.chmod(0o600)

    env = os.environ.copy()
    env["GNUPGHOME"] = str(gnupghome)

    yield gnupghome

    with contextlib.suppress(Exception):
        subprocess.run(
            ["gpgconf", "--kill", "gpg-agent"],
            env=env,
            capture_output=True,
            timeout=5,
        )

    shutil.rmtree(gnupghome, ignore_errors=True)


@pytest.fixture
def gpg_ops(gpg_home: Path) -> GPGOperations:
    return GPGOperations(gnupghome=gpg_home)


@pytest.fixture
def mock_prompts() -> MockPrompts:
    return MockPrompts(passphrase="test-passphrase-secure", confirmations=True)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "slow: marks tests as slow-running")
    config.addinivalue_line("markers", "gpg_agent: marks tests as requiring gpg-agent")


def pytest_collection_modifyitems(  # noqa: ARG001
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    skip_gpg_agent = pytest.mark.skip(reason="gpg-agent cannot start in isolated environment")

    for item in items:
        # Slow tests drive a real gpg and need its agent
        if "slow" in item.keywords and not gpg_agent_available():
            item.add_marker(skip_gpg_agent)
