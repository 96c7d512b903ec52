"""Unattended key generation parameters for ``gpg --batch --gen-key``."""

from __future__ import annotations

import re
from pathlib import Path

# ed25519 primary for signing, cv25519 subkey for encryption
KEY_TYPE = "eddsa"
KEY_CURVE = "ed25519"
SUBKEY_TYPE = "ecdh"
SUBKEY_CURVE = "cv25519"

BATCH_FILE_NAME = "keyparams"

_EMPTY_COMMENT = re.compile(r"\s\(\)")
_EMPTY_EMAIL = re.compile(r"\s<>")


def build_user_id(name: str, comment: str | None = None, email: str | None = None) -> str:
    """Format ``Name (comment) <email>``, dropping empty parts."""
    user_id = f"{name} ({comment or ''}) <{email or ''}>"
    user_id = _EMPTY_COMMENT.sub("", user_id)
    return _EMPTY_EMAIL.sub("", user_id)


def build_batch_parameters(
    name: str,
    password: str | None = None,
    comment: str | None = None,
    email: str | None = None,
) -> str:
    lines = [
        f"Key-Type: {KEY_TYPE}",
        f"Key-Curve: {KEY_CURVE}",
        "Key-Usage: sign",
        f"Subkey-Type: {SUBKEY_TYPE}",
        f"Subkey-Curve: {SUBKEY_CURVE}",
        "Subkey-Usage: encrypt",
        "Expire-Date: 0",
        f"Name-Real: {name}",
    ]
    if comment:
        lines.append(f"Name-Comment: {comment}")
    if email:
        lines.append(f"Name-Email: {email}")
    if password:
        lines.append(f"Passphrase: {password}")
    else:
        lines.append("%no-protection")
    lines.append("%commit")
    return "\n".join(lines) + "\n"


def write_batch_file(directory: Path, params: str) -> Path:
    path = directory / BATCH_FILE_NAME
    path.write_text(params)
    path.chmod(0o600)
    return path
