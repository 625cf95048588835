"""Local storage hardening helpers."""

from __future__ import annotations

import os
from pathlib import Path


DEBTPERMIT_DIR = Path.home() / ".debtpermit"
SECRETS_DIR = Path.home() / ".debtpermit-secrets"


def ensure_private_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)
    os.chmod(path, 0o700)


def ensure_private_file(path: Path) -> None:
    if not path.exists():
        path.touch()
    os.chmod(path, 0o600)
