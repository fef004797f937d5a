"""Shared utilities for starbase."""

from __future__ import annotations

import logging
import re
from pathlib import Path

log = logging.getLogger(__name__)

# Directories to skip during file discovery (dot-prefixed entries are always skipped)
SKIP_DIRS = {
    "node_modules", "__tests__", "__mocks__", "test", "tests",
    "dist", "build", ".next", ".turbo", "fixtures", "__snapshots__",
}

# Source extensions, in resolution order
SOURCE_EXTENSIONS = (".js", ".ts", ".jsx", ".tsx", ".mjs", ".cjs")

_REDACTED = "***"

# Credential shapes that must never leave the process
_CREDENTIAL_PATTERNS = [
    re.compile(r"x-access-token:[^@\s]+@"),
    re.compile(r"\b(?:gho|ghp|ghs|ghu|ghr)_[A-Za-z0-9_]+"),
    re.compile(r"\bgithub_pat_[A-Za-z0-9_]+"),
]


def discover_files(root: Path) -> list[Path]:
    """Walk root for source files, skipping ignored and dot-prefixed dirs.

    Entries that cannot be read (permission errors, dangling links) are
    skipped instead of aborting the walk. Order is unspecified.
    """
    files: list[Path] = []
    pending = [root.resolve()]
    while pending:
        current = pending.pop()
        try:
            entries = list(current.iterdir())
        except OSError as exc:
            log.debug("Skipping unreadable directory %s: %s", current, exc)
            continue
        for item in entries:
            if item.name.startswith("."):
                continue
            try:
                is_dir = item.is_dir()
            except OSError:
                continue
            if is_dir:
                if item.name not in SKIP_DIRS:
                    pending.append(item)
            elif item.suffix in SOURCE_EXTENSIONS:
                files.append(item)
    return files


def redact(text: str, *secrets: str | None) -> str:
    """Mask credentials in text: the given literal secrets plus known token shapes."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, _REDACTED)
    text = _CREDENTIAL_PATTERNS[0].sub(f"x-access-token:{_REDACTED}@", text)
    for pattern in _CREDENTIAL_PATTERNS[1:]:
        text = pattern.sub(_REDACTED, text)
    return text
