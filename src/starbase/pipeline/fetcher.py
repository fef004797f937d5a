"""Sparse, cached repository checkout.

Usage:
    from starbase.config import get_settings
    from starbase.pipeline.fetcher import RepoFetcher

    fetcher = RepoFetcher(get_settings())
    src_root = await fetcher.fetch("vercel/next.js", "packages/next/src")

A clone is written to a temporary sibling directory and renamed into the
cache only once every git step has succeeded, so a failed or timed-out
fetch never leaves a cache entry behind.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shutil
import uuid
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

from starbase.config import Settings
from starbase.errors import FetchError, FetchTimeoutError, SourceDirNotFound
from starbase.utils import redact

log = logging.getLogger(__name__)

_REPO_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")

# Checked in order by detect_source_dir
SOURCE_DIR_CANDIDATES = ("src", "lib", "app", "packages", "source", "core")


def detect_source_dir(dirs: list[str], default: str = "src") -> str:
    """Pick the conventional source directory from a repo's top-level dirs."""
    present = set(dirs)
    for candidate in SOURCE_DIR_CANDIDATES:
        if candidate in present:
            return candidate
    return default


def validate_repo(repo: str) -> None:
    parts = repo.split("/")
    if not _REPO_RE.match(repo) or any(p in (".", "..") or p.startswith("-") for p in parts):
        raise FetchError(f"Invalid repository identifier: {repo!r} (expected owner/name)")


def validate_sparse_dir(sparse_dir: str) -> None:
    parts = Path(sparse_dir).parts
    if not sparse_dir or Path(sparse_dir).is_absolute() or ".." in parts or sparse_dir.startswith("-"):
        raise FetchError(f"Invalid source directory: {sparse_dir!r}")


class RepoFetcher:
    """Fetch repositories into a local cache keyed by identifier."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.cache_dir = Path(settings.cache_dir)
        self._locks: dict[Path, asyncio.Lock] = {}
        self._locks_loop: asyncio.AbstractEventLoop | None = None

    def _lock(self, target: Path) -> asyncio.Lock:
        """Per-clone lock; all git work on one clone directory runs under it."""
        loop = asyncio.get_running_loop()
        if self._locks_loop is not loop:
            # asyncio locks are bound to the loop they first wait on
            self._locks = {}
            self._locks_loop = loop
        return self._locks.setdefault(target, asyncio.Lock())

    def clone_dir(self, repo: str) -> Path:
        return self.cache_dir / repo.replace("/", "__")

    def clone_url(self, repo: str, token: str | None = None) -> str:
        base = self.settings.git_base_url.rstrip("/")
        url = f"{base}/{repo}.git"
        parts = urlsplit(url)
        if token and parts.scheme in ("http", "https"):
            netloc = f"x-access-token:{token}@{parts.hostname}"
            if parts.port:
                netloc += f":{parts.port}"
            url = urlunsplit(parts._replace(netloc=netloc))
        return url

    def is_cached(self, repo: str) -> bool:
        return (self.clone_dir(repo) / ".git").exists()

    async def fetch(self, repo: str, sparse_dir: str, token: str | None = None) -> Path:
        """Ensure a checkout of repo containing sparse_dir; return the source root."""
        validate_repo(repo)
        validate_sparse_dir(sparse_dir)

        target = self.clone_dir(repo)
        async with self._lock(target):
            if self.is_cached(repo):
                log.info("Using cached clone: %s", target)
                # Widen the sparse set if a cached clone lacks this subdirectory
                if not (target / sparse_dir).is_dir():
                    await self._sparse_checkout(target, "add", sparse_dir, token)
            else:
                await self._clone(repo, target, sparse_dir, token)

        src_root = (target / sparse_dir).resolve()
        if not src_root.is_dir():
            raise SourceDirNotFound(f"Source directory not found: {sparse_dir} in {repo}")
        return src_root

    async def top_level_dirs(self, repo: str, token: str | None = None) -> list[str]:
        """Top-level directory names of the repository's HEAD tree."""
        validate_repo(repo)
        target = self.clone_dir(repo)
        async with self._lock(target):
            if not self.is_cached(repo):
                await self._clone(repo, target, None, token)
            out = await self._git(
                ["ls-tree", "-d", "--name-only", "HEAD"],
                cwd=target, timeout=self.settings.checkout_timeout, token=token,
            )
        return [line for line in out.splitlines() if line.strip()]

    # ── git steps ──────────────────────────────────────────────────────

    async def _clone(self, repo: str, target: Path, sparse_dir: str | None, token: str | None) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(f"{target.name}.partial-{uuid.uuid4().hex[:8]}")
        log.info("Sparse-cloning %s into %s", repo, target)
        try:
            await self._git(
                ["clone", "--depth", "1", "--filter=blob:none", "--sparse",
                 self.clone_url(repo, token), str(partial)],
                cwd=None, timeout=self.settings.clone_timeout, token=token,
            )
            if sparse_dir is not None:
                await self._sparse_checkout(partial, "set", sparse_dir, token)
            if target.exists():
                # Another process finished first; keep its clone and widen it
                shutil.rmtree(partial, ignore_errors=True)
                if sparse_dir is not None and not (target / sparse_dir).is_dir():
                    await self._sparse_checkout(target, "add", sparse_dir, token)
            else:
                partial.rename(target)
        except BaseException:
            shutil.rmtree(partial, ignore_errors=True)
            raise
        log.info("Clone complete: %s", target)

    async def _sparse_checkout(self, clone: Path, action: str, sparse_dir: str, token: str | None) -> None:
        await self._git(
            ["sparse-checkout", action, sparse_dir],
            cwd=clone, timeout=self.settings.checkout_timeout, token=token,
        )

    async def _git(self, args: list[str], *, cwd: Path | None, timeout: float, token: str | None) -> str:
        """Run git, killing it on timeout. Every error message is redacted."""
        step = f"git {args[0]}"
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        try:
            proc = await asyncio.create_subprocess_exec(
                "git", *args,
                cwd=str(cwd) if cwd else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
                env=env,
            )
        except OSError as exc:
            raise FetchError(redact(f"{step} could not start: {exc}", token)) from None

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise FetchTimeoutError(f"{step} timed out after {timeout:g}s") from None
        except asyncio.CancelledError:
            proc.kill()
            await asyncio.shield(proc.wait())
            raise

        if proc.returncode != 0:
            detail = redact(stderr.decode(errors="replace").strip(), token)
            log.error("%s failed (exit %s): %s", step, proc.returncode, detail)
            raise FetchError(f"{step} failed: {detail or f'exit status {proc.returncode}'}")
        return stdout.decode(errors="replace")
