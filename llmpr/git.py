"""Async wrappers around the git commands llmpr needs."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Tuple

from .exceptions import GitError

logger = logging.getLogger(__name__)


async def run_git(*args: str, cwd: Optional[Path] = None) -> str:
    """Run ``git <args>`` and return its stdout, raising GitError on failure."""
    logger.debug("Running git %s", " ".join(args))
    try:
        proc = await asyncio.create_subprocess_exec(
            "git",
            *args,
            cwd=str(cwd) if cwd else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise GitError("git is not installed or not on PATH") from exc
    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        message = stderr.decode("utf-8", errors="replace").strip() or f"exit status {proc.returncode}"
        raise GitError(message)
    return stdout.decode("utf-8", errors="replace")


async def get_diff(base: str, cwd: Optional[Path] = None) -> str:
    try:
        return await run_git("diff", base, cwd=cwd)
    except GitError as exc:
        raise GitError(f"Error getting git diff: {exc}") from exc


async def get_changed_files(base: str, cwd: Optional[Path] = None) -> List[str]:
    """Return the unique changed paths, in git's order."""
    try:
        out = await run_git("diff", "--name-only", base, cwd=cwd)
    except GitError as exc:
        raise GitError(f"Error getting changed files: {exc}") from exc
    seen: List[str] = []
    for line in out.splitlines():
        line = line.strip()
        if line and line not in seen:
            seen.append(line)
    return seen


async def get_diff_and_changed_files(base: str, cwd: Optional[Path] = None) -> Tuple[str, List[str]]:
    """Fetch the diff first; the file list is only fetched for a non-empty diff."""
    diff = await get_diff(base, cwd=cwd)
    if not diff.strip():
        return diff, []
    return diff, await get_changed_files(base, cwd=cwd)


async def get_current_branch(cwd: Optional[Path] = None) -> str:
    try:
        return (await run_git("branch", "--show-current", cwd=cwd)).strip()
    except GitError as exc:
        raise GitError(f"Error getting current branch: {exc}") from exc


async def get_suggested_title(base: str, cwd: Optional[Path] = None) -> str:
    """Suggest a PR title from the newest non-merge commit subject on ``base..HEAD``."""
    try:
        out = await run_git("log", f"{base}..HEAD", "--pretty=format:%s", "--no-merges", cwd=cwd)
    except GitError as exc:
        raise GitError(f"Error getting commit messages: {exc}") from exc
    commits = [line.strip() for line in out.splitlines() if line.strip()]
    return commits[0] if commits else "Update changes"
