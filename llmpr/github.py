"""
GitHub CLI integration.

Checks that gh is installed and authenticated, and opens a pull request
with ``gh pr create`` using the generated text as the body.  The
environment tokens ``GITHUB_TOKEN`` and ``GH_TOKEN`` are removed from the
child environment so that gh uses the accounts it manages itself rather
than a CI token.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .exceptions import GitHubCLIError

logger = logging.getLogger(__name__)

ACCOUNT_RE = re.compile(r"Logged in to github\.com account ([^\s(]+)")
WRITE_PERMISSIONS = {"WRITE", "ADMIN", "MAINTAIN"}


@dataclass
class GhAccount:
    username: str
    active: bool = False
    scopes: List[str] = field(default_factory=list)


@dataclass
class GhAuthStatus:
    """Parsed output of ``gh auth status``."""

    authenticated: bool
    accounts: List[GhAccount] = field(default_factory=list)
    output: str = ""

    @property
    def active_account(self) -> Optional[GhAccount]:
        return next((a for a in self.accounts if a.active), None)


def _gh_env() -> Dict[str, str]:
    env = dict(os.environ)
    env.pop("GITHUB_TOKEN", None)
    env.pop("GH_TOKEN", None)
    return env


async def run_gh(*args: str, stdin: Optional[str] = None, cwd: Optional[Path] = None) -> Tuple[int, str, str]:
    """Run ``gh <args>`` and return ``(returncode, stdout, stderr)``."""
    logger.debug("Running gh %s", " ".join(args))
    try:
        proc = await asyncio.create_subprocess_exec(
            "gh",
            *args,
            cwd=str(cwd) if cwd else None,
            env=_gh_env(),
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise GitHubCLIError("GitHub CLI (gh) is not installed. Install it from: https://cli.github.com/") from exc
    stdout, stderr = await proc.communicate(stdin.encode("utf-8") if stdin is not None else None)
    return (
        proc.returncode,
        stdout.decode("utf-8", errors="replace"),
        stderr.decode("utf-8", errors="replace"),
    )


async def check_gh_installed() -> bool:
    try:
        code, _, _ = await run_gh("--version")
    except GitHubCLIError:
        return False
    return code == 0


def parse_auth_status(output: str) -> List[GhAccount]:
    """Extract every account block from ``gh auth status`` output."""
    matches = list(ACCOUNT_RE.finditer(output))
    accounts: List[GhAccount] = []
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(output)
        block = output[match.start():end]
        active = re.search(r"Active account:\s*(true|false)", block)
        scopes_match = re.search(r"Token scopes:\s*([^\n]+)", block)
        scopes: List[str] = []
        if scopes_match:
            scopes = [s.strip() for s in scopes_match.group(1).replace("'", "").split(",") if s.strip()]
        accounts.append(GhAccount(match.group(1).strip(), bool(active and active.group(1) == "true"), scopes))
    return accounts


async def check_gh_auth() -> GhAuthStatus:
    # gh auth status reports on stderr even on success
    code, stdout, stderr = await run_gh("auth", "status")
    output = stderr + stdout
    if code != 0 or "Logged in" not in output:
        return GhAuthStatus(authenticated=False, output=output)
    accounts = parse_auth_status(output)
    for account in accounts:
        logger.debug(
            "gh account %s (%s) - scopes: %s",
            account.username,
            "active" if account.active else "inactive",
            ", ".join(account.scopes),
        )
    return GhAuthStatus(authenticated=bool(accounts), accounts=accounts, output=output)


async def check_repo_access(cwd: Optional[Path] = None) -> Tuple[bool, Optional[str]]:
    """Return whether the active account can push, and the ``owner/name`` of the repo."""
    code, stdout, _ = await run_gh("repo", "view", "--json", "nameWithOwner,viewerPermission", cwd=cwd)
    if code != 0:
        return False, None
    try:
        data = json.loads(stdout)
    except ValueError:
        return False, None
    return data.get("viewerPermission", "NONE") in WRITE_PERMISSIONS, data.get("nameWithOwner")


def explain_pr_error(message: str, base: str) -> str:
    """Translate common gh failures into actionable messages."""
    if "must be a collaborator" in message:
        return (
            "You must be a collaborator with write access to create PRs in this repository.\n"
            "Options:\n"
            "  - Fork the repository and create a PR from your fork\n"
            "  - Ask a repository admin to add you as a collaborator\n"
            "  - Use llmpr without --create-pr to generate the description only"
        )
    if "already exists" in message:
        return "A pull request already exists for this branch.\nUse: gh pr view --web to see the existing PR"
    if "No commits between" in message:
        return "No commits found between base and head branch.\nMake sure you have pushed commits to your branch"
    if "not found" in message:
        return f'Base branch "{base}" not found.\nCheck that the base branch name is correct'
    return message


async def create_pull_request(
    title: str, body: str, base: str, draft: bool = False, cwd: Optional[Path] = None
) -> str:
    """Create the PR and return its URL as printed by gh."""
    if not await check_gh_installed():
        raise GitHubCLIError("GitHub CLI (gh) is not installed. Install it from: https://cli.github.com/")

    args: List[str] = ["pr", "create", "--title", title, "--body-file", "-", "--base", base]
    if draft:
        args.append("--draft")
    logger.info("Creating pull request against %s%s", base, " (draft)" if draft else "")

    code, stdout, stderr = await run_gh(*args, stdin=body, cwd=cwd)
    if code != 0:
        raise GitHubCLIError(explain_pr_error(stderr.strip() or f"exit status {code}", base))
    return stdout.strip()
