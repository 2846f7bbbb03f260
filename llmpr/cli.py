"""
Entry point for the llmpr command-line interface (exposed as `llmpr`).

llmpr turns the diff between the current working tree and a base branch
into a pull-request description, or a code review, using an OpenAI chat
model.  It collects the diff and the list of changed files from git,
renders a focused tree of the repository, builds the prompt, and runs the
context-aware completion loop, which lets the model ask for up to three
extra files per round.  The result is printed or written to a file, and
can optionally be used to open the pull request with the GitHub CLI.

Usage examples::

    # Describe the changes against main and print the result
    llmpr

    # Compare against develop, short style, save to pr.md
    llmpr --base develop --style concise --output pr.md

    # Structured code review instead of a description
    llmpr --review

    # Generate and open the pull request with gh
    llmpr --create-pr --draft

During development the module can also be run with::

    python -m llmpr.cli
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import git, github
from .completion import ContextAwareCompletion, CompletionClient
from .config import MODES, STYLES, LLMPRConfig
from .exceptions import GitHubCLIError, LLMPRError
from .openai_client import OpenAIClient
from .prompts import build_prompt
from .tree import build_directory_tree

logger = logging.getLogger("llmpr.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llmpr",
        description="Generate pull-request descriptions or code reviews from a git diff using OpenAI.",
    )
    parser.add_argument("-b", "--base", default=None, help="Base branch to compare against (default: main).")
    parser.add_argument("-m", "--model", default=None, help="OpenAI model to use (default: gpt-4o-mini).")
    parser.add_argument("-o", "--output", type=Path, default=None, help="Output file for the generated text.")
    parser.add_argument(
        "-s",
        "--style",
        choices=STYLES,
        default=None,
        help="Description style: concise focuses on summary and key changes; "
        "verbose includes code snippets and diagrams where appropriate.",
    )
    parser.add_argument(
        "-l", "--max-length", type=int, default=None, help="Maximum length of the output in words (default: 500)."
    )
    parser.add_argument(
        "--mode",
        choices=MODES,
        default=None,
        help="What to generate: a PR description (describe) or a code review (review).",
    )
    parser.add_argument("--review", action="store_true", help="Shortcut for --mode review.")
    parser.add_argument(
        "-c", "--create-pr", action="store_true", help="Create a GitHub PR with gh after generating the description."
    )
    parser.add_argument("--draft", action="store_true", help="With --create-pr, open the PR as a draft.")
    parser.add_argument(
        "--title", default=None, help="With --create-pr, PR title (default: latest commit subject on base..HEAD)."
    )
    parser.add_argument(
        "--github-config",
        action="store_true",
        help="Check that gh is installed and authenticated, show repo access and the current branch, then exit.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show detailed logs (same as --log-level DEBUG).")
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.environ.get("LLMPR_LOGLEVEL", "INFO").upper(),
        help="Logging verbosity (default from env LLMPR_LOGLEVEL or INFO).",
    )
    return parser


def configure_logging(level_name: str) -> None:
    level = getattr(logging, (level_name or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="[%(levelname)s] %(asctime)s %(name)s:%(lineno)d - %(message)s",
    )
    logging.getLogger().setLevel(level)
    # The HTTP stack is noisy at INFO; only surface it when debugging
    http_level = level if level <= logging.DEBUG else max(level, logging.WARNING)
    logging.getLogger("httpx").setLevel(http_level)
    logging.getLogger("openai").setLevel(http_level)


def overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    mode = "review" if args.review else args.mode
    return {
        "base": args.base,
        "model": args.model,
        "output": args.output,
        "style": args.style,
        "max_length": args.max_length,
        "mode": mode,
        "create_pr": args.create_pr or None,
        "draft": args.draft or None,
        "pr_title": args.title,
    }


def write_output(text: str, config: LLMPRConfig) -> None:
    """Write `text` to the configured output file, or print it to stdout."""
    if config.output is not None:
        with config.output.open("w", encoding="utf-8") as f:
            f.write(text)
        logger.info("Output saved to %s", config.output)
    else:
        print(text)


async def run(
    config: LLMPRConfig,
    cwd: Optional[Path] = None,
    client: Optional[CompletionClient] = None,
) -> Optional[str]:
    """Execute one generation run.

    Returns the final text, or ``None`` when there was nothing to describe.
    A client is created from `config` unless one is passed in.
    """
    cwd = Path(cwd) if cwd is not None else Path.cwd()
    options = config.options
    logger.debug("Style: %s | max length: %d words | mode: %s", options.style, options.max_length, options.mode)

    logger.info("Getting diff against %s...", options.base)
    diff, changed_files = await git.get_diff_and_changed_files(options.base, cwd=cwd)
    if not diff.strip():
        logger.warning("No changes detected. Make sure you have uncommitted changes.")
        return None
    logger.info("Diff against %s retrieved: %d changed files", options.base, len(changed_files))

    tree = build_directory_tree(cwd, changed_files, max_depth=config.tree_max_depth)
    prompt = build_prompt(diff, tree, options)
    logger.debug("Prompt:\n%s", prompt)

    owned_client: Optional[OpenAIClient] = None
    if client is None:
        client = owned_client = OpenAIClient(
            config.require_api_key(), model=config.model, base_url=config.openai_base_url
        )
    logger.info("Generating %s using %s...", options.task_name, config.model)
    completion = ContextAwareCompletion(
        client, cwd=cwd, max_rounds=config.max_rounds, task_name=options.task_name
    )
    try:
        text = await completion.run(prompt)
    finally:
        if owned_client is not None:
            await owned_client.aclose()

    write_output(text, config)

    if config.create_pr:
        title = config.pr_title or await git.get_suggested_title(options.base, cwd=cwd)
        url = await github.create_pull_request(title, text, options.base, draft=config.draft, cwd=cwd)
        logger.info("Pull request created: %s", url)
    return text


async def check_github_config(cwd: Optional[Path] = None) -> None:
    """Report the gh setup used by --create-pr; raise GitHubCLIError if it is unusable."""
    logger.info("Checking github config...")
    if not await github.check_gh_installed():
        raise GitHubCLIError("GitHub CLI (gh) is not installed. Install it from: https://cli.github.com/")
    status = await github.check_gh_auth()
    logger.debug("GitHub auth status:\n%s", status.output or "No output")
    if not status.authenticated:
        raise GitHubCLIError("You are not authenticated with GitHub CLI. Run: gh auth login")
    active = status.active_account
    logger.info("Authenticated as %s", active.username if active else "user")
    if len(status.accounts) > 1:
        logger.info("Found %d GitHub accounts: %s", len(status.accounts), ", ".join(a.username for a in status.accounts))

    has_access, repo_name = await github.check_repo_access(cwd=cwd)
    if repo_name:
        logger.info("Repository: %s", repo_name)
    if not has_access:
        logger.warning(
            "Active account %s does not have repo access. Switch with: gh auth switch",
            active.username if active else "unknown",
        )
    logger.info("Current branch: %s", await git.get_current_branch(cwd=cwd))


def main(argv: Optional[List[str]] = None) -> int:
    """Primary CLI entry point.

    Parses arguments, loads configuration, runs generation, and returns
    an exit code: 0 on success or when there is nothing to do, 1 on any
    failure.
    """
    args = build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else args.log_level)

    cwd = Path.cwd()
    try:
        if args.github_config:
            asyncio.run(check_github_config(cwd=cwd))
            return 0
        config = LLMPRConfig.load(cwd, overrides_from_args(args))
        logger.debug("Loaded configuration from %s", config.config_path or "defaults")
        asyncio.run(run(config, cwd=cwd))
    except LLMPRError as exc:
        logger.error("%s", exc)
        return 1
    except OSError as exc:
        logger.error("I/O error: %s", exc)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
