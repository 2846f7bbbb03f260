"""
Configuration management for llmpr.

This module centralizes loading of configuration values from environment
variables, an optional JSON configuration file and command-line
overrides.  It defines sane defaults and a single configuration object
that is passed explicitly to the prompt builder, the directory tree
summarizer and the completion loop.

The configuration file `llmpr_config.json` lets a repository pin the
model and the description style used by everyone working on it.  For
example::

    {"model": "gpt-4o", "style": "concise", "max_length": 300}

If the configuration file is absent, reasonable defaults are used.
Values given on the command line always win over the file.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError

CONFIG_FILE = "llmpr_config.json"

STYLES = ("concise", "standard", "verbose")
MODES = ("describe", "review")

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_BASE = "main"
DEFAULT_MAX_LENGTH = 500
MAX_ROUNDS = 3
TREE_MAX_DEPTH = 3

logger = logging.getLogger(__name__)


@dataclass
class GenerationOptions:
    """What kind of text the model is asked to write.

    Attributes
    ----------
    style: str
        One of ``concise``, ``standard`` or ``verbose``.

    max_length: int
        Upper bound on the length of the answer, in words.

    mode: str
        ``describe`` for a pull-request description, ``review`` for a
        structured code review.

    base: str
        The branch (or any git revision) the diff is taken against.
    """

    style: str = "standard"
    max_length: int = DEFAULT_MAX_LENGTH
    mode: str = "describe"
    base: str = DEFAULT_BASE

    def validate(self) -> None:
        """Raise ConfigurationError if any option is out of range."""
        if self.style not in STYLES:
            raise ConfigurationError(
                f"Invalid style '{self.style}'. Choose one of: {', '.join(STYLES)}"
            )
        if self.mode not in MODES:
            raise ConfigurationError(
                f"Invalid mode '{self.mode}'. Choose one of: {', '.join(MODES)}"
            )
        if self.max_length <= 0:
            raise ConfigurationError(
                f"Maximum length must be a positive number of words, got {self.max_length}"
            )

    @property
    def task_name(self) -> str:
        return "code review" if self.mode == "review" else "PR description"


@dataclass
class LLMPRConfig:
    """Top-level configuration for a single llmpr run.

    Attributes
    ----------
    openai_api_key: str
        The API key used to authenticate with OpenAI.  Loaded from the
        ``OPENAI_API_KEY`` environment variable.  Only required once a
        completion request is actually about to be made.

    openai_base_url: str
        Optional alternative endpoint (``OPENAI_BASE_URL``), e.g. a proxy
        or an OpenAI-compatible server.

    model: str
        Identifier of the chat model.

    options: GenerationOptions
        Style, length, mode and base branch.

    max_rounds: int
        Hard ceiling on the number of completion requests per run.

    tree_max_depth: int
        Deepest level of the repository tree that is rendered.

    output: Path
        File the final answer is written to.  When ``None`` the answer is
        printed to standard output.

    config_path: Path
        Path to the configuration file this object was loaded from, if
        any.  Retained for logging purposes.
    """

    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    model: str = DEFAULT_MODEL
    options: GenerationOptions = field(default_factory=GenerationOptions)
    max_rounds: int = MAX_ROUNDS
    tree_max_depth: int = TREE_MAX_DEPTH
    output: Optional[Path] = None
    create_pr: bool = False
    draft: bool = False
    pr_title: Optional[str] = None
    config_path: Optional[Path] = None

    def require_api_key(self) -> str:
        """Return the API key or raise ConfigurationError when it is unset."""
        if not self.openai_api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY environment variable is not set. "
                "Please set it using: export OPENAI_API_KEY=your_api_key"
            )
        return self.openai_api_key

    @staticmethod
    def load(base_dir: Path, overrides: Optional[Dict[str, Any]] = None) -> "LLMPRConfig":
        """Load configuration values from `llmpr_config.json`, the
        environment and explicit overrides.

        Parameters
        ----------
        base_dir: Path
            The directory where the CLI command is being executed.  This
            directory is scanned for a `llmpr_config.json` file.

        overrides: dict
            Values supplied on the command line.  Keys whose value is
            ``None`` are ignored so that file values and defaults apply.

        Returns
        -------
        LLMPRConfig
            A populated and validated configuration object.
        """
        config_path = base_dir / CONFIG_FILE
        file_values: Dict[str, Any] = {}
        if config_path.exists():
            try:
                with config_path.open("r", encoding="utf-8") as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("top-level JSON value must be an object")
                file_values = data
            except (OSError, ValueError) as exc:
                logger.warning("Failed to parse %s: %s. Using defaults.", config_path, exc)
                file_values = {}

        # null in the file means "not set", same as a missing key
        merged: Dict[str, Any] = {k: v for k, v in file_values.items() if v is not None}
        for key, value in (overrides or {}).items():
            if value is not None:
                merged[key] = value

        raw_length = merged.get("max_length", DEFAULT_MAX_LENGTH)
        try:
            if isinstance(raw_length, bool):
                raise TypeError("booleans are not word counts")
            max_length = int(raw_length)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Maximum length must be a number of words, got {raw_length!r}")

        options = GenerationOptions(
            style=str(merged.get("style", "standard")),
            max_length=max_length,
            mode=str(merged.get("mode", "describe")),
            base=str(merged.get("base", DEFAULT_BASE)),
        )
        options.validate()

        output = merged.get("output")
        return LLMPRConfig(
            openai_api_key=os.environ.get("OPENAI_API_KEY"),
            openai_base_url=os.environ.get("OPENAI_BASE_URL") or None,
            model=str(merged.get("model", DEFAULT_MODEL)),
            options=options,
            output=Path(output) if output else None,
            create_pr=bool(merged.get("create_pr", False)),
            draft=bool(merged.get("draft", False)),
            pr_title=merged.get("pr_title"),
            config_path=config_path if file_values else None,
        )
