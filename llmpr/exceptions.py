"""Exceptions raised by llmpr.

Every fatal condition derives from :class:`LLMPRError` so the CLI can
report it as a single message and exit non-zero.
"""


class LLMPRError(Exception):
    """Base exception for all llmpr failures."""


class ConfigurationError(LLMPRError):
    """Raised when required settings are missing or invalid."""


class TransportError(LLMPRError):
    """Raised when the completion endpoint fails or returns garbage."""


class FilesystemError(LLMPRError):
    """Raised when the repository tree cannot be listed."""


class GitError(LLMPRError):
    """Raised when a git subprocess fails."""


class GitHubCLIError(LLMPRError):
    """Raised when the GitHub CLI is missing or a gh command fails."""
