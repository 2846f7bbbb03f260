"""
llmpr package.

This package provides a command-line interface (CLI) that writes
pull-request descriptions, or structured code reviews, from a local git
diff using an OpenAI chat model.  The prompt sent to the model includes:

* The unified diff against the chosen base branch.
* A focused tree of the repository in which only changed paths are
  expanded.
* Style, length and mode instructions.
* The ``[NEED_CONTEXT:filepath]`` convention, which lets the model ask
  for the contents of up to three files per round.

Each component handles a single responsibility, which keeps the
completion loop testable without network access.

See `cli.py` for the entry point.
"""

__version__ = "1.0.7"

__all__ = [
    "cli",
]
