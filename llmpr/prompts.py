"""
Prompt templates for llmpr.

`build_prompt` assembles the instruction document sent as the first (and
system) message of the completion loop.  The text varies with the
configured style, word limit and mode, and always closes with the
description of the ``[NEED_CONTEXT:filepath]`` convention so the model
knows it can ask for files.
"""

from __future__ import annotations

from typing import List

from .config import GenerationOptions

MAX_CONTEXT_FILES = 3

CONTEXT_PROTOCOL = (
    "If you need to see the contents of any specific file to better understand the changes, "
    "you can request it by including [NEED_CONTEXT:filepath] in your response. "
    "For example, [NEED_CONTEXT:src/config.py]. "
    f"You can request up to {MAX_CONTEXT_FILES} files for additional context."
)

VERBOSE_EXTRAS = """Make this PR stand out:
- Use before/after code snippet comparisons ONLY when they are needed to clarify important changes
- Create visual Mermaid diagrams ONLY if they are necessary to explain architecture changes or data flows
- Highlight key technical decisions and explain the reasoning behind them
- Use clear, engaging section headers
- Format code examples with proper syntax highlighting
- Explain complex changes in simple terms, then follow with technical details
- Use tables to compare features or parameters when appropriate
- Start with a concise but powerful executive summary that captures the essence of the changes
- Use visual separation (horizontal rules, headings) to organize sections logically"""

VERBOSE_SNIPPET_RULES = """For code snippets:
- Only include code snippets if they are necessary to explain a complex or important change
- Show the most important changes, not all changes
- Use diff syntax with + and - when showing before/after
- Always include the language for proper syntax highlighting

For diagrams:
- Only include diagrams if they are necessary to explain architecture, workflows, or state changes
- Keep diagrams focused on the changes being made
- Include a brief explanation of what the diagram shows

Example Mermaid diagram (if applicable):
```mermaid
flowchart TD
    A[Client] -->|API Request| B(API Gateway)
    B -->|Route Request| C{Auth Service}
    C -->|Validate| D[User Service]
    B -->|Authorized Request| F[Feature Service]
```"""

NOT_NEEDED_WARNING = (
    "*MAKE SURE NOT TO ADD ITEMS OR SECTIONS IF THEY ARE NOT NEEDED. I.E. A SIMPLE CHANGE DOESN'T "
    "NEED A DIAGRAM OR EXTENSIVE EXAMPLES. ONLY INCLUDE DIAGRAMS OR CODE SNIPPETS IF THEY ARE "
    "NECESSARY TO EXPLAIN THE CHANGES.*"
)


def _formatting_list(verbose: bool) -> str:
    items = ["Lists", "Code blocks (only if needed)", "Links", "Bold and italic text", "Headings", "Quotes"]
    if verbose:
        items += ["Mermaid diagrams (only if needed)", "Tables", "Emojis (sparingly)", "Collapsible sections for optional details"]
    return "You can use markdown formatting including:\n" + "\n".join(f"- {item}" for item in items)


def _description_sections(options: GenerationOptions) -> List[str]:
    verbose = options.style == "verbose"
    if options.style == "concise":
        focus = " focusing only on summary, key details, and changes"
    else:
        focus = " including code snippets and diagrams where appropriate"
    parts = [f"Write a {options.style} PR description{focus}."]
    if verbose:
        parts.append(
            "Include:\n"
            "1. Detailed summary of changes\n"
            "2. Purpose and motivation for the PR\n"
            "3. Implementation details (include code snippets or diagrams ONLY if they are necessary "
            "to clearly explain complex or important changes)\n"
            "4. Any important notes, warnings, or future improvements"
        )
    else:
        parts.append(
            "Include:\n"
            "1. Summary of changes\n"
            "2. Purpose of the PR\n"
            "3. Key implementation details\n"
            "4. Any important notes or warnings"
        )
    parts.append(
        "Your goal is to make a PR that is the gold standard of PRs and is very clear, explains the most "
        "important details, and assists with any engineer that reads it."
    )
    if verbose:
        parts.append(VERBOSE_EXTRAS)
    parts.append("The PR description should be in markdown format.")
    parts.append(f"The PR description should be no more than {options.max_length} words.")
    parts.append(_formatting_list(verbose))
    if verbose:
        parts.append(VERBOSE_SNIPPET_RULES)
    parts.append(NOT_NEEDED_WARNING)
    return parts


def _review_sections(options: GenerationOptions) -> List[str]:
    depth = {
        "concise": "Only report issues that would block merging.",
        "standard": "Report bugs, risky changes and clear maintainability problems.",
        "verbose": "Report bugs, risky changes, maintainability and style problems, and missing tests.",
    }[options.style]
    return [
        f"Write a {options.style} code review of these changes. {depth}",
        "Structure the review as:\n"
        "1. Summary: one paragraph on what the change does\n"
        "2. Issues: a list ordered by severity (blocker, major, minor), each naming the file and "
        "explaining the problem and a suggested fix\n"
        "3. Suggestions: optional improvements that are not problems\n"
        "4. Verdict: approve, approve with comments, or request changes",
        "Only comment on code that appears in the diff. Do not invent issues; if the change looks "
        "correct, say so.",
        "The review should be in markdown format.",
        f"The review should be no more than {options.max_length} words.",
    ]


def build_prompt(diff: str, tree: str, options: GenerationOptions) -> str:
    """Assemble the initial instruction text for the completion loop."""
    options.validate()
    role = "reviews code changes" if options.mode == "review" else "helps write PR descriptions"
    header = (
        f"You are an assistant that {role}.\n"
        f"The diff from my branch compared to {options.base} is:\n"
        f"{diff}\n\n"
        "The repository structure is:\n"
        f"```\n{tree}\n```"
    )
    body = _review_sections(options) if options.mode == "review" else _description_sections(options)
    return "\n\n".join([header, *body, CONTEXT_PROTOCOL])
