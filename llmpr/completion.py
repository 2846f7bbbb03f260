"""
Context-aware completion loop.

The model is given the diff and the repository tree up front.  When that
is not enough it may ask for the literal contents of specific files by
writing ``[NEED_CONTEXT:path/to/file]`` anywhere in its answer.  This
module finds those requests, reads the files, and asks again, for at most
``max_rounds`` requests in total.

Each follow-up request restarts from the original instructions plus the
single most recent exchange::

    system:    <initial prompt>
    assistant: <previous answer, containing the markers>
    user:      <requested file contents + "do not ask again">

Files that cannot be read are reported to the model as an error string
instead of failing the run.  Whatever the model answers on the last
round is normalized, which also removes markers it emitted despite being
told not to.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Dict, List, Optional, Protocol

from .normalize import normalize_response

logger = logging.getLogger(__name__)

CONTEXT_REQUEST_RE = re.compile(r"\[NEED_CONTEXT:([^\]]+)\]")


class CompletionClient(Protocol):
    def complete(self, messages: List[Dict[str, str]]) -> Awaitable[str]: ...


@dataclass
class ContextRequest:
    """A file the model asked to see."""

    filepath: str


@dataclass
class ResolvedContext:
    """Outcome of reading one requested file: either `content` or `error` is set."""

    filepath: str
    content: Optional[str] = None
    error: Optional[str] = None

    def render(self) -> str:
        if self.error is not None:
            return f"Error reading {self.filepath}: {self.error}"
        return f"File content for {self.filepath}:\n```\n{self.content}\n```"


@dataclass
class ConversationState:
    """Messages of the current request and the number of requests made so far."""

    max_rounds: int
    messages: List[Dict[str, str]] = field(default_factory=list)
    round: int = 0

    def start_round(self, messages: List[Dict[str, str]]) -> None:
        if self.round >= self.max_rounds:
            raise RuntimeError(f"Round budget of {self.max_rounds} exhausted")
        self.messages = messages
        self.round += 1

    @property
    def exhausted(self) -> bool:
        return self.round >= self.max_rounds


def find_context_requests(answer: str) -> List[ContextRequest]:
    """Return one request per marker in `answer`, duplicates included, in order."""
    return [ContextRequest(m.group(1).strip()) for m in CONTEXT_REQUEST_RE.finditer(answer)]


def _read_file(filepath: str, cwd: Path) -> ResolvedContext:
    try:
        path = Path(filepath)
        full_path = path if path.is_absolute() else cwd / path
        if not full_path.exists():
            return ResolvedContext(filepath, error=f"File not found: {filepath}")
        with full_path.open("r", encoding="utf-8", errors="replace") as f:
            return ResolvedContext(filepath, content=f.read())
    except OSError as exc:
        return ResolvedContext(filepath, error=exc.strerror or str(exc))
    except ValueError as exc:
        # e.g. embedded NUL byte in the requested path
        return ResolvedContext(filepath, error=str(exc))


async def resolve_context_requests(requests: List[ContextRequest], cwd: Path) -> List[ResolvedContext]:
    """Read all requested files concurrently, keeping the order of `requests`."""
    return list(await asyncio.gather(*(asyncio.to_thread(_read_file, r.filepath, cwd) for r in requests)))


def build_follow_up_prompt(resolved: List[ResolvedContext], task_name: str = "PR description") -> str:
    """Compose the user message that hands the requested files back to the model."""
    blocks = "\n\n".join(r.render() for r in resolved)
    return (
        f"You previously requested additional context to complete the {task_name}.\n"
        "Here is the requested context:\n\n"
        f"{blocks}\n\n"
        f"Based on this additional information, please generate the complete {task_name} as requested originally.\n"
        "Do NOT request more context with [NEED_CONTEXT:filepath]. "
        f"This is your final opportunity to generate the {task_name}.\n"
    )


class ContextAwareCompletion:
    """Runs the bounded request / file-context / re-request loop against a completion client."""

    def __init__(
        self,
        client: CompletionClient,
        cwd: Optional[Path] = None,
        max_rounds: int = 3,
        task_name: str = "PR description",
    ) -> None:
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self.client = client
        self.cwd = Path(cwd) if cwd is not None else Path.cwd()
        self.max_rounds = max_rounds
        self.task_name = task_name
        self.state: Optional[ConversationState] = None

    async def _request(self, state: ConversationState, messages: List[Dict[str, str]]) -> str:
        state.start_round(messages)
        logger.debug("Round %d/%d: sending %d messages", state.round, self.max_rounds, len(messages))
        return (await self.client.complete(messages)).strip()

    async def run(self, initial_prompt: str) -> str:
        """Return the model's final, normalized answer to `initial_prompt`."""
        state = self.state = ConversationState(max_rounds=self.max_rounds)
        start = time.monotonic()

        answer = await self._request(state, [{"role": "system", "content": initial_prompt}])

        while not state.exhausted:
            requests = find_context_requests(answer)
            if not requests:
                break
            logger.info(
                "AI requested additional context for files (round %d): %s",
                state.round + 1,
                ", ".join(r.filepath for r in requests),
            )
            resolved = await resolve_context_requests(requests, self.cwd)
            for item in resolved:
                if item.error is not None:
                    logger.warning("Could not provide %s: %s", item.filepath, item.error)

            answer = await self._request(
                state,
                [
                    {"role": "system", "content": initial_prompt},
                    {"role": "assistant", "content": answer},
                    {"role": "user", "content": build_follow_up_prompt(resolved, self.task_name)},
                ]
            )

        elapsed = time.monotonic() - start
        rounds = state.round
        logger.info(
            "%s generated in %.2fs after %d round%s",
            self.task_name[0].upper() + self.task_name[1:],
            elapsed,
            rounds,
            "" if rounds == 1 else "s",
        )
        return normalize_response(answer)


async def generate_with_context(
    client: CompletionClient,
    initial_prompt: str,
    cwd: Optional[Path] = None,
    max_rounds: int = 3,
    task_name: str = "PR description",
) -> str:
    """Convenience wrapper around :class:`ContextAwareCompletion`."""
    loop = ContextAwareCompletion(client, cwd=cwd, max_rounds=max_rounds, task_name=task_name)
    return await loop.run(initial_prompt)
