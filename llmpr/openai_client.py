"""
OpenAI client wrapper for llmpr.

This module encapsulates interactions with OpenAI's Chat Completions API.
It centralizes error handling, token estimation and the extraction of
the answer text from the response.  By abstracting the OpenAI library
here, the completion loop stays decoupled from the specific service
interface, which keeps it easy to test with a fake client.

Every failure coming out of the SDK (network errors, non-2xx statuses,
timeouts) and every response without usable text is reported as a
single :class:`~llmpr.exceptions.TransportError` whose message names the
remote service.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import openai
import tiktoken

from .exceptions import TransportError

logger = logging.getLogger(__name__)


class OpenAIClient:
    """Wrapper around the async OpenAI chat API with token estimation and error handling."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", base_url: Optional[str] = None) -> None:
        if not api_key:
            raise ValueError("OPENAI_API_KEY is required but not provided.")
        self.api_key = api_key
        self.model = model
        # Exactly one HTTP request per round; timeouts stay at the SDK defaults
        self.client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)

    async def aclose(self) -> None:
        """Release the underlying HTTP connection pool."""
        await self.client.close()

    def estimate_tokens(self, text: str) -> int:
        """Estimate the number of tokens used by a text for the configured model."""
        try:
            encoding = tiktoken.encoding_for_model(self.model)
        except KeyError:
            # Default to o200k_base if model unknown
            encoding = tiktoken.get_encoding("o200k_base")
        return len(encoding.encode(text, disallowed_special=()))

    @staticmethod
    def extract_message_text(response: Any) -> str:
        """Return the first choice's message content, or raise TransportError."""
        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as exc:
            raise TransportError(f"OpenAI API Error: malformed response ({exc})") from exc
        if not isinstance(content, str):
            raise TransportError("OpenAI API Error: response contained no message content")
        return content

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        """Send `messages` to the chat completions endpoint and return the answer text.

        The returned text is stripped of surrounding whitespace.
        """
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Preparing chat completion with model=%s, messages=%d, ~%d input tokens",
                self.model,
                len(messages),
                self.estimate_tokens("\n".join(m["content"] for m in messages)),
            )
        try:
            response = await self.client.chat.completions.create(model=self.model, messages=messages)
        except openai.APIStatusError as exc:
            raise TransportError(f"OpenAI API Error: {self._status_error_message(exc)}") from exc
        except openai.OpenAIError as exc:
            raise TransportError(f"OpenAI API Error: {exc}") from exc

        text = self.extract_message_text(response).strip()
        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.debug(
                "Chat completion usage: prompt_tokens=%s completion_tokens=%s",
                getattr(usage, "prompt_tokens", None),
                getattr(usage, "completion_tokens", None),
            )
        return text

    @staticmethod
    def _status_error_message(exc: "openai.APIStatusError") -> str:
        """Prefer the server-provided error message over the SDK's summary."""
        body = getattr(exc, "body", None)
        if isinstance(body, dict):
            error = body.get("error", body)
            if isinstance(error, dict) and error.get("message"):
                return f"{error['message']} (status {exc.status_code})"
        return str(exc)
