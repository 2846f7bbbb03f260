"""Tests for prompt assembly."""

import pytest

from llmpr.config import GenerationOptions
from llmpr.exceptions import ConfigurationError
from llmpr.prompts import CONTEXT_PROTOCOL, build_prompt

DIFF = "diff --git a/x b/x\n+line"
TREE = "repo/\n└── x [changed]\n"


@pytest.mark.parametrize("style", ["concise", "standard", "verbose"])
@pytest.mark.parametrize("mode", ["describe", "review"])
def test_prompt_always_ends_with_context_protocol(style, mode):
    prompt = build_prompt(DIFF, TREE, GenerationOptions(style=style, mode=mode))
    assert prompt.endswith(CONTEXT_PROTOCOL)
    assert "[NEED_CONTEXT:filepath]" in prompt
    assert "up to 3 files" in prompt


def test_prompt_embeds_diff_tree_base_and_length():
    prompt = build_prompt(DIFF, TREE, GenerationOptions(max_length=120, base="develop"))
    assert "compared to develop" in prompt
    assert DIFF in prompt
    assert f"```\n{TREE}\n```" in prompt
    assert "no more than 120 words" in prompt


def test_concise_and_verbose_differ():
    concise = build_prompt(DIFF, TREE, GenerationOptions(style="concise"))
    verbose = build_prompt(DIFF, TREE, GenerationOptions(style="verbose"))
    assert "focusing only on summary, key details, and changes" in concise
    assert "Mermaid" not in concise
    assert "Mermaid" in verbose
    assert "Detailed summary of changes" in verbose


def test_review_mode_asks_for_review():
    prompt = build_prompt(DIFF, TREE, GenerationOptions(mode="review"))
    assert "reviews code changes" in prompt
    assert "Verdict" in prompt
    assert "PR description should be" not in prompt


def test_invalid_style_is_rejected():
    with pytest.raises(ConfigurationError):
        build_prompt(DIFF, TREE, GenerationOptions(style="loud"))
