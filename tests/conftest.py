from pathlib import Path
from typing import Dict, List

import pytest


class ScriptedClient:
    """Completion client that replays canned answers and records every request."""

    def __init__(self, answers: List[str]) -> None:
        self.answers = list(answers)
        self.calls: List[List[Dict[str, str]]] = []
        self.closed = False

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        self.calls.append([dict(m) for m in messages])
        if not self.answers:
            raise AssertionError("ScriptedClient ran out of answers")
        return self.answers.pop(0)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def scripted_client():
    return ScriptedClient


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """A small repository layout with a few nested directories."""
    root = tmp_path / "repo"
    for rel in [
        "src/a.ts",
        "src/b/c.ts",
        "src/b/d.ts",
        "src/z.ts",
        "docs/guide.md",
        "lib/util.py",
        "README.md",
        ".gitignore",
        ".github/workflows/ci.yml",
        ".git/HEAD",
    ]:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"// {rel}\n", encoding="utf-8")
    return root
