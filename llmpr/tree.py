"""
Directory tree summarizer for llmpr.

This module renders a compact ASCII tree of the repository that gives the
model spatial context for the diff without sending the whole file list.
Only the top level of the repository is listed in full; below it, only
changed files and the directories that lead to them are shown.  Changed
files carry a highlight marker so they stand out from entries that are
listed purely for orientation.

Example output for changed files ``src/a.ts`` and ``src/b/c.ts``::

    repo/
    ├── docs/
    ├── src/
    │   ├── b/
    │   │   └── c.ts [changed]
    │   └── a.ts [changed]
    └── README.md
"""

from __future__ import annotations

import logging
import os
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Set

from .exceptions import FilesystemError

logger = logging.getLogger(__name__)

# Names starting with this prefix (.git, .github, .gitignore, ...) are never listed.
HIDDEN_PREFIX = ".git"
CHANGED_MARKER = " [changed]"
MORE_ITEMS = "... (more items not shown)"

BRANCH = "├── "
LAST_BRANCH = "└── "
PIPE = "│   "
SPACE = "    "


@dataclass
class TreeNode:
    """One filesystem entry considered for rendering."""

    name: str
    is_dir: bool
    rel_path: str


class DirectoryTreeBuilder:
    """Builds the filtered tree for a root directory and a set of changed files."""

    def __init__(self, root: Path, changed_files: Iterable[str], max_depth: int = 3) -> None:
        self.root = Path(root)
        self.max_depth = max_depth
        self.changed_files: Set[str] = {self._normalize(f) for f in changed_files if f.strip()}
        self.changed_dirs: Set[str] = self._ancestor_dirs(self.changed_files)

    @staticmethod
    def _normalize(rel_path: str) -> str:
        return posixpath.normpath(rel_path.strip().replace(os.sep, "/"))

    @staticmethod
    def _ancestor_dirs(files: Set[str]) -> Set[str]:
        """Return every directory that transitively contains a changed file."""
        dirs: Set[str] = set()
        for f in files:
            parent = posixpath.dirname(f)
            while parent and parent != ".":
                dirs.add(parent)
                parent = posixpath.dirname(parent)
        return dirs

    def _list_dir(self, current: Path, rel_dir: str) -> List[TreeNode]:
        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError as exc:
            raise FilesystemError(f"Cannot list directory {current}: {exc.strerror or exc}") from exc
        nodes: List[TreeNode] = []
        for entry in entries:
            if entry.name.startswith(HIDDEN_PREFIX):
                continue
            rel_path = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
            try:
                is_dir = entry.is_dir()
            except OSError:
                is_dir = False
            nodes.append(TreeNode(entry.name, is_dir, rel_path))
        return nodes

    def _is_visible(self, node: TreeNode, depth: int) -> bool:
        if depth == 0:
            return True
        if node.is_dir:
            return node.rel_path in self.changed_dirs
        return node.rel_path in self.changed_files

    def _render_dir(self, current: Path, rel_dir: str, prefix: str, depth: int, lines: List[str]) -> None:
        if depth > self.max_depth:
            lines.append(f"{prefix}{MORE_ITEMS}")
            return

        nodes = [n for n in self._list_dir(current, rel_dir) if self._is_visible(n, depth)]
        # Directories first, then plain (case-sensitive) name order
        nodes.sort(key=lambda n: (not n.is_dir, n.name))

        for index, node in enumerate(nodes):
            is_last = index == len(nodes) - 1
            connector = LAST_BRANCH if is_last else BRANCH
            if node.is_dir:
                lines.append(f"{prefix}{connector}{node.name}/")
                child_prefix = prefix + (SPACE if is_last else PIPE)
                self._render_dir(current / node.name, node.rel_path, child_prefix, depth + 1, lines)
            else:
                marker = CHANGED_MARKER if node.rel_path in self.changed_files else ""
                lines.append(f"{prefix}{connector}{node.name}{marker}")

    def render(self) -> str:
        """Return the tree as a multi-line string, root directory first."""
        if not self.root.is_dir():
            raise FilesystemError(f"Cannot list directory {self.root}: not a directory")
        lines: List[str] = [f"{self.root.resolve().name}/"]
        self._render_dir(self.root, "", "", 0, lines)
        logger.debug(
            "Rendered repository tree: %d lines, %d changed files", len(lines), len(self.changed_files)
        )
        return "\n".join(lines) + "\n"


def build_directory_tree(root: Path, changed_files: Iterable[str], max_depth: int = 3) -> str:
    """Render the repository tree for `root`, focused on `changed_files`."""
    return DirectoryTreeBuilder(root, changed_files, max_depth=max_depth).render()
