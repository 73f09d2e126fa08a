"""Repository tree construction, statistics and compact rendering."""

from __future__ import annotations

from collections import Counter
from pathlib import PurePosixPath
from typing import Dict, Iterable, Iterator, List, Mapping

from .models import FileStats, FileTreeNode

_EXCLUDED_DIRS = {
    ".git",
    "node_modules",
    "__pycache__",
    ".venv",
    "venv",
    ".tox",
    ".mypy_cache",
    ".pytest_cache",
    ".next",
    ".nuxt",
    "dist",
    "build",
    "coverage",
    "vendor",
}

_LANGUAGE_BY_SUFFIX = {
    ".py": "Python",
    ".pyi": "Python",
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".mjs": "JavaScript",
    ".cjs": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".java": "Java",
    ".kt": "Kotlin",
    ".go": "Go",
    ".rs": "Rust",
    ".rb": "Ruby",
    ".php": "PHP",
    ".cs": "C#",
    ".c": "C",
    ".h": "C",
    ".cpp": "C++",
    ".hpp": "C++",
    ".cc": "C++",
    ".swift": "Swift",
    ".scala": "Scala",
    ".vue": "Vue",
    ".svelte": "Svelte",
    ".css": "CSS",
    ".scss": "SCSS",
    ".html": "HTML",
    ".sh": "Shell",
    ".sql": "SQL",
    ".dart": "Dart",
    ".ex": "Elixir",
    ".exs": "Elixir",
}


def build_tree(entries: Iterable[Mapping[str, object]]) -> List[FileTreeNode]:
    """Nest a flat source-hosting tree listing into `FileTreeNode` roots.

    Entries use the git tree shape (`path`, `type` of ``blob``/``tree``, `size`).
    Paths inside excluded directories are dropped, and missing intermediate
    directories are created so every file has a parent chain.
    """
    roots: List[FileTreeNode] = []
    directories: Dict[str, FileTreeNode] = {}

    def _ensure_directory(path: str) -> FileTreeNode:
        existing = directories.get(path)
        if existing is not None:
            return existing
        node = FileTreeNode(path=path, name=path.rsplit("/", 1)[-1], type="directory")
        directories[path] = node
        parent = path.rsplit("/", 1)[0] if "/" in path else ""
        if parent:
            _ensure_directory(parent).children.append(node)
        else:
            roots.append(node)
        return node

    for entry in entries:
        path = entry.get("path")
        if not isinstance(path, str) or not path:
            continue
        parts = path.split("/")
        if any(part in _EXCLUDED_DIRS for part in parts):
            continue
        if entry.get("type") == "tree":
            _ensure_directory(path)
            continue
        raw_size = entry.get("size")
        size = raw_size if isinstance(raw_size, int) and not isinstance(raw_size, bool) else 0
        node = FileTreeNode(path=path, name=parts[-1], type="file", size=size)
        if len(parts) > 1:
            _ensure_directory("/".join(parts[:-1])).children.append(node)
        else:
            roots.append(node)

    for root in roots:
        _aggregate(root)
    return roots


def _aggregate(node: FileTreeNode) -> int:
    if not node.is_directory:
        return node.size
    node.size = sum(_aggregate(child) for child in node.children)
    return node.size


def iter_nodes(tree: Iterable[FileTreeNode]) -> Iterator[FileTreeNode]:
    stack = list(tree)
    while stack:
        node = stack.pop()
        yield node
        stack.extend(node.children)


def flatten_paths(tree: Iterable[FileTreeNode]) -> List[str]:
    return [node.path for node in iter_nodes(tree)]


def total_size(tree: Iterable[FileTreeNode]) -> int:
    return sum(node.size for node in iter_nodes(tree) if not node.is_directory)


def language_for(path: str) -> str | None:
    return _LANGUAGE_BY_SUFFIX.get(PurePosixPath(path).suffix.lower())


def calculate_file_stats(tree: Iterable[FileTreeNode]) -> FileStats:
    total_files = 0
    total_directories = 0
    languages: Counter[str] = Counter()
    for node in iter_nodes(tree):
        if node.is_directory:
            total_directories += 1
            continue
        total_files += 1
        language = language_for(node.path)
        if language:
            languages[language] += 1
    return FileStats(
        total_files=total_files,
        total_directories=total_directories,
        languages=dict(languages.most_common()),
    )


def sort_nodes(nodes: Iterable[FileTreeNode]) -> List[FileTreeNode]:
    """Directories first, then case-insensitive name order."""
    return sorted(nodes, key=lambda node: (not node.is_directory, node.name.lower()))


def create_compact_tree(tree: Iterable[FileTreeNode], max_lines: int = 40) -> str:
    """Render an indented listing capped at `max_lines` entries plus one overflow line."""
    lines: List[str] = []
    omitted = 0

    def _walk(nodes: Iterable[FileTreeNode], depth: int) -> None:
        nonlocal omitted
        for node in sort_nodes(nodes):
            if len(lines) >= max_lines:
                omitted += 1 + sum(1 for _ in iter_nodes(node.children))
                continue
            suffix = "/" if node.is_directory else ""
            lines.append(f"{'  ' * depth}{node.name}{suffix}")
            if node.children:
                _walk(node.children, depth + 1)

    _walk(tree, 0)
    if omitted:
        lines.append(f"... ({omitted} more entries)")
    return "\n".join(lines)


__all__ = [
    "build_tree",
    "calculate_file_stats",
    "create_compact_tree",
    "flatten_paths",
    "iter_nodes",
    "language_for",
    "sort_nodes",
    "total_size",
]
