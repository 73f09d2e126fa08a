"""Builds the bounded analysis brief sent to the generative backend."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Tuple

from jinja2 import Environment, FileSystemLoader

from ..models import CodeMetrics, FileStats, FileTreeNode, RepoMetadata, Scores
from ..tree import create_compact_tree
from .constants import (
    ARCHITECTURE_TYPES,
    DATA_FLOW_TYPES,
    INSIGHT_TYPES,
    METRIC_SECTIONS,
    PRIORITIES,
    SCORE_KEYS,
    response_example,
)

_TEMPLATE_NAME = "analysis.md.j2"


@dataclass
class PromptContext:
    """Repository facts embedded in the brief."""

    metadata: RepoMetadata
    file_stats: FileStats
    compact_tree: str
    files_content: str
    branch: str


class PromptBuilder:
    """Renders metadata, metrics, scores and capped excerpts into a single brief.

    Every cap truncates; oversized inputs never raise.
    """

    def __init__(
        self,
        templates_dir: Path | None = None,
        *,
        max_files: int = 6,
        max_file_length: int = 2500,
        max_tree_lines: int = 40,
        max_description_length: int = 500,
    ) -> None:
        self.templates_dir = templates_dir or Path(__file__).with_name("templates")
        self.max_files = max_files
        self.max_file_length = max_file_length
        self.max_tree_lines = max_tree_lines
        self.max_description_length = max_description_length
        self._env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def build_context(
        self,
        metadata: RepoMetadata,
        tree: Iterable[FileTreeNode],
        file_stats: FileStats,
        files: Mapping[str, str],
        branch: str,
    ) -> PromptContext:
        return PromptContext(
            metadata=metadata,
            file_stats=file_stats,
            compact_tree=create_compact_tree(tree, self.max_tree_lines),
            files_content=prepare_files_content(files, self.max_files, self.max_file_length),
            branch=branch,
        )

    def build_prompt(self, context: PromptContext, metrics: CodeMetrics, scores: Scores) -> str:
        metadata = context.metadata
        template = self._env.get_template(_TEMPLATE_NAME)
        return template.render(
            metadata=metadata,
            branch=context.branch,
            description=_truncate(
                metadata.description or "No description", self.max_description_length
            ),
            numbers={
                "stars": f"{metadata.stars:,}",
                "forks": f"{metadata.forks:,}",
                "open_issues": f"{metadata.open_issues:,}",
                "total_files": f"{context.file_stats.total_files:,}",
            },
            languages=format_languages(context.file_stats.languages),
            metrics_context=format_metrics_context(metrics),
            scores_json=json.dumps(
                {key: getattr(scores, key) for key in SCORE_KEYS}, indent=2
            ),
            compact_tree=_cap_lines(context.compact_tree, self.max_tree_lines + 1),
            files_content=context.files_content,
            response_example=json.dumps(
                response_example(metadata.full_name, metadata.name), indent=2, ensure_ascii=False
            ),
            insight_types=_quoted(INSIGHT_TYPES),
            priorities=_quoted(PRIORITIES),
            architecture_types=_quoted(ARCHITECTURE_TYPES),
            data_flow_types=_quoted(DATA_FLOW_TYPES),
        )


def prepare_files_content(
    files: Mapping[str, str], max_files: int = 6, max_length: int = 2500
) -> str:
    """Return at most `max_files` fenced excerpts, each cut to `max_length` characters."""
    excerpts: List[str] = []
    for path, content in list(files.items())[: max(0, max_files)]:
        excerpts.append(f"### {path}\n```\n{content[: max(0, max_length)]}\n```")
    return "\n\n".join(excerpts)


def format_metrics_context(metrics: CodeMetrics) -> str:
    """Render metrics in fixed section order: testing, CI, quality, security,
    documentation, dependencies, issues, existing automations."""
    sections: List[Tuple[str, List[str]]] = []

    tests = f"Yes ({metrics.test_file_count} files)" if metrics.has_tests else "No"
    sections.append(("Testing", [f"- Has Tests: {tests}"]))

    ci = f"Yes ({metrics.ci_provider})" if metrics.has_ci else "No"
    sections.append(("CI/CD", [f"- Has CI: {ci}"]))

    if metrics.has_typescript:
        typescript = "Yes (strict)" if metrics.strict_mode else "Yes"
    else:
        typescript = "No"
    sections.append(
        (
            "Code Quality",
            [
                f"- TypeScript: {typescript}",
                f"- Linting: {_yes_no(metrics.has_linting)}",
                f"- Prettier: {_yes_no(metrics.has_prettier)}",
            ],
        )
    )

    security = [
        f"- Security Config: {_yes_no(metrics.has_security_config)}",
        f"- .env.example: {_yes_no(metrics.has_env_example)}",
    ]
    if metrics.exposed_secrets:
        security.append(f"- ⚠️ Potential Secrets: {len(metrics.exposed_secrets)} detected")
    if metrics.vulnerable_patterns:
        security.append(f"- ⚠️ Deprecated Deps: {', '.join(metrics.vulnerable_patterns)}")
    sections.append(("Security", security))

    sections.append(
        (
            "Documentation",
            [
                f"- README: {metrics.readme_quality}",
                f"- CHANGELOG: {_yes_no(metrics.has_changelog)}",
                f"- CONTRIBUTING: {_yes_no(metrics.has_contributing)}",
                f"- LICENSE: {_yes_no(metrics.has_license)}",
            ],
        )
    )

    sections.append(
        (
            "Dependencies",
            [
                f"- Count: {metrics.dependency_count} production, "
                f"{metrics.dev_dependency_count} dev"
            ],
        )
    )

    issues: List[str] = []
    if metrics.large_files:
        issues.append(f"- Large Files: {', '.join(metrics.large_files[:3])}")
    if metrics.missing_essentials:
        issues.append(f"- Missing: {', '.join(metrics.missing_essentials)}")
    if issues:
        sections.append(("Issues", issues))

    if metrics.existing_automations:
        sections.append(("Existing Automations", [", ".join(metrics.existing_automations)]))

    sections.sort(key=lambda section: METRIC_SECTIONS.index(section[0]))
    return "\n\n".join(
        "\n".join([f"### {title}", *lines]) for title, lines in sections
    )


def format_languages(languages: Dict[str, int], limit: int = 5) -> str:
    entries = list(languages.items())[:limit]
    if not entries:
        return "Unknown"
    return ", ".join(f"{language} ({count})" for language, count in entries)


def _yes_no(value: bool) -> str:
    return "Yes" if value else "No"


def _quoted(values: Iterable[str]) -> str:
    return ", ".join(f'"{value}"' for value in values)


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: max(0, limit - 1)] + "…"


def _cap_lines(text: str, limit: int) -> str:
    lines = text.splitlines()
    return "\n".join(lines[:limit])


__all__ = [
    "PromptBuilder",
    "PromptContext",
    "format_languages",
    "format_metrics_context",
    "prepare_files_content",
]
